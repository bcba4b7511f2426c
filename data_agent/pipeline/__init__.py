"""
Question Pipeline

question -> PromptBuilder -> LLM -> SqlExtractor -> SqlSanitizer
         -> QueryExecutor -> AnswerComposer -> chart type
"""

from data_agent.pipeline.aliases import AliasTable, load_alias_table
from data_agent.pipeline.catalog import SchemaCatalog
from data_agent.pipeline.charts import select_chart_type
from data_agent.pipeline.composer import AnswerComposer
from data_agent.pipeline.executor import QueryExecutor
from data_agent.pipeline.extractor import ExtractionFailure, SqlExtracted, SqlExtractor, extract
from data_agent.pipeline.orchestrator import QuestionPipeline, create_pipeline
from data_agent.pipeline.prompt_builder import PromptBuilder
from data_agent.pipeline.sanitizer import SqlSanitizer, sanitize

__all__ = [
    "AliasTable",
    "load_alias_table",
    "SchemaCatalog",
    "select_chart_type",
    "AnswerComposer",
    "QueryExecutor",
    "ExtractionFailure",
    "SqlExtracted",
    "SqlExtractor",
    "extract",
    "QuestionPipeline",
    "create_pipeline",
    "PromptBuilder",
    "SqlSanitizer",
    "sanitize",
]
