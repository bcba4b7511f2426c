"""
Data Agent Models

Pydantic models and exceptions shared across the pipeline and the API.
"""

from data_agent.models.errors import (
    CompletionError,
    ExecutionError,
    InvalidSqlInput,
    PipelineError,
    SchemaReadError,
    ValidationError,
)
from data_agent.models.pipeline import ChartType, ConversationTurn, PipelineOutcome, QueryResult
from data_agent.models.schema import ColumnSchema, ForeignKeyRef, SchemaDescription, TableSchema

__all__ = [
    "PipelineError",
    "ValidationError",
    "SchemaReadError",
    "InvalidSqlInput",
    "ExecutionError",
    "CompletionError",
    "ChartType",
    "ConversationTurn",
    "QueryResult",
    "PipelineOutcome",
    "ColumnSchema",
    "ForeignKeyRef",
    "TableSchema",
    "SchemaDescription",
]
