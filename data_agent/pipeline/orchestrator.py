"""
Question Pipeline Orchestrator

LangGraph state machine that turns a question into an answer:

    generate --(sql)--------> execute -> compose -> END
        \--(no usable sql)--> fallback --^

``generate`` renders the prompt, calls the model, extracts and sanitizes the
SQL. When any of those steps yields nothing usable (rate limit, no SQL in
the completion, empty SQL) the ``fallback`` node substitutes a bounded
sample query and flags the outcome. Execution errors that survive the
executor's correction cycle propagate to the caller.
"""

import logging
import time
from typing import TypedDict

from langgraph.graph import END, StateGraph

from data_agent.config import Settings
from data_agent.connectors.base import BaseConnector
from data_agent.connectors.factory import create_connector
from data_agent.conversations.store import ConversationStore
from data_agent.llm.base import BaseLLMProvider
from data_agent.llm.factory import LLMProviderFactory
from data_agent.models.errors import CompletionError, ExecutionError, InvalidSqlInput, ValidationError
from data_agent.models.pipeline import ChartType, ConversationTurn, PipelineOutcome, QueryResult
from data_agent.models.schema import SchemaDescription, TableSchema
from data_agent.pipeline.aliases import AliasTable, load_alias_table
from data_agent.pipeline.catalog import SchemaCatalog
from data_agent.pipeline.charts import select_chart_type
from data_agent.pipeline.composer import AnswerComposer
from data_agent.pipeline.executor import QueryExecutor
from data_agent.pipeline.extractor import ExtractionFailure, SqlExtractor
from data_agent.pipeline.prompt_builder import PromptBuilder, rank_tables
from data_agent.pipeline.sanitizer import SqlSanitizer
from data_agent.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

FALLBACK_SAMPLE_ROWS = 10
MAX_EXPLAIN_SQL_LENGTH = 10000


class PipelineState(TypedDict, total=False):
    """State carried between graph nodes for one question."""

    question: str
    conversation_id: str | None
    history: list[ConversationTurn]
    schema: SchemaDescription

    sql: str | None
    generation_failure: str | None
    used_fallback: bool
    notes: list[str]

    result: QueryResult
    answer: str
    chart_type: ChartType


class QuestionPipeline:
    """
    Question-to-answer pipeline.

    All collaborators are injected; ``create_pipeline`` wires them from
    settings for the API and CLI entry points.
    """

    def __init__(
        self,
        *,
        connector: BaseConnector,
        catalog: SchemaCatalog,
        llm: BaseLLMProvider,
        aliases: AliasTable,
        prompt_builder: PromptBuilder,
        extractor: SqlExtractor,
        sanitizer: SqlSanitizer,
        executor: QueryExecutor,
        composer: AnswerComposer,
        conversations: ConversationStore,
        max_question_length: int = 1000,
        fallback_sql: str | None = None,
    ):
        self.connector = connector
        self.catalog = catalog
        self.llm = llm
        self.aliases = aliases
        self.prompt_builder = prompt_builder
        self.extractor = extractor
        self.sanitizer = sanitizer
        self.executor = executor
        self.composer = composer
        self.conversations = conversations
        self.max_question_length = max_question_length
        self.fallback_sql = fallback_sql
        self.graph = self._build_graph()

    def _build_graph(self):
        workflow = StateGraph(PipelineState)

        workflow.add_node("generate", self._run_generate)
        workflow.add_node("fallback", self._run_fallback)
        workflow.add_node("execute", self._run_execute)
        workflow.add_node("compose", self._run_compose)

        workflow.set_entry_point("generate")
        workflow.add_conditional_edges(
            "generate",
            self._has_usable_sql,
            {
                "execute": "execute",
                "fallback": "fallback",
            },
        )
        workflow.add_edge("fallback", "execute")
        workflow.add_edge("execute", "compose")
        workflow.add_edge("compose", END)

        return workflow.compile()

    async def start(self) -> SchemaDescription:
        """
        Connect and load the schema snapshot.

        Raises:
            ConnectionError: If the database is unreachable
            SchemaReadError: If catalog metadata cannot be read
        """
        await self.connector.connect()
        return await self.catalog.refresh()

    async def close(self) -> None:
        try:
            await self.llm.close()
        finally:
            await self.connector.close()

    async def run(self, question: str, conversation_id: str | None = None) -> PipelineOutcome:
        """
        Answer one question.

        History for ``conversation_id`` is read and appended under that id's
        lock, and only after the turn resolved.

        Raises:
            ValidationError: If the question is empty or too long
            ExecutionError: If the query failed after the correction cycle
        """
        question = self._validate_question(question)
        start_time = time.perf_counter()

        async with self.conversations.session(conversation_id):
            history = self.conversations.get(conversation_id)
            schema = await self.catalog.get()

            state: PipelineState = await self.graph.ainvoke(
                {
                    "question": question,
                    "conversation_id": conversation_id,
                    "history": history,
                    "schema": schema,
                    "used_fallback": False,
                    "notes": [],
                }
            )

            outcome = PipelineOutcome(
                answer=state["answer"],
                sql=state["result"].sql,
                chart_type=state["chart_type"],
                result=state["result"],
                used_fallback=state.get("used_fallback", False),
                notes=state.get("notes", []),
                conversation_id=conversation_id,
            )
            self.conversations.append(
                conversation_id,
                ConversationTurn(
                    question=question,
                    sql=None if outcome.used_fallback else outcome.sql,
                ),
            )

        logger.info(
            f"Answered question in {(time.perf_counter() - start_time) * 1000:.0f}ms",
            extra={
                "conversation_id": conversation_id,
                "row_count": outcome.result.row_count,
                "chart_type": outcome.chart_type.value,
                "used_fallback": outcome.used_fallback,
            },
        )
        return outcome

    async def explain(self, sql: str) -> str:
        """
        Explain a SQL statement in plain language.

        The statement is not sanitized or executed.

        Raises:
            ValidationError: If ``sql`` is empty or too long
            CompletionError: If the model could not explain it
        """
        if not isinstance(sql, str) or not sql.strip():
            raise ValidationError("SQL query is required")
        sql = sql.strip()
        if len(sql) > MAX_EXPLAIN_SQL_LENGTH:
            raise ValidationError(
                f"SQL query must be at most {MAX_EXPLAIN_SQL_LENGTH} characters",
                context={"length": len(sql)},
            )

        explanation = await self.composer.explain(sql)
        logger.info("Explained SQL", extra={"sql": sql[:200]})
        return explanation

    def _validate_question(self, question: object) -> str:
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Question is required")
        question = question.strip()
        if len(question) > self.max_question_length:
            raise ValidationError(
                f"Question must be at most {self.max_question_length} characters",
                context={"length": len(question)},
            )
        return question

    # ========================================================================
    # Graph nodes
    # ========================================================================

    async def _run_generate(self, state: PipelineState) -> dict:
        prompt = self.prompt_builder.build(
            state["question"],
            state["schema"],
            self.aliases,
            state.get("history", []),
        )

        try:
            completion = await self.llm.complete(prompt, system=self.prompt_builder.system_prompt)
        except CompletionError as e:
            reason = "rate limited" if e.rate_limited else e.message
            logger.warning(f"SQL generation failed: {reason}")
            return {"sql": None, "generation_failure": reason}

        extraction = self.extractor.extract(completion)
        if isinstance(extraction, ExtractionFailure):
            return {"sql": None, "generation_failure": extraction.reason}

        try:
            sql = self.sanitizer.sanitize(extraction.sql)
        except InvalidSqlInput as e:
            return {"sql": None, "generation_failure": e.message}

        logger.debug("Generated SQL", extra={"sql": sql[:200], "source": extraction.source})
        return {"sql": sql, "generation_failure": None}

    def _has_usable_sql(self, state: PipelineState) -> str:
        return "execute" if state.get("sql") else "fallback"

    async def _run_fallback(self, state: PipelineState) -> dict:
        sql = self.fallback_sql or default_query(state["question"], state["schema"], self.aliases)
        if sql is None:
            raise ExecutionError(
                "no_query",
                "No query could be generated and the database has no tables to sample",
            )

        logger.warning(
            "Using fallback query",
            extra={"reason": state.get("generation_failure"), "sql": sql},
        )
        notes = list(state.get("notes", []))
        notes.append(
            "The question could not be turned into a query, so a sample of the most "
            "relevant data is shown instead."
        )
        return {"sql": sql, "used_fallback": True, "notes": notes}

    async def _run_execute(self, state: PipelineState) -> dict:
        result = await self.executor.execute(
            state["sql"],
            question=state["question"],
            history=state.get("history", []),
        )
        notes = list(state.get("notes", []))
        if result.note:
            notes.append(result.note)
        return {"result": result, "notes": notes}

    async def _run_compose(self, state: PipelineState) -> dict:
        result = state["result"]
        answer = await self.composer.compose(state["question"], result)
        return {
            "answer": answer,
            "chart_type": select_chart_type(state["question"], result.rows),
        }


def default_query(
    question: str,
    schema: SchemaDescription,
    aliases: AliasTable,
) -> str | None:
    """Bounded sample of the table that best matches the question."""
    ranked = rank_tables(question, schema, aliases)
    if not ranked:
        return None
    return f"SELECT * FROM {quote_table(ranked[0])} LIMIT {FALLBACK_SAMPLE_ROWS}"


def quote_table(table: TableSchema) -> str:
    name = '"' + table.name.replace('"', '""') + '"'
    if table.schema_name == "public":
        return name
    return '"' + table.schema_name.replace('"', '""') + '".' + name


def create_pipeline(settings: Settings) -> QuestionPipeline:
    """Wire a pipeline from settings. Call ``start()`` before ``run()``."""
    pipeline_settings = settings.pipeline
    prompt_loader = PromptLoader()
    aliases = load_alias_table(pipeline_settings.aliases_path)

    connector = create_connector(settings.database, read_only=pipeline_settings.read_only)
    llm = LLMProviderFactory.create_default_provider(settings.llm)
    catalog = SchemaCatalog(connector)
    prompt_builder = PromptBuilder(
        prompt_loader,
        full_schema_max_tables=pipeline_settings.prompt_full_schema_max_tables,
        focus_tables=pipeline_settings.prompt_focus_tables,
        max_history_turns=pipeline_settings.max_conversation_turns,
        max_rows=pipeline_settings.max_returned_rows,
    )
    extractor = SqlExtractor()
    sanitizer = SqlSanitizer(aliases)
    executor = QueryExecutor(
        connector,
        catalog,
        prompt_builder,
        llm,
        extractor,
        sanitizer,
        timeout=settings.database.statement_timeout,
        max_rows=pipeline_settings.max_returned_rows,
        read_only=pipeline_settings.read_only,
        note_empty_results=pipeline_settings.empty_result_note_enabled,
    )
    composer = AnswerComposer(
        llm,
        aliases,
        prompt_loader,
        sample_rows=pipeline_settings.answer_sample_rows,
    )

    return QuestionPipeline(
        connector=connector,
        catalog=catalog,
        llm=llm,
        aliases=aliases,
        prompt_builder=prompt_builder,
        extractor=extractor,
        sanitizer=sanitizer,
        executor=executor,
        composer=composer,
        conversations=ConversationStore(
            pipeline_settings.max_conversation_turns,
            max_conversations=pipeline_settings.max_conversations,
        ),
        max_question_length=pipeline_settings.max_question_length,
        fallback_sql=pipeline_settings.fallback_sql,
    )
