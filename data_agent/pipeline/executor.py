"""
Query Executor

Runs sanitized SQL against the target database. A statement that fails
because a table or column does not exist gets exactly one correction cycle:
the model is shown the real names and asked again, and the rewritten query
is tried once. Every other failure is surfaced as ExecutionError.
"""

import asyncio
import logging
import re
from collections.abc import Sequence

import sqlparse

from data_agent.connectors.base import BaseConnector, QueryError, RowSet
from data_agent.connectors.base import ConnectionError as ConnectorConnectionError
from data_agent.connectors.base import ConnectorError
from data_agent.llm.base import BaseLLMProvider
from data_agent.models.errors import CompletionError, ExecutionError, InvalidSqlInput, PipelineError
from data_agent.models.pipeline import ConversationTurn, QueryResult
from data_agent.pipeline.catalog import SchemaCatalog, build_correction_hint, referenced_tables
from data_agent.pipeline.extractor import ExtractionFailure, SqlExtractor
from data_agent.pipeline.prompt_builder import PromptBuilder
from data_agent.pipeline.sanitizer import SqlSanitizer

logger = logging.getLogger(__name__)

UNDEFINED_TABLE = "42P01"
UNDEFINED_COLUMN = "42703"
SCHEMA_MISMATCH_STATES = {UNDEFINED_TABLE, UNDEFINED_COLUMN}

_YEAR = re.compile(r"\b(1[89]\d{2}|20\d{2})\b")
_YEAR_FILTER = re.compile(
    r'(?P<column>(?:[\w$]+\.)?(?:"[^"]+"|[A-Za-z_][\w$]*))\s*=\s*(?P<year>1[89]\d{2}|20\d{2})\b'
)


class QueryExecutor:
    """
    Execute SQL with one schema-correction retry.

    Attributes:
        timeout: Seconds allowed per database call
        max_rows: Rows kept in the returned result; ``row_count`` stays exact
        read_only: Refuse anything but a single SELECT statement
        note_empty_results: Annotate empty year-filtered results
    """

    def __init__(
        self,
        connector: BaseConnector,
        catalog: SchemaCatalog,
        prompt_builder: PromptBuilder,
        llm: BaseLLMProvider,
        extractor: SqlExtractor,
        sanitizer: SqlSanitizer,
        timeout: float = 30.0,
        max_rows: int = 100,
        read_only: bool = True,
        note_empty_results: bool = True,
    ):
        self.connector = connector
        self.catalog = catalog
        self.prompt_builder = prompt_builder
        self.llm = llm
        self.extractor = extractor
        self.sanitizer = sanitizer
        self.timeout = timeout
        self.max_rows = max_rows
        self.read_only = read_only
        self.note_empty_results = note_empty_results

    async def execute(
        self,
        sql: str,
        *,
        question: str = "",
        history: Sequence[ConversationTurn] = (),
    ) -> QueryResult:
        """
        Run ``sql``, correcting it once on an undefined table or column.

        Args:
            sql: Sanitized statement
            question: Question the statement answers (used for correction and probing)
            history: Conversation turns passed to the correction prompt

        Raises:
            ExecutionError: When the statement (or its single correction) fails
        """
        self._ensure_read_only(sql)
        corrected = False

        try:
            rows = await self._run(sql)
        except ExecutionError as first_error:
            if first_error.code not in SCHEMA_MISMATCH_STATES:
                raise

            logger.info(
                f"Schema mismatch ({first_error.code}), starting correction cycle",
                extra={"sql": sql[:200], "sqlstate": first_error.code},
            )
            corrected_sql = await self._request_correction(sql, first_error, question, history)
            if corrected_sql is None:
                raise first_error

            self._ensure_read_only(corrected_sql)
            rows = await self._run(corrected_sql)
            sql = corrected_sql
            corrected = True

        result = QueryResult(
            sql=sql,
            rows=rows.rows[: self.max_rows],
            row_count=rows.row_count,
            columns=rows.columns,
            execution_time_ms=rows.execution_time_ms,
            corrected=corrected,
        )

        if result.row_count == 0 and self.note_empty_results:
            note = await self._note_empty_result(question, sql)
            if note:
                result = result.model_copy(update={"note": note})

        logger.info(
            f"Query returned {result.row_count} rows",
            extra={"sql": sql[:200], "row_count": result.row_count, "corrected": corrected},
        )
        return result

    async def _run(self, sql: str) -> RowSet:
        try:
            return await asyncio.wait_for(self.connector.execute(sql), timeout=self.timeout)
        except TimeoutError as e:
            raise ExecutionError(
                "timeout",
                f"Query exceeded timeout of {self.timeout}s",
                context={"sql": sql},
            ) from e
        except QueryError as e:
            code = e.sqlstate or _infer_sqlstate(str(e))
            raise ExecutionError(code, str(e), context={"sql": sql}) from e
        except ConnectorConnectionError as e:
            raise ExecutionError("connection_error", str(e), context={"sql": sql}) from e

    async def _request_correction(
        self,
        sql: str,
        error: ExecutionError,
        question: str,
        history: Sequence[ConversationTurn],
    ) -> str | None:
        # Correction always sees the current table and column names.
        try:
            schema = await self.catalog.refresh()
        except (PipelineError, ConnectorError) as e:
            schema = self.catalog.snapshot
            if schema is None:
                logger.warning(f"Schema unavailable for correction: {e}")
                return None
            logger.warning(f"Schema refresh failed, correcting against cached snapshot: {e}")

        hint = build_correction_hint(error.message, sql, schema)
        prompt = self.prompt_builder.build(
            question,
            schema,
            self.sanitizer.aliases,
            history,
            correction_hint=hint,
        )

        try:
            completion = await self.llm.complete(prompt, system=self.prompt_builder.system_prompt)
        except CompletionError as e:
            logger.warning(f"Correction request failed: {e.message}")
            return None

        extraction = self.extractor.extract(completion)
        if isinstance(extraction, ExtractionFailure):
            logger.warning(f"No SQL in correction completion: {extraction.reason}")
            return None

        try:
            corrected_sql = self.sanitizer.sanitize(extraction.sql)
        except InvalidSqlInput as e:
            logger.warning(f"Correction produced unusable SQL: {e.message}")
            return None

        if corrected_sql == sql:
            logger.info("Correction returned the same query, not retrying")
            return None

        logger.info("Correction produced a new query", extra={"sql": corrected_sql[:200]})
        return corrected_sql

    def _ensure_read_only(self, sql: str) -> None:
        if not self.read_only:
            return
        statements = [
            statement
            for statement in sqlparse.parse(sql)
            if statement.token_first(skip_cm=True) is not None
        ]
        if len(statements) != 1:
            raise ExecutionError(
                "read_only",
                f"Expected exactly one statement, got {len(statements)}",
                context={"sql": sql},
            )
        statement_type = statements[0].get_type()
        if statement_type != "SELECT":
            raise ExecutionError(
                "read_only",
                f"Only SELECT statements may run (got {statement_type})",
                context={"sql": sql},
            )

    async def _note_empty_result(self, question: str, sql: str) -> str | None:
        """
        Best-effort look at the filtered column when a year question matched nothing.

        Returns a note for the answer or None; never raises.
        """
        year_match = _YEAR.search(question or "")
        filter_match = _YEAR_FILTER.search(sql)
        if not year_match or not filter_match:
            return None

        column = filter_match.group("column").split(".")[-1]
        year = int(filter_match.group("year"))
        table = self._table_with_column(sql, column.replace('"', ""))
        if table is None:
            return None

        range_sql = f"SELECT MIN({column}) AS min_value, MAX({column}) AS max_value FROM {table}"
        try:
            bounds = await self._run(range_sql)
        except ExecutionError as e:
            logger.debug(f"Empty-result range lookup failed: {e.message}", extra={"sql": range_sql})
            return None

        if not bounds.rows:
            return None
        low = bounds.rows[0].get("min_value")
        high = bounds.rows[0].get("max_value")
        if low is None or high is None:
            return f"No records matched {year}; {column} has no values in {table}."

        try:
            outside = year < low or year > high
        except TypeError:
            return None
        if outside:
            return (
                f"No records matched {year}. Recorded values of {column} range from "
                f"{low} to {high}, so there is no data for that year."
            )
        return (
            f"No records matched {year} although {column} values span {low} to {high}; "
            "the filter may be too narrow."
        )

    def _table_with_column(self, sql: str, column: str) -> str | None:
        tables = referenced_tables(sql)
        if not tables:
            return None
        schema = self.catalog.snapshot
        if schema is None:
            return tables[0]
        for name in tables:
            table = schema.get_table(name)
            if table is not None and table.get_column(column) is not None:
                return table.qualified_name
        return None


def _infer_sqlstate(message: str) -> str:
    lowered = message.lower()
    if "does not exist" in lowered:
        if lowered.startswith("relation") or 'relation "' in lowered:
            return UNDEFINED_TABLE
        if lowered.startswith("column") or 'column "' in lowered:
            return UNDEFINED_COLUMN
    return "query_error"
