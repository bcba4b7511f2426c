"""
SQL Extractor

Turns a raw model completion into a candidate SQL string. Completions arrive
as JSON objects, fenced code blocks, or prose with a statement somewhere in
it; the extractor tries those shapes in that order and returns a tagged
result instead of raising.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

SQL_FENCE_LANGUAGES = {"sql", "postgresql", "postgres", "psql", "pgsql"}

_FENCE = re.compile(r"```[ \t]*([A-Za-z]*)[ \t]*\r?\n?(.*?)```", re.DOTALL)
_OPEN_FENCE = re.compile(r"```[ \t]*(?:sql|postgresql|postgres|psql|pgsql)?[ \t]*\r?\n(.*)$", re.DOTALL | re.IGNORECASE)
_JSON_SQL_FIELD = re.compile(r'"(?:sql|query)"\s*:\s*"((?:\\.|[^"\\])*)"', re.IGNORECASE | re.DOTALL)

_VERB = (
    r"(?:SELECT\s+(?:DISTINCT\s+|ALL\s+)?[\w\"*(]"
    r"|WITH\s+(?:RECURSIVE\s+)?[\w\"]+\s*(?:\([^)]*\)\s*)?AS\s*(?:NOT\s+)?(?:MATERIALIZED\s*)?\("
    r"|INSERT\s+INTO\s"
    r"|UPDATE\s+[\w\".]+\s+SET\s"
    r"|DELETE\s+FROM\s"
    r"|EXPLAIN\s+(?:ANALYZE\s+)?SELECT\s)"
)
# Statements at the start of a line may use any case; mid-sentence ones must
# be upper case so prose such as "select a genre" is not mistaken for SQL.
_LINE_START_STATEMENT = re.compile(rf"(?im)^[ \t>*-]*(?P<sql>{_VERB})")
_INLINE_STATEMENT = re.compile(rf"(?<![\w.])(?P<sql>{_VERB})")
_STATEMENT_END = re.compile(r";|\n[ \t]*\n|```")
# A line-start match in sentence case counts only when its first line has a
# FROM clause, a star or a parenthesis; "Select a different question" is prose.
_SQL_SHAPE = re.compile(r"\bFROM\b|[*(]|^SELECT\s+[-\d'\"]", re.IGNORECASE)
_REASONING = re.compile(r"<think>.*?(?:</think>|$)", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class SqlExtracted:
    """Extraction produced a candidate statement."""

    sql: str
    source: Literal["json", "fenced", "statement"]

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ExtractionFailure:
    """No SQL could be found in the completion."""

    reason: str

    @property
    def ok(self) -> bool:
        return False


ExtractionResult = SqlExtracted | ExtractionFailure


def extract(raw_completion: object) -> ExtractionResult:
    """
    Find the SQL statement in a model completion.

    Order: whole completion as JSON with an ``sql`` field, fenced code block,
    JSON object embedded in prose, first statement starting with a SQL verb.
    """
    if not isinstance(raw_completion, str) or not raw_completion.strip():
        return ExtractionFailure("empty completion")

    text = _REASONING.sub("", raw_completion).strip()
    if not text:
        return ExtractionFailure("completion contained only reasoning")

    sql = _sql_from_json(text)
    if sql:
        return SqlExtracted(sql, "json")

    sql = _sql_from_fences(text)
    if sql:
        return SqlExtracted(sql, "fenced")

    sql = _sql_from_embedded_json(text)
    if sql:
        return SqlExtracted(sql, "json")

    sql = _first_statement(text)
    if sql:
        return SqlExtracted(sql, "statement")

    logger.warning("No SQL found in completion", extra={"completion": text[:200]})
    return ExtractionFailure("no SQL statement found in completion")


def _sql_from_json(text: str) -> str | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return _sql_field(data)


def _sql_field(data: object) -> str | None:
    if not isinstance(data, dict):
        return None
    value = data.get("sql") or data.get("query")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _sql_from_fences(text: str) -> str | None:
    for match in _FENCE.finditer(text):
        language = match.group(1).lower()
        body = match.group(2).strip()
        if not body:
            continue
        if language == "json" or body.startswith("{"):
            sql = _sql_from_json(body) or _sql_from_partial_json(body)
            if sql:
                return sql
            continue
        if language in SQL_FENCE_LANGUAGES:
            return body
        if not language and _first_statement(body):
            return body

    # Completion cut off before the closing fence.
    if text.count("```") % 2 == 1:
        match = _OPEN_FENCE.search(text)
        if match:
            return _first_statement(match.group(1))
    return None


def _sql_from_embedded_json(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            sql = _sql_field(json.loads(text[start : end + 1]))
        except json.JSONDecodeError:
            sql = None
        if sql:
            return sql
    return _sql_from_partial_json(text)


def _sql_from_partial_json(text: str) -> str | None:
    match = _JSON_SQL_FIELD.search(text)
    if not match:
        return None
    fragment = match.group(1)
    try:
        value = json.loads(f'"{fragment}"')
    except json.JSONDecodeError:
        value = fragment.replace("\\n", " ").replace("\\t", " ").replace('\\"', '"')
    value = value.strip()
    return value or None


def _first_statement(text: str) -> str | None:
    for match in _LINE_START_STATEMENT.finditer(text):
        statement = _statement_at(text, match.start("sql"))
        if statement and _looks_like_statement(statement):
            return statement
    match = _INLINE_STATEMENT.search(text)
    if not match:
        return None
    return _statement_at(text, match.start("sql"))


def _looks_like_statement(statement: str) -> bool:
    if statement.split(None, 1)[0].isupper():
        return True
    return _SQL_SHAPE.search(statement.splitlines()[0]) is not None


def _statement_at(text: str, start: int) -> str | None:
    end_match = _STATEMENT_END.search(text, start)
    if end_match is None:
        statement = text[start:]
    elif end_match.group(0) == ";":
        statement = text[start : end_match.end()]
    else:
        statement = text[start : end_match.start()]
    statement = statement.strip()
    return statement or None


class SqlExtractor:
    """Object form of :func:`extract` for constructor injection."""

    def extract(self, raw_completion: object) -> ExtractionResult:
        return extract(raw_completion)
