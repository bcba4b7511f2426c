"""
SQL Sanitizer

Deterministic rewrite of model-generated SQL before execution:

1. strip SQL comments (sqlparse),
2. unquote numbers compared with a quoted literal (``col = '123'`` -> ``col = 123``),
3. replace canonical terms with schema identifiers from the alias table,
   whole-word and outside of string literals and quoted identifiers,
4. collapse runs of whitespace outside literals.

Every step is idempotent, so ``sanitize(sanitize(x)) == sanitize(x)``.
"""

import logging
import re

import sqlparse

from data_agent.models.errors import InvalidSqlInput
from data_agent.pipeline.aliases import AliasTable

logger = logging.getLogger(__name__)

# Segments kept out of the alias rewrite: a number quoted after a comparison
# operator (unquoted in place), string literals, quoted identifiers, and the
# field keyword of EXTRACT(<field> FROM ...), where "year" is not a column.
_PROTECTED = re.compile(
    r"""
    (?P<op><>|!=|<=|>=|=|<|>)(?P<space>\s*)(?P<quote>['"])(?P<number>-?\d+(?:\.\d+)?)(?P=quote)
    | '(?:[^']|'')*'
    | "(?:[^"]|"")*"
    | \bEXTRACT\s*\(\s*\w+\s+FROM\b
    """,
    re.IGNORECASE | re.VERBOSE,
)

_WHITESPACE = re.compile(r"\s+")


def sanitize(sql: object, aliases: AliasTable) -> str:
    """
    Rewrite generated SQL against the alias table.

    Raises:
        InvalidSqlInput: If ``sql`` is not a string or is blank
    """
    if not isinstance(sql, str):
        raise InvalidSqlInput(
            f"Expected SQL text, got {type(sql).__name__}",
            context={"type": type(sql).__name__},
        )
    if not sql.strip():
        raise InvalidSqlInput("Empty SQL")

    text = sql
    if "--" in text or "/*" in text:
        text = sqlparse.format(text, strip_comments=True)

    text = _rewrite_unprotected(text, aliases)

    if not text:
        raise InvalidSqlInput("SQL contained only comments", context={"sql": sql[:200]})

    if text != sql:
        logger.debug("Sanitized SQL", extra={"original_sql": sql[:200], "sql": text[:200]})
    return text


def _unquote_number(match: re.Match[str]) -> str:
    space = " " if match.group("space") else ""
    return f"{match.group('op')}{space}{match.group('number')}"


def _rewrite_unprotected(text: str, aliases: AliasTable) -> str:
    pieces: list[str] = []
    position = 0
    for match in _PROTECTED.finditer(text):
        pieces.append(_rewrite_code(text[position : match.start()], aliases))
        if match.group("number") is not None:
            pieces.append(_unquote_number(match))
        else:
            pieces.append(match.group(0))
        position = match.end()
    pieces.append(_rewrite_code(text[position:], aliases))
    return "".join(pieces).strip()


def _rewrite_code(segment: str, aliases: AliasTable) -> str:
    pattern = aliases.pattern
    if pattern is not None:
        segment = pattern.sub(lambda match: aliases[match.group(0)], segment)
    return _WHITESPACE.sub(" ", segment)


class SqlSanitizer:
    """Sanitizer bound to one alias table, for injection into the pipeline."""

    def __init__(self, aliases: AliasTable):
        self.aliases = aliases

    def sanitize(self, sql: object) -> str:
        return sanitize(sql, self.aliases)
