"""
Prompt Builder

Renders the SQL-generation prompt from the question, the schema snapshot,
the alias table and recent conversation turns. Output depends only on its
inputs: table ranking ties break on table name and nothing is sampled.
"""

import logging
import re
from collections.abc import Sequence

from data_agent.models.pipeline import ConversationTurn
from data_agent.models.schema import SchemaDescription, TableSchema
from data_agent.pipeline.aliases import AliasTable
from data_agent.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[A-Za-z][A-Za-z0-9_]*")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class PromptBuilder:
    """
    Builds model-ready prompts for SQL generation.

    Schemas with at most ``full_schema_max_tables`` tables are embedded in
    full; larger ones are reduced to the ``focus_tables`` best-ranked tables
    plus the tables they reference.
    """

    def __init__(
        self,
        prompt_loader: PromptLoader | None = None,
        full_schema_max_tables: int = 30,
        focus_tables: int = 8,
        max_history_turns: int = 10,
        max_rows: int = 100,
    ):
        self.prompts = prompt_loader or PromptLoader()
        self.full_schema_max_tables = full_schema_max_tables
        self.focus_tables = focus_tables
        self.max_history_turns = max_history_turns
        self.max_rows = max_rows

    @property
    def system_prompt(self) -> str:
        return self.prompts.load("system/main.md")

    def build(
        self,
        question: str,
        schema: SchemaDescription,
        aliases: AliasTable,
        history: Sequence[ConversationTurn] = (),
        correction_hint: str | None = None,
    ) -> str:
        """Render the SQL-generation prompt."""
        if len(schema.tables) <= self.full_schema_max_tables:
            tables = list(schema.tables)
        else:
            tables = self.select_tables(question, schema, aliases)

        included = {table.name.lower() for table in tables}
        foreign_keys = [
            f"{table.qualified_name}.{column.name} -> {column.foreign_key.table}.{column.foreign_key.column}"
            for table in tables
            for column in table.columns
            if column.foreign_key and column.foreign_key.table.lower() in included
        ]

        recent = list(history)[-self.max_history_turns :] if self.max_history_turns else []

        prompt = self.prompts.render(
            "agents/sql_generator.md",
            question=question,
            tables=[_table_context(table) for table in tables],
            total_tables=len(schema.tables),
            foreign_keys=foreign_keys,
            alias_rules=[{"term": term, "target": target} for term, target in aliases.rules()],
            history=[{"question": turn.question, "sql": turn.sql} for turn in recent],
            correction_hint=correction_hint,
            max_rows=self.max_rows,
        )

        logger.debug(
            "Built SQL prompt",
            extra={
                "tables": len(tables),
                "total_tables": len(schema.tables),
                "history_turns": len(recent),
                "correction": correction_hint is not None,
                "prompt_chars": len(prompt),
            },
        )
        return prompt

    def select_tables(
        self,
        question: str,
        schema: SchemaDescription,
        aliases: AliasTable,
    ) -> list[TableSchema]:
        """Best-ranked tables for the question, followed by the tables they reference."""
        ranked = rank_tables(question, schema, aliases)
        selected = ranked[: self.focus_tables]
        names = {table.name.lower() for table in selected}
        for table in list(selected):
            for column in table.columns:
                if column.foreign_key is None:
                    continue
                target = schema.get_table(column.foreign_key.table)
                if target is not None and target.name.lower() not in names:
                    selected.append(target)
                    names.add(target.name.lower())
        return selected


def rank_tables(
    question: str,
    schema: SchemaDescription,
    aliases: AliasTable,
) -> list[TableSchema]:
    """
    Order tables by token overlap with the question.

    Question words are expanded through the alias table, so "album" also
    counts as a hit on ``albm``. A table-name hit outweighs column hits.
    """
    words = aliases.expand_terms(_question_tokens(question))

    def score(table: TableSchema) -> int:
        total = 0
        if table.name.lower() in words or _singular(table.name.lower()) in words:
            total += 5
        total += sum(2 for part in _identifier_tokens(table.name) if part in words)
        for column in table.columns:
            if column.name.lower() in words:
                total += 2
            elif any(part in words for part in _identifier_tokens(column.name)):
                total += 1
        return total

    scored = [(score(table), table) for table in schema.tables]
    scored.sort(key=lambda item: (-item[0], item[1].qualified_name))
    return [table for _, table in scored]


def _table_context(table: TableSchema) -> dict:
    columns = []
    for column in table.columns:
        text = f"{column.name} {column.data_type}"
        if column.is_primary_key:
            text += " PK"
        columns.append(text)
    return {
        "name": table.qualified_name,
        "columns": columns,
        "row_count_hint": table.row_count_hint,
    }


def _question_tokens(question: str) -> set[str]:
    tokens = set()
    for word in _WORD.findall(question.lower()):
        if len(word) < 2:
            continue
        tokens.add(word)
        tokens.add(_singular(word))
    return tokens


def _identifier_tokens(identifier: str) -> set[str]:
    parts = _CAMEL_BOUNDARY.sub("_", identifier).lower().split("_")
    return {part for part in parts if len(part) > 2}


def _singular(word: str) -> str:
    if word.endswith("ies") and len(word) > 4:
        return word[:-3] + "y"
    if word.endswith("s") and not word.endswith("ss") and len(word) > 3:
        return word[:-1]
    return word
