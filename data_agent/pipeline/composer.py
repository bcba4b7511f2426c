"""Answer composer: phrase query results, and SQL statements, in plain language."""

from __future__ import annotations

import json
import logging
import re

from data_agent.llm.base import BaseLLMProvider
from data_agent.models.errors import CompletionError
from data_agent.models.pipeline import QueryResult
from data_agent.pipeline.aliases import AliasTable
from data_agent.pipeline.catalog import referenced_tables
from data_agent.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

_REASONING = re.compile(r"<think>.*?(?:</think>|$)", re.DOTALL | re.IGNORECASE)
_IDENTIFIER = re.compile(r"[A-Za-z_][\w$]*")


def fallback_answer(result: QueryResult) -> str:
    """Deterministic answer used whenever the model cannot phrase one."""
    return f"Found {result.row_count} matching records."


class AnswerComposer:
    """Ask the model to describe a result; never raises."""

    def __init__(
        self,
        llm: BaseLLMProvider,
        aliases: AliasTable,
        prompt_loader: PromptLoader | None = None,
        sample_rows: int = 10,
    ) -> None:
        self.llm = llm
        self.aliases = aliases
        self.prompts = prompt_loader or PromptLoader()
        self.sample_rows = sample_rows

    async def compose(self, question: str, result: QueryResult) -> str:
        try:
            prompt = self._build_prompt(question, result)
            completion = await self.llm.complete(
                prompt, system=self.prompts.load("system/main.md")
            )
        except Exception as e:
            logger.warning(
                f"Answer composition failed, using fallback: {e}",
                extra={"row_count": result.row_count},
            )
            return fallback_answer(result)

        answer = _REASONING.sub("", completion).strip()
        if not answer:
            logger.warning("Model returned an empty answer, using fallback")
            return fallback_answer(result)
        return answer

    async def explain(self, sql: str) -> str:
        """
        Describe in plain language what a SQL statement does.

        Raises:
            CompletionError: If the model call fails or returns nothing
        """
        prompt = self.prompts.render(
            "agents/sql_explainer.md",
            sql=sql,
            glossary=self._glossary_for({token.lower() for token in _IDENTIFIER.findall(sql)}),
        )
        completion = await self.llm.complete(prompt, system=self.prompts.load("system/main.md"))

        explanation = _REASONING.sub("", completion).strip()
        if not explanation:
            raise CompletionError("Model returned an empty explanation")
        return explanation

    def _build_prompt(self, question: str, result: QueryResult) -> str:
        shown = result.rows[: self.sample_rows]
        return self.prompts.render(
            "agents/answer_composer.md",
            question=question,
            rows_json=json.dumps(shown, default=str, indent=2),
            row_count=result.row_count,
            shown_rows=len(shown),
            returned_rows=result.returned_rows,
            truncated=result.truncated,
            glossary=self._glossary(result),
            note=result.note,
        )

    def _glossary(self, result: QueryResult) -> list[dict[str, str]]:
        names = {column.lower() for column in result.columns}
        if result.rows:
            names.update(key.lower() for key in result.rows[0])
        names.update(table.lower() for table in referenced_tables(result.sql))
        return self._glossary_for(names)

    def _glossary_for(self, names: set[str]) -> list[dict[str, str]]:
        return [
            {"identifier": identifier, "term": term}
            for identifier, term in sorted(self.aliases.inverse().items())
            if identifier.lower() in names
        ]
