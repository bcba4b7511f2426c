"""
Pipeline Models

Values passed between pipeline stages and returned to the API boundary.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChartType(StrEnum):
    """Visualization hint sent to the frontend."""

    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    TABLE = "table"
    NUMBER = "number"


class ConversationTurn(BaseModel):
    """One resolved question in a conversation."""

    question: str
    sql: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class QueryResult(BaseModel):
    """
    Rows produced by the query executor.

    ``rows`` is already capped for the caller while ``row_count`` keeps the
    number of rows the database actually returned.
    """

    sql: str = Field(..., description="Statement that produced the rows")
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(..., ge=0, description="True number of rows")
    columns: list[str] = Field(default_factory=list)
    execution_time_ms: float = Field(default=0.0, ge=0.0)
    corrected: bool = Field(
        default=False, description="Whether the correction cycle produced this result"
    )
    note: str | None = Field(default=None, description="Best-effort annotation")

    @property
    def returned_rows(self) -> int:
        return len(self.rows)

    @property
    def truncated(self) -> bool:
        return self.row_count > len(self.rows)


class PipelineOutcome(BaseModel):
    """Terminal artifact of one question."""

    answer: str
    sql: str
    chart_type: ChartType
    result: QueryResult
    used_fallback: bool = False
    notes: list[str] = Field(default_factory=list)
    conversation_id: str | None = None
