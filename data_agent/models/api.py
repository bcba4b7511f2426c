"""
API Request/Response Models

Pydantic models for the HTTP surface.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from data_agent.models.pipeline import ChartType


class AskRequest(BaseModel):
    """Inbound question."""

    question: str = Field(..., min_length=1)
    conversation_id: str | None = Field(
        default=None,
        alias="conversationId",
        min_length=1,
        max_length=200,
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "question": "What album was released in 2016?",
                "conversationId": "conv_123",
            }
        },
    )

    @field_validator("question")
    @classmethod
    def strip_question(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Question must not be blank")
        return stripped


class AskResponse(BaseModel):
    """Answer returned to the frontend."""

    answer: str
    result: list[dict[str, Any]] = Field(default_factory=list)
    sql: str
    chart_type: ChartType = Field(..., serialization_alias="chartType")
    row_count: int = Field(..., serialization_alias="rowCount")
    note: str | None = None
    conversation_id: str | None = Field(default=None, serialization_alias="conversationId")


class ExplainRequest(BaseModel):
    """SQL statement to explain."""

    sql: str

    model_config = ConfigDict(
        json_schema_extra={"example": {"sql": "SELECT ttle FROM albm WHERE col1 = 2016"}},
    )

    @field_validator("sql")
    @classmethod
    def strip_sql(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("SQL query is required")
        return stripped


class ExplainResponse(BaseModel):
    sql: str
    explanation: str


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: str


class ReadinessResponse(BaseModel):
    status: str
    version: str
    timestamp: str
    checks: dict[str, bool]


class TurnResponse(BaseModel):
    question: str
    sql: str | None = None
    timestamp: str


class ConversationResponse(BaseModel):
    conversation_id: str = Field(..., serialization_alias="conversationId")
    turns: list[TurnResponse]
