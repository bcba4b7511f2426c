"""
Pipeline Errors

Exception hierarchy shared by every stage of the question-to-answer pipeline.
Each error records the stage that raised it so the API layer and logs can
report where a turn failed.
"""

from typing import Any


class PipelineError(Exception):
    """
    Base exception for pipeline stage errors.

    Attributes:
        stage: Name of the stage that raised the error
        message: Error description
        recoverable: Whether the pipeline can fall back and continue
        context: Additional context for debugging
    """

    def __init__(
        self,
        stage: str,
        message: str,
        recoverable: bool = True,
        context: dict[str, Any] | None = None,
    ):
        self.stage = stage
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}
        super().__init__(f"[{stage}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "stage": self.stage,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class ValidationError(PipelineError):
    """Inbound request failed validation (not recoverable, maps to 400)."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__("request", message, recoverable=False, context=context)


class SchemaReadError(PipelineError):
    """Catalog metadata could not be read from the database."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__("schema_catalog", message, recoverable=False, context=context)


class InvalidSqlInput(PipelineError):
    """Sanitizer was given something that is not a usable SQL string."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__("sql_sanitizer", message, recoverable=True, context=context)


class ExecutionError(PipelineError):
    """
    Query execution failed after the correction cycle (maps to 500).

    Attributes:
        code: SQLSTATE when the database supplied one, otherwise a short
            symbolic code such as ``timeout`` or ``read_only``
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
    ):
        self.code = code
        super().__init__("query_executor", message, recoverable=False, context=context)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["code"] = self.code
        return data


class CompletionError(PipelineError):
    """LLM call failed; rate limits are flagged so callers can fall back."""

    def __init__(
        self,
        message: str,
        rate_limited: bool = False,
        context: dict[str, Any] | None = None,
    ):
        self.rate_limited = rate_limited
        super().__init__("completion_client", message, recoverable=True, context=context)
