"""
Query Routes

Plain-language explanation of a SQL statement, mounted at
``/api/query/explain``.
"""

import logging

from fastapi import APIRouter

from data_agent.models.api import ErrorResponse, ExplainRequest, ExplainResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/query")


@router.post(
    "/explain",
    response_model=ExplainResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def explain_query(explain_request: ExplainRequest) -> ExplainResponse:
    """Explain what a SQL statement does; the statement is never executed."""
    from data_agent.api.main import get_pipeline

    pipeline = get_pipeline()
    logger.info("Explaining SQL", extra={"sql": explain_request.sql[:200]})

    explanation = await pipeline.explain(explain_request.sql)
    return ExplainResponse(sql=explain_request.sql, explanation=explanation)
