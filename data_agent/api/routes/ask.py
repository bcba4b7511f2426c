"""
Ask Routes

Question answering endpoint. Mounted at ``/ask`` and at the legacy
``/api/ask`` path.
"""

import logging

from fastapi import APIRouter, status

from data_agent.models.api import AskRequest, AskResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/ask",
    response_model=AskResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def ask(ask_request: AskRequest) -> AskResponse:
    """
    Answer a question about the database.

    Failures are rendered by the application's exception handlers:
    400 for an invalid question, 500 when the query failed after the
    correction cycle, 503 before the pipeline is initialized.
    """
    from data_agent.api.main import get_pipeline

    pipeline = get_pipeline()
    logger.info(
        "Processing question",
        extra={
            "question": ask_request.question[:100],
            "conversation_id": ask_request.conversation_id,
        },
    )

    outcome = await pipeline.run(ask_request.question, ask_request.conversation_id)

    return AskResponse(
        answer=outcome.answer,
        result=outcome.result.rows,
        sql=outcome.sql,
        chart_type=outcome.chart_type,
        row_count=outcome.result.row_count,
        note=" ".join(outcome.notes) if outcome.notes else None,
        conversation_id=outcome.conversation_id,
    )
