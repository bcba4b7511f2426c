"""
Conversation Routes

Read and clear the in-memory history kept per conversation id.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from data_agent.models.api import ConversationResponse, TurnResponse

router = APIRouter()


@router.get(
    "/conversations/{conversation_id}",
    response_model=ConversationResponse,
    response_model_by_alias=True,
)
async def get_conversation(conversation_id: str):
    from data_agent.api.main import get_pipeline

    pipeline = get_pipeline()
    if conversation_id not in pipeline.conversations:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": f"Conversation not found: {conversation_id}"},
        )

    turns = [
        TurnResponse(question=turn.question, sql=turn.sql, timestamp=turn.timestamp.isoformat())
        for turn in pipeline.conversations.get(conversation_id)
    ]
    return ConversationResponse(conversation_id=conversation_id, turns=turns)


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(conversation_id: str):
    from data_agent.api.main import get_pipeline

    pipeline = get_pipeline()
    if not pipeline.conversations.clear(conversation_id):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": f"Conversation not found: {conversation_id}"},
        )
    return None
