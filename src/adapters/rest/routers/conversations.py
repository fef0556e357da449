"""Conversation history endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from adapters.rest.dependencies import get_chat_service
from adapters.rest.schemas import ConversationOut, MessageOut
from application.services.chat import ChatService

router = APIRouter(tags=["conversations"])


@router.get("/conversations", response_model=list[ConversationOut])
async def list_conversations(service: ChatService = Depends(get_chat_service)):
    """Conversation ids, most recently active first."""
    ids = await service.list_conversations()
    return [ConversationOut(conversation_id=conversation_id) for conversation_id in ids]


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[MessageOut],
)
async def get_messages(
    conversation_id: str,
    service: ChatService = Depends(get_chat_service),
):
    messages = await service.get_messages(conversation_id)
    if not messages:
        raise HTTPException(status_code=404, detail="Conversation not found.")
    return [MessageOut(**m.to_dict()) for m in messages]


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    service: ChatService = Depends(get_chat_service),
):
    await service.delete_conversation(conversation_id)
    return {"success": True, "conversation_id": conversation_id}
