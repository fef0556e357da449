"""Request/response chat endpoint."""

import logging

from fastapi import APIRouter, Depends, Request

from adapters.rest.dependencies import client_ip, get_chat_service
from adapters.rest.schemas import ChatBody, ChatResponse
from application.services.chat import ChatService

router = APIRouter(tags=["chat"])
logger = logging.getLogger(__name__)


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatBody,
    request: Request,
    service: ChatService = Depends(get_chat_service),
):
    """Run one message through the agent and return reply, trace and confidence.

    Orchestration failures come back as success=false with the error text
    as the reply; they are not HTTP errors.
    """
    reply = await service.handle(
        body.message,
        body.conversation_id,
        client_ip=client_ip(request),
        file_ids=body.file_ids,
    )
    return reply.to_dict()
