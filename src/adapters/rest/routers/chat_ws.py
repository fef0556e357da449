"""WebSocket endpoint streaming a run as it happens."""

import json
import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from adapters.rest.dependencies import forwarded_ip, get_factory

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def parse_client_message(raw: str) -> dict[str, Any]:
    """Accept `{"message", "conversation_id"?}` JSON or a bare text message."""
    try:
        payload = json.loads(raw)
    except ValueError:
        return {"message": raw}
    if isinstance(payload, dict):
        return payload
    return {"message": raw}


@router.websocket("/ws/chat")
async def websocket_chat(ws: WebSocket):
    """
    Streaming chat endpoint.

    Protocol (one run per client message, many runs per connection):
      - Client sends: {"message": "...", "conversation_id": "..."} (or plain text)
      - Server sends, in order:
          {"type": "start", "conversation_id"}
          {"type": "step", "event": "step_start"|"step_end", "step", "total", "tool", "success"?}
          {"type": "chunk", "chunk"}              (final answer text, incremental)
          {"type": "done", reply, trace, tool, data, success, confidence,
                           conversation_id, metadata}
        or {"type": "error", "error"} in place of done.
    A client that disconnects mid-run lets the run finish; its output is dropped.
    """
    await ws.accept()
    service = get_factory().create_chat_service()
    peer = ws.client.host if ws.client else None
    ip = forwarded_ip(ws.headers.get("x-forwarded-for"), peer)

    try:
        while True:
            payload = parse_client_message(await ws.receive_text())
            message = payload.get("message")
            if not isinstance(message, str) or not message.strip():
                await ws.send_json({"type": "error", "error": "Missing or invalid message"})
                continue
            if len(message) > MAX_MESSAGE_LENGTH:
                await ws.send_json({
                    "type": "error",
                    "error": f"Message too long (max {MAX_MESSAGE_LENGTH} characters)",
                })
                continue

            conversation_id = (
                payload.get("conversation_id") or payload.get("conversationId") or uuid4().hex
            )
            logger.info("WS conv=%s | %s", conversation_id, message[:200])
            await ws.send_json({"type": "start", "conversation_id": conversation_id})

            async def on_chunk(chunk: str) -> None:
                await ws.send_json({"type": "chunk", "chunk": chunk})

            async def on_step(event: dict) -> None:
                await ws.send_json({"type": "step", **event})

            try:
                reply = await service.handle(
                    message,
                    conversation_id,
                    client_ip=ip,
                    file_ids=payload.get("file_ids") or [],
                    on_chunk=on_chunk,
                    on_step=on_step,
                )
            except Exception as exc:
                logger.exception("Chat run failed for conversation %s", conversation_id)
                await ws.send_json({"type": "error", "error": str(exc)})
                continue

            await ws.send_json({"type": "done", **reply.to_dict()})
    except WebSocketDisconnect:
        logger.info("WS client disconnected")
