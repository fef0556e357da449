"""
application.services.chat - Request handling around the coordinator.

One call to ChatService.handle() is one user turn:

    1. inline profile updates ("remember my name is ...")
    2. recent history for the conversation (last HISTORY_WINDOW turns)
    3. Coordinator.run() with a fresh RunContext
    4. reload the conversation, append both turns, save
    5. one telemetry record

The REST routes, the websocket stream and the CLI all go through here.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from agent.coordinator import Coordinator
from agent.prompt import HISTORY_WINDOW
from application.context import RunContext
from application.dto import ChatReply
from application.services.profile import ProfileService
from domain.entities import ChatMessage
from domain.models import Message
from domain.ports import ChunkSink, ConversationRepository, StepSink, TelemetrySink

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChatService:
    """Runs a user message through the coordinator and remembers the exchange."""

    def __init__(
        self,
        coordinator: Coordinator,
        conversations: ConversationRepository,
        profiles: ProfileService,
        telemetry: Optional[TelemetrySink] = None,
        history_window: int = HISTORY_WINDOW,
    ):
        self._coordinator = coordinator
        self._conversations = conversations
        self._profiles = profiles
        self._telemetry = telemetry
        self._window = history_window

    async def handle(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        *,
        client_ip: Optional[str] = None,
        file_ids: Optional[list[str]] = None,
        on_chunk: Optional[ChunkSink] = None,
        on_step: Optional[StepSink] = None,
    ) -> ChatReply:
        started = time.monotonic()
        conversation_id = conversation_id or uuid4().hex

        profile = await self._profiles.apply_inline_updates(message)
        stored = await self._conversations.get_messages(conversation_id)
        recent = [Message(role=m.role, content=m.content) for m in stored[-self._window:]]

        ctx = RunContext(
            conversation_id=conversation_id,
            recent_history=recent,
            profile=profile,
            client_ip=client_ip,
            file_ids=list(file_ids or []),
        )
        logger.info(
            "Chat request (conversation=%s, request=%s): %s",
            conversation_id, ctx.request_id, message[:120],
        )
        result = await self._coordinator.run(
            message, context=ctx, on_chunk=on_chunk, on_step=on_step,
        )
        elapsed_ms = int((time.monotonic() - started) * 1000)

        await self._conversations.append_messages(conversation_id, [
            ChatMessage(role="user", content=message, created_at=_now_iso()),
            ChatMessage(
                role="assistant",
                content=result.reply,
                created_at=_now_iso(),
                tool=result.tool,
                confidence=result.confidence,
                success=result.success,
            ),
        ])

        metadata = {
            "steps": len(result.trace),
            "execution_time_ms": elapsed_ms,
            "reasoning": result.reasoning,
            "message_count": len(stored) + 2,
        }
        await self._record(conversation_id, result.tool, result.success,
                           result.confidence, len(result.trace), elapsed_ms)
        return ChatReply(result=result, conversation_id=conversation_id, metadata=metadata)

    async def list_conversations(self) -> list[str]:
        return await self._conversations.list_conversations()

    async def get_messages(self, conversation_id: str) -> list[ChatMessage]:
        return await self._conversations.get_messages(conversation_id)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._conversations.delete_conversation(conversation_id)
        logger.info("Deleted conversation %s", conversation_id)

    async def _record(
        self,
        conversation_id: str,
        tool: str,
        success: bool,
        confidence: float,
        steps: int,
        duration_ms: int,
    ) -> None:
        if self._telemetry is None:
            return
        try:
            await self._telemetry.record({
                "timestamp": _now_iso(),
                "conversation_id": conversation_id,
                "tool": tool,
                "success": success,
                "confidence": confidence,
                "steps": steps,
                "duration_ms": duration_ms,
            })
        except Exception:
            logger.warning("Telemetry write failed", exc_info=True)
