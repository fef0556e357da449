"""
infrastructure.persistence.conversation_repo - Conversation and profile memory.

Each conversation is the document `conversation:<id>` holding a list of
messages; the user profile is the document `profile`.

append_messages() reloads the stored list immediately before writing, so
a concurrent writer's messages are only lost if both land between that
read and the write.
"""

from __future__ import annotations

import logging

from domain.entities import ChatMessage, UserProfile
from domain.ports import DocumentStore

logger = logging.getLogger(__name__)

CONVERSATION_PREFIX = "conversation:"
PROFILE_DOCUMENT = "profile"


class DocumentConversationRepository:
    """Implements ConversationRepository over a DocumentStore."""

    def __init__(self, store: DocumentStore):
        self._store = store

    @staticmethod
    def _key(conversation_id: str) -> str:
        return f"{CONVERSATION_PREFIX}{conversation_id}"

    async def get_messages(self, conversation_id: str) -> list[ChatMessage]:
        body = await self._store.load(self._key(conversation_id))
        if not isinstance(body, list):
            return []
        return [ChatMessage.from_dict(item) for item in body if isinstance(item, dict)]

    async def append_messages(
        self, conversation_id: str, messages: list[ChatMessage],
    ) -> None:
        key = self._key(conversation_id)
        current = await self._store.load(key)
        stored = current if isinstance(current, list) else []
        stored.extend(message.to_dict() for message in messages)
        await self._store.save(key, stored)
        logger.debug(
            "Conversation %s now has %d message(s)", conversation_id, len(stored),
        )

    async def list_conversations(self) -> list[str]:
        ids = await self._store.list_ids(CONVERSATION_PREFIX)
        return [doc_id[len(CONVERSATION_PREFIX):] for doc_id in ids]

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._store.delete(self._key(conversation_id))

    async def get_profile(self) -> UserProfile:
        body = await self._store.load(PROFILE_DOCUMENT)
        return UserProfile.from_dict(body if isinstance(body, dict) else None)

    async def save_profile(self, profile: UserProfile) -> None:
        await self._store.save(PROFILE_DOCUMENT, profile.to_dict())
