"""
application.services.profile - Inline profile memory.

Users teach the assistant about themselves mid-conversation:

    "remember my name is Sam"
    "remember that my location is Porto"
    "call me Sam"
    "remember I prefer a concise tone"

ProfileService detects these phrases, updates the stored profile and
saves it before the request is planned, so the same run already sees the
new values.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Optional

from agent.tone import normalise_tone
from domain.entities import UserProfile
from domain.ports import ConversationRepository

logger = logging.getLogger(__name__)

_NAME = re.compile(r"remember(?: that)? my name is (.+)$", re.IGNORECASE)
_CALL_ME = re.compile(r"^\s*(?:please\s+)?call me (.+)$", re.IGNORECASE)
_LOCATION = re.compile(r"remember(?: that)? my location is (.+)$", re.IGNORECASE)
_TONE = re.compile(r"remember(?: that)? i prefer an? (\w+) tone", re.IGNORECASE)


def _clean(value: str) -> str:
    return value.strip().rstrip(".!?").strip()


def extract_profile_updates(message: str) -> dict[str, str]:
    """Profile fields mentioned in a message, e.g. {"name": "Sam"}."""
    updates: dict[str, str] = {}
    text = message or ""

    match = _NAME.search(text) or _CALL_ME.search(text)
    if match and _clean(match.group(1)):
        updates["name"] = _clean(match.group(1))

    match = _LOCATION.search(text)
    if match and _clean(match.group(1)):
        updates["location"] = _clean(match.group(1))

    match = _TONE.search(text)
    if match:
        tone = normalise_tone(match.group(1))
        if tone:
            updates["tone"] = tone

    return updates


class ProfileService:
    """Reads and updates the single user profile."""

    def __init__(self, repository: ConversationRepository):
        self._repo = repository

    async def get_profile(self) -> UserProfile:
        return await self._repo.get_profile()

    async def apply_inline_updates(
        self, message: str, profile: Optional[UserProfile] = None,
    ) -> UserProfile:
        """Apply any "remember ..." phrases in message and persist the result."""
        current = profile or await self._repo.get_profile()
        updates = extract_profile_updates(message)
        if not updates:
            return current
        updated = replace(current, **updates)
        await self._repo.save_profile(updated)
        logger.info("Updated profile fields: %s", ", ".join(sorted(updates)))
        return updated
