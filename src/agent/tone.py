"""
agent.tone - Tone directives injected into drafting prompts.

The user's profile names a tone; unknown or missing names use
DEFAULT_TONE.
"""

from __future__ import annotations

from typing import Optional

from domain.entities import UserProfile

DEFAULT_TONE = "mediumWarm"

TONE_PROFILES: dict[str, str] = {
    "mediumWarm": (
        "Use a friendly, confident, human voice. Warm without being casual. "
        "Keep it concise but never abrupt, and use the user's name only when it "
        "reads naturally. No filler and no repetition."
    ),
    "professional": (
        "Use a clear, precise, professional voice. No slang and no emotional "
        "language. Keep sentences tight and information-dense."
    ),
    "warm": (
        "Use a warm, conversational voice with gentle enthusiasm, like a "
        "supportive colleague."
    ),
    "concise": (
        "Be minimal and direct. Short sentences, only the essential information."
    ),
    "playful": (
        "Be light and playful while staying accurate. A little humour is fine; "
        "never let it obscure the answer."
    ),
}


def tone_directive(profile: Optional[UserProfile]) -> str:
    """Return the directive text for the profile's tone."""
    name = profile.tone if profile and profile.tone else DEFAULT_TONE
    return TONE_PROFILES.get(name, TONE_PROFILES[DEFAULT_TONE])


def normalise_tone(name: str) -> Optional[str]:
    """Map free text such as 'Professional' or 'medium warm' to a tone key."""
    compact = name.replace(" ", "").replace("-", "").replace("_", "").lower()
    for key in TONE_PROFILES:
        if key.lower() == compact:
            return key
    return None
