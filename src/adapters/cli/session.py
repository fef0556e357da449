"""
adapters.cli.session - Local CLI session storage.

The id of the current CLI conversation is kept in
~/.local-agent/session.json so `chat` picks up where the last run left
off; `chat --new` starts over.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from uuid import uuid4

_SESSION_DIR  = Path.home() / ".local-agent"
_SESSION_FILE = _SESSION_DIR / "session.json"


@dataclass
class Session:
    conversation_id: str


def load_session(path: Path = _SESSION_FILE) -> Session | None:
    """Return the stored session, or None if there is none (or it is unreadable)."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Session(conversation_id=str(data["conversation_id"]))
    except (OSError, ValueError, KeyError, TypeError):
        return None


def save_session(session: Session, path: Path = _SESSION_FILE) -> None:
    """Persist the session to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(session), indent=2), encoding="utf-8")


def current_session(*, new: bool = False, path: Path = _SESSION_FILE) -> Session:
    """The stored session, or a fresh one (saved) when missing or new=True."""
    session = None if new else load_session(path)
    if session is None:
        session = Session(conversation_id=f"cli-{uuid4().hex[:12]}")
        save_session(session, path)
    return session
