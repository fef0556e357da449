"""
infrastructure.logging_config - Root logger setup for the entry points.

Modules only ever call logging.getLogger(__name__); handlers and levels
are decided once here, by run_api.py / the FastAPI lifespan (plain
stream handler) and by the CLI (rich handler that plays well with
console.status spinners).
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers kept at WARNING unless LOG_LEVEL=DEBUG.
_NOISY = ("httpx", "httpcore", "urllib3", "aiosqlite", "asyncio")


def configure_logging(level: str = "INFO", *, rich: bool = False) -> None:
    """Install a single root handler. Safe to call more than once."""
    numeric = getattr(logging, (level or "INFO").upper(), logging.INFO)

    if rich:
        from rich.logging import RichHandler
        handler: logging.Handler = RichHandler(
            rich_tracebacks=True, show_path=False, markup=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric)

    for name in _NOISY:
        logging.getLogger(name).setLevel(numeric if numeric <= logging.DEBUG else logging.WARNING)
