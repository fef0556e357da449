"""
adapters.rest.app - FastAPI application for the assistant.

Usage:
    python run_api.py

Or directly:
    uvicorn adapters.rest.app:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Ensure src/ is on sys.path when invoked via uvicorn directly
_src_dir = Path(__file__).resolve().parent.parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from infrastructure.config import Settings
from infrastructure.logging_config import configure_logging
from factory import ServiceFactory
from adapters.rest.dependencies import set_factory
from adapters.rest.routers import chat, chat_ws, conversations, tasks

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(factory: Optional[ServiceFactory] = None) -> FastAPI:
    """Build the API. Without a factory one is built from the environment at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize ServiceFactory and start the scheduler; stop it on shutdown."""
        active = factory
        if active is None:
            config = Settings.from_env(project_root=_src_dir.parent)
            configure_logging(config.log_level)
            active = ServiceFactory(config)
        await active.initialize()
        set_factory(active)

        scheduler = None
        if active.config.scheduler_enabled:
            scheduler = active.create_scheduler()
            await scheduler.start()
        logger.info("API ready (scheduler %s)", "on" if scheduler else "off")
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            set_factory(None)

    app = FastAPI(
        title="Local Agent Orchestrator",
        version=VERSION,
        description="Plans, executes and audits multi-step tool runs for chat requests.",
        lifespan=lifespan,
    )

    # Permissive CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat.router)
    app.include_router(chat_ws.router)
    app.include_router(conversations.router)
    app.include_router(tasks.router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
