"""
Shared FastAPI dependencies.

- get_factory(): returns the initialized ServiceFactory (set at startup).
- get_chat_service() / get_scheduler(): services built from it.
- client_ip(): caller address, honouring X-Forwarded-For.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from factory import ServiceFactory
from application.services.chat import ChatService
from application.services.scheduler import TaskScheduler

# Module-level reference set by app lifespan
_factory: ServiceFactory | None = None


def set_factory(factory: Optional[ServiceFactory]) -> None:
    global _factory
    _factory = factory


def get_factory() -> ServiceFactory:
    if _factory is None:
        raise RuntimeError("ServiceFactory not initialized.")
    return _factory


def get_chat_service(factory: ServiceFactory = Depends(get_factory)) -> ChatService:
    return factory.create_chat_service()


def get_scheduler(factory: ServiceFactory = Depends(get_factory)) -> TaskScheduler:
    return factory.create_scheduler()


def forwarded_ip(forwarded_for: Optional[str], peer: Optional[str]) -> Optional[str]:
    """First address in X-Forwarded-For, else the socket peer."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer


def client_ip(request: Request) -> Optional[str]:
    peer = request.client.host if request.client else None
    return forwarded_ip(request.headers.get("x-forwarded-for"), peer)
