"""Pydantic models for REST API request/response validation."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field


# --- Chat ---

class ChatBody(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    conversation_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("conversation_id", "conversationId"),
    )
    file_ids: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("file_ids", "fileIds"),
    )


class TraceEntryOut(BaseModel):
    step: float
    tool: str
    input: Any = None
    output: Any = None
    success: bool
    contradictions: list[str] = []
    citation_miss: list[str] = []
    final: bool = False
    cached: bool = False


class ChatResponse(BaseModel):
    reply: str
    trace: list[TraceEntryOut]
    tool: str
    data: Any = None
    success: bool
    confidence: float
    conversation_id: str
    metadata: dict[str, Any] = {}


# --- Conversations ---

class ConversationOut(BaseModel):
    conversation_id: str


class MessageOut(BaseModel):
    role: str
    content: str
    created_at: str = ""
    tool: Optional[str] = None
    confidence: Optional[float] = None
    success: Optional[bool] = None


# --- Scheduled tasks ---

class TaskBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    schedule_text: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("schedule_text", "scheduleText"),
    )
    tool: str = Field(..., min_length=1)
    input: Any = None
    context: dict[str, Any] = Field(default_factory=dict)


class TaskOut(BaseModel):
    id: str
    name: str
    schedule: str
    tool: str
    enabled: bool
    last_run: Optional[str] = None
    run_count: int = 0
    last_result: Optional[dict[str, Any]] = None


class AddTaskResponse(BaseModel):
    success: bool
    task: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class SchedulerStatusOut(BaseModel):
    running: bool
    task_count: int
    enabled_count: int
    tasks: list[TaskOut]
