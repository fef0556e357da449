"""
agent.prompt - Prompt templates for drafting and planning.

Plain functions that turn the request, tool output, recent turns and
profile into prompt text. No LLM calls happen here.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Iterable, Optional

from domain.entities import UserProfile
from domain.models import Message
from agent.tone import tone_directive

HISTORY_WINDOW = 20

_TABLE_PHRASES = (
    "show in a table",
    "show it in a table",
    "display in a table",
    "in a table",
    "table format",
    "as a table",
    "in table form",
    "tabular",
)


def wants_table_format(text: str) -> bool:
    """True when the user's wording asks for tabular output."""
    lower = (text or "").lower()
    return any(phrase in lower for phrase in _TABLE_PHRASES)


def format_history(history: Iterable[Message], window: int = HISTORY_WINDOW) -> str:
    """Render the most recent turns as 'role: content' lines."""
    turns = list(history)[-window:] if window > 0 else []
    if not turns:
        return "(no prior messages in this conversation)"
    return "\n".join(f"{m.role}: {m.content}" for m in turns)


def _profile_block(profile: Optional[UserProfile]) -> str:
    if profile is None:
        return "{}"
    return json.dumps(profile.to_dict(), indent=2, ensure_ascii=False)


def _json_block(value: Any) -> str:
    try:
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


def build_summary_prompt(
    *,
    request: str,
    tool: str,
    tool_result: Any,
    history: Iterable[Message],
    profile: Optional[UserProfile],
    window: int = HISTORY_WINDOW,
    today: Optional[date] = None,
) -> str:
    """Prompt that turns a tool's structured result into the user-facing answer."""
    if wants_table_format(request):
        layout = (
            "- Convert the structured data into an HTML table with headers and rows.\n"
            "- Keep the explanation short and place the table clearly."
        )
    else:
        layout = "- Use normal paragraph formatting unless a different structure is clearly better."

    return f"""You are the final response writer for a personal assistant.
The current date is {(today or date.today()).isoformat()}.

User profile (long-term memory):
{_profile_block(profile)}

Recent conversation (most recent {window} messages):
{format_history(history, window)}

Tone:
{tone_directive(profile)}

User question:
{request}

Tool used: {tool}

Tool result (structured data):
{_json_block(tool_result)}

Formatting:
- Produce a clear, natural-language answer.
- Use the profile information only when it is relevant.
{layout}
- If the result holds no reliable information, say so plainly and do not invent facts.
- Do not mention tools or internal steps."""


def build_answer_prompt(
    *,
    request: str,
    history: Iterable[Message],
    profile: Optional[UserProfile],
    extra_context: Optional[dict[str, Any]] = None,
    window: int = HISTORY_WINDOW,
) -> str:
    """Prompt for a direct answer with no external tool."""
    sections = [
        "You are a helpful local assistant. Answer the user's latest message directly.",
        f"User profile:\n{_profile_block(profile)}",
        f"Recent conversation:\n{format_history(history, window)}",
        f"Tone:\n{tone_directive(profile)}",
    ]
    if extra_context:
        sections.append(f"Results from earlier steps:\n{_json_block(extra_context)}")
    if wants_table_format(request):
        sections.append("Present the answer as an HTML table with headers and rows.")
    sections.append(f"User: {request}")
    return "\n\n".join(sections)


def build_planner_instructions(tool_lines: str, allowed: Iterable[str]) -> str:
    """System prompt for the language-model planner.

    Braces are doubled because the text goes through ChatPromptTemplate.
    """
    names = ", ".join(f'"{name}"' for name in allowed)
    return f"""You route a user's request to exactly one tool.

Available tools:
{tool_lines}

Reply with a single JSON object and nothing else:
{{{{"tool": <one of {names}>, "input": <text to pass to the tool>, "context": {{{{}}}}}}}}

Rules:
- "tool" must be one of the names listed above, spelled exactly.
- Use "llm" when no other tool clearly fits.
- Keep "input" close to the user's own words."""
