"""
agent.tools.search - Web search tool.

Queries a DuckDuckGo-compatible instant-answer endpoint and returns a
flat list of {title, snippet, url} results.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from agent.tools.base import BaseTool, ToolResult
from domain.exceptions import ToolExecutionError
from domain.ports import HttpClientPort

logger = logging.getLogger(__name__)


class SearchInput(BaseModel):
    """Input schema for the search tool."""
    text: str = Field(default="", description="What to search for")
    limit: int = Field(default=5, ge=1, le=20)


class SearchTool(BaseTool):
    """Look things up on the web."""

    name = "search"
    description = "Search the web for facts, news and current events."

    def __init__(self, http: HttpClientPort, api_url: str):
        self._http = http
        self._api_url = api_url

    def get_schema(self) -> type[BaseModel]:
        return SearchInput

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        params = self.parse_params(input, context)
        query = params.text.strip()
        if not query:
            return ToolResult.fail("No search query provided")

        try:
            payload = await self._http.get_json(
                self._api_url,
                params={"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
            )
        except ToolExecutionError as e:
            return ToolResult.fail(str(e))

        results = parse_results(payload)[: params.limit]
        logger.info("Search for %r returned %d result(s)", query[:60], len(results))
        return ToolResult.ok({"query": query, "results": results})


def parse_results(payload: Any) -> list[dict[str, str]]:
    """Flatten an instant-answer payload into search results."""
    if not isinstance(payload, dict):
        return []

    results: list[dict[str, str]] = []
    abstract = payload.get("AbstractText") or ""
    if abstract:
        results.append({
            "title": payload.get("Heading") or "",
            "snippet": abstract,
            "url": payload.get("AbstractURL") or "",
        })

    def _walk(topics: list[Any]) -> None:
        for topic in topics:
            if not isinstance(topic, dict):
                continue
            if "Topics" in topic:
                _walk(topic.get("Topics") or [])
                continue
            text = topic.get("Text") or ""
            if text:
                title, _, snippet = text.partition(" - ")
                results.append({
                    "title": title,
                    "snippet": snippet or text,
                    "url": topic.get("FirstURL") or "",
                })

    _walk(payload.get("Results") or [])
    _walk(payload.get("RelatedTopics") or [])
    return results
