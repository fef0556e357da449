"""
infrastructure.llm.drafter - DrafterPort backed by a LangChain chat model.

draft() runs the blocking chain in a thread pool; stream() consumes
astream() and forwards each text chunk. Neither raises: a backend failure
is logged and DRAFT_UNAVAILABLE is returned, so the executor can fall
back to rendering the raw tool result.
"""

from __future__ import annotations

import asyncio
import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from domain.models import DRAFT_UNAVAILABLE
from domain.ports import ChunkSink, emit

logger = logging.getLogger(__name__)


class LangChainDrafter:
    """Implements DrafterPort with `prompt | llm | StrOutputParser`."""

    def __init__(self, llm: BaseChatModel):
        self._llm = llm
        self._chain = self._build_chain()

    def _build_chain(self):
        # The whole prompt is a variable so braces inside tool JSON are not
        # read as template fields.
        prompt = ChatPromptTemplate.from_messages([("user", "{prompt}")])
        return prompt | self._llm | StrOutputParser()

    async def draft(self, prompt: str) -> str:
        try:
            loop = asyncio.get_event_loop()
            text: str = await loop.run_in_executor(
                None, self._chain.invoke, {"prompt": prompt},
            )
        except Exception as e:
            logger.error("Drafting failed: %s", e)
            return DRAFT_UNAVAILABLE
        return text or ""

    async def stream(self, prompt: str, on_chunk: ChunkSink) -> str:
        parts: list[str] = []
        try:
            async for chunk in self._chain.astream({"prompt": prompt}):
                if not chunk:
                    continue
                parts.append(chunk)
                await emit(on_chunk, chunk)
        except Exception as e:
            logger.error("Streaming draft failed after %d chunk(s): %s", len(parts), e)
            if not parts:
                return DRAFT_UNAVAILABLE
        return "".join(parts)
