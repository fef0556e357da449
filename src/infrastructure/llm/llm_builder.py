"""
infrastructure.llm.llm_builder - Centralized chat-model construction.

Single place that knows how to build a LangChain chat model for each
provider. The drafter and the language-model planner both go through
build_llm(); the provider is chosen by the LLM_PROVIDER setting.

Supported providers:
    - "openai"  → langchain_openai.ChatOpenAI
    - "groq"    → langchain_groq.ChatGroq
    - "ollama"  → langchain_ollama.ChatOllama
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from langchain_core.language_models import BaseChatModel

from infrastructure.config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "groq", "ollama")


def build_llm(
    *,
    provider: str,
    model: str,
    temperature: float = 0,
    ollama_base_url: str = "http://localhost:11434/",
    openai_api_key: str = "",
    groq_api_key: str = "",
    json_mode: bool = False,
    max_tokens: Optional[int] = None,
) -> BaseChatModel:
    """Build a chat model for the given provider.

    Args:
        provider: One of "openai", "groq", "ollama".
        model: Model name for the selected provider.
        temperature: Sampling temperature.
        ollama_base_url: Ollama server URL (only used when provider="ollama").
        openai_api_key: API key for OpenAI.
        groq_api_key: API key for Groq.
        json_mode: Ask the provider for a JSON object response.
        max_tokens: Maximum tokens. Groq defaults to 1024 when unset.

    Raises:
        ValueError: If the provider is unknown or required credentials are missing.
    """
    provider = provider.lower().strip()

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when LLM_PROVIDER='openai'")

        kwargs: dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "openai_api_key": openai_api_key,
        }
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        logger.info("Building OpenAI chat model (model=%s, json_mode=%s)", model, json_mode)
        return ChatOpenAI(**kwargs)

    if provider == "groq":
        from langchain_groq import ChatGroq

        if not groq_api_key:
            raise ValueError("GROQ_API_KEY is required when LLM_PROVIDER='groq'")

        kwargs = {
            "model": model,
            "temperature": temperature,
            "groq_api_key": groq_api_key,
            "max_tokens": max_tokens if max_tokens is not None else 1024,
        }
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}

        logger.info("Building Groq chat model (model=%s, json_mode=%s)", model, json_mode)
        return ChatGroq(**kwargs)

    if provider == "ollama":
        from langchain_ollama import ChatOllama

        kwargs = {
            "model": model,
            "temperature": temperature,
            "base_url": ollama_base_url,
        }
        if json_mode:
            kwargs["format"] = "json"
        if max_tokens is not None:
            kwargs["num_predict"] = max_tokens

        logger.info("Building ChatOllama (model=%s, json_mode=%s)", model, json_mode)
        return ChatOllama(**kwargs)

    raise ValueError(
        f"Unsupported LLM_PROVIDER: '{provider}'. "
        f"Must be one of: {', '.join(SUPPORTED_PROVIDERS)}."
    )


def build_llm_from_settings(
    settings: Settings, *, json_mode: bool = False, temperature: float = 0,
) -> BaseChatModel:
    """build_llm() with provider, model and credentials taken from Settings."""
    return build_llm(
        provider=settings.llm_provider,
        model=settings.active_llm_model,
        temperature=temperature,
        ollama_base_url=settings.ollama_base_url,
        openai_api_key=settings.openai_api_key,
        groq_api_key=settings.groq_api_key,
        json_mode=json_mode,
    )
