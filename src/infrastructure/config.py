"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass built from the environment (and an optional .env file)
or constructed explicitly in tests. Nothing reads os.environ after
startup; the ServiceFactory hands the values to whatever needs them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the assistant.

    Paths are absolute. Construct via from_env() or pass explicitly in tests.
    """
    project_root: Path
    data_dir: Path

    # ── Centralized LLM Provider ────────────────────────────────
    # One setting controls every LLM component (drafter, llm planner).
    # Allowed: "openai", "groq", "ollama"
    llm_provider: str = "ollama"

    # Model names; only the one matching llm_provider is used.
    llm_model_ollama: str = "llama3.2"
    llm_model_openai: str = "gpt-4.1-mini"
    llm_model_groq: str = "llama-3.3-70b-versatile"

    ollama_base_url: str = "http://localhost:11434/"
    groq_api_key: str = ""
    openai_api_key: str = ""

    # ── Orchestration ───────────────────────────────────────────
    planner_mode: str = "rules"  # "rules" | "llm"
    tool_budgets: dict[str, int] = field(default_factory=lambda: {
        "search": 2,
        "calculator": 1,
        "finance": 2,
        "stock_price": 2,
        "weather": 2,
        "file": 3,
    })
    history_window: int = 20

    # ── Storage ─────────────────────────────────────────────────
    db_path: str = "data/agent.db"
    telemetry_path: str = "data/telemetry.jsonl"

    # ── Scheduler ───────────────────────────────────────────────
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60

    # ── Tools ───────────────────────────────────────────────────
    file_sandbox_root: str = "."
    fmp_api_key: str = ""
    fmp_api_url: str = "https://financialmodelingprep.com/api/v3"
    search_api_url: str = "https://api.duckduckgo.com/"
    weather_api_url: str = "https://api.open-meteo.com/v1/forecast"
    geocoding_api_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    geo_ip_url: str = "https://ipapi.co/{ip}/json/"
    http_timeout_seconds: float = 10.0

    log_level: str = "INFO"

    @property
    def active_llm_model(self) -> str:
        """Return the model name for the currently active LLM provider."""
        if self.llm_provider == "openai":
            return self.llm_model_openai
        elif self.llm_provider == "groq":
            return self.llm_model_groq
        return self.llm_model_ollama

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> Settings:
        """Build Settings from the environment and standard project layout."""
        from dotenv import load_dotenv
        load_dotenv()

        root = project_root or Path(__file__).resolve().parent.parent.parent
        data_dir = root / "data"

        budgets = {
            "search": _env_int("TOOL_BUDGET_SEARCH", 2),
            "calculator": _env_int("TOOL_BUDGET_CALCULATOR", 1),
            "finance": _env_int("TOOL_BUDGET_FINANCE", 2),
            "stock_price": _env_int("TOOL_BUDGET_STOCK_PRICE", 2),
            "weather": _env_int("TOOL_BUDGET_WEATHER", 2),
            "file": _env_int("TOOL_BUDGET_FILE", 3),
        }

        return cls(
            project_root=root,
            data_dir=data_dir,

            llm_provider=os.getenv("LLM_PROVIDER", "ollama"),
            llm_model_ollama=os.getenv("LLM_MODEL_OLLAMA", "llama3.2"),
            llm_model_openai=os.getenv("LLM_MODEL_OPENAI", "gpt-4.1-mini"),
            llm_model_groq=os.getenv("LLM_MODEL_GROQ", "llama-3.3-70b-versatile"),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/"),
            groq_api_key=os.getenv("GROQ_API_KEY", ""),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),

            planner_mode=os.getenv("PLANNER_MODE", "rules").strip().lower(),
            tool_budgets=budgets,
            history_window=_env_int("HISTORY_WINDOW", 20),

            db_path=os.getenv("DB_PATH", str(data_dir / "agent.db")),
            telemetry_path=os.getenv("TELEMETRY_PATH", str(data_dir / "telemetry.jsonl")),

            scheduler_enabled=_env_bool("SCHEDULER_ENABLED", True),
            scheduler_interval_seconds=_env_int("SCHEDULER_INTERVAL_SECONDS", 60),

            file_sandbox_root=os.getenv("FILE_SANDBOX_ROOT", str(root)),
            fmp_api_key=os.getenv("FMP_API_KEY", ""),
            fmp_api_url=os.getenv("FMP_API_URL", "https://financialmodelingprep.com/api/v3"),
            search_api_url=os.getenv("SEARCH_API_URL", "https://api.duckduckgo.com/"),
            weather_api_url=os.getenv("WEATHER_API_URL", "https://api.open-meteo.com/v1/forecast"),
            geocoding_api_url=os.getenv(
                "GEOCODING_API_URL", "https://geocoding-api.open-meteo.com/v1/search",
            ),
            geo_ip_url=os.getenv("GEO_IP_URL", "https://ipapi.co/{ip}/json/"),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),

            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
