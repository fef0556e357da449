"""
factory - Composition root for the assistant.

ALL dependency wiring happens here. No other module constructs its own
dependencies. Adapters (CLI, REST) call this factory to get fully
configured services.

Usage:
    from factory import ServiceFactory
    from infrastructure.config import Settings

    config = Settings.from_env()
    factory = ServiceFactory(config)
    await factory.initialize()  # one-time startup

    chat = factory.create_chat_service()
    reply = await chat.handle("what's 12*7")

    scheduler = factory.create_scheduler()
    await scheduler.start()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from agent.coordinator import Coordinator
from agent.executor import StepExecutor
from agent.planner import RuleBasedPlanner, SingleStepPlanner
from agent.tools.calculator import CalculatorTool
from agent.tools.file_system import FileTool
from agent.tools.finance import FinanceTool, StockPriceTool
from agent.tools.llm_answer import LLMAnswerTool
from agent.tools.registry import ToolRegistry
from agent.tools.search import SearchTool
from agent.tools.weather import WeatherTool
from application.services.chat import ChatService
from application.services.profile import ProfileService
from application.services.scheduler import TaskScheduler
from domain.ports import DrafterPort, PlannerPort
from infrastructure.config import Settings
from infrastructure.http.client import JsonHttpClient
from infrastructure.http.geo_locator import IpGeoLocator
from infrastructure.llm.drafter import LangChainDrafter
from infrastructure.llm.llm_builder import build_llm_from_settings
from infrastructure.llm.llm_planner import LLMPlanner
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.conversation_repo import DocumentConversationRepository
from infrastructure.persistence.document_store import SQLiteDocumentStore
from infrastructure.persistence.migrations import run_migrations
from infrastructure.persistence.task_repo import DocumentTaskRepository
from infrastructure.persistence.telemetry import JsonlTelemetrySink

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Composition root: wires all dependencies together.

    Call initialize() once at startup, then create services as needed.
    The drafter, registry, coordinator and scheduler are built once and
    shared; per-request state lives in RunContext, never in these objects.
    """

    def __init__(self, config: Settings, drafter: Optional[DrafterPort] = None):
        self._config = config
        self._connection = AsyncSQLiteConnection(config.db_path)
        self._store = SQLiteDocumentStore(self._connection)
        self._http = JsonHttpClient(timeout=config.http_timeout_seconds)

        self._drafter = drafter
        self._registry: Optional[ToolRegistry] = None
        self._coordinator: Optional[Coordinator] = None
        self._scheduler: Optional[TaskScheduler] = None
        self._initialized = False

    @property
    def config(self) -> Settings:
        return self._config

    async def initialize(self) -> None:
        """One-time startup: run migrations.

        Must be called before creating services.
        """
        logger.info("Initializing ServiceFactory...")
        await run_migrations(self._connection)
        self._initialized = True
        logger.info(
            "ServiceFactory ready (provider=%s, model=%s, planner=%s)",
            self._config.llm_provider, self._config.active_llm_model,
            self._config.planner_mode,
        )

    # ------------------------------------------------------------------
    # Shared components
    # ------------------------------------------------------------------

    def create_drafter(self) -> DrafterPort:
        """LangChain drafter for the configured provider (built once)."""
        if self._drafter is None:
            self._drafter = LangChainDrafter(
                build_llm_from_settings(self._config, temperature=0.3),
            )
        return self._drafter

    def create_registry(self) -> ToolRegistry:
        """Register every tool the planner can route to (built once)."""
        if self._registry is not None:
            return self._registry

        cfg = self._config
        registry = ToolRegistry()
        registry.register(CalculatorTool())
        registry.register(LLMAnswerTool(self.create_drafter(), cfg.history_window))
        registry.register(SearchTool(self._http, cfg.search_api_url))
        registry.register(WeatherTool(self._http, cfg.geocoding_api_url, cfg.weather_api_url))
        registry.register(FinanceTool(self._http, cfg.fmp_api_url, cfg.fmp_api_key))
        registry.register(StockPriceTool(self._http, cfg.fmp_api_url, cfg.fmp_api_key))
        registry.register(FileTool(Path(cfg.file_sandbox_root)))

        logger.info("Registered tools: %s", ", ".join(registry.names()))
        self._registry = registry
        return registry

    def create_planner(self) -> PlannerPort:
        """Rule table by default; PLANNER_MODE=llm delegates to the model."""
        if self._config.planner_mode == "llm":
            registry = self.create_registry()
            chooser = LLMPlanner(
                build_llm_from_settings(self._config, json_mode=True),
                allowed_tools=registry.names(),
                tool_descriptions=registry.describe(),
            )
            return SingleStepPlanner(chooser)
        return RuleBasedPlanner()

    def create_coordinator(self) -> Coordinator:
        """Planner, executor, geolocation and budgets wired together (built once)."""
        if self._coordinator is None:
            executor = StepExecutor(
                registry=self.create_registry(),
                drafter=self.create_drafter(),
                history_window=self._config.history_window,
            )
            self._coordinator = Coordinator(
                planner=self.create_planner(),
                executor=executor,
                geo_locator=IpGeoLocator(self._http, self._config.geo_ip_url),
                budgets=self._config.tool_budgets,
            )
        return self._coordinator

    # ------------------------------------------------------------------
    # Service creation
    # ------------------------------------------------------------------

    def create_profile_service(self) -> ProfileService:
        return ProfileService(DocumentConversationRepository(self._store))

    def create_chat_service(self) -> ChatService:
        """Create a ChatService with memory and telemetry wired."""
        self._ensure_initialized()
        return ChatService(
            coordinator=self.create_coordinator(),
            conversations=DocumentConversationRepository(self._store),
            profiles=self.create_profile_service(),
            telemetry=JsonlTelemetrySink(self._config.telemetry_path),
            history_window=self._config.history_window,
        )

    def create_scheduler(self) -> TaskScheduler:
        """The process-wide TaskScheduler (built once, not started)."""
        self._ensure_initialized()
        if self._scheduler is None:
            self._scheduler = TaskScheduler(
                registry=self.create_registry(),
                repository=DocumentTaskRepository(self._store),
                interval_seconds=self._config.scheduler_interval_seconds,
            )
        return self._scheduler

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ServiceFactory not initialized. Call await factory.initialize() first."
            )
