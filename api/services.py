"""
Service initialization and dependency injection for the RadioCare API.

Creates and manages all service instances used by the API.
"""

import logging
from typing import Any, Optional

from config.settings import get_settings, Settings
from contexts.catalog import ContextCatalog
from contexts.selector import ContextSelector
from llm.background import BackgroundTaskRunner
from llm.conversation_store import (
    AlertStore,
    BenefitAccountStore,
    ConversationStore,
    InMemoryAlertStore,
    InMemoryBenefitAccountStore,
    InMemoryConversationStore,
)
from llm.oracle import CallBudget, OracleClient
from llm.orchestrator import ResponseOrchestrator
from .alerts import AlertManager
from .flows.engine import CoverageFollowUp

logger = logging.getLogger(__name__)


class Services:
    """Container for all application services."""

    def __init__(self):
        self.settings: Optional[Settings] = None
        self.catalog: Optional[ContextCatalog] = None
        self.oracle: Optional[OracleClient] = None
        self.selector: Optional[ContextSelector] = None
        self.conversation_store: Optional[ConversationStore] = None
        self.benefit_store: Optional[BenefitAccountStore] = None
        self.alert_store: Optional[AlertStore] = None
        self.alert_manager: Optional[AlertManager] = None
        self.runner: Optional[BackgroundTaskRunner] = None
        self.follow_up: Optional[CoverageFollowUp] = None
        self.orchestrator: Optional[ResponseOrchestrator] = None
        self._initialized = False

    def initialize(self, session_factory: Optional[Any] = None):
        """
        Initialize all services.

        Args:
            session_factory: SQLAlchemy ``async_sessionmaker``; in-memory
                stores are used when omitted
        """
        if self._initialized:
            return

        self.settings = get_settings()
        logger.info(
            f"Initializing services with provider: "
            f"{self.settings.llm_provider if self.settings.llm_enabled else 'disabled'}"
        )

        self._init_catalog()
        self._init_oracle()
        self._init_stores(session_factory)
        self._init_orchestrator()
        self._initialized = True
        logger.info("All services initialized successfully")

    def _init_catalog(self):
        """Load the context catalog."""
        self.catalog = ContextCatalog(self.settings.contexts_path)
        snapshot = self.catalog.snapshot
        logger.info(
            f"Context catalog ready: {len(snapshot.contexts)} contexts"
            f"{' (built-in fallback)' if snapshot.is_fallback else ''}"
        )

    def _build_provider(self) -> Optional[Any]:
        s = self.settings
        if not s.llm_enabled:
            logger.warning("LLM disabled, using keyword fallback and safe replies only")
            return None

        try:
            if s.is_bedrock:
                from llm.providers import BedrockProvider
                return BedrockProvider(model_id=s.llm_model_id, region=s.aws_region)

            from llm.providers import OpenAIProvider
            return OpenAIProvider(api_key=s.openai_api_key, model_id=s.llm_model_id)
        except Exception as e:
            logger.error(f"Failed to initialize LLM provider {s.llm_provider}: {e}")
            logger.warning("API starting in degraded mode")
            return None

    def _init_oracle(self):
        """Initialize the text-completion gateway and context selector."""
        s = self.settings
        self.oracle = OracleClient(
            provider=self._build_provider(),
            selection_budget=CallBudget(
                label="context selection",
                timeout_seconds=s.selection_timeout_seconds,
                retries=s.selection_retries,
                max_tokens=s.selection_max_tokens,
                temperature=s.selection_temperature,
            ),
            generation_budget=CallBudget(
                label="reply generation",
                timeout_seconds=s.generation_timeout_seconds,
                retries=s.generation_retries,
                max_tokens=s.generation_max_tokens,
                temperature=s.generation_temperature,
            ),
            base_delay=s.retry_base_delay_seconds,
            max_delay=s.retry_max_delay_seconds,
        )
        self.selector = ContextSelector(self.catalog, self.oracle)

    def _init_stores(self, session_factory: Optional[Any]):
        """Initialize persistence (database when configured, else in-memory)."""
        if session_factory is not None:
            from llm.db_conversation_store import (
                DbAlertStore,
                DbBenefitAccountStore,
                DbConversationStore,
            )
            self.conversation_store = DbConversationStore(session_factory)
            self.benefit_store = DbBenefitAccountStore(session_factory)
            self.alert_store = DbAlertStore(session_factory)
            logger.info("Using database-backed stores")
        else:
            self.conversation_store = InMemoryConversationStore()
            self.benefit_store = InMemoryBenefitAccountStore()
            self.alert_store = InMemoryAlertStore()
            logger.info("Using in-memory stores")

    def _init_orchestrator(self):
        """Initialize the response orchestrator and its collaborators."""
        s = self.settings
        self.runner = BackgroundTaskRunner()
        self.alert_manager = AlertManager(
            self.alert_store,
            webhook_url=s.clinician_webhook_url,
            api_key=s.clinician_webhook_api_key,
            timeout=s.clinician_webhook_timeout,
        )
        self.follow_up = CoverageFollowUp(self.benefit_store, s.default_total_coverage)

        self.orchestrator = ResponseOrchestrator(
            catalog=self.catalog,
            selector=self.selector,
            oracle=self.oracle,
            conversation_store=self.conversation_store,
            runner=self.runner,
            alert_manager=self.alert_manager,
            follow_up=self.follow_up,
            history_window=s.history_window,
            turn_timeout=s.turn_timeout_seconds,
        )
        logger.info("Response orchestrator ready")

    @property
    def is_ready(self) -> bool:
        return self._initialized and self.orchestrator is not None

    def health(self) -> dict:
        """Return health status of all services."""
        return {
            "initialized": self._initialized,
            "llm": bool(self.oracle and self.oracle.is_available),
            "catalog": bool(self.catalog and not self.catalog.snapshot.is_fallback),
            "orchestrator": self.orchestrator is not None,
            "background_tasks": self.runner.pending if self.runner else 0,
        }

    async def shutdown(self):
        """Let outstanding side effects finish."""
        if self.runner is not None:
            await self.runner.drain()


# Singleton
_services = Services()


def get_services() -> Services:
    """Get the global services instance."""
    return _services


def initialize_services(session_factory: Optional[Any] = None):
    """Initialize all services (called at startup)."""
    _services.initialize(session_factory)


def reset_services():
    """Drop the global services instance (tests)."""
    global _services
    _services = Services()
