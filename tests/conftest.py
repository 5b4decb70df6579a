"""Shared fixtures for RadioCare chatbot tests."""

import asyncio
import os
from types import SimpleNamespace
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

# Ensure we use test settings: no LLM, no database
os.environ["LLM_ENABLED"] = "false"
os.environ.pop("DATABASE_URL", None)
os.environ.setdefault("OPENAI_API_KEY", "test-key")


class ScriptedProvider:
    """
    Fake LLM provider.

    Selection calls carry no system prompt; generation calls carry the
    selected context's system prompt.
    """

    def __init__(
        self,
        selection: str = "general_medical",
        reply: str = "Thank you for sharing. Gentle rest and hydration usually help.",
        selection_delay: float = 0.0,
        reply_delay: float = 0.0,
        fail_selection: Optional[Exception] = None,
        fail_reply: Optional[Exception] = None,
    ):
        self.selection = selection
        self.reply = reply
        self.selection_delay = selection_delay
        self.reply_delay = reply_delay
        self.fail_selection = fail_selection
        self.fail_reply = fail_reply
        self.selection_calls: List[str] = []
        self.reply_calls: List[dict] = []

    async def agenerate(self, prompt, system=None, max_tokens=1024, temperature=0.5):
        if system is None:
            self.selection_calls.append(prompt)
            if self.selection_delay:
                await asyncio.sleep(self.selection_delay)
            if self.fail_selection:
                raise self.fail_selection
            return self.selection

        self.reply_calls.append({"prompt": prompt, "system": system})
        if self.reply_delay:
            await asyncio.sleep(self.reply_delay)
        if self.fail_reply:
            raise self.fail_reply
        return self.reply


async def _no_sleep(seconds: float):
    return None


@pytest.fixture
def scripted_provider():
    """Factory for fake LLM providers."""
    return ScriptedProvider


@pytest.fixture
def catalog():
    from config.settings import DEFAULT_CONTEXTS_PATH
    from contexts import ContextCatalog
    return ContextCatalog(DEFAULT_CONTEXTS_PATH)


@pytest.fixture
def make_oracle():
    """Build an OracleClient with short budgets and no real backoff sleeps."""
    from llm.oracle import CallBudget, OracleClient

    def _make(provider=None, selection_timeout=0.2, generation_timeout=0.5, generation_retries=1):
        return OracleClient(
            provider=provider,
            selection_budget=CallBudget("context selection", selection_timeout),
            generation_budget=CallBudget(
                "reply generation", generation_timeout, retries=generation_retries
            ),
            base_delay=0.0,
            sleep=_no_sleep,
        )

    return _make


@pytest.fixture
def make_engine(catalog, make_oracle):
    """Build an orchestrator wired to in-memory stores."""
    from api.alerts import AlertManager
    from api.flows.engine import CoverageFollowUp
    from contexts import ContextSelector
    from llm.background import BackgroundTaskRunner
    from llm.conversation_store import (
        InMemoryAlertStore,
        InMemoryBenefitAccountStore,
        InMemoryConversationStore,
    )
    from llm.orchestrator import ResponseOrchestrator

    def _make(provider=None, turn_timeout=None, **oracle_kwargs):
        oracle = make_oracle(provider, **oracle_kwargs)
        conversations = InMemoryConversationStore()
        accounts = InMemoryBenefitAccountStore()
        alerts = InMemoryAlertStore()
        runner = BackgroundTaskRunner()
        follow_up = CoverageFollowUp(accounts, default_total_coverage=500_000)
        orchestrator = ResponseOrchestrator(
            catalog=catalog,
            selector=ContextSelector(catalog, oracle),
            oracle=oracle,
            conversation_store=conversations,
            runner=runner,
            alert_manager=AlertManager(alerts),
            follow_up=follow_up,
            turn_timeout=turn_timeout,
        )
        return SimpleNamespace(
            orchestrator=orchestrator,
            conversations=conversations,
            accounts=accounts,
            alerts=alerts,
            runner=runner,
            follow_up=follow_up,
            oracle=oracle,
        )

    return _make


@pytest.fixture
def client():
    """Create a FastAPI test client with fresh services."""
    from api.main import app
    from api.services import reset_services

    reset_services()
    with TestClient(app) as test_client:
        yield test_client
    reset_services()


@pytest.fixture
def scripted_client(client, make_oracle):
    """
    Test client whose services talk to a fake LLM.

    Returns a function that installs a provider and returns the client.
    """
    from api.services import get_services

    def _install(provider):
        services = get_services()
        oracle = make_oracle(provider)
        services.oracle = oracle
        services.selector.oracle = oracle
        services.orchestrator.oracle = oracle
        return client

    return _install


@pytest.fixture
def drain(client):
    """Wait for background side effects spawned by the app."""
    from api.services import get_services

    def _drain():
        client.portal.call(get_services().runner.drain)

    return _drain
