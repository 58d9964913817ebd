"""Tests for import chains and application wiring.

Ensures the public packages import cleanly, their re-exports resolve, and
the wired application context and console demo run end to end.
"""

import dataclasses

import httpx
import pytest

from erpbot.config import BackendConfig, settings
from tests.conftest import FakeNLU, FakeTransport


def _offline_config():
    return dataclasses.replace(settings, backend=BackendConfig(url=""))


class TestPackageImports:
    def test_services_reexports(self):
        from erpbot.services import (
            BackendUnavailableError, CustomerService, ERPNextClient, RasaClient,
        )
        assert issubclass(BackendUnavailableError, Exception)
        assert CustomerService is not None
        assert ERPNextClient is not None
        assert RasaClient is not None

    def test_conversation_reexports(self):
        from erpbot.conversation import EventState, EventStateMachine
        assert EventStateMachine().current_state == EventState.RECEIVED

    def test_routing_reexports(self):
        from erpbot.routing import Action, IntentRouter
        assert IntentRouter is not None
        assert Action.HELP is not None

    def test_handlers_reexports(self):
        from erpbot.handlers import ActionDispatcher, CallbackHandler, MessageHandler
        assert ActionDispatcher is not None
        assert CallbackHandler is not None
        assert MessageHandler is not None

    def test_version(self):
        import erpbot
        assert erpbot.__version__ == "0.1.0"


class TestBuildContext:
    def test_without_backend(self):
        from erpbot.app import build_context
        app = build_context(FakeTransport(), nlu=FakeNLU(), config=_offline_config())
        assert app.erpnext_client is None
        assert app.backend is None
        assert app.customers.backend is None

    def test_with_injected_client(self):
        from erpbot.app import build_context
        from erpbot.services.erpnext_client import ERPNextClient

        client = ERPNextClient(
            url="http://erp.test", api_key="k", api_secret="s",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        )
        app = build_context(FakeTransport(), nlu=FakeNLU(), erpnext_client=client,
                            config=_offline_config())
        assert app.backend is not None
        assert app.customers.backend is app.backend

    @pytest.mark.asyncio
    async def test_start_command_end_to_end(self):
        from erpbot.app import build_context
        transport = FakeTransport()
        app = build_context(transport, nlu=FakeNLU(), config=_offline_config())
        await app.connect()
        await app.message_handler.handle_message(1, "/start")
        await app.aclose()
        assert transport.last.keyboard


class TestConsoleDemo:
    def test_customer_scenario(self, capsys):
        from console_demo import ConsoleSession
        session = ConsoleSession()
        session.run_scenario("customer")
        assert [c.name for c in session.app.store.list()] == ["Dupont"]
        assert "State trace" in capsys.readouterr().out

    def test_unknown_scenario(self, capsys):
        from console_demo import ConsoleSession
        ConsoleSession().run_scenario("nope")
        assert "Unknown scenario" in capsys.readouterr().out
