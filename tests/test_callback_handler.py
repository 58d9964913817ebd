"""Tests for inline keyboard callbacks."""

import pytest

from erpbot.conversation.state_machine import EventState
from erpbot.services.erpnext_client import BackendError

CHAT = 7


class TestCallbacks:
    @pytest.mark.asyncio
    async def test_create_customer_prompts_with_force_reply(self, bot):
        sm = await bot.callbacks.handle_callback(CHAT, "cb-1", "create_customer")

        assert bot.transport.answered == ["cb-1"]
        reply = bot.transport.last
        assert reply.force_reply is True
        assert "nom" in reply.text and "email" in reply.text
        assert sm.current_state == EventState.HANDLED

    @pytest.mark.asyncio
    async def test_quotation_prompt_header(self, bot):
        await bot.callbacks.handle_callback(CHAT, "cb-2", "create_quotation")
        assert bot.transport.last.text.startswith("📝 Création de devis")
        assert bot.transport.last.force_reply is True

    @pytest.mark.asyncio
    async def test_unknown_callback_shows_main_menu(self, bot):
        await bot.callbacks.handle_callback(CHAT, "cb-3", "does_not_exist")
        assert "Action non reconnue" in bot.transport.last.text
        assert bot.transport.last.keyboard

    @pytest.mark.asyncio
    async def test_reports_menu_lists_pos_submenu(self, bot):
        await bot.callbacks.handle_callback(CHAT, "cb-4", "reports_menu")
        actions = [b.action for row in bot.transport.last.keyboard for b in row]
        assert "pos_reports_menu" in actions
        assert "back_to_main" in actions

    @pytest.mark.asyncio
    async def test_report_button_renders_report(self, connected_bot):
        connected_bot.backend.rows["get_sales_report"] = [
            {"name": "SINV-1", "customer": "Dupont", "grand_total": 120, "status": "Paid"},
        ]
        await connected_bot.callbacks.handle_callback(CHAT, "cb-5", "sales_report")
        text = connected_bot.transport.last.text
        assert "Rapport des Ventes" in text
        assert "SINV-1" in text

    @pytest.mark.asyncio
    async def test_pos_today_uses_backend_date(self, connected_bot):
        await connected_bot.callbacks.handle_callback(CHAT, "cb-6", "pos_today")
        assert connected_bot.backend.calls == ["get_pos_period_report"]
        assert "Aujourd'hui" in connected_bot.transport.last.text

    @pytest.mark.asyncio
    async def test_acknowledge_failure_reports_error(self, bot):
        async def broken(callback_id, text=None):
            raise RuntimeError("telegram down")

        bot.transport.answer_callback = broken
        sm = await bot.callbacks.handle_callback(CHAT, "cb-7", "help")
        assert bot.transport.last.text == "❌ Une erreur est survenue lors du traitement de votre demande."
        assert sm.current_state == EventState.ERROR_REPORTED

    @pytest.mark.asyncio
    async def test_backend_error_in_list_is_reported(self, connected_bot):
        connected_bot.backend.failures["get_quotations"] = BackendError("down", 502)
        sm = await connected_bot.callbacks.handle_callback(CHAT, "cb-8", "get_quotation")
        assert "Erreur lors de la récupération des devis" in connected_bot.transport.last.text
        assert sm.current_state == EventState.HANDLED
