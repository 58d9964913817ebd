"""Tests for intent and callback routing."""

import pytest

from erpbot.nlu.confidence import ConfidenceBand
from erpbot.routing.router import (
    CALLBACK_ROUTES,
    INTENT_ROUTES,
    ROUTABLE_ACTIONS,
    Action,
    IntentRouter,
    ReportType,
)
from erpbot.schemas.nlu_schema import Entity, IntentResult


def _intent(name, confidence=0.95):
    return IntentResult(name=name, confidence=confidence)


class TestIntentRouting:
    def setup_method(self):
        self.router = IntentRouter()

    def test_low_band_always_clarifies(self):
        decision = self.router.route(_intent("create_customer", 0.5), [], ConfidenceBand.LOW)
        assert decision.action == Action.CLARIFY
        assert decision.confidence == 0.5

    def test_missing_intent_clarifies(self):
        assert self.router.route(None, [], ConfidenceBand.HIGH).action == Action.CLARIFY

    def test_known_intent_carries_entities(self):
        entities = [Entity(name="customer_name", value="Dupont")]
        decision = self.router.route(_intent("create_customer"), entities, ConfidenceBand.HIGH)
        assert decision.action == Action.CREATE_CUSTOMER
        assert decision.entities == entities

    def test_medium_band_routes(self):
        decision = self.router.route(_intent("help", 0.75), [], ConfidenceBand.MEDIUM)
        assert decision.action == Action.HELP

    def test_report_intent_has_report_type(self):
        decision = self.router.route(_intent("stock_report"), [], ConfidenceBand.HIGH)
        assert decision.action == Action.REPORT
        assert decision.report_type == ReportType.STOCK

    def test_get_quotation_lists_quotations(self):
        decision = self.router.route(_intent("get_quotation"), [], ConfidenceBand.HIGH)
        assert decision.action == Action.GET_QUOTATIONS

    def test_unknown_intent_tried_as_report(self):
        decision = self.router.route(_intent("Gross Profit"), [], ConfidenceBand.HIGH)
        assert decision.action == Action.CUSTOM_REPORT
        assert decision.report_name == "Gross Profit"

    def test_nameless_intent_falls_back(self):
        decision = self.router.route(_intent(None), [], ConfidenceBand.HIGH)
        assert decision.action == Action.FALLBACK


class TestCallbackRouting:
    def setup_method(self):
        self.router = IntentRouter()

    def test_create_customer_button_prompts(self):
        assert self.router.route_callback("create_customer").action == Action.PROMPT_CREATE_CUSTOMER

    def test_pos_button_has_report_type(self):
        decision = self.router.route_callback("pos_cashiers_report")
        assert decision.report_type == ReportType.POS_CASHIERS

    def test_back_to_main(self):
        assert self.router.route_callback("back_to_main").action == Action.MAIN_MENU

    @pytest.mark.parametrize("data", ["nope", "", None])
    def test_unknown_callback(self, data):
        assert self.router.route_callback(data).action == Action.UNKNOWN_CALLBACK


class TestTables:
    def test_every_report_type_reachable_by_button(self):
        reachable = {r.report_type for r in CALLBACK_ROUTES.values() if r.report_type}
        assert reachable == set(ReportType)

    def test_report_routes_carry_type(self):
        for route in list(INTENT_ROUTES.values()) + list(CALLBACK_ROUTES.values()):
            assert (route.action == Action.REPORT) == (route.report_type is not None)

    def test_routable_actions_include_outcomes(self):
        assert {Action.CLARIFY, Action.FALLBACK, Action.CUSTOM_REPORT} <= ROUTABLE_ACTIONS
