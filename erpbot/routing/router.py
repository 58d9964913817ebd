"""
Intent and callback routing.

Two fixed dispatch tables map strings to an ``Action``:

* intent names (from Rasa) -> action, consulted only when the confidence
  band is MEDIUM or HIGH; LOW always yields CLARIFY
* callback identifiers (from inline keyboard buttons) -> action

Routing is a pure lookup with no state. Unmatched intents become
CUSTOM_REPORT (the name is tried as an ERPNext report, which degrades to
FALLBACK if that fails); unmatched callbacks become UNKNOWN_CALLBACK.

Usage:
    router = IntentRouter()
    decision = router.route(intent, entities, classify_confidence(intent))
    handler = dispatch[decision.action]
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from erpbot.nlu.confidence import ConfidenceBand
from erpbot.schemas.nlu_schema import Entity, IntentResult

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Everything an inbound event can be dispatched to."""
    CLARIFY = "clarify"
    CREATE_CUSTOMER = "create_customer"
    LIST_CUSTOMERS = "list_customers"
    GET_QUOTATIONS = "get_quotations"
    GET_INVOICES = "get_invoices"
    CREATE_QUOTATION = "create_quotation"
    REPORT = "report"
    CUSTOM_REPORT = "custom_report"
    HELP = "help"
    GREET = "greet"
    FALLBACK = "fallback"
    # Menu-only actions
    PROMPT_CREATE_CUSTOMER = "prompt_create_customer"
    PROMPT_CREATE_QUOTATION = "prompt_create_quotation"
    REPORTS_MENU = "reports_menu"
    POS_REPORTS_MENU = "pos_reports_menu"
    MAIN_MENU = "main_menu"
    UNKNOWN_CALLBACK = "unknown_callback"


class ReportType(str, Enum):
    """Known report kinds. Any other string is treated as an ERPNext report name."""
    SALES = "sales"
    CUSTOMERS = "customers"
    PURCHASES = "purchases"
    INVOICES = "invoices"
    QUOTATIONS = "quotations"
    STOCK = "stock"
    ITEMS = "items"
    DASHBOARD = "dashboard"
    FINANCIAL = "financial"
    METRICS = "metrics"
    POS_SALES = "pos_sales"
    POS_ITEMS = "pos_items"
    POS_CASHIERS = "pos_cashiers"
    POS_TODAY = "pos_today"
    POS_DASHBOARD = "pos_dashboard"


@dataclass(frozen=True)
class Route:
    """Table entry: the action plus the report kind for REPORT routes."""
    action: Action
    report_type: Optional[ReportType] = None


@dataclass
class RouteDecision:
    """Result of routing one event."""
    action: Action
    intent_name: Optional[str] = None
    confidence: Optional[float] = None
    report_type: Optional[ReportType] = None
    report_name: Optional[str] = None
    entities: list[Entity] = field(default_factory=list)


def _report(report_type: ReportType) -> Route:
    return Route(Action.REPORT, report_type)


INTENT_ROUTES: dict[str, Route] = {
    "create_customer": Route(Action.CREATE_CUSTOMER),
    "list_customers": Route(Action.LIST_CUSTOMERS),
    "get_quotation": Route(Action.GET_QUOTATIONS),
    "get_quotations": Route(Action.GET_QUOTATIONS),
    "get_invoices": Route(Action.GET_INVOICES),
    "create_quotation": Route(Action.CREATE_QUOTATION),
    "get_report": _report(ReportType.SALES),
    "sales_report": _report(ReportType.SALES),
    "customer_report": _report(ReportType.CUSTOMERS),
    "purchase_report": _report(ReportType.PURCHASES),
    "invoice_report": _report(ReportType.INVOICES),
    "quotation_report": _report(ReportType.QUOTATIONS),
    "stock_report": _report(ReportType.STOCK),
    "items_report": _report(ReportType.ITEMS),
    "dashboard": _report(ReportType.DASHBOARD),
    "financial_report": _report(ReportType.FINANCIAL),
    "metrics": _report(ReportType.METRICS),
    "pos_report": _report(ReportType.POS_SALES),
    "pos_dashboard": _report(ReportType.POS_DASHBOARD),
    "help": Route(Action.HELP),
    "greet": Route(Action.GREET),
}

CALLBACK_ROUTES: dict[str, Route] = {
    "create_customer": Route(Action.PROMPT_CREATE_CUSTOMER),
    "list_customers": Route(Action.LIST_CUSTOMERS),
    "get_quotation": Route(Action.GET_QUOTATIONS),
    "get_invoices": Route(Action.GET_INVOICES),
    "create_quotation": Route(Action.PROMPT_CREATE_QUOTATION),
    "sales_report": _report(ReportType.SALES),
    "customer_report": _report(ReportType.CUSTOMERS),
    "purchase_report": _report(ReportType.PURCHASES),
    "invoice_report": _report(ReportType.INVOICES),
    "quotation_report": _report(ReportType.QUOTATIONS),
    "stock_report": _report(ReportType.STOCK),
    "items_report": _report(ReportType.ITEMS),
    "dashboard": _report(ReportType.DASHBOARD),
    "financial_report": _report(ReportType.FINANCIAL),
    "metrics": _report(ReportType.METRICS),
    "pos_sales_report": _report(ReportType.POS_SALES),
    "pos_items_report": _report(ReportType.POS_ITEMS),
    "pos_cashiers_report": _report(ReportType.POS_CASHIERS),
    "pos_today": _report(ReportType.POS_TODAY),
    "pos_dashboard": _report(ReportType.POS_DASHBOARD),
    "reports_menu": Route(Action.REPORTS_MENU),
    "pos_reports_menu": Route(Action.POS_REPORTS_MENU),
    "back_to_main": Route(Action.MAIN_MENU),
    "help": Route(Action.HELP),
}

# Every action either table can produce, plus the routing outcomes.
ROUTABLE_ACTIONS: frozenset[Action] = frozenset(
    [r.action for r in INTENT_ROUTES.values()]
    + [r.action for r in CALLBACK_ROUTES.values()]
    + [Action.CLARIFY, Action.CUSTOM_REPORT, Action.FALLBACK, Action.UNKNOWN_CALLBACK]
)


class IntentRouter:
    """Stateless dispatcher from classified intents and callback ids to actions."""

    def __init__(
        self,
        intent_routes: Optional[dict[str, Route]] = None,
        callback_routes: Optional[dict[str, Route]] = None,
    ) -> None:
        self.intent_routes = intent_routes if intent_routes is not None else INTENT_ROUTES
        self.callback_routes = (
            callback_routes if callback_routes is not None else CALLBACK_ROUTES
        )

    def route(
        self,
        intent: Optional[IntentResult],
        entities: Sequence[Entity],
        band: ConfidenceBand,
    ) -> RouteDecision:
        """Pick the action for a classified free-text message."""
        name = intent.name if intent else None
        confidence = intent.confidence if intent else None

        if band == ConfidenceBand.LOW or intent is None:
            logger.info("Low confidence for intent %s (%s)", name, confidence)
            return RouteDecision(Action.CLARIFY, intent_name=name, confidence=confidence)

        route = self.intent_routes.get(name or "")
        if route is not None:
            logger.debug("Intent '%s' routed to %s", name, route.action.value)
            return RouteDecision(
                route.action,
                intent_name=name,
                confidence=confidence,
                report_type=route.report_type,
                entities=list(entities),
            )

        if name:
            logger.debug("Intent '%s' has no route, trying it as a report name", name)
            return RouteDecision(
                Action.CUSTOM_REPORT,
                intent_name=name,
                confidence=confidence,
                report_name=name,
                entities=list(entities),
            )

        return RouteDecision(Action.FALLBACK, intent_name=name, confidence=confidence)

    def route_callback(self, data: Optional[str]) -> RouteDecision:
        """Pick the action for an inline keyboard button press."""
        route = self.callback_routes.get(data or "")
        if route is None:
            logger.warning("Unknown callback data: %s", data)
            return RouteDecision(Action.UNKNOWN_CALLBACK, intent_name=data)
        return RouteDecision(route.action, intent_name=data, report_type=route.report_type)
