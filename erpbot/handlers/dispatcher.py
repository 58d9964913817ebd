"""
Action dispatch table shared by the message and callback handlers.

Every Action the router can produce is bound to exactly one coroutine.
The table is checked against ROUTABLE_ACTIONS when it is built, so a new
route without a handler fails at startup instead of at the first event.
"""

from typing import Optional

from erpbot.formatting.response_builder import (
    build_clarify_response,
    build_create_customer_prompt,
    build_create_quotation_prompt,
    build_fallback_response,
    build_help_response,
    build_main_menu_response,
    build_pos_reports_menu_response,
    build_reports_menu_response,
    build_unknown_callback_response,
    build_welcome_response,
)
from erpbot.handlers.base import ActionHandler, EventContext
from erpbot.handlers.customer_handler import CustomerHandler
from erpbot.handlers.quotation_handler import QuotationHandler
from erpbot.handlers.report_handler import ReportHandler
from erpbot.logging_context import get_session_logger
from erpbot.routing.router import ROUTABLE_ACTIONS, Action
from erpbot.schemas.reply_schema import Reply
from erpbot.schemas.report_schema import ReportQuery
from erpbot.services.erpnext_client import BackendError

logger = get_session_logger(__name__)


class IncompleteDispatchError(Exception):
    """Raised when a routable action has no handler bound."""


def _static(reply: Reply) -> ActionHandler:
    async def handle(ctx: EventContext) -> None:
        await ctx.reply(reply)

    return handle


class ActionDispatcher:
    """Maps each routed Action to the handler method that serves it."""

    def __init__(
        self,
        customers: CustomerHandler,
        quotations: QuotationHandler,
        reports: ReportHandler,
        overrides: Optional[dict[Action, ActionHandler]] = None,
    ) -> None:
        self.customers = customers
        self.quotations = quotations
        self.reports = reports
        self.table: dict[Action, ActionHandler] = {
            Action.CLARIFY: self._clarify,
            Action.CREATE_CUSTOMER: customers.create,
            Action.LIST_CUSTOMERS: customers.list,
            Action.GET_QUOTATIONS: customers.quotations,
            Action.GET_INVOICES: customers.invoices,
            Action.CREATE_QUOTATION: quotations.create,
            Action.REPORT: self._report,
            Action.CUSTOM_REPORT: self._custom_report,
            Action.HELP: _static(build_help_response()),
            Action.GREET: _static(build_welcome_response()),
            Action.FALLBACK: self._fallback,
            Action.PROMPT_CREATE_CUSTOMER: _static(build_create_customer_prompt()),
            Action.PROMPT_CREATE_QUOTATION: _static(build_create_quotation_prompt()),
            Action.REPORTS_MENU: _static(build_reports_menu_response()),
            Action.POS_REPORTS_MENU: _static(build_pos_reports_menu_response()),
            Action.MAIN_MENU: _static(build_main_menu_response()),
            Action.UNKNOWN_CALLBACK: _static(build_unknown_callback_response()),
        }
        self.table.update(overrides or {})

        missing = ROUTABLE_ACTIONS - set(self.table)
        if missing:
            raise IncompleteDispatchError(
                f"No handler for actions: {sorted(a.value for a in missing)}"
            )

    async def dispatch(self, ctx: EventContext) -> None:
        handler = self.table[ctx.decision.action]
        logger.debug("Dispatching %s", ctx.decision.action.value)
        await handler(ctx)

    # ------------------------------------------------------------------ #
    # Actions that need the routing decision
    # ------------------------------------------------------------------ #

    async def _clarify(self, ctx: EventContext) -> None:
        await ctx.reply(build_clarify_response(ctx.decision.intent_name, ctx.decision.confidence))

    async def _fallback(self, ctx: EventContext) -> None:
        await ctx.reply(build_fallback_response())

    async def _report(self, ctx: EventContext) -> None:
        query = ReportQuery(report_type=ctx.decision.report_type)
        await self.reports.generate(ctx, query)

    async def _custom_report(self, ctx: EventContext) -> None:
        name = ctx.decision.report_name or ctx.decision.intent_name or ""
        try:
            await self.reports.generate_custom(ctx, name)
        except BackendError as exc:
            logger.info("Intent '%s' is not a usable report (%s), using fallback", name, exc)
            ctx.fallback_used = True
            await ctx.reply(build_fallback_response())
