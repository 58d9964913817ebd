"""
Report generation.

Each ReportType maps to one backend query plus one renderer. Failures of
known reports are reported to the user with the upstream error text.
Custom reports (any other name) are different: their failure raises
ReportNotFoundError so the caller can degrade to the fallback reply.
"""

from typing import Any, Awaitable, Callable, Optional

from erpbot.config import settings
from erpbot.formatting.markdown import md
from erpbot.formatting.report_formatter import (
    REPORT_TITLES,
    format_dashboard,
    format_financial_summary,
    format_metrics,
    format_pos_dashboard,
    format_pos_period,
    format_row_report,
)
from erpbot.formatting.response_builder import build_error_response, build_feature_unavailable_response
from erpbot.handlers.base import EventContext
from erpbot.logging_context import get_session_logger
from erpbot.routing.router import ReportType
from erpbot.schemas.reply_schema import Reply
from erpbot.schemas.report_schema import ReportQuery
from erpbot.services.erpnext_client import BackendError, BackendUnavailableError
from erpbot.services.erpnext_service import ERPNextService

logger = get_session_logger(__name__)

ReportRenderer = Callable[[dict[str, Any]], Awaitable[str]]


class ReportHandler:
    """Runs one report per request and replies with its rendered text."""

    def __init__(
        self,
        backend: Optional[ERPNextService] = None,
        display_limit: int = settings.reports.display_limit,
    ) -> None:
        self.backend = backend
        self.display_limit = display_limit
        self._renderers: dict[ReportType, ReportRenderer] = {
            ReportType.SALES: self._rows(lambda b, f: b.get_sales_report(f), ReportType.SALES),
            ReportType.CUSTOMERS: self._rows(lambda b, f: b.get_customer_report(f), ReportType.CUSTOMERS),
            ReportType.PURCHASES: self._rows(lambda b, f: b.get_purchase_report(f), ReportType.PURCHASES),
            ReportType.INVOICES: self._rows(lambda b, f: b.get_invoice_report(f), ReportType.INVOICES),
            ReportType.QUOTATIONS: self._rows(lambda b, f: b.get_quotation_report(f), ReportType.QUOTATIONS),
            ReportType.STOCK: self._rows(lambda b, f: b.get_stock_report(f), ReportType.STOCK),
            ReportType.ITEMS: self._rows(lambda b, f: b.get_item_report(f), ReportType.ITEMS),
            ReportType.POS_SALES: self._rows(lambda b, f: b.get_pos_invoice_report(f), ReportType.POS_SALES),
            ReportType.POS_ITEMS: self._rows(lambda b, f: b.get_pos_item_sales_report(f), ReportType.POS_ITEMS),
            ReportType.POS_CASHIERS: self._rows(
                lambda b, f: b.get_pos_cashier_report(f), ReportType.POS_CASHIERS
            ),
            ReportType.DASHBOARD: self._dashboard,
            ReportType.FINANCIAL: self._financial,
            ReportType.METRICS: self._metrics,
            ReportType.POS_TODAY: self._pos_today,
            ReportType.POS_DASHBOARD: self._pos_dashboard,
        }
        missing = set(ReportType) - set(self._renderers)
        if missing:
            raise ValueError(f"No renderer for report types: {sorted(m.value for m in missing)}")

    @property
    def _backend(self) -> ERPNextService:
        if self.backend is None:
            raise BackendUnavailableError("ERPNext non configuré")
        return self.backend

    async def _backend_available(self) -> bool:
        return self.backend is not None and await self.backend.available()

    # ------------------------------------------------------------------ #
    # Renderers
    # ------------------------------------------------------------------ #

    def _rows(self, query: Callable[[ERPNextService, dict[str, Any]], Awaitable[list[dict[str, Any]]]],
              report_type: ReportType) -> ReportRenderer:
        title, description = REPORT_TITLES[report_type]

        async def render(filters: dict[str, Any]) -> str:
            rows = await query(self._backend, filters)
            return format_row_report(title, description, rows, report_type, self.display_limit)

        return render

    async def _dashboard(self, filters: dict[str, Any]) -> str:
        return format_dashboard(await self._backend.get_dashboard_data())

    async def _financial(self, filters: dict[str, Any]) -> str:
        period = filters.get("period", "monthly")
        return format_financial_summary(await self._backend.get_financial_summary(period))

    async def _metrics(self, filters: dict[str, Any]) -> str:
        return format_metrics(await self._backend.get_performance_metrics())

    async def _pos_today(self, filters: dict[str, Any]) -> str:
        backend = self._backend
        today = backend.today()
        return format_pos_period(await backend.get_pos_period_report(today, today), "Aujourd'hui")

    async def _pos_dashboard(self, filters: dict[str, Any]) -> str:
        return format_pos_dashboard(await self._backend.get_pos_dashboard())

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    async def generate(self, ctx: EventContext, query: ReportQuery) -> None:
        """Run a known report, or a custom one when the type is not a ReportType."""
        if not await self._backend_available():
            await ctx.reply(build_feature_unavailable_response("reports"))
            return

        if query.is_custom:
            try:
                await self.generate_custom(ctx, query.label, query.filters)
            except BackendError as exc:
                await ctx.reply(build_error_response(str(exc)))
            return

        try:
            text = await self._renderers[query.report_type](query.filters)  # type: ignore[index]
        except BackendError as exc:
            logger.error("Report %s failed: %s", query.label, exc)
            await ctx.reply(build_error_response(f"Erreur lors de la génération du rapport: {exc}"))
            return
        await ctx.reply(Reply(text=text))

    async def generate_custom(
        self, ctx: EventContext, report_name: str, filters: Optional[dict[str, Any]] = None
    ) -> None:
        """
        Run an ERPNext query report by name.

        Raises:
            ReportNotFoundError: If the report cannot be run.
            BackendUnavailableError: If ERPNext is not configured or not connected.
        """
        if not await self._backend_available():
            raise BackendUnavailableError("ERPNext non disponible")
        rows = await self._backend.get_custom_report(report_name, filters)
        text = format_row_report(
            f"📊 Rapport: {md(report_name)}", "Rapport personnalisé", rows, display_limit=self.display_limit
        )
        await ctx.reply(Reply(text=text))
