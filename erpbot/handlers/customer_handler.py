"""
Customer, quotation-list and invoice-list actions.

Customer creation validates the NLU entities first; nothing is written
unless validation passes. Backend failures on customers never reach this
layer because CustomerService falls back to the local store. Listing
quotations and invoices needs ERPNext: without it the fixed "feature
unavailable" reply is sent and no backend call is attempted.
"""

from typing import Optional

from erpbot.conversation.validators import validate_customer_creation
from erpbot.formatting.response_builder import (
    build_customer_created_response,
    build_customer_list_response,
    build_error_response,
    build_feature_unavailable_response,
    build_invoice_list_response,
    build_quotation_list_response,
    build_validation_error_response,
)
from erpbot.handlers.base import EventContext
from erpbot.logging_context import get_session_logger
from erpbot.nlu.parser import customer_data_from_entities
from erpbot.schemas.customer_schema import CustomerData
from erpbot.services.customer_service import CustomerService
from erpbot.services.erpnext_client import BackendError
from erpbot.services.erpnext_service import ERPNextService

logger = get_session_logger(__name__)


class CustomerHandler:
    """Actions over customers and the customer-facing document lists."""

    def __init__(self, customers: CustomerService, backend: Optional[ERPNextService] = None) -> None:
        self.customers = customers
        self.backend = backend

    async def _backend_available(self) -> bool:
        return self.backend is not None and await self.backend.available()

    async def create(self, ctx: EventContext) -> None:
        validation = validate_customer_creation(ctx.entities)
        if not validation.is_valid:
            await ctx.reply(build_validation_error_response(validation.errors))
            return

        # Optional phone/address entities ride along with the validated pair
        data = CustomerData(**{**customer_data_from_entities(ctx.entities), **validation.data})
        customer = await self.customers.create(data)
        await ctx.reply(build_customer_created_response(customer))

    async def list(self, ctx: EventContext) -> None:
        await ctx.reply(build_customer_list_response(await self.customers.list()))

    async def quotations(self, ctx: EventContext) -> None:
        if not await self._backend_available():
            await ctx.reply(build_feature_unavailable_response("quotations"))
            return
        try:
            rows = await self.backend.get_quotations()  # type: ignore[union-attr]
        except BackendError as exc:
            logger.error("Quotation listing failed: %s", exc)
            await ctx.reply(build_error_response("Erreur lors de la récupération des devis."))
            return
        await ctx.reply(build_quotation_list_response(rows))

    async def invoices(self, ctx: EventContext) -> None:
        if not await self._backend_available():
            await ctx.reply(build_feature_unavailable_response("invoices"))
            return
        try:
            rows = await self.backend.get_sales_invoices()  # type: ignore[union-attr]
        except BackendError as exc:
            logger.error("Invoice listing failed: %s", exc)
            await ctx.reply(build_error_response("Erreur lors de la récupération des factures."))
            return
        await ctx.reply(build_invoice_list_response(rows))
