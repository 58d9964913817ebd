"""
Quotation actions: create from free text, show details, resend by email.

Creation runs in two stages. The quotation itself must succeed; the PDF
and email step afterwards is best-effort, and its failure only adds a
warning to an otherwise successful reply.
"""

from typing import Optional, Sequence, Union

from erpbot.conversation.validators import EMAIL_INVALID, validate_quotation
from erpbot.formatting.response_builder import (
    build_error_response,
    build_feature_unavailable_response,
    build_quotation_created_response,
    build_validation_error_response,
    format_quotation_summary,
    main_menu_keyboard,
)
from erpbot.handlers.base import EventContext
from erpbot.logging_context import get_session_logger
from erpbot.nlu.extractors import (
    EntityExtractor,
    QuotationCustomerExtractor,
    QuotationItemsExtractor,
    split_quotation_text,
)
from erpbot.nlu.parser import entity_value
from erpbot.schemas.nlu_schema import Entity
from erpbot.schemas.quotation_schema import QuotationCustomer, QuotationItem, QuotationRequest
from erpbot.schemas.reply_schema import Reply
from erpbot.services.erpnext_client import BackendError
from erpbot.services.erpnext_service import ERPNextService, ItemNotFoundError
from erpbot.utils import is_blank, is_valid_email

logger = get_session_logger(__name__)

PROGRESS_TEXT = "🔄 Création du devis en cours..."
ITEM_HINT = (
    "Vérifiez l'orthographe des articles ou contactez votre administrateur "
    "pour ajouter les articles manquants."
)


class QuotationHandler:
    """Builds quotation requests from text and delegates them to ERPNext."""

    def __init__(
        self,
        backend: Optional[ERPNextService] = None,
        items_extractor: Optional[EntityExtractor[list[QuotationItem]]] = None,
        customer_extractor: Optional[QuotationCustomerExtractor] = None,
    ) -> None:
        self.backend = backend
        self.items_extractor = items_extractor or QuotationItemsExtractor()
        self.customer_extractor = customer_extractor or QuotationCustomerExtractor()

    async def _backend_available(self) -> bool:
        return self.backend is not None and await self.backend.available()

    async def prepare(
        self, text: str, entities: Sequence[Entity] = ()
    ) -> Union[QuotationRequest, Reply]:
        """
        Extract and validate a quotation request.

        Entities supplied by the NLU layer take precedence over the regex
        extraction. Returns the request, or the reply to send instead.
        """
        item_text, customer = split_quotation_text(text, self.customer_extractor)
        customer = customer or QuotationCustomer()
        name = entity_value(list(entities), "customer_name")
        email = entity_value(list(entities), "email")
        if not is_blank(name):
            customer = customer.model_copy(update={"name": name})
        if not is_blank(email):
            customer = customer.model_copy(update={"email": email})

        items = self.items_extractor.extract(item_text)
        validation = validate_quotation(customer, items)
        if not validation.is_valid:
            return build_validation_error_response(validation.errors)

        if not await self._backend_available():
            return build_feature_unavailable_response("quotations")

        valid_customer = validation.data["customer"]
        return QuotationRequest(
            customer_name=valid_customer.name,
            customer_email=valid_customer.email,
            items=validation.data["items"],
        )

    async def create(self, ctx: EventContext) -> None:
        prepared = await self.prepare(ctx.text, ctx.entities)
        if isinstance(prepared, Reply):
            await ctx.reply(prepared)
            return

        progress_id = await ctx.reply(Reply(text=PROGRESS_TEXT, parse_mode=None))
        try:
            quotation = await self.backend.create_quotation_with_items(prepared)  # type: ignore[union-attr]
        except ItemNotFoundError as exc:
            logger.warning("Quotation rejected: %s", exc)
            await ctx.discard(progress_id)
            await ctx.reply(build_error_response(f"Erreur lors de la création du devis: {exc}\n\n{ITEM_HINT}"))
            return
        except BackendError as exc:
            logger.error("Quotation creation failed: %s", exc)
            await ctx.discard(progress_id)
            await ctx.reply(build_error_response(f"Erreur lors de la création du devis: {exc}"))
            return

        email_sent = await self._deliver(quotation.id, prepared.customer_email, prepared.customer_name)
        await ctx.replace(progress_id, build_quotation_created_response(quotation, email_sent))

    async def _deliver(self, quotation_id: str, email: str, customer_name: str) -> bool:
        try:
            await self.backend.generate_quotation_pdf(quotation_id)  # type: ignore[union-attr]
            await self.backend.send_quotation_email(  # type: ignore[union-attr]
                quotation_id,
                email,
                f"Bonjour {customer_name},\n\nVeuillez trouver ci-joint votre devis "
                "personnalisé.\n\nCordialement,\nVotre équipe commerciale",
            )
        except BackendError as exc:
            logger.error("Quotation %s created but email delivery failed: %s", quotation_id, exc)
            return False
        return True

    async def details(self, ctx: EventContext, quotation_id: str) -> None:
        if not await self._backend_available():
            await ctx.reply(build_feature_unavailable_response("quotations"))
            return
        try:
            quotation = await self.backend.get_quotation_details(quotation_id)  # type: ignore[union-attr]
        except BackendError as exc:
            logger.error("Quotation %s lookup failed: %s", quotation_id, exc)
            if exc.status_code == 404:
                await ctx.reply(build_error_response("Devis non trouvé"))
            else:
                await ctx.reply(build_error_response(f"Erreur lors de la récupération du devis: {exc}"))
            return
        summary = format_quotation_summary(quotation, title="Devis")
        await ctx.reply(Reply(text=summary, keyboard=main_menu_keyboard()))

    async def resend(self, ctx: EventContext, quotation_id: str, email: Optional[str] = None) -> None:
        if email is not None and not is_valid_email(email):
            await ctx.reply(build_validation_error_response([EMAIL_INVALID]))
            return
        if not await self._backend_available():
            await ctx.reply(build_feature_unavailable_response("quotations"))
            return
        try:
            recipient = email
            if recipient is None:
                quotation = await self.backend.get_quotation_details(quotation_id)  # type: ignore[union-attr]
                recipient = quotation.customer_email
            if not recipient:
                await ctx.reply(
                    build_error_response("Email du client non trouvé. Veuillez spécifier l'email.")
                )
                return
            await self.backend.send_quotation_email(  # type: ignore[union-attr]
                quotation_id,
                recipient,
                f"Bonjour,\n\nRetrouvez ci-joint votre devis {quotation_id}.\n\n"
                "Cordialement,\nVotre équipe commerciale",
            )
        except BackendError as exc:
            logger.error("Resending quotation %s failed: %s", quotation_id, exc)
            await ctx.reply(build_error_response(f"Erreur lors du renvoi du devis: {exc}"))
            return
        await ctx.reply(Reply(text=f"✅ Devis {quotation_id} renvoyé avec succès à {recipient}", parse_mode=None))
