"""
Application wiring.

``build_context`` assembles every component around a ChatTransport and
is what tests and the console demo use. ``build_application`` wraps that
context in a python-telegram-bot Application whose update callbacks hand
each event to the message or callback handler. Updates are processed
concurrently, one asyncio task per update.
"""

from dataclasses import dataclass
from typing import Optional

from telegram import Update
from telegram.ext import Application, CallbackQueryHandler, ContextTypes, filters
from telegram.ext import MessageHandler as TelegramMessageHandler

from erpbot.config import AppConfig, settings
from erpbot.conversation.guardrails import GuardrailPipeline, RateLimiter
from erpbot.handlers.callback_handler import CallbackHandler
from erpbot.handlers.customer_handler import CustomerHandler
from erpbot.handlers.dispatcher import ActionDispatcher
from erpbot.handlers.message_handler import MessageHandler
from erpbot.handlers.quotation_handler import QuotationHandler
from erpbot.handlers.report_handler import ReportHandler
from erpbot.logging_context import get_session_logger
from erpbot.services.customer_service import CustomerService
from erpbot.services.customer_store import LocalCustomerStore
from erpbot.services.erpnext_client import ERPNextClient
from erpbot.services.erpnext_service import ERPNextService
from erpbot.services.nlu_client import RasaClient
from erpbot.transport import ChatTransport, TelegramTransport

logger = get_session_logger(__name__)

APP_KEY = "app"


@dataclass
class AppContext:
    """Every long-lived component of a running assistant."""
    transport: ChatTransport
    nlu: RasaClient
    store: LocalCustomerStore
    rate_limiter: RateLimiter
    erpnext_client: Optional[ERPNextClient]
    backend: Optional[ERPNextService]
    customers: CustomerService
    dispatcher: ActionDispatcher
    message_handler: MessageHandler
    callback_handler: CallbackHandler

    async def connect(self) -> None:
        if self.erpnext_client is None:
            logger.info("ERPNext not configured, running with the local customer store only")
            return
        await self.erpnext_client.connect()

    async def aclose(self) -> None:
        await self.nlu.aclose()
        if self.erpnext_client is not None:
            await self.erpnext_client.aclose()


def build_context(
    transport: ChatTransport,
    nlu: Optional[RasaClient] = None,
    erpnext_client: Optional[ERPNextClient] = None,
    config: AppConfig = settings,
) -> AppContext:
    """Wire the handlers around ``transport``.

    An ERPNext client is created only when the backend is fully configured;
    otherwise the assistant runs in local-store mode.
    """
    if erpnext_client is None and config.backend.configured:
        erpnext_client = ERPNextClient(
            url=config.backend.url,
            api_key=config.backend.api_key,
            api_secret=config.backend.api_secret,
            timeout_sec=config.backend.timeout_sec,
            reprobe_failures=config.backend.reprobe_failures,
            reprobe_interval_sec=config.backend.reprobe_interval_sec,
        )
    nlu = nlu or RasaClient(
        rasa_url=config.nlu.rasa_url,
        webhook_path=config.nlu.webhook_path,
        timeout_sec=config.nlu.timeout_sec,
    )

    backend = None
    if erpnext_client is not None:
        backend = ERPNextService(
            erpnext_client,
            company=config.backend.company,
            currency=config.backend.currency,
            validity_days=config.backend.quotation_validity_days,
            low_stock_threshold=config.reports.low_stock_threshold,
        )

    store = LocalCustomerStore()
    customers = CustomerService(store, backend)
    dispatcher = ActionDispatcher(
        customers=CustomerHandler(customers, backend),
        quotations=QuotationHandler(backend),
        reports=ReportHandler(backend, display_limit=config.reports.display_limit),
    )
    rate_limiter = RateLimiter(
        max_messages=config.guardrails.rate_limit_max_messages,
        window_sec=config.guardrails.rate_limit_window_sec,
    )
    guardrails = GuardrailPipeline(rate_limiter, max_length=config.guardrails.max_message_length)

    return AppContext(
        transport=transport,
        nlu=nlu,
        store=store,
        rate_limiter=rate_limiter,
        erpnext_client=erpnext_client,
        backend=backend,
        customers=customers,
        dispatcher=dispatcher,
        message_handler=MessageHandler(transport, nlu, dispatcher, guardrails),
        callback_handler=CallbackHandler(transport, dispatcher),
    )


# ---------------------------------------------------------------------- #
# python-telegram-bot callbacks
# ---------------------------------------------------------------------- #


async def on_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    chat = update.effective_chat
    if message is None or chat is None:
        return
    reply_to = message.reply_to_message
    app: AppContext = context.application.bot_data[APP_KEY]
    await app.message_handler.handle_message(
        chat.id, message.text, reply_to.text if reply_to is not None else None
    )


async def on_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    chat = update.effective_chat
    if query is None or chat is None:
        return
    app: AppContext = context.application.bot_data[APP_KEY]
    await app.callback_handler.handle_callback(chat.id, query.id, query.data)


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Unhandled error while processing update %s", update, exc_info=context.error)


async def _post_init(application: Application) -> None:
    await application.bot_data[APP_KEY].connect()


async def _post_shutdown(application: Application) -> None:
    await application.bot_data[APP_KEY].aclose()


def build_application(config: AppConfig = settings) -> Application:
    """Build the Telegram application with the assistant's handlers registered."""
    application = (
        Application.builder()
        .token(config.telegram.token)
        .concurrent_updates(True)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )
    application.bot_data[APP_KEY] = build_context(TelegramTransport(application.bot), config=config)
    application.add_handler(TelegramMessageHandler(filters.TEXT, on_message))
    application.add_handler(CallbackQueryHandler(on_callback))
    application.add_error_handler(on_error)
    return application
