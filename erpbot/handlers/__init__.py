from erpbot.handlers.base import EventContext
from erpbot.handlers.callback_handler import CallbackHandler
from erpbot.handlers.customer_handler import CustomerHandler
from erpbot.handlers.dispatcher import ActionDispatcher, IncompleteDispatchError
from erpbot.handlers.message_handler import MessageHandler
from erpbot.handlers.quotation_handler import QuotationHandler
from erpbot.handlers.report_handler import ReportHandler

__all__ = [
    "ActionDispatcher",
    "CallbackHandler",
    "CustomerHandler",
    "EventContext",
    "IncompleteDispatchError",
    "MessageHandler",
    "QuotationHandler",
    "ReportHandler",
]
