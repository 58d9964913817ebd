from erpbot.services.customer_service import CustomerService
from erpbot.services.customer_store import CustomerNotFoundError, LocalCustomerStore
from erpbot.services.erpnext_client import (
    BackendError,
    BackendUnavailableError,
    ConnectionState,
    ERPNextClient,
)
from erpbot.services.erpnext_service import (
    ERPNextService,
    ItemNotFoundError,
    ReportNotFoundError,
)
from erpbot.services.nlu_client import NLUError, RasaClient

__all__ = [
    "BackendError",
    "BackendUnavailableError",
    "ConnectionState",
    "CustomerNotFoundError",
    "CustomerService",
    "ERPNextClient",
    "ERPNextService",
    "ItemNotFoundError",
    "LocalCustomerStore",
    "NLUError",
    "RasaClient",
    "ReportNotFoundError",
]
