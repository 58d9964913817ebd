"""Shared test fixtures and helpers."""

from dataclasses import dataclass
from datetime import date
from itertools import count
from typing import Any, Optional

import pytest

from erpbot.conversation.guardrails import GuardrailPipeline, RateLimiter
from erpbot.conversation.state_machine import EventStateMachine
from erpbot.handlers.callback_handler import CallbackHandler
from erpbot.handlers.customer_handler import CustomerHandler
from erpbot.handlers.dispatcher import ActionDispatcher
from erpbot.handlers.message_handler import MessageHandler
from erpbot.handlers.quotation_handler import QuotationHandler
from erpbot.handlers.report_handler import ReportHandler
from erpbot.schemas.customer_schema import CustomerData, CustomerRecord
from erpbot.schemas.quotation_schema import Quotation, QuotationLine, QuotationRequest
from erpbot.schemas.reply_schema import Reply
from erpbot.services.customer_service import CustomerService
from erpbot.services.customer_store import LocalCustomerStore
from erpbot.services.nlu_client import NLUError


class FakeTransport:
    """Records every outbound verb instead of calling Telegram."""

    def __init__(self) -> None:
        self.sent: list[tuple[Any, Reply]] = []
        self.edited: list[tuple[Any, int, Reply]] = []
        self.answered: list[str] = []
        self.deleted: list[int] = []
        self._ids = count(100)

    async def send_message(self, chat_id, reply: Reply) -> Optional[int]:
        self.sent.append((chat_id, reply))
        return next(self._ids)

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        self.answered.append(callback_id)

    async def edit_message(self, chat_id, message_id: int, reply: Reply) -> None:
        self.edited.append((chat_id, message_id, reply))

    async def delete_message(self, chat_id, message_id: int) -> bool:
        self.deleted.append(message_id)
        return True

    @property
    def replies(self) -> list[Reply]:
        return [reply for _, reply in self.sent]

    @property
    def last(self) -> Reply:
        return self.sent[-1][1]


class FakeNLU:
    """Returns a canned normalized result, or raises NLUError when ``error`` is set."""

    def __init__(self) -> None:
        self.result: dict[str, Any] = nlu_result("greet", 0.99)
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    async def parse_message(self, text: str, session_id: str = "test") -> dict[str, Any]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.result

    async def aclose(self) -> None:
        pass


class FakeBackend:
    """In-memory stand-in for ERPNextService.

    ``calls`` records every method invoked; ``failures`` maps a method name
    to the exception it should raise.
    """

    def __init__(self, available: bool = True) -> None:
        self.is_up = available
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.customers: list[CustomerRecord] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def today(self) -> date:
        return date(2025, 3, 15)

    async def available(self) -> bool:
        return self.is_up

    async def create_customer(self, data: CustomerData) -> CustomerRecord:
        self._record("create_customer")
        record = CustomerRecord(id=f"CUST-{len(self.customers) + 1}", name=data.name or "", email=data.email)
        self.customers.append(record)
        return record

    async def list_customers(self, limit: int = 50) -> list[CustomerRecord]:
        self._record("list_customers")
        return list(self.customers)

    async def get_customer(self, customer_id: str) -> CustomerRecord:
        self._record("get_customer")
        return self.customers[0]

    async def update_customer(self, customer_id: str, data: CustomerData) -> CustomerRecord:
        self._record("update_customer")
        return CustomerRecord(id=customer_id, name=data.name or "")

    async def delete_customer(self, customer_id: str) -> None:
        self._record("delete_customer")

    async def get_quotations(self, customer_id: Optional[str] = None) -> list[dict[str, Any]]:
        self._record("get_quotations")
        return self.rows.get("quotations", [])

    async def get_sales_invoices(self, customer_id: Optional[str] = None) -> list[dict[str, Any]]:
        self._record("get_sales_invoices")
        return self.rows.get("invoices", [])

    async def create_quotation_with_items(self, request: QuotationRequest) -> Quotation:
        self._record("create_quotation_with_items")
        lines = [
            QuotationLine(quantity=i.quantity, item_name=i.item_name, unit_price=2.0,
                          total_price=2.0 * i.quantity)
            for i in request.items
        ]
        return Quotation(
            id="SAL-QTN-0001",
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            items=lines,
            total=sum(line.total_price or 0 for line in lines),
            status="Draft",
        )

    async def generate_quotation_pdf(self, quotation_id: str) -> bytes:
        self._record("generate_quotation_pdf")
        return b"%PDF"

    async def send_quotation_email(self, quotation_id: str, recipient: str, message: str = "") -> Any:
        self._record("send_quotation_email")
        return {"name": "COMM-1"}

    async def get_quotation_details(self, quotation_id: str) -> Quotation:
        self._record("get_quotation_details")
        return Quotation(id=quotation_id, customer_name="Dupont", customer_email="dupont@example.com")

    async def _report(self, name: str) -> list[dict[str, Any]]:
        self._record(name)
        return self.rows.get(name, [])

    async def get_sales_report(self, filters=None, limit: int = 50):
        return await self._report("get_sales_report")

    async def get_customer_report(self, filters=None, limit: int = 50):
        return await self._report("get_customer_report")

    async def get_purchase_report(self, filters=None, limit: int = 50):
        return await self._report("get_purchase_report")

    async def get_invoice_report(self, filters=None, limit: int = 50):
        return await self._report("get_invoice_report")

    async def get_quotation_report(self, filters=None, limit: int = 50):
        return await self._report("get_quotation_report")

    async def get_stock_report(self, filters=None, limit: int = 50):
        return await self._report("get_stock_report")

    async def get_item_report(self, filters=None, limit: int = 50):
        return await self._report("get_item_report")

    async def get_pos_invoice_report(self, filters=None, limit: int = 50):
        return await self._report("get_pos_invoice_report")

    async def get_pos_item_sales_report(self, filters=None, limit: int = 50):
        return await self._report("get_pos_item_sales_report")

    async def get_pos_cashier_report(self, filters=None, limit: int = 50):
        return await self._report("get_pos_cashier_report")

    async def get_custom_report(self, report_name: str, filters=None):
        return await self._report("get_custom_report")

    async def get_dashboard_data(self) -> dict[str, Any]:
        self._record("get_dashboard_data")
        return {"sales": [{"grand_total": 100}], "customers": [{}], "quotations": [], "stock": []}

    async def get_financial_summary(self, period: str = "monthly") -> dict[str, Any]:
        self._record("get_financial_summary")
        return {"period": period, "sales": [{"total": 300}], "purchases": [{"total": 100}]}

    async def get_performance_metrics(self) -> dict[str, Any]:
        self._record("get_performance_metrics")
        return {"total_customers": 4, "total_sales": 1200, "pending_invoices": 2, "low_stock_items": 1}

    async def get_pos_period_report(self, from_date: date, to_date: date) -> dict[str, Any]:
        self._record("get_pos_period_report")
        return {"summary": {"total_sales": 50, "total_invoices": 2, "avg_invoice": 25, "total_cashiers": 1}}

    async def get_pos_dashboard(self) -> dict[str, Any]:
        self._record("get_pos_dashboard")
        return {"today": {"summary": {"total_sales": 50, "total_invoices": 2}}}


@dataclass
class Bot:
    """The handler graph wired around fakes."""
    transport: FakeTransport
    nlu: FakeNLU
    store: LocalCustomerStore
    backend: Optional[FakeBackend]
    dispatcher: ActionDispatcher
    messages: MessageHandler
    callbacks: CallbackHandler


def nlu_result(
    intent: Optional[str], confidence: Optional[float], entities: Optional[dict[str, str]] = None
) -> dict[str, Any]:
    """Helper to build a normalized Rasa result."""
    return {
        "intent": {"name": intent, "confidence": confidence},
        "entities": [{"entity": k, "value": v} for k, v in (entities or {}).items()],
        "text": "",
    }


def make_bot(backend: Optional[FakeBackend] = None, max_messages: int = 100) -> Bot:
    transport = FakeTransport()
    nlu = FakeNLU()
    store = LocalCustomerStore()
    dispatcher = ActionDispatcher(
        customers=CustomerHandler(CustomerService(store, backend), backend),
        quotations=QuotationHandler(backend),
        reports=ReportHandler(backend, display_limit=50),
    )
    guardrails = GuardrailPipeline(RateLimiter(max_messages=max_messages, window_sec=60.0), max_length=4096)
    return Bot(
        transport=transport,
        nlu=nlu,
        store=store,
        backend=backend,
        dispatcher=dispatcher,
        messages=MessageHandler(transport, nlu, dispatcher, guardrails),
        callbacks=CallbackHandler(transport, dispatcher),
    )


@pytest.fixture
def state_machine():
    return EventStateMachine()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def bot():
    """Assistant without ERPNext."""
    return make_bot()


@pytest.fixture
def connected_bot(backend):
    """Assistant with a reachable ERPNext."""
    return make_bot(backend)
