"""
ERPNext domain operations used by the action handlers.

Wraps ERPNextClient with the business vocabulary of the assistant:
customers, catalog lookups, quotations (creation, PDF, email), invoices
and reports. Reports return raw row dicts; aggregate reports (dashboard,
financial summary, metrics, POS period and dashboard) run their
sub-queries concurrently through ``gather_settled`` so one failing query
only blanks its own section.

The service never falls back to local data itself; that policy lives in
CustomerService. Every method raises BackendError (or a subclass) on
failure and BackendUnavailableError when no client is configured.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

from erpbot.config import settings
from erpbot.schemas.customer_schema import CustomerData, CustomerRecord
from erpbot.schemas.quotation_schema import Quotation, QuotationLine, QuotationRequest
from erpbot.services.erpnext_client import (
    BackendError,
    BackendUnavailableError,
    ERPNextClient,
)
from erpbot.utils import gather_settled

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = ["name", "customer_name", "email_id", "mobile_no", "creation"]
ITEM_LOOKUP_FIELDS = [
    "name", "item_name", "item_code", "valuation_rate", "last_purchase_rate", "stock_uom",
]
POS_INVOICE_FIELDS = [
    "name", "customer", "posting_date", "posting_time", "total", "grand_total",
    "paid_amount", "change_amount", "owner", "status",
]
POS_ITEM_FIELDS = [
    "name",
    "posting_date",
    "`tabPOS Invoice Item`.item_code",
    "`tabPOS Invoice Item`.item_name",
    "`tabPOS Invoice Item`.qty",
    "`tabPOS Invoice Item`.amount",
]


class ItemNotFoundError(BackendError):
    """Raised when a requested item matches nothing in the catalog."""

    def __init__(self, item_name: str) -> None:
        super().__init__(f"Article non trouvé: {item_name}")
        self.item_name = item_name


class ReportNotFoundError(BackendError):
    """Raised when a named ERPNext query report cannot be run."""

    def __init__(self, report_name: str) -> None:
        super().__init__(f'Rapport "{report_name}" non trouvé')
        self.report_name = report_name


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _customer_from_doc(doc: dict[str, Any]) -> CustomerRecord:
    return CustomerRecord(
        id=str(doc.get("name") or ""),
        name=doc.get("customer_name") or doc.get("name") or "",
        email=doc.get("email_id"),
        phone=doc.get("mobile_no"),
        created_at=doc.get("creation"),
    )


def _item_rate(item: dict[str, Any]) -> float:
    return _number(item.get("valuation_rate") or item.get("last_purchase_rate"))


# ---------------------------------------------------------------------- #
# POS aggregation helpers
# ---------------------------------------------------------------------- #

def aggregate_item_lines(lines: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Group POS invoice item lines by item code, best sellers first."""
    grouped: dict[str, dict[str, Any]] = {}
    invoices: dict[str, set[str]] = defaultdict(set)
    for line in lines:
        code = line.get("item_code")
        if not code:
            continue
        entry = grouped.setdefault(code, {
            "item_code": code,
            "item_name": line.get("item_name") or code,
            "total_qty": 0.0,
            "total_amount": 0.0,
            "last_sale": None,
        })
        entry["total_qty"] += _number(line.get("qty"))
        entry["total_amount"] += _number(line.get("amount"))
        posted = line.get("posting_date")
        if posted and (entry["last_sale"] is None or str(posted) > str(entry["last_sale"])):
            entry["last_sale"] = posted
        invoices[code].add(str(line.get("name")))

    for code, entry in grouped.items():
        entry["sales_count"] = len(invoices[code])
        qty = entry["total_qty"]
        entry["avg_price"] = entry["total_amount"] / qty if qty else 0.0
    return sorted(grouped.values(), key=lambda e: e["total_qty"], reverse=True)


def aggregate_cashiers(invoices: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Group POS invoices by cashier, highest sales first."""
    grouped: dict[str, dict[str, Any]] = {}
    for invoice in invoices:
        cashier = invoice.get("cashier") or invoice.get("owner") or "N/A"
        entry = grouped.setdefault(cashier, {
            "cashier": cashier, "total_invoices": 0, "total_sales": 0.0, "total_paid": 0.0,
        })
        entry["total_invoices"] += 1
        entry["total_sales"] += _number(invoice.get("grand_total") or invoice.get("total"))
        entry["total_paid"] += _number(invoice.get("paid_amount"))
    return sorted(grouped.values(), key=lambda e: e["total_sales"], reverse=True)


def summarize_pos_invoices(invoices: list[dict[str, Any]]) -> dict[str, Any]:
    total_sales = sum(_number(i.get("grand_total") or i.get("total")) for i in invoices)
    count = len(invoices)
    cashiers = {i.get("cashier") or i.get("owner") for i in invoices}
    return {
        "total_sales": total_sales,
        "total_invoices": count,
        "avg_invoice": total_sales / count if count else 0.0,
        "total_cashiers": len(cashiers - {None}),
    }


class ERPNextService:
    """Business operations over the ERPNext REST API."""

    def __init__(
        self,
        client: Optional[ERPNextClient],
        company: str = settings.backend.company,
        currency: str = settings.backend.currency,
        validity_days: int = settings.backend.quotation_validity_days,
        low_stock_threshold: float = settings.reports.low_stock_threshold,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._client = client
        self.company = company
        self.currency = currency
        self.validity_days = validity_days
        self.low_stock_threshold = low_stock_threshold
        self._today = today

    def today(self) -> date:
        return self._today()

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def available(self) -> bool:
        """True when a client is configured and currently connected."""
        if self._client is None:
            return False
        return await self._client.is_available()

    @property
    def client(self) -> ERPNextClient:
        if self._client is None:
            raise BackendUnavailableError("ERPNext non configuré")
        return self._client

    # ------------------------------------------------------------------ #
    # Customers
    # ------------------------------------------------------------------ #

    async def create_customer(self, data: CustomerData) -> CustomerRecord:
        fields: dict[str, Any] = {
            "customer_name": data.name,
            "customer_type": "Individual",
            "customer_group": "Individual",
            "territory": "Rest Of The World",
        }
        if data.email:
            fields["email_id"] = data.email
        if data.phone:
            fields["mobile_no"] = data.phone

        doc = await self.client.insert("Customer", fields)
        customer = _customer_from_doc(doc)

        if data.address:
            await self.client.insert("Address", {
                "address_title": data.name,
                "address_type": "Billing",
                "address_line1": data.address,
                "city": "Unknown",
                "country": "Tunisia",
                "links": [{"link_doctype": "Customer", "link_name": customer.id}],
            })
            customer = customer.model_copy(update={"address": data.address})

        logger.info("Customer created in ERPNext: %s (%s)", customer.name, customer.id)
        return customer

    async def get_customer(self, customer_id: str) -> CustomerRecord:
        return _customer_from_doc(await self.client.get("Customer", customer_id))

    async def list_customers(self, limit: int = 50) -> list[CustomerRecord]:
        rows = await self.client.get_list(
            "Customer", fields=CUSTOMER_FIELDS, order_by="creation desc", limit=limit
        )
        return [_customer_from_doc(row) for row in rows]

    async def update_customer(self, customer_id: str, data: CustomerData) -> CustomerRecord:
        fields: dict[str, Any] = {}
        if data.name:
            fields["customer_name"] = data.name
        if data.email:
            fields["email_id"] = data.email
        if data.phone:
            fields["mobile_no"] = data.phone
        doc = await self.client.set_fields("Customer", customer_id, fields)
        customer = _customer_from_doc(doc)
        return customer.model_copy(update={"updated_at": _now_iso()})

    async def delete_customer(self, customer_id: str) -> None:
        await self.client.delete("Customer", customer_id)

    async def find_customer_by_name(self, name: str) -> Optional[CustomerRecord]:
        rows = await self.client.get_list(
            "Customer",
            fields=["name", "customer_name", "email_id"],
            filters=[["customer_name", "like", f"%{name}%"]],
            limit=1,
        )
        return _customer_from_doc(rows[0]) if rows else None

    async def find_item_by_name(self, name: str) -> Optional[dict[str, Any]]:
        """Exact (case-insensitive) match first, then substring match."""
        for pattern in (name, f"%{name}%"):
            rows = await self.client.get_list(
                "Item",
                fields=ITEM_LOOKUP_FIELDS,
                filters=[["item_name", "like", pattern]],
                limit=5,
            )
            if rows:
                return rows[0]
        return None

    # ------------------------------------------------------------------ #
    # Quotations and invoices
    # ------------------------------------------------------------------ #

    async def create_quotation_with_items(self, request: QuotationRequest) -> Quotation:
        """
        Resolve every item, ensure the customer exists, then insert the quotation.

        Raises:
            ItemNotFoundError: If any requested item matches nothing.
            BackendError: If any backend call fails.
        """
        lines: list[dict[str, Any]] = []
        for requested in request.items:
            item = await self.find_item_by_name(requested.item_name)
            if item is None:
                raise ItemNotFoundError(requested.item_name)
            rate = _item_rate(item)
            lines.append({
                "item_code": item.get("item_code") or item.get("name"),
                "item_name": item.get("item_name") or requested.item_name,
                "qty": requested.quantity,
                "rate": rate,
                "amount": rate * requested.quantity,
            })

        customer = await self.find_customer_by_name(request.customer_name)
        if customer is None:
            customer = await self.create_customer(
                CustomerData(name=request.customer_name, email=request.customer_email)
            )

        today = self.today()
        valid_till = (today + timedelta(days=self.validity_days)).isoformat()
        doc = await self.client.insert("Quotation", {
            "quotation_to": "Customer",
            "party_name": customer.id,
            "company": self.company,
            "transaction_date": today.isoformat(),
            "valid_till": valid_till,
            "items": lines,
        })

        quotation = Quotation(
            id=str(doc.get("name") or ""),
            customer_id=doc.get("party_name") or customer.id,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            items=[
                QuotationLine(
                    quantity=line["qty"],
                    item_name=line["item_name"],
                    item_code=line["item_code"],
                    unit_price=line["rate"],
                    total_price=line["amount"],
                )
                for line in lines
            ],
            total=_number(doc.get("total")) or sum(line["amount"] for line in lines),
            status=doc.get("status"),
            valid_till=doc.get("valid_till") or valid_till,
            transaction_date=today.isoformat(),
            created_at=doc.get("creation"),
        )
        logger.info("Quotation %s created for %s", quotation.id, quotation.customer_id)
        return quotation

    async def generate_quotation_pdf(self, quotation_id: str) -> bytes:
        return await self.client.download(
            "frappe.utils.print_format.download_pdf",
            {"doctype": "Quotation", "name": quotation_id, "format": "Standard", "no_letterhead": 0},
        )

    async def send_quotation_email(
        self, quotation_id: str, recipient: str, message: str = ""
    ) -> Any:
        """Ask ERPNext to email the quotation with its standard print format attached."""
        content = message or (
            f"Veuillez trouver ci-joint le devis {quotation_id}.\n\n"
            "Cordialement,\nVotre équipe commerciale"
        )
        result = await self.client.call_method(
            "frappe.core.doctype.communication.email.make",
            {
                "recipients": recipient,
                "subject": f"Devis {quotation_id}",
                "content": content,
                "doctype": "Quotation",
                "name": quotation_id,
                "send_email": 1,
                "print_format": "Standard",
            },
        )
        logger.info("Quotation %s emailed to %s", quotation_id, recipient)
        return result

    async def get_quotation_details(self, quotation_id: str) -> Quotation:
        doc = await self.client.get("Quotation", quotation_id)
        return Quotation(
            id=str(doc.get("name") or quotation_id),
            customer_id=doc.get("party_name"),
            customer_name=doc.get("customer_name"),
            customer_email=doc.get("contact_email"),
            items=[
                QuotationLine(
                    quantity=_number(row.get("qty")),
                    item_name=row.get("item_name") or row.get("item_code") or "",
                    item_code=row.get("item_code"),
                    unit_price=_number(row.get("rate")),
                    total_price=_number(row.get("amount")),
                )
                for row in doc.get("items") or []
            ],
            total=_number(doc.get("total")),
            status=doc.get("status"),
            valid_till=doc.get("valid_till"),
            transaction_date=doc.get("transaction_date"),
            created_at=doc.get("creation"),
        )

    async def get_quotations(self, customer_id: Optional[str] = None) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Quotation",
            fields=["name", "party_name", "status", "total", "transaction_date", "creation"],
            filters={"party_name": customer_id} if customer_id else None,
            order_by="transaction_date desc",
            limit=20,
        )

    async def get_sales_invoices(self, customer_id: Optional[str] = None) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Sales Invoice",
            fields=["name", "customer", "status", "total", "posting_date", "creation"],
            filters={"customer": customer_id} if customer_id else None,
            order_by="posting_date desc",
            limit=20,
        )

    # ------------------------------------------------------------------ #
    # Reports
    # ------------------------------------------------------------------ #

    async def get_sales_report(
        self, filters: Optional[dict[str, Any]] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Sales Invoice",
            fields=["name", "customer", "posting_date", "total", "status", "grand_total"],
            filters={"docstatus": 1, **(filters or {})},
            order_by="posting_date desc",
            limit=limit,
        )

    async def get_customer_report(
        self, filters: Optional[dict[str, Any]] = None, limit: int = 100
    ) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Customer",
            fields=CUSTOMER_FIELDS + ["territory", "customer_group"],
            filters=filters,
            order_by="creation desc",
            limit=limit,
        )

    async def get_purchase_report(
        self, filters: Optional[dict[str, Any]] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Purchase Invoice",
            fields=["name", "supplier", "posting_date", "total", "status", "grand_total"],
            filters={"docstatus": 1, **(filters or {})},
            order_by="posting_date desc",
            limit=limit,
        )

    async def get_invoice_report(
        self, filters: Optional[dict[str, Any]] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Sales Invoice",
            fields=[
                "name", "customer", "posting_date", "due_date", "total",
                "outstanding_amount", "status",
            ],
            filters={"docstatus": 1, **(filters or {})},
            order_by="posting_date desc",
            limit=limit,
        )

    async def get_quotation_report(
        self, filters: Optional[dict[str, Any]] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Quotation",
            fields=[
                "name", "quotation_to", "party_name", "transaction_date", "total",
                "status", "valid_till",
            ],
            # Cancelled quotations excluded
            filters={"docstatus": ["!=", 2], **(filters or {})},
            order_by="transaction_date desc",
            limit=limit,
        )

    async def get_stock_report(
        self, filters: Optional[dict[str, Any]] = None, limit: int = 100
    ) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Stock Ledger Entry",
            fields=[
                "item_code", "warehouse", "posting_date", "actual_qty",
                "valuation_rate", "stock_value",
            ],
            filters={**(filters or {}), "is_cancelled": 0},
            order_by="posting_date desc",
            group_by="item_code, warehouse",
            limit=limit,
        )

    async def get_item_report(
        self, filters: Optional[dict[str, Any]] = None, limit: int = 100
    ) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "Item",
            fields=[
                "name", "item_name", "item_group", "stock_uom", "valuation_rate",
                "last_purchase_rate",
            ],
            filters=filters,
            order_by="item_name",
            limit=limit,
        )

    async def get_custom_report(
        self, report_name: str, filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        """
        Run any ERPNext query report by name.

        Raises:
            ReportNotFoundError: If the report does not exist or fails to run.
        """
        try:
            return await self.client.run_named_report(report_name, filters)
        except BackendUnavailableError:
            raise
        except BackendError as exc:
            logger.error("Custom report %s failed: %s", report_name, exc)
            raise ReportNotFoundError(report_name) from exc

    # ------------------------------------------------------------------ #
    # Aggregate reports
    # ------------------------------------------------------------------ #

    async def get_dashboard_data(self) -> dict[str, Any]:
        data = await gather_settled({
            "sales": self.get_sales_report(limit=10),
            "customers": self.get_customer_report(limit=10),
            "quotations": self.get_quotation_report(limit=10),
            "stock": self.get_stock_report(limit=10),
        })
        data["timestamp"] = _now_iso()
        return data

    async def get_financial_summary(self, period: str = "monthly") -> dict[str, Any]:
        today = self.today()
        filters = {
            "company": self.company,
            "from_date": today.replace(month=1, day=1).isoformat(),
            "to_date": today.isoformat(),
            "range": period.capitalize(),
            "tree_type": "Item",
            "value_quantity": "Value",
        }
        data = await gather_settled({
            "sales": self.get_custom_report(
                "Sales Analytics", {**filters, "doc_type": "Sales Invoice"}
            ),
            "purchases": self.get_custom_report(
                "Purchase Analytics", {**filters, "doc_type": "Purchase Invoice"}
            ),
        })
        data["period"] = period
        data["generated_at"] = _now_iso()
        return data

    async def get_performance_metrics(self) -> dict[str, Any]:
        results = await gather_settled({
            "customers": self.client.get_list("Customer", fields=["count(name) as total"]),
            "sales": self.client.get_list(
                "Sales Invoice", fields=["sum(grand_total) as total"], filters={"docstatus": 1}
            ),
            "pending": self.client.get_list(
                "Sales Invoice",
                fields=["count(name) as count"],
                filters={"docstatus": 1, "outstanding_amount": [">", 0]},
            ),
            "low_stock": self.client.get_list(
                "Bin",
                fields=["item_code", "actual_qty"],
                filters={"actual_qty": ["<=", self.low_stock_threshold]},
                limit=0,
            ),
        })

        def first(rows: list[dict[str, Any]], key: str) -> float:
            return _number(rows[0].get(key)) if rows else 0.0

        return {
            "total_customers": int(first(results["customers"], "total")),
            "total_sales": first(results["sales"], "total"),
            "pending_invoices": int(first(results["pending"], "count")),
            "low_stock_items": len(results["low_stock"]),
            "generated_at": _now_iso(),
        }

    # ------------------------------------------------------------------ #
    # Point of sale
    # ------------------------------------------------------------------ #

    async def get_pos_invoice_report(
        self, filters: Optional[dict[str, Any]] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        rows = await self.client.get_list(
            "POS Invoice",
            fields=POS_INVOICE_FIELDS,
            filters={"docstatus": 1, **(filters or {})},
            order_by="posting_date desc",
            limit=limit,
        )
        return [{**row, "cashier": row.get("owner")} for row in rows]

    async def _pos_item_lines(self, filters: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        return await self.client.get_list(
            "POS Invoice",
            fields=POS_ITEM_FIELDS,
            filters={"docstatus": 1, **(filters or {})},
            limit=0,
        )

    async def get_pos_item_sales_report(
        self, filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        return aggregate_item_lines(await self._pos_item_lines(filters))

    async def get_pos_cashier_report(
        self, filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        return aggregate_cashiers(await self.get_pos_invoice_report(filters, limit=0))

    async def get_pos_period_report(self, from_date: date, to_date: date) -> dict[str, Any]:
        period = {"posting_date": ["between", [from_date.isoformat(), to_date.isoformat()]]}
        results = await gather_settled({
            "invoices": self.get_pos_invoice_report(period, limit=0),
            "lines": self._pos_item_lines(period),
        })
        return {
            "from_date": from_date.isoformat(),
            "to_date": to_date.isoformat(),
            "summary": summarize_pos_invoices(results["invoices"]),
            "top_items": aggregate_item_lines(results["lines"]),
            "cashier_performance": aggregate_cashiers(results["invoices"]),
            "generated_at": _now_iso(),
        }

    async def get_pos_dashboard(self) -> dict[str, Any]:
        today = self.today()
        yesterday = today - timedelta(days=1)
        week_start = today - timedelta(days=today.weekday())
        empty = {"summary": summarize_pos_invoices([]), "top_items": []}
        periods = await gather_settled(
            {
                "today": self.get_pos_period_report(today, today),
                "yesterday": self.get_pos_period_report(yesterday, yesterday),
                "week": self.get_pos_period_report(week_start, today),
            },
            defaults={"today": empty, "yesterday": empty, "week": empty},
        )
        return {
            **periods,
            "top_selling_items": periods["week"]["top_items"],
            "last_updated": _now_iso(),
        }
