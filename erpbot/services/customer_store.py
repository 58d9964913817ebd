"""
Process-local customer store used when ERPNext is absent or failing.

This is a degraded-mode cache, not a source of truth: records live for the
process lifetime, are never persisted and never evicted. Ids are derived
from the wall clock in milliseconds and forced to increase monotonically,
so concurrent creates within one process cannot collide.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from erpbot.schemas.customer_schema import CustomerData, CustomerRecord

logger = logging.getLogger(__name__)


class CustomerNotFoundError(KeyError):
    """Raised when a local customer id does not exist."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalCustomerStore:
    """In-memory customer map keyed by generated id."""

    def __init__(self, clock_ms: Callable[[], int] = lambda: time.time_ns() // 1_000_000) -> None:
        self._customers: dict[str, CustomerRecord] = {}
        self._clock_ms = clock_ms
        self._last_id = 0

    def _next_id(self) -> str:
        self._last_id = max(self._clock_ms(), self._last_id + 1)
        return str(self._last_id)

    def create(self, data: CustomerData) -> CustomerRecord:
        customer = CustomerRecord(
            id=self._next_id(),
            name=data.name or "",
            email=data.email,
            phone=data.phone,
            address=data.address,
            created_at=_now_iso(),
        )
        self._customers[customer.id] = customer
        logger.info("Local customer created: %s (%s)", customer.name, customer.id)
        return customer

    def get(self, customer_id: str) -> Optional[CustomerRecord]:
        return self._customers.get(customer_id)

    def list(self) -> list[CustomerRecord]:
        """Customers in creation order."""
        return list(self._customers.values())

    def update(self, customer_id: str, data: CustomerData) -> CustomerRecord:
        customer = self._customers.get(customer_id)
        if customer is None:
            raise CustomerNotFoundError(f"Client non trouvé: {customer_id}")
        changes = data.model_dump(exclude_none=True)
        updated = customer.model_copy(update={**changes, "updated_at": _now_iso()})
        self._customers[customer_id] = updated
        logger.info("Local customer updated: %s", customer_id)
        return updated

    def delete(self, customer_id: str) -> bool:
        return self._customers.pop(customer_id, None) is not None

    def reset(self) -> None:
        """Clear all customers. Used by test fixtures for isolation."""
        self._customers.clear()
