"""
Customer operations with the ERPNext-or-local fallback policy.

    backend configured and connected -> ERPNext
        create / list / update failure -> warning, served by the local store
        delete failure                 -> warning, reported as False
    backend not configured or unavailable -> local store only

The returned record never says which store served it; callers reply the
same way in both cases.
"""

import logging
from typing import Optional

from erpbot.schemas.customer_schema import CustomerData, CustomerRecord
from erpbot.services.customer_store import LocalCustomerStore
from erpbot.services.erpnext_client import BackendError
from erpbot.services.erpnext_service import ERPNextService

logger = logging.getLogger(__name__)


class CustomerService:
    """Customer CRUD over ERPNext with a process-local fallback."""

    def __init__(self, store: LocalCustomerStore, backend: Optional[ERPNextService] = None) -> None:
        self.store = store
        self.backend = backend

    async def _use_backend(self) -> bool:
        return self.backend is not None and await self.backend.available()

    async def create(self, data: CustomerData) -> CustomerRecord:
        if await self._use_backend():
            try:
                return await self.backend.create_customer(data)  # type: ignore[union-attr]
            except BackendError as exc:
                logger.warning("ERPNext customer creation failed, using local storage: %s", exc)
        return self.store.create(data)

    async def list(self) -> list[CustomerRecord]:
        if await self._use_backend():
            try:
                return await self.backend.list_customers()  # type: ignore[union-attr]
            except BackendError as exc:
                logger.warning("ERPNext customer listing failed, using local storage: %s", exc)
        return self.store.list()

    async def get(self, customer_id: str) -> Optional[CustomerRecord]:
        if await self._use_backend():
            try:
                return await self.backend.get_customer(customer_id)  # type: ignore[union-attr]
            except BackendError as exc:
                logger.warning("ERPNext customer lookup failed, using local storage: %s", exc)
        return self.store.get(customer_id)

    async def update(self, customer_id: str, data: CustomerData) -> CustomerRecord:
        """
        Update a customer.

        Raises:
            CustomerNotFoundError: If the local store serves the call and the id is unknown.
        """
        if await self._use_backend():
            try:
                return await self.backend.update_customer(customer_id, data)  # type: ignore[union-attr]
            except BackendError as exc:
                logger.warning("ERPNext customer update failed, using local storage: %s", exc)
        return self.store.update(customer_id, data)

    async def delete(self, customer_id: str) -> bool:
        if await self._use_backend():
            try:
                await self.backend.delete_customer(customer_id)  # type: ignore[union-attr]
            except BackendError as exc:
                logger.warning("ERPNext customer deletion failed: %s", exc)
                return False
            logger.info("Customer deleted in ERPNext: %s", customer_id)
            return True
        return self.store.delete(customer_id)
