"""Customer data models."""

from typing import Optional

from pydantic import BaseModel


class CustomerRecord(BaseModel):
    """Customer as returned by ERPNext or held in the local fallback store."""
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CustomerData(BaseModel):
    """Validated input for creating or updating a customer."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
