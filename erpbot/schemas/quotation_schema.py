"""Quotation request and result models."""

from typing import Optional

from pydantic import BaseModel, Field


class QuotationItem(BaseModel):
    """One requested line: a quantity of a named catalog item."""
    quantity: int
    item_name: str
    original_text: Optional[str] = None


class QuotationCustomer(BaseModel):
    """Customer name/email pair named in a quotation request."""
    name: Optional[str] = None
    email: Optional[str] = None


class QuotationRequest(BaseModel):
    """Validated quotation request, delegated to ERPNext for persistence."""
    customer_name: str
    customer_email: str
    items: list[QuotationItem]


class QuotationLine(BaseModel):
    """Priced quotation line after catalog resolution."""
    quantity: float
    item_name: str
    item_code: Optional[str] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None


class Quotation(BaseModel):
    """Quotation document as created in or read from ERPNext."""
    id: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    items: list[QuotationLine] = Field(default_factory=list)
    total: Optional[float] = None
    status: Optional[str] = None
    valid_till: Optional[str] = None
    transaction_date: Optional[str] = None
    created_at: Optional[str] = None
