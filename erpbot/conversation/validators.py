"""
Entity validation for the actions that write to ERPNext.

Validators are pure: they never raise and never perform I/O. Every
applicable error is collected (no short-circuit on the first failure) and
returned alongside the normalized data, which is populated even when
validation fails. Callers must check ``is_valid`` before using ``data``.

Usage:
    result = validate_customer_creation(entities)
    if not result.is_valid:
        reply = build_validation_error_response(result.errors)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from erpbot.nlu.parser import entity_value
from erpbot.schemas.nlu_schema import Entity
from erpbot.schemas.quotation_schema import QuotationCustomer, QuotationItem
from erpbot.utils import is_blank, is_valid_email

logger = logging.getLogger(__name__)

NAME_MISSING = "Nom du client manquant"
EMAIL_MISSING = "Email du client manquant"
EMAIL_INVALID = "Format d'email invalide"
NO_ITEMS = "Aucun article spécifié"


def _item_quantity_invalid(position: int) -> str:
    return f"Quantité invalide pour l'article {position}"


def _item_name_missing(position: int) -> str:
    return f"Nom d'article manquant pour l'article {position}"


@dataclass
class ValidationResult:
    """Outcome of validating the entities required by one action."""
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _clean(value: Optional[str]) -> Optional[str]:
    return None if is_blank(value) else value.strip()  # type: ignore[union-attr]


def _check_email(email: Optional[str], errors: list[str]) -> None:
    if email is None:
        errors.append(EMAIL_MISSING)
    elif not is_valid_email(email):
        errors.append(EMAIL_INVALID)


def validate_customer_creation(entities: Sequence[Entity]) -> ValidationResult:
    """Require ``customer_name`` and a well-formed ``email`` entity."""
    name = _clean(entity_value(list(entities), "customer_name"))
    email = _clean(entity_value(list(entities), "email"))

    errors: list[str] = []
    if name is None:
        errors.append(NAME_MISSING)
    _check_email(email, errors)

    if errors:
        logger.debug("Customer entities rejected: %s", errors)
    return ValidationResult(errors=errors, data={"name": name, "email": email})


def validate_quotation(
    customer: Optional[QuotationCustomer], items: Optional[Sequence[QuotationItem]]
) -> ValidationResult:
    """Require a named customer with a valid email and at least one valid item line."""
    name = _clean(customer.name) if customer else None
    email = _clean(customer.email) if customer else None

    errors: list[str] = []
    if name is None:
        errors.append(NAME_MISSING)
    _check_email(email, errors)

    if not items:
        errors.append(NO_ITEMS)
    else:
        for position, item in enumerate(items, start=1):
            if not item.quantity or item.quantity <= 0:
                errors.append(_item_quantity_invalid(position))
            if is_blank(item.item_name):
                errors.append(_item_name_missing(position))

    if errors:
        logger.debug("Quotation request rejected: %s", errors)
    return ValidationResult(
        errors=errors,
        data={
            "customer": QuotationCustomer(name=name, email=email),
            "items": list(items or []),
        },
    )
