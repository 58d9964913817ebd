"""
Regex fallbacks for pulling quotation data out of free text.

Used when the NLU layer did not supply the entities itself. Each extractor
is a small strategy object with one method, ``extract(text)``, returning a
candidate or ``None``; no match is a normal outcome, never an error. A
stronger parser can replace either one without touching the validators or
the router.

Usage:
    items = QuotationItemsExtractor().extract("5 pains, 2 gateaux chocolat")
    # [QuotationItem(quantity=5, item_name="pains"), ...]
"""

import re
from typing import Optional, Protocol, TypeVar

from erpbot.schemas.quotation_schema import QuotationCustomer, QuotationItem

T_co = TypeVar("T_co", covariant=True)

_ITEM_LIST_PATTERN = re.compile(r"(\d+)\s+(.+?)(?=,\s*\d+|$)", re.IGNORECASE)
_SINGLE_ITEM_PATTERN = re.compile(r"(\d+)\s+(.+)")
_EMAIL_TRAILING_PUNCTUATION = ".,;:"

# Tried in order; the first pattern that matches wins.
_CUSTOMER_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"pour le client\s+(.+?)\s+(?:avec\s+)?email\s+(\S+)", re.IGNORECASE),
    re.compile(r"client\s+(.+?)\s+(?:avec\s+)?email\s+(\S+)", re.IGNORECASE),
    re.compile(r"pour\s+(.+?)\s+(?:avec\s+)?email\s+(\S+)", re.IGNORECASE),
]


class EntityExtractor(Protocol[T_co]):
    """Best-effort extraction strategy."""

    def extract(self, text: str) -> Optional[T_co]:
        ...


def _make_item(quantity: str, name: str, original: str) -> Optional[QuotationItem]:
    qty = int(quantity)
    item_name = name.strip().rstrip(",").strip()
    if qty <= 0 or not item_name:
        return None
    return QuotationItem(quantity=qty, item_name=item_name.lower(), original_text=original)


class QuotationItemsExtractor:
    """Parses ``<qty> <item>`` lists such as ``5 pains, 2 gateaux chocolat``."""

    def extract(self, text: str) -> Optional[list[QuotationItem]]:
        text = text.strip()
        items = []
        for match in _ITEM_LIST_PATTERN.finditer(text):
            item = _make_item(match.group(1), match.group(2), match.group(0))
            if item:
                items.append(item)

        if not items:
            match = _SINGLE_ITEM_PATTERN.search(text)
            if match:
                item = _make_item(match.group(1), match.group(2), match.group(0))
                if item:
                    items.append(item)

        return items or None


class QuotationCustomerExtractor:
    """Finds ``pour le client <name> avec email <email>`` style clauses."""

    def find(self, text: str) -> Optional[re.Match[str]]:
        for pattern in _CUSTOMER_PATTERNS:
            match = pattern.search(text)
            if match:
                return match
        return None

    @staticmethod
    def customer_from_match(match: re.Match[str]) -> QuotationCustomer:
        # "email d@x.com:" or "d@x.com," keeps the punctuation in \S+
        email = match.group(2).strip().rstrip(_EMAIL_TRAILING_PUNCTUATION)
        return QuotationCustomer(name=match.group(1).strip(), email=email)

    def extract(self, text: str) -> Optional[QuotationCustomer]:
        match = self.find(text)
        if match is None:
            return None
        return self.customer_from_match(match)


def split_quotation_text(
    text: str, customer_extractor: Optional[QuotationCustomerExtractor] = None
) -> tuple[str, Optional[QuotationCustomer]]:
    """Separate the item list from the customer clause.

    Returns the text with the customer clause cut out (or the whole text
    when there is none) and the extracted customer. Items may appear on
    either side of the clause.
    """
    extractor = customer_extractor or QuotationCustomerExtractor()
    match = extractor.find(text)
    if match is None:
        return text, None
    remainder = f"{text[: match.start()]} {text[match.end():]}"
    return remainder, extractor.customer_from_match(match)
