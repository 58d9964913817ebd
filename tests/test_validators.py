"""Tests for entity validation."""

import pytest

from erpbot.conversation.validators import (
    EMAIL_INVALID,
    EMAIL_MISSING,
    NAME_MISSING,
    NO_ITEMS,
    validate_customer_creation,
    validate_quotation,
)
from erpbot.schemas.nlu_schema import Entity
from erpbot.schemas.quotation_schema import QuotationCustomer, QuotationItem


def _entities(**values):
    return [Entity(name=k, value=v) for k, v in values.items()]


class TestCustomerCreation:
    def test_valid(self):
        result = validate_customer_creation(
            _entities(customer_name=" Dupont ", email="dupont@example.com")
        )
        assert result.is_valid
        assert result.data == {"name": "Dupont", "email": "dupont@example.com"}

    def test_invalid_email(self):
        result = validate_customer_creation(_entities(customer_name="Dupont", email="invalid-email"))
        assert result.errors == [EMAIL_INVALID]
        assert EMAIL_INVALID == "Format d'email invalide"

    @pytest.mark.parametrize("email", ["invalid-email", "dupont.example.com", "a@b", "a@b.", "a b@c.fr"])
    def test_malformed_emails_rejected(self, email):
        result = validate_customer_creation(_entities(customer_name="Dupont", email=email))
        assert result.errors == [EMAIL_INVALID]

    @pytest.mark.parametrize("email", ["dupont@example.com", "jean_dupont@mail.example.tn", "a@b.c"])
    def test_wellformed_emails_accepted(self, email):
        result = validate_customer_creation(_entities(customer_name="Dupont", email=email))
        assert EMAIL_INVALID not in result.errors

    def test_collects_every_error(self):
        result = validate_customer_creation([])
        assert result.errors == [NAME_MISSING, EMAIL_MISSING]

    def test_blank_name_is_missing(self):
        result = validate_customer_creation(_entities(customer_name="  ", email="a@b.co"))
        assert result.errors == [NAME_MISSING]

    def test_data_populated_on_failure(self):
        result = validate_customer_creation(_entities(customer_name="Dupont"))
        assert not result.is_valid
        assert result.data["name"] == "Dupont"


class TestQuotation:
    def setup_method(self):
        self.customer = QuotationCustomer(name="Dupont", email="dupont@example.com")
        self.items = [QuotationItem(quantity=5, item_name="pains")]

    def test_valid(self):
        result = validate_quotation(self.customer, self.items)
        assert result.is_valid
        assert result.data["customer"] == self.customer
        assert result.data["items"] == self.items

    def test_no_items(self):
        assert validate_quotation(self.customer, None).errors == [NO_ITEMS]

    def test_item_errors_are_numbered(self):
        items = [
            QuotationItem(quantity=1, item_name="pains"),
            QuotationItem(quantity=0, item_name=" "),
        ]
        errors = validate_quotation(self.customer, items).errors
        assert errors == [
            "Quantité invalide pour l'article 2",
            "Nom d'article manquant pour l'article 2",
        ]

    def test_missing_customer(self):
        errors = validate_quotation(None, self.items).errors
        assert errors == [NAME_MISSING, EMAIL_MISSING]
