"""Tests for NLU result parsing, confidence banding and regex extraction."""

import copy

import pytest

from erpbot.nlu.confidence import ConfidenceBand, classify_confidence
from erpbot.nlu.extractors import (
    QuotationCustomerExtractor,
    QuotationItemsExtractor,
    split_quotation_text,
)
from erpbot.nlu.parser import (
    customer_data_from_entities,
    entity_value,
    normalize_nlu_response,
    parse_entities,
    parse_intent,
)
from erpbot.schemas.nlu_schema import IntentResult


class TestNormalize:
    def test_webhook_list_uses_first_result(self):
        raw = [{"intent": {"name": "greet", "confidence": 0.9}, "entities": [], "text": "salut"}, {}]
        assert normalize_nlu_response(raw)["intent"]["name"] == "greet"

    def test_empty_list_becomes_nlu_fallback(self):
        result = normalize_nlu_response([])
        assert result["intent"] == {"name": "nlu_fallback", "confidence": 0.0}
        assert result["entities"] == []

    def test_bare_object_kept(self):
        result = normalize_nlu_response({"intent": {"name": "help"}, "text": "aide"})
        assert result == {"intent": {"name": "help"}, "entities": [], "text": "aide"}


class TestParseIntent:
    def test_name_and_confidence(self):
        intent = parse_intent({"intent": {"name": "create_customer", "confidence": 0.95}})
        assert intent == IntentResult(name="create_customer", confidence=0.95)

    def test_missing_intent_is_none(self):
        assert parse_intent({"entities": []}) is None

    def test_missing_confidence_is_zero(self):
        assert parse_intent({"intent": {"name": "greet"}}).confidence == 0.0

    def test_non_dict_is_none(self):
        assert parse_intent(None) is None


class TestParseEntities:
    def test_order_preserved(self):
        raw = {"entities": [
            {"entity": "customer_name", "value": "Dupont", "start": 3, "end": 9},
            {"entity": "email", "value": "dupont@example.com"},
        ]}
        entities = parse_entities(raw)
        assert [e.name for e in entities] == ["customer_name", "email"]
        assert entities[0].start == 3
        assert entities[1].confidence == 1.0

    def test_malformed_entries_skipped(self):
        raw = {"entities": ["oops", {"value": "x"}, {"entity": "email", "value": None}]}
        entities = parse_entities(raw)
        assert len(entities) == 1
        assert entities[0].value == ""

    def test_entity_value_first_match(self):
        entities = parse_entities({"entities": [
            {"entity": "email", "value": "a@b.co"}, {"entity": "email", "value": "c@d.co"},
        ]})
        assert entity_value(entities, "email") == "a@b.co"
        assert entity_value(entities, "phone") is None

    def test_explicit_zero_confidence_kept(self):
        entities = parse_entities({"entities": [
            {"entity": "email", "value": "a@b.co", "confidence": 0.0},
            {"entity": "phone", "value": "1", "confidence": None},
        ]})
        assert entities[0].confidence == 0.0
        assert entities[1].confidence == 1.0

    def test_parsing_twice_is_identical_and_leaves_input_alone(self):
        raw = {
            "intent": {"name": "create_customer", "confidence": 0.95},
            "entities": [{"entity": "customer_name", "value": "Dupont", "start": 0, "end": 6}],
            "text": "Dupont",
        }
        snapshot = copy.deepcopy(raw)
        assert parse_intent(raw) == parse_intent(raw)
        assert parse_entities(raw) == parse_entities(raw)
        assert raw == snapshot

    @pytest.mark.parametrize("name,value", [
        ("customer_name", "Dupont"),
        ("email", "jean_dupont@example.com"),
        ("item", "gateaux chocolat"),
        ("address", ""),
    ])
    def test_entity_value_returns_raw_value(self, name, value):
        raw = {"entities": [{"entity": "other", "value": "x"}, {"entity": name, "value": value}]}
        assert entity_value(parse_entities(raw), name) == value

    def test_customer_data_from_entities(self):
        entities = parse_entities({"entities": [
            {"entity": "customer_name", "value": "Dupont"}, {"entity": "phone", "value": "+216 1"},
        ]})
        assert customer_data_from_entities(entities) == {
            "name": "Dupont", "email": None, "phone": "+216 1", "address": None,
        }


class TestConfidence:
    @pytest.mark.parametrize("score,band", [
        (0.95, ConfidenceBand.HIGH),
        (0.9, ConfidenceBand.HIGH),
        (0.89, ConfidenceBand.MEDIUM),
        (0.7, ConfidenceBand.MEDIUM),
        (0.69, ConfidenceBand.LOW),
        (0.0, ConfidenceBand.LOW),
        (None, ConfidenceBand.LOW),
    ])
    def test_bands(self, score, band):
        assert classify_confidence(score) == band

    def test_accepts_intent_result(self):
        assert classify_confidence(IntentResult(name="greet", confidence=0.5)) == ConfidenceBand.LOW

    def test_missing_intent_is_low(self):
        assert classify_confidence(None) == ConfidenceBand.LOW


class TestItemsExtractor:
    def setup_method(self):
        self.extractor = QuotationItemsExtractor()

    def test_comma_separated_list(self):
        items = self.extractor.extract("5 pains, 2 gateaux chocolat")
        assert [(i.quantity, i.item_name) for i in items] == [(5, "pains"), (2, "gateaux chocolat")]

    def test_single_item(self):
        items = self.extractor.extract("3 croissants")
        assert [(i.quantity, i.item_name) for i in items] == [(3, "croissants")]

    def test_names_are_lowercased(self):
        assert self.extractor.extract("1 Baguette")[0].item_name == "baguette"

    def test_zero_quantity_dropped(self):
        items = self.extractor.extract("0 pains, 2 gateaux")
        assert [i.item_name for i in items] == ["gateaux"]

    def test_no_match_is_none(self):
        assert self.extractor.extract("des pains") is None


class TestCustomerExtractor:
    def setup_method(self):
        self.extractor = QuotationCustomerExtractor()

    def test_pour_le_client_pattern(self):
        customer = self.extractor.extract("5 pains pour le client Dupont avec email dupont@example.com")
        assert customer.name == "Dupont"
        assert customer.email == "dupont@example.com"

    def test_pour_pattern_without_avec(self):
        customer = self.extractor.extract("2 gateaux pour Martin email martin@example.com")
        assert customer.name == "Martin"

    def test_no_customer(self):
        assert self.extractor.extract("5 pains") is None

    def test_split_keeps_items_before_clause(self):
        items_text, customer = split_quotation_text(
            "5 pains, 2 gateaux chocolat pour le client Dupont avec email dupont@example.com"
        )
        assert items_text.strip() == "5 pains, 2 gateaux chocolat"
        assert customer.name == "Dupont"

    def test_split_without_clause_returns_whole_text(self):
        assert split_quotation_text("5 pains") == ("5 pains", None)

    def test_items_after_clause_kept(self):
        items_text, customer = split_quotation_text(
            "Devis pour le client Dupont avec email dupont@example.com: 5 pains, 2 gateaux"
        )
        items = QuotationItemsExtractor().extract(items_text)
        assert [(i.quantity, i.item_name) for i in items] == [(5, "pains"), (2, "gateaux")]
        assert customer.email == "dupont@example.com"

    def test_email_never_leaks_into_items(self):
        items_text, _ = split_quotation_text(
            "5 pains pour le client Dupont avec email dupont@example.com"
        )
        items = QuotationItemsExtractor().extract(items_text)
        assert [i.item_name for i in items] == ["pains"]

    @pytest.mark.parametrize("suffix", [":", ",", ".", ";"])
    def test_trailing_punctuation_trimmed_from_email(self, suffix):
        customer = self.extractor.extract(f"pour le client Dupont avec email d@x.com{suffix} 5 pains")
        assert customer.email == "d@x.com"
