from erpbot.nlu.confidence import ConfidenceBand, classify_confidence
from erpbot.nlu.parser import (
    entity_value,
    normalize_nlu_response,
    parse_entities,
    parse_intent,
)

__all__ = [
    "ConfidenceBand",
    "classify_confidence",
    "entity_value",
    "normalize_nlu_response",
    "parse_entities",
    "parse_intent",
]
