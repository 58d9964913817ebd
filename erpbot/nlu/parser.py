"""
Canonicalization of raw Rasa results into IntentResult / Entity models.

Rasa answers in two shapes: the REST webhook returns a list of results
(only the first is used), the ``/model/parse`` endpoint returns a bare
object. Both are normalized to ``{"intent", "entities", "text"}`` before
parsing. Nothing here raises on missing or malformed optional fields;
absence becomes ``None`` or an empty list.
"""

import logging
from typing import Any, Optional

from erpbot.schemas.nlu_schema import Entity, IntentResult

logger = logging.getLogger(__name__)

NLU_FALLBACK_INTENT = "nlu_fallback"


def normalize_nlu_response(raw: Any) -> dict[str, Any]:
    """Reduce a webhook list or parse object to a single result dict."""
    if isinstance(raw, list):
        if not raw or not isinstance(raw[0], dict):
            return {
                "intent": {"name": NLU_FALLBACK_INTENT, "confidence": 0.0},
                "entities": [],
                "text": "",
            }
        raw = raw[0]
    if not isinstance(raw, dict):
        return {"intent": None, "entities": [], "text": ""}
    return {
        "intent": raw.get("intent"),
        "entities": raw.get("entities") or [],
        "text": raw.get("text") or "",
    }


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_intent(raw: Any) -> Optional[IntentResult]:
    """Extract the intent, or None when the result carries no intent field."""
    if not isinstance(raw, dict):
        return None
    intent = raw.get("intent")
    if not isinstance(intent, dict):
        return None
    name = intent.get("name")
    return IntentResult(
        name=str(name) if name is not None else None,
        confidence=_as_float(intent.get("confidence"), 0.0),
    )


def parse_entities(raw: Any) -> list[Entity]:
    """Extract entities in their original order. Malformed entries are skipped."""
    if not isinstance(raw, dict):
        return []
    entities = []
    for item in raw.get("entities") or []:
        if not isinstance(item, dict) or item.get("entity") is None:
            logger.debug("Skipping malformed entity: %r", item)
            continue
        value = item.get("value")
        entities.append(
            Entity(
                name=str(item["entity"]),
                value="" if value is None else str(value),
                start=_as_int(item.get("start")),
                end=_as_int(item.get("end")),
                confidence=_as_float(item.get("confidence"), 1.0),
            )
        )
    return entities


def entity_value(entities: list[Entity], name: str) -> Optional[str]:
    """Value of the first entity with the given name, or None."""
    for entity in entities:
        if entity.name == name:
            return entity.value
    return None


def customer_data_from_entities(entities: list[Entity]) -> dict[str, Optional[str]]:
    """Collect the customer fields an NLU result may carry."""
    return {
        "name": entity_value(entities, "customer_name"),
        "email": entity_value(entities, "email"),
        "phone": entity_value(entities, "phone"),
        "address": entity_value(entities, "address"),
    }
