"""Confidence banding for NLU intents.

Thresholds are fixed for compatibility with the existing Rasa model
training: anything below 0.7 is treated as not understood.
"""

from enum import Enum
from typing import Optional, Union

from erpbot.schemas.nlu_schema import IntentResult

HIGH_CONFIDENCE = 0.9
MEDIUM_CONFIDENCE = 0.7


class ConfidenceBand(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def classify_confidence(
    intent: Union[IntentResult, float, None],
) -> ConfidenceBand:
    """Map an intent (or a raw confidence score) to a band.

    A missing intent, a missing score and a zero score are all LOW.
    """
    if isinstance(intent, IntentResult):
        confidence: Optional[float] = intent.confidence
    else:
        confidence = intent

    if not confidence:
        return ConfidenceBand.LOW
    if confidence >= HIGH_CONFIDENCE:
        return ConfidenceBand.HIGH
    if confidence >= MEDIUM_CONFIDENCE:
        return ConfidenceBand.MEDIUM
    return ConfidenceBand.LOW
