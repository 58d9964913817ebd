"""NLU result models: classified intent and extracted entities."""

from typing import Optional

from pydantic import BaseModel


class IntentResult(BaseModel):
    """Intent name and confidence for one inbound message."""
    name: Optional[str] = None
    confidence: float = 0.0


class Entity(BaseModel):
    """A named value extracted from the message text."""
    name: str
    value: str
    start: Optional[int] = None
    end: Optional[int] = None
    confidence: float = 1.0
