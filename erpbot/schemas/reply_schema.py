"""Outbound reply payload: text plus presentation metadata."""

from typing import Optional

from pydantic import BaseModel


class KeyboardButton(BaseModel):
    """Inline button; ``action`` is the callback identifier sent back on press."""
    label: str
    action: str


class Reply(BaseModel):
    """
    Transport-neutral reply.

    ``keyboard`` is an ordered list of button rows. ``force_reply`` asks the
    client to open a reply box on the message, used for prompts that expect
    free-text input next.
    """
    text: str
    parse_mode: Optional[str] = "Markdown"
    keyboard: Optional[list[list[KeyboardButton]]] = None
    force_reply: bool = False
