"""
Escaping for Telegram's legacy Markdown parse mode.

Names, emails and report fields come from users or ERPNext and routinely
contain ``_`` or ``*``. Outside an entity they are escaped with
python-telegram-bot's helper. Inside a bold span Telegram reads up to the
next ``*`` without unescaping, so bold values lose their own asterisks
instead.
"""

from typing import Any

from telegram.helpers import escape_markdown


def md(value: Any) -> str:
    """Escape a value for plain Markdown text."""
    return escape_markdown(str(value), version=1)


def bold(value: Any) -> str:
    """Wrap a value in a bold span."""
    text = str(value).replace("*", "")
    return f"*{text}*" if text.strip() else md(value)
