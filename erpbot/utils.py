"""Shared utilities used across the ERP chat assistant."""

import asyncio
import logging
import re
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_blank(value: Optional[str]) -> bool:
    """True when a value is absent or empty after trimming."""
    return value is None or not str(value).strip()


def is_valid_email(value: Optional[str]) -> bool:
    """Check an address has the shape ``local@domain.tld``.

    Examples:
        >>> is_valid_email("dupont@example.com")
        True
        >>> is_valid_email("invalid-email")
        False
    """
    if value is None:
        return False
    return EMAIL_PATTERN.match(value.strip()) is not None


async def gather_settled(
    tasks: dict[str, Awaitable[Any]], defaults: Optional[dict[str, Any]] = None
) -> dict[str, Any]:
    """Run awaitables concurrently and collect each result or its default.

    A failing awaitable never fails the join: its slot receives the value
    from ``defaults`` (an empty list when no default is given) and the error
    is logged.
    """
    defaults = defaults or {}
    names = list(tasks)
    results = await asyncio.gather(*tasks.values(), return_exceptions=True)
    settled: dict[str, Any] = {}
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            logger.warning("Sub-query '%s' failed: %s", name, result)
            settled[name] = defaults.get(name, [])
        else:
            settled[name] = result
    return settled
