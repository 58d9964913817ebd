"""
Inbound guardrails applied before a message reaches the NLU service.

Two independent checks, each returning a GuardrailResult:
1. MessageGuardrail: rejects empty or oversized text
2. RateLimitGuardrail: per-session sliding window on message count

The rate limiter is process-scoped state. It is created once by the
application context and passed in, so every handler sees the same
counters. Counters live in memory only: they reset on restart and are not
shared across instances.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

from erpbot.config import settings

logger = logging.getLogger(__name__)


@dataclass
class GuardrailResult:
    """Outcome of a single guardrail check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None
    severity: str = "warning"  # "warning" | "ignore" | "block"


class RateLimiter:
    """Sliding-window message counter keyed by session id."""

    def __init__(
        self,
        max_messages: int = settings.guardrails.rate_limit_max_messages,
        window_sec: float = settings.guardrails.rate_limit_window_sec,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_messages = max_messages
        self.window_sec = window_sec
        self._clock = clock
        self._timestamps: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    @property
    def tracked_sessions(self) -> int:
        return len(self._timestamps)

    def allow(self, session_id: str) -> bool:
        """Record a message and report whether it is within the limit.

        Rejected messages are not counted. Sessions idle for a whole window
        are forgotten, at most once per window.
        """
        now = self._clock()
        if now - self._last_sweep >= self.window_sec:
            self._sweep(now)
        window = self._timestamps.setdefault(session_id, deque())
        while window and now - window[0] >= self.window_sec:
            window.popleft()
        if len(window) >= self.max_messages:
            return False
        window.append(now)
        return True

    def _sweep(self, now: float) -> None:
        self._last_sweep = now
        idle = [
            key for key, window in self._timestamps.items()
            if not window or now - window[-1] >= self.window_sec
        ]
        for key in idle:
            del self._timestamps[key]

    def reset(self) -> None:
        self._timestamps.clear()


class MessageGuardrail:
    """Validates the shape of inbound text."""

    def __init__(self, max_length: int = settings.guardrails.max_message_length) -> None:
        self.max_length = max_length

    def check_text(self, text: Optional[str]) -> GuardrailResult:
        if text is None or not text.strip():
            return GuardrailResult(
                passed=False,
                violation_type="empty_message",
                message="Empty message text",
                severity="ignore",
            )
        if len(text) > self.max_length:
            return GuardrailResult(
                passed=False,
                violation_type="message_too_long",
                message=f"Message trop long (max {self.max_length} caractères)",
                severity="block",
            )
        return GuardrailResult(passed=True)


class RateLimitGuardrail:
    """Blocks sessions that exceed the configured message rate."""

    def __init__(self, limiter: RateLimiter) -> None:
        self.limiter = limiter

    def check_rate(self, session_id: str) -> GuardrailResult:
        if self.limiter.allow(session_id):
            return GuardrailResult(passed=True)
        logger.warning("Rate limit exceeded for session %s", session_id)
        return GuardrailResult(
            passed=False,
            violation_type="rate_limited",
            message=(
                "Trop de messages envoyés. Veuillez patienter une minute "
                "avant de réessayer."
            ),
            severity="block",
        )


class GuardrailPipeline:
    """Composes the inbound checks; text shape is checked before the rate counter."""

    def __init__(
        self,
        limiter: Optional[RateLimiter] = None,
        max_length: int = settings.guardrails.max_message_length,
    ) -> None:
        self.message = MessageGuardrail(max_length)
        self.rate = RateLimitGuardrail(limiter or RateLimiter())

    def check_inbound(self, session_id: str, text: Optional[str]) -> list[GuardrailResult]:
        """Return the failed checks; an empty list means the message may proceed."""
        shape = self.message.check_text(text)
        if not shape.passed:
            return [shape]
        rate = self.rate.check_rate(session_id)
        return [] if rate.passed else [rate]
