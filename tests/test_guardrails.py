"""Tests for inbound message guardrails and the rate limiter."""

from erpbot.conversation.guardrails import (
    GuardrailPipeline,
    MessageGuardrail,
    RateLimiter,
    RateLimitGuardrail,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestMessageGuardrail:
    def setup_method(self):
        self.guard = MessageGuardrail(max_length=20)

    def test_normal_text_passes(self):
        assert self.guard.check_text("Bonjour").passed is True

    def test_none_is_ignored(self):
        result = self.guard.check_text(None)
        assert result.passed is False
        assert result.severity == "ignore"

    def test_whitespace_is_ignored(self):
        result = self.guard.check_text("   ")
        assert result.violation_type == "empty_message"

    def test_too_long_is_blocked(self):
        result = self.guard.check_text("x" * 21)
        assert result.passed is False
        assert result.severity == "block"
        assert "20" in result.message

    def test_exact_limit_passes(self):
        assert self.guard.check_text("x" * 20).passed is True


class TestRateLimiter:
    def setup_method(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(max_messages=3, window_sec=60.0, clock=self.clock)

    def test_allows_up_to_limit(self):
        assert [self.limiter.allow("a") for _ in range(4)] == [True, True, True, False]

    def test_sessions_are_independent(self):
        for _ in range(3):
            self.limiter.allow("a")
        assert self.limiter.allow("b") is True

    def test_window_slides(self):
        for _ in range(3):
            self.limiter.allow("a")
        self.clock.now += 60.0
        assert self.limiter.allow("a") is True

    def test_rejected_messages_not_counted(self):
        for _ in range(3):
            self.limiter.allow("a")
        self.clock.now += 30.0
        self.limiter.allow("a")
        self.clock.now += 30.0
        # The first three expired; the rejected one never counted
        assert [self.limiter.allow("a") for _ in range(3)] == [True, True, True]

    def test_idle_sessions_forgotten(self):
        self.limiter.allow("a")
        self.clock.now += 30.0
        self.limiter.allow("b")
        self.clock.now += 30.0
        self.limiter.allow("c")
        assert self.limiter.tracked_sessions == 2

        self.clock.now += 140.0
        self.limiter.allow("c")
        assert self.limiter.tracked_sessions == 1

    def test_reset_clears_counters(self):
        for _ in range(3):
            self.limiter.allow("a")
        self.limiter.reset()
        assert self.limiter.allow("a") is True


class TestRateLimitGuardrail:
    def test_blocked_result_is_rate_limited(self):
        guard = RateLimitGuardrail(RateLimiter(max_messages=1, window_sec=60.0, clock=FakeClock()))
        guard.check_rate("a")
        result = guard.check_rate("a")
        assert result.passed is False
        assert result.violation_type == "rate_limited"
        assert "patienter" in result.message


class TestGuardrailPipeline:
    def test_clean_message_has_no_failures(self):
        pipeline = GuardrailPipeline(RateLimiter(max_messages=5, window_sec=60.0), max_length=100)
        assert pipeline.check_inbound("a", "Bonjour") == []

    def test_empty_message_does_not_consume_rate(self):
        limiter = RateLimiter(max_messages=1, window_sec=60.0, clock=FakeClock())
        pipeline = GuardrailPipeline(limiter, max_length=100)
        pipeline.check_inbound("a", "")
        assert pipeline.check_inbound("a", "Bonjour") == []

    def test_returns_rate_failure(self):
        pipeline = GuardrailPipeline(
            RateLimiter(max_messages=1, window_sec=60.0, clock=FakeClock()), max_length=100
        )
        pipeline.check_inbound("a", "un")
        failures = pipeline.check_inbound("a", "deux")
        assert [f.violation_type for f in failures] == ["rate_limited"]
