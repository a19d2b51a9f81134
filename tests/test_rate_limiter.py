"""Tests for the per-recipient rate limiter."""

import pytest

from pricewatch.rate_limiter import RecipientRateLimiter
from tests.conftest import FakeClock


@pytest.fixture
def limiter(clock):
    return RecipientRateLimiter(clock=clock)


class TestTryConsume:
    def test_three_allowed_then_denied(self, limiter):
        results = [limiter.try_consume("a@example.com") for _ in range(4)]

        assert results == [True, True, True, False]

    def test_allowed_again_after_window_resets(self, limiter, clock):
        for _ in range(3):
            limiter.try_consume("a@example.com")
        assert limiter.try_consume("a@example.com") is False

        clock.advance(hours=1, seconds=1)

        assert limiter.try_consume("a@example.com") is True
        assert limiter.get_entry("a@example.com").count == 1

    def test_window_boundary_is_exclusive(self, limiter, clock):
        for _ in range(3):
            limiter.try_consume("a@example.com")

        clock.advance(hours=1)

        assert limiter.try_consume("a@example.com") is False

    def test_recipients_are_independent(self, limiter):
        for _ in range(3):
            limiter.try_consume("a@example.com")

        assert limiter.try_consume("b@example.com") is True

    def test_first_call_sets_reset_time(self, limiter, clock):
        limiter.try_consume("a@example.com")

        entry = limiter.get_entry("a@example.com")
        assert entry.count == 1
        assert entry.reset_time == clock.now + limiter.window

    def test_custom_quota(self):
        limiter = RecipientRateLimiter(quota=1, clock=FakeClock())

        assert limiter.try_consume("a@example.com") is True
        assert limiter.try_consume("a@example.com") is False


class TestRecordSent:
    def test_touches_last_sent_without_counting(self, limiter, clock):
        limiter.try_consume("a@example.com")
        clock.advance(minutes=5)

        limiter.record_sent("a@example.com")

        entry = limiter.get_entry("a@example.com")
        assert entry.count == 1
        assert entry.last_sent == clock.now

    def test_unknown_recipient_is_noop(self, limiter):
        limiter.record_sent("nobody@example.com")

        assert limiter.get_entry("nobody@example.com") is None


class TestSweep:
    def test_removes_only_expired_entries(self, limiter, clock):
        limiter.try_consume("old@example.com")
        clock.advance(minutes=40)
        limiter.try_consume("new@example.com")
        clock.advance(minutes=21)

        removed = limiter.sweep()

        assert removed == 1
        assert limiter.get_entry("old@example.com") is None
        assert limiter.get_entry("new@example.com") is not None
        assert len(limiter) == 1
