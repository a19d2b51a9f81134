"""Per-recipient cap on outgoing alert emails."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

logger = logging.getLogger(__name__)

MAX_EMAILS_PER_WINDOW = 3
WINDOW = timedelta(hours=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RateLimitEntry:
    count: int
    last_sent: datetime
    reset_time: datetime


class RecipientRateLimiter:
    """
    Fixed-window counter keyed by recipient.

    State lives only in this process and is lost on restart. The lock covers
    the periodic sweep, which runs on a different scheduler thread than ticks.
    """

    def __init__(
        self,
        quota: int = MAX_EMAILS_PER_WINDOW,
        window: timedelta = WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.quota = quota
        self.window = window
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def try_consume(self, recipient: str) -> bool:
        """Take one send from the recipient's quota. False means skip for now."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(recipient)
            if entry is None or now > entry.reset_time:
                self._entries[recipient] = RateLimitEntry(
                    count=1, last_sent=now, reset_time=now + self.window
                )
                return True

            if entry.count < self.quota:
                entry.count += 1
                entry.last_sent = now
                return True

            count = entry.count
        logger.info(
            "Rate limit exceeded for %s: %d/%d emails this window", recipient, count, self.quota
        )
        return False

    def record_sent(self, recipient: str) -> None:
        """Touch last_sent without consuming quota."""
        with self._lock:
            entry = self._entries.get(recipient)
            if entry is not None:
                entry.last_sent = self._clock()

    def sweep(self) -> int:
        """Drop entries whose window has expired. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.reset_time]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Rate limiter sweep removed %d entries", len(expired))
        return len(expired)

    def get_entry(self, recipient: str) -> RateLimitEntry | None:
        with self._lock:
            return self._entries.get(recipient)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
