"""Data models for price monitoring and alert dispatch."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AlertMode(str, Enum):
    """How a subscription decides that a price is low enough."""

    FIXED_PRICE = "fixed_price"
    PERCENTAGE_DROP = "percentage_drop"


class EmailStatus(str, Enum):
    """Outcome of a single dispatch attempt."""

    SENT = "sent"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"


@dataclass
class Product:
    """Tracked catalog product with its running price extrema."""

    asin: str
    title: str
    url: str
    current_price: float
    last_checked: datetime
    original_price: float | None = None
    lowest_price: float | None = None
    highest_price: float | None = None
    image_url: str | None = None
    is_discovered: bool = False
    id: int | None = None


@dataclass(frozen=True)
class PriceHistoryEntry:
    """Append-only price observation."""

    product_id: int
    price: float
    timestamp: datetime
    metadata: dict | None = None
    id: int | None = None


@dataclass
class Subscription:
    """A recipient's request to be alerted about a product."""

    product_id: int
    email: str
    target_price: float
    user_id: str | None = None
    percentage_alert: bool = False
    percentage_threshold: float | None = None
    # Kept for schema compatibility only; cooldown uses last_alert_sent.
    notified: bool = False
    last_alert_sent: datetime | None = None
    last_notified_price: float | None = None
    id: int | None = None

    @property
    def alert_mode(self) -> AlertMode:
        if self.percentage_alert:
            return AlertMode.PERCENTAGE_DROP
        return AlertMode.FIXED_PRICE

    @property
    def recipient(self) -> str:
        return self.email


@dataclass
class ProductInfo:
    """Fresh product data returned by the catalog client."""

    asin: str
    price: float
    title: str
    url: str
    original_price: float | None = None
    image_url: str | None = None


@dataclass
class SearchCandidate:
    """Search hit that discovery may turn into a tracked product."""

    asin: str
    title: str
    url: str
    price: float | None = None
    image_url: str | None = None


@dataclass
class EmailLogEntry:
    """Record of one notification dispatch attempt."""

    recipient: str
    subject: str
    status: EmailStatus
    created_at: datetime
    product_id: int | None = None
    subscription_id: int | None = None
    id: int | None = None


@dataclass
class TickReport:
    """Summary of one scheduler tick."""

    tick: int
    discovery_ran: bool = False
    products_added: int = 0
    products_refreshed: int = 0
    refresh_failures: int = 0
    history_entries: int = 0
    alerts_due: int = 0
    alerts_sent: int = 0
    alerts_rate_limited: int = 0
    alert_failures: int = 0
    stopped_early: bool = False
    errors: list[str] = field(default_factory=list)
