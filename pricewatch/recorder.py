"""Price history recording with change and staleness thresholds."""

import logging
from datetime import datetime, timedelta, timezone

from pricewatch.models import PriceHistoryEntry
from pricewatch.storage import Storage

logger = logging.getLogger(__name__)

# Differences at or below one cent are treated as float noise.
PRICE_CHANGE_THRESHOLD = 0.01
STALE_AFTER = timedelta(hours=6)


def _change_metadata(previous_price: float, price: float) -> dict:
    change = price - previous_price
    percentage = (change / previous_price) * 100 if previous_price else None
    return {
        "previous_price": previous_price,
        "price_change": round(change, 2),
        "percentage_change": round(percentage, 2) if percentage is not None else None,
    }


def record_if_significant(
    storage: Storage,
    product_id: int,
    observed_price: float,
    now: datetime | None = None,
) -> bool:
    """
    Append a price history entry when it carries new information.

    The first observation for a product is always stored. After that, an entry
    is added only when the price moved by more than a cent or the newest entry
    is older than six hours. Returns True if an entry was written.
    """
    now = now or datetime.now(timezone.utc)
    history = storage.get_price_history(product_id)

    if not history:
        storage.add_price_history(
            PriceHistoryEntry(product_id=product_id, price=observed_price, timestamp=now)
        )
        logger.debug("Product %s: first history entry at $%.2f", product_id, observed_price)
        return True

    latest = history[0]
    price_changed = abs(latest.price - observed_price) > PRICE_CHANGE_THRESHOLD
    stale = now - latest.timestamp > STALE_AFTER

    if not (price_changed or stale):
        logger.debug(
            "Product %s: skipping history entry ($%.2f unchanged, last %s)",
            product_id, observed_price, latest.timestamp.isoformat(),
        )
        return False

    metadata = _change_metadata(latest.price, observed_price) if price_changed else None
    storage.add_price_history(
        PriceHistoryEntry(
            product_id=product_id,
            price=observed_price,
            timestamp=now,
            metadata=metadata,
        )
    )
    logger.debug(
        "Product %s: history entry at $%.2f (%s)",
        product_id, observed_price, "price changed" if price_changed else "time threshold exceeded",
    )
    return True
