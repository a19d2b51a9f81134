"""Alert eligibility: cooldown gate and price conditions."""

import logging
import math
from datetime import datetime, timedelta, timezone

from pricewatch.config import get_default_cooldown_hours
from pricewatch.models import AlertMode, Product, Subscription
from pricewatch.storage import Storage

logger = logging.getLogger(__name__)

COOLDOWN_CONFIG_KEY = "cooldown_hours"


def get_cooldown_hours(storage: Storage) -> float:
    """Read cooldown from global config, falling back to the default."""
    default = get_default_cooldown_hours()
    val = storage.get_global_config(COOLDOWN_CONFIG_KEY)
    if val is None:
        return default
    try:
        hours = float(val)
    except ValueError:
        hours = None
    if hours is None or not math.isfinite(hours) or hours < 0:
        logger.warning("Invalid %s value %r, using %d", COOLDOWN_CONFIG_KEY, val, default)
        return default
    return hours


def in_cooldown(subscription: Subscription, now: datetime, cooldown_hours: float) -> bool:
    """True while the last successful alert is younger than the cooldown."""
    if subscription.last_alert_sent is None:
        return False
    try:
        return now < subscription.last_alert_sent + timedelta(hours=cooldown_hours)
    except OverflowError:
        # Cooldown ends past datetime.max.
        return True


def should_alert(product: Product, subscription: Subscription) -> bool:
    """
    Return True if the product price satisfies the subscription's alert mode.

    Percentage mode needs an original price to measure the drop against;
    without one the subscription is never eligible.
    """
    if subscription.alert_mode is AlertMode.PERCENTAGE_DROP:
        if product.original_price is None or subscription.percentage_threshold is None:
            return False
        threshold_price = product.original_price * (1 - subscription.percentage_threshold / 100)
        return product.current_price <= threshold_price
    return product.current_price <= subscription.target_price


class AlertEvaluator:
    """Selects subscriptions that should receive a price-drop alert."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def due_subscriptions(self, now: datetime | None = None) -> list[tuple[Subscription, Product]]:
        now = now or datetime.now(timezone.utc)
        cooldown_hours = get_cooldown_hours(self.storage)

        due: list[tuple[Subscription, Product]] = []
        for sub in self.storage.list_subscriptions():
            if in_cooldown(sub, now, cooldown_hours):
                logger.debug(
                    "Subscription %s: in %gh cooldown since %s",
                    sub.id, cooldown_hours, sub.last_alert_sent.isoformat(),
                )
                continue

            product = self.storage.get_product(sub.product_id)
            if product is None:
                logger.warning(
                    "Subscription %s references missing product %s, skipping",
                    sub.id, sub.product_id,
                )
                continue

            if should_alert(product, sub):
                logger.info(
                    "Alert due: %s @ $%.2f for %s (%s)",
                    product.asin, product.current_price, sub.email, sub.alert_mode.value,
                )
                due.append((sub, product))

        return due
