"""Price monitoring engine: one tick of discovery, refresh and alert dispatch."""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from pricewatch.config import EngineConfig
from pricewatch.discovery import discover_new_products, should_discover_this_tick
from pricewatch.errors import validate_price
from pricewatch.evaluator import AlertEvaluator
from pricewatch.fetchers.catalog import CatalogClient
from pricewatch.models import EmailLogEntry, EmailStatus, Product, Subscription, TickReport
from pricewatch.notifiers.email import build_subject, send_price_drop_alert
from pricewatch.rate_limiter import RecipientRateLimiter
from pricewatch.recorder import record_if_significant
from pricewatch.storage import Storage

logger = logging.getLogger(__name__)

Notifier = Callable[[str, Product, Subscription], bool]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _oldest_checked_first(product: Product) -> float:
    return product.last_checked.timestamp() if product.last_checked else 0.0


@dataclass
class EngineState:
    """Process-local counters owned by one engine instance."""

    tick_counter: int = 0
    rate_limiter: RecipientRateLimiter = field(default_factory=RecipientRateLimiter)


class PriceMonitor:
    """Runs ticks against a storage, a catalog client and a notifier."""

    def __init__(
        self,
        storage: Storage,
        catalog: CatalogClient,
        notifier: Notifier = send_price_drop_alert,
        config: EngineConfig | None = None,
        state: EngineState | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.storage = storage
        self.catalog = catalog
        self.notifier = notifier
        self.config = config or EngineConfig()
        self.state = state or EngineState()
        self.evaluator = AlertEvaluator(storage)
        self._sleep = sleep
        self._clock = clock
        self._stop = threading.Event()
        self._tick_lock = threading.Lock()

    @property
    def rate_limiter(self) -> RecipientRateLimiter:
        return self.state.rate_limiter

    def request_stop(self) -> None:
        """Ask the current tick to return after its in-flight item."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    # ── Price refresh ─────────────────────────────────────────────────────────

    def update_product_price(self, product: Product) -> bool:
        """
        Fetch the latest price for one product and persist it.

        Raises on catalog or validation failure; the caller isolates items.
        Returns True if a history entry was written.
        """
        info = self.catalog.get_product_info(product.asin)
        price = validate_price(info.price)
        now = self._clock()

        recorded = record_if_significant(self.storage, product.id, price, now=now)

        product.current_price = price
        if info.original_price:
            product.original_price = info.original_price
        product.lowest_price = min(product.lowest_price, price) if product.lowest_price is not None else price
        product.highest_price = max(product.highest_price, price) if product.highest_price is not None else price
        product.last_checked = now
        self.storage.update_product(product)
        return recorded

    def refresh_prices(self, report: TickReport) -> None:
        products = sorted(self.storage.list_products(), key=_oldest_checked_first)
        batch = products[: self.config.max_updates_per_run]
        logger.info("Updating prices for %d out of %d products", len(batch), len(products))

        for product in batch:
            if self.stopping:
                report.stopped_early = True
                return
            try:
                if self.update_product_price(product):
                    report.history_entries += 1
                report.products_refreshed += 1
                logger.info("%s @ $%.2f", product.asin, product.current_price)
            except Exception as e:
                report.refresh_failures += 1
                report.errors.append(f"refresh {product.asin}: {e}")
                logger.exception("Failed to update price for product %s", product.asin)
            self._sleep(self.config.refresh_delay_seconds)

    # ── Alert dispatch ────────────────────────────────────────────────────────

    def _log_email(self, sub: Subscription, product: Product, status: EmailStatus) -> None:
        try:
            self.storage.log_email(
                EmailLogEntry(
                    recipient=sub.recipient,
                    subject=build_subject(product),
                    status=status,
                    created_at=self._clock(),
                    product_id=product.id,
                    subscription_id=sub.id,
                )
            )
        except Exception:
            logger.exception("Failed to write email log for subscription %s", sub.id)

    def dispatch_alert(self, sub: Subscription, product: Product) -> EmailStatus:
        """Gate one alert through the rate limiter, send it, and start its cooldown."""
        recipient = sub.recipient
        if not self.rate_limiter.try_consume(recipient):
            self._log_email(sub, product, EmailStatus.RATE_LIMITED)
            return EmailStatus.RATE_LIMITED

        if not self.notifier(recipient, product, sub):
            logger.warning("Failed to send price drop alert to %s for %s", recipient, product.asin)
            self._log_email(sub, product, EmailStatus.FAILED)
            return EmailStatus.FAILED

        self.rate_limiter.record_sent(recipient)
        self._log_email(sub, product, EmailStatus.SENT)
        logger.info("Price drop alert sent to %s for %s", recipient, product.title[:50])

        sub.last_alert_sent = self._clock()
        sub.notified = True
        sub.last_notified_price = product.current_price
        try:
            self.storage.update_subscription(sub)
        except Exception:
            # Cooldown not persisted; the alert may repeat next tick.
            logger.exception("Alert sent but cooldown not saved for subscription %s", sub.id)
        return EmailStatus.SENT

    def dispatch_alerts(self, report: TickReport) -> None:
        due = self.evaluator.due_subscriptions(now=self._clock())
        report.alerts_due = len(due)
        logger.info("Found %d subscriptions requiring price drop alerts", len(due))

        for sub, product in due:
            if self.stopping:
                report.stopped_early = True
                return
            try:
                status = self.dispatch_alert(sub, product)
            except Exception as e:
                report.alert_failures += 1
                report.errors.append(f"alert {sub.id}: {e}")
                logger.exception("Error processing alert for subscription %s", sub.id)
                continue

            if status is EmailStatus.SENT:
                report.alerts_sent += 1
            elif status is EmailStatus.RATE_LIMITED:
                report.alerts_rate_limited += 1
            else:
                report.alert_failures += 1

    # ── Tick ──────────────────────────────────────────────────────────────────

    def run_tick(self) -> TickReport | None:
        """Run one tick. Returns None if another tick is already running."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous tick still running, skipping")
            return None
        try:
            return self._run_tick()
        finally:
            self._tick_lock.release()

    def _run_tick(self) -> TickReport:
        self.state.tick_counter += 1
        report = TickReport(tick=self.state.tick_counter)
        logger.info("Starting price check routine (tick %d)", report.tick)

        try:
            product_count = self.storage.count_products()
            if should_discover_this_tick(
                report.tick,
                product_count,
                self.config.discovery_frequency,
                self.config.discovery_product_floor,
            ):
                report.discovery_ran = True
                report.products_added = discover_new_products(
                    self.storage,
                    self.catalog,
                    report.tick,
                    self.config,
                    sleep=self._sleep,
                    stop_event=self._stop,
                    clock=self._clock,
                )
            else:
                logger.info("Skipping product discovery for this run")

            if not self.stopping:
                self.refresh_prices(report)
            if not self.stopping:
                self.dispatch_alerts(report)
            if self.stopping:
                report.stopped_early = True
        except Exception as e:
            report.errors.append(str(e))
            logger.exception("Error in price check routine")

        logger.info(
            "Price check routine completed: %d refreshed, %d failed, %d alerts sent, %d rate-limited",
            report.products_refreshed, report.refresh_failures,
            report.alerts_sent, report.alerts_rate_limited,
        )
        return report
