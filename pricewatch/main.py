"""Entry point and scheduler for the price monitor."""

import logging
import os
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pricewatch.config import EngineConfig
from pricewatch.engine import PriceMonitor
from pricewatch.fetchers.catalog import HttpCatalogClient
from pricewatch.storage import Storage

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def build_scheduler(monitor: PriceMonitor) -> BlockingScheduler:
    """Register the tick and rate-limit sweep jobs."""
    config = monitor.config
    scheduler = BlockingScheduler()
    scheduler.add_job(
        monitor.run_tick,
        trigger=IntervalTrigger(minutes=config.check_interval_minutes),
        id="price_check",
        max_instances=1,          # Prevent overlapping ticks
        coalesce=True,
        misfire_grace_time=300,
    )
    scheduler.add_job(
        monitor.rate_limiter.sweep,
        trigger=IntervalTrigger(minutes=config.rate_limit_sweep_minutes),
        id="rate_limit_sweep",
        max_instances=1,
    )
    return scheduler


def install_signal_handlers(monitor: PriceMonitor, scheduler: BlockingScheduler) -> None:
    """Stop scheduling on SIGINT/SIGTERM and let the in-flight tick wind down."""

    def _handle(signum, frame):
        logger.info("Received %s, shutting down after current item", signal.Signals(signum).name)
        monitor.request_stop()
        if scheduler.running:
            scheduler.shutdown(wait=True)

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main() -> None:
    """Initialize DB, run one tick immediately, then start the scheduler."""
    storage = Storage()
    storage.init_db()
    config = EngineConfig.from_env()
    monitor = PriceMonitor(storage, HttpCatalogClient(), config=config)

    logger.info(
        "🚀 Price monitor started (%s, every %d min, %d updates per run)",
        "production" if config.production else "development",
        config.check_interval_minutes,
        config.max_updates_per_run,
    )

    scheduler = build_scheduler(monitor)
    install_signal_handlers(monitor, scheduler)

    # First tick runs immediately instead of after one interval.
    monitor.run_tick()
    if monitor.stopping:
        return

    scheduler.start()
    logger.info("Price monitor stopped")


if __name__ == "__main__":
    main()
