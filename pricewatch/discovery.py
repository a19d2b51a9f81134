"""Catalog discovery: when to run it and how to add new products."""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable

from pricewatch.config import EngineConfig
from pricewatch.errors import InvalidPriceError, validate_price
from pricewatch.fetchers.catalog import CatalogClient
from pricewatch.models import Product
from pricewatch.recorder import record_if_significant
from pricewatch.storage import Storage

logger = logging.getLogger(__name__)

SEARCH_TERMS = [
    "electronics bestseller",
    "trending tech gadgets",
    "smart home devices",
    "top rated home products",
    "best selling beauty products",
    "kitchen gadgets",
    "premium headphones",
    "gaming accessories",
    "office products",
    "amazon device deals",
]

# Discovered products get a synthetic list price so they show up as deals.
DISCOVERY_MARKUP = 1.15
PRODUCT_FLOOR = 10


def should_discover_this_tick(
    tick_counter: int,
    product_count: int,
    frequency: int,
    floor: int = PRODUCT_FLOOR,
) -> bool:
    """
    Decide whether this tick runs discovery.

    Runs on every Nth tick (counter % N == 1), and always while the catalog
    holds fewer than `floor` products.
    """
    if product_count < floor:
        logger.info("Only %d products in database, running discovery to populate", product_count)
        return True
    return tick_counter % frequency == 1


def terms_for_tick(tick_counter: int, count: int, terms: list[str] = SEARCH_TERMS) -> list[str]:
    """Consecutive slice of the term list, rotated by the tick counter."""
    start = tick_counter % len(terms)
    return [terms[(start + i) % len(terms)] for i in range(min(count, len(terms)))]


def discover_new_products(
    storage: Storage,
    catalog: CatalogClient,
    tick_counter: int,
    config: EngineConfig,
    sleep: Callable[[float], None] = time.sleep,
    stop_event: threading.Event | None = None,
    clock: Callable[[], datetime] | None = None,
) -> int:
    """Search the catalog and insert products we don't track yet. Returns number added."""
    search_terms = terms_for_tick(tick_counter, config.discovery_terms_per_run)
    logger.info("Discovering products for terms: %s", ", ".join(search_terms))

    added = 0
    for term in search_terms:
        if stop_event is not None and stop_event.is_set():
            break
        try:
            results = catalog.search_products(term, config.discovery_search_limit)
        except Exception as e:
            logger.error("Error searching for %r: %s", term, e)
            sleep(config.discovery_term_delay_seconds)
            continue

        for candidate in results:
            if stop_event is not None and stop_event.is_set():
                break
            try:
                if not candidate.price:
                    logger.info("Skipping product without price: %s", candidate.title[:60])
                    continue
                price = validate_price(candidate.price)
                if storage.get_product_by_asin(candidate.asin):
                    continue

                now = clock() if clock is not None else datetime.now(timezone.utc)
                original = round(price * DISCOVERY_MARKUP, 2)
                product = storage.create_product(
                    Product(
                        asin=candidate.asin,
                        title=candidate.title,
                        url=candidate.url,
                        image_url=candidate.image_url,
                        current_price=price,
                        original_price=original,
                        lowest_price=price,
                        highest_price=max(price, original),
                        last_checked=now,
                        is_discovered=True,
                    )
                )
                record_if_significant(storage, product.id, price, now=now)
                added += 1
                logger.info("Added new product: %s", candidate.title[:60])
            except InvalidPriceError as e:
                logger.warning("Skipping %s: %s", candidate.asin, e)
            except Exception:
                logger.exception("Error adding product %s", candidate.asin)
            finally:
                sleep(config.discovery_product_delay_seconds)

        sleep(config.discovery_term_delay_seconds)

    logger.info("Product discovery completed: %d new products added", added)
    return added
