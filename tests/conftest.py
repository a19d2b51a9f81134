"""Shared fixtures for pricewatch tests."""

from datetime import datetime, timedelta, timezone

import pytest

from pricewatch.errors import ProductNotFoundError
from pricewatch.models import Product, ProductInfo, Subscription
from pricewatch.storage import Storage

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Mutable clock for deterministic time travel."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeCatalog:
    """In-memory catalog; values that are exceptions get raised."""

    def __init__(self, products=None, search_results=None):
        self.products = products or {}
        self.search_results = search_results or {}
        self.lookups: list[str] = []
        self.searches: list[tuple[str, int | None]] = []

    def get_product_info(self, asin):
        self.lookups.append(asin)
        value = self.products.get(asin)
        if value is None:
            raise ProductNotFoundError(asin)
        if isinstance(value, Exception):
            raise value
        return value

    def search_products(self, term, limit=None):
        self.searches.append((term, limit))
        value = self.search_results.get(term, [])
        if isinstance(value, Exception):
            raise value
        return value[:limit] if limit is not None else value


@pytest.fixture
def storage(tmp_path):
    store = Storage(tmp_path / "test.db")
    store.init_db()
    return store


@pytest.fixture
def clock():
    return FakeClock()


def make_product(storage, asin="B000000001", price=100.0, original=None, last_checked=NOW, **kwargs):
    return storage.create_product(
        Product(
            asin=asin,
            title=kwargs.pop("title", f"Product {asin}"),
            url=kwargs.pop("url", f"https://example.com/dp/{asin}"),
            current_price=price,
            original_price=original,
            lowest_price=kwargs.pop("lowest_price", price),
            highest_price=kwargs.pop("highest_price", price),
            last_checked=last_checked,
            **kwargs,
        )
    )


def make_subscription(storage, product, email="shopper@example.com", target=50.0, **kwargs):
    return storage.create_subscription(
        Subscription(product_id=product.id, email=email, target_price=target, **kwargs)
    )


def info(asin, price, original=None):
    return ProductInfo(
        asin=asin,
        price=price,
        title=f"Product {asin}",
        url=f"https://example.com/dp/{asin}",
        original_price=original,
    )
