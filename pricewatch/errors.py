"""Exceptions raised by pricewatch components."""

import math


class PriceWatchError(Exception):
    """Base class for pricewatch errors."""


class CatalogError(PriceWatchError):
    """Catalog API call failed."""


class ProductNotFoundError(CatalogError):
    """Catalog has no product for the requested ASIN."""

    def __init__(self, asin: str):
        super().__init__(f"No product data found for ASIN {asin}")
        self.asin = asin


class CatalogThrottledError(CatalogError):
    """Catalog kept throttling us after all retries."""


class InvalidPriceError(PriceWatchError):
    """Price value cannot be persisted."""


def validate_price(value) -> float:
    """
    Coerce a catalog price to float.

    Raises InvalidPriceError for non-numeric, NaN, infinite or negative values.
    Zero is accepted.
    """
    if isinstance(value, bool):
        raise InvalidPriceError(f"Malformed price: {value!r}")
    try:
        price = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidPriceError(f"Malformed price: {value!r}") from e
    if math.isnan(price) or math.isinf(price) or price < 0:
        raise InvalidPriceError(f"Malformed price: {value!r}")
    return price
