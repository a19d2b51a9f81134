"""HTTP product catalog client."""

import logging
import os
import time
from typing import Protocol

import requests

from pricewatch.errors import CatalogError, CatalogThrottledError, ProductNotFoundError
from pricewatch.models import ProductInfo, SearchCandidate

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://catalog.example.com/v1"
REQUEST_TIMEOUT = 15
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 2.0
THROTTLE_STATUSES = (429, 503)


class CatalogClient(Protocol):
    def get_product_info(self, asin: str) -> ProductInfo: ...

    def search_products(self, term: str, limit: int | None = None) -> list[SearchCandidate]: ...


def _optional_float(value) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _product_info_from_data(data: dict, asin: str) -> ProductInfo:
    """Build ProductInfo from API response. Price is passed through for validation."""
    return ProductInfo(
        asin=data.get("asin", asin),
        price=data.get("price"),
        title=data.get("title", asin),
        url=data.get("url", ""),
        original_price=_optional_float(data.get("originalPrice")),
        image_url=data.get("imageUrl"),
    )


def _candidate_from_data(data: dict) -> SearchCandidate | None:
    asin = data.get("asin")
    if not asin:
        return None
    return SearchCandidate(
        asin=asin,
        title=data.get("title", asin),
        url=data.get("url", ""),
        price=_optional_float(data.get("price")),
        image_url=data.get("imageUrl"),
    )


class HttpCatalogClient:
    """
    JSON catalog API client.

    Throttled responses (429/503) are retried with a linear backoff; every
    other failure surfaces as a CatalogError for the caller to log and skip.
    """

    def __init__(
        self,
        api_base: str | None = None,
        api_key: str | None = None,
        session: requests.Session | None = None,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ):
        self.api_base = (api_base or os.environ.get("CATALOG_API_BASE", DEFAULT_API_BASE)).rstrip("/")
        self.api_key = api_key or os.environ.get("CATALOG_API_KEY")
        self.session = session or requests.Session()
        self.retry_delay = retry_delay

    def _get(self, path: str, params: dict) -> requests.Response:
        url = f"{self.api_base}{path}"
        if self.api_key:
            params = {**params, "apiKey": self.api_key}

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                resp = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
            except requests.RequestException as e:
                raise CatalogError(f"Catalog request to {path} failed: {e}") from e

            if resp.status_code not in THROTTLE_STATUSES:
                return resp

            logger.warning(
                "Catalog throttled %s (attempt %d/%d, status %d)",
                path, attempt, MAX_RETRIES, resp.status_code,
            )
            if attempt < MAX_RETRIES:
                time.sleep(self.retry_delay * attempt)

        raise CatalogThrottledError(f"Catalog throttled {path} after {MAX_RETRIES} attempts")

    def get_product_info(self, asin: str) -> ProductInfo:
        resp = self._get(f"/products/{asin}", {})
        if resp.status_code == 404:
            raise ProductNotFoundError(asin)
        try:
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise CatalogError(f"Catalog lookup for {asin} failed: {e}") from e
        return _product_info_from_data(data, asin)

    def search_products(self, term: str, limit: int | None = None) -> list[SearchCandidate]:
        params: dict = {"q": term}
        if limit is not None:
            params["limit"] = limit
        resp = self._get("/search", params)
        try:
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise CatalogError(f"Catalog search for {term!r} failed: {e}") from e

        results: list[SearchCandidate] = []
        for item in data.get("items", []):
            candidate = _candidate_from_data(item)
            if candidate:
                results.append(candidate)
        return results[:limit] if limit is not None else results
