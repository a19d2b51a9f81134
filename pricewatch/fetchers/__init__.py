"""Catalog clients for price data."""

from pricewatch.fetchers.catalog import CatalogClient, HttpCatalogClient

__all__ = ["CatalogClient", "HttpCatalogClient"]
