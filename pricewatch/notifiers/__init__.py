"""Notification backends."""

from pricewatch.notifiers.email import build_subject, send_price_drop_alert

__all__ = ["build_subject", "send_price_drop_alert"]
