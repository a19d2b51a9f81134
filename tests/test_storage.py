"""Tests for SQLite persistence."""

from datetime import timedelta

from pricewatch.models import EmailLogEntry, EmailStatus, PriceHistoryEntry
from pricewatch.storage import Storage
from tests.conftest import NOW, make_product, make_subscription


class TestStorage:
    def test_db_path_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DB_PATH", str(tmp_path / "env.db"))

        assert Storage().db_path == tmp_path / "env.db"

    def test_product_round_trip(self, storage):
        product = make_product(storage, asin="B1", price=12.5, original=20.0, is_discovered=True)

        loaded = storage.get_product_by_asin("B1")
        assert loaded == product
        assert storage.count_products() == 1

    def test_history_newest_first(self, storage):
        product = make_product(storage)
        for hours in (0, 2, 1):
            storage.add_price_history(
                PriceHistoryEntry(product_id=product.id, price=float(hours), timestamp=NOW + timedelta(hours=hours))
            )

        assert [e.price for e in storage.get_price_history(product.id)] == [2.0, 1.0, 0.0]

    def test_history_metadata_round_trip(self, storage):
        product = make_product(storage)
        storage.add_price_history(
            PriceHistoryEntry(product_id=product.id, price=1.0, timestamp=NOW, metadata={"previous_price": 2.0})
        )

        assert storage.get_price_history(product.id)[0].metadata == {"previous_price": 2.0}

    def test_update_subscription(self, storage):
        product = make_product(storage)
        sub = make_subscription(storage, product)
        sub.last_alert_sent = NOW
        sub.notified = True
        sub.last_notified_price = 42.0

        storage.update_subscription(sub)

        loaded = storage.get_subscription(sub.id)
        assert loaded.last_alert_sent == NOW
        assert loaded.notified is True
        assert loaded.last_notified_price == 42.0

    def test_global_config_upsert(self, storage):
        assert storage.get_global_config("cooldown_hours") is None

        storage.set_global_config("cooldown_hours", "48")
        storage.set_global_config("cooldown_hours", "24")

        assert storage.get_global_config("cooldown_hours") == "24"

    def test_email_log(self, storage):
        storage.log_email(
            EmailLogEntry(recipient="a@example.com", subject="s", status=EmailStatus.FAILED, created_at=NOW)
        )

        [entry] = storage.list_email_logs()
        assert entry.status is EmailStatus.FAILED
        assert entry.created_at == NOW
