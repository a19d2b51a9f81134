"""SQLite persistence for products, price history and subscriptions."""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from pricewatch.models import (
    EmailLogEntry,
    EmailStatus,
    PriceHistoryEntry,
    Product,
    Subscription,
)


def get_db_path() -> Path:
    """Get database path from env or default."""
    path = os.environ.get("DB_PATH", "data/pricewatch.db")
    return Path(path)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        asin=row["asin"],
        title=row["title"],
        url=row["url"],
        image_url=row["image_url"],
        current_price=row["current_price"],
        original_price=row["original_price"],
        lowest_price=row["lowest_price"],
        highest_price=row["highest_price"],
        last_checked=_parse_ts(row["last_checked"]),
        is_discovered=bool(row["is_discovered"]),
    )


def _row_to_subscription(row: sqlite3.Row) -> Subscription:
    return Subscription(
        id=row["id"],
        product_id=row["product_id"],
        email=row["email"],
        user_id=row["user_id"],
        target_price=row["target_price"],
        percentage_alert=bool(row["percentage_alert"]),
        percentage_threshold=row["percentage_threshold"],
        notified=bool(row["notified"]),
        last_alert_sent=_parse_ts(row["last_alert_sent"]),
        last_notified_price=row["last_notified_price"],
    )


class Storage:
    """Thin data-access layer over a single SQLite file."""

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = Path(db_path) if db_path is not None else get_db_path()

    @contextmanager
    def get_connection(self):
        """Context manager for SQLite connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS products (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    asin TEXT NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    url TEXT NOT NULL,
                    image_url TEXT,
                    current_price REAL NOT NULL,
                    original_price REAL,
                    lowest_price REAL,
                    highest_price REAL,
                    last_checked TIMESTAMP NOT NULL,
                    is_discovered INTEGER NOT NULL DEFAULT 0
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS price_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    product_id INTEGER NOT NULL,
                    price REAL NOT NULL,
                    timestamp TIMESTAMP NOT NULL,
                    metadata TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_history_product_ts
                ON price_history(product_id, timestamp)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    product_id INTEGER NOT NULL,
                    email TEXT NOT NULL,
                    user_id TEXT,
                    target_price REAL NOT NULL,
                    percentage_alert INTEGER NOT NULL DEFAULT 0,
                    percentage_threshold REAL,
                    notified INTEGER NOT NULL DEFAULT 0,
                    last_alert_sent TIMESTAMP,
                    last_notified_price REAL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS global_config (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS email_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipient TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    status TEXT NOT NULL,
                    product_id INTEGER,
                    subscription_id INTEGER,
                    created_at TIMESTAMP NOT NULL
                )
            """)

    # ── Products ──────────────────────────────────────────────────────────────

    def create_product(self, product: Product) -> Product:
        """Insert a product and return it with its new id."""
        with self.get_connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO products (asin, title, url, image_url, current_price, original_price,
                                      lowest_price, highest_price, last_checked, is_discovered)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    product.asin,
                    product.title,
                    product.url,
                    product.image_url,
                    product.current_price,
                    product.original_price,
                    product.lowest_price,
                    product.highest_price,
                    _ts(product.last_checked),
                    int(product.is_discovered),
                ),
            )
            product.id = cur.lastrowid
        return product

    def get_product(self, product_id: int) -> Product | None:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        return _row_to_product(row) if row else None

    def get_product_by_asin(self, asin: str) -> Product | None:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM products WHERE asin = ?", (asin,)).fetchone()
        return _row_to_product(row) if row else None

    def list_products(self) -> list[Product]:
        with self.get_connection() as conn:
            rows = conn.execute("SELECT * FROM products ORDER BY id").fetchall()
        return [_row_to_product(r) for r in rows]

    def count_products(self) -> int:
        with self.get_connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM products").fetchone()
        return row["n"]

    def update_product(self, product: Product) -> None:
        """Write back the mutable price fields of a product."""
        with self.get_connection() as conn:
            conn.execute(
                """
                UPDATE products
                SET current_price = ?, original_price = ?, lowest_price = ?,
                    highest_price = ?, last_checked = ?, title = ?, url = ?, image_url = ?
                WHERE id = ?
                """,
                (
                    product.current_price,
                    product.original_price,
                    product.lowest_price,
                    product.highest_price,
                    _ts(product.last_checked),
                    product.title,
                    product.url,
                    product.image_url,
                    product.id,
                ),
            )

    # ── Price history ─────────────────────────────────────────────────────────

    def add_price_history(self, entry: PriceHistoryEntry) -> PriceHistoryEntry:
        """Append a price history entry."""
        with self.get_connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO price_history (product_id, price, timestamp, metadata)
                VALUES (?, ?, ?, ?)
                """,
                (
                    entry.product_id,
                    entry.price,
                    _ts(entry.timestamp),
                    json.dumps(entry.metadata) if entry.metadata is not None else None,
                ),
            )
            new_id = cur.lastrowid
        return PriceHistoryEntry(
            id=new_id,
            product_id=entry.product_id,
            price=entry.price,
            timestamp=entry.timestamp,
            metadata=entry.metadata,
        )

    def get_price_history(self, product_id: int) -> list[PriceHistoryEntry]:
        """History for a product, most recent first."""
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM price_history
                WHERE product_id = ?
                ORDER BY timestamp DESC, id DESC
                """,
                (product_id,),
            ).fetchall()
        return [
            PriceHistoryEntry(
                id=r["id"],
                product_id=r["product_id"],
                price=r["price"],
                timestamp=_parse_ts(r["timestamp"]),
                metadata=json.loads(r["metadata"]) if r["metadata"] else None,
            )
            for r in rows
        ]

    # ── Subscriptions ─────────────────────────────────────────────────────────

    def create_subscription(self, sub: Subscription) -> Subscription:
        with self.get_connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO subscriptions (product_id, email, user_id, target_price, percentage_alert,
                                           percentage_threshold, notified, last_alert_sent,
                                           last_notified_price)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sub.product_id,
                    sub.email,
                    sub.user_id,
                    sub.target_price,
                    int(sub.percentage_alert),
                    sub.percentage_threshold,
                    int(sub.notified),
                    _ts(sub.last_alert_sent),
                    sub.last_notified_price,
                ),
            )
            sub.id = cur.lastrowid
        return sub

    def get_subscription(self, subscription_id: int) -> Subscription | None:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM subscriptions WHERE id = ?", (subscription_id,)
            ).fetchone()
        return _row_to_subscription(row) if row else None

    def list_subscriptions(self) -> list[Subscription]:
        with self.get_connection() as conn:
            rows = conn.execute("SELECT * FROM subscriptions ORDER BY id").fetchall()
        return [_row_to_subscription(r) for r in rows]

    def update_subscription(self, sub: Subscription) -> None:
        """Persist alert bookkeeping fields of a subscription."""
        with self.get_connection() as conn:
            conn.execute(
                """
                UPDATE subscriptions
                SET notified = ?, last_alert_sent = ?, last_notified_price = ?
                WHERE id = ?
                """,
                (int(sub.notified), _ts(sub.last_alert_sent), sub.last_notified_price, sub.id),
            )

    # ── Global config ─────────────────────────────────────────────────────────

    def get_global_config(self, key: str) -> str | None:
        with self.get_connection() as conn:
            row = conn.execute("SELECT value FROM global_config WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_global_config(self, key: str, value: str) -> None:
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO global_config (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    # ── Email log ─────────────────────────────────────────────────────────────

    def log_email(self, entry: EmailLogEntry) -> None:
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO email_logs (recipient, subject, status, product_id, subscription_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.recipient,
                    entry.subject,
                    entry.status.value,
                    entry.product_id,
                    entry.subscription_id,
                    _ts(entry.created_at),
                ),
            )

    def list_email_logs(self) -> list[EmailLogEntry]:
        with self.get_connection() as conn:
            rows = conn.execute("SELECT * FROM email_logs ORDER BY id").fetchall()
        return [
            EmailLogEntry(
                id=r["id"],
                recipient=r["recipient"],
                subject=r["subject"],
                status=EmailStatus(r["status"]),
                product_id=r["product_id"],
                subscription_id=r["subscription_id"],
                created_at=_parse_ts(r["created_at"]),
            )
            for r in rows
        ]
