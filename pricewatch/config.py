"""Environment-driven engine settings."""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_HOURS = 72


def is_production() -> bool:
    """True when APP_ENV is production."""
    return os.environ.get("APP_ENV", "development").lower() == "production"


def _env_int(name: str, default: int) -> int:
    val = os.environ.get(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError:
        logger.warning("%s=%r is not an integer, using %d", name, val, default)
        return default


def _env_float(name: str, default: float) -> float:
    val = os.environ.get(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError:
        logger.warning("%s=%r is not a number, using %s", name, val, default)
        return default


def get_default_cooldown_hours() -> int:
    """Cooldown used when global_config has no cooldown_hours row."""
    return _env_int("DEFAULT_COOLDOWN_HOURS", DEFAULT_COOLDOWN_HOURS)


@dataclass
class EngineConfig:
    """Tunables for one engine instance. Defaults match development mode."""

    production: bool = False
    check_interval_minutes: int = 5
    max_updates_per_run: int = 3
    discovery_frequency: int = 5
    discovery_terms_per_run: int = 2
    discovery_search_limit: int = 3
    discovery_product_floor: int = 10
    refresh_delay_seconds: float = 1.0
    discovery_term_delay_seconds: float = 1.0
    discovery_product_delay_seconds: float = 0.1
    rate_limit_sweep_minutes: int = 15

    @classmethod
    def for_environment(cls, production: bool) -> "EngineConfig":
        if production:
            return cls(
                production=True,
                check_interval_minutes=4 * 60,
                max_updates_per_run=20,
                discovery_frequency=6,
                discovery_terms_per_run=3,
                discovery_search_limit=5,
            )
        return cls()

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build config from APP_ENV, then apply individual overrides."""
        base = cls.for_environment(is_production())
        return cls(
            production=base.production,
            check_interval_minutes=_env_int("CHECK_INTERVAL_MINUTES", base.check_interval_minutes),
            max_updates_per_run=_env_int("MAX_UPDATES_PER_RUN", base.max_updates_per_run),
            discovery_frequency=base.discovery_frequency,
            discovery_terms_per_run=base.discovery_terms_per_run,
            discovery_search_limit=base.discovery_search_limit,
            discovery_product_floor=base.discovery_product_floor,
            refresh_delay_seconds=_env_float("REFRESH_DELAY_SECONDS", base.refresh_delay_seconds),
            discovery_term_delay_seconds=_env_float(
                "DISCOVERY_TERM_DELAY_SECONDS", base.discovery_term_delay_seconds
            ),
            discovery_product_delay_seconds=_env_float(
                "DISCOVERY_PRODUCT_DELAY_SECONDS", base.discovery_product_delay_seconds
            ),
            rate_limit_sweep_minutes=_env_int("RATE_LIMIT_SWEEP_MINUTES", base.rate_limit_sweep_minutes),
        )
