"""
divtracker/config.py  —  Settings

Every value can be overridden from the environment (or a .env file) with a
DIVTRACKER_ prefix, e.g.  DIVTRACKER_STORAGE_BACKEND=json
DIVTRACKER_PRICE_REFRESH_SECONDS=60

The rest of the package reads the module-level names below.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DIVTRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    storage_backend: Literal["sqlite", "json"] = "sqlite"
    db_file:   str = "dividends.db"
    json_file: str = "dividends.json"

    price_refresh_seconds: float = Field(
        default=30.0, ge=0,
        description="Minimum seconds between two live fetches of the same symbol",
    )

    currency_symbol:        str = "$"
    default_portfolio_name: str = "My Portfolio"
    log_level:              str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


_settings = get_settings()

# ── Storage ───────────────────────────────────────────────────────────────────
STORAGE_BACKEND = _settings.storage_backend
DB_FILE         = _settings.db_file
JSON_FILE       = _settings.json_file

# ── Prices ────────────────────────────────────────────────────────────────────
PRICE_REFRESH_SECONDS = _settings.price_refresh_seconds

# ── Projection / display ──────────────────────────────────────────────────────
PROJECTION_MONTHS      = 12
CURRENCY_SYMBOL        = _settings.currency_symbol
DEFAULT_PORTFOLIO_NAME = _settings.default_portfolio_name
LOG_LEVEL              = _settings.log_level.upper()
