from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from markets import MARKET_TABLE, MarketClassifier, load_market_table

_ENV_FILE = Path(__file__).resolve().parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_",
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Fixture feed ---
    sportmonks_base_url: str = "https://api.sportmonks.com/v3"
    sportmonks_api_token: Optional[str] = None
    request_timeout: float = Field(default=15, gt=0)

    # --- Engine ---
    facts_cache_ttl_seconds: float = Field(default=3600, gt=0)
    facts_cache_maxsize: int = Field(default=1024, ge=1)
    market_table_path: Optional[Path] = None

    # --- App ---
    log_level: str = "INFO"


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def build_classifier(settings: Settings) -> MarketClassifier:
    if settings.market_table_path is None:
        return MarketClassifier(MARKET_TABLE)
    return MarketClassifier(load_market_table(settings.market_table_path))


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
