from __future__ import annotations

import os
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "TripLog"
    environment: str = "development"
    host: str = os.getenv("TL_HOST", "127.0.0.1")
    port: int = int(os.getenv("TL_PORT", "8080"))
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("TL_CORS_ORIGINS", "http://127.0.0.1:5173,http://localhost:5173").split(",")
            if origin.strip()
        ]
    )

    sqlite_path: Path = Path(os.getenv("TL_SQLITE_PATH", "./data/triplog.db"))

    locale: str = os.getenv("TL_LOCALE", "ko-KR")
    timezone: str = os.getenv("TZ", "Asia/Seoul")

    token_secret: str = os.getenv("TL_TOKEN_SECRET", "change-me")
    token_ttl_minutes: int = int(os.getenv("TL_TOKEN_TTL_MINUTES", str(60 * 24 * 30)))

    recent_price_days: int = int(os.getenv("TL_RECENT_PRICE_DAYS", "90"))
    monthly_blank_rows: int = int(os.getenv("TL_MONTHLY_BLANK_ROWS", "3"))
    invoice_template_rows: int = int(os.getenv("TL_INVOICE_TEMPLATE_ROWS", "10"))
    top_routes_limit: int = int(os.getenv("TL_TOP_ROUTES_LIMIT", "5"))

    log_level: str = os.getenv("TL_LOG_LEVEL", "INFO")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if not value:
            return []
        return [origin.strip() for origin in value.split(",") if origin.strip()]


settings = Settings()

# Ensure the database directory exists
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
