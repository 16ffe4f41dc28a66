"""Configuration helpers for the TripLog API client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_API_BASE_URL = "http://127.0.0.1:8080"
DEFAULT_TIMEOUT = 15
DEFAULT_LOCALE = "ko-KR"


@dataclass(slots=True)
class ClientConfig:
    """Connection settings for the client."""

    api_base_url: str = DEFAULT_API_BASE_URL
    api_token: Optional[str] = None
    timeout_seconds: int = DEFAULT_TIMEOUT
    locale: str = DEFAULT_LOCALE


def load_config(env_path: Optional[Path] = None) -> ClientConfig:
    """Load configuration from the environment and an optional `.env` file."""

    env_path = env_path or Path(__file__).resolve().parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return ClientConfig(
        api_base_url=os.getenv("TRIPLOG_API_BASE_URL", DEFAULT_API_BASE_URL),
        api_token=os.getenv("TRIPLOG_API_TOKEN"),
        timeout_seconds=int(os.getenv("TRIPLOG_API_TIMEOUT", DEFAULT_TIMEOUT)),
        locale=os.getenv("TRIPLOG_LOCALE", DEFAULT_LOCALE),
    )


__all__ = ["ClientConfig", "load_config"]
