"""Configuration via Pydantic Settings."""

import logging
import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, loaded from `MOODPET_*` environment variables / .env file."""

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"

    # Server
    lock_timeout: float = 2.0
    enforce_cooldowns: bool = True
    default_pet_name: str = "My pet"
    default_pet_type: str = "mood_cat"

    # Client / CLI
    base_url: str = "http://localhost:8000"
    token: str = ""
    request_timeout: float = 10.0
    cooldown_file: str = os.path.join(os.path.expanduser("~/.moodpet"), "cooldowns.json")

    model_config = SettingsConfigDict(
        env_prefix="MOODPET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def configure_logging(level: str) -> None:
    """Set up root logging once for the server process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


settings = Settings()
