"""Runtime configuration and logging setup."""

import logging
import sys
from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="SAGA_", env_file=".env", extra="ignore")

    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SAGA_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="Key for the reasoning service. Without it every agent uses its fallback.",
    )
    gm_model: str = "gpt-5.2"
    npc_model: str = "gpt-5-mini"
    narrator_model: str = "gpt-5-mini"
    max_gm_iterations: int = 8
    data_dir: str = "data/sessions"
    store_backend: Literal["jsonl", "sqlite"] = "jsonl"
    log_level: str = "INFO"
    default_player_id: str = "player-1"
    include_trace: bool = False
    narrator_style: str = "plain"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger to output to stdout."""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers when called more than once
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(console_handler)
