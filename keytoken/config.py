"""
Keytoken Configuration

Manages workflow settings with environment variable support.
"""

import logging
import sys
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Workflow settings with environment variable support."""
    
    model_config = SettingsConfigDict(
        env_prefix="KEYTOKEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    app_name: str = "Keytoken"
    
    # Timeouts (seconds)
    lookup_timeout: float = Field(default=30.0, gt=0)
    operation_timeout: float = Field(default=60.0, gt=0)
    
    # Result log
    log_indent: int = Field(default=0, ge=0)
    
    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


def configure_logging(config: Optional[Settings] = None) -> None:
    """Install the stdout log handler at the configured level."""
    config = config or get_settings()
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
