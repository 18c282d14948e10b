"""Centralized configuration management for the Firestore batcher.

This module provides a single source of truth for all configuration
including the store backend, batch sizing, logging and metrics.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings

from ..controller import DEFAULT_GROWTH_FACTOR
from ..controller import DEFAULT_SHRINK_DIVISOR
from ..controller import MAX_BATCH_SIZE


class Settings(BaseSettings):
    """Centralized settings for the Firestore batcher."""

    # === Store Configuration ===
    store_backend: str = Field(default="auto", description="Store backend: 'auto', 'memory', or 'firestore'")
    firestore_project: str | None = Field(default=None, description="GCP project hosting the Firestore database")
    firestore_database: str | None = Field(default=None, description="Firestore database id")
    firestore_emulator_host: str | None = Field(default=None, description="Firestore emulator host:port")
    memory_max_transaction_bytes: int = Field(
        default=10 * 1024 * 1024, description="Transaction size ceiling of the in-memory store"
    )

    # === Batch Sizing ===
    max_batch_size: int = Field(default=MAX_BATCH_SIZE, description="Upper bound and initial batch size")
    growth_factor: float = Field(default=DEFAULT_GROWTH_FACTOR, description="Batch size multiplier after success")
    shrink_divisor: float = Field(default=DEFAULT_SHRINK_DIVISOR, description="Batch size divisor after oversize")

    # === Test Environment Detection ===
    pytest_current_test: str | None = Field(default=None, description="Test mode indicator")

    # === Logging Configuration ===
    log_level: str = Field(default="INFO", description="Logging level")
    structured_logging: bool = Field(default=True, description="Enable structured JSON logging")
    log_file: str | None = Field(default=None, description="Optional rotating log file path")

    # === Performance Configuration ===
    enable_metrics: bool = Field(default=True, description="Enable metrics collection")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra environment variables
    }

    def __init__(self, **kwargs):
        """Initialize settings with environment-specific adjustments."""
        super().__init__(**kwargs)
        self._adjust_for_test_environment()

    def _adjust_for_test_environment(self):
        """Adjust settings for test environment."""
        if self.is_test_environment:
            self.enable_metrics = False

    @field_validator("max_batch_size")
    @classmethod
    def validate_max_batch_size(cls, value: int) -> int:
        if not 1 <= value <= MAX_BATCH_SIZE:
            raise ValueError(f"max_batch_size must be between 1 and {MAX_BATCH_SIZE}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @property
    def is_test_environment(self) -> bool:
        """Check if running in test environment."""
        return "PYTEST_CURRENT_TEST" in os.environ or self.pytest_current_test is not None

    @property
    def store_kwargs(self) -> dict:
        """Keyword arguments for ``create_document_store``."""
        return {
            "project": self.firestore_project,
            "database": self.firestore_database,
            "emulator_host": self.firestore_emulator_host,
            "max_transaction_bytes": self.memory_max_transaction_bytes,
        }


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        load_dotenv()  # Load .env file
        _settings = Settings()
    return _settings


def reset_settings():
    """Reset the global settings instance (primarily for testing)."""
    global _settings
    _settings = None
