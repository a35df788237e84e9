"""
Configuration module for loading environment variables.
All configuration values are read once at import time.
"""
import os
from typing import Optional


VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return float(raw)


class Config:
    """Application configuration loaded from environment variables."""

    # Reference usage catalogue (defaults to the packaged data/reference_usage.yml)
    USAGE_REFERENCE_FILE: str = os.getenv("USAGE_REFERENCE_FILE", "")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # AWS usage lookups
    AWS_DEFAULT_REGION: str = os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    AWS_USAGE_TIMEOUT_SECONDS: int = int(os.getenv("AWS_USAGE_TIMEOUT_SECONDS", "10"))

    # Optional deadline for the estimation phase of a sync request
    ESTIMATION_DEADLINE_SECONDS: Optional[float] = _optional_float("ESTIMATION_DEADLINE_SECONDS")

    @classmethod
    def validate(cls) -> None:
        """
        Validates configuration values.

        Raises:
            ValueError: If any configuration value is invalid.
        """
        if cls.LOG_LEVEL not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {sorted(VALID_LOG_LEVELS)} (got: {cls.LOG_LEVEL})"
            )
        if cls.AWS_USAGE_TIMEOUT_SECONDS <= 0:
            raise ValueError("AWS_USAGE_TIMEOUT_SECONDS must be positive")
        if cls.ESTIMATION_DEADLINE_SECONDS is not None and cls.ESTIMATION_DEADLINE_SECONDS <= 0:
            raise ValueError("ESTIMATION_DEADLINE_SECONDS must be positive when set")


config = Config()
