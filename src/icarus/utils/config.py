"""
Runtime configuration.

Values come from environment variables (a ``.env`` file is loaded by the
CLI through python-dotenv before this module is used).  The pydantic model
validates them once at startup so a bad value fails immediately instead of
mid-refresh.

    ICARUS_DB_URL          SQLAlchemy URL           (sqlite:///data/icarus.db)
    ICARUS_BENCHMARK       benchmark symbol         (SPY)
    ICARUS_HISTORY_YEARS   backfill for new tickers (2)
    ICARUS_REFRESH_DAYS    refresh lookback         (7)
    ICARUS_LOG_DIR         log directory            (logs)
    ICARUS_LOG_LEVEL       console log level        (INFO)
"""
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class TrackerConfig(BaseModel):
    """Validated settings shared by the CLI and the tracker service."""

    db_url: str = Field("sqlite:///data/icarus.db", description="SQLAlchemy database URL")
    benchmark_symbol: str = Field("SPY", min_length=1, description="Benchmark ticker")
    history_years: int = Field(2, gt=0, description="Years of history fetched for a new ticker")
    refresh_days: int = Field(7, gt=0, description="Calendar days re-fetched by refresh")
    log_dir: str = Field("logs", description="Directory for rotated log files")
    log_level: str = Field("INFO", description="Console log level")

    @field_validator("benchmark_symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("log_level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LEVELS)}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TrackerConfig":
        """Build the config from *environ* (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ
        mapping = {
            "db_url": "ICARUS_DB_URL",
            "benchmark_symbol": "ICARUS_BENCHMARK",
            "history_years": "ICARUS_HISTORY_YEARS",
            "refresh_days": "ICARUS_REFRESH_DAYS",
            "log_dir": "ICARUS_LOG_DIR",
            "log_level": "ICARUS_LOG_LEVEL",
        }
        values = {field: env[var] for field, var in mapping.items() if env.get(var)}
        return cls(**values)
