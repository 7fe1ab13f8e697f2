"""
Watchlist definition loader.

Reads a JSON file that maps watchlist names to the tickers they contain,
for bulk imports into the tracker.  Each entry is either a bare symbol or
an object carrying the mention date; the file is loaded eagerly at
construction time so configuration errors surface immediately.

Expected JSON structure::

    {
      "semis": [
        {"symbol": "NVDA", "mention_date": "2024-01-10"},
        {"symbol": "AMD",  "mention_date": "2024-02-01"},
        "AVGO"
      ]
    }
"""
import json
import os
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator


class WatchlistEntry(BaseModel):
    """One ticker to import.  A missing mention date means "today"."""

    symbol: str = Field(..., min_length=1)
    mention_date: Optional[date] = None

    @field_validator("symbol")
    @classmethod
    def normalise_symbol(cls, v: str) -> str:
        return v.strip().upper()


class WatchlistLoader:
    """Loads and caches watchlist → ticker mappings from a JSON file."""

    def __init__(
        self,
        watchlist_file: str = "watchlists/watchlists.json",
    ):
        """
        Args:
            watchlist_file: Path to the watchlist definitions file, relative
                            to the current working directory.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file contains invalid JSON.
        """
        self.file_path = Path(os.getcwd()) / watchlist_file
        self._cache: Dict[str, list] = {}
        self._load_watchlists()

    def _load_watchlists(self) -> None:
        if not self.file_path.exists():
            logger.critical(f"Watchlist file not found at: {self.file_path}")
            raise FileNotFoundError(
                f"Missing watchlist definition file: {self.file_path}"
            )

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                self._cache = json.load(f)
            logger.info(
                f"Loaded watchlist definitions from {self.file_path.name}"
            )
        except json.JSONDecodeError as e:
            logger.critical(f"Invalid JSON in watchlist file: {e}")
            raise ValueError("Corrupted watchlist definition file") from e

    @property
    def names(self) -> List[str]:
        return list(self._cache.keys())

    def get_entries(self, watchlist_name: str) -> List[WatchlistEntry]:
        """Return the validated entries of one watchlist.

        Args:
            watchlist_name: Key in the JSON file (e.g. ``"semis"``).

        Raises:
            KeyError: If *watchlist_name* is not present in the file.
            ValueError: If an entry is malformed.
        """
        if watchlist_name not in self._cache:
            logger.error(
                f"Watchlist '{watchlist_name}' not found. "
                f"Available: {self.names}"
            )
            raise KeyError(f"Unknown watchlist: {watchlist_name}")

        entries = []
        for raw in self._cache[watchlist_name]:
            data = {"symbol": raw} if isinstance(raw, str) else raw
            try:
                entries.append(WatchlistEntry(**data))
            except (TypeError, ValidationError) as e:
                logger.error(f"Invalid watchlist entry: {raw} | Error: {e}")
                raise ValueError(f"Invalid entry in '{watchlist_name}': {raw}") from e

        logger.info(
            f"Selected watchlist '{watchlist_name}': {len(entries)} tickers"
        )
        return entries
