"""
Abstract storage interface for tracked tickers and price history.

Implementations must uphold two guarantees the alignment core relies on:
  - at most one price row per (symbol, date); inserting an existing date
    leaves the stored row untouched;
  - histories are returned ascending by date.

Symbols are upper-cased on every call.
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence, Tuple

from src.icarus.data.schemas import PricePoint, TickerRecord


class TickerStore(ABC):
    """Persistence contract for tickers, their prices and the benchmark."""

    @abstractmethod
    def get(self, symbol: str) -> Optional[TickerRecord]:
        """Return the ticker, archived or not, or ``None``."""

    @abstractmethod
    def upsert(self, record: TickerRecord) -> TickerRecord:
        """Insert or replace the ticker keyed by its symbol."""

    @abstractmethod
    def list(
        self,
        include_archived: bool = False,
        sector: Optional[str] = None,
    ) -> List[TickerRecord]:
        """Tickers ordered by mention date, newest first.

        Args:
            include_archived: Also return archived tickers.
            sector: Case-insensitive sector filter.
        """

    @abstractmethod
    def get_price_history(
        self,
        symbol: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[PricePoint]:
        """Ascending history with inclusive optional bounds."""

    @abstractmethod
    def add_price_history(self, symbol: str, points: Sequence[PricePoint]) -> int:
        """Insert points whose date is not stored yet; return how many were new."""

    @abstractmethod
    def get_benchmark_history(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[PricePoint]:
        """Ascending benchmark history with inclusive optional bounds."""

    @abstractmethod
    def add_benchmark_history(self, points: Sequence[PricePoint]) -> int:
        """Insert-if-absent for the benchmark; return how many were new."""

    def exists(self, symbol: str) -> bool:
        return self.get(symbol) is not None

    def sector_counts(self) -> List[Tuple[str, int]]:
        """Active tickers per sector, largest first."""
        counts: dict = {}
        for record in self.list():
            if record.sector:
                counts[record.sector] = counts.get(record.sector, 0) + 1
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))
