"""
In-memory ``TickerStore``.

Keeps everything in per-instance dictionaries, so two stores never share
state.  Price histories are held as ``{date: PricePoint}`` maps and sorted
on read, which gives the same uniqueness and ordering guarantees as the
SQL store's ``UNIQUE(symbol, date)`` constraint.
"""
from datetime import date
from typing import Dict, List, Optional, Sequence

from src.icarus.data.schemas import PricePoint, TickerRecord
from src.icarus.storage.base import TickerStore


def _window(
    rows: Dict[date, PricePoint],
    start: Optional[date],
    end: Optional[date],
) -> List[PricePoint]:
    return [
        rows[d]
        for d in sorted(rows)
        if (start is None or d >= start) and (end is None or d <= end)
    ]


def _insert_new(rows: Dict[date, PricePoint], points: Sequence[PricePoint]) -> int:
    added = 0
    for point in points:
        if point.date not in rows:
            rows[point.date] = point
            added += 1
    return added


class InMemoryTickerStore(TickerStore):
    """Dictionary-backed store for tests and throwaway sessions."""

    def __init__(self):
        self._tickers: Dict[str, TickerRecord] = {}
        self._prices: Dict[str, Dict[date, PricePoint]] = {}
        self._benchmark: Dict[date, PricePoint] = {}

    def get(self, symbol: str) -> Optional[TickerRecord]:
        return self._tickers.get(symbol.strip().upper())

    def upsert(self, record: TickerRecord) -> TickerRecord:
        existing = self._tickers.get(record.symbol)
        if existing is not None:
            # Mention dates are immutable once stored.
            record = record.model_copy(update={"mention_date": existing.mention_date})
        self._tickers[record.symbol] = record
        return record

    def list(
        self,
        include_archived: bool = False,
        sector: Optional[str] = None,
    ) -> List[TickerRecord]:
        records = [
            r for r in self._tickers.values()
            if (include_archived or not r.archived)
            and (sector is None or (r.sector or "").lower() == sector.lower())
        ]
        return sorted(records, key=lambda r: (r.mention_date, r.symbol), reverse=True)

    def get_price_history(
        self,
        symbol: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[PricePoint]:
        return _window(self._prices.get(symbol.strip().upper(), {}), start, end)

    def add_price_history(self, symbol: str, points: Sequence[PricePoint]) -> int:
        rows = self._prices.setdefault(symbol.strip().upper(), {})
        return _insert_new(rows, points)

    def get_benchmark_history(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[PricePoint]:
        return _window(self._benchmark, start, end)

    def add_benchmark_history(self, points: Sequence[PricePoint]) -> int:
        return _insert_new(self._benchmark, points)
