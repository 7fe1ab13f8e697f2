"""
Performance summary over an aligned, indexed table.

Reads the first and last valued cell of each column and reports:
  - **total return** (percentage points of the index: ``last - first``),
  - **benchmark return** (same rule applied to the benchmark column),
  - **alpha** (ticker total return minus benchmark return).

A column with fewer than two valued cells has no entry.  That signals
"not enough data", which is different from a flat 0 % move.
"""
import datetime as dt
from typing import Dict, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.icarus.core.aligner import INDEX_DECIMALS, AlignedSeries
from src.icarus.core.window import BENCHMARK_KEY


class SeriesPerformance(BaseModel):
    """First/last indexed values of one column and the move between them."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    first_date: dt.date
    last_date: dt.date
    first_value: float
    last_value: float
    total_return_pct: float


class PerformanceSummary(BaseModel):
    """Per-ticker returns, the benchmark return and each ticker's alpha."""

    model_config = ConfigDict(frozen=True)

    per_symbol: Dict[str, SeriesPerformance] = Field(default_factory=dict)
    benchmark: Optional[SeriesPerformance] = None
    alpha: Dict[str, float] = Field(default_factory=dict)

    @property
    def benchmark_return_pct(self) -> Optional[float]:
        return self.benchmark.total_return_pct if self.benchmark else None

    def total_return_of(self, symbol: str) -> Optional[float]:
        if symbol == BENCHMARK_KEY:
            return self.benchmark_return_pct
        perf = self.per_symbol.get(symbol.upper())
        return perf.total_return_pct if perf else None

    def alpha_of(self, symbol: str) -> Optional[float]:
        return self.alpha.get(symbol.upper())

    def ranked(self) -> List[Tuple[str, float]]:
        """All available returns, benchmark included, best first."""
        entries = [(k, p.total_return_pct) for k, p in self.per_symbol.items()]
        if self.benchmark is not None:
            entries.append((BENCHMARK_KEY, self.benchmark.total_return_pct))
        return sorted(entries, key=lambda item: item[1], reverse=True)

    def to_dict(self) -> dict:
        return {
            "per_symbol": {
                k: {
                    "total_return_pct": p.total_return_pct,
                    "first_date": p.first_date.isoformat(),
                    "last_date": p.last_date.isoformat(),
                }
                for k, p in self.per_symbol.items()
            },
            "benchmark_return_pct": self.benchmark_return_pct,
            "alpha": dict(self.alpha),
        }


def series_performance(series: AlignedSeries, key: str) -> Optional[SeriesPerformance]:
    """Performance of one column, or ``None`` with fewer than two values."""
    cells = series.column(key)
    if len(cells) < 2:
        return None

    (first_date, first_value), (last_date, last_value) = cells[0], cells[-1]
    return SeriesPerformance(
        symbol=key,
        first_date=first_date,
        last_date=last_date,
        first_value=first_value,
        last_value=last_value,
        total_return_pct=round(last_value - first_value, INDEX_DECIMALS),
    )


def summarize(series: AlignedSeries) -> PerformanceSummary:
    """Compute returns and alpha for every column of *series*.

    Alpha is the exact difference of the two already-rounded returns, so
    ``alpha_of(s) == total_return_of(s) - benchmark_return_pct`` holds
    without drift.
    """
    per_symbol: Dict[str, SeriesPerformance] = {}
    for key in series.entity_columns:
        perf = series_performance(series, key)
        if perf is not None:
            per_symbol[key] = perf

    benchmark = (
        series_performance(series, BENCHMARK_KEY)
        if BENCHMARK_KEY in series.columns
        else None
    )

    alpha: Dict[str, float] = {}
    if benchmark is not None:
        for key, perf in per_symbol.items():
            alpha[key] = perf.total_return_pct - benchmark.total_return_pct

    skipped = [k for k in series.entity_columns if k not in per_symbol]
    if skipped:
        logger.debug(f"Insufficient data for performance: {skipped}")

    return PerformanceSummary(per_symbol=per_symbol, benchmark=benchmark, alpha=alpha)
