"""
Multi-series alignment and indexing.

Takes the raw close histories of the visible tickers plus the benchmark
and produces one sparse, date-aligned table of indexed values:

  1. Every series is cut at the policy's cutoff date.
  2. The row axis is the sorted union of the remaining dates.  Holidays
     and provider gaps never appear; a date where only one series traded
     still produces a row.
  3. Each cell is ``close / baseline * 100`` rounded to 2 decimals, or
     absent when that series has no close on that date.  Nothing is
     forward-filled and no row is dropped.
  4. A series without a baseline contributes no column at all.

Cells dated before a series' own baseline point are absent, so every
column starts at exactly 100.00.  In ``SINCE_MENTION`` mode that puts
each ticker at 100 on its own mention date while sharing one date axis.
"""
import datetime as dt
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.icarus.core.window import (
    BENCHMARK_KEY,
    BaselineResolution,
    WindowPolicy,
    resolve_baseline_prices,
)
from src.icarus.data.schemas import PricePoint, TrackedEntity, ensure_history_contract

INDEX_BASE = 100.0
INDEX_DECIMALS = 2


class AlignedRow(BaseModel):
    """One date of the aligned table.  A missing key means absent."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    values: Dict[str, float] = Field(default_factory=dict)

    def get(self, key: str) -> Optional[float]:
        return self.values.get(key)


class MentionMarker(BaseModel):
    """Chart annotation for a ticker's mention in ``SINCE_MENTION`` mode."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    mention_date: dt.date
    baseline_date: dt.date
    value: float = INDEX_BASE


class AlignedSeries(BaseModel):
    """Date-aligned indexed values for the visible tickers and the benchmark."""

    model_config = ConfigDict(frozen=True)

    policy: WindowPolicy
    cutoff_date: dt.date
    columns: List[str] = Field(default_factory=list)
    rows: List[AlignedRow] = Field(default_factory=list)
    baselines: Dict[str, PricePoint] = Field(default_factory=dict)
    mention_markers: List[MentionMarker] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def dates(self) -> List[dt.date]:
        return [row.date for row in self.rows]

    @property
    def entity_columns(self) -> List[str]:
        return [c for c in self.columns if c != BENCHMARK_KEY]

    def column(self, key: str) -> List[Tuple[dt.date, float]]:
        """Valued cells of one column in row order."""
        return [
            (row.date, row.values[key]) for row in self.rows if key in row.values
        ]

    def to_records(self) -> List[Dict[str, Optional[Union[str, float]]]]:
        """One JSON-ready dict per row; absent cells become ``None``."""
        records = []
        for row in self.rows:
            record: Dict[str, Optional[Union[str, float]]] = {
                "date": row.date.isoformat(),
            }
            for key in self.columns:
                record[key] = row.values.get(key)
            records.append(record)
        return records

    def to_dict(self) -> dict:
        return {
            "policy": self.policy.value,
            "cutoff_date": self.cutoff_date.isoformat(),
            "columns": list(self.columns),
            "rows": self.to_records(),
            "baselines": {
                key: {"date": p.date.isoformat(), "close": p.close}
                for key, p in self.baselines.items()
            },
            "mention_markers": [
                {
                    "symbol": m.symbol,
                    "mention_date": m.mention_date.isoformat(),
                    "baseline_date": m.baseline_date.isoformat(),
                    "value": m.value,
                }
                for m in self.mention_markers
            ],
        }


def _close_series(history: Sequence[PricePoint], cutoff: dt.date) -> pd.Series:
    """Closes on or after *cutoff*, indexed by date."""
    kept = [p for p in history if p.date >= cutoff]
    return pd.Series(
        [p.close for p in kept],
        index=[p.date for p in kept],
        dtype="float64",
    )


def align(
    entities: Sequence[TrackedEntity],
    benchmark: Sequence[PricePoint],
    visible: Iterable[str],
    policy: Union[str, WindowPolicy],
    resolution: BaselineResolution,
    strict: bool = True,
) -> AlignedSeries:
    """Build the aligned, indexed table.

    Args:
        entities: All candidate tickers with their ascending histories.
        benchmark: Ascending benchmark history.
        visible: Symbols to chart; everything else is ignored entirely.
        policy: Window policy the resolution was computed for.
        resolution: Output of ``window.resolve`` for the same entities.
        strict: Validate history ordering before aligning.

    Returns:
        An ``AlignedSeries``.  An empty date union yields an empty table,
        which callers render as "no data" rather than treating as an error.

    Raises:
        InputContractViolation: If *strict* and a history is unsorted or
                                has duplicate dates.
    """
    policy = WindowPolicy.parse(policy)
    visible_keys = {s.strip().upper() for s in visible}
    charted = [e for e in entities if e.symbol.upper() in visible_keys]

    if strict:
        for entity in charted:
            ensure_history_contract(entity.price_history, entity.symbol)
        ensure_history_contract(benchmark, BENCHMARK_KEY)

    cutoff = resolution.cutoff_date

    raw: Dict[str, pd.Series] = {
        e.symbol.upper(): _close_series(e.price_history, cutoff) for e in charted
    }
    raw[BENCHMARK_KEY] = _close_series(benchmark, cutoff)

    # Row axis: union of every filtered series, including visible tickers
    # that end up without a baseline.
    axis = sorted(set().union(*(s.index for s in raw.values())))
    if not axis:
        logger.debug(f"Empty date union for {policy.value} (cutoff {cutoff})")
        return AlignedSeries(policy=policy, cutoff_date=cutoff)

    baselines = resolve_baseline_prices(resolution, charted, benchmark)
    columns = [e.symbol.upper() for e in charted if e.symbol.upper() in baselines]
    if BENCHMARK_KEY in baselines:
        columns.append(BENCHMARK_KEY)

    frame = pd.DataFrame(
        {key: raw[key].reindex(axis) for key in columns}, index=axis,
    )
    base = pd.Series(
        {key: baselines[key].close for key in columns}, dtype="float64",
    )
    # Multiplicative re-basing; rounding happens once, at emission below.
    ratios = frame.div(base, axis="columns") * INDEX_BASE

    # Nothing before a series' own baseline point.
    for key in columns:
        before = [day < baselines[key].date for day in axis]
        ratios.loc[before, key] = float("nan")

    rows: List[AlignedRow] = []
    for day, values in zip(axis, ratios.to_numpy(dtype="float64")):
        cells = {
            key: round(float(v), INDEX_DECIMALS)
            for key, v in zip(columns, values)
            if pd.notna(v)
        }
        rows.append(AlignedRow(date=day, values=cells))

    markers: List[MentionMarker] = []
    if policy.per_entity_baseline:
        for entity in charted:
            key = entity.symbol.upper()
            if key in baselines and entity.mention_date >= cutoff:
                markers.append(
                    MentionMarker(
                        symbol=key,
                        mention_date=entity.mention_date,
                        baseline_date=baselines[key].date,
                    )
                )

    logger.debug(
        f"Aligned {len(columns)} columns over {len(rows)} rows "
        f"({policy.value}, cutoff {cutoff})"
    )
    return AlignedSeries(
        policy=policy,
        cutoff_date=cutoff,
        columns=columns,
        rows=rows,
        baselines={key: baselines[key] for key in columns},
        mention_markers=markers,
    )
