"""
Window policies and baseline resolution.

A window policy decides two things for a chart request:
  1. The **cutoff date**: the first calendar date that is visible.
  2. Each series' **baseline date**: the date whose close maps to an
     indexed value of 100.

Fixed-length windows (1M/3M/6M/1Y) and YTD share one baseline across all
series.  ``ALL`` starts at the earliest mention date and also shares it.
``SINCE_MENTION`` uses the same outer bound as ``ALL`` but re-bases every
ticker at its own mention date.  The benchmark is always based at the
cutoff.

Baseline *prices* are looked up as the first close on or after the
baseline date, because the target date is frequently a weekend or a
market holiday.  A series with no such close has no baseline.
"""
import bisect
import datetime as dt
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd
from loguru import logger
from pydantic import BaseModel, ConfigDict

from src.icarus.data.schemas import PricePoint, TrackedEntity

BENCHMARK_KEY = "BENCHMARK"


class WindowPolicy(str, Enum):
    """Visible range and baseline semantics for a chart."""

    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    YEAR_TO_DATE = "YTD"
    ALL = "ALL"
    SINCE_MENTION = "SINCE_MENTION"

    @classmethod
    def parse(cls, value: Union[str, "WindowPolicy"]) -> "WindowPolicy":
        """Accept either the short code (``"3M"``) or the member name."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper()
        for member in cls:
            if key in (member.value, member.name):
                return member
        raise ValueError(f"Unknown window policy: {value}")

    @property
    def per_entity_baseline(self) -> bool:
        return self is WindowPolicy.SINCE_MENTION


# Calendar months subtracted from ``now`` for the fixed-length windows.
_MONTHS_BACK: Dict[WindowPolicy, int] = {
    WindowPolicy.ONE_MONTH: 1,
    WindowPolicy.THREE_MONTHS: 3,
    WindowPolicy.SIX_MONTHS: 6,
    WindowPolicy.ONE_YEAR: 12,
}


class BaselineResolution(BaseModel):
    """Cutoff date plus the baseline date of every supplied entity."""

    model_config = ConfigDict(frozen=True)

    policy: WindowPolicy
    cutoff_date: dt.date
    baseline_dates: Dict[str, dt.date]

    def baseline_date_of(self, symbol: str) -> Optional[dt.date]:
        """Baseline date for *symbol*, or ``None`` if it was not resolved."""
        if symbol == BENCHMARK_KEY:
            return self.cutoff_date
        return self.baseline_dates.get(symbol.upper())


def months_before(anchor: dt.date, months: int) -> dt.date:
    """Calendar month arithmetic, clamped to the end of shorter months."""
    return (pd.Timestamp(anchor) - pd.DateOffset(months=months)).date()


def cutoff_for(
    policy: WindowPolicy,
    entities: Sequence[TrackedEntity],
    now: dt.date,
) -> dt.date:
    """Compute the first visible date for *policy*.

    Args:
        policy: Requested window.
        entities: The entities being charted.  Only their mention dates are
                  read, so any object with ``mention_date`` works.
        now: Injected current date.
    """
    if policy in _MONTHS_BACK:
        return months_before(now, _MONTHS_BACK[policy])

    if policy is WindowPolicy.YEAR_TO_DATE:
        return dt.date(now.year, 1, 1)

    # ALL and SINCE_MENTION start at the earliest mention among the
    # entities supplied by the caller.
    if not entities:
        return now
    return min(e.mention_date for e in entities)


def resolve(
    policy: Union[str, WindowPolicy],
    entities: Sequence[TrackedEntity],
    now: dt.date,
) -> BaselineResolution:
    """Resolve the cutoff and per-entity baseline dates.

    Callers pass only the entities that will be charted, so ``ALL`` and
    ``SINCE_MENTION`` take the minimum mention date over the visible set.

    Args:
        policy: Window policy (enum member, short code or name).
        entities: Objects exposing ``symbol`` and ``mention_date``.
        now: Injected current date; never read from the wall clock here.

    Returns:
        A frozen ``BaselineResolution``.
    """
    policy = WindowPolicy.parse(policy)
    cutoff = cutoff_for(policy, entities, now)

    if policy.per_entity_baseline:
        baselines = {e.symbol.upper(): e.mention_date for e in entities}
    else:
        baselines = {e.symbol.upper(): cutoff for e in entities}

    logger.debug(
        f"Resolved {policy.value}: cutoff={cutoff.isoformat()} "
        f"for {len(baselines)} entities"
    )
    return BaselineResolution(
        policy=policy, cutoff_date=cutoff, baseline_dates=baselines,
    )


def first_on_or_after(
    history: Sequence[PricePoint],
    target: dt.date,
) -> Optional[PricePoint]:
    """Return the first point dated on or after *target* (ascending input)."""
    idx = bisect.bisect_left(history, target, key=lambda p: p.date)
    if idx < len(history):
        return history[idx]
    return None


def resolve_baseline_prices(
    resolution: BaselineResolution,
    entities: Sequence[TrackedEntity],
    benchmark: Sequence[PricePoint],
) -> Dict[str, PricePoint]:
    """Look up the baseline point of every entity and of the benchmark.

    Series without a close on or after their baseline date are simply
    missing from the returned mapping.

    Returns:
        Mapping of column key (symbol or ``BENCHMARK_KEY``) to the point
        whose close is the baseline price.
    """
    resolved: Dict[str, PricePoint] = {}
    missing: List[str] = []

    for entity in entities:
        target = resolution.baseline_date_of(entity.symbol)
        point = (
            first_on_or_after(entity.price_history, target)
            if target is not None
            else None
        )
        if point is None:
            missing.append(entity.symbol)
            continue
        resolved[entity.symbol.upper()] = point

    bench_point = first_on_or_after(benchmark, resolution.cutoff_date)
    if bench_point is not None:
        resolved[BENCHMARK_KEY] = bench_point
    else:
        missing.append(BENCHMARK_KEY)

    if missing:
        logger.debug(f"No baseline on/after target date for: {missing}")
    return resolved
