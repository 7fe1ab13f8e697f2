"""
Data contracts for tracked tickers and their price histories.

Pydantic models defined here are the single source of truth for what a
price point, a tracked ticker and a quote look like.  Closes must be
strictly positive and a history must be ascending with one point per
date; both are enforced at the boundary so the alignment core can treat
its inputs as clean snapshots.
"""
import datetime as dt
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.icarus.core.exceptions import InputContractViolation


def ensure_history_contract(points: Sequence["PricePoint"], symbol: str = "?") -> None:
    """Fail fast if *points* is not strictly ascending by date.

    Strictly ascending implies no duplicate dates, so a single pass covers
    both halves of the storage guarantee.

    Raises:
        InputContractViolation: On the first out-of-order or repeated date.
    """
    for prev, curr in zip(points, points[1:]):
        if curr.date == prev.date:
            raise InputContractViolation(
                f"{symbol}: duplicate price point for {curr.date.isoformat()}"
            )
        if curr.date < prev.date:
            raise InputContractViolation(
                f"{symbol}: history not ascending "
                f"({prev.date.isoformat()} before {curr.date.isoformat()})"
            )


class PricePoint(BaseModel):
    """One trading day's close for one symbol."""

    model_config = ConfigDict(frozen=True)

    date: dt.date = Field(..., description="Exchange-local trading date")
    close: float = Field(..., gt=0, description="Closing price")

    # OHLV are carried through from the provider but unused by the core.
    open: Optional[float] = Field(None, gt=0)
    high: Optional[float] = Field(None, gt=0)
    low: Optional[float] = Field(None, gt=0)
    volume: Optional[int] = Field(None, ge=0)


class TrackedEntity(BaseModel):
    """A tracked ticker together with its full price history."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    mention_date: dt.date
    price_history: List[PricePoint] = Field(default_factory=list)

    @field_validator("symbol")
    @classmethod
    def normalise_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def history_must_be_ascending(self) -> "TrackedEntity":
        ensure_history_contract(self.price_history, self.symbol)
        return self


class TickerRecord(BaseModel):
    """Persisted ticker metadata.  ``mention_date`` never changes after insert."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    company_name: Optional[str] = None
    sector: Optional[str] = None
    subsector: Optional[str] = None
    mention_date: dt.date
    archived: bool = False
    archived_at: Optional[dt.datetime] = None

    @field_validator("symbol")
    @classmethod
    def normalise_symbol(cls, v: str) -> str:
        return v.strip().upper()


class StockInfo(BaseModel):
    """Company profile returned by the quote provider."""

    symbol: str
    company_name: str
    sector: Optional[str] = None
    industry: Optional[str] = None
    current_price: float = 0.0
    previous_close: float = 0.0


class Quote(BaseModel):
    """Latest price and the move against the previous close."""

    price: float = Field(..., gt=0)
    change: float
    change_percent: float
