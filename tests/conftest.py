"""
Shared fixtures: price-point builders, a scripted quote provider and a
fixed clock, so no test touches the network or the wall clock.
"""
from datetime import date, datetime
from typing import Dict, List, Optional

import pytest

from src.icarus.data.base import MarketDataProvider
from src.icarus.data.schemas import PricePoint, Quote, StockInfo
from src.icarus.storage.memory import InMemoryTickerStore


def make_points(*pairs) -> List[PricePoint]:
    """``make_points(("2024-01-10", 100.0), ...)`` -> list of PricePoint."""
    return [PricePoint(date=date.fromisoformat(d), close=c) for d, c in pairs]


class FakeProvider(MarketDataProvider):
    """Scripted provider; records every history request."""

    def __init__(
        self,
        histories: Optional[Dict[str, List[PricePoint]]] = None,
        infos: Optional[Dict[str, StockInfo]] = None,
        quotes: Optional[Dict[str, Quote]] = None,
        failing: tuple = (),
    ):
        self.histories = histories or {}
        self.infos = infos or {}
        self.quotes = quotes or {}
        self.failing = set(failing)
        self.history_calls = []

    def fetch_history(self, symbol, start_date, end_date):
        self.history_calls.append((symbol, start_date, end_date))
        if symbol in self.failing:
            raise RuntimeError(f"upstream error for {symbol}")
        return [
            p for p in self.histories.get(symbol, [])
            if start_date <= p.date < end_date
        ]

    def get_stock_info(self, symbol):
        return self.infos.get(symbol)

    def get_current_quote(self, symbol):
        return self.quotes.get(symbol)


@pytest.fixture
def points():
    return make_points


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 20, 10, 30)


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def store():
    return InMemoryTickerStore()


@pytest.fixture
def scenario_histories():
    """Ticker A and the benchmark from the since-mention worked example."""
    return {
        "A": make_points(
            ("2024-01-10", 100.0), ("2024-01-11", 105.0), ("2024-01-15", 110.0),
        ),
        "SPY": make_points(
            ("2024-01-10", 500.0), ("2024-01-11", 502.5), ("2024-01-15", 510.0),
        ),
    }


@pytest.fixture
def provider(scenario_histories):
    return FakeProvider(
        histories=dict(scenario_histories),
        infos={
            "A": StockInfo(
                symbol="A", company_name="Alpha Corp",
                sector="Information Technology", industry="Semiconductors",
                current_price=110.0, previous_close=105.0,
            ),
            "B": StockInfo(
                symbol="B", company_name="Beta Inc",
                sector="Health Care", industry="Biotechnology",
                current_price=50.0, previous_close=49.0,
            ),
        },
    )
