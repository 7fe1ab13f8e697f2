"""
test_yfinance.py

YFinanceAdapter normalization, with yfinance patched out so nothing hits
the network.
"""
from datetime import date

import pandas as pd
import pytest

from src.icarus.data.adapters import yfinance_adapter
from src.icarus.data.adapters.yfinance_adapter import YFinanceAdapter


def raw_frame(rows, multi=None):
    """Build a yfinance-shaped frame from (date, open, high, low, close, volume)."""
    index = pd.DatetimeIndex([pd.Timestamp(r[0]) for r in rows], name="Date")
    fields = ["Open", "High", "Low", "Close", "Adj Close", "Volume"]
    data = [[r[1], r[2], r[3], r[4], r[4], r[5]] for r in rows]
    df = pd.DataFrame(data, index=index, columns=fields)
    if multi == "ticker_first":
        df.columns = pd.MultiIndex.from_product([["NVDA"], fields], names=["Ticker", "Price"])
    elif multi == "price_first":
        df.columns = pd.MultiIndex.from_product([fields, ["NVDA"]], names=["Price", "Ticker"])
    return df


@pytest.fixture
def adapter():
    return YFinanceAdapter()


@pytest.fixture
def download(monkeypatch):
    calls = []

    def _install(result):
        def fake_download(symbol, **kwargs):
            calls.append((symbol, kwargs))
            if isinstance(result, Exception):
                raise result
            return result
        monkeypatch.setattr(yfinance_adapter.yf, "download", fake_download)
        return calls

    return _install


ROWS = [
    ("2024-01-11", 10.0, 11.0, 9.5, 10.5, 1_000),
    ("2024-01-10", 9.0, 10.0, 8.5, 10.0, 2_000),
]


@pytest.mark.parametrize("layout", [None, "ticker_first", "price_first"])
def test_fetch_history_handles_column_layouts(adapter, download, layout):
    download(raw_frame(ROWS, multi=layout))

    points = adapter.fetch_history("NVDA", date(2024, 1, 1), date(2024, 1, 31))

    assert [p.date for p in points] == [date(2024, 1, 10), date(2024, 1, 11)]
    assert [p.close for p in points] == [10.0, 10.5]
    assert points[1].open == 10.0
    assert points[1].volume == 1_000


def test_fetch_history_passes_raw_close_options(adapter, download):
    calls = download(raw_frame(ROWS))

    adapter.fetch_history("NVDA", date(2024, 1, 1), date(2024, 1, 31))

    symbol, kwargs = calls[0]
    assert symbol == "NVDA"
    assert kwargs["auto_adjust"] is False
    assert kwargs["progress"] is False
    assert kwargs["end"] == date(2024, 1, 31)


def test_fetch_history_drops_bad_closes_and_duplicate_dates(adapter, download):
    download(raw_frame([
        ("2024-01-10", 9.0, 10.0, 8.5, 10.0, 2_000),
        ("2024-01-11", 9.0, 10.0, 8.5, float("nan"), 2_000),
        ("2024-01-12", 9.0, 10.0, 8.5, 0.0, 2_000),
        ("2024-01-15", 9.0, 10.0, 8.5, 11.0, 0),
        ("2024-01-15", 9.0, 10.0, 8.5, 11.5, 3_000),
    ]))

    points = adapter.fetch_history("NVDA", date(2024, 1, 1), date(2024, 1, 31))

    assert [(p.date, p.close) for p in points] == [
        (date(2024, 1, 10), 10.0),
        (date(2024, 1, 15), 11.5),
    ]


def test_zero_volume_is_reported_as_missing(adapter, download):
    download(raw_frame([("2024-01-10", 9.0, 10.0, 8.5, 10.0, 0)]))

    (point,) = adapter.fetch_history("NVDA", date(2024, 1, 1), date(2024, 1, 31))

    assert point.volume is None


def test_empty_window_skips_download(adapter, download):
    calls = download(raw_frame(ROWS))

    assert adapter.fetch_history("NVDA", date(2024, 1, 10), date(2024, 1, 10)) == []
    assert calls == []


def test_empty_download_returns_no_points(adapter, download):
    download(pd.DataFrame())
    assert adapter.fetch_history("NVDA", date(2024, 1, 1), date(2024, 1, 2)) == []


def test_frame_without_close_returns_no_points(adapter, download):
    frame = raw_frame(ROWS).drop(columns=["Close", "Adj Close"])
    download(frame)
    assert adapter.fetch_history("NVDA", date(2024, 1, 1), date(2024, 1, 31)) == []


def test_download_errors_propagate(adapter, download):
    download(ConnectionError("rate limited"))

    with pytest.raises(ConnectionError):
        adapter.fetch_history("NVDA", date(2024, 1, 1), date(2024, 1, 31))


class FakeTicker:
    def __init__(self, info=None, fast_info=None, error=None):
        self._info = info
        self._fast = fast_info
        self._error = error

    @property
    def info(self):
        if self._error:
            raise self._error
        return self._info

    @property
    def fast_info(self):
        if self._error:
            raise self._error
        return self._fast


def patch_ticker(monkeypatch, ticker):
    monkeypatch.setattr(yfinance_adapter.yf, "Ticker", lambda symbol: ticker)


def test_get_stock_info_maps_profile(adapter, monkeypatch):
    patch_ticker(monkeypatch, FakeTicker(info={
        "symbol": "NVDA",
        "longName": "NVIDIA Corporation",
        "sector": "Technology",
        "industry": "Semiconductors",
        "regularMarketPrice": 480.5,
        "regularMarketPreviousClose": 470.0,
    }))

    info = adapter.get_stock_info("NVDA")

    assert info.company_name == "NVIDIA Corporation"
    assert info.sector == "Technology"
    assert info.industry == "Semiconductors"
    assert info.current_price == 480.5
    assert info.previous_close == 470.0


@pytest.mark.parametrize(
    "ticker",
    [
        FakeTicker(info={"symbol": "ZZZZ"}),
        FakeTicker(info=None),
        FakeTicker(error=RuntimeError("404")),
    ],
)
def test_get_stock_info_unknown_symbol(adapter, monkeypatch, ticker):
    patch_ticker(monkeypatch, ticker)
    assert adapter.get_stock_info("ZZZZ") is None


def test_get_current_quote_computes_change(adapter, monkeypatch):
    patch_ticker(monkeypatch, FakeTicker(fast_info={"last_price": 110.0, "previous_close": 100.0}))

    quote = adapter.get_current_quote("NVDA")

    assert quote.price == 110.0
    assert quote.change == pytest.approx(10.0)
    assert quote.change_percent == pytest.approx(10.0)
    assert adapter.validate_symbol("NVDA") is True


def test_get_current_quote_failure_returns_none(adapter, monkeypatch):
    patch_ticker(monkeypatch, FakeTicker(error=KeyError("last_price")))

    assert adapter.get_current_quote("NVDA") is None
    assert adapter.validate_symbol("NVDA") is False


def test_validate_schema_rejects_missing_columns(adapter):
    with pytest.raises(ValueError, match="Missing"):
        adapter.validate_schema(pd.DataFrame(columns=["trade_date", "close"]))
