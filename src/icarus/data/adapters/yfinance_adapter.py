"""
YFinance quote provider.

Fetches daily history, company profiles and live quotes via the yfinance
library and normalizes them into the internal schema.  Handles the column
layouts that differ across yfinance versions (flat columns vs. a
(Ticker, Price) or (Price, Ticker) MultiIndex) so callers always receive
ascending, date-unique ``PricePoint`` lists.
"""
from datetime import date
from typing import List, Optional

import pandas as pd
import yfinance as yf
from loguru import logger

from src.icarus.data.base import MarketDataProvider
from src.icarus.data.schemas import PricePoint, Quote, StockInfo

_PRICE_FIELDS = {"open", "high", "low", "close", "adj close", "volume"}


class YFinanceAdapter(MarketDataProvider):
    """Concrete MarketDataProvider backed by Yahoo Finance."""

    def fetch_history(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> List[PricePoint]:
        """Download daily prices for *symbol* and return validated points.

        Args:
            symbol: Yahoo Finance ticker symbol.
            start_date: First calendar date of the requested window.
            end_date: Last calendar date (exclusive in yfinance).

        Returns:
            Ascending price points, or an empty list when no data is
            available (holiday-only range, delisted symbol).

        Raises:
            Exception: Re-raised after logging if the download fails
                       unexpectedly.
        """
        logger.info(f"Fetching {symbol} ({start_date} to {end_date})")

        # yfinance treats end_date as exclusive; identical dates yield no rows.
        if start_date >= end_date:
            logger.warning(
                f"Empty window for {symbol} ({start_date} to {end_date}). "
                "Returning no prices."
            )
            return []

        try:
            df = yf.download(
                symbol,
                start=start_date,
                end=end_date,
                auto_adjust=False,   # Keep the raw close as quoted
                actions=False,
                progress=False,
                threads=False,
                group_by="ticker",
            )
        except Exception as e:
            logger.error(f"YFinance download failed for {symbol}: {e}")
            raise

        if df is None or df.empty:
            logger.warning(
                f"No data returned for {symbol}. "
                "Possible holiday range or delisted symbol."
            )
            return []

        df_clean = self._standardize_columns(df)
        if df_clean.empty:
            logger.warning(f"{symbol}: data became empty after standardization.")
            return []

        self.validate_schema(df_clean)

        points = self._to_price_points(df_clean)
        logger.success(f"Fetched {len(points)} price points for {symbol}.")
        return points

    def get_stock_info(self, symbol: str) -> Optional[StockInfo]:
        """Look up the company profile; ``None`` when Yahoo has no quote."""
        try:
            info = yf.Ticker(symbol).info or {}
        except Exception as e:
            logger.warning(f"Profile lookup failed for {symbol}: {e}")
            return None

        price = info.get("regularMarketPrice") or info.get("currentPrice")
        if not price:
            logger.warning(f"No quote data for {symbol}; treating as unknown.")
            return None

        return StockInfo(
            symbol=info.get("symbol") or symbol,
            company_name=info.get("longName") or info.get("shortName") or symbol,
            sector=info.get("sector"),
            industry=info.get("industry"),
            current_price=float(price),
            previous_close=float(
                info.get("regularMarketPreviousClose")
                or info.get("previousClose")
                or 0.0
            ),
        )

    def get_current_quote(self, symbol: str) -> Optional[Quote]:
        """Latest price with the change against the previous close."""
        try:
            fast = yf.Ticker(symbol).fast_info
            price = fast["last_price"]
            previous = fast["previous_close"]
        except Exception as e:
            logger.warning(f"Quote lookup failed for {symbol}: {e}")
            return None

        if not price or pd.isna(price):
            return None
        if not previous or pd.isna(previous):
            previous = price

        change = float(price) - float(previous)
        change_percent = (change / float(previous)) * 100 if previous else 0.0
        return Quote(price=float(price), change=change, change_percent=change_percent)

    def _standardize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Flatten raw yfinance output into one row per trading date.

        Handles both MultiIndex layouts (``(Ticker, Price)`` from
        ``group_by='ticker'`` and the legacy ``(Price, Ticker)``) as well
        as flat single-ticker frames.

        Returns:
            A frame with lowercase ``trade_date``, ``open``, ``high``,
            ``low``, ``close`` and ``volume`` columns, or an empty frame if
            no close column is present.
        """
        data = df.copy()

        # Protect against zombie frames that have an index but no columns.
        if len(data.columns) == 0:
            return pd.DataFrame()

        if isinstance(data.columns, pd.MultiIndex):
            # Keep whichever level holds the price field names.
            for level in range(data.columns.nlevels):
                names = {str(v).lower() for v in data.columns.get_level_values(level)}
                if names & _PRICE_FIELDS:
                    data.columns = data.columns.get_level_values(level)
                    break

        data.columns = [str(c).lower() for c in data.columns]
        if "close" not in data.columns:
            logger.warning(f"No close column in provider data: {list(data.columns)}")
            return pd.DataFrame()

        for col in ("open", "high", "low", "volume"):
            if col not in data.columns:
                data[col] = float("nan")

        data = data.dropna(subset=["close"])
        data = data[data["close"] > 0].copy()

        data["trade_date"] = pd.to_datetime(data.index).date
        data = (
            data.drop_duplicates(subset="trade_date", keep="last")
            .sort_values("trade_date")
            .reset_index(drop=True)
        )
        return data[["trade_date", "open", "high", "low", "close", "volume"]]

    @staticmethod
    def _to_price_points(df: pd.DataFrame) -> List[PricePoint]:
        def _opt(value, cast):
            # Providers report missing or non-positive OHLV inconsistently.
            if value is None or pd.isna(value) or value <= 0:
                return None
            return cast(value)

        return [
            PricePoint(
                date=row.trade_date,
                close=float(row.close),
                open=_opt(row.open, float),
                high=_opt(row.high, float),
                low=_opt(row.low, float),
                volume=_opt(row.volume, int),
            )
            for row in df.itertuples(index=False)
        ]
