"""
Abstract base class for quote providers.

Every concrete adapter (e.g. YFinance) must implement the history, profile
and quote lookups defined here.  The base class also provides a shared
``validate_schema`` check used on the provider's raw frame before it is
converted into ``PricePoint`` records.
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

import pandas as pd
from loguru import logger

from src.icarus.data.schemas import PricePoint, Quote, StockInfo


class MarketDataProvider(ABC):
    """Contract that all quote providers must satisfy."""

    @abstractmethod
    def fetch_history(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> List[PricePoint]:
        """Fetch daily price history for one symbol.

        Args:
            symbol: Provider ticker symbol (e.g. ``"AAPL"``).
            start_date: First calendar date of the window (inclusive).
            end_date: Last calendar date of the window (exclusive in most providers).

        Returns:
            Ascending, date-unique price points.  Empty when the provider
            has nothing for the window.
        """

    @abstractmethod
    def get_stock_info(self, symbol: str) -> Optional[StockInfo]:
        """Company name, sector and industry, or ``None`` if unknown."""

    @abstractmethod
    def get_current_quote(self, symbol: str) -> Optional[Quote]:
        """Latest price and daily change, or ``None`` if unavailable."""

    def validate_symbol(self, symbol: str) -> bool:
        """A symbol is valid when the provider can quote it."""
        return self.get_current_quote(symbol) is not None

    def validate_schema(self, df: pd.DataFrame) -> bool:
        """Verify that the frame carries every column the converter reads.

        Args:
            df: Standardized provider frame.

        Returns:
            ``True`` if validation passes.

        Raises:
            ValueError: If one or more required columns are missing.
        """
        required_cols = {"trade_date", "open", "high", "low", "close", "volume"}

        df_cols = {c.lower() for c in df.columns}

        if not required_cols.issubset(df_cols):
            missing = required_cols - df_cols
            logger.critical(f"Price schema violation! Missing columns: {missing}")
            logger.debug(f"Columns present: {sorted(df_cols)}")
            raise ValueError(
                f"DataFrame violates PricePoint schema. Missing: {missing}"
            )

        return True
