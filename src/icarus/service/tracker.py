"""
Ticker tracking service.

Orchestrates the store, the quote provider and the alignment core:
  1. Adding a ticker validates it with the provider, stamps the mention
     date and backfills its history (and the benchmark's, if missing).
  2. Archiving / restoring only toggles visibility; the mention date is
     never touched.
  3. Refresh re-fetches a short recent window for every active ticker and
     the benchmark, recording per-symbol failures instead of aborting.
  4. Chart requests load fresh snapshots from the store and run
     resolve -> align -> summarize.  Nothing is cached between calls.
"""
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.icarus.analysis.performance import PerformanceSummary, summarize
from src.icarus.core.aligner import AlignedSeries, align
from src.icarus.core.exceptions import DuplicateTickerError, TickerNotFoundError
from src.icarus.core.window import (
    WindowPolicy,
    first_on_or_after,
    months_before,
    resolve,
)
from src.icarus.data.base import MarketDataProvider
from src.icarus.data.schemas import TickerRecord, TrackedEntity
from src.icarus.storage.base import TickerStore
from src.icarus.utils.config import TrackerConfig


class TickerSnapshot(BaseModel):
    """A ticker enriched with its latest price and move since mention."""

    record: TickerRecord
    current_price: Optional[float] = None
    daily_change: Optional[float] = None
    daily_change_percent: Optional[float] = None
    change_since_mention: Optional[float] = None
    change_since_mention_percent: Optional[float] = None

    @property
    def symbol(self) -> str:
        return self.record.symbol

    def to_dict(self) -> dict:
        data = self.record.model_dump(mode="json")
        data.update(self.model_dump(exclude={"record"}))
        return data


class RefreshResult(BaseModel):
    symbol: str
    added: int = 0
    error: Optional[str] = None


class RefreshReport(BaseModel):
    """Outcome of one refresh run."""

    results: List[RefreshResult] = Field(default_factory=list)

    @property
    def total_added(self) -> int:
        return sum(r.added for r in self.results)

    @property
    def errors(self) -> List[RefreshResult]:
        return [r for r in self.results if r.error]


class ChartResult(BaseModel):
    """Aligned table plus its performance summary."""

    model_config = ConfigDict(frozen=True)

    series: AlignedSeries
    summary: PerformanceSummary

    @property
    def is_empty(self) -> bool:
        return self.series.is_empty

    def to_dict(self) -> dict:
        return {"series": self.series.to_dict(), "summary": self.summary.to_dict()}


class TickerTracker:
    """High-level operations over tracked tickers."""

    def __init__(
        self,
        store: TickerStore,
        provider: MarketDataProvider,
        config: Optional[TrackerConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            store: Persistence backend.
            provider: Quote provider used for profiles, quotes and history.
            config: Settings; defaults are used when omitted.
            clock: Returns the current time.  Injected so chart windows and
                   mention dates are deterministic under test.
        """
        self.store = store
        self.provider = provider
        self.config = config or TrackerConfig()
        self.clock = clock

    @property
    def today(self) -> date:
        return self.clock().date()

    # ------------------------------------------------------------------
    # Ticker lifecycle
    # ------------------------------------------------------------------

    def add_ticker(
        self,
        symbol: str,
        mention_date: Optional[date] = None,
    ) -> TickerRecord:
        """Start tracking *symbol* and backfill its price history.

        Args:
            symbol: Ticker symbol; normalized to upper case.
            mention_date: When the ticker was mentioned.  Defaults to today.

        Returns:
            The stored ``TickerRecord``.

        Raises:
            ValueError: If *symbol* is blank.
            DuplicateTickerError: If the symbol is already tracked
                                  (archived tickers included).
            TickerNotFoundError: If the provider does not know the symbol.
        """
        upper = (symbol or "").strip().upper()
        if not upper:
            raise ValueError("Symbol is required")

        if self.store.exists(upper):
            raise DuplicateTickerError(upper)

        info = self.provider.get_stock_info(upper)
        if info is None:
            raise TickerNotFoundError(upper)

        record = self.store.upsert(
            TickerRecord(
                symbol=upper,
                company_name=info.company_name,
                sector=info.sector,
                subsector=info.industry,
                mention_date=mention_date or self.today,
            )
        )
        logger.info(
            f"Tracking {upper} ({info.sector or 'Unknown sector'}), "
            f"mentioned {record.mention_date}"
        )

        start = min(
            months_before(self.today, 12 * self.config.history_years),
            record.mention_date,
        )
        end = self.today + timedelta(days=1)

        points = self.provider.fetch_history(upper, start, end)
        if points:
            added = self.store.add_price_history(upper, points)
            logger.info(f"Backfilled {added} price points for {upper}")
        else:
            logger.warning(f"No historical prices available for {upper}")

        self._ensure_benchmark(start, end)

        logger.success(f"Added {upper}")
        return record

    def _ensure_benchmark(self, start: date, end: date) -> None:
        """Backfill the benchmark when it is empty or starts after *start*."""
        existing = self.store.get_benchmark_history()
        if existing and existing[0].date <= start:
            return

        symbol = self.config.benchmark_symbol
        points = self.provider.fetch_history(symbol, start, end)
        if points:
            added = self.store.add_benchmark_history(points)
            logger.info(f"Backfilled {added} benchmark points ({symbol})")
        else:
            logger.warning(f"No benchmark prices available for {symbol}")

    def _require(self, symbol: str) -> TickerRecord:
        record = self.store.get(symbol)
        if record is None:
            raise TickerNotFoundError(symbol.strip().upper())
        return record

    def archive_ticker(self, symbol: str) -> TickerRecord:
        """Hide a ticker from active lists and charts."""
        record = self._require(symbol)
        updated = record.model_copy(
            update={"archived": True, "archived_at": self.clock()},
        )
        self.store.upsert(updated)
        logger.info(f"Archived {updated.symbol}")
        return updated

    def restore_ticker(self, symbol: str) -> TickerRecord:
        """Bring an archived ticker back; its mention date is unchanged."""
        record = self._require(symbol)
        updated = record.model_copy(update={"archived": False, "archived_at": None})
        self.store.upsert(updated)
        logger.info(f"Restored {updated.symbol}")
        return updated

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def snapshot(self, record: TickerRecord, with_quote: bool = True) -> TickerSnapshot:
        """Enrich *record* with the latest price and change since mention.

        The mention price is the first close on or after the mention date.
        The current price is the live quote when available, else the last
        stored close.
        """
        history = self.store.get_price_history(record.symbol)
        quote = self.provider.get_current_quote(record.symbol) if with_quote else None

        current = quote.price if quote else (history[-1].close if history else None)
        mention_point = first_on_or_after(history, record.mention_date)

        change = change_pct = None
        if mention_point is not None and current is not None:
            change = current - mention_point.close
            change_pct = (change / mention_point.close) * 100

        return TickerSnapshot(
            record=record,
            current_price=current,
            daily_change=quote.change if quote else None,
            daily_change_percent=quote.change_percent if quote else None,
            change_since_mention=change,
            change_since_mention_percent=change_pct,
        )

    def list_tickers(
        self,
        include_archived: bool = False,
        with_quotes: bool = True,
    ) -> List[TickerSnapshot]:
        """Snapshots of tracked tickers, newest mention first."""
        records = self.store.list(include_archived=include_archived)
        return [self.snapshot(r, with_quote=with_quotes) for r in records]

    def list_archived(self) -> List[TickerRecord]:
        """Archived tickers, most recently archived first."""
        archived = [r for r in self.store.list(include_archived=True) if r.archived]
        return sorted(
            archived,
            key=lambda r: r.archived_at or datetime.min,
            reverse=True,
        )

    def sector_counts(self):
        return self.store.sector_counts()

    def tickers_in_sector(
        self,
        sector: str,
        with_quotes: bool = True,
    ) -> List[TickerSnapshot]:
        records = self.store.list(sector=sector)
        return [self.snapshot(r, with_quote=with_quotes) for r in records]

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self) -> RefreshReport:
        """Fetch the last ``refresh_days`` for all active tickers and the benchmark."""
        start = self.today - timedelta(days=self.config.refresh_days)
        end = self.today + timedelta(days=1)
        report = RefreshReport()

        records = self.store.list()
        for record in records:
            try:
                points = self.provider.fetch_history(record.symbol, start, end)
                if points:
                    added = self.store.add_price_history(record.symbol, points)
                    report.results.append(RefreshResult(symbol=record.symbol, added=added))
                else:
                    report.results.append(
                        RefreshResult(symbol=record.symbol, error="No data returned")
                    )
            except Exception as e:
                logger.error(f"Refresh failed for {record.symbol}: {e}")
                report.results.append(RefreshResult(symbol=record.symbol, error=str(e)))

        bench_label = f"{self.config.benchmark_symbol} (benchmark)"
        try:
            points = self.provider.fetch_history(self.config.benchmark_symbol, start, end)
            if points:
                added = self.store.add_benchmark_history(points)
                report.results.append(RefreshResult(symbol=bench_label, added=added))
        except Exception as e:
            logger.error(f"Benchmark refresh failed: {e}")
            report.results.append(RefreshResult(symbol=bench_label, error=str(e)))

        logger.success(
            f"Refreshed {len(records)} tickers, "
            f"added {report.total_added} price points"
        )
        if report.errors:
            logger.warning(f"{len(report.errors)} symbols failed to refresh")
        return report

    # ------------------------------------------------------------------
    # Charts
    # ------------------------------------------------------------------

    def _entity(self, record: TickerRecord) -> TrackedEntity:
        return TrackedEntity(
            symbol=record.symbol,
            mention_date=record.mention_date,
            price_history=self.store.get_price_history(record.symbol),
        )

    def build_chart(
        self,
        policy: WindowPolicy = WindowPolicy.SINCE_MENTION,
        visible: Optional[Iterable[str]] = None,
    ) -> ChartResult:
        """Aligned, indexed chart of active tickers against the benchmark.

        Args:
            policy: Window policy (enum member, short code or name).
            visible: Symbols to include.  All active tickers when omitted.

        Returns:
            A ``ChartResult``; ``is_empty`` means "no data to display".
        """
        policy = WindowPolicy.parse(policy)
        entities = [self._entity(r) for r in self.store.list()]

        if visible is None:
            visible_set = {e.symbol for e in entities}
        else:
            visible_set = {s.strip().upper() for s in visible}
            unknown = visible_set - {e.symbol for e in entities}
            if unknown:
                logger.warning(f"Ignoring unknown or archived symbols: {sorted(unknown)}")

        charted = [e for e in entities if e.symbol in visible_set]
        benchmark = self.store.get_benchmark_history()

        resolution = resolve(policy, charted, self.today)
        series = align(entities, benchmark, visible_set, policy, resolution)
        summary = summarize(series)

        if series.is_empty:
            logger.warning("No data to display for the selected tickers and range.")
        return ChartResult(series=series, summary=summary)

    def ticker_chart(self, symbol: str) -> ChartResult:
        """One ticker against the benchmark, both indexed at its mention."""
        entity = self._entity(self._require(symbol))
        benchmark = self.store.get_benchmark_history()
        policy = WindowPolicy.SINCE_MENTION

        resolution = resolve(policy, [entity], self.today)
        series = align([entity], benchmark, {entity.symbol}, policy, resolution)
        return ChartResult(series=series, summary=summarize(series))
