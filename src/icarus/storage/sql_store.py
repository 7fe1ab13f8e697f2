"""
SQLAlchemy-backed ``TickerStore``.

Three tables, created on first use:

  - ``tickers``            one row per tracked symbol (unique)
  - ``price_history``      daily rows, ``UNIQUE(symbol, date)``
  - ``benchmark_history``  same shape, symbol fixed to the benchmark

Dates are stored as ISO text.  Price inserts use
``ON CONFLICT (symbol, date) DO NOTHING`` so re-ingesting an overlapping
window never duplicates or overwrites a stored close.  SQLite is the
default backend; the statements are also valid on Postgres.
"""
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url

from src.icarus.data.schemas import PricePoint, TickerRecord
from src.icarus.storage.base import TickerStore

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS tickers (
        symbol        TEXT PRIMARY KEY,
        company_name  TEXT,
        sector        TEXT,
        subsector     TEXT,
        mention_date  TEXT NOT NULL,
        archived      INTEGER NOT NULL DEFAULT 0,
        archived_at   TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS price_history (
        symbol  TEXT NOT NULL,
        date    TEXT NOT NULL,
        open    REAL,
        high    REAL,
        low     REAL,
        close   REAL NOT NULL,
        volume  BIGINT,
        UNIQUE (symbol, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS benchmark_history (
        symbol  TEXT NOT NULL,
        date    TEXT NOT NULL,
        open    REAL,
        high    REAL,
        low     REAL,
        close   REAL NOT NULL,
        volume  BIGINT,
        UNIQUE (symbol, date)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tickers_sector ON tickers (sector)",
    "CREATE INDEX IF NOT EXISTS idx_price_history_symbol_date ON price_history (symbol, date)",
    "CREATE INDEX IF NOT EXISTS idx_benchmark_history_date ON benchmark_history (date)",
]

_PRICE_COLUMNS = "date, open, high, low, close, volume"


class SqlTickerStore(TickerStore):
    """Relational store reached through a SQLAlchemy engine."""

    def __init__(self, db_url: str, benchmark_symbol: str = "SPY"):
        """
        Args:
            db_url: SQLAlchemy URL, e.g. ``sqlite:///data/icarus.db``.
            benchmark_symbol: Symbol recorded on benchmark rows.
        """
        self.benchmark_symbol = benchmark_symbol.upper()
        self._ensure_sqlite_dir(db_url)
        self.engine: Engine = create_engine(db_url)
        self._create_tables()

    @staticmethod
    def _ensure_sqlite_dir(db_url: str) -> None:
        url = make_url(db_url)
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    def _create_tables(self) -> None:
        with self.engine.begin() as conn:
            for statement in _SCHEMA:
                conn.execute(text(statement))
        logger.debug(f"Schema ready on {self.engine.url.render_as_string(hide_password=True)}")

    # ------------------------------------------------------------------
    # Tickers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_record(row) -> TickerRecord:
        return TickerRecord(
            symbol=row.symbol,
            company_name=row.company_name,
            sector=row.sector,
            subsector=row.subsector,
            mention_date=date.fromisoformat(row.mention_date),
            archived=bool(row.archived),
            archived_at=(
                datetime.fromisoformat(row.archived_at) if row.archived_at else None
            ),
        )

    def get(self, symbol: str) -> Optional[TickerRecord]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT * FROM tickers WHERE symbol = :symbol"),
                {"symbol": symbol.strip().upper()},
            ).first()
        return self._to_record(row) if row else None

    def upsert(self, record: TickerRecord) -> TickerRecord:
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    INSERT INTO tickers
                        (symbol, company_name, sector, subsector,
                         mention_date, archived, archived_at)
                    VALUES
                        (:symbol, :company_name, :sector, :subsector,
                         :mention_date, :archived, :archived_at)
                    ON CONFLICT (symbol) DO UPDATE SET
                        company_name = excluded.company_name,
                        sector       = excluded.sector,
                        subsector    = excluded.subsector,
                        archived     = excluded.archived,
                        archived_at  = excluded.archived_at
                """),
                {
                    "symbol": record.symbol,
                    "company_name": record.company_name,
                    "sector": record.sector,
                    "subsector": record.subsector,
                    "mention_date": record.mention_date.isoformat(),
                    "archived": int(record.archived),
                    "archived_at": (
                        record.archived_at.isoformat() if record.archived_at else None
                    ),
                },
            )
        return self.get(record.symbol)

    def list(
        self,
        include_archived: bool = False,
        sector: Optional[str] = None,
    ) -> List[TickerRecord]:
        clauses = []
        params = {}
        if not include_archived:
            clauses.append("archived = 0")
        if sector is not None:
            clauses.append("LOWER(sector) = :sector")
            params["sector"] = sector.lower()
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self.engine.connect() as conn:
            rows = conn.execute(
                text(
                    f"SELECT * FROM tickers {where} "
                    "ORDER BY mention_date DESC, symbol DESC"
                ),
                params,
            ).all()
        return [self._to_record(r) for r in rows]

    # ------------------------------------------------------------------
    # Price history
    # ------------------------------------------------------------------

    def _select_prices(
        self,
        table: str,
        symbol: str,
        start: Optional[date],
        end: Optional[date],
    ) -> List[PricePoint]:
        clauses = ["symbol = :symbol"]
        params = {"symbol": symbol}
        if start is not None:
            clauses.append("date >= :start")
            params["start"] = start.isoformat()
        if end is not None:
            clauses.append("date <= :end")
            params["end"] = end.isoformat()

        with self.engine.connect() as conn:
            rows = conn.execute(
                text(
                    f"SELECT {_PRICE_COLUMNS} FROM {table} "
                    f"WHERE {' AND '.join(clauses)} ORDER BY date ASC"
                ),
                params,
            ).all()

        return [
            PricePoint(
                date=date.fromisoformat(r.date),
                close=r.close,
                open=r.open,
                high=r.high,
                low=r.low,
                volume=r.volume,
            )
            for r in rows
        ]

    def _insert_prices(
        self,
        table: str,
        symbol: str,
        points: Sequence[PricePoint],
    ) -> int:
        if not points:
            return 0

        added = 0
        with self.engine.begin() as conn:
            for p in points:
                result = conn.execute(
                    text(f"""
                        INSERT INTO {table} (symbol, {_PRICE_COLUMNS})
                        VALUES (:symbol, :date, :open, :high, :low, :close, :volume)
                        ON CONFLICT (symbol, date) DO NOTHING
                    """),
                    {
                        "symbol": symbol,
                        "date": p.date.isoformat(),
                        "open": p.open,
                        "high": p.high,
                        "low": p.low,
                        "close": p.close,
                        "volume": p.volume,
                    },
                )
                added += result.rowcount or 0

        logger.debug(f"{table}: {added}/{len(points)} new rows for {symbol}")
        return added

    def get_price_history(
        self,
        symbol: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[PricePoint]:
        return self._select_prices("price_history", symbol.strip().upper(), start, end)

    def add_price_history(self, symbol: str, points: Sequence[PricePoint]) -> int:
        return self._insert_prices("price_history", symbol.strip().upper(), points)

    def get_benchmark_history(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[PricePoint]:
        return self._select_prices(
            "benchmark_history", self.benchmark_symbol, start, end,
        )

    def add_benchmark_history(self, points: Sequence[PricePoint]) -> int:
        return self._insert_prices("benchmark_history", self.benchmark_symbol, points)
