"""
Command-line entry point.

Subcommands::

    uv run main.py add NVDA --mention-date 2024-01-10
    uv run main.py archive NVDA
    uv run main.py restore NVDA
    uv run main.py list [--archived]
    uv run main.py refresh
    uv run main.py sectors
    uv run main.py import semis --file watchlists/watchlists.json
    uv run main.py chart --range SINCE_MENTION --visible NVDA AMD --plot chart.png
"""
import argparse
import json
import sys
from datetime import date

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

from src.icarus.utils.config import TrackerConfig  # noqa: E402
from src.icarus.utils.logger import setup_logger  # noqa: E402

CONFIG = TrackerConfig.from_env()
setup_logger(CONFIG.log_dir, console_level=CONFIG.log_level)

from src.icarus.analysis.plotter import IndexedChartPlotter  # noqa: E402
from src.icarus.core.exceptions import (  # noqa: E402
    DuplicateTickerError,
    IcarusError,
    TickerNotFoundError,
)
from src.icarus.core.window import WindowPolicy  # noqa: E402
from src.icarus.data.adapters.yfinance_adapter import YFinanceAdapter  # noqa: E402
from src.icarus.service.tracker import TickerTracker  # noqa: E402
from src.icarus.storage.sql_store import SqlTickerStore  # noqa: E402
from src.icarus.utils.watchlist_loader import WatchlistLoader  # noqa: E402


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_tracker(config: TrackerConfig) -> TickerTracker:
    store = SqlTickerStore(config.db_url, benchmark_symbol=config.benchmark_symbol)
    return TickerTracker(store=store, provider=YFinanceAdapter(), config=config)


def save_json(data, path: str) -> None:
    """Serialise *data* as pretty-printed JSON to *path*."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.success(f"Saved {path}")


def _fmt(value, spec: str = "+.2f") -> str:
    return "n/a" if value is None else format(value, spec)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def cmd_add(tracker: TickerTracker, args) -> None:
    record = tracker.add_ticker(args.symbol, mention_date=args.mention_date)
    print(f"Added {record.symbol} ({record.sector or 'Unknown sector'})")


def cmd_archive(tracker: TickerTracker, args) -> None:
    tracker.archive_ticker(args.symbol)
    print(f"Archived {args.symbol.upper()}")


def cmd_restore(tracker: TickerTracker, args) -> None:
    tracker.restore_ticker(args.symbol)
    print(f"Restored {args.symbol.upper()}")


def cmd_list(tracker: TickerTracker, args) -> None:
    if args.archived:
        for record in tracker.list_archived():
            print(f"{record.symbol:<8} archived {record.archived_at:%Y-%m-%d}")
        return

    for snap in tracker.list_tickers(with_quotes=not args.offline):
        print(
            f"{snap.symbol:<8} {snap.record.mention_date}  "
            f"price {_fmt(snap.current_price, '.2f'):>10}  "
            f"day {_fmt(snap.daily_change_percent):>7}%  "
            f"since mention {_fmt(snap.change_since_mention_percent):>7}%"
        )


def cmd_refresh(tracker: TickerTracker, args) -> None:
    report = tracker.refresh()
    for result in report.results:
        status = f"error: {result.error}" if result.error else f"+{result.added}"
        print(f"{result.symbol:<18} {status}")
    print(f"Added {report.total_added} price points")


def cmd_sectors(tracker: TickerTracker, args) -> None:
    for sector, count in tracker.sector_counts():
        print(f"{sector:<28} {count}")


def cmd_import(tracker: TickerTracker, args) -> None:
    loader = WatchlistLoader(args.file)
    for entry in loader.get_entries(args.watchlist):
        try:
            tracker.add_ticker(entry.symbol, mention_date=entry.mention_date)
        except (DuplicateTickerError, TickerNotFoundError) as e:
            logger.warning(str(e))


def cmd_chart(tracker: TickerTracker, args) -> None:
    chart = tracker.build_chart(args.range, visible=args.visible)
    if chart.is_empty:
        print("No data to display.")
        return

    for key, total in chart.summary.ranked():
        alpha = chart.summary.alpha_of(key)
        suffix = f"  alpha {_fmt(alpha)}" if alpha is not None else ""
        print(f"{key:<10} {_fmt(total)}%{suffix}")

    if args.json:
        save_json(chart.to_dict(), args.json)
    if args.plot:
        IndexedChartPlotter().plot(
            chart.series, chart.summary, output_file=args.plot,
            benchmark_label=tracker.config.benchmark_symbol,
        )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Icarus ticker tracker")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Start tracking a ticker")
    p.add_argument("symbol")
    p.add_argument(
        "--mention-date", type=date.fromisoformat, default=None,
        help="ISO date of the mention (default: today)",
    )
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("archive", help="Archive a ticker")
    p.add_argument("symbol")
    p.set_defaults(func=cmd_archive)

    p = sub.add_parser("restore", help="Restore an archived ticker")
    p.add_argument("symbol")
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("list", help="List tracked tickers")
    p.add_argument("--archived", action="store_true", help="Show archived tickers")
    p.add_argument("--offline", action="store_true", help="Skip live quotes")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("refresh", help="Fetch recent prices")
    p.set_defaults(func=cmd_refresh)

    p = sub.add_parser("sectors", help="Ticker counts per sector")
    p.set_defaults(func=cmd_sectors)

    p = sub.add_parser("import", help="Bulk-add a watchlist")
    p.add_argument("watchlist")
    p.add_argument("--file", default="watchlists/watchlists.json")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("chart", help="Indexed performance vs the benchmark")
    p.add_argument(
        "--range", default=WindowPolicy.SINCE_MENTION.value,
        choices=[w.value for w in WindowPolicy],
    )
    p.add_argument("--visible", nargs="+", default=None, help="Symbols to chart")
    p.add_argument("--plot", default=None, help="Write a PNG chart to this path")
    p.add_argument("--json", default=None, help="Write chart data as JSON")
    p.set_defaults(func=cmd_chart)

    return parser


def main() -> None:
    args = build_parser().parse_args()

    try:
        tracker = build_tracker(CONFIG)
        args.func(tracker, args)
    except IcarusError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
