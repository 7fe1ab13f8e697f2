"""
Loguru sinks for the tracker.

``setup_logger()`` replaces loguru's default handler with:
  - **stderr**: short, coloured lines at the configured console level.
  - **icarus_<date>.log**: everything from DEBUG up, with source location.
  - **provider_<date>.log**: only records emitted under ``src.icarus.data``,
    so fetch chatter (one line per symbol per refresh) can be inspected
    without wading through chart and store messages.

Call it once from the entry point.  Library modules only do
``from loguru import logger`` and never add sinks themselves.
"""
import sys
from pathlib import Path

from loguru import logger

PROVIDER_MODULE_PREFIX = "src.icarus.data"

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)


def _from_provider(record) -> bool:
    return (record["name"] or "").startswith(PROVIDER_MODULE_PREFIX)


def setup_logger(
    log_dir: str = "logs",
    console_level: str = "INFO",
    provider_log: bool = True,
) -> logger:
    """Install the console and file sinks.

    Args:
        log_dir: Directory for the rotated files; created if missing.
        console_level: Minimum level printed to the terminal.
        provider_log: Also write the provider-only file.

    Returns:
        The global loguru ``logger``.
    """
    logger.remove()

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.add(
        sys.stderr,
        level=console_level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        colorize=True,
    )

    logger.add(
        log_path / "icarus_{time:YYYY-MM-DD}.log",
        level="DEBUG",
        format=_FILE_FORMAT,
        rotation="00:00",
        retention="30 days",
        compression="zip",
        enqueue=True,
        encoding="utf-8",
    )

    if provider_log:
        logger.add(
            log_path / "provider_{time:YYYY-MM-DD}.log",
            level="DEBUG",
            format=_FILE_FORMAT,
            filter=_from_provider,
            rotation="00:00",
            retention="7 days",
            enqueue=True,
            encoding="utf-8",
        )

    logger.debug(f"Logging to {log_path.resolve()} (console level {console_level.upper()})")
    return logger
