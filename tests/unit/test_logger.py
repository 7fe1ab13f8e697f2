"""
Log sink routing.
"""
import pytest
from loguru import logger

from src.icarus.utils.logger import setup_logger


@pytest.fixture
def log_dir(tmp_path):
    yield tmp_path / "logs"
    # Flush the enqueued file sinks and drop them before tmp_path goes away.
    logger.remove()


def read_logs(folder, prefix):
    return "".join(p.read_text(encoding="utf-8") for p in folder.glob(f"{prefix}_*.log"))


def test_provider_records_get_their_own_file(log_dir):
    setup_logger(str(log_dir), console_level="ERROR")

    logger.patch(lambda r: r.update(name="src.icarus.data.adapters.yfinance_adapter")).info(
        "Fetching NVDA"
    )
    logger.patch(lambda r: r.update(name="src.icarus.core.aligner")).debug("Aligned 2 columns")
    logger.complete()
    logger.remove()

    provider = read_logs(log_dir, "provider")
    main = read_logs(log_dir, "icarus")

    assert "Fetching NVDA" in provider
    assert "Aligned 2 columns" not in provider
    assert "Fetching NVDA" in main
    assert "Aligned 2 columns" in main


def test_provider_file_is_optional(log_dir):
    setup_logger(str(log_dir), provider_log=False)
    logger.info("hello")
    logger.remove()

    assert list(log_dir.glob("provider_*.log")) == []
    assert "hello" in read_logs(log_dir, "icarus")
