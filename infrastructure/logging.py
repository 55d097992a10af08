"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

APP_DIR_NAME = "tag2dir"


def _data_root() -> Path:
    return Path.home() / ".local" / "share" / APP_DIR_NAME


def get_log_directory() -> str:
    """Get the main log directory path."""
    return str(_data_root() / "logs")


def get_move_log_directory() -> str:
    """Get the directory holding per-batch move audit logs."""
    return str(_data_root() / "move_logs")


def init_logging(log_dir: str | None = None, level: str = "INFO", console: bool = False) -> None:
    """Initialize rotating file logging under the given directory."""
    log_path = Path(log_dir or get_log_directory())
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "app_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level=level,
    )
    if console:
        logger.add(sys.stderr, level="WARNING", format="{level}: {message}")


def _find_latest(directory: str, pattern: str) -> Path | None:
    try:
        path = Path(directory)
        if not path.exists():
            return None
        files = list(path.glob(pattern))
        if not files:
            return None
        return max(files, key=lambda p: p.stat().st_mtime)
    except (OSError, ValueError):
        return None


def find_latest_log_file(log_dir: str | None = None) -> Path | None:
    """Find the latest application log file in the specified directory."""
    return _find_latest(log_dir or get_log_directory(), "app_*.log")


def find_latest_move_log_file(log_dir: str | None = None) -> Path | None:
    """Find the latest move audit log."""
    return _find_latest(log_dir or get_move_log_directory(), "move_*.csv")
