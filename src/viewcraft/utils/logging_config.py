"""Logging configuration for viewcraft.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing helpers for CLI round trips

Environment Variables:
    VIEWCRAFT_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    VIEWCRAFT_LOG_FILE: Path to log file (default: ~/.viewcraft/viewcraft.log)
    VIEWCRAFT_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    VIEWCRAFT_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from viewcraft.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("get-view")
    def execute(self, subcommand, *args):
        ...

    # Or use a context manager for sections:
    with timed_section_sync("converge", master_id="ci-main", view="qa"):
        ...
"""
import functools
import logging
import os
import time
from contextlib import contextmanager, asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("viewcraft.perf")

_MAIN_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s"
_PERF_FORMAT = "%(asctime)s.%(msecs)03d | PERF | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("VIEWCRAFT_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".viewcraft" / "viewcraft.log"
    path_str = os.environ.get("VIEWCRAFT_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging(level: Optional[int] = None) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects VIEWCRAFT_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for timing metrics

    Args:
        level: Console level override (e.g. from a --verbose flag)
    """
    log_level = level if level is not None else get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("VIEWCRAFT_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("VIEWCRAFT_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(_MAIN_FORMAT, datefmt=_DATE_FORMAT)
    perf_format = logging.Formatter(_PERF_FORMAT, datefmt=_DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "viewcraft-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    # Module loggers all live under "viewcraft"; handlers filter, logger captures all
    root_logger = logging.getLogger("viewcraft")
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # perf records go to their own file and the console only
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.handlers.clear()
    perf_logger.addHandler(perf_handler)
    perf_logger.addHandler(console_handler)
    perf_logger.propagate = False

    root_logger.info(
        f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}"
    )
    perf_logger.debug(f"Performance logging to: {perf_log_file}")


def _format_timing(
    operation: str,
    master_id: Optional[str],
    elapsed_ms: float,
    outcome: str,
    extra: dict,
) -> str:
    msg = f"{operation:20s} | {master_id or 'N/A':15s} | {elapsed_ms:8.2f}ms | {outcome}"
    if extra:
        msg += " | " + " | ".join(f"{k}={v}" for k, v in extra.items())
    return msg


def timed(operation: Optional[str] = None, master_id: Optional[str] = None):
    """Decorator to log execution time of a blocking function.

    Args:
        operation: Name of the operation. When omitted, the first positional
            argument after ``self`` is used (the CLI sub-command name).
        master_id: Optional master identifier (can also be inferred from
            ``self.master_id``)

    Usage:
        @timed()
        def execute(self, subcommand, *args):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            mid = master_id
            if mid is None and args and hasattr(args[0], "master_id"):
                mid = args[0].master_id
            op = operation
            if op is None:
                op = str(args[1]) if len(args) > 1 else func.__name__

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_format_timing(op, mid, elapsed, f"FAIL: {e}", {}))
                raise
            elapsed = (time.perf_counter() - start) * 1000
            perf_logger.info(_format_timing(op, mid, elapsed, "OK", {}))
            return result

        return wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, master_id: Optional[str] = None, **extra):
    """Async context manager for timing code sections (MCP tool calls).

    Usage:
        async with timed_section("tool:converge_view", master_id="ci-main"):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        perf_logger.warning(_format_timing(operation, master_id, elapsed, f"FAIL: {e}", extra))
        raise
    elapsed = (time.perf_counter() - start) * 1000
    perf_logger.info(_format_timing(operation, master_id, elapsed, "OK", extra))


@contextmanager
def timed_section_sync(operation: str, master_id: Optional[str] = None, **extra):
    """Sync context manager for timing code sections."""
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        perf_logger.warning(_format_timing(operation, master_id, elapsed, f"FAIL: {e}", extra))
        raise
    elapsed = (time.perf_counter() - start) * 1000
    perf_logger.info(_format_timing(operation, master_id, elapsed, "OK", extra))
