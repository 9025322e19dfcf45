import functools
import logging
import sys
import time
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger("timeflux")
logger.setLevel(logging.INFO)

_indent_level = 0


def configure_logging(level: int = logging.INFO) -> None:
    """Root logging setup for entry points (CLI); library use leaves handlers alone."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _indented(msg: str) -> str:
    return "  " * _indent_level + msg


def log_info(msg: str) -> None:
    logger.info(_indented(msg))


def log_warning(msg: str) -> None:
    logger.warning(_indented(msg))


@contextmanager
def log_indent() -> Iterator[None]:
    """Nest every message logged inside the block one level deeper."""
    global _indent_level
    _indent_level += 1
    try:
        yield
    finally:
        _indent_level -= 1


def log_time(step: str):
    """Decorator logging the start and wall time of a pipeline step."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            log_info(f"{step}...")
            start = time.perf_counter()
            with log_indent():
                result = func(*args, **kwargs)
            log_info(f"{step} done ({time.perf_counter() - start:.2f}s)")
            return result
        return wrapper
    return decorator

