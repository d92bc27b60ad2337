"""Decorators shared by the vocabulary loaders."""

import time
import functools
import logging
from typing import Callable

log = logging.getLogger(__name__)


def measure_time(func: Callable) -> Callable:
    """Log how long the wrapped loader ran, also when it raised."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        status = "failed"
        try:
            result = func(*args, **kwargs)
            status = "completed"
            return result
        finally:
            elapsed = time.perf_counter() - start
            log.info(f"{func.__qualname__} {status} in {elapsed:.3f} s")

    return wrapper
