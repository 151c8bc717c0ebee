"""
Thread pools used to fan page work out over a shared document.

Page results are collected in completion order; callers sort them before
returning anything. OCR runs on bounded pools that are cached per thread
count for the lifetime of the process.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from pdfdown.exceptions import OcrPoolError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_OCR_THREADS = 4

_ocr_pools: Dict[int, ThreadPoolExecutor] = {}
_ocr_pools_lock = threading.Lock()


def map_unordered(
    func: Callable[[T], R],
    items: Iterable[T],
    *,
    max_workers: Optional[int] = None,
    executor: Optional[ThreadPoolExecutor] = None,
) -> List[R]:
    """
    Run ``func`` over ``items`` concurrently and return results as they finish.

    When ``executor`` is given the work is submitted there and the executor is
    left running, otherwise a short-lived pool is created for the call.
    """
    items = list(items)
    if not items:
        return []
    if executor is not None:
        return _collect(executor, func, items)
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pdfdown") as pool:
        return _collect(pool, func, items)


def _collect(pool: ThreadPoolExecutor, func, items) -> list:
    futures = [pool.submit(func, item) for item in items]
    return [future.result() for future in as_completed(futures)]


def available_parallelism() -> int:
    return os.cpu_count() or DEFAULT_OCR_THREADS


def normalize_max_threads(value: Optional[int]) -> int:
    """Clamp a requested OCR thread count to ``[1, cpu_count]`` (default 4)."""
    requested = DEFAULT_OCR_THREADS if value is None else int(value)
    return max(1, min(requested, available_parallelism()))


def get_ocr_pool(threads: int) -> ThreadPoolExecutor:
    """Return the process-wide OCR pool for ``threads``, creating it once."""
    with _ocr_pools_lock:
        pool = _ocr_pools.get(threads)
        if pool is None:
            try:
                pool = ThreadPoolExecutor(
                    max_workers=threads, thread_name_prefix=f"pdfdown-ocr-{threads}"
                )
            except Exception as exc:
                raise OcrPoolError(threads, cause=exc) from exc
            logger.debug("Created OCR worker pool with %d threads", threads)
            _ocr_pools[threads] = pool
        return pool
