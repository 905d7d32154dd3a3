# drmp_core/common/executors.py
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from django.conf import settings
from django.db import close_old_connections

logger = logging.getLogger(__name__)


class BoundedExecutor:
    """
    Thread pool with a bounded backlog and caller-runs backpressure.

    At most `max_workers + queue_capacity` submissions are in flight; when
    that budget is exhausted the callable runs synchronously on the
    submitting thread instead of being rejected.
    """

    def __init__(self, *, name: str, max_workers: int, queue_capacity: int):
        self.name = name
        self.max_workers = max_workers
        self.queue_capacity = queue_capacity
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._slots = threading.BoundedSemaphore(max_workers + queue_capacity)

    def _wrap(self, fn: Callable, args, kwargs) -> Callable:
        def run():
            try:
                return fn(*args, **kwargs)
            finally:
                # Worker threads own their own DB connections.
                close_old_connections()
                self._slots.release()

        return run

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        if not self._slots.acquire(blocking=False):
            logger.warning("%s executor saturated; running %s on caller thread", self.name, fn.__name__)
            future: Future = Future()
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)
            return future
        return self._pool.submit(self._wrap(fn, args, kwargs))

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


_LOCK = threading.Lock()
_EXECUTORS: dict[str, BoundedExecutor] = {}


def _pool_config(name: str) -> tuple[int, int]:
    cfg = getattr(settings, "DRMP_EXECUTORS", {}) or {}
    pool = cfg.get(name, {})
    return int(pool.get("MAX_WORKERS", 20)), int(pool.get("QUEUE_CAPACITY", 100))


def get_executor(name: str) -> BoundedExecutor:
    """
    Lazily-built process-wide pools: "import" for case imports, "general"
    for everything else.
    """
    with _LOCK:
        executor = _EXECUTORS.get(name)
        if executor is None:
            max_workers, queue_capacity = _pool_config(name)
            executor = BoundedExecutor(name=name, max_workers=max_workers, queue_capacity=queue_capacity)
            _EXECUTORS[name] = executor
        return executor


def import_executor() -> BoundedExecutor:
    return get_executor("import")


def general_executor() -> BoundedExecutor:
    return get_executor("general")
