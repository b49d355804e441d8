"""
Lightweight timing for hot paths.

    with trace("tasks.list.count"):
        total = queryset.count()

    @trace("tasks.create")
    def create_task(...):
        ...

Elapsed time is logged at DEBUG as "[trace] <name> -> <ms> ms", also when
the block raises.
"""
import logging
import time
from contextlib import ContextDecorator

logger = logging.getLogger(__name__)


class trace(ContextDecorator):

    def __init__(self, name: str):
        self.name = name
        self.elapsed_ms = None
        self._start = None

    def _recreate_cm(self):
        # Fresh timer per decorated call
        return type(self)(self.name)

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
        logger.debug(f"[trace] {self.name} -> {self.elapsed_ms:.2f} ms")
        return False
