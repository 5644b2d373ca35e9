"""
Silk Parallel Fan-out

Runs the children of a ParallelBlock as independent units of work on a
bounded number of threads. Every child is submitted before the block waits,
a failing child never cancels its siblings, and outcomes are reported in child
order whatever order the children finished in.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from silk.errors import InternalError, SilkError

logger = logging.getLogger(__name__)


def default_max_workers() -> int:
    """One worker per logical core."""
    return max(1, os.cpu_count() or 1)


@dataclass
class ChildOutcome:
    """Result of one parallel child: its variable writes or its error."""
    index: int
    writes: Dict[str, Any] = field(default_factory=dict)
    error: Optional[SilkError] = None

    @property
    def success(self) -> bool:
        return self.error is None


class ParallelRunner:
    """
    Bounded scheduler for parallel children.

    One runner serves a whole session, and at most ``max_workers`` children
    hold a slot and run at any moment, however deeply blocks are nested. A
    child that reaches a nested block hands its slot to the nested children
    while it waits, and takes a slot back before it continues.
    """

    def __init__(self, max_workers: Optional[int] = None):
        if max_workers is None:
            max_workers = default_max_workers()
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self._slots = threading.BoundedSemaphore(max_workers)
        self._local = threading.local()

    def in_child(self) -> bool:
        """True when called from a thread running one of this runner's children."""
        return getattr(self._local, "child", False)

    def run(self, count: int, work: Callable[[int], Dict[str, Any]]) -> List[ChildOutcome]:
        """
        Run ``work(i)`` for every child index and wait for all of them.

        Args:
            count: Number of children
            work: Runs one child and returns the bindings it wrote

        Returns:
            One ChildOutcome per child, in child order
        """
        if count == 0:
            return []

        nested = self.in_child()
        if nested:
            self._slots.release()
        try:
            return self._fan_out(count, work)
        finally:
            if nested:
                self._slots.acquire()

    def _fan_out(self, count: int, work: Callable[[int], Dict[str, Any]]) -> List[ChildOutcome]:
        workers = min(self.max_workers, count)
        logger.debug(f"Fanning out {count} parallel children on {workers} workers")

        outcomes: List[Optional[ChildOutcome]] = [None] * count
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="silk-parallel") as pool:
            futures = {pool.submit(self._run_child, work, index): index for index in range(count)}
            for future in as_completed(futures):
                index = futures[future]
                try:
                    writes = future.result()
                except SilkError as exc:
                    logger.debug(f"Parallel child {index} failed: {exc}")
                    outcomes[index] = ChildOutcome(index, error=exc)
                except Exception as exc:
                    logger.debug(f"Parallel child {index} raised {type(exc).__name__}: {exc}")
                    outcomes[index] = ChildOutcome(index, error=InternalError(exc))
                else:
                    outcomes[index] = ChildOutcome(index, writes=writes)

        return outcomes

    def _run_child(self, work: Callable[[int], Dict[str, Any]], index: int) -> Dict[str, Any]:
        with self._slots:
            self._local.child = True
            try:
                return work(index)
            finally:
                self._local.child = False
