"""
Per-stage wall-clock timing for one extraction run.

The orchestrator wraps every stage in `StageTimers.timer(name)` and logs
`as_ms()` with the final record.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict, Iterator


class StageTimers:
    """Elapsed seconds and call counts keyed by stage name, in first-run order."""

    def __init__(self) -> None:
        self.totals: Dict[str, float] = {}
        self.calls: Dict[str, int] = {}

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        # Time is recorded even when the stage raises
        started = time.perf_counter()
        try:
            yield
        finally:
            self.totals[name] = self.totals.get(name, 0.0) + (time.perf_counter() - started)
            self.calls[name] = self.calls.get(name, 0) + 1

    @property
    def total_seconds(self) -> float:
        return sum(self.totals.values())

    def as_ms(self) -> Dict[str, int]:
        """Totals rounded to whole milliseconds, ready for a log record."""
        return {name: int(round(seconds * 1000)) for name, seconds in self.totals.items()}
