"""
Poll-based progress for long media edits.

Values: 0..100 while running/done, -1 after a failure. A new edit resets
the counter; there is no cancellation.
"""

from __future__ import annotations
import threading


class ProgressCounter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def get(self) -> int:
        with self._lock:
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = int(value)

    def reset(self) -> None:
        self.set(0)


# Shared by the trim endpoints
trim_progress = ProgressCounter()
