"""Live native-resource accounting.

Every session, statement handle and cursor registers itself with the
connector's :class:`ResourceTracker` when it acquires its native
resource and releases the registration exactly once on close. Tests
assert ``tracker.total() == 0`` after teardown to prove nothing leaked.
"""

from __future__ import annotations

import threading
from collections import Counter


class ResourceTracker:
    """Thread-safe counters of open resources by kind."""

    KINDS = ("session", "statement", "cursor")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._live: Counter[str] = Counter()
        self._opened: Counter[str] = Counter()

    def acquire(self, kind: str) -> None:
        if kind not in self.KINDS:
            raise ValueError(f"Unknown resource kind: {kind!r}")
        with self._lock:
            self._live[kind] += 1
            self._opened[kind] += 1

    def release(self, kind: str) -> None:
        with self._lock:
            if self._live[kind] <= 0:
                raise RuntimeError(f"Release of {kind} without matching acquire")
            self._live[kind] -= 1

    def live(self, kind: str | None = None) -> int:
        """Currently open resources, of one kind or all kinds."""
        with self._lock:
            if kind is None:
                return sum(self._live.values())
            return self._live[kind]

    def opened(self, kind: str) -> int:
        """Resources of ``kind`` ever acquired."""
        with self._lock:
            return self._opened[kind]

    def total(self) -> int:
        return self.live()

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {kind: self._live[kind] for kind in self.KINDS}

    def __repr__(self) -> str:
        return f"ResourceTracker({self.snapshot()})"


__all__ = [
    "ResourceTracker",
]
