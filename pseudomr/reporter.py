"""
Job counters shared by map and reduce calls.
"""

import logging
import threading
from typing import Dict, Optional, Set


class Reporter:
    """
    Table of named counters, keyed by (group, name).

    increment() and set() ignore amounts <= 0, so a stored counter is always
    positive and get() returns None for a counter that was never recorded.
    """

    def __init__(self):
        self._counters: Dict[str, Dict[str, int]] = {}
        self._lock = threading.Lock()

    def increment(self, group: str, name: str, amount: int = 1):
        """Add amount to a counter, creating it if needed. No-op if amount <= 0."""
        if amount <= 0:
            return
        with self._lock:
            counters = self._counters.setdefault(group, {})
            counters[name] = counters.get(name, 0) + amount

    def set(self, group: str, name: str, value: int):
        """Set a counter to value. No-op if value <= 0."""
        if value <= 0:
            return
        with self._lock:
            self._counters.setdefault(group, {})[name] = value

    def get(self, group: str, name: str) -> Optional[int]:
        """Value of a counter, or None if it does not exist."""
        with self._lock:
            return self._counters.get(group, {}).get(name)

    def groups(self) -> Set[str]:
        with self._lock:
            return set(self._counters)

    def names(self, group: str) -> Set[str]:
        with self._lock:
            return set(self._counters.get(group, {}))

    def counters(self, group: str) -> Dict[str, int]:
        """Snapshot of the counters of one group."""
        with self._lock:
            return dict(self._counters.get(group, {}))

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        """Snapshot of every counter, grouped."""
        with self._lock:
            return {group: dict(counters) for group, counters in self._counters.items()}

    def clear(self):
        with self._lock:
            self._counters.clear()

    def log_counters(self, group: str, logger: Optional[logging.Logger] = None):
        """Log every counter of a group at INFO level, sorted by name."""
        logger = logger or logging.getLogger(__name__)
        counters = self.counters(group)
        logger.info(f"Counters for {group}: {len(counters)}")
        for name in sorted(counters):
            logger.info(f"  {name}={counters[name]}")

    def __contains__(self, item):
        group, name = item
        return self.get(group, name) is not None

    def __repr__(self):
        return f"Reporter({self.to_dict()!r})"
