"""
Group reader for sorted intermediate data.

Scans a sorted artifact once and yields one (key, values) group per run of
lines sharing the same key. Values are held in a counted multiset so that a
group made of many identical values costs one entry per distinct value.

The values of a group come out in the order of the sorted artifact, which
sorts whole lines: for a given key they are in ascending order of the value
text, not in the order map emitted them.
"""

import logging
from collections import OrderedDict
from typing import Iterable, Iterator, Tuple

from pseudomr.codec import decode_record

logger = logging.getLogger(__name__)


class RepeatedValues:
    """Insertion-ordered multiset of string values"""

    def __init__(self):
        self._counts = OrderedDict()
        self._total = 0

    def add(self, value: str):
        """Add one occurrence of value."""
        self._counts[value] = self._counts.get(value, 0) + 1
        self._total += 1

    def count(self, value: str) -> int:
        return self._counts.get(value, 0)

    @property
    def distinct(self) -> int:
        """Number of distinct values."""
        return len(self._counts)

    def __len__(self):
        return self._total

    def clear(self):
        self._counts.clear()
        self._total = 0

    def values(self) -> 'ValueIterator':
        """Single-pass iterator over every occurrence."""
        return ValueIterator(self)


class ValueIterator:
    """
    Finite, single-pass sequence of the values of one group.

    Each distinct value is repeated by its count, contiguously, in order of
    first insertion. iter() returns the iterator itself, so a second loop
    over an exhausted sequence sees nothing: callers that need the values
    twice must copy them (e.g. list(values)) on the first pass.
    """

    def __init__(self, multiset: RepeatedValues):
        self._entries = iter(list(multiset._counts.items()))
        self._remaining = len(multiset)
        self._current = None
        self._current_count = 0

    def __iter__(self):
        return self

    def __next__(self) -> str:
        if self._current_count == 0:
            # StopIteration from the entries iterator ends the sequence
            self._current, self._current_count = next(self._entries)
        self._current_count -= 1
        self._remaining -= 1
        return self._current

    def __length_hint__(self):
        return self._remaining


def read_groups(lines: Iterable[str]) -> Iterator[Tuple[str, ValueIterator]]:
    """
    Group consecutive records of a sorted line stream by key

    Args:
        lines: Sorted intermediate lines (key<TAB>value)

    Yields:
        (key, ValueIterator) tuples in the order of the stream

    Raises:
        MalformedRecordError: If a non-empty line has no tab
    """
    current_key = None
    values = RepeatedValues()

    for line_number, line in enumerate(lines, 1):
        line = line.rstrip('\n')
        if not line:
            logger.warning(f"Skipping empty intermediate line {line_number}")
            continue

        key, value = decode_record(line, line_number)

        if current_key is not None and key != current_key:
            yield current_key, values.values()
            values = RepeatedValues()

        current_key = key
        values.add(value)

    if current_key is not None:
        yield current_key, values.values()
