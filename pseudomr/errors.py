"""
Exceptions raised by the pseudo map-reduce engine.
I/O failures are plain OSErrors and are not wrapped.
"""

from typing import Optional


class PseudoMapReduceError(Exception):
    """Base class for engine errors"""


class ShuffleError(PseudoMapReduceError, IOError):
    """The sort/shuffle step failed"""

    def __init__(self, message: str = "Unable to sort/shuffle data."):
        super().__init__(message)


class MalformedRecordError(PseudoMapReduceError, ValueError):
    """An intermediate line could not be split into key and value"""

    def __init__(self, line: str, line_number: Optional[int] = None, reason: str = "no tab separator"):
        self.line = line
        self.line_number = line_number
        where = f" at line {line_number}" if line_number is not None else ""
        super().__init__(f"Malformed intermediate record{where} ({reason}): {line!r}")


class JobLoadError(PseudoMapReduceError):
    """A job file does not define the expected functions"""
