"""
Record codec for intermediate data.
One record per line: key<TAB>value. The first tab is the field boundary.
"""

from typing import Optional, Tuple

from pseudomr.errors import MalformedRecordError

SEPARATOR = '\t'


def encode_record(key, value) -> str:
    """
    Encode a (key, value) pair as an intermediate line (without newline)

    Args:
        key: Record key, converted with str()
        value: Record value, converted with str()

    Returns:
        The encoded line

    Raises:
        ValueError: If key or value contains a tab or a newline
    """
    key = str(key)
    value = str(value)
    for name, field in (('key', key), ('value', value)):
        if SEPARATOR in field or '\n' in field or '\r' in field:
            raise ValueError(f"Record {name} must not contain tab or newline: {field!r}")
    return f"{key}{SEPARATOR}{value}"


def decode_record(line: str, line_number: Optional[int] = None) -> Tuple[str, str]:
    """
    Split an intermediate line at its first tab

    Args:
        line: Line with or without its trailing newline
        line_number: Position in the source, used in error messages

    Returns:
        (key, value) tuple

    Raises:
        MalformedRecordError: If the line holds no tab
    """
    line = line.rstrip('\n')
    key, sep, value = line.partition(SEPARATOR)
    if not sep:
        raise MalformedRecordError(line, line_number)
    return key, value
