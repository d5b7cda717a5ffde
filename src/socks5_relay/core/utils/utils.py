"""Common utility functions."""

from typing import Final

BYTES_PER_KB: Final = 1024

# Size units, smallest first
SIZE_UNITS: Final = ("B", "KB", "MB", "GB", "TB")


def format_bytes(bytes_: float) -> str:
    """Format a byte count into human readable format.

    Args:
        bytes_: Number of bytes to format

    Returns:
        str: Formatted string with appropriate unit, e.g. ``"1.5 KB"``
    """
    value = float(bytes_)
    for unit in SIZE_UNITS[:-1]:
        if abs(value) < BYTES_PER_KB:
            return f"{value:.1f} {unit}"
        value /= BYTES_PER_KB
    return f"{value:.1f} {SIZE_UNITS[-1]}"
