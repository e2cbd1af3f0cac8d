"""
Utility functions for spot-updater.

This module provides the small formatting and paging helpers shared by the
updater and the CLI:
    - Status-line dates ("Mar 3rd, 2021 at 14:05")
    - Track lengths ("3:07", "1:02:09")
    - Page-number clamping for page views
    - Splitting request payloads into API-sized batches

Usage:
    from spot_updater.utils import date_string, format_length, clamp_page
"""

import math
from datetime import datetime, timezone
from typing import Iterator, Sequence, TypeVar


MONTHS_OF_THE_YEAR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAY_SUFFIXES = ("th", "st", "nd", "rd")

T = TypeVar("T")


def day_suffix(day: int) -> str:
    """
    English ordinal suffix for a day of the month.

    Examples:
        day_suffix(1)   # "st"
        day_suffix(12)  # "th"
        day_suffix(23)  # "rd"
    """
    if 11 <= day <= 13:
        return "th"
    last_digit = day % 10
    return DAY_SUFFIXES[last_digit] if last_digit < len(DAY_SUFFIXES) else "th"


def date_string(moment: datetime) -> str:
    """
    Format a timestamp for a playlist status line.

    Aware datetimes are shown in the machine's local time zone; naive ones
    are assumed to be UTC.

    Example:
        date_string(datetime(2021, 3, 3, 14, 5))  # "Mar 3rd, 2021 at 14:05" (UTC machine)
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone()
    return (
        f"{MONTHS_OF_THE_YEAR[local.month - 1]} {local.day}{day_suffix(local.day)}, "
        f"{local.year} at {local.hour:02d}:{local.minute:02d}"
    )


def format_length(duration_ms: int | None) -> str:
    """
    Format a track duration given in milliseconds.

    Returns:
        "m:ss" below one hour, "h:mm:ss" otherwise; "0:00" for missing or
        negative durations.
    """
    if not duration_ms or duration_ms < 0:
        return "0:00"

    seconds_total = duration_ms // 1000
    minutes_total, seconds = divmod(seconds_total, 60)
    if minutes_total < 60:
        return f"{minutes_total}:{seconds:02d}"

    hours, minutes = divmod(minutes_total, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def max_page(total: int, page_size: int) -> int:
    """Number of the last page of a collection (at least 1)."""
    return max(1, math.ceil(max(total, 0) / page_size))


def clamp_page(page: int, total: int, page_size: int) -> int:
    """Clamp a requested page number into [1, max_page]."""
    return min(max(page, 1), max_page(total, page_size))


def batches(items: Sequence[T], size: int) -> Iterator[tuple[int, Sequence[T]]]:
    """
    Split a sequence into consecutive slices of at most `size` items.

    Yields:
        (start index, slice) pairs, in order.

    Example:
        for start, batch in batches(uris, TRACKS_TO_ADD_PER_REQUEST):
            ...
    """
    for start in range(0, len(items), size):
        yield start, items[start:start + size]
