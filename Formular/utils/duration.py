# -*- coding: utf-8 -*-
"""Human-friendly duration parsing using pytimeparse2, and compact formatting for user messages."""

import math
from datetime import timedelta

import pytimeparse2

MAX_COOLDOWN_SECONDS = 365 * 24 * 60 * 60

_UNITS = (
    ("d", 24 * 60 * 60),
    ("h", 60 * 60),
    ("m", 60),
    ("s", 1),
)


def parse_duration(value: str, minimum: int = 0) -> timedelta:
    """Parse a human-friendly duration string into a timedelta.

    Supports formats like '2h30m', '1d12h', '90s', '1w', '15days 2min 2s'.
    A plain integer (no unit suffix) is treated as seconds.

    Raises ValueError if the string is unparseable, negative, below ``minimum`` seconds
    or longer than a year. Fractions of a second are dropped.
    """
    if value.strip().isdigit():
        seconds = int(value.strip())
    else:
        seconds = pytimeparse2.parse(value)

    if seconds is None:
        raise ValueError(f"Could not parse duration: '{value}'")

    if seconds < 0:
        raise ValueError(f"Duration cannot be negative: '{value}'")

    seconds = int(seconds)
    if seconds < minimum:
        raise ValueError(f"Duration must be at least {minimum} seconds, got {seconds}s")

    if seconds > MAX_COOLDOWN_SECONDS:
        raise ValueError(f"Duration must be at most one year, got {seconds}s")

    return timedelta(seconds=seconds)


def format_duration(value: timedelta) -> str:
    """Format a timedelta as e.g. '3m12s' or '1d4h'.

    Partial seconds round up, so a remaining wait is never understated. Zero renders as '0s'.
    """
    total = max(0, math.ceil(value.total_seconds()))
    if total == 0:
        return "0s"

    parts = []
    for suffix, size in _UNITS:
        amount, total = divmod(total, size)
        if amount:
            parts.append(f"{amount}{suffix}")
    return "".join(parts)
