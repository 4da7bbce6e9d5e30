"""Interval and size parsing with unit suffixes."""

import math
import re
from typing import Optional, Union

from pgbackrest_check.utils.exceptions import ArgumentError

INTERVAL_RE = re.compile(r'^\s*(?:\d+\s*[wdhms]\s*)*(?:\d+\s*)?$', re.IGNORECASE)
INTERVAL_PART_RE = re.compile(r'(\d+)\s*([wdhms]?)', re.IGNORECASE)
SIZE_RE = re.compile(r'^\s*(\d+)\s*(\S*)\s*$')

INTERVAL_UNITS = {
    'w': 604800,
    'd': 86400,
    'h': 3600,
    'm': 60,
    's': 1,
    '': 1,
}

SIZE_UNITS = 'bkmgtpez'


def parse_interval(text: str) -> Union[int, float]:
    """
    Convert an interval like '1d', '2h30m' or '90' into seconds.

    Units are w, d, h, m and s (case-insensitive). A number without unit is
    a count of seconds. 'inf' and '-inf' are returned as float infinities.

    Raises:
        ArgumentError: If the interval is malformed
    """
    if text is None:
        raise ArgumentError("Malformed interval: empty value")

    value = str(text).strip().lower()
    if value == 'inf':
        return math.inf
    if value == '-inf':
        return -math.inf

    if not value or not INTERVAL_RE.match(value):
        raise ArgumentError(
            f"Malformed interval: '{text}'. Authorized units are: w, d, h, m, s"
        )

    seconds = 0
    for amount, unit in INTERVAL_PART_RE.findall(value):
        seconds += int(amount) * INTERVAL_UNITS[unit]
    return seconds


def format_interval(seconds: Union[int, float]) -> str:
    """Render a number of seconds as '1w 2d 3h4m5s'."""
    if isinstance(seconds, float) and math.isinf(seconds):
        return 'inf' if seconds > 0 else '-inf'

    value = int(seconds)
    if value <= 0:
        return f"{value}s"

    interval = ''
    weeks, value = divmod(value, 604800)
    if weeks:
        interval += f"{weeks}w "
    days, value = divmod(value, 86400)
    if days:
        interval += f"{days}d "
    hours, value = divmod(value, 3600)
    if hours:
        interval += f"{hours}h"
    minutes, value = divmod(value, 60)
    if minutes:
        interval += f"{minutes}m"
    if value:
        interval += f"{value}s"

    return interval.strip()


def parse_size(text: str, ratio_base: Optional[int] = None) -> int:
    """
    Convert a size like '16MB', '1g' or '512' into bytes.

    Only integers are accepted. Units b, k, m, g, t, p, e and z are powers
    of 1024 and may carry an extra 'b' or 'o' ('kb', 'Mo'). With '%', the
    result is that percentage of ``ratio_base``.

    Raises:
        ArgumentError: If the size or its unit is invalid
    """
    value = str(text)
    if '.' in value or ',' in value:
        raise ArgumentError(
            f"Only integers are accepted as size: '{text}'. Adjust the unit to your need."
        )

    match = SIZE_RE.match(value)
    if not match:
        raise ArgumentError(f"Malformed size: '{text}'")

    size = int(match.group(1))
    unit = match.group(2).lower()

    if unit == '':
        return size

    if unit == '%':
        if ratio_base is None:
            raise ArgumentError(f"Can not compute a ratio without the factor: '{text}'")
        return size * ratio_base // 100

    if len(unit) <= 2 and unit[0] in SIZE_UNITS and unit[1:] in ('', 'b', 'o'):
        return size * 1024 ** SIZE_UNITS.index(unit[0])

    raise ArgumentError(f"Unknown size unit: '{unit}'")
