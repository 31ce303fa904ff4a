from __future__ import annotations

import math
import re
from datetime import UTC, date, datetime
from typing import Any

"""Cell value coercions shared by the rule engines.

Grid cells hold whatever the host wrote: numbers, strings typed by the user,
None for never-touched cells. Rules compare them either as text or as numbers;
these helpers define both views once.
"""

# 10, -2.5, .5, 1e3 (inf や 1_000 は数値として扱わない)
_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v == "")


def as_text(v: Any) -> str:
    """Text view of a cell value (None -> '', 3.0 -> '3', True -> 'true')."""
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float):
        if math.isfinite(v) and v.is_integer():
            return str(int(v))
        return repr(v)
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return str(v)


def to_number(v: Any) -> float | None:
    """Numeric view of a cell value, or None when it is not numeric.

    Plain decimal strings count (surrounding whitespace ignored); blanks, bools,
    NaN and spellings like ``inf`` or ``1_000`` do not. Integers too large for
    a float become +-inf.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        try:
            n = float(v)
        except OverflowError:
            n = math.copysign(math.inf, v)
    elif isinstance(v, float):
        n = v
    elif isinstance(v, str):
        s = v.strip()
        if not _NUMBER_RE.fullmatch(s):
            return None
        n = float(s)
    else:
        return None
    return None if math.isnan(n) else n


def _naive_utc(d: datetime) -> datetime:
    if d.tzinfo is None:
        return d
    return d.astimezone(UTC).replace(tzinfo=None)


def to_datetime(v: Any) -> datetime | None:
    """Parse ISO dates / datetimes (``2024-01-31``, ``2024-01-31T10:00:00Z``).

    Values with an offset are converted to UTC; naive values are kept as is.
    """
    if isinstance(v, datetime):
        return _naive_utc(v)
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day)
    if not isinstance(v, str) or not v.strip():
        return None
    s = v.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        return None
    return _naive_utc(parsed)
