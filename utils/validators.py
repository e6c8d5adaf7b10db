"""
utils/validators.py — Decode-with-defaults helpers for untrusted JSON values.

Every helper takes an arbitrary decoded JSON value plus a fallback and
returns a value of the expected type. None of them raise: bad content is
replaced, never rejected.

Used by:
- models.py (from_dict of every record type)
- analysis_engine.py (isPlant discriminator)
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

SCORE_MIN = 1
SCORE_MAX = 100
SCORE_FALLBACK = 50

_FALSE_STRINGS = {'false', 'no', '0'}
_NUMERIC_RE = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')


def coerce_text(value: Any, fallback: str) -> str:
    """Return value stripped if it is a non-blank string, else fallback."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def coerce_optional_text(value: Any) -> Optional[str]:
    """Like coerce_text, but absence stays None (user-editable fields)."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _round_half_up(number: float) -> int:
    return int(math.floor(number + 0.5))


def _float_to_int(number: float, fallback: int) -> int:
    if math.isnan(number):
        return fallback
    if math.isinf(number):
        return SCORE_MAX if number > 0 else SCORE_MIN
    return _round_half_up(number)


def coerce_int(value: Any, fallback: int = SCORE_FALLBACK) -> int:
    """
    Convert a numeric-like value to int.

    Accepts int and float (bool excluded), and strings such as
    "85", " 72.5 ", "90%". Infinities saturate at the score bounds, NaN
    and anything else yield fallback.
    """
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _float_to_int(value, fallback)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith('%'):
            text = text[:-1].strip()
        if _NUMERIC_RE.match(text):
            return _float_to_int(float(text), fallback)
    return fallback


def clamp(number: int, low: int = SCORE_MIN, high: int = SCORE_MAX) -> int:
    return max(low, min(high, number))


def coerce_score(value: Any, fallback: int = SCORE_FALLBACK) -> int:
    """Coerce to int (fallback 50), then clamp into [1, 100]."""
    return clamp(coerce_int(value, fallback))


def coerce_text_list(value: Any, fallback: Sequence[str]) -> List[str]:
    """
    Return a cleaned copy of value if it is a list of strings with at least
    one non-blank entry, else a copy of fallback.

    Blank entries are dropped; a list containing any non-string falls back
    as a whole.
    """
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        cleaned = [item.strip() for item in value if item.strip()]
        if cleaned:
            return cleaned
    return list(fallback)


def coerce_mapping(value: Any) -> dict:
    """Nested objects: anything that is not a dict is treated as empty."""
    return value if isinstance(value, dict) else {}


def parse_instant(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 instant into an aware UTC datetime.

    Accepts datetime objects and strings (a trailing 'Z' is understood).
    Naive values are taken as UTC. Unparseable values give None.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z') or text.endswith('z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_instant(value: Optional[datetime]) -> Optional[str]:
    """Serialize an instant as ISO-8601 UTC with a 'Z' suffix."""
    value = parse_instant(value)
    if value is None:
        return None
    return value.isoformat().replace('+00:00', 'Z')


def is_explicit_false(value: Any) -> bool:
    """
    True only for an explicit negative: False, numeric 0, or the strings
    "false" / "no" / "0" in any case. Absence (None) is not false.
    """
    if isinstance(value, bool):
        return value is False
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, str):
        return value.strip().lower() in _FALSE_STRINGS
    return False
