"""Small text helpers used by the scrapers."""

from __future__ import annotations

import re
from typing import Optional

_DIGITS = re.compile(r"\d+")
_I32_MAX = 2**31 - 1


def extract_number(text: str) -> Optional[int]:
    """Return the first run of digits in ``text`` as an int, or None.

    Only ASCII digit runs that fit a signed 32-bit integer are accepted.
    """
    match = _DIGITS.search(text)
    if match is None:
        return None
    digits = match.group()
    if not digits.isascii():
        return None
    number = int(digits)
    if number > _I32_MAX:
        return None
    return number


def clean_text(s: str) -> str:
    """Strip surrounding whitespace."""
    return s.strip()