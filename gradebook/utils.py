"""Utility functions for sanitization and score arithmetic."""

import html
import math
from typing import Optional

import bleach


def sanitize_text(text: str) -> str:
    """Strip all HTML tags from user-supplied question or option text.

    The result is stored as plain text, so entities produced by bleach
    (``&amp;``, ``&lt;``) are decoded back; "x < 5" survives unchanged.
    """
    sanitized = bleach.clean(text or "", tags=[], strip=True)
    return html.unescape(sanitized).strip()


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (68.5 -> 69).

    round() would give 68 here.
    """
    # Trim float noise first so 89.49999999999999 from weighting rounds as 89.5
    return int(math.floor(round(value, 9) + 0.5))


def percentage(obtained: Optional[float], total: Optional[float]) -> float:
    """Return obtained/total * 100, or 0 when total is missing or zero."""
    if not total:
        return 0.0
    return (obtained or 0) / total * 100
