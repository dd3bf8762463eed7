"""Normalisation helpers for values that come back from the LLM."""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import TypeVar

E = TypeVar("E", bound=Enum)


def parse_or_default(raw: object, default: E) -> E:
    """Coerce *raw* into a member of ``type(default)``, or return *default*.

    Matching is case-insensitive and treats spaces and dashes as underscores,
    so "Emphasis Shift" resolves to ``emphasis_shift``.
    """
    enum_cls = type(default)
    if isinstance(raw, enum_cls):
        return raw
    if not isinstance(raw, str):
        return default
    key = re.sub(r"[\s\-]+", "_", raw.strip().lower())
    try:
        return enum_cls(key)
    except ValueError:
        return default


def round_half_up(value: float) -> int:
    """Round halves upward, matching the usual arithmetic convention."""
    return math.floor(value + 0.5)


def clamp_score(value: object, default: int = 0) -> int:
    """Round *value* into the 0-100 range; non-numbers, NaN and infinities become *default*."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return max(0, min(100, round_half_up(value)))


def slugify(text: str) -> str:
    """Lowercase and join whitespace runs with dashes."""
    return re.sub(r"\s+", "-", text.strip().lower())
