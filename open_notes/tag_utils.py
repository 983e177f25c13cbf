"""
Tag and category normalization helpers.

Tags are identified by their normalized string; display colors are derived
from that string so they never need to be stored.
"""

from __future__ import annotations

import random
import re
from typing import List

PALETTE: List[str] = [
    "rose", "pink", "fuchsia", "purple", "violet",
    "indigo", "blue", "sky", "cyan", "teal",
    "emerald", "green", "lime", "yellow", "amber",
    "orange", "red", "warmGray", "coolGray", "slate",
]

_WHITESPACE = re.compile(r"\s+")


def normalize_tag(tag: str) -> str:
    """Lowercase a tag and replace whitespace runs with hyphens."""
    return _WHITESPACE.sub("-", tag.strip().lower())


def get_tag_color(tag: str) -> str:
    """
    Deterministic palette color for a tag.

    Uses the classic ``h * 31 + c`` string hash wrapped to a signed 32-bit
    integer, so the same tag always maps to the same color.
    """
    h = 0
    for ch in tag:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return PALETTE[abs(h) % len(PALETTE)]


def random_color() -> str:
    return random.choice(PALETTE)


def to_kebab_case(value: str) -> str:
    """Normalize free-form model output (e.g. "Machine Learning", "deepWork") to kebab-case."""
    value = re.sub(r"([a-z])([A-Z])", r"\1-\2", value).lower()
    value = re.sub(r"[^a-z0-9\s\-:|]", "", value).strip()
    value = _WHITESPACE.sub("-", value)
    return re.sub(r"-+", "-", value)
