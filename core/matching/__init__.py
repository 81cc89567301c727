from __future__ import annotations

from .categories import CATEGORY_KEYWORDS, detect_category
from .matcher import match, similarity, spread_between
from .normalizer import normalize_title, tokenize

__all__ = [
    "CATEGORY_KEYWORDS",
    "detect_category",
    "match",
    "normalize_title",
    "similarity",
    "spread_between",
    "tokenize",
]
