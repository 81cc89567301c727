from __future__ import annotations

import re
from typing import Set

STRIP_RE = re.compile(r"[^a-z0-9\s]")
MIN_TOKEN_LENGTH = 3


def normalize_title(title: str) -> str:
    """Lowercase, drop everything but ASCII letters/digits/whitespace, trim."""
    return STRIP_RE.sub("", (title or "").lower()).strip()


def tokenize(normalized: str) -> Set[str]:
    """Whitespace tokens of at least three characters."""
    return {token for token in normalized.split() if len(token) >= MIN_TOKEN_LENGTH}


__all__ = ["normalize_title", "tokenize"]
