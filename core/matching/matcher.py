from __future__ import annotations

from typing import Iterable, List, Optional, Set, Tuple

from core.models import Market, MatchedPair

from .normalizer import normalize_title, tokenize

LENGTH_RATIO_FLOOR = 0.3
MAX_TOKEN_WEIGHT = 3.0
STEM_PREFIX = 5

ClaimKey = Tuple[str, str]


def _token_weight(token: str) -> float:
    return min(len(token) / 3, MAX_TOKEN_WEIGHT)


def _tokens_match(w1: str, w2: str) -> bool:
    if w1 == w2 or w1 in w2 or w2 in w1:
        return True
    # shared 5-char stem covers plurals and simple inflections
    return len(w1) > 4 and len(w2) > 4 and w1[:STEM_PREFIX] == w2[:STEM_PREFIX]


def similarity(first: str, second: str) -> float:
    """
    Weighted keyword overlap of ``first`` against ``second`` in [0, 1].

    The first title's tokens carry the weights, so ``similarity(a, b)`` and
    ``similarity(b, a)`` can differ. Callers pass the candidate first.
    """
    text1 = normalize_title(first)
    text2 = normalize_title(second)
    if not text1 or not text2:
        return 0.0
    if min(len(text1), len(text2)) / max(len(text1), len(text2)) < LENGTH_RATIO_FLOOR:
        return 0.0

    tokens1 = tokenize(text1)
    tokens2 = tokenize(text2)
    total_weight = 0.0
    match_score = 0.0
    for w1 in tokens1:
        weight = _token_weight(w1)
        total_weight += weight
        if any(_tokens_match(w1, w2) for w2 in tokens2):
            match_score += weight
    if total_weight == 0:
        return 0.0
    return match_score / total_weight


def spread_between(primary: Market, secondary: Market) -> Optional[float]:
    if primary.yes_price is None or secondary.yes_price is None:
        return None
    return abs(primary.yes_price - secondary.yes_price)


def match(
    candidates: Iterable[Market],
    pool: Iterable[Market],
    min_similarity: float,
    claimed: Set[ClaimKey] | None = None,
) -> List[MatchedPair]:
    """
    Greedy one-to-one pairing of candidates against a pool of other-venue markets.

    Candidates are visited in input order; each takes the best-scoring pool
    market not yet in ``claimed`` (earliest wins on ties). Chosen pool markets
    are added to ``claimed`` so a caller can share the accumulator between
    passes.
    """
    claimed = set() if claimed is None else claimed
    pool_list = [mkt for mkt in pool if mkt.yes_price is not None]
    pairs: List[MatchedPair] = []
    for candidate in candidates:
        if candidate.yes_price is None:
            continue
        best: Optional[Market] = None
        best_score = -1.0
        for secondary in pool_list:
            if secondary.venue == candidate.venue or secondary.key in claimed:
                continue
            score = similarity(candidate.title, secondary.title)
            if score >= min_similarity and score > best_score:
                best = secondary
                best_score = score
        if best is None:
            continue
        claimed.add(best.key)
        pairs.append(
            MatchedPair(
                primary=candidate,
                secondary=best,
                similarity=best_score,
                spread=abs(candidate.yes_price - best.yes_price),
            )
        )
    return pairs


__all__ = ["match", "similarity", "spread_between"]
