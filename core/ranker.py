from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from core.matching import detect_category, match, spread_between
from core.models import Market, MatchedPair, Opportunity, Venue
from utils.config_loader import RankingConfig
from utils.logger import BotLogger

DEFAULT_NOTIONAL = 100.0


def profit_estimate(spread: float, notional: float) -> float:
    """Linear profit model: no fees, slippage or two-venue capital cost."""
    return spread * notional


def rank(
    matches: Iterable[MatchedPair],
    min_spread: float,
    limit: int,
    notional: float = DEFAULT_NOTIONAL,
    strategy: str = "strict",
    synthetic: bool = False,
) -> List[Opportunity]:
    """Filter by spread, stable-sort by spread descending, truncate to ``limit``."""
    kept = [pair for pair in matches if pair.spread >= min_spread]
    kept.sort(key=lambda pair: pair.spread, reverse=True)
    return [
        Opportunity(
            pair=pair,
            profit_estimate=profit_estimate(pair.spread, notional),
            notional=notional,
            category=detect_category(pair.primary.title),
            strategy=strategy,
            synthetic=synthetic,
        )
        for pair in kept[: max(0, limit)]
    ]


class MatchStrategy(str, Enum):
    STRICT = "strict"
    RELAXED = "relaxed"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True, slots=True)
class StrategyParams:
    strategy: MatchStrategy
    min_similarity: float = 0.0
    min_spread: float = 0.0
    candidate_cap: Optional[int] = None


def default_cascade(config: RankingConfig) -> List[StrategyParams]:
    cascade = [
        StrategyParams(
            MatchStrategy.STRICT,
            min_similarity=config.strict_similarity,
            min_spread=config.strict_min_spread,
        ),
        StrategyParams(
            MatchStrategy.RELAXED,
            min_similarity=config.relaxed_similarity,
            candidate_cap=config.relaxed_candidate_cap,
        ),
    ]
    if config.synthetic_fallback:
        cascade.append(StrategyParams(MatchStrategy.SYNTHETIC))
    return cascade


def _run_matching(
    params: StrategyParams,
    candidates: Sequence[Market],
    pool: Sequence[Market],
    limit: int,
    notional: float,
) -> List[Opportunity]:
    scanned = candidates[: params.candidate_cap] if params.candidate_cap else candidates
    pairs = match(scanned, pool, params.min_similarity, claimed=set())
    return rank(pairs, params.min_spread, limit, notional, strategy=params.strategy.value)


def _run_synthetic(
    params: StrategyParams,
    candidates: Sequence[Market],
    pool: Sequence[Market],
    limit: int,
    notional: float,
) -> List[Opportunity]:
    # Display-only positional pairing; never counted as a real opportunity.
    pairs: List[MatchedPair] = []
    for primary, secondary in zip(candidates[:limit], pool[:limit]):
        spread = spread_between(primary, secondary)
        if spread is None:
            continue
        pairs.append(MatchedPair(primary=primary, secondary=secondary, similarity=0.0, spread=spread))
    return rank(pairs, 0.0, limit, notional, strategy=params.strategy.value, synthetic=True)


StrategyRunner = Callable[[StrategyParams, Sequence[Market], Sequence[Market], int, float], List[Opportunity]]

_RUNNERS: Dict[MatchStrategy, StrategyRunner] = {
    MatchStrategy.STRICT: _run_matching,
    MatchStrategy.RELAXED: _run_matching,
    MatchStrategy.SYNTHETIC: _run_synthetic,
}


def find_opportunities(
    primary_markets: Sequence[Market],
    secondary_markets: Sequence[Market],
    config: RankingConfig,
    cascade: Optional[Sequence[StrategyParams]] = None,
    logger: BotLogger | None = None,
) -> List[Opportunity]:
    """Try each strategy in order and return the first non-empty ranking."""
    primaries = [mkt for mkt in primary_markets if mkt.yes_price is not None]
    secondaries = [mkt for mkt in secondary_markets if mkt.yes_price is not None]
    for params in cascade or default_cascade(config):
        runner = _RUNNERS[params.strategy]
        found = runner(params, primaries, secondaries, config.limit, config.notional)
        if logger:
            logger.debug(
                "ranking strategy evaluated",
                strategy=params.strategy.value,
                candidates=len(primaries),
                pool=len(secondaries),
                found=len(found),
            )
        if found:
            return found
    return []


def scan(
    markets_by_venue: Dict[Venue, Sequence[Market]],
    config: RankingConfig,
    logger: BotLogger | None = None,
) -> List[Opportunity]:
    return find_opportunities(
        markets_by_venue.get(config.primary_venue, ()),
        markets_by_venue.get(config.secondary_venue, ()),
        config,
        logger=logger,
    )


def real_opportunities(opportunities: Iterable[Opportunity]) -> List[Opportunity]:
    return [opp for opp in opportunities if not opp.synthetic]


__all__ = [
    "MatchStrategy",
    "StrategyParams",
    "default_cascade",
    "find_opportunities",
    "profit_estimate",
    "rank",
    "real_opportunities",
    "scan",
]
