from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

import aiohttp

from core.errors import VenueUnavailable
from core.models import Market, MarketStatus, Venue
from core.venues import VenueAdapter
from utils.logger import BotLogger

Fetcher = Callable[[int], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class VenueSource:
    """A venue's listing fetcher paired with the adapter that normalizes its payload."""

    venue: Venue
    fetcher: Fetcher
    adapter: VenueAdapter
    timeout_sec: float = 15.0


@dataclass(frozen=True, slots=True)
class MarketSnapshot:
    markets: Tuple[Market, ...]
    failures: Mapping[Venue, str] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def by_venue(self) -> Dict[Venue, Tuple[Market, ...]]:
        grouped: Dict[Venue, List[Market]] = {}
        for market in self.markets:
            grouped.setdefault(market.venue, []).append(market)
        return {venue: tuple(items) for venue, items in grouped.items()}

    def search(self, query: str, limit: int = 20) -> List[Market]:
        needle = (query or "").lower()
        return [mkt for mkt in self.markets if needle in mkt.title.lower()][:limit]


class MarketAggregator:
    """Concurrent fan-out over venue sources; a failing venue degrades to no markets."""

    def __init__(
        self,
        sources: List[VenueSource],
        logger: BotLogger | None = None,
        timeout_sec: Optional[float] = None,
        open_only: bool = True,
    ):
        self.sources = sources
        self.logger = logger or BotLogger(__name__)
        self.timeout_sec = timeout_sec
        self.open_only = open_only

    async def aggregate(self, limit: int = 50) -> MarketSnapshot:
        results = await asyncio.gather(*(self._fetch_source(source, limit) for source in self.sources))
        markets: List[Market] = []
        failures: Dict[Venue, str] = {}
        for source, (venue_markets, error) in zip(self.sources, results):
            if error is not None:
                failures[source.venue] = error
            markets.extend(venue_markets)
        self.logger.info(
            "market aggregation complete",
            markets=len(markets),
            venues=len(self.sources),
            failed=[venue.value for venue in failures],
        )
        return MarketSnapshot(markets=tuple(markets), failures=failures)

    async def _fetch_source(self, source: VenueSource, limit: int) -> Tuple[List[Market], Optional[str]]:
        timeout = self.timeout_sec if self.timeout_sec is not None else source.timeout_sec
        try:
            payload = await asyncio.wait_for(source.fetcher(limit), timeout=timeout)
            markets = source.adapter.parse_listing(payload)
        except asyncio.TimeoutError:
            self.logger.warn("venue fetch timed out", venue=source.venue.value, timeout=timeout)
            return [], f"timeout after {timeout}s"
        except (VenueUnavailable, aiohttp.ClientError) as exc:
            self.logger.warn("venue unavailable", venue=source.venue.value, error=str(exc))
            return [], str(exc)
        except Exception as exc:  # pragma: no cover - adapter bug
            self.logger.exception("venue adapter failed", venue=source.venue.value, error=str(exc))
            return [], str(exc)
        if self.open_only:
            markets = [mkt for mkt in markets if mkt.status == MarketStatus.OPEN]
        markets = markets[:limit]
        self.logger.debug("venue markets normalized", venue=source.venue.value, count=len(markets))
        return markets, None


__all__ = ["Fetcher", "MarketAggregator", "MarketSnapshot", "VenueSource"]
