from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from core.errors import VenueUnavailable
from core.models import Venue
from utils.config_loader import VenueConfig


class ListingFetcher(ABC):
    """Fetches one page of raw market listings from a venue."""

    venue: Venue

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: VenueConfig,
        proxy: str | None = None,
    ):
        self.session = session
        self.config = config
        self.base_url = config.listing_url.rstrip("/")
        self.proxy = proxy

    async def __call__(self, limit: int) -> Any:
        return await self.fetch(limit)

    @abstractmethod
    async def fetch(self, limit: int) -> Any:
        """Return the venue's decoded JSON payload."""

    async def _get_json(
        self,
        path: str,
        params: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        request_headers = {"Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        try:
            async with self.session.get(
                url,
                params=params,
                headers=request_headers,
                proxy=self.proxy,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_sec),
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise VenueUnavailable(self.venue.value, f"listing failed ({resp.status}): {text[:200]}")
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    raise VenueUnavailable(self.venue.value, "listing returned non-json", exc) from exc
        except aiohttp.ClientError as exc:
            raise VenueUnavailable(self.venue.value, f"listing request error: {exc}", exc) from exc


class PolymarketListingFetcher(ListingFetcher):
    venue = Venue.POLYMARKET

    async def fetch(self, limit: int) -> Any:
        # Gamma mixes in inactive rows; over-fetch so enough open markets survive.
        params = {"limit": limit * 3, "active": "true", "closed": "false"}
        return await self._get_json("/markets", params)


class KalshiListingFetcher(ListingFetcher):
    venue = Venue.KALSHI

    async def fetch(self, limit: int) -> Any:
        return await self._get_json("/markets", {"limit": limit, "status": "open"})


class OpinionListingFetcher(ListingFetcher):
    venue = Venue.OPINION

    async def fetch(self, limit: int) -> Any:
        if not self.config.api_key:
            raise VenueUnavailable(self.venue.value, "missing Opinion API key")
        params = {"page": 1, "limit": min(limit, 20), "status": "activated", "marketType": 2}
        return await self._get_json("/market", params, headers={"apikey": self.config.api_key})


FETCHERS = {
    Venue.POLYMARKET: PolymarketListingFetcher,
    Venue.KALSHI: KalshiListingFetcher,
    Venue.OPINION: OpinionListingFetcher,
}


def build_fetcher(
    session: aiohttp.ClientSession,
    config: VenueConfig,
    proxy: str | None = None,
) -> ListingFetcher:
    return FETCHERS[config.venue](session, config, proxy=proxy)


__all__ = [
    "KalshiListingFetcher",
    "ListingFetcher",
    "OpinionListingFetcher",
    "PolymarketListingFetcher",
    "build_fetcher",
]
