from __future__ import annotations

from typing import Any, Dict, Optional

from core.models import Market, MarketStatus, Venue

from .base import VenueAdapter, parse_datetime, to_float, to_non_negative, to_probability

RESOLVED_STATES = {"settled", "finalized", "determined"}
OPEN_STATES = {"open", "active"}


def _cents_mid(bid: Any, ask: Any) -> Optional[float]:
    bid_c = to_float(bid) or 0.0
    ask_c = to_float(ask) or 0.0
    if bid_c > 0 and ask_c > 0:
        return (bid_c + ask_c) / 2 / 100
    if bid_c > 0:
        return bid_c / 100
    if ask_c > 0:
        return ask_c / 100
    return None


class KalshiAdapter(VenueAdapter):
    """Kalshi trade-api v2 markets. Quotes are integer cents."""

    venue = Venue.KALSHI

    def parse_market(self, raw: Dict[str, Any]) -> Optional[Market]:
        ticker = raw.get("ticker")
        title = raw.get("title")
        if not ticker or not title:
            return None
        yes_mid = _cents_mid(raw.get("yes_bid"), raw.get("yes_ask"))
        if yes_mid is None:
            return None
        yes_price = to_probability(yes_mid)
        if yes_price is None:
            return None
        no_mid = _cents_mid(raw.get("no_bid"), raw.get("no_ask"))
        no_price = to_probability(no_mid) if no_mid is not None else round(1.0 - yes_price, 6)

        category = raw.get("category")
        event_ticker = raw.get("event_ticker")
        description = " - ".join(str(part) for part in (category, event_ticker) if part) or None
        volume = raw.get("volume_24h")
        if volume is None:
            volume = raw.get("volume")

        return Market(
            id=str(ticker),
            venue=self.venue,
            title=str(title),
            status=self._status(raw.get("status")),
            yes_price=yes_price,
            no_price=no_price,
            volume_24h=to_non_negative(volume),
            liquidity=to_non_negative(raw.get("open_interest")),
            expires_at=parse_datetime(raw.get("close_time") or raw.get("expiration_time")),
            description=description,
        )

    @staticmethod
    def _status(value: Any) -> MarketStatus:
        status = str(value or "").lower()
        if status in OPEN_STATES:
            return MarketStatus.OPEN
        if status in RESOLVED_STATES:
            return MarketStatus.RESOLVED
        return MarketStatus.CLOSED


__all__ = ["KalshiAdapter"]
