from __future__ import annotations

from typing import Any, Dict, List, Optional

from core.errors import VenueUnavailable
from core.models import Market, MarketStatus, Venue

from .base import VenueAdapter, parse_datetime, to_non_negative, to_probability


class OpinionAdapter(VenueAdapter):
    """Opinion OpenAPI market list (``{"result": {"list": [...]}}`` envelope)."""

    venue = Venue.OPINION

    def extract_records(self, payload: Any) -> List[Dict[str, Any]]:
        if isinstance(payload, dict):
            errno = payload.get("errno", payload.get("code", 0))
            if errno not in (0, None, "0"):
                raise VenueUnavailable(self.venue.value, str(payload.get("errmsg") or payload.get("msg") or errno))
            result = payload.get("result") or payload.get("data")
            if isinstance(result, dict) and isinstance(result.get("list"), list):
                return result["list"]
            if isinstance(result, list):
                return result
        return super().extract_records(payload)

    def parse_market(self, raw: Dict[str, Any]) -> Optional[Market]:
        market_id = raw.get("marketId") or raw.get("market_id")
        title = raw.get("marketTitle") or raw.get("topic_title") or raw.get("title")
        if not market_id or not title:
            return None
        yes_token = raw.get("yesTokenId") or raw.get("yes_token_id")
        no_token = raw.get("noTokenId") or raw.get("no_token_id")
        return Market(
            id=str(market_id),
            venue=self.venue,
            title=str(title),
            status=self._status(raw),
            yes_price=to_probability(raw.get("yesPrice")),
            no_price=to_probability(raw.get("noPrice")),
            volume_24h=to_non_negative(raw.get("volume24h", raw.get("volume"))),
            liquidity=to_non_negative(raw.get("liquidity")),
            expires_at=parse_datetime(raw.get("cutoffAt") or raw.get("expireTime") or raw.get("endTime")),
            outcome_token_ids=(str(yes_token), str(no_token)) if yes_token and no_token else None,
            description=raw.get("description") or None,
        )

    @staticmethod
    def _status(raw: Dict[str, Any]) -> MarketStatus:
        status = str(raw.get("statusEnum") or raw.get("status") or "").lower()
        if status == "activated":
            return MarketStatus.OPEN
        if status == "resolved":
            return MarketStatus.RESOLVED
        return MarketStatus.CLOSED


__all__ = ["OpinionAdapter"]
