from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from core.models import Market, MarketStatus, Venue

from .base import VenueAdapter, json_list, parse_datetime, to_non_negative, to_probability


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


class PolymarketAdapter(VenueAdapter):
    """Gamma API market records."""

    venue = Venue.POLYMARKET

    def parse_market(self, raw: Dict[str, Any]) -> Optional[Market]:
        market_id = raw.get("conditionId") or raw.get("condition_id") or raw.get("id")
        title = raw.get("question") or raw.get("title")
        if not market_id or not title:
            return None

        outcomes = [str(label).strip().lower() for label in json_list(raw.get("outcomes"))]
        prices = json_list(raw.get("outcomePrices"))
        token_ids = self._token_ids(raw)

        yes_idx = outcomes.index("yes") if "yes" in outcomes else None
        no_idx = outcomes.index("no") if "no" in outcomes else None
        yes_price = to_probability(prices[yes_idx]) if yes_idx is not None and yes_idx < len(prices) else None
        no_price = to_probability(prices[no_idx]) if no_idx is not None and no_idx < len(prices) else None

        outcome_tokens: Optional[Tuple[str, str]] = None
        if len(token_ids) >= 2:
            yes_token = token_ids[yes_idx] if yes_idx is not None and yes_idx < len(token_ids) else token_ids[0]
            no_token = token_ids[no_idx] if no_idx is not None and no_idx < len(token_ids) else token_ids[1]
            outcome_tokens = (yes_token, no_token)

        volume = raw.get("volume24hr")
        if volume is None:
            volume = raw.get("volumeNum", raw.get("volume"))
        liquidity = raw.get("liquidityNum", raw.get("liquidity"))

        return Market(
            id=str(market_id),
            venue=self.venue,
            title=str(title),
            status=self._status(raw),
            yes_price=yes_price,
            no_price=no_price,
            volume_24h=to_non_negative(volume),
            liquidity=to_non_negative(liquidity),
            expires_at=parse_datetime(raw.get("endDateIso") or raw.get("endDate")),
            outcome_token_ids=outcome_tokens,
            description=raw.get("description") or None,
        )

    def _status(self, raw: Dict[str, Any]) -> MarketStatus:
        closed = _truthy(raw.get("closed"))
        if closed and (
            _truthy(raw.get("resolved"))
            or str(raw.get("umaResolutionStatus", "")).lower() == "resolved"
        ):
            return MarketStatus.RESOLVED
        if _truthy(raw.get("active", True)) and not closed:
            return MarketStatus.OPEN
        return MarketStatus.CLOSED

    @staticmethod
    def _token_ids(raw: Dict[str, Any]) -> list[str]:
        tokens = [str(tok) for tok in json_list(raw.get("clobTokenIds") or raw.get("clob_token_ids")) if tok]
        if tokens:
            return tokens
        for tok in raw.get("tokens") or []:
            if isinstance(tok, dict):
                tok_id = tok.get("token_id") or tok.get("id")
                if tok_id:
                    tokens.append(str(tok_id))
        return tokens


__all__ = ["PolymarketAdapter"]
