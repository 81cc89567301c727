from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.errors import VenueUnavailable
from core.models import Market, Venue
from utils.logger import BotLogger


def to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_probability(value: Any) -> Optional[float]:
    """Price in [0, 1] or None."""
    price = to_float(value)
    if price is None or not 0.0 <= price <= 1.0:
        return None
    return price


def to_non_negative(value: Any) -> Optional[float]:
    amount = to_float(value)
    if amount is None or amount < 0:
        return None
    return amount


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        seconds = float(value)
        if seconds > 1e12:  # milliseconds
            seconds /= 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, ValueError, OSError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def json_list(value: Any) -> List[Any]:
    """Gamma ships some list fields as JSON-encoded strings."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    return list(value) if isinstance(value, (list, tuple)) else []


class VenueAdapter(ABC):
    """Stateless translation from a venue's raw listing payload to canonical markets."""

    venue: Venue

    def __init__(self, logger: BotLogger | None = None):
        self.logger = logger or BotLogger(self.__class__.__name__)

    def parse_listing(self, payload: Any) -> List[Market]:
        records = self.extract_records(payload)
        markets: List[Market] = []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                market = self.parse_market(record)
            except (KeyError, TypeError, ValueError) as exc:
                self.logger.debug("skipping malformed market", venue=self.venue.value, error=str(exc))
                continue
            if market is not None:
                markets.append(market)
        return markets

    def extract_records(self, payload: Any) -> List[Dict[str, Any]]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in ("markets", "data"):
                if isinstance(payload.get(key), list):
                    return payload[key]
        raise VenueUnavailable(self.venue.value, f"unexpected listing payload: {type(payload).__name__}")

    @abstractmethod
    def parse_market(self, raw: Dict[str, Any]) -> Optional[Market]:
        """Return a canonical market, or None when the record is not usable."""
