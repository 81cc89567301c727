from __future__ import annotations

from typing import Dict

from core.models import Venue
from utils.logger import BotLogger

from .base import VenueAdapter
from .kalshi import KalshiAdapter
from .opinion import OpinionAdapter
from .polymarket import PolymarketAdapter


def build_adapters(logger: BotLogger | None = None) -> Dict[Venue, VenueAdapter]:
    return {
        Venue.POLYMARKET: PolymarketAdapter(logger),
        Venue.KALSHI: KalshiAdapter(logger),
        Venue.OPINION: OpinionAdapter(logger),
    }


__all__ = [
    "KalshiAdapter",
    "OpinionAdapter",
    "PolymarketAdapter",
    "VenueAdapter",
    "build_adapters",
]
