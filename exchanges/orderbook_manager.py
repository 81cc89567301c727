from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from core.models import OrderBook, OrderBookEntry, OrderSide


def _levels(raw: Iterable[Dict[str, Any]]) -> List[OrderBookEntry]:
    levels = []
    for level in raw or []:
        try:
            price = float(level["price"])
            size = float(level.get("size") or level.get("amount") or 0.0)
        except (KeyError, TypeError, ValueError):
            continue
        levels.append(OrderBookEntry(price=price, size=size))
    return levels


class OrderbookManager:
    """Helpers for CLOB order books. Bids are kept best-first (descending), asks ascending."""

    def parse(self, token_id: str, payload: Dict[str, Any]) -> OrderBook:
        bids = sorted(_levels(payload.get("bids", [])), key=lambda lvl: lvl.price, reverse=True)
        asks = sorted(_levels(payload.get("asks", [])), key=lambda lvl: lvl.price)
        return OrderBook(token_id=str(payload.get("asset_id") or token_id), bids=bids, asks=asks)

    def best_bid(self, orderbook: OrderBook) -> Optional[OrderBookEntry]:
        return orderbook.bids[0] if orderbook.bids else None

    def best_ask(self, orderbook: OrderBook) -> Optional[OrderBookEntry]:
        return orderbook.asks[0] if orderbook.asks else None

    def best_price(self, orderbook: OrderBook, side: OrderSide) -> Optional[float]:
        # a buyer lifts the ask, a seller hits the bid
        level = self.best_ask(orderbook) if side == OrderSide.BUY else self.best_bid(orderbook)
        return level.price if level else None

