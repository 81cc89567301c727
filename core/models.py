from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Venue(str, Enum):
    POLYMARKET = "Polymarket"
    KALSHI = "Kalshi"
    OPINION = "Opinion"


class MarketStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    RESOLVED = "Resolved"


class Category(str, Enum):
    POLITICS = "Politics"
    SPORTS = "Sports"
    CRYPTO = "Crypto"
    ECONOMICS = "Economics"
    ENTERTAINMENT = "Entertainment"
    TECHNOLOGY = "Technology"
    OTHER = "Other"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class SignatureType(IntEnum):
    EOA = 0
    PROXY = 2


@dataclass(frozen=True, slots=True)
class Market:
    id: str
    venue: Venue
    title: str
    status: MarketStatus
    yes_price: Optional[float] = None
    no_price: Optional[float] = None
    volume_24h: Optional[float] = None
    liquidity: Optional[float] = None
    expires_at: Optional[datetime] = None
    outcome_token_ids: Optional[Tuple[str, str]] = None
    description: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.venue.value, self.id)

    @property
    def tradable(self) -> bool:
        return self.status == MarketStatus.OPEN and self.outcome_token_ids is not None


@dataclass(frozen=True, slots=True)
class MatchedPair:
    primary: Market
    secondary: Market
    similarity: float
    spread: float


@dataclass(frozen=True, slots=True)
class Opportunity:
    pair: MatchedPair
    profit_estimate: float
    notional: float
    category: Category
    strategy: str
    synthetic: bool = False

    @property
    def spread(self) -> float:
        return self.pair.spread

    @property
    def event(self) -> str:
        return self.pair.primary.title


@dataclass(frozen=True, slots=True)
class OrderIntent:
    venue: Venue
    outcome_token_id: str
    side: OrderSide
    size: Decimal
    price: Decimal
    wallet_address: str


@dataclass(frozen=True, slots=True)
class MarketRules:
    """Per-token trading parameters published by the CLOB."""

    tick_size: Decimal = Decimal("0.01")
    neg_risk: bool = False


@dataclass(frozen=True, slots=True)
class UnsignedOrder:
    salt: int
    maker: str
    signer: str
    taker: str
    token_id: int
    maker_amount: int
    taker_amount: int
    expiration: int
    nonce: int
    fee_rate_bps: int
    side: int
    signature_type: SignatureType

    def to_wire(self) -> Dict[str, str]:
        """Order fields as the CLOB expects them: camelCase keys, decimal strings."""
        return {
            "salt": str(self.salt),
            "maker": self.maker,
            "signer": self.signer,
            "taker": self.taker,
            "tokenId": str(self.token_id),
            "makerAmount": str(self.maker_amount),
            "takerAmount": str(self.taker_amount),
            "expiration": str(self.expiration),
            "nonce": str(self.nonce),
            "feeRateBps": str(self.fee_rate_bps),
            "side": str(self.side),
            "signatureType": str(int(self.signature_type)),
        }


@dataclass(frozen=True, slots=True)
class SignedOrder:
    order: UnsignedOrder
    signature: str

    def to_body(self) -> Dict[str, Any]:
        return {
            "order": self.order.to_wire(),
            "signature": self.signature,
            "owner": self.order.maker,
        }


@dataclass(frozen=True, slots=True)
class AuthenticatedRequest:
    timestamp: str
    method: str
    path: str
    body: str
    hmac_signature: str


@dataclass(slots=True)
class OrderBookEntry:
    price: float
    size: float


@dataclass(slots=True)
class OrderBook:
    token_id: str
    bids: List[OrderBookEntry] = field(default_factory=list)
    asks: List[OrderBookEntry] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class VenueResponse:
    """Raw HTTP outcome handed to the submission pipeline for interpretation."""

    status: int
    payload: Optional[Dict[str, Any]]
    text: str


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    order_id: str
    state: str
    signed_order: SignedOrder
    response: Dict[str, Any] = field(default_factory=dict)
