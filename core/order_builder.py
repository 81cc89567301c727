from __future__ import annotations

import math
import secrets
import time
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Callable, Optional

from eth_utils import is_address, to_checksum_address

from core.errors import ConfigError, InvalidIntent
from core.models import (
    ZERO_ADDRESS,
    MarketRules,
    OrderIntent,
    OrderSide,
    SignatureType,
    UnsignedOrder,
    Venue,
)

AMOUNT_SCALE = Decimal(1_000_000)
SALT_BITS = 128
MAX_UINT256 = 2**256 - 1
SUPPORTED_VENUES = {Venue.POLYMARKET}


def to_decimal(value: object, field: str) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() keeps 0.65 as 0.65 instead of its binary expansion
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidIntent(f"{field} is not a number: {value!r}", exc) from exc
    if not result.is_finite():
        raise InvalidIntent(f"{field} must be finite")
    return result


def scaled_floor(amount: Decimal) -> int:
    """Six-decimal fixed point, truncated toward zero for non-negative inputs."""
    return int((amount * AMOUNT_SCALE).to_integral_value(rounding=ROUND_FLOOR))


def new_salt() -> int:
    return secrets.randbits(SALT_BITS)


def check_tick(price: Decimal, tick_size: Decimal) -> None:
    """Price must sit on the market's tick grid, between one tick and one minus a tick."""
    tick = to_decimal(tick_size, "tick size")
    if tick <= 0:
        raise InvalidIntent(f"invalid tick size: {tick_size!r}")
    if price % tick != 0:
        raise InvalidIntent(f"price {price} is not a multiple of tick size {tick}")
    if not tick <= price <= 1 - tick:
        raise InvalidIntent(f"price {price} outside [{tick}, {1 - tick}] for tick size {tick}")


def checksum(address: str, field: str) -> str:
    if not address or not is_address(address):
        raise InvalidIntent(f"invalid {field} address: {address!r}")
    return to_checksum_address(address)


class OrderBuilder:
    """Turns an OrderIntent into an unsigned CLOB order."""

    def __init__(
        self,
        expiration_sec: int = 24 * 60 * 60,
        funder: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        if expiration_sec <= 0:
            raise ConfigError("order expiration must be positive")
        self.expiration_sec = int(expiration_sec)
        self.clock = clock
        self.funder: Optional[str] = None
        if funder:
            if not is_address(funder):
                raise ConfigError(f"configured funder is not an address: {funder!r}")
            self.funder = to_checksum_address(funder)

    def validate(self, intent: OrderIntent, rules: Optional[MarketRules] = None) -> None:
        if intent.venue not in SUPPORTED_VENUES:
            raise InvalidIntent(f"orders are not supported on {intent.venue}")
        size = to_decimal(intent.size, "size")
        price = to_decimal(intent.price, "price")
        if size <= 0:
            raise InvalidIntent("size must be positive")
        if not Decimal(0) < price < Decimal(1):
            raise InvalidIntent("price must be strictly between 0 and 1")
        token = str(intent.outcome_token_id or "").strip()
        if not token:
            raise InvalidIntent("outcome token id is required")
        if not (token.isascii() and token.isdigit()):
            raise InvalidIntent(f"outcome token id must be numeric: {token!r}")
        if int(token) > MAX_UINT256:
            raise InvalidIntent("outcome token id exceeds uint256")
        checksum(intent.wallet_address, "wallet")
        if rules is not None:
            check_tick(price, rules.tick_size)

    def amounts(self, intent: OrderIntent) -> tuple[int, int]:
        size = to_decimal(intent.size, "size")
        price = to_decimal(intent.price, "price")
        notional = scaled_floor(size * price)
        shares = scaled_floor(size)
        if intent.side == OrderSide.BUY:
            return notional, shares
        return shares, notional

    def build(
        self,
        intent: OrderIntent,
        funder: Optional[str] = None,
        rules: Optional[MarketRules] = None,
    ) -> UnsignedOrder:
        self.validate(intent, rules)
        wallet = checksum(intent.wallet_address, "wallet")
        proxy = checksum(funder, "funder") if funder else self.funder
        if proxy:
            identity, signature_type = proxy, SignatureType.PROXY
        else:
            identity, signature_type = wallet, SignatureType.EOA

        maker_amount, taker_amount = self.amounts(intent)
        if maker_amount <= 0 or taker_amount <= 0:
            raise InvalidIntent("order amounts truncate to zero at six decimals")

        return UnsignedOrder(
            salt=new_salt(),
            maker=identity,
            signer=identity,
            taker=ZERO_ADDRESS,
            token_id=int(intent.outcome_token_id),
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            expiration=int(math.floor(self.clock())) + self.expiration_sec,
            nonce=0,
            fee_rate_bps=0,
            side=0 if intent.side == OrderSide.BUY else 1,
            signature_type=signature_type,
        )


def check_identity(order: UnsignedOrder, wallet_address: str, funder: Optional[str] = None) -> None:
    """
    Reject orders whose maker/signer/signature_type combination is mixed.

    Type 0 requires maker == signer == wallet; type 2 requires
    maker == signer == funder.
    """
    maker = to_checksum_address(order.maker)
    signer = to_checksum_address(order.signer)
    if maker != signer:
        raise InvalidIntent("maker and signer differ")
    if order.signature_type == SignatureType.EOA:
        if maker != checksum(wallet_address, "wallet"):
            raise InvalidIntent("EOA order maker must be the wallet address")
        return
    if order.signature_type == SignatureType.PROXY:
        if not funder:
            raise InvalidIntent("proxy order requires a configured funder")
        if maker != checksum(funder, "funder"):
            raise InvalidIntent("proxy order maker must be the funder address")
        return
    raise InvalidIntent(f"unsupported signature type: {order.signature_type}")


__all__ = ["OrderBuilder", "check_identity", "check_tick", "new_salt", "scaled_floor", "to_decimal"]
