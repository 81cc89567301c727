from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from eth_utils import to_checksum_address

from core.errors import ConfigError
from core.models import AuthenticatedRequest, UnsignedOrder
from exchanges.wallet import Wallet
from utils.config_loader import ClobConfig, ClobCredentials

# Field order is part of the signed type hash.
ORDER_FIELDS: List[Dict[str, str]] = [
    {"name": "salt", "type": "uint256"},
    {"name": "maker", "type": "address"},
    {"name": "signer", "type": "address"},
    {"name": "taker", "type": "address"},
    {"name": "tokenId", "type": "uint256"},
    {"name": "makerAmount", "type": "uint256"},
    {"name": "takerAmount", "type": "uint256"},
    {"name": "expiration", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "feeRateBps", "type": "uint256"},
    {"name": "side", "type": "uint8"},
    {"name": "signatureType", "type": "uint8"},
]

EXCHANGE_ADDRESS = "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"
NEG_RISK_EXCHANGE_ADDRESS = "0xC5d563A36AE78145C45a50134d48A1215220f80a"

CLOB_AUTH_FIELDS: List[Dict[str, str]] = [
    {"name": "address", "type": "address"},
    {"name": "timestamp", "type": "string"},
    {"name": "nonce", "type": "uint256"},
    {"name": "message", "type": "string"},
]
CLOB_AUTH_MESSAGE = "This message attests that I control the given wallet"

DOMAIN_FIELDS: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


def decode_secret(secret: str) -> bytes:
    """
    Decode an API secret issued in either URL-safe or standard base64.

    The URL-safe alphabet is mapped back to the standard one and missing
    padding is restored before decoding.
    """
    cleaned = (secret or "").strip().replace("-", "+").replace("_", "/")
    if not cleaned:
        raise ConfigError("empty API secret")
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigError("invalid API secret; expected base64 string", exc) from exc


def hmac_signature(secret: str, timestamp: str | int, method: str, path: str, body: str = "") -> str:
    message = f"{timestamp}{method.upper()}{path}{body or ''}"
    digest = hmac.new(decode_secret(secret), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8").replace("+", "-").replace("/", "_")


class RequestAuthenticator:
    """Signs private CLOB requests with the L2 API credentials."""

    def __init__(
        self,
        credentials: ClobCredentials,
        clock: Callable[[], float] = time.time,
    ):
        self.credentials = credentials
        self.clock = clock
        self.address = to_checksum_address(credentials.wallet_address)
        # fail at startup rather than on the first private call
        decode_secret(credentials.secret)

    def sign(
        self,
        method: str,
        path: str,
        body: str = "",
        timestamp: Optional[int] = None,
    ) -> AuthenticatedRequest:
        request_path = path if path.startswith("/") else f"/{path}"
        ts = str(int(timestamp if timestamp is not None else self.clock()))
        return AuthenticatedRequest(
            timestamp=ts,
            method=method.upper(),
            path=request_path,
            body=body or "",
            hmac_signature=hmac_signature(self.credentials.secret, ts, method, request_path, body),
        )

    def headers(self, request: AuthenticatedRequest) -> Dict[str, str]:
        return {
            "POLY_ADDRESS": self.address,
            "POLY_API_KEY": self.credentials.api_key,
            "POLY_PASSPHRASE": self.credentials.passphrase,
            "POLY_TIMESTAMP": request.timestamp,
            "POLY_SIGNATURE": request.hmac_signature,
        }


@dataclass(frozen=True, slots=True)
class OrderDomain:
    name: str = "Polymarket CTF Exchange"
    version: str = "1"
    chain_id: int = 137
    verifying_contract: str = EXCHANGE_ADDRESS

    @classmethod
    def from_config(cls, config: ClobConfig, neg_risk: bool = False) -> "OrderDomain":
        contract = config.neg_risk_exchange_address if neg_risk else config.exchange_address
        return cls(
            name=config.domain_name,
            version=config.domain_version,
            chain_id=config.chain_id,
            verifying_contract=to_checksum_address(contract),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }


def order_message(order: UnsignedOrder) -> Dict[str, Any]:
    return {
        "salt": order.salt,
        "maker": order.maker,
        "signer": order.signer,
        "taker": order.taker,
        "tokenId": order.token_id,
        "makerAmount": order.maker_amount,
        "takerAmount": order.taker_amount,
        "expiration": order.expiration,
        "nonce": order.nonce,
        "feeRateBps": order.fee_rate_bps,
        "side": order.side,
        "signatureType": int(order.signature_type),
    }


def order_types() -> Dict[str, List[Dict[str, str]]]:
    return {"Order": [dict(item) for item in ORDER_FIELDS]}


async def wallet_auth_headers(
    wallet: Wallet,
    chain_id: int,
    timestamp: int,
    nonce: int = 0,
) -> Dict[str, str]:
    """
    L1 headers: the wallet signs a ClobAuth attestation instead of an HMAC.

    Used to create or derive the L2 API credentials for that wallet.
    """
    address = to_checksum_address(wallet.address())
    domain = {"name": "ClobAuthDomain", "version": "1", "chainId": chain_id}
    message = {
        "address": address,
        "timestamp": str(timestamp),
        "nonce": nonce,
        "message": CLOB_AUTH_MESSAGE,
    }
    types = {"ClobAuth": [dict(item) for item in CLOB_AUTH_FIELDS]}
    signature = await wallet.sign_typed_data(domain, types, message)
    return {
        "POLY_ADDRESS": address,
        "POLY_SIGNATURE": signature,
        "POLY_TIMESTAMP": str(timestamp),
        "POLY_NONCE": str(nonce),
    }


def build_typed_data(order: UnsignedOrder, domain: OrderDomain) -> Dict[str, Any]:
    """Full EIP-712 payload for the order, as handed to a wallet."""
    types = {"EIP712Domain": [dict(item) for item in DOMAIN_FIELDS]}
    types.update(order_types())
    return {
        "types": types,
        "primaryType": "Order",
        "domain": domain.as_dict(),
        "message": order_message(order),
    }


__all__ = [
    "CLOB_AUTH_FIELDS",
    "CLOB_AUTH_MESSAGE",
    "DOMAIN_FIELDS",
    "EXCHANGE_ADDRESS",
    "NEG_RISK_EXCHANGE_ADDRESS",
    "ORDER_FIELDS",
    "OrderDomain",
    "RequestAuthenticator",
    "build_typed_data",
    "decode_secret",
    "hmac_signature",
    "order_message",
    "order_types",
    "wallet_auth_headers",
]
