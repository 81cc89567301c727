from __future__ import annotations

from typing import Any, Dict, List, Protocol

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address

from core.errors import ConfigError


class Wallet(Protocol):
    """Key-custody capability. Signing may wait on a human and can be cancelled."""

    def address(self) -> str:
        ...

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        message: Dict[str, Any],
    ) -> str:
        ...


def _hex(signature: bytes) -> str:
    return "0x" + bytes(signature).hex()


class LocalAccountWallet:
    """Headless wallet backed by a private key held in process memory."""

    def __init__(self, private_key: str):
        if not private_key:
            raise ConfigError("private key is required for a local wallet")
        key = private_key if private_key.startswith("0x") else f"0x{private_key}"
        try:
            self._account = Account.from_key(key)
        except (ValueError, TypeError) as exc:
            raise ConfigError("invalid private key format", exc) from exc

    def address(self) -> str:
        return to_checksum_address(self._account.address)

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        message: Dict[str, Any],
    ) -> str:
        signable = encode_typed_data(domain, types, message)
        signed = self._account.sign_message(signable)
        return _hex(signed.signature)


def recover_signer(
    domain: Dict[str, Any],
    types: Dict[str, List[Dict[str, str]]],
    message: Dict[str, Any],
    signature: str,
) -> str:
    signable = encode_typed_data(domain, types, message)
    return to_checksum_address(Account.recover_message(signable, signature=signature))


__all__ = ["LocalAccountWallet", "Wallet", "recover_signer"]
