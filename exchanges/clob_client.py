from __future__ import annotations

import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from core.errors import AuthenticationRejected, TransportError, VenueUnavailable
from core.models import MarketRules, OrderBook, OrderSide, SignedOrder, VenueResponse
from exchanges.auth import RequestAuthenticator, wallet_auth_headers
from exchanges.base_client import BaseExchangeClient
from exchanges.orderbook_manager import OrderbookManager
from exchanges.rate_limiter import RateLimiter
from exchanges.wallet import Wallet
from utils.config_loader import ClobConfig, ClobCredentials
from utils.logger import BotLogger

# next_cursor value the CLOB returns on the last page
END_CURSOR = "LTE="


def parse_api_credentials(payload: Any, wallet_address: str) -> Optional[ClobCredentials]:
    if not isinstance(payload, dict):
        return None
    api_key = payload.get("apiKey") or payload.get("api_key") or payload.get("key")
    secret = payload.get("secret")
    passphrase = payload.get("passphrase")
    if not (api_key and secret and passphrase):
        return None
    return ClobCredentials(
        api_key=str(api_key),
        secret=str(secret),
        passphrase=str(passphrase),
        wallet_address=wallet_address,
    )


class ClobClient(BaseExchangeClient):
    """Async client for the Polymarket CLOB REST API."""

    venue_name = "polymarket-clob"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: ClobConfig,
        authenticator: RequestAuthenticator | None = None,
        rate_limit: RateLimiter | None = None,
        logger: BotLogger | None = None,
        proxy: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(
            config.rest_url,
            session,
            rate_limit or RateLimiter(config.requests_per_minute, config.burst),
            authenticator=authenticator,
            logger=logger,
            proxy=proxy,
            timeout_sec=config.timeout_sec,
        )
        self.chain_id = config.chain_id
        self.use_server_time = config.use_server_time
        self.clock = clock
        self.orderbooks = OrderbookManager()

    async def get_orderbook(self, token_id: str) -> OrderBook:
        data = await self._get("/book", params={"token_id": token_id})
        return self.orderbooks.parse(token_id, data if isinstance(data, dict) else {})

    async def best_price(self, token_id: str, side: OrderSide) -> Optional[float]:
        book = await self.get_orderbook(token_id)
        return self.orderbooks.best_price(book, side)

    async def get_price(self, token_id: str, side: OrderSide) -> Optional[float]:
        data = await self._get("/price", params={"token_id": token_id, "side": side.value})
        raw = data.get("price") if isinstance(data, dict) else None
        try:
            return float(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None

    async def get_market(self, condition_id: str) -> Dict[str, Any]:
        data = await self._get(f"/markets/{condition_id}")
        return data if isinstance(data, dict) else {"data": data}

    async def get_tick_size(self, token_id: str) -> Decimal:
        data = await self._get("/tick-size", params={"token_id": token_id})
        raw = data.get("minimum_tick_size") if isinstance(data, dict) else None
        try:
            tick = Decimal(str(raw))
        except (InvalidOperation, ValueError) as exc:
            raise TransportError(f"unexpected tick size payload: {data!r}", exc) from exc
        if not tick.is_finite() or tick <= 0:
            raise TransportError(f"unexpected tick size payload: {data!r}")
        return tick

    async def get_neg_risk(self, token_id: str) -> bool:
        data = await self._get("/neg-risk", params={"token_id": token_id})
        if not isinstance(data, dict) or not isinstance(data.get("neg_risk"), bool):
            raise TransportError(f"unexpected neg risk payload: {data!r}")
        return data["neg_risk"]

    async def get_market_rules(self, token_id: str) -> MarketRules:
        rules = MarketRules(
            tick_size=await self.get_tick_size(token_id),
            neg_risk=await self.get_neg_risk(token_id),
        )
        self.logger.debug(
            "market rules loaded",
            token_id=token_id,
            tick_size=str(rules.tick_size),
            neg_risk=rules.neg_risk,
        )
        return rules

    async def get_server_time(self) -> int:
        data = await self._get("/time")
        try:
            return int(data)
        except (TypeError, ValueError) as exc:
            raise TransportError(f"unexpected server time payload: {data!r}", exc) from exc

    async def signing_timestamp(self) -> int:
        """Server clock when configured, local clock otherwise. Failures surface as TransportError."""
        if not self.use_server_time:
            return int(self.clock())
        try:
            return await self.get_server_time()
        except (VenueUnavailable, AuthenticationRejected) as exc:
            raise TransportError(f"server time unavailable: {exc}", exc) from exc

    async def get_api_keys(self) -> Any:
        """Authenticated read used to verify the L2 credentials."""
        return await self._get("/auth/api-keys", auth=True)

    async def get_open_orders(
        self,
        market: Optional[str] = None,
        asset_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if market:
            params["market"] = market
        if asset_id:
            params["asset_id"] = asset_id
        orders: List[Dict[str, Any]] = []
        cursor = ""
        while True:
            page_params = dict(params)
            if cursor:
                page_params["next_cursor"] = cursor
            data = await self._get("/data/orders", params=page_params or None, auth=True)
            if isinstance(data, list):
                orders.extend(data)
                break
            if not isinstance(data, dict):
                raise TransportError(f"unexpected open orders payload: {data!r}")
            orders.extend(data.get("data") or [])
            cursor = data.get("next_cursor") or END_CURSOR
            if cursor == END_CURSOR:
                break
        return orders

    async def create_or_derive_api_key(self, wallet: Wallet, nonce: int = 0) -> ClobCredentials:
        """Create L2 credentials for the wallet, or derive the existing ones."""
        timestamp = await self.signing_timestamp()
        headers = await wallet_auth_headers(wallet, self.chain_id, timestamp, nonce)
        address = headers["POLY_ADDRESS"]

        response = await self._send("POST", "/auth/api-key", extra_headers=headers)
        if response.status in (401, 403):
            raise AuthenticationRejected(
                f"api key creation unauthorized: {response.text[:200]}",
                status=response.status,
                payload=response.payload,
            )
        created = parse_api_credentials(response.payload, address) if 200 <= response.status < 300 else None
        if created is not None:
            self.logger.info("api key created", wallet=address)
            return created

        self.logger.info("api key exists; deriving", wallet=address, status=response.status)
        data = await self._get("/auth/derive-api-key", extra_headers=headers)
        derived = parse_api_credentials(data, address)
        if derived is None:
            raise TransportError("derive-api-key returned no credentials")
        return derived

    async def post_order(self, signed: SignedOrder) -> VenueResponse:
        """Submit once. Never retried; the caller interprets the raw response."""
        timestamp = await self.signing_timestamp() if self.use_server_time else None
        response = await self._send(
            "POST",
            "/order",
            payload=signed.to_body(),
            auth=True,
            timestamp=timestamp,
        )
        self.logger.debug("order post returned", status=response.status)
        return response


__all__ = ["ClobClient", "END_CURSOR", "parse_api_credentials"]
