from __future__ import annotations

import asyncio
import json
import random
from typing import Any, Dict, Optional

import aiohttp

from core.errors import AuthenticationRejected, TransportError, VenueUnavailable
from core.models import VenueResponse
from exchanges.auth import RequestAuthenticator
from exchanges.rate_limiter import RateLimiter
from utils.logger import BotLogger

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def serialize_body(payload: Optional[Dict[str, Any]]) -> str:
    """Compact JSON; the same string is sent and HMAC-signed."""
    if payload is None:
        return ""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class BaseExchangeClient:
    """Request helpers shared by REST clients: rate limiting, signing, read retries."""

    venue_name = "exchange"

    def __init__(
        self,
        base_url: str,
        session: aiohttp.ClientSession,
        rate_limit: RateLimiter,
        authenticator: RequestAuthenticator | None = None,
        logger: BotLogger | None = None,
        proxy: str | None = None,
        timeout_sec: float = 30.0,
        max_retries: int = 3,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.rate_limit = rate_limit
        self.authenticator = authenticator
        self.logger = logger or BotLogger(self.__class__.__name__)
        self.proxy = proxy
        self.timeout_sec = timeout_sec
        self.max_retries = max(1, max_retries)

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        auth: bool = False,
        timestamp: Optional[int] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> VenueResponse:
        """Single attempt. Network failures and timeouts surface as TransportError."""
        request_path = f"/{path.lstrip('/')}"
        url = f"{self.base_url}{request_path}"
        body = serialize_body(payload)
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if auth:
            headers.update(self._auth_headers(method, request_path, body, timestamp))
        if extra_headers:
            headers.update(extra_headers)

        await self.rate_limit.acquire()
        try:
            async with self.session.request(
                method,
                url,
                params=params,
                data=body.encode("utf-8") if body else None,
                headers=headers,
                proxy=self.proxy,
                timeout=aiohttp.ClientTimeout(total=self.timeout_sec),
            ) as response:
                text = await response.text()
                status = response.status
        except asyncio.TimeoutError as exc:
            raise TransportError(f"{method} {request_path} timed out after {self.timeout_sec}s", exc) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"{method} {request_path} failed: {exc}", exc) from exc

        try:
            decoded = json.loads(text) if text else None
        except ValueError:
            decoded = None
        return VenueResponse(
            status=status,
            payload=decoded if isinstance(decoded, dict) else None,
            text=text,
        )

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        auth: bool = False,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """GET with retry on transient failures; returns the decoded JSON body."""
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._send(
                    "GET",
                    path,
                    params=params,
                    auth=auth,
                    extra_headers=extra_headers,
                )
                if response.status in RETRYABLE_STATUSES:
                    raise TransportError(f"GET {path} returned {response.status}")
            except TransportError as exc:
                if attempt >= self.max_retries:
                    raise
                backoff = min(2 ** attempt, 30) + random.random()
                self.logger.warn(
                    "recoverable read error",
                    path=path,
                    attempt=attempt,
                    backoff=round(backoff, 2),
                    error=str(exc),
                )
                await asyncio.sleep(backoff)
                continue
            return self._read_body(path, response)

    def _read_body(self, path: str, response: VenueResponse) -> Any:
        if response.status in (401, 403):
            raise AuthenticationRejected(
                f"GET {path} unauthorized: {response.text[:200]}",
                status=response.status,
                payload=response.payload,
            )
        if not 200 <= response.status < 300:
            raise VenueUnavailable(self.venue_name, f"GET {path} failed ({response.status}): {response.text[:200]}")
        try:
            return json.loads(response.text)
        except ValueError as exc:
            raise TransportError(f"GET {path} returned a non-json body", exc) from exc

    def _auth_headers(
        self,
        method: str,
        path: str,
        body: str,
        timestamp: Optional[int] = None,
    ) -> Dict[str, str]:
        if self.authenticator is None:
            raise AuthenticationRejected(f"{method} {path} requires API credentials")
        signed = self.authenticator.sign(method, path, body, timestamp=timestamp)
        return self.authenticator.headers(signed)


__all__ = ["BaseExchangeClient", "RETRYABLE_STATUSES", "serialize_body"]
