from __future__ import annotations

import asyncio
import dataclasses
from typing import Any, Dict, Optional, Protocol

from core.errors import (
    AuthenticationRejected,
    InvalidIntent,
    OrderRejected,
    SigningDeclined,
    TransportError,
)
from core.models import (
    MarketRules,
    OrderIntent,
    SignatureType,
    SignedOrder,
    SubmissionResult,
    UnsignedOrder,
    VenueResponse,
)
from core.order_builder import OrderBuilder, check_identity
from core.order_fsm import SubmissionEvent, SubmissionState, SubmissionStateMachine
from exchanges.auth import NEG_RISK_EXCHANGE_ADDRESS, OrderDomain, order_message, order_types
from exchanges.wallet import Wallet
from utils.logger import BotLogger

ORDER_ID_FIELDS = ("orderID", "orderId", "id")
SUCCESS_STATUSES = ("matched", "open", "live", "delayed", "unmatched")
TIMESTAMP_HINTS = ("timestamp", "expired", "clock")


class OrderPoster(Protocol):
    async def post_order(self, signed: SignedOrder) -> VenueResponse:
        ...


def extract_order_id(payload: Optional[Dict[str, Any]]) -> Optional[str]:
    if not payload:
        return None
    for key in ORDER_ID_FIELDS:
        value = payload.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def extract_error(payload: Optional[Dict[str, Any]]) -> Optional[str]:
    if not payload:
        return None
    error = payload.get("error")
    if error not in (None, "", False):
        return str(error)
    error_msg = payload.get("errorMsg")
    if error_msg:
        return str(error_msg)
    return None


def has_success_indicator(payload: Optional[Dict[str, Any]]) -> bool:
    if not payload:
        return False
    if payload.get("success") is True or extract_order_id(payload):
        return True
    return str(payload.get("status", "")).lower() in SUCCESS_STATUSES


def short_ref(order: UnsignedOrder) -> str:
    return f"{order.salt:032x}"[:12]


class SubmissionPipeline:
    """
    Build, sign and post one order, then interpret the venue's verdict.

    Nothing is retried here. Every failure maps to a typed error; a retry
    after a TransportError must start again from a new intent so the salt
    is never reused.
    """

    def __init__(
        self,
        builder: OrderBuilder,
        wallet: Wallet,
        client: OrderPoster,
        domain: OrderDomain | None = None,
        logger: BotLogger | None = None,
        neg_risk_domain: OrderDomain | None = None,
    ):
        self.builder = builder
        self.wallet = wallet
        self.client = client
        self.domain = domain or OrderDomain()
        self.neg_risk_domain = neg_risk_domain or dataclasses.replace(
            self.domain,
            verifying_contract=NEG_RISK_EXCHANGE_ADDRESS,
        )
        self.logger = logger or BotLogger(__name__)

    def domain_for(self, rules: Optional[MarketRules]) -> OrderDomain:
        return self.neg_risk_domain if rules is not None and rules.neg_risk else self.domain

    async def submit(
        self,
        intent: OrderIntent,
        funder: Optional[str] = None,
        rules: Optional[MarketRules] = None,
    ) -> SubmissionResult:
        order = self.builder.build(intent, funder=funder, rules=rules)
        check_identity(order, intent.wallet_address, funder or self.builder.funder)
        if order.signature_type == SignatureType.EOA and order.signer != self.wallet.address():
            raise InvalidIntent("wallet address does not match the order signer")

        fsm = SubmissionStateMachine(short_ref(order), logger=self.logger)
        self.logger.info(
            "order built",
            order=fsm.order_ref,
            token_id=str(order.token_id),
            side=intent.side.value,
            maker_amount=order.maker_amount,
            taker_amount=order.taker_amount,
            signature_type=int(order.signature_type),
        )
        try:
            signed = await self.sign(order, self.domain_for(rules))
        except SigningDeclined:
            await fsm.transition(SubmissionEvent.DECLINE)
            raise
        await fsm.transition(SubmissionEvent.SIGN)
        return await self.submit_signed(signed, fsm=fsm)

    async def sign(self, order: UnsignedOrder, domain: OrderDomain | None = None) -> SignedOrder:
        """Await the wallet. Cancellation discards the unsigned order without side effects."""
        try:
            signature = await self.wallet.sign_typed_data(
                (domain or self.domain).as_dict(),
                order_types(),
                order_message(order),
            )
        except asyncio.CancelledError:
            self.logger.info("signing cancelled; unsigned order discarded", order=short_ref(order))
            raise
        except SigningDeclined:
            raise
        except Exception as exc:
            self.logger.warn("wallet declined to sign", order=short_ref(order), error=str(exc))
            raise SigningDeclined(f"wallet declined to sign: {exc}", exc) from exc
        if not isinstance(signature, str) or not signature.startswith("0x") or len(signature) <= 2:
            raise SigningDeclined(f"wallet returned an invalid signature: {signature!r}")
        return SignedOrder(order=order, signature=signature)

    async def submit_signed(
        self,
        signed: SignedOrder,
        fsm: SubmissionStateMachine | None = None,
    ) -> SubmissionResult:
        if fsm is None:
            fsm = SubmissionStateMachine(
                short_ref(signed.order),
                initial_state=SubmissionState.SIGNED,
                logger=self.logger,
            )
        await fsm.transition(SubmissionEvent.POST)
        try:
            response = await self.client.post_order(signed)
        except TransportError as exc:
            await fsm.transition(SubmissionEvent.FAIL, exc)
            self.logger.error("order transport failed", order=fsm.order_ref, error=str(exc))
            raise
        except asyncio.TimeoutError as exc:
            await fsm.transition(SubmissionEvent.FAIL, exc)
            self.logger.error("order post timed out", order=fsm.order_ref)
            raise TransportError("order post timed out", exc) from exc

        try:
            order_id = self.interpret(response)
        except TransportError as exc:
            await fsm.transition(SubmissionEvent.FAIL, exc)
            raise
        except (AuthenticationRejected, OrderRejected) as exc:
            await fsm.transition(SubmissionEvent.REJECT, exc)
            raise

        await fsm.transition(SubmissionEvent.ACCEPT, response.payload)
        self.logger.info("order accepted", order=fsm.order_ref, order_id=order_id)
        return SubmissionResult(
            order_id=order_id,
            state=fsm.current_state.value,
            signed_order=signed,
            response=dict(response.payload or {}),
        )

    def interpret(self, response: VenueResponse) -> str:
        """Return the venue order id or raise the typed error the response maps to."""
        payload = response.payload
        status = response.status
        if status in (401, 403):
            message = extract_error(payload) or (payload or {}).get("message") or response.text[:200]
            if any(hint in str(message).lower() for hint in TIMESTAMP_HINTS):
                self.logger.warn("authentication rejected; check clock skew", status=status, error=message)
            else:
                self.logger.error("authentication rejected", status=status, error=message)
            raise AuthenticationRejected(str(message), status=status, payload=payload)

        if 200 <= status < 300:
            if payload is None:
                raise TransportError(f"unparseable order response: {response.text[:200]}")
            error = extract_error(payload)
            if error and not has_success_indicator(payload):
                self.logger.warn("order rejected", status=status, error=error)
                raise OrderRejected(error, status=status, payload=payload)
            order_id = extract_order_id(payload)
            if order_id is None:
                raise TransportError(f"order response without an order id: {response.text[:200]}")
            if error:
                self.logger.warn("order accepted with venue warning", order_id=order_id, error=error)
            return order_id

        message = None
        if payload is not None:
            message = extract_error(payload) or payload.get("message")
        if message:
            self.logger.warn("order rejected", status=status, error=message)
            raise OrderRejected(str(message), status=status, payload=payload)
        raise TransportError(f"order post failed ({status}): {response.text[:200]}")


__all__ = [
    "OrderPoster",
    "SubmissionPipeline",
    "extract_error",
    "extract_order_id",
    "has_success_indicator",
]
