from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from utils.logger import BotLogger


class SubmissionState(str, Enum):
    BUILT = "BUILT"
    SIGNED = "SIGNED"
    DECLINED = "DECLINED"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


class SubmissionEvent(str, Enum):
    SIGN = "SIGN"
    DECLINE = "DECLINE"
    POST = "POST"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    FAIL = "FAIL"


TERMINAL_STATES = frozenset(
    {
        SubmissionState.DECLINED,
        SubmissionState.ACCEPTED,
        SubmissionState.REJECTED,
        SubmissionState.TRANSPORT_ERROR,
    }
)

class InvalidTransition(RuntimeError):
    pass


class SubmissionStateMachine:
    """Deterministic lifecycle of a single order from build to venue verdict."""

    _TRANSITIONS: Dict[SubmissionState, Dict[SubmissionEvent, SubmissionState]] = {
        SubmissionState.BUILT: {
            SubmissionEvent.SIGN: SubmissionState.SIGNED,
            SubmissionEvent.DECLINE: SubmissionState.DECLINED,
        },
        SubmissionState.SIGNED: {
            SubmissionEvent.POST: SubmissionState.SUBMITTED,
        },
        SubmissionState.SUBMITTED: {
            SubmissionEvent.ACCEPT: SubmissionState.ACCEPTED,
            SubmissionEvent.REJECT: SubmissionState.REJECTED,
            SubmissionEvent.FAIL: SubmissionState.TRANSPORT_ERROR,
        },
        SubmissionState.DECLINED: {},
        SubmissionState.ACCEPTED: {},
        SubmissionState.REJECTED: {},
        SubmissionState.TRANSPORT_ERROR: {},
    }

    def __init__(
        self,
        order_ref: str,
        initial_state: SubmissionState = SubmissionState.BUILT,
        logger: BotLogger | None = None,
    ):
        self.order_ref = order_ref
        self.current_state = initial_state
        self.logger = logger or BotLogger(__name__)
        self.history: List[Tuple[SubmissionEvent, SubmissionState]] = []

    @property
    def done(self) -> bool:
        return self.current_state in TERMINAL_STATES

    async def transition(self, event: SubmissionEvent, payload: Optional[object] = None) -> SubmissionState:
        next_state = self._TRANSITIONS[self.current_state].get(event)
        if next_state is None:
            raise InvalidTransition(f"{event.value} not allowed from {self.current_state.value}")
        self.logger.debug(
            "submission transition",
            order=self.order_ref,
            source=self.current_state.value,
            event=event.value,
            target=next_state.value,
            detail=str(payload)[:200] if payload is not None else None,
        )
        self.current_state = next_state
        self.history.append((event, next_state))
        return next_state


__all__ = [
    "InvalidTransition",
    "SubmissionEvent",
    "SubmissionState",
    "SubmissionStateMachine",
    "TERMINAL_STATES",
]
