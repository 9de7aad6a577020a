"""
Solve Submitter: nonce + answer submission with a single in-flight guard.

Protocol (strict order):
1. reject if a submission is already in flight (no network)
2. reject an empty/whitespace answer (no network)
3. acquire a fresh nonce; any failure here is a generic `OTHER`
4. POST the trimmed answer with the nonce
5. classify the result (Revealed / LOCKED / RATE_LIMITED / GONE / OTHER)

The in-flight flag is cleared on every exit path.
"""

import logging
from typing import Callable

from secretroom.client.api import ApiError, SecretRoomClient
from secretroom.client.models import SolveReq
from secretroom.solve.nonce import NonceProvider
from secretroom.solve.outcomes import (
    MSG_BUSY,
    MSG_EMPTY_ANSWER,
    MSG_GONE,
    MSG_SUBMIT_FALLBACK,
    Failure,
    FailureKind,
    Revealed,
    SubmitOutcome,
    locked_message,
    rate_limited_message,
)

logger = logging.getLogger(__name__)


def classify_solve_error(exc: ApiError) -> Failure:
    if exc.code == "LOCKED":
        seconds = exc.retry_after_seconds
        return Failure(FailureKind.LOCKED, locked_message(seconds), seconds)
    if exc.code == "RATE_LIMITED":
        seconds = exc.retry_after_seconds
        return Failure(FailureKind.RATE_LIMITED, rate_limited_message(seconds), seconds)
    if exc.code == "GONE":
        return Failure(FailureKind.GONE, MSG_GONE)
    return Failure(FailureKind.OTHER, exc.message or MSG_SUBMIT_FALLBACK)


class SolveSubmitter:
    def __init__(
        self,
        client: SecretRoomClient,
        nonce_provider: NonceProvider | None = None,
        on_change: Callable[[bool], None] | None = None,
    ):
        self.client = client
        self.nonce_provider = nonce_provider or NonceProvider(client)
        # Called with the new in-flight value whenever it flips.
        self.on_change = on_change
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _set_in_flight(self, value: bool) -> None:
        self._in_flight = value
        if self.on_change:
            self.on_change(value)

    async def submit(self, room_id: int, answer: str) -> SubmitOutcome:
        if self._in_flight:
            logger.debug("Room %s: submission already in flight, rejecting", room_id)
            return Failure(FailureKind.BUSY, MSG_BUSY)

        trimmed = (answer or "").strip()
        if not trimmed:
            return Failure(FailureKind.EMPTY_ANSWER, MSG_EMPTY_ANSWER)

        self._set_in_flight(True)
        try:
            try:
                nonce = await self.nonce_provider.acquire(room_id)
            except ApiError as exc:
                logger.warning("Room %s: nonce acquisition failed: %s", room_id, exc)
                return Failure(FailureKind.OTHER, exc.message or MSG_SUBMIT_FALLBACK)

            try:
                resp = await self.client.solve(
                    SolveReq(roomId=room_id, answer=trimmed, nonce=nonce.value)
                )
            except ApiError as exc:
                failure = classify_solve_error(exc)
                logger.info("Room %s: solve rejected: %s (%s)", room_id, failure.kind.value, exc.code)
                return failure

            if not resp.ok:
                return Failure(FailureKind.OTHER, MSG_SUBMIT_FALLBACK)
            logger.info("Room %s: solved (remaining=%s)", room_id, resp.policyState.remaining)
            return Revealed(content=resp.content, policy_state=resp.policyState)
        finally:
            self._set_in_flight(False)
