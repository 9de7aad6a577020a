"""
Solve Session: one room view's lifecycle (meta → solve → lock/reveal).

A session owns exactly one `RoomAccessState`, one `LockoutTimer` and one
`SolveSubmitter`. It is created when a room view opens and closed when the view goes
away; `close()` cancels the countdown and any network result that arrives afterwards
is dropped.

Key design points:
- All transitions happen on the event loop thread; the only suspension points are the
  meta fetch, the nonce fetch and the solve round trip
- NOT_FOUND / GONE are terminal: no further submission, reload or re-fetch
- A LOCKED answer goes straight to the countdown; expiry re-verifies via the Meta Loader
- Every change calls `listener(session)` so a transport can push a fresh view
"""

# -------------------- Standard library imports --------------------
import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

# -------------------- Local application imports --------------------
from secretroom.client.api import SecretRoomClient
from secretroom.config import settings
from secretroom.solve.lockout import LockoutTimer
from secretroom.solve.meta_loader import MetaLoader
from secretroom.solve.outcomes import (
    MSG_INVALID_ROOM,
    MSG_SOLVED,
    Failure,
    FailureKind,
    Revealed,
    SubmitOutcome,
)
from secretroom.solve.reconciler import reconcile_policy
from secretroom.solve.state import Locked, RoomAccessState
from secretroom.solve.submitter import SolveSubmitter

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    TERMINAL = "terminal"
    LOCKED = "locked"
    READY = "ready"
    REVEALED = "revealed"


@dataclass
class Notice:
    """Dismissible toast-style message."""

    message: str
    kind: str = "info"  # success | error | info
    created_at: float = field(default_factory=time.monotonic)

    def expired(self, duration_ms: int, now: float | None = None) -> bool:
        if duration_ms <= 0:
            return False
        now = time.monotonic() if now is None else now
        return (now - self.created_at) * 1000 >= duration_ms


class SolveSession:
    def __init__(
        self,
        room_id: int | None,
        client: SecretRoomClient,
        *,
        listener: Callable[["SolveSession"], None] | None = None,
        tick_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        notice_duration_ms: int | None = None,
    ):
        self.room_id = room_id
        self.client = client
        self.listener = listener
        self.notice_duration_ms = (
            settings.notice_duration_ms if notice_duration_ms is None else notice_duration_ms
        )

        self.loader = MetaLoader(client)
        self.submitter = SolveSubmitter(client, on_change=self._on_submitting)
        self.timer = LockoutTimer(
            self._on_lock_expired,
            on_tick=self._on_tick,
            tick_seconds=tick_seconds,
            sleep=sleep,
        )

        self.state: RoomAccessState | None = None
        self.loading = False
        self.error: str | None = None
        self.terminal: Failure | None = None
        self.notice: Notice | None = None
        self._notice_expiry: asyncio.TimerHandle | None = None
        self.closed = False

    # -------------------- Derived view state --------------------

    @property
    def phase(self) -> SessionPhase:
        # A revealed secret stays on screen even if the room is used up afterwards.
        if self.state is not None and self.state.is_revealed:
            return SessionPhase.REVEALED
        if self.terminal:
            return SessionPhase.TERMINAL
        if self.loading:
            return SessionPhase.LOADING
        if self.state is None:
            return SessionPhase.ERROR if self.error else SessionPhase.LOADING
        if self.state.is_locked:
            return SessionPhase.LOCKED
        return SessionPhase.READY

    @property
    def form_available(self) -> bool:
        return not self.closed and self.phase == SessionPhase.READY

    @property
    def submitting(self) -> bool:
        return self.submitter.in_flight

    def lock_seconds_remaining(self) -> int | None:
        if self.timer.seconds_remaining is not None:
            return self.timer.seconds_remaining
        if self.state and isinstance(self.state.lock, Locked):
            return self.state.lock.retry_after_seconds
        return None

    def _notify(self) -> None:
        if self.closed or not self.listener:
            return
        try:
            self.listener(self)
        except Exception as exc:
            logger.error("Session listener failed for room %s: %s", self.room_id, exc, exc_info=True)

    def _show_notice(self, message: str, kind: str) -> None:
        self._cancel_notice_expiry()
        notice = Notice(message=message, kind=kind)
        self.notice = notice
        if self.notice_duration_ms > 0:
            self._notice_expiry = asyncio.get_running_loop().call_later(
                self.notice_duration_ms / 1000, self._expire_notice, notice
            )

    def _expire_notice(self, notice: Notice) -> None:
        self._notice_expiry = None
        if self.notice is notice:
            self.notice = None
            self._notify()

    def _cancel_notice_expiry(self) -> None:
        handle, self._notice_expiry = self._notice_expiry, None
        if handle is not None:
            handle.cancel()

    # -------------------- Lifecycle --------------------

    async def start(self) -> None:
        """Initial meta load; an invalid room id fails without touching the network."""
        if self.room_id is None or self.room_id <= 0:
            self.error = MSG_INVALID_ROOM
            self._notify()
            return
        await self._load()

    async def reload(self) -> bool:
        """Manual retry. Refused once terminal, revealed or closed, or while a request is pending."""
        if self.closed or self.terminal or self.room_id is None or self.room_id <= 0:
            return False
        if self.state is not None and self.state.is_revealed:
            return False
        if self.loading or self.submitting:
            return False
        await self._load()
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.timer.cancel()
        self._cancel_notice_expiry()
        logger.debug("Solve session for room %s closed", self.room_id)

    def dismiss_notice(self) -> None:
        self._cancel_notice_expiry()
        if self.notice is not None:
            self.notice = None
            self._notify()

    async def _load(self) -> None:
        self.loading = True
        self.error = None
        self._notify()

        outcome = await self.loader.load(self.room_id)
        if self.closed:
            logger.debug("Room %s: meta arrived after close, ignored", self.room_id)
            return
        self.loading = False
        if self.state is not None and self.state.is_revealed:
            logger.debug("Room %s: meta arrived after reveal, ignored", self.room_id)
            return

        if isinstance(outcome, Failure):
            if outcome.terminal:
                self._enter_terminal(outcome)
            elif self.state is None:
                self.error = outcome.message
            else:
                self._show_notice(outcome.message, "error")
        else:
            if self.state is None:
                self.state = outcome
            else:
                self.state.absorb(outcome)
            self._arm_timer_from_state()
        self._notify()

    def _arm_timer_from_state(self) -> None:
        if self.state and isinstance(self.state.lock, Locked):
            # A lock without a positive duration stays until the next manual reload.
            self.timer.start(self.state.lock.retry_after_seconds)
        else:
            self.timer.cancel()

    def _enter_terminal(self, failure: Failure) -> None:
        self.terminal = failure
        self.timer.cancel()
        logger.info("Room %s is terminal: %s", self.room_id, failure.kind.value)

    # -------------------- Lockout --------------------

    def _on_tick(self, seconds: int) -> None:
        if self.state and not self.state.is_revealed:
            self.state.lock_for(seconds)
        self._notify()

    async def _on_lock_expired(self) -> None:
        if self.closed or self.terminal:
            return
        if self.state is not None and self.state.is_revealed:
            return
        if self.state:
            self.state.unlock()
        logger.info("Room %s: lockout elapsed, re-checking with server", self.room_id)
        await self._load()

    # -------------------- Submission --------------------

    def _on_submitting(self, in_flight: bool) -> None:
        # Only the start is pushed; the end is rendered together with the outcome so a
        # LOCKED answer never shows an intermediate unlocked form.
        if in_flight:
            self._notify()

    async def submit(self, answer: str) -> SubmitOutcome | None:
        """
        Submit an answer. Returns the classified outcome, or None when the session is not
        accepting submissions (loading, locked, revealed, terminal or closed).
        """
        if self.closed or self.terminal or self.state is None:
            return None
        if self.state.is_revealed or self.state.is_locked or self.loading:
            return None

        outcome = await self.submitter.submit(self.room_id, answer)
        if self.closed:
            logger.debug("Room %s: solve result arrived after close, ignored", self.room_id)
            return outcome
        await self._apply(outcome)
        return outcome

    async def _apply(self, outcome: SubmitOutcome) -> None:
        state = self.state

        if isinstance(outcome, Revealed):
            reconcile_policy(state, outcome.policy_state)
            state.reveal(outcome.content)
            self.timer.cancel()
            self._show_notice(MSG_SOLVED, "success")
            self._notify()
            return

        kind = outcome.kind
        if outcome.rejected_locally:
            return

        if kind == FailureKind.LOCKED:
            state.lock_for(outcome.retry_after_seconds)
            self._show_notice(outcome.message, "error")
            if self.timer.start(outcome.retry_after_seconds):
                self._notify()
                return
            # Zero-length lock: re-verify once right away instead of waiting on nothing.
            self._notify()
            await self._on_lock_expired()
            return

        if kind == FailureKind.RATE_LIMITED:
            if state.is_locked:
                logger.debug("Room %s: RATE_LIMITED ignored while locked", self.room_id)
            else:
                self._show_notice(outcome.message, "error")
        elif kind in (FailureKind.GONE, FailureKind.NOT_FOUND):
            self._enter_terminal(outcome)
        else:
            self._show_notice(outcome.message, "error")
        self._notify()
