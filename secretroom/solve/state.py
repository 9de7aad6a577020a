"""Room access state for one solve session (pure, no I/O).

`RoomAccessState` is the session's view of a room's solvability. Transitions are explicit
methods instead of loose boolean flags:

- `from_meta()`: first snapshot from the meta endpoint (title/hint/policy are fixed here)
- `absorb()`: merge a later snapshot (counters + lock only)
- `lock_for()` / `unlock()`: lock transitions driven by the session
- `reveal()`: terminal transition after a successful solve

Lock state is a small tagged union: `Unlocked` or `Locked(retry_after_seconds)`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Union

from secretroom.client.models import Policy, SolvedContent, SolveMeta

logger = logging.getLogger(__name__)


class StateTransitionError(Exception):
    """Raised when a transition would break a state invariant (e.g. locking a revealed room)."""


@dataclass(frozen=True)
class Unlocked:
    pass


@dataclass(frozen=True)
class Locked:
    retry_after_seconds: int = 0


LockState = Union[Unlocked, Locked]
UNLOCKED = Unlocked()


def lock_from_meta(meta: SolveMeta) -> LockState:
    if not meta.locked:
        return UNLOCKED
    return Locked(max(0, meta.retryAfterSec or 0))


@dataclass
class RoomAccessState:
    room_id: int
    title: str
    hint: str
    policy: Policy
    remaining: int | None = None
    limit: int | None = None
    expires_at: datetime | None = None
    lock: LockState = UNLOCKED
    revealed: SolvedContent | None = None

    @classmethod
    def from_meta(cls, room_id: int, meta: SolveMeta) -> "RoomAccessState":
        if meta.id != room_id:
            logger.warning("Meta for room %s reported id %s", room_id, meta.id)
        return cls(
            room_id=room_id,
            title=meta.title,
            hint=meta.hint,
            policy=meta.policy,
            remaining=meta.remaining,
            limit=meta.limit,
            expires_at=meta.expiresAt,
            lock=lock_from_meta(meta),
        )

    @property
    def is_locked(self) -> bool:
        return isinstance(self.lock, Locked)

    @property
    def is_revealed(self) -> bool:
        return self.revealed is not None

    def absorb(self, fresh: "RoomAccessState") -> None:
        """
        Merge a re-fetched snapshot into this state.

        Title, hint and policy stay as first loaded; counters and lock follow the server.
        A revealed state keeps its content and never picks the lock back up.
        """
        if fresh.policy != self.policy:
            logger.warning(
                "Room %s policy changed %s -> %s mid-session; keeping %s",
                self.room_id,
                self.policy.value,
                fresh.policy.value,
                self.policy.value,
            )
        self.remaining = fresh.remaining
        self.limit = fresh.limit
        self.expires_at = fresh.expires_at
        if not self.is_revealed:
            self.lock = fresh.lock

    def lock_for(self, seconds: int) -> None:
        if self.is_revealed:
            raise StateTransitionError(f"room {self.room_id} already revealed; cannot lock")
        self.lock = Locked(max(0, int(seconds)))

    def unlock(self) -> None:
        self.lock = UNLOCKED

    def reveal(self, content: SolvedContent) -> None:
        self.revealed = content
        self.lock = UNLOCKED
