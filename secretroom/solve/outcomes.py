"""
Classified outcomes of the meta load and solve submission.

Everything above the Meta Loader / Solve Submitter only ever sees these types, never a
raw `ApiError`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from secretroom.client.models import PolicyState, SolvedContent


class FailureKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    GONE = "GONE"
    LOCKED = "LOCKED"
    RATE_LIMITED = "RATE_LIMITED"
    OTHER = "OTHER"
    # Local rejections: no network call was made.
    BUSY = "BUSY"
    EMPTY_ANSWER = "EMPTY_ANSWER"


TERMINAL_KINDS = {FailureKind.NOT_FOUND, FailureKind.GONE}
REJECTION_KINDS = {FailureKind.BUSY, FailureKind.EMPTY_ANSWER}

# User-facing messages.
MSG_INVALID_ROOM = "Invalid room id."
MSG_NOT_FOUND = "This room does not exist or you cannot access it."
MSG_GONE = "This room has expired or can no longer be viewed."
MSG_META_FALLBACK = "Failed to load the room."
MSG_SUBMIT_FALLBACK = "Failed to submit the answer."
MSG_BUSY = "A submission is already in progress."
MSG_EMPTY_ANSWER = "Enter an answer."
MSG_SOLVED = "Correct!"


def locked_message(seconds: int) -> str:
    return f"Too many attempts. Try again in {seconds}s."


def rate_limited_message(seconds: int) -> str:
    return f"Too many requests. Try again in {seconds}s."


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    retry_after_seconds: int = 0

    @property
    def terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    @property
    def rejected_locally(self) -> bool:
        return self.kind in REJECTION_KINDS


@dataclass(frozen=True)
class Revealed:
    content: SolvedContent
    policy_state: PolicyState


SubmitOutcome = Union[Revealed, Failure]
