from .lockout import LockoutTimer, TimerPhase
from .meta_loader import MetaLoader
from .nonce import Nonce, NonceProvider
from .outcomes import Failure, FailureKind, Revealed, SubmitOutcome
from .reconciler import reconcile_policy
from .session import Notice, SessionPhase, SolveSession
from .state import Locked, LockState, RoomAccessState, Unlocked
from .submitter import SolveSubmitter
from .view import build_view, format_countdown

__all__ = [
    "Failure",
    "FailureKind",
    "LockState",
    "Locked",
    "LockoutTimer",
    "MetaLoader",
    "Nonce",
    "NonceProvider",
    "Notice",
    "Revealed",
    "RoomAccessState",
    "SessionPhase",
    "SolveSession",
    "SolveSubmitter",
    "SubmitOutcome",
    "TimerPhase",
    "Unlocked",
    "build_view",
    "format_countdown",
    "reconcile_policy",
]
