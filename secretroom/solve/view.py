"""
View projection of a solve session.

`build_view()` turns a `SolveSession` into the JSON-safe `SOLVE_STATE` payload pushed to
clients. It is a pure read: no transitions happen here.
"""

import time

from secretroom.client.models import Policy
from secretroom.solve.session import SessionPhase, SolveSession

POLICY_LABELS = {
    Policy.ONCE: "Once",
    Policy.LIMITED: "Limited",
    Policy.UNLIMITED: "Unlimited",
}


def format_countdown(seconds: int | None) -> str | None:
    """Format seconds as `m:ss` (e.g. 75 -> "1:15")."""
    if seconds is None:
        return None
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def build_view(session: SolveSession, now: float | None = None) -> dict:
    phase = session.phase
    state = session.state
    now = time.monotonic() if now is None else now

    notice = session.notice
    if notice is not None and notice.expired(session.notice_duration_ms, now):
        notice = None

    error = None
    if phase == SessionPhase.TERMINAL:
        error = session.terminal.message
    elif state is None:
        error = session.error

    payload = {
        "type": "SOLVE_STATE",
        "roomId": session.room_id,
        "phase": phase.value,
        "title": None,
        "hint": None,
        "policy": None,
        "policyLabel": None,
        "remaining": None,
        "limit": None,
        "expiresAt": None,
        "locked": False,
        "retryAfterSec": None,
        "retryAfterLabel": None,
        "formAvailable": session.form_available,
        "submitting": session.submitting,
        "revealed": None,
        "notice": {"message": notice.message, "kind": notice.kind} if notice else None,
        "error": error,
    }

    if state is not None and phase != SessionPhase.TERMINAL:
        retry_after = session.lock_seconds_remaining() if phase == SessionPhase.LOCKED else None
        payload.update(
            {
                "title": state.title,
                "hint": state.hint,
                "policy": state.policy.value,
                "policyLabel": POLICY_LABELS.get(state.policy, state.policy.value),
                "remaining": state.remaining,
                "limit": state.limit,
                "expiresAt": state.expires_at.isoformat() if state.expires_at else None,
                "locked": phase == SessionPhase.LOCKED,
                "retryAfterSec": retry_after,
                "retryAfterLabel": format_countdown(retry_after),
                "revealed": state.revealed.model_dump() if state.revealed is not None else None,
            }
        )
    return payload
