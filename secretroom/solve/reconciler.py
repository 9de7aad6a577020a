"""Policy Reconciler: copy the server's post-reveal policy counters onto the session state."""

import logging

from secretroom.client.models import PolicyState
from secretroom.solve.state import RoomAccessState

logger = logging.getLogger(__name__)


def reconcile_policy(state: RoomAccessState, policy_state: PolicyState) -> None:
    """
    Overwrite remaining/limit/expires_at with the server values verbatim.

    No arithmetic on the previous `remaining`: it was only ever a display hint.
    """
    if policy_state.policy != state.policy:
        logger.warning(
            "Room %s reveal reported policy %s, session loaded %s",
            state.room_id,
            policy_state.policy.value,
            state.policy.value,
        )
    if (
        state.remaining is not None
        and policy_state.remaining is not None
        and policy_state.remaining > state.remaining
    ):
        logger.warning(
            "Room %s remaining went up after reveal (%s -> %s)",
            state.room_id,
            state.remaining,
            policy_state.remaining,
        )
    state.remaining = policy_state.remaining
    state.limit = policy_state.limit
    state.expires_at = policy_state.expiresAt
