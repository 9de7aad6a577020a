"""
Per-user session context (auth flag, user, CSRF token).

The context is an explicit object handed to the API client instead of a process-wide
store, so two solve sessions for two different browsers never share a CSRF token.
"""

# -------------------- Standard library imports --------------------
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

# -------------------- Local application imports --------------------
from secretroom.client.models import SessionResp, User

if TYPE_CHECKING:
    from secretroom.client.api import SecretRoomClient

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    authenticated: bool = False
    user: User | None = None
    csrf_token: str | None = None
    # Set once a session fetch was attempted, so a failing identity service is not
    # hammered before every state-changing request.
    fetched: bool = False

    def set_session(self, session: SessionResp) -> None:
        self.authenticated = session.authenticated
        self.user = session.user
        self.csrf_token = session.csrfToken
        self.fetched = True

    def clear(self) -> None:
        self.authenticated = False
        self.user = None
        self.csrf_token = None


async def fetch_session(client: "SecretRoomClient") -> SessionContext:
    """
    Fetch the current session + CSRF token into `client.context`.

    On failure the context is cleared and the ApiError propagates to the caller.
    """
    ctx = client.context
    try:
        session = await client.get_session()
    except Exception:
        ctx.clear()
        ctx.fetched = True
        raise
    ctx.set_session(session)
    logger.debug("Session loaded (authenticated=%s)", ctx.authenticated)
    return ctx
