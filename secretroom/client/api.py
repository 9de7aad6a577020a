"""
Async HTTP client for the remote secret-room services.

Service A serves identity (session + CSRF token); service B serves rooms and the solve
flow. This module is the only place that talks `httpx`:
- state-changing requests (POST/PATCH/DELETE/PUT) carry `X-CSRF-Token` when known
- every non-2xx answer becomes an `ApiError(code, message, details)`
- a `Retry-After` header is folded into `details.retryAfterSec`
- transport failures become `ApiError("NETWORK_ERROR")`

Callers above this layer never see raw `httpx` exceptions.
"""

# -------------------- Standard library imports --------------------
import logging
from typing import Any, TypeVar

# -------------------- Third-party imports --------------------
import httpx
from pydantic import BaseModel, ValidationError

# -------------------- Local application imports --------------------
from secretroom.client.models import (
    ErrorResp,
    NonceResp,
    SessionResp,
    SolveMeta,
    SolveReq,
    SolveResp,
)
from secretroom.client.session_context import SessionContext, fetch_session
from secretroom.config import settings

logger = logging.getLogger(__name__)

STATE_CHANGING_METHODS = {"POST", "PATCH", "DELETE", "PUT"}

ModelT = TypeVar("ModelT", bound=BaseModel)


class ApiError(Exception):
    """A classified-ready error from the remote services (`{error: {code, message, details}}`)."""

    def __init__(
        self,
        code: str,
        message: str = "",
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(f"{code}: {message}" if message else code)

    @property
    def retry_after_seconds(self) -> int:
        """`details.retryAfterSec` as a non-negative int (0 when absent or malformed)."""
        value = self.details.get("retryAfterSec")
        if isinstance(value, bool):
            return 0
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return 0


def _parse_retry_after(value: str | None) -> int | None:
    # Only the delta-seconds form is honoured; HTTP-date values are ignored.
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def error_from_response(response: httpx.Response) -> ApiError:
    """Build an ApiError from a non-2xx response (JSON error envelope or bare status)."""
    code = f"HTTP_{response.status_code}"
    message = response.reason_phrase or "An error occurred"
    details: dict[str, Any] | None = None

    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = ErrorResp.model_validate(response.json())
            code = body.error.code
            message = body.error.message
            details = dict(body.error.details or {})
        except (ValueError, ValidationError):
            logger.debug("Non-standard error body for HTTP %s", response.status_code)

    retry_after = _parse_retry_after(response.headers.get("retry-after"))
    if retry_after is not None:
        details = details or {}
        details["retryAfterSec"] = retry_after

    return ApiError(code, message, details, status_code=response.status_code)


class SecretRoomClient:
    """
    Thin typed wrapper over one `httpx.AsyncClient`.

    `transport` is injectable so tests can plug an `httpx.MockTransport`; `cookies` are the
    browser cookies forwarded by the portal so the remote service sees the same user.
    """

    def __init__(
        self,
        *,
        api_a: str | None = None,
        api_b: str | None = None,
        context: SessionContext | None = None,
        cookies: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_a = (api_a or settings.api_a).rstrip("/")
        self.api_b = (api_b or settings.api_b).rstrip("/")
        self.context = context or SessionContext()
        self._http = httpx.AsyncClient(
            transport=transport,
            cookies=cookies,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "SecretRoomClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        skip_csrf: bool = False,
    ) -> httpx.Response:
        headers: dict[str, str] = {}
        if method in STATE_CHANGING_METHODS and not skip_csrf and self.context.csrf_token:
            headers["X-CSRF-Token"] = self.context.csrf_token
        try:
            return await self._http.request(method, url, json=json, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            # No message: callers fall back to their own user-facing text.
            raise ApiError("NETWORK_ERROR") from exc

    def _handle_response(self, response: httpx.Response, model: type[ModelT]) -> ModelT:
        if not response.is_success:
            raise error_from_response(response)
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.warning("Unexpected %s body from %s: %s", model.__name__, response.url, exc)
            raise ApiError(
                "INVALID_RESPONSE",
                "Unexpected response from server",
                status_code=response.status_code,
            ) from exc

    async def ensure_csrf(self) -> None:
        """Fetch the session once before the first state-changing call; failures are not fatal."""
        if self.context.csrf_token or self.context.fetched:
            return
        try:
            await fetch_session(self)
        except ApiError as exc:
            logger.warning("Session fetch failed, continuing without CSRF token: %s", exc)

    # -------------------- Service A --------------------

    async def get_session(self) -> SessionResp:
        response = await self._request("GET", f"{self.api_a}/auth/session", skip_csrf=True)
        return self._handle_response(response, SessionResp)

    # -------------------- Service B: solve flow --------------------

    async def get_solve_meta(self, room_id: int) -> SolveMeta:
        response = await self._request("GET", f"{self.api_b}/s/{room_id}/meta")
        return self._handle_response(response, SolveMeta)

    async def get_nonce(self, room_id: int) -> NonceResp:
        response = await self._request(
            "GET",
            f"{self.api_b}/solve/nonce",
            params={"roomId": room_id},
            skip_csrf=True,
        )
        return self._handle_response(response, NonceResp)

    async def solve(self, req: SolveReq) -> SolveResp:
        await self.ensure_csrf()
        response = await self._request("POST", f"{self.api_b}/solve", json=req.model_dump())
        return self._handle_response(response, SolveResp)
