"""
Tests for the remote API client (error envelope, Retry-After, CSRF, session context).
"""
import httpx
import pytest

from conftest import API_A, API_B, FakeRoomService, error_body
from secretroom.client.api import ApiError, SecretRoomClient, error_from_response
from secretroom.client.models import SolveReq
from secretroom.client.session_context import SessionContext, fetch_session


def _response(status: int, **kwargs) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("GET", f"{API_B}/x"), **kwargs)


class TestErrorFromResponse:
    def test_json_envelope(self):
        exc = error_from_response(
            _response(423, json=error_body("LOCKED", "Locked out", retryAfterSec=9))
        )
        assert exc.code == "LOCKED"
        assert exc.message == "Locked out"
        assert exc.retry_after_seconds == 9
        assert exc.status_code == 423

    def test_non_json_body_uses_http_status_code(self):
        exc = error_from_response(_response(502, text="<html>bad gateway</html>"))
        assert exc.code == "HTTP_502"
        assert exc.message == "Bad Gateway"
        assert exc.details == {}

    def test_retry_after_header_added_without_details(self):
        exc = error_from_response(
            _response(429, json=error_body("RATE_LIMITED", "slow"), headers={"Retry-After": "7"})
        )
        assert exc.details == {"retryAfterSec": 7}

    def test_retry_after_header_overrides_body(self):
        exc = error_from_response(
            _response(
                423,
                json=error_body("LOCKED", "", retryAfterSec=100),
                headers={"Retry-After": "20"},
            )
        )
        assert exc.retry_after_seconds == 20

    def test_http_date_retry_after_is_ignored(self):
        exc = error_from_response(
            _response(
                429,
                json=error_body("RATE_LIMITED"),
                headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"},
            )
        )
        assert exc.retry_after_seconds == 0

    def test_malformed_retry_after_detail(self):
        assert ApiError("LOCKED", details={"retryAfterSec": "soon"}).retry_after_seconds == 0
        assert ApiError("LOCKED", details={"retryAfterSec": -4}).retry_after_seconds == 0


@pytest.mark.asyncio
async def test_invalid_success_body_raises_invalid_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    client = SecretRoomClient(api_a=API_A, api_b=API_B, transport=httpx.MockTransport(handler))

    with pytest.raises(ApiError) as excinfo:
        await client.get_solve_meta(1)
    assert excinfo.value.code == "INVALID_RESPONSE"


@pytest.mark.asyncio
async def test_session_fetched_once_before_first_solve(service: FakeRoomService, client):
    req = SolveReq(roomId=7, answer="piano", nonce="n")
    await client.solve(req)
    await client.solve(req)

    assert len(service.calls("/auth/session")) == 1
    assert client.context.csrf_token == "csrf-1"
    assert client.context.user.username == "neo"
    assert all(r.headers["X-CSRF-Token"] == "csrf-1" for r in service.solve_calls)


@pytest.mark.asyncio
async def test_session_failure_does_not_block_solve(service: FakeRoomService, client):
    service.session = (500, error_body("INTERNAL", "boom"))

    await client.solve(SolveReq(roomId=7, answer="piano", nonce="n"))

    assert client.context.csrf_token is None
    assert "X-CSRF-Token" not in service.solve_calls[0].headers
    await client.solve(SolveReq(roomId=7, answer="piano", nonce="n"))
    assert len(service.calls("/auth/session")) == 1


@pytest.mark.asyncio
async def test_fetch_session_clears_context_and_reraises(service: FakeRoomService):
    service.session = (401, error_body("UNAUTHENTICATED", "login"))
    ctx = SessionContext(authenticated=True, csrf_token="stale")
    client = SecretRoomClient(
        api_a=API_A, api_b=API_B, context=ctx, transport=httpx.MockTransport(service.handler)
    )

    with pytest.raises(ApiError):
        await fetch_session(client)
    assert ctx.authenticated is False
    assert ctx.csrf_token is None


@pytest.mark.asyncio
async def test_cookies_are_forwarded(service: FakeRoomService):
    client = service.make_client(cookies={"sid": "abc"})

    await client.get_solve_meta(7)

    assert "sid=abc" in service.meta_calls[0].headers.get("cookie", "")
