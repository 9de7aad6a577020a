"""
Pytest configuration and fixtures for solve portal tests.

`FakeRoomService` is a scripted stand-in for the remote rooms/identity services, served
through `httpx.MockTransport`. Queued responses are consumed in order; the last one is
sticky so a test only scripts what changes.
"""
import asyncio
from typing import Any

import httpx
import pytest

from secretroom.client.api import SecretRoomClient

API_A = "https://a.test/a/v1"
API_B = "https://b.test/b/v1"


def meta_body(room_id: int = 7, **overrides: Any) -> dict:
    body = {
        "id": room_id,
        "title": "Vault",
        "hint": "What has keys but no locks?",
        "policy": "LIMITED",
        "remaining": 3,
        "limit": 3,
        "expiresAt": None,
        "locked": False,
        "retryAfterSec": None,
    }
    body.update(overrides)
    return body


def error_body(code: str, message: str = "", **details: Any) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


def solve_ok(remaining: int | None = 2, limit: int | None = 3, policy: str = "LIMITED", text: str = "the secret") -> dict:
    return {
        "ok": True,
        "content": {"type": "TEXT", "text": text},
        "policyState": {
            "policy": policy,
            "remaining": remaining,
            "limit": limit,
            "expiresAt": None,
        },
    }


class FakeRoomService:
    def __init__(self):
        self.meta: list[tuple[int, dict]] = [(200, meta_body())]
        self.solve: list[tuple[int, dict]] = [(200, solve_ok())]
        self.nonce_errors: list[tuple[int, dict]] = []
        self.session: tuple[int, dict] = (
            200,
            {"authenticated": True, "user": {"id": 1, "username": "neo"}, "csrfToken": "csrf-1"},
        )
        self.solve_headers: dict[str, str] = {}
        # Optional gates: when set, the matching request waits until the event is set.
        self.nonce_gate: asyncio.Event | None = None
        self.solve_gate: asyncio.Event | None = None
        self.requests: list[httpx.Request] = []
        self._nonce_seq = 0

    @staticmethod
    def _next(queue: list[tuple[int, dict]]) -> tuple[int, dict]:
        return queue.pop(0) if len(queue) > 1 else queue[0]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/auth/session"):
            status, body = self.session
            return httpx.Response(status, json=body)

        if path.endswith("/meta"):
            status, body = self._next(self.meta)
            return httpx.Response(status, json=body)

        if path.endswith("/solve/nonce"):
            if self.nonce_gate is not None:
                await self.nonce_gate.wait()
            if self.nonce_errors:
                status, body = self.nonce_errors.pop(0)
                return httpx.Response(status, json=body)
            self._nonce_seq += 1
            return httpx.Response(200, json={"nonce": f"nonce-{self._nonce_seq}", "expiresIn": 30})

        if path.endswith("/solve") and request.method == "POST":
            if self.solve_gate is not None:
                await self.solve_gate.wait()
            status, body = self._next(self.solve)
            return httpx.Response(status, json=body, headers=self.solve_headers)

        return httpx.Response(404, json=error_body("NOT_FOUND", "no route"))

    # -------------------- Request inspection --------------------

    def calls(self, suffix: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.path.endswith(suffix) and (method is None or r.method == method)
        ]

    @property
    def meta_calls(self) -> list[httpx.Request]:
        return self.calls("/meta")

    @property
    def nonce_calls(self) -> list[httpx.Request]:
        return self.calls("/solve/nonce")

    @property
    def solve_calls(self) -> list[httpx.Request]:
        return self.calls("/solve", "POST")

    def make_client(self, cookies: dict[str, str] | None = None) -> SecretRoomClient:
        return SecretRoomClient(
            api_a=API_A,
            api_b=API_B,
            cookies=cookies,
            transport=httpx.MockTransport(self.handler),
        )


class ManualTicker:
    """Injectable `sleep` whose ticks are released one at a time by the test."""

    def __init__(self):
        self.waiters: list[asyncio.Future] = []

    async def sleep(self, _seconds: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        self.waiters.append(fut)
        await fut

    @property
    def pending(self) -> int:
        return len([f for f in self.waiters if not f.done()])

    async def tick(self, n: int = 1) -> None:
        for _ in range(n):
            await settle()
            live = [f for f in self.waiters if not f.done()]
            assert live, "no countdown is waiting for a tick"
            self.waiters = [f for f in self.waiters if f is not live[0] and not f.done()]
            live[0].set_result(None)
            await settle()


async def settle(rounds: int = 50) -> None:
    """Let queued callbacks and mock HTTP round trips run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def service() -> FakeRoomService:
    return FakeRoomService()


@pytest.fixture
def client(service: FakeRoomService) -> SecretRoomClient:
    return service.make_client()


@pytest.fixture
def ticker() -> ManualTicker:
    return ManualTicker()
