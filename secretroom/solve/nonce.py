"""Nonce Provider: one fresh single-use token per submission attempt (never cached)."""

from dataclasses import dataclass

from secretroom.client.api import SecretRoomClient


@dataclass(frozen=True)
class Nonce:
    value: str
    ttl_seconds: int


class NonceProvider:
    def __init__(self, client: SecretRoomClient):
        self.client = client

    async def acquire(self, room_id: int) -> Nonce:
        """Fetch a new nonce; `ApiError` propagates to the submitter."""
        resp = await self.client.get_nonce(room_id)
        return Nonce(value=resp.nonce, ttl_seconds=resp.expiresIn)
