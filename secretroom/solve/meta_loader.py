"""Meta Loader: fetch a room's solvability snapshot and classify failures."""

import logging

from secretroom.client.api import ApiError, SecretRoomClient
from secretroom.solve.outcomes import (
    MSG_GONE,
    MSG_META_FALLBACK,
    MSG_NOT_FOUND,
    Failure,
    FailureKind,
)
from secretroom.solve.state import RoomAccessState

logger = logging.getLogger(__name__)


def classify_meta_error(exc: ApiError) -> Failure:
    if exc.code == "NOT_FOUND":
        return Failure(FailureKind.NOT_FOUND, MSG_NOT_FOUND)
    if exc.code == "GONE":
        return Failure(FailureKind.GONE, MSG_GONE)
    return Failure(FailureKind.OTHER, exc.message or MSG_META_FALLBACK)


class MetaLoader:
    def __init__(self, client: SecretRoomClient):
        self.client = client

    async def load(self, room_id: int) -> RoomAccessState | Failure:
        try:
            meta = await self.client.get_solve_meta(room_id)
        except ApiError as exc:
            failure = classify_meta_error(exc)
            logger.info("Meta load for room %s failed: %s (%s)", room_id, failure.kind.value, exc.code)
            return failure
        return RoomAccessState.from_meta(room_id, meta)
