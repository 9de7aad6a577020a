import unittest
from datetime import datetime, timezone

from secretroom.client.models import Policy, PolicyState, SolvedImage, SolvedText, SolveMeta
from secretroom.solve.reconciler import reconcile_policy
from secretroom.solve.state import (
    Locked,
    RoomAccessState,
    StateTransitionError,
    UNLOCKED,
    lock_from_meta,
)
from secretroom.solve.view import format_countdown


def _meta(**overrides) -> SolveMeta:
    data = {
        "id": 3,
        "title": "Attic",
        "hint": "Dusty",
        "policy": "LIMITED",
        "remaining": 2,
        "limit": 5,
        "locked": False,
    }
    data.update(overrides)
    return SolveMeta(**data)


class LockFromMetaTest(unittest.TestCase):
    def test_unlocked(self):
        self.assertEqual(lock_from_meta(_meta()), UNLOCKED)

    def test_locked_with_retry(self):
        self.assertEqual(lock_from_meta(_meta(locked=True, retryAfterSec=12)), Locked(12))

    def test_locked_without_retry_is_zero(self):
        self.assertEqual(lock_from_meta(_meta(locked=True, retryAfterSec=None)), Locked(0))

    def test_retry_ignored_when_not_locked(self):
        self.assertEqual(lock_from_meta(_meta(locked=False, retryAfterSec=12)), UNLOCKED)


class RoomAccessStateTest(unittest.TestCase):
    def test_absorb_keeps_title_hint_and_policy(self):
        state = RoomAccessState.from_meta(3, _meta())
        fresh = RoomAccessState.from_meta(
            3, _meta(title="Renamed", hint="New", policy="UNLIMITED", remaining=None, limit=None)
        )

        state.absorb(fresh)

        self.assertEqual(state.title, "Attic")
        self.assertEqual(state.hint, "Dusty")
        self.assertEqual(state.policy, Policy.LIMITED)
        self.assertIsNone(state.remaining)
        self.assertIsNone(state.limit)

    def test_absorb_follows_server_lock(self):
        state = RoomAccessState.from_meta(3, _meta())
        state.absorb(RoomAccessState.from_meta(3, _meta(locked=True, retryAfterSec=8)))
        self.assertEqual(state.lock, Locked(8))

        state.absorb(RoomAccessState.from_meta(3, _meta()))
        self.assertFalse(state.is_locked)

    def test_reveal_clears_lock_and_blocks_relock(self):
        state = RoomAccessState.from_meta(3, _meta(locked=True, retryAfterSec=5))
        state.reveal(SolvedText(text="hidden"))

        self.assertTrue(state.is_revealed)
        self.assertFalse(state.is_locked)
        with self.assertRaises(StateTransitionError):
            state.lock_for(10)

        state.absorb(RoomAccessState.from_meta(3, _meta(locked=True, retryAfterSec=60)))
        self.assertFalse(state.is_locked)

    def test_lock_for_never_negative(self):
        state = RoomAccessState.from_meta(3, _meta())
        state.lock_for(-5)
        self.assertEqual(state.lock, Locked(0))


class ReconcilePolicyTest(unittest.TestCase):
    def test_overwrites_verbatim(self):
        state = RoomAccessState.from_meta(3, _meta(remaining=2, limit=5))
        expires = datetime(2027, 1, 1, tzinfo=timezone.utc)

        reconcile_policy(
            state,
            PolicyState(policy=Policy.LIMITED, remaining=1, limit=5, expiresAt=expires),
        )

        self.assertEqual(state.remaining, 1)
        self.assertEqual(state.limit, 5)
        self.assertEqual(state.expires_at, expires)

    def test_does_not_decrement_on_its_own(self):
        # Server reports the same count (e.g. owner reveal not counted); client keeps it.
        state = RoomAccessState.from_meta(3, _meta(remaining=2))
        reconcile_policy(state, PolicyState(policy=Policy.LIMITED, remaining=2, limit=5))
        self.assertEqual(state.remaining, 2)

    def test_policy_is_not_replaced(self):
        state = RoomAccessState.from_meta(3, _meta(policy="ONCE", remaining=1, limit=1))
        reconcile_policy(state, PolicyState(policy=Policy.UNLIMITED, remaining=None, limit=None))
        self.assertEqual(state.policy, Policy.ONCE)
        self.assertIsNone(state.remaining)


class RevealedContentTest(unittest.TestCase):
    def test_image_content_round_trips_alt(self):
        content = SolvedImage(signedUrl="https://cdn.test/x.png?sig=1", alt="A map")
        state = RoomAccessState.from_meta(3, _meta())
        state.reveal(content)
        self.assertEqual(state.revealed.model_dump()["signedUrl"], "https://cdn.test/x.png?sig=1")


class FormatCountdownTest(unittest.TestCase):
    def test_format(self):
        self.assertEqual(format_countdown(0), "0:00")
        self.assertEqual(format_countdown(9), "0:09")
        self.assertEqual(format_countdown(75), "1:15")
        self.assertEqual(format_countdown(600), "10:00")
        self.assertIsNone(format_countdown(None))


if __name__ == "__main__":
    unittest.main()
