"""Tests for per-entity locks."""

import threading
import time

import pytest

from core.locking import LockRegistry


class TestLockFor:

    def test_same_key_same_lock(self):
        locks = LockRegistry()

        assert locks.lock_for("invoice", 1) is locks.lock_for("invoice", 1)

    def test_lock_count_is_bounded(self):
        """Touching many ids never grows the pool past its stripes."""
        locks = LockRegistry(stripes=8)

        seen = {
            id(locks.lock_for(entity_type, entity_id))
            for entity_type in ("invoice", "credit_note")
            for entity_id in range(10_000)
        }

        assert locks.stripes == 8
        assert len(seen) <= 8

    def test_rejects_empty_pool(self):
        with pytest.raises(ValueError):
            LockRegistry(stripes=0)


class TestHold:

    def test_reentrant(self):
        """The same thread can take a lock it already holds."""
        locks = LockRegistry()

        with locks.hold(("invoice", 1)):
            with locks.hold(("invoice", 1), ("credit_note", 1)):
                pass

    def test_excludes_other_threads(self):
        locks = LockRegistry()
        order = []

        def worker(name):
            with locks.hold(("invoice", 7)):
                order.append(f"{name}-in")
                time.sleep(0.02)
                order.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b", "c")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Enter/exit pairs never interleave
        for i in range(0, len(order), 2):
            assert order[i].split("-")[0] == order[i + 1].split("-")[0]

    def test_opposite_key_order_does_not_deadlock(self):
        locks = LockRegistry()
        done = []

        def forward():
            for _ in range(200):
                with locks.hold(("credit_note", 1), ("invoice", 1)):
                    pass
            done.append("forward")

        def backward():
            for _ in range(200):
                with locks.hold(("invoice", 1), ("credit_note", 1)):
                    pass
            done.append("backward")

        threads = [threading.Thread(target=forward), threading.Thread(target=backward)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert sorted(done) == ["backward", "forward"]

    def test_released_on_exception(self):
        locks = LockRegistry()

        try:
            with locks.hold(("invoice", 3)):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        acquired = []
        t = threading.Thread(
            target=lambda: acquired.append(locks.lock_for("invoice", 3).acquire(timeout=1))
        )
        t.start()
        t.join()
        assert acquired == [True]

    def test_keys_sharing_a_stripe(self):
        """Entities on the same stripe can be held together."""
        locks = LockRegistry(stripes=1)

        assert locks.lock_for("invoice", 1) is locks.lock_for("credit_note", 2)
        with locks.hold(("invoice", 1), ("credit_note", 2)):
            with locks.hold(("invoice", 5)):
                pass

        acquired = []
        t = threading.Thread(
            target=lambda: acquired.append(locks.lock_for("invoice", 9).acquire(timeout=1))
        )
        t.start()
        t.join()
        assert acquired == [True]
