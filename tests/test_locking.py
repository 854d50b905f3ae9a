"""Tests for workstate.lib.locking module."""

import threading
import time

import pytest

from workstate.lib.locking import KeyLocks, LockTimeout


class TestKeyLocks:
    """Tests for KeyLocks."""

    def test_hold_is_reentrant(self):
        locks = KeyLocks()
        with locks.hold("a"):
            with locks.hold("a"):
                pass

    def test_one_lock_per_key(self):
        locks = KeyLocks()
        with locks.hold("a"):
            with locks.hold("b"):
                with locks.hold("a"):
                    assert len(locks) == 2

    def test_released_keys_are_forgotten(self):
        locks = KeyLocks()
        for i in range(50):
            with locks.hold(f"scopes/scope-{i}.json"):
                pass
        assert len(locks) == 0

    def test_key_stays_tracked_while_waited_on(self):
        locks = KeyLocks()
        acquired = threading.Event()
        release = threading.Event()
        order = []

        def holder():
            with locks.hold("key"):
                acquired.set()
                release.wait(2)
                order.append("holder")

        def waiter():
            with locks.hold("key"):
                order.append("waiter")

        first = threading.Thread(target=holder)
        first.start()
        assert acquired.wait(2)
        second = threading.Thread(target=waiter)
        second.start()
        time.sleep(0.05)
        assert len(locks) == 1
        release.set()
        first.join()
        second.join()

        assert order == ["holder", "waiter"]
        assert len(locks) == 0

    def test_times_out_when_held_by_another_thread(self):
        locks = KeyLocks(timeout=0.05)
        acquired = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("key"):
                acquired.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        try:
            assert acquired.wait(2)
            with pytest.raises(LockTimeout, match="key"):
                with locks.hold("key"):
                    pass
        finally:
            release.set()
            thread.join()

    def test_different_keys_do_not_block(self):
        locks = KeyLocks(timeout=0.05)
        acquired = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("a"):
                acquired.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        try:
            assert acquired.wait(2)
            with locks.hold("b"):
                pass
        finally:
            release.set()
            thread.join()

    def test_serialises_critical_sections(self):
        locks = KeyLocks()
        inside = []
        overlaps = []

        def worker():
            for _ in range(20):
                with locks.hold("key"):
                    if inside:
                        overlaps.append(True)
                    inside.append(1)
                    time.sleep(0.0005)
                    inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
