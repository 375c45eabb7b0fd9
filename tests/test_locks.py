"""Tests for the per-member lock registry."""

import threading
import time

from family_graph.core.locks import MemberLockRegistry


def run_threads(*targets, timeout=5):
    threads = [threading.Thread(target=t) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout)
    return [t.is_alive() for t in threads]


def test_overlapping_scopes_do_not_interleave():
    registry = MemberLockRegistry()
    events = []

    def worker(name, ids):
        def _run():
            with registry.hold(*ids):
                events.append((name, "in"))
                time.sleep(0.05)
                events.append((name, "out"))
        return _run

    alive = run_threads(worker("one", ["a", "b"]), worker("two", ["b", "c"]))

    assert alive == [False, False]
    # each "in" is immediately followed by its own "out"
    assert events[0][0] == events[1][0]
    assert events[2][0] == events[3][0]


def test_reverse_order_requests_do_not_deadlock():
    registry = MemberLockRegistry()
    done = []

    def forward():
        for _ in range(50):
            with registry.hold("x", "y"):
                pass
        done.append("forward")

    def backward():
        for _ in range(50):
            with registry.hold("y", "x"):
                pass
        done.append("backward")

    alive = run_threads(forward, backward)

    assert alive == [False, False]
    assert sorted(done) == ["backward", "forward"]


def test_reentrant_and_ignores_empty_ids():
    registry = MemberLockRegistry()

    with registry.hold("a", None, ""):
        with registry.hold("a", "b"):
            with registry.hold("b"):
                pass


def test_forget_drops_lock():
    registry = MemberLockRegistry()
    with registry.hold("gone"):
        pass

    registry.forget("gone")

    assert "gone" not in registry._locks
