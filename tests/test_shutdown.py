"""Tests for the shutdown coordinator."""

import os
import signal

import pytest

from splunk_runner.shutdown import ShutdownCoordinator


@pytest.fixture
def restore_sigusr1():
    previous = signal.getsignal(signal.SIGUSR1)
    yield
    signal.signal(signal.SIGUSR1, previous)


def test_starts_uncancelled():
    coordinator = ShutdownCoordinator()

    assert coordinator.cancelled() is False
    assert coordinator.wait(0.01) is False


def test_cancel_is_one_way_and_idempotent():
    coordinator = ShutdownCoordinator()

    assert coordinator.cancel("first") is True
    assert coordinator.cancel("second") is False
    assert coordinator.cancelled() is True
    assert coordinator.wait(0) is True
    assert coordinator.reason == "first"


def test_observers_run_once():
    coordinator = ShutdownCoordinator()
    calls = []
    coordinator.add_observer(lambda: calls.append("a"))
    coordinator.add_observer(lambda: calls.append("b"))

    coordinator.cancel()
    coordinator.cancel()

    assert calls == ["a", "b"]


def test_observer_added_after_cancel_runs_immediately():
    coordinator = ShutdownCoordinator()
    coordinator.cancel()
    calls = []

    coordinator.add_observer(lambda: calls.append(1))

    assert calls == [1]


def test_failing_observer_does_not_block_others():
    coordinator = ShutdownCoordinator()
    calls = []

    def broken():
        raise RuntimeError("boom")

    coordinator.add_observer(broken)
    coordinator.add_observer(lambda: calls.append(1))
    coordinator.cancel()

    assert calls == [1]


def test_signal_cancels(restore_sigusr1):
    coordinator = ShutdownCoordinator()
    coordinator.arm(signals=(signal.SIGUSR1,))

    os.kill(os.getpid(), signal.SIGUSR1)

    assert coordinator.wait(5) is True
    assert coordinator.reason == "SIGUSR1"

    # A second signal is a no-op
    os.kill(os.getpid(), signal.SIGUSR1)
    assert coordinator.reason == "SIGUSR1"


def test_signal_handler_does_not_block_on_held_lock():
    coordinator = ShutdownCoordinator()

    with coordinator._lock:
        coordinator._handle_signal(signal.SIGTERM, None)
        assert coordinator.cancelled() is False

    assert coordinator.wait(5) is True
    assert coordinator.reason == "SIGTERM"


def test_call_unless_cancelled():
    coordinator = ShutdownCoordinator()

    assert coordinator.call_unless_cancelled(lambda: "spawned") == "spawned"

    coordinator.cancel()
    calls = []
    assert coordinator.call_unless_cancelled(lambda: calls.append(1)) is None
    assert calls == []
