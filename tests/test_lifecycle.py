# tests/test_lifecycle.py
# How to run:
#   pytest -q tests/test_lifecycle.py
#
# What this covers:
#   - start() spawns one worker; teardown() signals + joins it
#   - teardown right after a burst still processes every accepted item
#   - teardown is idempotent, including after the worker already left on its own
#   - thread spawn failure surfaces as RuntimeStartError with nothing left running
#   - submit never raises: not running / after teardown / saturated all report False
#   - a stuck worker makes teardown report False instead of hanging

import threading
import time

import pytest

from core.utils.queueing import SaturationPolicy
from core.worker.worker_loop import WorkerState
from plugin.controller.lifecycle import PluginRuntime
from plugin.errors import RuntimeStartError

POLL = 0.05


def _wait_for(pred, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


def test_start_submit_teardown():
    seen = []
    rt = PluginRuntime(capacity=16, poll_sec=POLL, handler=seen.append)
    assert not rt.running
    rt.start()
    assert rt.running
    for i in range(10):
        assert rt.submit(i) is True
    assert _wait_for(lambda: len(seen) == 10)

    assert rt.teardown() is True
    assert not rt.running
    assert rt.worker_state is WorkerState.STOPPED
    assert seen == list(range(10))
    assert rt.stats.processed == 10

def test_teardown_right_after_burst_processes_everything():
    seen = []
    rt = PluginRuntime(capacity=64, poll_sec=POLL, handler=seen.append)
    rt.start()
    for i in range(20):
        assert rt.submit(i) is True
    assert rt.teardown() is True
    assert seen == list(range(20))
    assert rt.stats.processed == 20
    assert rt.stats.discarded == 0
    assert rt.queued == 0

def test_start_twice_keeps_single_worker():
    rt = PluginRuntime(capacity=4, poll_sec=POLL)
    rt.start()
    before = threading.active_count()
    rt.start()
    assert threading.active_count() == before
    rt.teardown()

def test_teardown_is_idempotent():
    rt = PluginRuntime(capacity=4, poll_sec=POLL)
    rt.start()
    assert rt.teardown() is True
    t0 = time.monotonic()
    assert rt.teardown() is True
    assert time.monotonic() - t0 < 0.5

def test_teardown_without_start_is_noop():
    rt = PluginRuntime(capacity=4, poll_sec=POLL)
    assert rt.teardown() is True
    assert rt.submit("x") is False

def test_teardown_after_worker_exited_on_disconnect():
    rt = PluginRuntime(capacity=4, poll_sec=POLL)
    rt.start()
    rt.submit("tail")
    rt.close_intake()
    assert _wait_for(lambda: rt.worker_state is WorkerState.STOPPED)
    assert rt.stats.processed == 1
    assert rt.submit("late") is False
    assert rt.teardown() is True
    assert rt.teardown() is True

def test_restart_after_teardown_is_refused():
    rt = PluginRuntime(capacity=4, poll_sec=POLL)
    rt.start()
    rt.teardown()
    with pytest.raises(RuntimeStartError):
        rt.start()

def test_context_manager_tears_down_on_error():
    seen = []
    with pytest.raises(KeyError):
        with PluginRuntime(capacity=4, poll_sec=POLL, handler=seen.append) as rt:
            rt.submit(1)
            raise KeyError("boom")
    assert not rt.running
    assert rt.worker_state is WorkerState.STOPPED

class _BrokenThread:
    def __init__(self, *args, **kwargs):
        pass

    def start(self):
        raise RuntimeError("can't start new thread")

def test_spawn_failure_is_surfaced_and_not_partial():
    rt = PluginRuntime(capacity=4, poll_sec=POLL, thread_factory=_BrokenThread)
    with pytest.raises(RuntimeStartError) as exc:
        rt.start()
    assert "can't start new thread" in str(exc.value)
    assert not rt.running
    assert rt.submit("x") is False
    assert rt.teardown() is True

def test_bad_capacity_is_a_start_error():
    rt = PluginRuntime(capacity=0, poll_sec=POLL)
    with pytest.raises(RuntimeStartError):
        rt.start()

def test_submit_after_teardown_reports_false():
    rt = PluginRuntime(capacity=4, poll_sec=POLL)
    rt.start()
    rt.teardown()
    assert rt.submit("late") is False

def test_saturated_fail_policy_reports_false():
    gate = threading.Event()
    rt = PluginRuntime(capacity=1, poll_sec=POLL, policy=SaturationPolicy.FAIL, handler=lambda _: gate.wait(2.0))
    rt.start()
    assert rt.submit("a") is True      # taken by the worker, which then parks on the gate
    assert _wait_for(lambda: rt.queued == 0)
    assert rt.submit("b") is True      # fills the single slot
    assert rt.submit("c") is False     # FAIL -> Full -> False
    gate.set()
    rt.teardown()

def test_blocking_submit_with_timeout_reports_false():
    gate = threading.Event()
    rt = PluginRuntime(capacity=1, poll_sec=POLL, handler=lambda _: gate.wait(2.0), send_timeout=0.05)
    rt.start()
    rt.submit("a")
    assert _wait_for(lambda: rt.queued == 0)
    rt.submit("b")
    t0 = time.monotonic()
    assert rt.submit("c") is False
    assert time.monotonic() - t0 < 1.0
    gate.set()
    rt.teardown()

def test_drop_newest_counts_dropped():
    gate = threading.Event()
    rt = PluginRuntime(capacity=1, poll_sec=POLL, policy=SaturationPolicy.DROP_NEWEST, handler=lambda _: gate.wait(2.0))
    rt.start()
    rt.submit("a")
    assert _wait_for(lambda: rt.queued == 0)
    rt.submit("b")
    assert rt.submit("c") is False
    assert rt.dropped == 1
    gate.set()
    rt.teardown()

def test_stuck_worker_teardown_times_out():
    release = threading.Event()
    started = threading.Event()

    def stuck(_):
        started.set()
        release.wait(5.0)

    rt = PluginRuntime(capacity=4, poll_sec=POLL, handler=stuck, join_timeout=0.1)
    rt.start()
    rt.submit("x")
    assert started.wait(1.0)
    assert rt.teardown() is False
    release.set()
    assert _wait_for(lambda: rt.worker_state is WorkerState.STOPPED)
