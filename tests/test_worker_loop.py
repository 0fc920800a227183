# tests/test_worker_loop.py
# How to run:
#   pytest -q tests/test_worker_loop.py
#
# What this covers:
#   - Worker processes exactly N items in enqueue order
#   - Shutdown with an empty channel: exit within ~one poll interval
#   - Shutdown with a backlog: queued items are drained before the loop exits
#   - Closing every sender ends the loop even without the shutdown flag
#   - A failing handler is counted, not fatal
#   - Capacity-2 scenario end to end: blocked send(3) resumes once the worker starts

import threading
import time

import pytest

from core.utils.queueing import ChannelClosed, open_channel
from core.utils.shutdown import ShutdownFlag
from core.worker.worker_loop import WorkerLoop, WorkerState

POLL = 0.05


def _spawn(loop):
    thr = threading.Thread(target=loop.run, daemon=True)
    thr.start()
    return thr

def _wait_for(pred, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


def test_shutdown_flag_is_one_way():
    flag = ShutdownFlag()
    assert not flag.is_set()
    assert flag.wait(0.01) is False
    flag.set()
    flag.set()
    assert flag.is_set()
    assert flag.wait(0) is True
    assert not hasattr(flag, "clear")

def test_processes_n_items_in_order():
    tx, rx = open_channel(capacity=64)
    seen = []
    flag = ShutdownFlag()
    loop = WorkerLoop(rx, flag, handler=seen.append, poll_sec=POLL)
    assert loop.state is WorkerState.IDLE
    thr = _spawn(loop)

    for i in range(64):
        tx.send(i)
    assert _wait_for(lambda: len(seen) == 64)

    flag.set()
    thr.join(2.0)
    assert not thr.is_alive()
    assert seen == list(range(64))
    assert loop.stats.processed == 64
    assert loop.state is WorkerState.STOPPED
    assert loop.exit_reason == "shutdown"

def test_shutdown_with_empty_channel_is_bounded_by_poll_interval():
    tx, rx = open_channel(capacity=4)
    flag = ShutdownFlag()
    loop = WorkerLoop(rx, flag, handler=lambda _: None, poll_sec=POLL)
    thr = _spawn(loop)
    assert _wait_for(lambda: loop.state is WorkerState.RUNNING)

    t0 = time.monotonic()
    flag.set()
    thr.join(2.0)
    elapsed = time.monotonic() - t0
    assert not thr.is_alive()
    assert elapsed < POLL * 4 + 0.2
    assert loop.exit_reason == "shutdown"
    tx.close()

def test_shutdown_drains_backlog_before_exit():
    tx, rx = open_channel(capacity=16)
    flag = ShutdownFlag()
    started = threading.Event()
    release = threading.Event()
    seen = []

    def slow(item):
        started.set()
        release.wait(2.0)
        seen.append(item)

    loop = WorkerLoop(rx, flag, handler=slow, poll_sec=POLL)
    thr = _spawn(loop)
    for i in range(5):
        tx.send(i)
    assert started.wait(1.0)

    # flag raised while item 0 is in flight and 1..4 are still queued
    flag.set()
    release.set()
    thr.join(2.0)
    assert not thr.is_alive()
    assert seen == [0, 1, 2, 3, 4]
    assert loop.stats.processed == 5
    assert loop.stats.discarded == 0
    assert loop.exit_reason == "shutdown"

    # producers are not left hanging on a dead worker
    with pytest.raises(ChannelClosed):
        tx.send(99)

def test_all_senders_closed_stops_worker_without_flag():
    tx, rx = open_channel(capacity=4)
    flag = ShutdownFlag()
    seen = []
    loop = WorkerLoop(rx, flag, handler=seen.append, poll_sec=POLL)
    thr = _spawn(loop)

    tx.send("last")
    tx.close()
    thr.join(2.0)
    assert not thr.is_alive()
    assert not flag.is_set()
    assert loop.exit_reason == "disconnected"
    assert seen == ["last"]

def test_handler_errors_do_not_stop_the_loop():
    tx, rx = open_channel(capacity=8)
    flag = ShutdownFlag()
    seen = []

    def picky(item):
        if item % 2:
            raise RuntimeError(f"odd item {item}")
        seen.append(item)

    loop = WorkerLoop(rx, flag, handler=picky, poll_sec=POLL)
    thr = _spawn(loop)
    for i in range(6):
        tx.send(i)
    assert _wait_for(lambda: loop.stats.processed + loop.stats.errors == 6)
    assert loop.state is WorkerState.RUNNING

    flag.set()
    thr.join(2.0)
    assert seen == [0, 2, 4]
    assert loop.stats.errors == 3
    assert loop.stats.processed == 3

def test_default_handler_logs_without_error():
    tx, rx = open_channel(capacity=4)
    flag = ShutdownFlag()
    loop = WorkerLoop(rx, flag, poll_sec=POLL)
    thr = _spawn(loop)
    tx.send(123)
    tx.send({"k": "v"})
    tx.close()
    thr.join(2.0)
    assert loop.stats.processed == 2
    assert loop.stats.errors == 0

def test_capacity_two_scenario_yields_one_two_three():
    tx, rx = open_channel(capacity=2)
    tx.send(1)
    tx.send(2)

    sent3 = threading.Event()

    def produce():
        tx.send(3)
        sent3.set()

    producer = threading.Thread(target=produce, daemon=True)
    producer.start()
    assert not sent3.wait(0.2), "third send must block on a full channel"

    seen = []
    flag = ShutdownFlag()
    loop = WorkerLoop(rx, flag, handler=seen.append, poll_sec=POLL)
    thr = _spawn(loop)

    assert sent3.wait(2.0)
    assert _wait_for(lambda: len(seen) == 3)
    flag.set()
    thr.join(2.0)
    producer.join(1.0)
    assert seen == [1, 2, 3]
