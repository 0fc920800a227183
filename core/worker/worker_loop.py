# core/worker/worker_loop.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional
import structlog

from core.utils.queueing import ChannelClosed, Empty, Receiver
from core.utils.shutdown import ShutdownFlag

log = structlog.get_logger()

DEFAULT_POLL_SEC = 0.5

Handler = Callable[[Any], None]


class WorkerState(Enum):
    IDLE = "idle"            # constructed, run() not entered yet
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class WorkerStats:
    processed: int = 0
    errors: int = 0
    timeouts: int = 0
    discarded: int = 0       # left in the channel when the loop exited


def log_item(item: Any) -> None:
    """Default handler: one log line per work item."""
    to_record = getattr(item, "to_record", None)
    if callable(to_record):
        log.info("worker.item", **to_record())
    else:
        log.info("worker.item", item=item)


class WorkerLoop:
    """
    Single consumer of the work channel.
    - waits at most ``poll_sec`` per receive, so it never spins
    - checks the shutdown flag only when a receive times out, so work
      already queued at shutdown is drained before the loop exits
    - treats "all senders closed" as an implicit shutdown
    - a failing handler is logged and counted; the loop keeps going
    """
    def __init__(
        self,
        rx: Receiver,
        shutdown: ShutdownFlag,
        handler: Optional[Handler] = None,
        poll_sec: float = DEFAULT_POLL_SEC,
    ):
        if poll_sec <= 0:
            raise ValueError(f"poll_sec must be > 0, got {poll_sec}")
        self.rx = rx
        self.shutdown = shutdown
        self.handler = handler or log_item
        self.poll_sec = poll_sec
        self.stats = WorkerStats()
        self.exit_reason: Optional[str] = None
        self._state = WorkerState.IDLE

    @property
    def state(self) -> WorkerState:
        return self._state

    def run(self) -> None:
        self._state = WorkerState.RUNNING
        log.info("worker.start", poll_sec=self.poll_sec, capacity=self.rx.capacity)
        try:
            while self._state is WorkerState.RUNNING:
                try:
                    item = self.rx.recv(timeout=self.poll_sec)
                except Empty:
                    self.stats.timeouts += 1
                    if self.shutdown.is_set():
                        self._begin_stop("shutdown")
                    continue
                except ChannelClosed:
                    self._begin_stop("disconnected")
                    continue

                self._process(item)
        finally:
            # release producers still blocked on a full channel
            self.stats.discarded = self.rx.close()
            self._state = WorkerState.STOPPED
            log.info(
                "worker.stop",
                reason=self.exit_reason,
                processed=self.stats.processed,
                errors=self.stats.errors,
                discarded=self.stats.discarded,
            )

    def _begin_stop(self, reason: str) -> None:
        self.exit_reason = reason
        self._state = WorkerState.STOPPING

    def _process(self, item: Any) -> None:
        try:
            self.handler(item)
        except Exception as e:
            self.stats.errors += 1
            log.warning("worker.handler.error", err=str(e), item_type=type(item).__name__)
            return
        self.stats.processed += 1
