from __future__ import annotations
import threading
from typing import Any, Callable, Optional
import structlog

from core.utils.queueing import (
    DEFAULT_CAPACITY, ChannelClosed, Full, Receiver, SaturationPolicy, Sender, open_channel,
)
from core.utils.shutdown import ShutdownFlag
from core.worker.worker_loop import DEFAULT_POLL_SEC, Handler, WorkerLoop, WorkerState, WorkerStats
from plugin.errors import RuntimeStartError

log = structlog.get_logger()

ThreadFactory = Callable[..., threading.Thread]


class PluginRuntime:
    """
    Owns the work channel, the shutdown flag and the single worker thread.
    start() on load, teardown() on unload; also usable as a context manager
    so teardown runs on every exit path.
    """
    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        poll_sec: float = DEFAULT_POLL_SEC,
        policy: SaturationPolicy = SaturationPolicy.BLOCK,
        handler: Optional[Handler] = None,
        send_timeout: Optional[float] = None,
        join_timeout: Optional[float] = None,
        thread_factory: ThreadFactory = threading.Thread,
    ):
        self.capacity = capacity
        self.poll_sec = poll_sec
        self.policy = policy
        self.send_timeout = send_timeout
        self.join_timeout = join_timeout
        self._handler = handler
        self._thread_factory = thread_factory

        self._lock = threading.Lock()
        self._shutdown = ShutdownFlag()
        self._tx: Optional[Sender] = None
        self._loop: Optional[WorkerLoop] = None
        self._worker_thr: Optional[threading.Thread] = None
        self._torn_down = False

    # --- state views ---
    @property
    def running(self) -> bool:
        thr = self._worker_thr
        return thr is not None and thr.is_alive()

    @property
    def worker_state(self) -> WorkerState:
        return self._loop.state if self._loop else WorkerState.IDLE

    @property
    def stats(self) -> WorkerStats:
        return self._loop.stats if self._loop else WorkerStats()

    @property
    def dropped(self) -> int:
        tx = self._tx
        return tx.dropped if tx else 0

    @property
    def queued(self) -> int:
        """Items accepted but not yet picked up by the worker."""
        return len(self._loop.rx) if self._loop else 0

    # --- lifecycle ---
    def start(self) -> None:
        with self._lock:
            if self._torn_down:
                raise RuntimeStartError("runtime was torn down; create a new one")
            if self._worker_thr is not None:
                return

            try:
                tx, rx = open_channel(self.capacity, self.policy)
            except ValueError as e:
                raise RuntimeStartError(f"cannot open work channel: {e}") from e

            loop = WorkerLoop(rx, self._shutdown, handler=self._handler, poll_sec=self.poll_sec)
            try:
                thr = self._thread_factory(target=loop.run, name="geyser-worker", daemon=True)
                thr.start()
            except RuntimeError as e:
                self._abandon(tx, rx)
                log.error("runtime.start.failed", err=str(e))
                raise RuntimeStartError(f"cannot spawn worker thread: {e}") from e

            self._tx, self._loop, self._worker_thr = tx, loop, thr

        log.info("runtime.start", capacity=self.capacity, poll_sec=self.poll_sec, policy=self.policy.value)

    def submit(self, item: Any) -> bool:
        """Hand ``item`` to the worker. Never raises; False means it was not queued."""
        tx = self._tx
        if tx is None:
            log.warning("runtime.submit.not_running")
            return False
        try:
            return tx.send(item, timeout=self.send_timeout)
        except ChannelClosed as e:
            log.warning("runtime.submit.disconnected", err=str(e))
        except Full:
            log.warning("runtime.submit.saturated", policy=self.policy.value, capacity=self.capacity)
        return False

    def close_intake(self) -> None:
        """
        Stop accepting work without raising the shutdown flag. The worker
        drains what is queued and exits on its own (disconnected); a later
        teardown() only joins it.
        """
        with self._lock:
            tx, self._tx = self._tx, None
        if tx is not None:
            tx.close()
            log.info("runtime.intake.closed")

    def teardown(self, timeout: Optional[float] = None) -> bool:
        """
        Signal the worker and join it. Safe to call repeatedly and after the
        worker already exited on its own. Returns False if the join timed out.
        """
        with self._lock:
            self._torn_down = True
            thr, self._worker_thr = self._worker_thr, None
            tx, self._tx = self._tx, None

        if thr is None:
            log.debug("runtime.teardown.noop")
            return True

        self._shutdown.set()
        wait = timeout if timeout is not None else self.join_timeout
        thr.join(wait)
        if tx is not None:
            tx.close()

        if thr.is_alive():
            log.warning("runtime.teardown.join_timeout", timeout=wait)
            return False

        stats = self.stats
        log.info(
            "runtime.stop",
            reason=self._loop.exit_reason if self._loop else None,
            processed=stats.processed,
            errors=stats.errors,
            discarded=stats.discarded,
        )
        return True

    def __enter__(self) -> "PluginRuntime":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.teardown()

    @staticmethod
    def _abandon(tx: Sender, rx: Receiver) -> None:
        tx.close()
        rx.close()
