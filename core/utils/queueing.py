# core/utils/queueing.py
from __future__ import annotations
import threading
import time
from collections import deque
from enum import Enum
from queue import Empty, Full
from typing import Any, Deque, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")

DEFAULT_CAPACITY = 40960

__all__ = [
    "DEFAULT_CAPACITY",
    "ChannelClosed",
    "Empty",
    "Full",
    "Receiver",
    "SaturationPolicy",
    "Sender",
    "open_channel",
]


class ChannelClosed(Exception):
    """The other side of the channel is gone (all senders, or the receiver)."""


class SaturationPolicy(Enum):
    """What a producer does when the channel is at capacity."""
    BLOCK = "block"              # wait for the consumer (backpressure)
    DROP_OLDEST = "drop_oldest"  # evict head, keep the newest
    DROP_NEWEST = "drop_newest"  # discard the offered item
    FAIL = "fail"                # raise queue.Full right away

    @classmethod
    def parse(cls, value: Any) -> "SaturationPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown saturation policy: {value!r}") from None


class _ChannelState(Generic[T]):
    """Shared buffer + bookkeeping; every field is guarded by ``lock``."""
    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"channel capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.items: Deque[T] = deque()
        self.lock = threading.Lock()
        self.not_empty = threading.Condition(self.lock)
        self.not_full = threading.Condition(self.lock)
        self.senders = 0
        self.receiver_open = True
        self.dropped = 0


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return deadline - time.monotonic()


class Sender(Generic[T]):
    """
    Producer handle. Cheap to clone; each clone must be closed.
    The channel reports "disconnected" to the receiver once every
    sender handle is closed and the buffer is drained.
    """
    def __init__(self, state: _ChannelState[T], policy: SaturationPolicy = SaturationPolicy.BLOCK):
        self._state = state
        self._policy = policy
        self._closed = False
        with state.lock:
            state.senders += 1

    @property
    def policy(self) -> SaturationPolicy:
        return self._policy

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        with self._state.lock:
            return self._state.dropped

    def clone(self) -> "Sender[T]":
        if self._closed:
            raise ChannelClosed("cannot clone a closed sender")
        return Sender(self._state, self._policy)

    def send(self, item: T, timeout: Optional[float] = None) -> bool:
        """
        Enqueue ``item``. Returns False only when DROP_NEWEST discarded it.
        Raises ChannelClosed if the receiver is gone, queue.Full when FAIL
        is configured or a BLOCK send runs past ``timeout``.
        """
        st = self._state
        with st.not_full:
            if self._closed:
                raise ChannelClosed("send on a closed sender")
            if not st.receiver_open:
                raise ChannelClosed("receiver is closed")

            if len(st.items) >= st.capacity:
                if self._policy is SaturationPolicy.FAIL:
                    raise Full
                if self._policy is SaturationPolicy.DROP_NEWEST:
                    st.dropped += 1
                    return False
                if self._policy is SaturationPolicy.DROP_OLDEST:
                    st.items.popleft()
                    st.dropped += 1
                else:
                    deadline = None if timeout is None else time.monotonic() + timeout
                    while len(st.items) >= st.capacity:
                        left = _remaining(deadline)
                        if left is not None and left <= 0:
                            raise Full
                        st.not_full.wait(left)
                        if not st.receiver_open:
                            raise ChannelClosed("receiver closed while waiting for space")

            st.items.append(item)
            st.not_empty.notify()
            return True

    def close(self) -> None:
        st = self._state
        with st.lock:
            if self._closed:
                return
            self._closed = True
            st.senders -= 1
            if st.senders == 0:
                # wake the consumer so it can observe the disconnect
                st.not_empty.notify_all()

    def __enter__(self) -> "Sender[T]":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class Receiver(Generic[T]):
    """Single consumer handle."""
    def __init__(self, state: _ChannelState[T]):
        self._state = state

    @property
    def capacity(self) -> int:
        return self._state.capacity

    @property
    def closed(self) -> bool:
        with self._state.lock:
            return not self._state.receiver_open

    def __len__(self) -> int:
        with self._state.lock:
            return len(self._state.items)

    def recv(self, timeout: Optional[float] = None) -> T:
        """
        Next item in FIFO order. Raises queue.Empty when ``timeout`` elapses,
        ChannelClosed once the buffer is empty and no sender remains.
        """
        st = self._state
        with st.not_empty:
            deadline = None if timeout is None else time.monotonic() + timeout
            while not st.items:
                if st.senders == 0:
                    raise ChannelClosed("all senders closed")
                if not st.receiver_open:
                    raise ChannelClosed("receiver is closed")
                left = _remaining(deadline)
                if left is not None and left <= 0:
                    raise Empty
                st.not_empty.wait(left)
            item = st.items.popleft()
            st.not_full.notify()
            return item

    def try_recv(self) -> T:
        return self.recv(timeout=0)

    def close(self) -> int:
        """Detach the consumer; returns how many queued items were discarded."""
        st = self._state
        with st.lock:
            if not st.receiver_open:
                return 0
            st.receiver_open = False
            discarded = len(st.items)
            st.items.clear()
            st.not_full.notify_all()
            return discarded


def open_channel(
    capacity: int = DEFAULT_CAPACITY,
    policy: SaturationPolicy = SaturationPolicy.BLOCK,
) -> Tuple[Sender[Any], Receiver[Any]]:
    """Fixed-capacity MPSC channel; returns (producer, consumer)."""
    state: _ChannelState[Any] = _ChannelState(capacity)
    return Sender(state, policy), Receiver(state)
