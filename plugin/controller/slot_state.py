from __future__ import annotations
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from core.hooks.events import SlotStatus, mono_ts

@dataclass
class SlotSnapshot:
    latest: Dict[SlotStatus, int] = field(default_factory=dict)
    last_parent: Optional[int] = None
    updates: int = 0
    since_mono: float = 0.0

class SlotTracker:
    """Highest slot seen per status. Written from host threads, read anywhere."""
    def __init__(self):
        self._lock = threading.RLock()
        self._latest: Dict[SlotStatus, int] = {}
        self._last_parent: Optional[int] = None
        self._updates = 0
        self._since_mono = mono_ts()

    def update(self, slot: int, parent: Optional[int], status: SlotStatus) -> None:
        with self._lock:
            prev = self._latest.get(status)
            if prev is None or slot > prev:
                self._latest[status] = slot
            if parent is not None:
                self._last_parent = parent
            self._updates += 1

    def latest(self, status: SlotStatus) -> Optional[int]:
        with self._lock:
            return self._latest.get(status)

    def snapshot(self) -> SlotSnapshot:
        with self._lock:
            return SlotSnapshot(
                latest=dict(self._latest),
                last_parent=self._last_parent,
                updates=self._updates,
                since_mono=self._since_mono,
            )
