# core/utils/shutdown.py
from __future__ import annotations
import threading
from typing import Optional


class ShutdownFlag:
    """
    One-way "running" -> "terminating" signal shared by the controller and
    the worker. No clear(): once set it stays set for
    the lifetime of the owning runtime.
    """
    def __init__(self):
        self._evt = threading.Event()

    def set(self) -> None:
        self._evt.set()

    def is_set(self) -> bool:
        return self._evt.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._evt.wait(timeout)

    def __repr__(self) -> str:
        return f"ShutdownFlag({'terminating' if self.is_set() else 'running'})"
