"""
Stand-in for the validator side of the plugin boundary.

Resolves a plugin factory from a ``libpath`` ("module:attr"), drives its
lifecycle, and dispatches notifications the way the validator does:
capability queries are consulted first, and a disabled category is never
delivered at all.
"""
from __future__ import annotations
import importlib
import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TextIO
import structlog

from core.hooks.events import (
    EventType, ReplicaAccountInfo, ReplicaBlockInfo, ReplicaEntryInfo,
    ReplicaTransactionInfo, SlotStatus,
)
from plugin.config import DEFAULT_LIBPATH
from plugin.errors import GeyserPluginError
from plugin.interface import GeyserPlugin

log = structlog.get_logger()


def load_plugin(libpath: str = DEFAULT_LIBPATH) -> GeyserPlugin:
    module_name, _, attr = libpath.partition(":")
    if not module_name or not attr:
        raise ValueError(f"libpath must look like 'module:factory', got {libpath!r}")
    factory: Callable[[], GeyserPlugin] = getattr(importlib.import_module(module_name), attr)
    plugin = factory()
    if not isinstance(plugin, GeyserPlugin):
        raise TypeError(f"{libpath} did not return a GeyserPlugin (got {type(plugin).__name__})")
    return plugin


@dataclass
class DispatchReport:
    delivered: Counter = field(default_factory=Counter)
    suppressed: Counter = field(default_factory=Counter)
    errors: List[GeyserPluginError] = field(default_factory=list)


class HostHarness:
    """Drives one plugin instance; collects the structured errors it returns."""
    def __init__(self, plugin: GeyserPlugin):
        self.plugin = plugin
        self.report = DispatchReport()
        self.loaded = False

    def load(self, config_file: str, log_sink: Optional[TextIO] = None, log_level: str = "info") -> None:
        if log_sink is not None:
            self.plugin.setup_logger(log_sink, log_level)
        self.plugin.on_load(config_file)
        self.loaded = True
        log.info("host.plugin.loaded", name=self.plugin.name())

    def unload(self) -> None:
        if not self.loaded:
            return
        self.plugin.on_unload()
        self.loaded = False
        log.info("host.plugin.unloaded", name=self.plugin.name())

    def _deliver(self, etype: EventType, enabled: bool, call: Callable[[], None]) -> None:
        if not enabled:
            self.report.suppressed[etype] += 1
            return
        try:
            call()
        except GeyserPluginError as e:
            self.report.errors.append(e)
            log.warning("host.callback.failed", etype=etype.name, err=str(e))
        else:
            self.report.delivered[etype] += 1

    # --- dispatch ---
    def account(self, account: ReplicaAccountInfo, slot: int, is_startup: bool = False) -> None:
        self._deliver(
            EventType.ACCOUNT,
            self.plugin.account_data_notifications_enabled(),
            lambda: self.plugin.update_account(account, slot, is_startup),
        )

    def transaction(self, tx: ReplicaTransactionInfo, slot: int) -> None:
        self._deliver(
            EventType.TRANSACTION,
            self.plugin.transaction_notifications_enabled(),
            lambda: self.plugin.notify_transaction(tx, slot),
        )

    def entry(self, entry: ReplicaEntryInfo) -> None:
        self._deliver(
            EventType.ENTRY,
            self.plugin.entry_notifications_enabled(),
            lambda: self.plugin.notify_entry(entry),
        )

    def slot(self, slot: int, parent: Optional[int], status: SlotStatus) -> None:
        self._deliver(EventType.SLOT, True, lambda: self.plugin.update_slot_status(slot, parent, status))

    def block(self, info: ReplicaBlockInfo) -> None:
        self._deliver(EventType.BLOCK, True, lambda: self.plugin.notify_block_metadata(info))

    def end_of_startup(self) -> None:
        self._deliver(EventType.STARTUP, True, self.plugin.notify_end_of_startup)

    # --- synthetic workload ---
    def replay(self, slots: int, accounts_per_slot: int, seed: int = 0, first_slot: int = 1) -> DispatchReport:
        """
        Feed a deterministic fake ledger: startup accounts for the first slot,
        then per slot accounts + one tx + one entry + block meta + statuses.
        """
        rng = random.Random(seed)
        owners = [rng.randbytes(32) for _ in range(3)]

        def fake_account(write_version: int) -> ReplicaAccountInfo:
            return ReplicaAccountInfo(
                pubkey=rng.randbytes(32),
                lamports=rng.randrange(1, 10**12),
                owner=rng.choice(owners),
                data=rng.randbytes(rng.randrange(0, 165)),
                write_version=write_version,
            )

        wv = 0
        for _ in range(accounts_per_slot):
            wv += 1
            self.account(fake_account(wv), first_slot, is_startup=True)
        self.end_of_startup()

        for slot in range(first_slot, first_slot + slots):
            parent = slot - 1 if slot > 0 else None
            self.slot(slot, parent, SlotStatus.PROCESSED)
            for _ in range(accounts_per_slot):
                wv += 1
                self.account(fake_account(wv), slot)
            self.transaction(ReplicaTransactionInfo(signature=rng.randbytes(64), is_vote=rng.random() < 0.5), slot)
            self.entry(ReplicaEntryInfo(slot=slot, index=0, num_hashes=rng.randrange(1, 12500), hash=rng.randbytes(32)))
            self.block(ReplicaBlockInfo(slot=slot, blockhash=rng.randbytes(32).hex(), block_height=slot))
            self.slot(slot, parent, SlotStatus.CONFIRMED)
            if slot - 2 >= first_slot:
                self.slot(slot - 2, slot - 3 if slot - 3 >= 0 else None, SlotStatus.ROOTED)
        return self.report
