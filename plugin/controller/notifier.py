from __future__ import annotations
import functools
from typing import Any, Callable, Optional, TextIO, Union
import structlog

from core.hooks.events import (
    AccountEvent, ReplicaAccountInfo, ReplicaBlockInfo, ReplicaEntryInfo,
    ReplicaTransactionInfo, SlotStatus,
)
from core.worker.worker_loop import Handler
from plugin.config import PluginConfig, load_config
from plugin.controller.lifecycle import PluginRuntime
from plugin.controller.slot_state import SlotTracker
from plugin.errors import (
    AccountsUpdateError, CustomError, GeyserPluginError, SlotStatusUpdateError,
)
from plugin.interface import GeyserPlugin
from plugin.logging_config import configure_logging

log = structlog.get_logger()

PLUGIN_NAME = "GeyserPluginSample"

def host_callback(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Structured errors pass through; anything else is wrapped in CustomError."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except GeyserPluginError:
            raise
        except Exception as e:
            log.error("plugin.callback.error", callback=fn.__name__, err=str(e))
            raise CustomError(f"{fn.__name__} failed: {e}") from e
    return wrapper

def process_account(ev: AccountEvent) -> None:
    """Worker-side handling of one forwarded account update."""
    log.info("account.update", **ev.to_record())

class GeyserPluginSample(GeyserPlugin):
    """
    Host-facing callbacks. Account updates are summarized and queued for the
    background worker; every other notification is logged inline.
    """
    def __init__(self, handler: Optional[Handler] = None):
        self._handler: Handler = handler or process_account
        self.cfg = PluginConfig()
        self.slots = SlotTracker()
        self._runtime: Optional[PluginRuntime] = None

    @property
    def runtime(self) -> Optional[PluginRuntime]:
        return self._runtime

    @property
    def loaded(self) -> bool:
        return self._runtime is not None

    def name(self) -> str:
        return PLUGIN_NAME

    # --- lifecycle ---
    @host_callback
    def setup_logger(self, sink: Optional[TextIO], level: str) -> None:
        if not configure_logging(level, sink):
            log.debug("plugin.logger.already_installed")

    @host_callback
    def on_load(self, config_file: str, is_reload: bool = False) -> None:
        cfg = load_config(config_file)
        configure_logging(cfg.log_level)

        if self._runtime is not None:
            log.warning("plugin.load.replacing_runtime", is_reload=is_reload)
            self._stop_runtime()

        runtime = PluginRuntime(
            capacity=cfg.channel_capacity,
            poll_sec=cfg.poll_sec,
            policy=cfg.saturation_policy,
            handler=self._handler,
            send_timeout=cfg.send_timeout_sec,
            join_timeout=cfg.join_timeout_sec,
        )
        runtime.start()

        self.cfg = cfg
        self._runtime = runtime
        log.info("plugin.load", name=PLUGIN_NAME, config=config_file, is_reload=is_reload)

    def on_unload(self) -> None:
        try:
            self._stop_runtime()
        except Exception as e:
            log.error("plugin.unload.error", err=str(e))
            return
        log.info("plugin.unload", name=PLUGIN_NAME)

    def _stop_runtime(self) -> None:
        runtime, self._runtime = self._runtime, None
        if runtime is None:
            return
        if not runtime.teardown():
            log.warning("plugin.unload.worker_still_running")

    # --- notifications ---
    @host_callback
    def update_account(self, account: ReplicaAccountInfo, slot: int, is_startup: bool) -> None:
        if not isinstance(account, ReplicaAccountInfo):
            raise AccountsUpdateError(f"unsupported account payload: {type(account).__name__}")

        runtime = self._runtime
        if runtime is None:
            log.warning("account.update.not_loaded", slot=slot)
            return

        ev = AccountEvent.from_replica(account, slot, is_startup)
        verdict = self.cfg.accounts_selector.decide(ev.pubkey, ev.owner)
        if not verdict.selected:
            return
        if not runtime.submit(ev):
            log.warning("account.update.not_queued", slot=slot, pubkey=ev.pubkey)

    @host_callback
    def notify_end_of_startup(self) -> None:
        log.info("startup.end", slots=self.slots.snapshot().updates)

    @host_callback
    def update_slot_status(self, slot: int, parent: Optional[int], status: Union[SlotStatus, str]) -> None:
        try:
            st = SlotStatus.parse(status)
        except ValueError as e:
            raise SlotStatusUpdateError(str(e)) from e
        self.slots.update(slot, parent, st)
        log.info("slot.status", slot=slot, parent=parent, status=st.value)

    @host_callback
    def notify_transaction(self, transaction: ReplicaTransactionInfo, slot: int) -> None:
        log.info("transaction.notify", slot=slot, **transaction.to_record())

    @host_callback
    def notify_entry(self, entry: ReplicaEntryInfo) -> None:
        log.info("entry.notify", **entry.to_record())

    @host_callback
    def notify_block_metadata(self, blockinfo: ReplicaBlockInfo) -> None:
        log.info("block.metadata", **blockinfo.to_record())

    # --- capabilities ---
    def account_data_notifications_enabled(self) -> bool:
        return self.cfg.account_data_notifications

    def transaction_notifications_enabled(self) -> bool:
        return self.cfg.transaction_notifications

    def entry_notifications_enabled(self) -> bool:
        return self.cfg.entry_notifications

    def __repr__(self) -> str:
        return f"{PLUGIN_NAME}(loaded={self.loaded})"

def _create_plugin() -> GeyserPlugin:
    """Loader entry point: a fresh, unloaded plugin instance."""
    return GeyserPluginSample()
