from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional, TextIO, Union

from core.hooks.events import (
    ReplicaAccountInfo, ReplicaBlockInfo, ReplicaEntryInfo, ReplicaTransactionInfo, SlotStatus,
)


class GeyserPlugin(ABC):
    """
    The fixed set of entry points a validator calls on a loaded plugin.

    Every callback runs on a host thread and must return quickly. Success is
    a normal return; failure is a raised ``GeyserPluginError``. Defaults
    below accept and ignore everything, with account data enabled and
    transactions/entries disabled.
    """

    @abstractmethod
    def name(self) -> str:
        ...

    def setup_logger(self, sink: Optional[TextIO], level: str) -> None:
        pass

    def on_load(self, config_file: str, is_reload: bool = False) -> None:
        pass

    def on_unload(self) -> None:
        pass

    def update_account(self, account: ReplicaAccountInfo, slot: int, is_startup: bool) -> None:
        pass

    def notify_end_of_startup(self) -> None:
        pass

    def update_slot_status(self, slot: int, parent: Optional[int], status: Union[SlotStatus, str]) -> None:
        pass

    def notify_transaction(self, transaction: ReplicaTransactionInfo, slot: int) -> None:
        pass

    def notify_entry(self, entry: ReplicaEntryInfo) -> None:
        pass

    def notify_block_metadata(self, blockinfo: ReplicaBlockInfo) -> None:
        pass

    def account_data_notifications_enabled(self) -> bool:
        return True

    def transaction_notifications_enabled(self) -> bool:
        return False

    def entry_notifications_enabled(self) -> bool:
        return False
