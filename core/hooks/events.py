from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Dict, Any, List, Union
import time
from datetime import datetime, timezone

from core.utils.digest import data_digest, short_hex

# --- timing helpers ---
def utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")

def mono_ts() -> float:
    # Monotonic high-res timestamp (immune to system clock changes)
    return time.perf_counter()

# --- core enums ---
class EventType(Enum):
    """Which host callback produced an event."""
    ACCOUNT = auto()
    SLOT = auto()
    TRANSACTION = auto()
    ENTRY = auto()
    BLOCK = auto()
    STARTUP = auto()

class SlotStatus(Enum):
    PROCESSED = "processed"
    ROOTED = "rooted"
    CONFIRMED = "confirmed"

    @classmethod
    def parse(cls, value: Union["SlotStatus", str]) -> "SlotStatus":
        """Accepts the enum itself, its value ("rooted") or its name ("Rooted")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
        raise ValueError(f"unknown slot status: {value!r}")

# --- host payloads (passed through opaquely; only summarized for logs) ---
@dataclass(frozen=True)
class ReplicaAccountInfo:
    pubkey: bytes
    lamports: int
    owner: bytes
    executable: bool = False
    rent_epoch: int = 0
    data: bytes = b""
    write_version: int = 0

    def to_record(self) -> Dict[str, Any]:
        return {
            "pubkey": self.pubkey.hex(),
            "owner": self.owner.hex(),
            "lamports": self.lamports,
            "executable": self.executable,
            "rent_epoch": self.rent_epoch,
            "data_len": len(self.data),
            "write_version": self.write_version,
        }

@dataclass(frozen=True)
class ReplicaTransactionInfo:
    signature: bytes
    is_vote: bool = False
    transaction: Any = None                 # opaque sanitized transaction
    transaction_status_meta: Any = None     # opaque status meta

    def to_record(self) -> Dict[str, Any]:
        return {"signature": short_hex(self.signature), "is_vote": self.is_vote}

@dataclass(frozen=True)
class ReplicaEntryInfo:
    slot: int
    index: int
    num_hashes: int
    hash: bytes = b""
    executed_transaction_count: int = 0

    def to_record(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "index": self.index,
            "num_hashes": self.num_hashes,
            "hash": short_hex(self.hash),
            "executed_transaction_count": self.executed_transaction_count,
        }

@dataclass(frozen=True)
class ReplicaBlockInfo:
    slot: int
    blockhash: str
    rewards: List[Any] = field(default_factory=list)
    block_time: Optional[int] = None        # unix seconds
    block_height: Optional[int] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "blockhash": self.blockhash,
            "rewards": len(self.rewards),
            "block_time": self.block_time,
            "block_height": self.block_height,
        }

# --- base event ---
@dataclass(frozen=True)
class BaseEvent:
    """Common shape for work items handed to the background worker."""
    etype: EventType = field(init=False)         # auto-set by subclasses
    t_utc: Optional[str] = None                  # lazy; materialized on serialize
    t_mono: float = field(default_factory=mono_ts)

    def to_record(self) -> Dict[str, Any]:
        t_utc_val = self.t_utc or utc_iso()
        return {
            "etype": self.etype.name,
            "t_utc": t_utc_val,
            "t_mono": self.t_mono,
        }

# --- account event ---
@dataclass(frozen=True)
class AccountEvent(BaseEvent):
    """Account update summary: keys + sizes + digest, never the raw data."""
    slot: int = 0
    pubkey: str = ""
    owner: str = ""
    lamports: int = 0
    data_len: int = 0
    data_digest: Optional[str] = None
    write_version: int = 0
    is_startup: bool = False

    def __post_init__(self):
        object.__setattr__(self, "etype", EventType.ACCOUNT)

    @classmethod
    def from_replica(cls, account: ReplicaAccountInfo, slot: int, is_startup: bool) -> "AccountEvent":
        return cls(
            slot=slot,
            pubkey=account.pubkey.hex(),
            owner=account.owner.hex(),
            lamports=account.lamports,
            data_len=len(account.data),
            data_digest=data_digest(account.data),
            write_version=account.write_version,
            is_startup=is_startup,
        )

    def to_record(self) -> Dict[str, Any]:
        base = super().to_record()
        base.update({
            "slot": self.slot,
            "pubkey": self.pubkey,
            "owner": self.owner,
            "lamports": self.lamports,
            "data_len": self.data_len,
            "data_digest": self.data_digest,
            "write_version": self.write_version,
            "is_startup": self.is_startup,
        })
        return base
