from __future__ import annotations
from dataclasses import dataclass
from fnmatch import fnmatch
from typing import Any, Iterable, Mapping, Optional, Tuple

@dataclass
class Verdict:
    selected: bool
    reason: str

def _patterns(raw: Optional[Iterable[str]], key: str) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"accounts_selector.{key} must be a list, got {type(raw).__name__}")
    return tuple(str(p).lower() for p in raw)

@dataclass(frozen=True)
class AccountsSelector:
    """
    Chooses which account updates reach the worker.
    Patterns are fnmatch globs over hex-encoded keys; "*" selects everything.
    An account is selected if its pubkey matches ``accounts`` OR its owner
    matches ``owners``.
    """
    accounts: Tuple[str, ...] = ("*",)
    owners: Tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "AccountsSelector":
        if raw is None:
            return cls()
        return cls(
            accounts=_patterns(raw.get("accounts"), "accounts"),
            owners=_patterns(raw.get("owners"), "owners"),
        )

    @property
    def selects_nothing(self) -> bool:
        return not self.accounts and not self.owners

    def decide(self, pubkey_hex: str, owner_hex: str) -> Verdict:
        pk = (pubkey_hex or "").lower()
        ow = (owner_hex or "").lower()
        for pat in self.accounts:
            if fnmatch(pk, pat):
                return Verdict(True, f"account:{pat}")
        for pat in self.owners:
            if fnmatch(ow, pat):
                return Verdict(True, f"owner:{pat}")
        return Verdict(False, "unselected")
