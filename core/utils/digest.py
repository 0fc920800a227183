# core/utils/digest.py
from __future__ import annotations
from typing import Optional
from blake3 import blake3


def data_digest(data: Optional[bytes], salt: Optional[bytes] = None) -> str:
    """
    blake3 hex digest of account data, optionally salted.
    Lets logs correlate identical payloads without ever carrying the bytes.
    """
    h = blake3()
    if salt:
        h.update(salt)
    h.update(data or b"")
    return h.hexdigest()


def short_hex(raw: Optional[bytes], keep: int = 8) -> str:
    if not raw:
        return ""
    hx = raw.hex()
    return hx if len(hx) <= keep * 2 else f"{hx[:keep]}..{hx[-keep:]}"
