from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import structlog

from core.utils.queueing import DEFAULT_CAPACITY, SaturationPolicy
from plugin.errors import ConfigFileOpenError, ConfigFileReadError
from plugin.logging_config import parse_level
from plugin.policy.selector import AccountsSelector

log = structlog.get_logger()

DEFAULT_LIBPATH = "plugin.controller.notifier:_create_plugin"

@dataclass(frozen=True)
class PluginConfig:
    # host loader
    libpath: str = DEFAULT_LIBPATH

    # work channel
    channel_capacity: int = DEFAULT_CAPACITY
    saturation_policy: SaturationPolicy = SaturationPolicy.BLOCK
    send_timeout_ms: Optional[int] = None    # None: block until there is room

    # worker
    poll_interval_ms: int = 500
    join_timeout_ms: Optional[int] = None    # None: join without a deadline

    log_level: str = "info"

    # capability flags the host consults before each callback
    account_data_notifications: bool = True
    transaction_notifications: bool = False
    entry_notifications: bool = False

    accounts_selector: AccountsSelector = field(default_factory=AccountsSelector)

    @property
    def poll_sec(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def send_timeout_sec(self) -> Optional[float]:
        return None if self.send_timeout_ms is None else self.send_timeout_ms / 1000.0

    @property
    def join_timeout_sec(self) -> Optional[float]:
        return None if self.join_timeout_ms is None else self.join_timeout_ms / 1000.0


_KNOWN_KEYS = {
    "libpath", "channel_capacity", "saturation_policy", "send_timeout_ms",
    "poll_interval_ms", "join_timeout_ms", "log_level",
    "account_data_notifications", "transaction_notifications",
    "entry_notifications", "accounts_selector",
}

def _int(raw: Dict[str, Any], key: str, default: Optional[int], minimum: int, optional: bool = False) -> Optional[int]:
    val = raw.get(key, default)
    if val is None and optional:
        return None
    if isinstance(val, bool) or not isinstance(val, int):
        raise ValueError(f"{key} must be an integer, got {val!r}")
    if val < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {val}")
    return val

def _bool(raw: Dict[str, Any], key: str, default: bool) -> bool:
    val = raw.get(key, default)
    if not isinstance(val, bool):
        raise ValueError(f"{key} must be true/false, got {val!r}")
    return val

def config_from_dict(raw: Dict[str, Any]) -> PluginConfig:
    """Validate a decoded config document. Raises ValueError on bad values."""
    if not isinstance(raw, dict):
        raise ValueError("config root must be a JSON object")

    unknown = sorted(set(raw) - _KNOWN_KEYS)
    if unknown:
        log.debug("config.unknown_keys", keys=unknown)

    d = PluginConfig()
    log_level = str(raw.get("log_level", d.log_level))
    parse_level(log_level)

    selector_raw = raw.get("accounts_selector")
    if selector_raw is not None and not isinstance(selector_raw, dict):
        raise ValueError("accounts_selector must be an object")

    return PluginConfig(
        libpath=str(raw.get("libpath", d.libpath)),
        channel_capacity=_int(raw, "channel_capacity", d.channel_capacity, 1),
        saturation_policy=SaturationPolicy.parse(raw.get("saturation_policy", d.saturation_policy)),
        send_timeout_ms=_int(raw, "send_timeout_ms", d.send_timeout_ms, 0, optional=True),
        poll_interval_ms=_int(raw, "poll_interval_ms", d.poll_interval_ms, 1),
        join_timeout_ms=_int(raw, "join_timeout_ms", d.join_timeout_ms, 0, optional=True),
        log_level=log_level,
        account_data_notifications=_bool(raw, "account_data_notifications", d.account_data_notifications),
        transaction_notifications=_bool(raw, "transaction_notifications", d.transaction_notifications),
        entry_notifications=_bool(raw, "entry_notifications", d.entry_notifications),
        accounts_selector=AccountsSelector.from_mapping(selector_raw),
    )

def load_config(path: str) -> PluginConfig:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigFileOpenError(f"cannot open {path}: {e}") from e

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigFileReadError(f"{path} is not valid JSON: {e}") from e

    try:
        cfg = config_from_dict(raw)
    except ValueError as e:
        raise ConfigFileReadError(f"{path}: {e}") from e

    log.info(
        "config.loaded",
        path=path,
        capacity=cfg.channel_capacity,
        policy=cfg.saturation_policy.value,
        poll_ms=cfg.poll_interval_ms,
    )
    return cfg
