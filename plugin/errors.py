"""Structured failures returned to the host from plugin callbacks."""

from __future__ import annotations


class GeyserPluginError(Exception):
    """Base for every error the plugin hands back across the host boundary."""

    code = "plugin-error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ConfigFileOpenError(GeyserPluginError):
    """The configuration file could not be opened."""

    code = "config-file-open"


class ConfigFileReadError(GeyserPluginError):
    """The configuration file was opened but is malformed or invalid."""

    code = "config-file-read"


class AccountsUpdateError(GeyserPluginError):
    """An account update could not be accepted."""

    code = "accounts-update"


class SlotStatusUpdateError(GeyserPluginError):
    """A slot status update could not be accepted."""

    code = "slot-status-update"


class RuntimeStartError(GeyserPluginError):
    """The background worker could not be brought up at load time."""

    code = "runtime-start"


class CustomError(GeyserPluginError):
    """Anything else, wrapped so no raw exception reaches the host."""

    code = "custom"
