"""Exception types raised by cxresume."""

from __future__ import annotations


class CxResumeError(Exception):
    """Base class for all cxresume errors."""


class TransientFetchError(CxResumeError):
    """Reading metadata, a summary or a preview for one session failed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class StorageMutationError(CxResumeError):
    """A session file could not be removed from disk."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Could not delete {path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigError(CxResumeError):
    """The settings file exists but cannot be used."""


class LaunchError(CxResumeError):
    """The agent command could not be started."""
