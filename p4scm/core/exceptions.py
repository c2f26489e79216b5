"""
Exception types raised by the SCM core.
"""
from typing import Optional


class P4ScmError(Exception):
    """Base class for all p4scm errors"""


class RemoteError(P4ScmError):
    """Raised when the versioning server rejects a command or does not answer in time"""

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message)
        self.command = command

    def __str__(self) -> str:
        if self.command:
            return f"{self.command}: {super().__str__()}"
        return super().__str__()


class CheckoutError(P4ScmError):
    """Raised when a workspace could not be synchronized for a build"""


class MissingEnvironmentError(P4ScmError):
    """Raised when a required environment value (e.g. the client name) is unavailable"""


class ConfigError(P4ScmError):
    """Raised for invalid job or global configuration"""


class StoreError(P4ScmError):
    """Raised when persisted build state cannot be read back for an update"""
