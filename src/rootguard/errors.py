"""Error taxonomy shared by the sandbox, the lifecycle manager and the tools.

Every failure the core reports is a ``SandboxError`` subclass. The class name
doubles as the machine-readable ``kind`` so callers can tell a policy denial
(``AccessDenied``) apart from an I/O problem (``IOFailure``).
"""

from __future__ import annotations

from typing import Optional


class SandboxError(Exception):
    def __init__(self, detail: str, path: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.path = path

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.detail}: {self.path}"
        return self.detail


class AccessDenied(SandboxError):
    """Path, or what it resolves to, is outside every allowed root."""


class ParentMissing(SandboxError):
    """Creation target whose parent directory does not exist."""


class NotFound(SandboxError):
    pass


class CrossDeviceMove(SandboxError):
    """Rename spans storage volumes. No copy+delete fallback is attempted."""


class AlreadyExists(SandboxError):
    pass


class IOFailure(SandboxError):
    pass


class CopyFailed(IOFailure):
    pass


class ConfigError(ValueError):
    """Start-up configuration is unusable; the process must not start."""
