"""FileBackend — the filesystem primitives tools are allowed to call.

Every method takes Authorized Paths only (see ``PathSandbox.authorize``).

Implementations:
    LocalBackend — thin async wrapper over os/shutil (production)
"""

from __future__ import annotations

import errno
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from rootguard.errors import AlreadyExists, CrossDeviceMove, IOFailure, NotFound, SandboxError


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_directory: bool
    is_file: bool


@dataclass(frozen=True)
class FileStat:
    is_file: bool
    is_directory: bool
    size: int
    mtime_ms: float
    ctime_ms: float
    atime_ms: float
    permissions: str


def translate_os_error(err: OSError, path: Optional[str] = None) -> SandboxError:
    """Map an OSError onto the error taxonomy."""
    target = path or err.filename
    if isinstance(err, FileNotFoundError):
        return NotFound("No such file or directory", target)
    if isinstance(err, FileExistsError):
        return AlreadyExists("Destination already exists", target)
    if err.errno == errno.EXDEV:
        return CrossDeviceMove("Cannot rename across storage volumes", target)
    return IOFailure(err.strerror or str(err), target)


@runtime_checkable
class FileBackend(Protocol):
    @property
    def kind(self) -> str: ...

    # ── File I/O ────────────────────────────────────────────────────

    async def read_file(self, path: str) -> str: ...
    async def write_file(self, path: str, content: str) -> None: ...

    # ── Directory operations ────────────────────────────────────────

    async def read_dir(self, path: str) -> list[DirEntry]: ...
    async def mkdir(self, path: str) -> None: ...
    async def search(self, root: str, pattern: str, exclude: list[str] | None = None) -> list[str]: ...

    # ── Metadata ────────────────────────────────────────────────────

    async def exists(self, path: str) -> bool: ...
    async def stat(self, path: str) -> FileStat: ...

    # ── Move / copy (never overwrite) ───────────────────────────────

    async def move(self, source: str, destination: str) -> None: ...
    async def copy(self, source: str, destination: str) -> None: ...
