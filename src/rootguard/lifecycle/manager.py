"""LifecycleManager — soft delete, timestamped backups, directory archives.

Operates only on Authorized Paths. The one place it authorizes paths itself
is archive extraction, because entry names inside an archive are as
untrusted as any caller argument.

File states:
    Present ──move_to_trash──▶ InTrash ──restore──▶ Present
                               InTrash ──empty_trash──▶ Gone
    Present ──backup──▶ Present (+ independent .backup copy)
            ──restore_from_backup──▶ Present (overwritten)

Naming:
    trash   <trash_dir>/<basename>.<ts>
    backup  <dest_dir>/<basename>.<ts>.backup
    ts      ISO-8601 UTC, milliseconds, ':' and '.' replaced by '-'
            e.g. 2024-05-01T12-30-45-123Z
"""

from __future__ import annotations

import asyncio
import os
import shutil
import zipfile
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Tuple

from rootguard.config.config import SandboxConfig
from rootguard.errors import AccessDenied, AlreadyExists, CopyFailed, IOFailure, NotFound, SandboxError
from rootguard.logging.diagnostic import (
    audit_logger,
    log_archive,
    log_backup,
    log_trash_emptied,
    log_trash_move,
    log_trash_restore,
)
from rootguard.sandbox.backend import DirEntry, translate_os_error
from rootguard.sandbox.guard import AuthorizedPath, PathSandbox
from rootguard.sandbox.local import run_blocking

BACKUP_SUFFIX = ".backup"


def file_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp made safe for use in a file name."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def _base_name(path: str) -> str:
    return os.path.basename(os.path.normpath(path))


def _is_within(path: str, parent: str) -> bool:
    path = os.path.normpath(path)
    parent = os.path.normpath(parent)
    return path == parent or path.startswith(parent.rstrip(os.sep) + os.sep)


def _remove_path(path: str) -> None:
    if os.path.islink(path) or not os.path.isdir(path):
        os.unlink(path)
    else:
        shutil.rmtree(path)


@dataclass(frozen=True)
class TrashEntry:
    original_name: str
    timestamp: str
    location: str

    @property
    def name(self) -> str:
        return os.path.basename(self.location)


@dataclass(frozen=True)
class BackupEntry:
    original_name: str
    timestamp: str
    location: str


@dataclass(frozen=True)
class TrashFailure:
    name: str
    error: str


@dataclass(frozen=True)
class EmptyTrashResult:
    confirmed: bool
    removed: int
    failures: Tuple[TrashFailure, ...] = ()

    @property
    def confirmation_required(self) -> bool:
        return not self.confirmed


@dataclass(frozen=True)
class ArchiveResult:
    path: str
    entries: int
    skipped: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractResult:
    destination: str
    entries: int


class LifecycleManager:
    def __init__(
        self,
        config: SandboxConfig,
        sandbox: PathSandbox,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._config = config
        self._sandbox = sandbox
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._trash_dir = config.trash_dir
        os.makedirs(self._trash_dir, exist_ok=True)

    @property
    def trash_dir(self) -> str:
        return self._trash_dir

    def _timestamp(self) -> str:
        return file_timestamp(self._clock())

    # ── Trash ───────────────────────────────────────────────────────

    async def move_to_trash(self, path: AuthorizedPath) -> TrashEntry:
        name = _base_name(path)
        ts = self._timestamp()
        location = os.path.join(self._trash_dir, f"{name}.{ts}")

        def _move() -> None:
            if not os.path.lexists(path):
                raise NotFound("Nothing to delete", path)
            self._sandbox.ensure_removable(path)
            if not os.path.isdir(self._trash_dir):
                raise NotFound("Trash directory is missing", self._trash_dir)
            if os.path.lexists(location):
                raise AlreadyExists("Trash entry already exists", location)
            os.rename(path, location)

        try:
            await run_blocking(_move)
        except OSError as err:
            raise translate_os_error(err, path) from err

        log_trash_move(path, location)
        return TrashEntry(original_name=name, timestamp=ts, location=location)

    def _trash_location(self, trash_name: str) -> str:
        if (
            not trash_name
            or trash_name in (".", "..")
            or "/" in trash_name
            or os.sep in trash_name
            or "\x00" in trash_name
        ):
            audit_logger.deny(f"Invalid trash entry name: {trash_name!r}")
            raise AccessDenied("Trash entry name must be a plain file name", trash_name)
        return os.path.join(self._trash_dir, trash_name)

    async def restore(self, trash_name: str, target: AuthorizedPath) -> AuthorizedPath:
        location = self._trash_location(trash_name)

        def _restore() -> None:
            if not os.path.lexists(location):
                raise NotFound("No such trash entry", trash_name)
            if os.path.lexists(target):
                raise AlreadyExists("Restore target already exists", target)
            os.rename(location, target)

        try:
            await run_blocking(_restore)
        except OSError as err:
            raise translate_os_error(err, target) from err

        log_trash_restore(location, target)
        return target

    def iter_trash(self) -> Iterator[DirEntry]:
        """Lazy, one-shot listing of the trash directory; every call re-reads it."""
        with os.scandir(self._trash_dir) as it:
            for entry in it:
                yield DirEntry(
                    name=entry.name,
                    is_directory=entry.is_dir(follow_symlinks=False),
                    is_file=entry.is_file(follow_symlinks=False),
                )

    async def list_trash(self) -> list[DirEntry]:
        try:
            return await run_blocking(lambda: sorted(self.iter_trash(), key=lambda e: e.name))
        except OSError as err:
            raise translate_os_error(err, self._trash_dir) from err

    async def empty_trash(self, confirm: bool = False) -> EmptyTrashResult:
        if not confirm:
            return EmptyTrashResult(confirmed=False, removed=0)

        entries = await self.list_trash()

        async def _purge(name: str) -> Optional[TrashFailure]:
            try:
                await run_blocking(_remove_path, os.path.join(self._trash_dir, name))
            except OSError as err:
                return TrashFailure(name=name, error=err.strerror or str(err))
            return None

        results = await asyncio.gather(*[_purge(e.name) for e in entries])
        failures = tuple(r for r in results if r is not None)
        removed = len(entries) - len(failures)

        log_trash_emptied(removed, len(failures))
        return EmptyTrashResult(confirmed=True, removed=removed, failures=failures)

    # ── Backups ─────────────────────────────────────────────────────

    async def backup(self, source: AuthorizedPath, destination_dir: AuthorizedPath) -> BackupEntry:
        name = _base_name(source)
        ts = self._timestamp()
        location = os.path.join(destination_dir, f"{name}.{ts}{BACKUP_SUFFIX}")

        def _backup() -> None:
            if not os.path.lexists(source):
                raise NotFound("Backup source does not exist", source)
            if not os.path.isdir(destination_dir):
                raise NotFound("Backup directory does not exist", destination_dir)
            if os.path.lexists(location):
                raise AlreadyExists("Backup already exists", location)
            try:
                if os.path.isdir(source):
                    if _is_within(destination_dir, source):
                        raise IOFailure("Cannot back up a directory into itself", destination_dir)
                    shutil.copytree(source, location, symlinks=True)
                else:
                    shutil.copy2(source, location)
            except OSError as err:
                raise CopyFailed(err.strerror or str(err), source) from err

        await run_blocking(_backup)
        log_backup(source, location)
        return BackupEntry(original_name=name, timestamp=ts, location=location)

    async def restore_from_backup(self, backup_path: AuthorizedPath, destination: AuthorizedPath) -> AuthorizedPath:
        """Copy a backup over ``destination``. Unlike move/copy, overwriting is expected."""

        def _restore() -> None:
            if not os.path.lexists(backup_path):
                raise NotFound("Backup does not exist", backup_path)
            try:
                if os.path.isdir(backup_path):
                    if os.path.lexists(destination) and not os.path.isdir(destination):
                        raise IOFailure("Cannot restore a directory backup over a file", destination)
                    shutil.copytree(backup_path, destination, symlinks=True, dirs_exist_ok=True)
                else:
                    if os.path.isdir(destination):
                        raise IOFailure("Restore destination is a directory", destination)
                    shutil.copy2(backup_path, destination)
            except OSError as err:
                raise CopyFailed(err.strerror or str(err), backup_path) from err

        await run_blocking(_restore)
        audit_logger.info(f"Restored backup: {backup_path} -> {destination}")
        return destination

    # ── Archives ────────────────────────────────────────────────────

    async def archive_directory(self, source_dir: AuthorizedPath, destination: AuthorizedPath) -> ArchiveResult:
        def _archive() -> ArchiveResult:
            if not os.path.isdir(source_dir):
                raise NotFound("Directory to archive does not exist", source_dir)

            count = 0
            skipped: list[str] = []
            with zipfile.ZipFile(destination, "w", zipfile.ZIP_DEFLATED) as zf:
                archive_real = os.path.realpath(destination)
                pending = deque([source_dir])
                while pending:
                    current = pending.popleft()
                    with os.scandir(current) as it:
                        children = sorted(it, key=lambda e: e.name)

                    for child in children:
                        rel = os.path.relpath(child.path, source_dir).replace(os.sep, "/")
                        if child.is_symlink():
                            try:
                                real = self._sandbox.authorize(child.path)
                            except SandboxError:
                                skipped.append(rel)
                                continue
                            if os.path.isdir(real):
                                skipped.append(rel)
                                continue
                            zf.write(real, arcname=rel)
                            count += 1
                        elif child.is_dir(follow_symlinks=False):
                            zf.write(child.path, arcname=rel + "/")
                            count += 1
                            pending.append(child.path)
                        elif os.path.realpath(child.path) != archive_real:
                            zf.write(child.path, arcname=rel)
                            count += 1
            return ArchiveResult(path=destination, entries=count, skipped=tuple(skipped))

        try:
            result = await run_blocking(_archive)
        except OSError as err:
            raise translate_os_error(err, source_dir) from err

        for rel in result.skipped:
            audit_logger.warn(f"Archive skipped symlink: {rel}")
        log_archive("Archived", source_dir, destination, result.entries)
        return result

    def _plan_extraction(
        self, zf: zipfile.ZipFile, archive: str, destination: str
    ) -> list[tuple[zipfile.ZipInfo, str]]:
        archive_real = os.path.realpath(archive)
        plan: list[tuple[zipfile.ZipInfo, str]] = []
        for info in zf.infolist():
            name = info.filename
            # splitdrive only reports drives on Windows, where "C:x" is not relative
            if "\x00" in name or name.startswith(("/", "\\")) or os.path.splitdrive(name)[0]:
                audit_logger.deny(f"Archive entry with absolute name: {name!r}")
                raise AccessDenied("Archive entry has an absolute path", name)

            parts = [p for p in name.replace("\\", "/").split("/") if p]
            target = os.path.normpath(os.path.join(destination, *parts)) if parts else destination
            if not _is_within(target, destination):
                audit_logger.deny(f"Archive entry escapes destination: {name!r}")
                raise AccessDenied("Archive entry escapes the destination directory", name)
            if os.path.realpath(target) == archive_real:
                audit_logger.deny(f"Archive entry would overwrite the archive: {name!r}")
                raise IOFailure("Archive entry would overwrite the archive being extracted", name)
            if target != os.path.normpath(destination):
                plan.append((info, target))
        return plan

    def _ensure_directory(self, path: str) -> None:
        """Create ``path`` one component at a time, authorizing each step."""
        missing: list[str] = []
        current = path
        while not os.path.lexists(current):
            missing.append(current)
            current = os.path.dirname(current)

        existing = self._sandbox.authorize(current)
        if not os.path.isdir(existing):
            raise IOFailure("Not a directory", current)
        for component in reversed(missing):
            os.mkdir(self._sandbox.authorize(component))

    async def extract_archive(self, archive: AuthorizedPath, destination: AuthorizedPath) -> ExtractResult:
        def _extract() -> ExtractResult:
            if not os.path.isfile(archive):
                raise NotFound("Archive does not exist", archive)

            with zipfile.ZipFile(archive) as zf:
                # Validate every entry before writing anything
                pending = deque(self._plan_extraction(zf, archive, destination))
                self._ensure_directory(destination)

                count = 0
                while pending:
                    info, target = pending.popleft()
                    if info.is_dir():
                        self._ensure_directory(target)
                    else:
                        self._ensure_directory(os.path.dirname(target))
                        authorized = self._sandbox.authorize(target)
                        with zf.open(info) as src, open(authorized, "wb") as out:
                            shutil.copyfileobj(src, out)
                    count += 1
            return ExtractResult(destination=destination, entries=count)

        try:
            result = await run_blocking(_extract)
        except zipfile.BadZipFile as err:
            raise IOFailure(f"Not a valid zip archive ({err})", archive) from err
        except OSError as err:
            raise translate_os_error(err, archive) from err

        log_archive("Extracted", archive, destination, result.entries)
        return result
