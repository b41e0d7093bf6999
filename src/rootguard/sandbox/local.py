"""LocalBackend — FileBackend backed by the real filesystem."""

from __future__ import annotations

import asyncio
import fnmatch
import functools
import os
import shutil
import stat as stat_mod
from collections import deque
from pathlib import Path
from typing import Any, Callable

from rootguard.errors import AlreadyExists, CopyFailed, IOFailure, NotFound, SandboxError
from rootguard.sandbox.backend import DirEntry, FileStat, translate_os_error
from rootguard.sandbox.guard import PathSandbox


async def run_blocking(fn: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking filesystem call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args))


class LocalBackend:
    kind = "local"

    def __init__(self, sandbox: PathSandbox):
        self._sandbox = sandbox

    @property
    def sandbox(self) -> PathSandbox:
        return self._sandbox

    # ── File I/O ────────────────────────────────────────────────────

    async def read_file(self, path: str) -> str:
        try:
            return await run_blocking(Path(path).read_text, "utf-8")
        except UnicodeDecodeError as err:
            raise IOFailure("File is not valid UTF-8 text", path) from err
        except OSError as err:
            raise translate_os_error(err, path) from err

    async def write_file(self, path: str, content: str) -> None:
        try:
            await run_blocking(Path(path).write_text, content, "utf-8")
        except OSError as err:
            raise translate_os_error(err, path) from err

    # ── Directory operations ────────────────────────────────────────

    async def read_dir(self, path: str) -> list[DirEntry]:
        def _list() -> list[DirEntry]:
            with os.scandir(path) as it:
                entries = [
                    DirEntry(name=e.name, is_directory=e.is_dir(), is_file=e.is_file())
                    for e in it
                ]
            return sorted(entries, key=lambda e: e.name)

        try:
            return await run_blocking(_list)
        except OSError as err:
            raise translate_os_error(err, path) from err

    async def mkdir(self, path: str) -> None:
        try:
            await run_blocking(functools.partial(os.makedirs, path, exist_ok=True))
        except OSError as err:
            raise translate_os_error(err, path) from err

    async def search(self, root: str, pattern: str, exclude: list[str] | None = None) -> list[str]:
        """Case-insensitive name search under ``root``.

        Walks with an explicit worklist. Entries that do not authorize (for
        example symlinks pointing out of the sandbox) are skipped, and
        symlinked directories are never descended into.
        """
        needle = pattern.lower()
        excludes = exclude or []

        def _walk() -> list[str]:
            results: list[str] = []
            pending = deque([root])
            while pending:
                current = pending.popleft()
                try:
                    with os.scandir(current) as it:
                        entries = sorted(it, key=lambda e: e.name)
                except OSError:
                    continue

                for entry in entries:
                    try:
                        self._sandbox.authorize(entry.path)
                    except SandboxError:
                        continue

                    rel = os.path.relpath(entry.path, root)
                    if any(
                        fnmatch.fnmatch(rel, pat) or fnmatch.fnmatch(entry.name, pat)
                        for pat in excludes
                    ):
                        continue

                    if needle in entry.name.lower():
                        results.append(entry.path)

                    if entry.is_dir(follow_symlinks=False):
                        pending.append(entry.path)
            return results

        return await run_blocking(_walk)

    # ── Metadata ────────────────────────────────────────────────────

    async def exists(self, path: str) -> bool:
        return await run_blocking(os.path.lexists, path)

    async def stat(self, path: str) -> FileStat:
        try:
            s = await run_blocking(os.stat, path)
        except OSError as err:
            raise translate_os_error(err, path) from err
        return FileStat(
            is_file=stat_mod.S_ISREG(s.st_mode),
            is_directory=stat_mod.S_ISDIR(s.st_mode),
            size=s.st_size,
            mtime_ms=s.st_mtime * 1000,
            ctime_ms=s.st_ctime * 1000,
            atime_ms=s.st_atime * 1000,
            permissions=oct(stat_mod.S_IMODE(s.st_mode))[2:],
        )

    # ── Move / copy ─────────────────────────────────────────────────

    async def move(self, source: str, destination: str) -> None:
        def _move() -> None:
            if not os.path.lexists(source):
                raise NotFound("Source does not exist", source)
            self._sandbox.ensure_removable(source)
            if os.path.lexists(destination):
                raise AlreadyExists("Destination already exists", destination)
            os.rename(source, destination)

        try:
            await run_blocking(_move)
        except OSError as err:
            raise translate_os_error(err, source) from err

    async def copy(self, source: str, destination: str) -> None:
        def _copy() -> None:
            if not os.path.lexists(source):
                raise NotFound("Source does not exist", source)
            if os.path.lexists(destination):
                raise AlreadyExists("Destination already exists", destination)
            if os.path.isdir(source):
                shutil.copytree(source, destination, symlinks=True)
            else:
                shutil.copy2(source, destination)

        try:
            await run_blocking(_copy)
        except OSError as err:
            raise CopyFailed(str(err), source) from err
