"""Lifecycle Tools — soft delete, trash, backups and zip archives.

Backed by the LifecycleManager. Paths are authorized here, before the
manager ever sees them.
"""

from __future__ import annotations

from typing import Any, Dict, List

from rootguard.lifecycle.manager import LifecycleManager
from rootguard.sandbox.local import LocalBackend
from rootguard.tools.filesystem import require_str
from rootguard.tools.registry import Tool, ToolResult, error_result


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


class DeleteFileTool:
    name = "delete_file"
    description = "Move a file or directory to the trash. It can be restored with restore_file."
    parameters = {
        "path": {"type": "string", "description": "Path to delete", "required": True},
    }

    def __init__(self, sb: LocalBackend, lifecycle: LifecycleManager):
        self._sb = sb
        self._lifecycle = lifecycle

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            raw = require_str(args, "path")
            entry = await self._lifecycle.move_to_trash(self._sb.sandbox.authorize(raw))
            return ToolResult(success=True, output=f"Moved {raw} to trash as {entry.name}")
        except Exception as e:
            return error_result(self.name, e)


class RestoreFileTool:
    name = "restore_file"
    description = "Restore an entry from the trash to the given path. The path must not exist."
    parameters = {
        "name": {"type": "string", "description": "Trash entry name as shown by list_trash", "required": True},
        "path": {"type": "string", "description": "Where to restore the entry", "required": True},
    }

    def __init__(self, sb: LocalBackend, lifecycle: LifecycleManager):
        self._sb = sb
        self._lifecycle = lifecycle

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            name = require_str(args, "name")
            raw = require_str(args, "path")
            await self._lifecycle.restore(name, self._sb.sandbox.authorize(raw))
            return ToolResult(success=True, output=f"Restored {name} to {raw}")
        except Exception as e:
            return error_result(self.name, e)


class ListTrashTool:
    name = "list_trash"
    description = "List the entries currently in the trash."
    parameters: Dict[str, Dict[str, Any]] = {}

    def __init__(self, sb: LocalBackend, lifecycle: LifecycleManager):
        self._sb = sb
        self._lifecycle = lifecycle

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            entries = await self._lifecycle.list_trash()
            lines = [f"[DIR] {e.name}" if e.is_directory else f"[FILE] {e.name}" for e in entries]
            return ToolResult(success=True, output="\n".join(lines) or "Trash is empty")
        except Exception as e:
            return error_result(self.name, e)


class EmptyTrashTool:
    name = "empty_trash"
    description = "Permanently delete everything in the trash. Does nothing unless confirm is true."
    parameters = {
        "confirm": {"type": "boolean", "description": "Must be true to actually delete", "required": True},
    }

    def __init__(self, sb: LocalBackend, lifecycle: LifecycleManager):
        self._sb = sb
        self._lifecycle = lifecycle

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            result = await self._lifecycle.empty_trash(confirm=_as_bool(args.get("confirm", False)))
        except Exception as e:
            return error_result(self.name, e)

        if result.confirmation_required:
            return ToolResult(
                success=False, output="",
                error="empty_trash requires confirm=true; nothing was deleted",
                kind="ConfirmationRequired",
            )

        lines = [f"Permanently deleted {result.removed} item(s) from trash"]
        for failure in result.failures:
            lines.append(f"Failed to delete {failure.name}: {failure.error}")
        if result.failures:
            return ToolResult(
                success=False, output="\n".join(lines),
                error=f"{len(result.failures)} trash item(s) could not be deleted",
                kind="IOFailure",
            )
        return ToolResult(success=True, output=lines[0])


class BackupFileTool:
    name = "backup_file"
    description = "Copy a file into a directory as <name>.<timestamp>.backup. Never overwrites."
    parameters = {
        "path": {"type": "string", "description": "File or directory to back up", "required": True},
        "destination": {"type": "string", "description": "Existing directory to hold the backup", "required": True},
    }

    def __init__(self, sb: LocalBackend, lifecycle: LifecycleManager):
        self._sb = sb
        self._lifecycle = lifecycle

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            src = self._sb.sandbox.authorize(require_str(args, "path"))
            dst = self._sb.sandbox.authorize(require_str(args, "destination"))
            entry = await self._lifecycle.backup(src, dst)
            return ToolResult(success=True, output=f"Backup created at {entry.location}")
        except Exception as e:
            return error_result(self.name, e)


class RestoreBackupTool:
    name = "restore_backup"
    description = "Copy a backup file back to a destination, overwriting whatever is there."
    parameters = {
        "backup": {"type": "string", "description": "Path of the .backup file", "required": True},
        "destination": {"type": "string", "description": "Path to restore to", "required": True},
    }

    def __init__(self, sb: LocalBackend, lifecycle: LifecycleManager):
        self._sb = sb
        self._lifecycle = lifecycle

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            raw_dst = require_str(args, "destination")
            backup = self._sb.sandbox.authorize(require_str(args, "backup"))
            await self._lifecycle.restore_from_backup(backup, self._sb.sandbox.authorize(raw_dst))
            return ToolResult(success=True, output=f"Restored backup to {raw_dst}")
        except Exception as e:
            return error_result(self.name, e)


class ZipDirectoryTool:
    name = "zip_directory"
    description = "Compress a directory into a zip archive."
    parameters = {
        "path": {"type": "string", "description": "Directory to compress", "required": True},
        "destination": {"type": "string", "description": "Path of the zip file to write", "required": True},
    }

    def __init__(self, sb: LocalBackend, lifecycle: LifecycleManager):
        self._sb = sb
        self._lifecycle = lifecycle

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            raw_dst = require_str(args, "destination")
            src = self._sb.sandbox.authorize(require_str(args, "path"))
            result = await self._lifecycle.archive_directory(src, self._sb.sandbox.authorize(raw_dst))
        except Exception as e:
            return error_result(self.name, e)

        output = f"Successfully compressed directory to {raw_dst} ({result.entries} entries)"
        if result.skipped:
            output += "\nSkipped symlinks: " + ", ".join(result.skipped)
        return ToolResult(success=True, output=output)


class UnzipFileTool:
    name = "unzip_file"
    description = (
        "Extract a zip archive into a directory. Every entry is checked against the "
        "allowed directories; an archive with escaping entries is rejected."
    )
    parameters = {
        "source": {"type": "string", "description": "Zip file to extract", "required": True},
        "destination": {"type": "string", "description": "Directory to extract into", "required": True},
    }

    def __init__(self, sb: LocalBackend, lifecycle: LifecycleManager):
        self._sb = sb
        self._lifecycle = lifecycle

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            raw_dst = require_str(args, "destination")
            src = self._sb.sandbox.authorize(require_str(args, "source"))
            result = await self._lifecycle.extract_archive(src, self._sb.sandbox.authorize(raw_dst))
            return ToolResult(success=True, output=f"Successfully extracted {result.entries} entries to {raw_dst}")
        except Exception as e:
            return error_result(self.name, e)


# ─── Public API ──────────────────────────────────────────────────────────────

def create_lifecycle_tools(backend: LocalBackend, lifecycle: LifecycleManager) -> List[Tool]:
    """Create trash, backup and archive tools sharing one LifecycleManager."""
    return [
        DeleteFileTool(backend, lifecycle),
        RestoreFileTool(backend, lifecycle),
        ListTrashTool(backend, lifecycle),
        EmptyTrashTool(backend, lifecycle),
        BackupFileTool(backend, lifecycle),
        RestoreBackupTool(backend, lifecycle),
        ZipDirectoryTool(backend, lifecycle),
        UnzipFileTool(backend, lifecycle),
    ]
