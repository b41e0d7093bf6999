"""Filesystem Tools — every path argument goes through the PathSandbox first.

Provides: read_file, read_multiple_files, write_file, create_directory,
list_directory, directory_tree, move_file, copy_file, search_files,
get_file_info, list_allowed_directories

move_file and copy_file refuse to overwrite an existing destination.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List

from rootguard.errors import NotFound, SandboxError
from rootguard.sandbox.local import LocalBackend
from rootguard.tools.registry import Tool, ToolResult, error_result


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    else:
        return f"{size / (1024 * 1024):.1f} MB"


def _format_ms(ms: float) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


def require_str(args: Dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Missing required string argument: {key}")
    return value


def require_str_list(args: Dict[str, Any], key: str) -> List[str]:
    value = args.get(key)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Argument {key} must be a list of strings")
    return value


# ─── Tool classes that accept a LocalBackend ────────────────────────────────

class ReadFileTool:
    name = "read_file"
    description = "Read the complete contents of a file as UTF-8 text."
    parameters = {
        "path": {"type": "string", "description": "Path to the file to read", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            path = self._sb.sandbox.authorize(require_str(args, "path"))
            return ToolResult(success=True, output=await self._sb.read_file(path))
        except Exception as e:
            return error_result(self.name, e)


class ReadMultipleFilesTool:
    name = "read_multiple_files"
    description = (
        "Read several files at once. Files are read concurrently; a file that "
        "cannot be read is reported inline and does not stop the others."
    )
    parameters = {
        "paths": {"type": "array", "description": "Paths of the files to read", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def _read_one(self, raw: str) -> str:
        try:
            path = self._sb.sandbox.authorize(raw)
            content = await self._sb.read_file(path)
            return f"{raw}:\n{content}\n"
        except Exception as e:
            kind = getattr(e, "kind", "IOFailure")
            return f"{raw}: Error - {kind}: {e}"

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            paths = require_str_list(args, "paths")
        except ValueError as e:
            return error_result(self.name, e)

        results = await asyncio.gather(*[self._read_one(p) for p in paths])
        return ToolResult(success=True, output="\n---\n".join(results))


class WriteFileTool:
    name = "write_file"
    description = "Create a new file or completely overwrite an existing file with new content."
    parameters = {
        "path": {"type": "string", "description": "Path to write the file", "required": True},
        "content": {"type": "string", "description": "Content to write to the file", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            raw = require_str(args, "path")
            content = str(args.get("content", ""))
            path = self._sb.sandbox.authorize(raw)
            await self._sb.write_file(path, content)
            return ToolResult(success=True, output=f"Successfully wrote to {raw}")
        except Exception as e:
            return error_result(self.name, e)


class CreateDirectoryTool:
    name = "create_directory"
    description = "Create a directory. Succeeds silently if it already exists."
    parameters = {
        "path": {"type": "string", "description": "Directory to create", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            raw = require_str(args, "path")
            path = self._sb.sandbox.authorize(raw)
            await self._sb.mkdir(path)
            return ToolResult(success=True, output=f"Successfully created directory {raw}")
        except Exception as e:
            return error_result(self.name, e)


class ListDirectoryTool:
    name = "list_directory"
    description = "List the entries of a directory, marking each as [DIR] or [FILE]."
    parameters = {
        "path": {"type": "string", "description": "Directory to list", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            path = self._sb.sandbox.authorize(require_str(args, "path"))
            entries = await self._sb.read_dir(path)
            lines = [f"[DIR] {e.name}" if e.is_directory else f"[FILE] {e.name}" for e in entries]
            return ToolResult(success=True, output="\n".join(lines) or "(empty directory)")
        except Exception as e:
            return error_result(self.name, e)


class DirectoryTreeTool:
    name = "directory_tree"
    description = "Recursive tree of a directory as JSON: [{name, type, children?}]."
    parameters = {
        "path": {"type": "string", "description": "Root directory", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            root = self._sb.sandbox.authorize(require_str(args, "path"))
            tree: List[Dict[str, Any]] = []
            pending = [(root, tree)]
            seen = {root}
            while pending:
                directory, children = pending.pop()
                for entry in await self._sb.read_dir(directory):
                    node: Dict[str, Any] = {
                        "name": entry.name,
                        "type": "directory" if entry.is_directory else "file",
                    }
                    if entry.is_directory:
                        try:
                            child = self._sb.sandbox.authorize(os.path.join(directory, entry.name))
                        except SandboxError:
                            child = None
                        # symlink loops and escapes are listed without children
                        if child is not None and child not in seen:
                            seen.add(child)
                            node["children"] = []
                            pending.append((child, node["children"]))
                    children.append(node)
            return ToolResult(success=True, output=json.dumps(tree, indent=2))
        except Exception as e:
            return error_result(self.name, e)


class MoveFileTool:
    name = "move_file"
    description = "Move or rename a file or directory. Fails if the destination already exists."
    parameters = {
        "source": {"type": "string", "description": "Path to move", "required": True},
        "destination": {"type": "string", "description": "New path", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            raw_src = require_str(args, "source")
            raw_dst = require_str(args, "destination")
            src = self._sb.sandbox.authorize(raw_src)
            dst = self._sb.sandbox.authorize(raw_dst)
            await self._sb.move(src, dst)
            return ToolResult(success=True, output=f"Successfully moved {raw_src} to {raw_dst}")
        except Exception as e:
            return error_result(self.name, e)


class CopyFileTool:
    name = "copy_file"
    description = "Copy a file or directory. Fails if the destination already exists."
    parameters = {
        "source": {"type": "string", "description": "Path to copy", "required": True},
        "destination": {"type": "string", "description": "Path of the copy", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            raw_src = require_str(args, "source")
            raw_dst = require_str(args, "destination")
            src = self._sb.sandbox.authorize(raw_src)
            dst = self._sb.sandbox.authorize(raw_dst)
            await self._sb.copy(src, dst)
            return ToolResult(success=True, output=f"Successfully copied {raw_src} to {raw_dst}")
        except Exception as e:
            return error_result(self.name, e)


class SearchFilesTool:
    name = "search_files"
    description = (
        "Recursively search for files and directories whose name contains a pattern "
        "(case-insensitive). Supports glob exclude patterns."
    )
    parameters = {
        "path": {"type": "string", "description": "Directory to search from", "required": True},
        "pattern": {"type": "string", "description": "Substring to match in names", "required": True},
        "exclude_patterns": {"type": "array", "description": "Glob patterns to skip (e.g. '*.log')"},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            root = self._sb.sandbox.authorize(require_str(args, "path"))
            pattern = require_str(args, "pattern")
            exclude = require_str_list(args, "exclude_patterns") if "exclude_patterns" in args else []
            results = await self._sb.search(root, pattern, exclude)
            return ToolResult(success=True, output="\n".join(results) if results else "No matches found")
        except Exception as e:
            return error_result(self.name, e)


class GetFileInfoTool:
    name = "get_file_info"
    description = "Size, timestamps, type and permissions of a file or directory."
    parameters = {
        "path": {"type": "string", "description": "Path to inspect", "required": True},
    }

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            path = self._sb.sandbox.authorize(require_str(args, "path"))
            if not await self._sb.exists(path):
                raise NotFound("No such file or directory", path)
            s = await self._sb.stat(path)
            lines = [
                f"size: {s.size} ({_format_size(s.size)})",
                f"created: {_format_ms(s.ctime_ms)}",
                f"modified: {_format_ms(s.mtime_ms)}",
                f"accessed: {_format_ms(s.atime_ms)}",
                f"isDirectory: {str(s.is_directory).lower()}",
                f"isFile: {str(s.is_file).lower()}",
                f"permissions: {s.permissions}",
            ]
            return ToolResult(success=True, output="\n".join(lines))
        except Exception as e:
            return error_result(self.name, e)


class ListAllowedDirectoriesTool:
    name = "list_allowed_directories"
    description = "List the directories this server is allowed to access."
    parameters: Dict[str, Dict[str, Any]] = {}

    def __init__(self, sb: LocalBackend):
        self._sb = sb

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        roots = self._sb.sandbox.allowed_roots
        return ToolResult(success=True, output="Allowed directories:\n" + "\n".join(roots))


# ─── Public API ──────────────────────────────────────────────────────────────

def create_filesystem_tools(backend: LocalBackend) -> List[Tool]:
    """Create filesystem tools backed by a specific LocalBackend."""
    return [
        ReadFileTool(backend),
        ReadMultipleFilesTool(backend),
        WriteFileTool(backend),
        CreateDirectoryTool(backend),
        ListDirectoryTool(backend),
        DirectoryTreeTool(backend),
        MoveFileTool(backend),
        CopyFileTool(backend),
        SearchFilesTool(backend),
        GetFileInfoTool(backend),
        ListAllowedDirectoriesTool(backend),
    ]
