"""rootguard operation dispatcher

- Request payloads: one {"tool", "args"} object or an array of them
- Per-execution timeout (120s default, configurable)
- Batch calls fan out concurrently; one failing call never cancels the others
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Protocol

from rootguard.errors import SandboxError


class ToolResult:
    __slots__ = ("success", "output", "error", "kind")

    def __init__(self, success: bool, output: str, error: Optional[str] = None, kind: Optional[str] = None):
        self.success = success
        self.output = output
        self.error = error
        self.kind = kind

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "output": self.output, "error": self.error, "kind": self.kind}


def error_result(tool_name: str, err: Exception) -> ToolResult:
    """Render a failure. Sandbox errors keep their kind so denials stay visible as denials."""
    if isinstance(err, SandboxError):
        kind = err.kind
    elif isinstance(err, UnicodeError):
        kind = "IOFailure"
    elif isinstance(err, (ValueError, TypeError)):
        kind = "InvalidArguments"
    else:
        kind = "IOFailure"
    return ToolResult(success=False, output="", error=f"{tool_name} failed: {err}", kind=kind)


class Tool(Protocol):
    name: str
    description: str
    parameters: Dict[str, Dict[str, Any]]

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        ...


class ParsedToolCall:
    __slots__ = ("tool_name", "args")

    def __init__(self, tool_name: str, args: Dict[str, Any]):
        self.tool_name = tool_name
        self.args = args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParsedToolCall):
            return NotImplemented
        return self.tool_name == other.tool_name and self.args == other.args

    def __hash__(self) -> int:
        return hash((self.tool_name, json.dumps(self.args, sort_keys=True, default=str)))


DEFAULT_TOOL_TIMEOUT_S = 120


def calls_from_payload(parsed: Any) -> List[ParsedToolCall]:
    """Accept ``{"tool": ..., "args": {...}}`` or a list of them; drop malformed items."""
    if isinstance(parsed, list):
        return [
            ParsedToolCall(tool_name=item["tool"], args=item.get("args") or {})
            for item in parsed
            if isinstance(item, dict) and isinstance(item.get("tool"), str)
        ]
    if isinstance(parsed, dict) and isinstance(parsed.get("tool"), str):
        return [ParsedToolCall(tool_name=parsed["tool"], args=parsed.get("args") or {})]
    return []


class ToolRegistry:
    def __init__(self, tool_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S):
        self.tools: Dict[str, Tool] = {}
        self._tool_timeout_s = tool_timeout_s

    def register(self, tool: Tool) -> None:
        self.tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self.tools.get(name)

    def list(self) -> List[Tool]:
        return list(self.tools.values())

    async def execute_tool(self, tool_name: str, args: Dict[str, Any]) -> ToolResult:
        tool = self.get(tool_name)
        if not tool:
            return ToolResult(success=False, output="", error=f"Unknown tool: {tool_name}", kind="UnknownTool")
        if not isinstance(args, dict):
            return ToolResult(success=False, output="", error=f"Invalid arguments for {tool_name}: expected an object", kind="InvalidArguments")
        try:
            return await asyncio.wait_for(tool.execute(args), timeout=self._tool_timeout_s)
        except asyncio.TimeoutError:
            return ToolResult(
                success=False, output="",
                error=f'Tool "{tool_name}" timed out after {self._tool_timeout_s}s.',
                kind="Timeout",
            )
        except Exception as err:
            return error_result(tool_name, err)

    async def execute_tools_parallel(self, calls: List[ParsedToolCall]) -> List[ToolResult]:
        if not calls:
            return []
        if len(calls) == 1:
            return [await self.execute_tool(calls[0].tool_name, calls[0].args)]

        async def _safe_exec(call: ParsedToolCall) -> ToolResult:
            try:
                return await self.execute_tool(call.tool_name, call.args)
            except Exception as err:
                return error_result(call.tool_name, err)

        return list(await asyncio.gather(*[_safe_exec(c) for c in calls]))
