from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from rootguard.config.config import SandboxConfig
from rootguard.lifecycle.manager import LifecycleManager
from rootguard.sandbox.guard import PathSandbox
from rootguard.sandbox.local import LocalBackend
from rootguard.tools.filesystem import create_filesystem_tools
from rootguard.tools.lifecycle import create_lifecycle_tools
from rootguard.tools.registry import ToolRegistry


@dataclass
class FileService:
    """One sandbox instance: config, guard, backend, lifecycle and the tools over them."""

    config: SandboxConfig
    sandbox: PathSandbox
    backend: LocalBackend
    lifecycle: LifecycleManager
    tools: ToolRegistry


def create_file_service(
    config: SandboxConfig,
    clock: Optional[Callable[[], datetime]] = None,
) -> FileService:
    sandbox = PathSandbox(config)
    backend = LocalBackend(sandbox)
    lifecycle = LifecycleManager(config, sandbox, clock=clock)

    registry = ToolRegistry(tool_timeout_s=config.tool_timeout_s)
    for tool in create_filesystem_tools(backend):
        registry.register(tool)
    for tool in create_lifecycle_tools(backend, lifecycle):
        registry.register(tool)

    return FileService(
        config=config,
        sandbox=sandbox,
        backend=backend,
        lifecycle=lifecycle,
        tools=registry,
    )
