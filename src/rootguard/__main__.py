import sys
import argparse
import asyncio
import json

from rootguard.config.config import SandboxConfig, load_settings
from rootguard.errors import ConfigError
from rootguard.gateway.server import start_gateway
from rootguard.logging.diagnostic import configure_logging
from rootguard.service import create_file_service


async def run_single(service, tool: str, raw_args: str) -> int:
    try:
        args = json.loads(raw_args) if raw_args else {}
    except json.JSONDecodeError as e:
        sys.stderr.write(f"Invalid --args JSON: {e}\n")
        return 2

    result = await service.tools.execute_tool(tool, args)
    if result.success:
        print(result.output)
        return 0
    sys.stderr.write(f"[{result.kind}] {result.error}\n")
    if result.output:
        print(result.output)
    return 1


def main():
    settings = load_settings()

    parser = argparse.ArgumentParser(description="rootguard sandboxed file operations")
    parser.add_argument("directories", nargs="*", help="Allowed directories (overrides ROOTGUARD_ALLOWED_DIRS)")
    parser.add_argument("--host", type=str, default=settings.host, help="Gateway bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to run the gateway on")
    parser.add_argument("--tool", type=str, help="Run a single operation and exit")
    parser.add_argument("--args", type=str, default="", help="JSON arguments for --tool")
    parser.add_argument("--log-level", type=str.upper, default=settings.log_level.upper(),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    args = parser.parse_args()

    configure_logging(args.log_level)

    try:
        config = SandboxConfig.from_settings(settings, args.directories)
    except ConfigError as e:
        sys.stderr.write(f"Error: {e}\n")
        sys.exit(1)

    service = create_file_service(config)
    sys.stderr.write(f"rootguard | {len(config.allowed_roots)} allowed root(s) | {len(service.tools.list())} tools\n")

    if args.tool:
        sys.exit(asyncio.run(run_single(service, args.tool, args.args)))

    try:
        start_gateway(service, host=args.host, port=args.port)
    except KeyboardInterrupt:
        sys.stderr.write("\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
