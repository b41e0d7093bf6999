import json

from fastapi import FastAPI, Request, Response
import uvicorn

from rootguard.logging.diagnostic import logger
from rootguard.service import FileService
from rootguard.tools.registry import calls_from_payload

USAGE = 'Invalid JSON. Send { "tool": "...", "args": {...} } or an array of them'


def _json_error(message: str, status_code: int) -> Response:
    return Response(
        content=json.dumps({"success": False, "error": message}),
        status_code=status_code,
        media_type="application/json",
    )


def create_app(service: FileService) -> FastAPI:
    app = FastAPI(title="rootguard gateway")

    @app.get("/health")
    async def health():
        return {"status": "ok", "roots": len(service.config.allowed_roots)}

    @app.get("/roots")
    async def roots():
        return {"allowed_directories": list(service.config.allowed_roots), "trash": service.config.trash_dir}

    @app.get("/tools")
    async def tools():
        return {
            "tools": [
                {"name": t.name, "description": t.description, "parameters": t.parameters}
                for t in service.tools.list()
            ]
        }

    @app.post("/call")
    async def call(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            return _json_error(USAGE, 400)

        calls = calls_from_payload(payload)
        if not calls:
            return _json_error(USAGE, 400)

        for c in calls:
            logger.debug(f"[Gateway] tool={c.tool_name}")

        results = await service.tools.execute_tools_parallel(calls)
        if isinstance(payload, list):
            return [r.to_dict() for r in results]
        return results[0].to_dict()

    return app


def start_gateway(service: FileService, host: str = "127.0.0.1", port: int = 3000):
    app = create_app(service)
    print(f"\nrootguard gateway running on http://{host}:{port}")
    for root in service.config.allowed_roots:
        print(f"   Allowed: {root}")
    print(f"   Trash: {service.config.trash_dir}")
    print("   Endpoints: POST /call | GET /tools | GET /roots | GET /health\n")

    uvicorn.run(app, host=host, port=port, log_level="warning")
