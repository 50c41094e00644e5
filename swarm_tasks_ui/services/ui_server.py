import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles

logger = logging.getLogger(__name__)

RUNTIME_CONFIG_GLOBAL = "__SWARM_TASKS_UI__"

# Headers that describe the client<->proxy hop, not the request itself.
_HOP_HEADERS = {
    "host",
    "connection",
    "content-length",
    "transfer-encoding",
    "accept-encoding",
    "keep-alive",
}

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


class UiBundleMissing(RuntimeError):
    pass


def inject_runtime_config(html: str, config: Dict[str, Any]) -> str:
    """
    Put a <script> defining window.__SWARM_TASKS_UI__ just before </head>,
    so the bundled UI knows it is running behind this server.
    """
    script = f"<script>window.{RUNTIME_CONFIG_GLOBAL} = {json.dumps(config)};</script>"
    if "</head>" in html:
        return html.replace("</head>", f"{script}</head>", 1)
    return script + html


def create_ui_app(
    dist_dir: Path,
    api_url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Serve a built UI bundle and forward /api/* to the backend at `api_url`.
    """
    dist_dir = Path(dist_dir)
    index_file = dist_dir / "index.html"
    if not index_file.is_file():
        raise UiBundleMissing(f"UI not built: {index_file} does not exist")

    runtime_config = {"apiBase": "/api", "bundled": True}

    app = FastAPI(title="Swarm Tasks UI", docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/api/{path:path}", methods=PROXY_METHODS)
    async def proxy_api(path: str, request: Request):
        headers = {k: v for k, v in request.headers.items() if k.lower() not in _HOP_HEADERS}
        body = await request.body()

        async with httpx.AsyncClient(base_url=api_url, transport=transport, timeout=30.0) as client:
            try:
                upstream = await client.request(
                    request.method,
                    f"/api/{path}",
                    params=request.query_params.multi_items() or None,
                    content=body or None,
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                logger.warning("Proxy to %s failed: %s", api_url, exc)
                return JSONResponse(status_code=500, content={"error": str(exc)})

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            media_type=upstream.headers.get("content-type"),
        )

    @app.get("/", response_class=HTMLResponse)
    @app.get("/index.html", response_class=HTMLResponse)
    def index():
        html = index_file.read_text(encoding="utf-8")
        return HTMLResponse(inject_runtime_config(html, runtime_config))

    app.mount("/", StaticFiles(directory=str(dist_dir)), name="ui")
    return app


def run_ui_server(dist_dir: Path, api_url: str, port: int, host: str = "127.0.0.1") -> None:
    import uvicorn

    app = create_ui_app(dist_dir, api_url)
    logger.info("UI server running on http://localhost:%s", port)
    uvicorn.run(app, host=host, port=port, log_level="warning")
