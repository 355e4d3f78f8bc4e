"""
server.py — upload surface for batch analysis.

Runs an aiohttp web server; every request is one batch.

Endpoints:
  POST /api/analyze   multipart, repeated field "images"
                      200 {"success": true, "results": [...]}
                      400 {"error": "No images uploaded."}
                      500 {"error": "Failed to process images. <reason>"}
  GET  /health        plain-text health check

Only recognition failures reach the 500 branch; conversion, price and
condition problems come back as rows inside a normal 200 response.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from aiohttp import web

import config
from models import UploadedImage
from pipeline import ImagePipeline, get_pipeline

logger = logging.getLogger(__name__)

PIPELINE_KEY = web.AppKey("pipeline", ImagePipeline)


# ── Request handlers ──────────────────────────────────────────────────────────

async def handle_analyze(request: web.Request) -> web.Response:
    form = await request.post()
    uploads: list[UploadedImage] = []
    for field in form.getall("images", []):
        if not isinstance(field, web.FileField):
            continue
        # Large parts are spooled to disk
        data = await asyncio.to_thread(field.file.read)
        uploads.append(UploadedImage(
            data=data,
            file_name=field.filename or "upload",
            media_type=field.content_type or "application/octet-stream",
        ))
    if not uploads:
        return web.json_response({"error": "No images uploaded."}, status=400)

    pipeline = request.app[PIPELINE_KEY]
    try:
        results = await pipeline.analyse_batch(uploads)
    except Exception as exc:
        logger.error("Error processing images: %s", exc, exc_info=True)
        return web.json_response({"error": f"Failed to process images. {exc}"}, status=500)

    return web.json_response({"success": True, "results": [r.to_dict() for r in results]})


async def handle_health(request: web.Request) -> web.Response:
    recognizer = request.app[PIPELINE_KEY].recognizer
    return web.Response(text=f"OK — {recognizer.name}", content_type="text/plain")


# ── App factory ───────────────────────────────────────────────────────────────

def build_web_app(pipeline_factory: Callable[[], ImagePipeline] = get_pipeline) -> web.Application:
    app = web.Application(client_max_size=config.MAX_UPLOAD_MB * 1024 * 1024)
    app[PIPELINE_KEY] = pipeline_factory()
    app.router.add_post("/api/analyze", handle_analyze)
    app.router.add_get("/health",       handle_health)
    return app


async def start_server(
    host: str = config.SERVER_HOST,
    port: int = config.SERVER_PORT,
    app: Optional[web.Application] = None,
) -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    runner = web.AppRunner(app or build_web_app(), access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("📷 Upload server listening on %s:%d", host, port)
    return runner
