"""Sync trigger and health endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

router = APIRouter()
logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"
# Every method except the OPTIONS preflight triggers a batch.
BATCH_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _cors_headers(request: Request) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": request.app.state.config.api.cors_allow_origin,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }


@router.options("/sync")
async def sync_preflight(request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok", headers=_cors_headers(request))


@router.api_route("/sync", methods=BATCH_METHODS)
async def run_sync(request: Request) -> JSONResponse:
    """Run a full batch and return the summary plus per-user results.

    Per-user failures still answer 200; only a batch that cannot start
    (e.g. the user list cannot be loaded) answers 500.
    """
    runner = request.app.state.runner
    if runner.is_running:
        logger.info("Sync requested while a batch is running; waiting for it to finish")
    try:
        result = await runner.run()
    except Exception as e:
        logger.exception("Sync error")
        return JSONResponse(
            {"success": False, "error": str(e)},
            status_code=500,
            headers=_cors_headers(request),
        )
    return JSONResponse(result.to_dict(), headers=_cors_headers(request))


@router.get("/health")
async def health(request: Request) -> dict:
    repo = request.app.state.repo
    runner = request.app.state.runner
    return {
        "status": "ok",
        "users": await repo.count_sync_users(),
        "sync_running": runner.is_running,
    }
