from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from dnssync.config import Settings
from dnssync.dependencies import get_app_settings, get_node_cache
from dnssync.metrics import metrics_content_type, render_metrics
from dnssync.services.node_cache import NodeCache

router = APIRouter()


@router.get("/health", tags=["system"])
async def health(cache: NodeCache = Depends(get_node_cache)) -> Dict[str, str]:
    now = datetime.now(timezone.utc).isoformat()
    return {
        "status": "ok" if cache.synced else "syncing",
        "time": now,
    }


@router.get("/version", tags=["system"])
async def version(settings: Settings = Depends(get_app_settings)) -> Dict[str, str]:
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "env": settings.app_env,
    }


@router.get("/metrics", include_in_schema=False)
async def metrics(settings: Settings = Depends(get_app_settings)) -> Response:
    if not settings.metrics_enabled:
        raise HTTPException(status_code=404, detail="Metrics are disabled.")
    return Response(content=render_metrics(), media_type=metrics_content_type())
