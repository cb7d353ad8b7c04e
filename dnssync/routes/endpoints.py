from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from dnssync.dependencies import get_source
from dnssync.errors import SourceError
from dnssync.logger import get_logger
from dnssync.schemas.endpoints import Endpoint
from dnssync.sources.base import Source

router = APIRouter(prefix="/endpoints", tags=["endpoints"])
_logger = get_logger("api.endpoints")


@router.get("", response_model=List[Endpoint])
async def list_endpoints(source: Source = Depends(get_source)) -> List[Endpoint]:
    try:
        return await source.endpoints()
    except SourceError as exc:
        _logger.warning(
            "endpoints.unavailable",
            "Endpoint pipeline failed",
            action=exc.action,
            detail=exc.detail,
        )
        raise HTTPException(status_code=503, detail=str(exc)) from exc
