"""
Observability endpoints
=======================

GET /api/v1/health -- liveness plus a database round-trip
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import get_db
from rideshare.api.schemas import HealthResponse
from rideshare.infrastructure.database import ping

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await ping(db)
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        return JSONResponse(
            status_code=503,
            content=HealthResponse(status="degraded", database="unreachable").model_dump(),
        )
    return HealthResponse()
