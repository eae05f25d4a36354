"""
Notarium Backend: Health Check Route
======================================

What:  Liveness/readiness probe for Docker and load balancers.
How:   Runs SELECT 1 on the engine. The database is the only hard
       dependency, so it alone decides healthy (200) vs unhealthy (503).
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from notarium import __version__
from notarium import database
from notarium.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check():
    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        body = HealthResponse(status="unhealthy", database="disconnected", version=__version__)
        return JSONResponse(status_code=503, content=body.model_dump())

    return HealthResponse(status="healthy", database="connected", version=__version__)
