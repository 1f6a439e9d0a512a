"""Health check endpoint with database and cache validation."""

import asyncio

import structlog
from fastapi import APIRouter, Request, Response, status
from sqlalchemy import text

logger = structlog.get_logger(__name__)
router = APIRouter(tags=["health"])


async def _check_database(request: Request) -> bool:
    try:
        async with request.app.state.session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
        return True
    except Exception as e:
        logger.error("health_check.database_failed", error=str(e), error_type=type(e).__name__)
        return False


async def _check_cache(request: Request) -> bool:
    pong = await request.app.state.cache_repository.ping()
    return pong.is_ok()


@router.get("/health")
async def health_check(request: Request, response: Response):
    """Health check endpoint.

    Returns:
        200: {"status": "healthy", "services": {...}} if database and cache respond
        503: {"status": "degraded", "services": {...}} otherwise
    """
    database_ok, cache_ok = await asyncio.gather(_check_database(request), _check_cache(request))

    services = {
        "database": "healthy" if database_ok else "unhealthy",
        "cache": "healthy" if cache_ok else "unhealthy",
    }
    if database_ok and cache_ok:
        logger.debug("health_check.success")
        return {"status": "healthy", "services": services}

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "degraded", "services": services}
