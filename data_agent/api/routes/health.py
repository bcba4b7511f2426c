"""
Health Check Routes

FastAPI endpoints for service health and readiness checks.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from data_agent import __version__
from data_agent.models.api import HealthResponse, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Returns 200 OK if the service is running.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness() -> JSONResponse:
    """
    Readiness check for service dependencies.

    Checks:
    - Pipeline is initialized
    - Database connection is active
    - Schema snapshot is loaded

    Returns:
        200 OK if all checks pass
        503 Service Unavailable if any check fails
    """
    from data_agent.api.main import app_state

    pipeline = app_state["pipeline"]
    checks: dict[str, bool] = {"pipeline": pipeline is not None}
    if pipeline is None:
        logger.warning("Pipeline check: FAILED (not initialized)")

    # Check database connection
    try:
        if pipeline is not None:
            await pipeline.connector.execute("SELECT 1")
            checks["database"] = True
            logger.debug("Database check: OK")
        else:
            checks["database"] = False
    except Exception as e:
        checks["database"] = False
        logger.warning(f"Database check: FAILED ({e})")

    snapshot = pipeline.catalog.snapshot if pipeline is not None else None
    checks["schema"] = snapshot is not None
    if snapshot is not None:
        logger.debug(f"Schema check: OK ({len(snapshot.tables)} tables)")

    all_ready = all(checks.values())
    response = ReadinessResponse(
        status="ready" if all_ready else "not_ready",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )

    if all_ready:
        return JSONResponse(status_code=status.HTTP_200_OK, content=response.model_dump())

    logger.warning(f"Readiness check failed: {checks}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(),
    )
