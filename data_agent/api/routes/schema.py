"""
Schema Routes

Expose the cached schema snapshot and allow an explicit reload after
migrations.
"""

import logging
from typing import Any

from fastapi import APIRouter

logger = logging.getLogger(__name__)

router = APIRouter()


def _describe(snapshot) -> dict[str, Any]:
    return {
        "loadedAt": snapshot.loaded_at.isoformat(),
        "tableCount": len(snapshot.tables),
        "tables": snapshot.to_dict(),
    }


@router.get("/schema")
async def get_schema() -> dict[str, Any]:
    """Current snapshot, loading it first if startup did not."""
    from data_agent.api.main import get_pipeline

    pipeline = get_pipeline()
    snapshot = await pipeline.catalog.get()
    return _describe(snapshot)


@router.post("/schema/refresh")
async def refresh_schema() -> dict[str, Any]:
    from data_agent.api.main import get_pipeline

    pipeline = get_pipeline()
    snapshot = await pipeline.catalog.refresh()
    logger.info(f"Schema refreshed via API: {len(snapshot.tables)} tables")
    return _describe(snapshot)
