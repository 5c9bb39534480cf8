"""
Health endpoints

    GET  /health/live         process is up (no dependency checks)
    GET  /health/ready        503 until the database answers
    GET  /health/detailed     dependency status plus addon state
    POST /health/cache/clear  forget cached probe results
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from tamilarr.config import Config
from tamilarr.database import get_db
from tamilarr.models import MediaIdentity, ReleaseCandidate, ProviderSnapshot, ResolutionLock
from tamilarr.services.debrid_client import RealDebridClient
from tamilarr.services.health_check_service import get_health_service, HealthStatus
from tamilarr.services.rate_limiter import get_rate_limiter
from tamilarr.api.stremio_routes import get_debrid_client, get_trackers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness_probe():
    """Answers as long as the event loop does."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness_probe(db: Session = Depends(get_db)):
    """Ready once a SELECT 1 succeeds; 503 with the database error otherwise."""
    db_health = await get_health_service().check_database(db.get_bind())

    if db_health.status == HealthStatus.HEALTHY:
        return {"status": "ready", "database": "connected"}

    return JSONResponse(
        status_code=503,
        content={"status": "not_ready", "reason": db_health.message}
    )


@router.get("/detailed")
async def detailed_health(
    db: Session = Depends(get_db),
    client: Optional[RealDebridClient] = Depends(get_debrid_client)
):
    """Probe results, extended with the provider bucket state and row counts."""
    result = await get_health_service().check_all(client, db.get_bind())

    result["version"] = Config.APP_VERSION
    result["debrid_enabled"] = client is not None
    result["trackers"] = len(get_trackers())
    result["rate_limit"] = get_rate_limiter().bucket("realdebrid").status()
    result["counts"] = {
        "identities": db.query(func.count(MediaIdentity.tmdb_id)).scalar(),
        "releases": db.query(func.count(ReleaseCandidate.id)).scalar(),
        "snapshots": db.query(func.count(ProviderSnapshot.infohash)).scalar(),
        "locks": db.query(func.count(ResolutionLock.infohash)).scalar(),
    }
    return result


@router.post("/cache/clear")
async def clear_health_cache():
    get_health_service().clear_cache()
    logger.info("Dropped cached health probe results")
    return {"status": "success", "message": "Probe results will be refreshed on the next check"}
