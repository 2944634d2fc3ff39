"""
Health check routes.
Readiness/liveness probes for load balancers.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime, timezone
from typing import Optional
import time
import logging

from market_intel.db.database import get_db
from market_intel.core.rate_limiting import limiter, HEALTH_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

_STARTUP_TIME = time.time()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
@limiter.limit(HEALTH_LIMIT)
def health_check(request: Request, db: Optional[Session] = Depends(get_db)):
    """
    Database connectivity, cleaned activity count, uptime.
    """
    health = {
        "status": "healthy",
        "database": "unavailable",
        "cleaned_activities": 0,
        "uptime_seconds": int(time.time() - _STARTUP_TIME),
        "timestamp": _now(),
    }

    if db is None:
        health["status"] = "degraded"
        return health

    try:
        result = db.execute(text("SELECT COUNT(*) FROM cleaned_activities")).scalar()
        health["database"] = "available"
        health["cleaned_activities"] = result or 0
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health["status"] = "degraded"

    return health


@router.get("/ready")
@limiter.limit(HEALTH_LIMIT)
def readiness_check(request: Request, db: Optional[Session] = Depends(get_db)):
    """Ready only when the database answers."""
    if db is None:
        return {"ready": False, "error": "database unavailable", "timestamp": _now()}
    return {"ready": True, "timestamp": _now()}


@router.get("/live")
def liveness_check():
    return {"alive": True, "uptime_seconds": int(time.time() - _STARTUP_TIME), "timestamp": _now()}
