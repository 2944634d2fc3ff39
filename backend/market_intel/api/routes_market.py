from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import logging

from market_intel.core.rate_limiting import limiter, MARKET_LIMIT, STATS_LIMIT
from market_intel.db.database import get_db
from market_intel.db.models import CleanedActivity
from market_intel.db.repositories import CleanedActivityRepository
from market_intel.services.reporting import distributions, quality_metrics, summarize_activities

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/market", tags=["market"])

_COLUMNS = [c.name for c in CleanedActivity.__table__.columns]


def _activity_to_dict(activity: CleanedActivity) -> Dict[str, Any]:
    """Convert a cleaned activity row to a dictionary for API response."""
    return {name: getattr(activity, name) for name in _COLUMNS}


def _require_db(db: Optional[Session]) -> Session:
    if db is None:
        raise HTTPException(status_code=503, detail="Service unavailable: database not connected")
    return db


@router.get("/activities")
@limiter.limit(MARKET_LIMIT)
def list_market_activities(
    request: Request,
    city: Optional[str] = Query(None, description="City or location contains"),
    platform: Optional[str] = Query(None, description="gyg or viator"),
    region: Optional[str] = Query(None, description="UK or Europe"),
    search: Optional[str] = Query(None, description="Provider name contains (overrides city)"),
    limit: int = Query(100, ge=1, le=1000, description="Number of results"),
    db: Optional[Session] = Depends(get_db),
):
    """
    Cleaned activities plus summary statistics for the selection.
    """
    db = _require_db(db)
    try:
        repo = CleanedActivityRepository(db)
        activities = repo.filter_activities(
            city=city,
            platform=platform,
            region=region,
            search=search,
            limit=limit,
        )
        summary = summarize_activities(activities, city=city, platform=platform, region=region)
        return {
            "activities": [_activity_to_dict(a) for a in activities],
            "summary": summary,
        }
    except Exception as e:
        logger.error(f"Error fetching cleaned activities: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch cleaned activities")


@router.get("/stats")
@limiter.limit(STATS_LIMIT)
def market_stats(request: Request, db: Optional[Session] = Depends(get_db)):
    """Platform / city / currency / region distributions and data quality."""
    db = _require_db(db)
    try:
        return {
            "distributions": distributions(db),
            "quality": quality_metrics(db, request.app.state.cleaning_config).to_dict(),
        }
    except Exception as e:
        logger.error(f"Error computing market stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to compute market stats")
