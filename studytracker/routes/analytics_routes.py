import logging
from datetime import datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from studytracker.auth import get_current_user
from studytracker.config import DEFAULT_ANALYTICS_DAYS, MAX_ANALYTICS_DAYS
from studytracker.database import get_db
from studytracker.routes.common import get_user_or_401, parse_iso_date, user_now
from studytracker.services.analytics_service import AnalyticsService, AnalyticsValidationError
from studytracker.services.session_service import SessionService
from studytracker.services.subject_service import SubjectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])

# Stored times are UTC; pad range queries so every local day is fully loaded
UTC_MARGIN = timedelta(days=1)


def _since(now: datetime, days: int) -> datetime:
    return now.replace(tzinfo=None) - timedelta(days=days) - UTC_MARGIN


@router.get("/dashboard")
async def dashboard(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    """Overall totals, today/week/month/year partitions and goal progress."""
    try:
        user = get_user_or_401(db, user_id)
        sessions = SessionService.get_all(db, user_id)
        return AnalyticsService.dashboard_summary(sessions, user.goals, user_now(user))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Dashboard analytics error")
        raise HTTPException(status_code=500, detail="Server error retrieving dashboard data")


@router.get("/time-series")
async def time_series(
    period: str = Query(...),
    days: int = Query(DEFAULT_ANALYTICS_DAYS, ge=1, le=MAX_ANALYTICS_DAYS),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    subject_id: Optional[int] = Query(None, alias="subjectId"),
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Zero-filled daily/weekly/monthly buckets for the last ``days`` days or an explicit range."""
    user = get_user_or_401(db, user_id)
    now = user_now(user)
    start = parse_iso_date(start_date, "startDate")
    end = parse_iso_date(end_date, "endDate")

    try:
        if start is None and end is None:
            start, end = AnalyticsService.window_dates(days, now)
        elif start is None or end is None:
            raise AnalyticsValidationError("startDate and endDate must be given together")
        start, end = AnalyticsService.validate_range(start, end, MAX_ANALYTICS_DAYS)

        filters = {
            "subject_id": subject_id,
            "start_date": datetime.combine(start, time.min) - UTC_MARGIN,
            "end_date": datetime.combine(end, time.max) + UTC_MARGIN,
        }
        sessions = SessionService.get_all(db, user_id, filters)
        return AnalyticsService.time_series(sessions, period, start, end, tz=now.tzinfo)
    except AnalyticsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Time series analytics error")
        raise HTTPException(status_code=500, detail="Server error retrieving time series data")


@router.get("/subjects")
async def subject_analytics(
    days: int = Query(DEFAULT_ANALYTICS_DAYS, ge=1, le=MAX_ANALYTICS_DAYS),
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per-subject rollups over the window with time and session shares."""
    try:
        user = get_user_or_401(db, user_id)
        now = user_now(user)
        sessions = SessionService.get_all(db, user_id, {"start_date": _since(now, days)})
        subjects = SubjectService.get_all(db, user_id)
        return AnalyticsService.subject_analytics(sessions, subjects, days, now)
    except HTTPException:
        raise
    except AnalyticsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Subject analytics error")
        raise HTTPException(status_code=500, detail="Server error retrieving subject analytics")


@router.get("/patterns")
async def pattern_analysis(
    days: int = Query(DEFAULT_ANALYTICS_DAYS, ge=1, le=MAX_ANALYTICS_DAYS),
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """When, how and where the user studies best."""
    try:
        user = get_user_or_401(db, user_id)
        now = user_now(user)
        sessions = SessionService.get_all(db, user_id, {"start_date": _since(now, days)})
        return AnalyticsService.pattern_analysis(sessions, days, now)
    except HTTPException:
        raise
    except AnalyticsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Pattern analytics error")
        raise HTTPException(status_code=500, detail="Server error retrieving pattern analysis")
