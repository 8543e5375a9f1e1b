import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from studytracker.auth import get_current_user
from studytracker.database import get_db
from studytracker.models import LOCATIONS, STUDY_METHODS
from studytracker.routes.common import get_user_or_401, parse_iso_datetime, user_now
from studytracker.services.analytics_service import AnalyticsService
from studytracker.services.session_service import (
    SessionConflictError,
    SessionService,
    SessionValidationError,
    SubjectNotFoundError,
    build_pagination,
)
from studytracker.services.subject_service import SubjectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])

StudyMethod = Literal[STUDY_METHODS]
Location = Literal[LOCATIONS]


class SessionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_id: int = Field(alias="subjectId")
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    study_method: Optional[StudyMethod] = Field(None, alias="studyMethod")
    location: Optional[Location] = None
    focus_rating: Optional[int] = Field(None, alias="focusRating", ge=1, le=10)
    difficulty_rating: Optional[int] = Field(None, alias="difficultyRating", ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=1000)
    total_break_time: Optional[int] = Field(None, alias="totalBreakTime", ge=0)
    break_count: Optional[int] = Field(None, alias="breakCount", ge=0)


class SessionUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_id: Optional[int] = Field(None, alias="subjectId")
    start_time: Optional[datetime] = Field(None, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    study_method: Optional[StudyMethod] = Field(None, alias="studyMethod")
    location: Optional[Location] = None
    focus_rating: Optional[int] = Field(None, alias="focusRating", ge=1, le=10)
    difficulty_rating: Optional[int] = Field(None, alias="difficultyRating", ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=1000)
    total_break_time: Optional[int] = Field(None, alias="totalBreakTime", ge=0)
    break_count: Optional[int] = Field(None, alias="breakCount", ge=0)


@router.post("", status_code=201)
async def create_session(body: SessionCreate, user_id: int = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    try:
        session = SessionService.create(db, user_id, body.model_dump(exclude_unset=True))
        return {"message": "Session created successfully", "session": session.to_dict()}
    except SubjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Create session error")
        raise HTTPException(status_code=500, detail="Server error creating session")


@router.get("")
async def list_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    subject_id: Optional[int] = Query(None, alias="subjectId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    study_method: Optional[StudyMethod] = Query(None, alias="studyMethod"),
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Sessions newest first, filtered and paginated."""
    filters = {
        "subject_id": subject_id,
        "start_date": parse_iso_datetime(start_date, "startDate"),
        "end_date": parse_iso_datetime(end_date, "endDate"),
        "study_method": study_method,
    }
    try:
        sessions, total = SessionService.get_page(db, user_id, filters, page, limit)
        return {
            "sessions": [s.to_dict() for s in sessions],
            "pagination": build_pagination(page, limit, total, len(sessions)),
        }
    except Exception:
        logger.exception("Get sessions error")
        raise HTTPException(status_code=500, detail="Server error retrieving sessions")


@router.get("/summary/today")
async def today_summary(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        user = get_user_or_401(db, user_id)
        sessions = SessionService.get_all(db, user_id)
        subjects = SubjectService.get_all(db, user_id)
        return AnalyticsService.today_summary(sessions, subjects, user_now(user))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get today summary error")
        raise HTTPException(status_code=500, detail="Server error retrieving today's summary")


@router.get("/{session_id}")
async def get_session(session_id: int, user_id: int = Depends(get_current_user),
                      db: Session = Depends(get_db)):
    session = SessionService.get_by_id(db, user_id, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.to_dict()


@router.put("/{session_id}")
async def update_session(session_id: int, body: SessionUpdate, user_id: int = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    try:
        session = SessionService.update(db, user_id, session_id, body.model_dump(exclude_unset=True))
        if not session:
            raise HTTPException(status_code=404, detail="Session not found")
        return {"message": "Session updated successfully", "session": session.to_dict()}
    except HTTPException:
        raise
    except SubjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SessionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Update session error")
        raise HTTPException(status_code=500, detail="Server error updating session")


@router.delete("/{session_id}")
async def delete_session(session_id: int, user_id: int = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    try:
        if not SessionService.delete(db, user_id, session_id):
            raise HTTPException(status_code=404, detail="Session not found")
        return {"message": "Session deleted successfully"}
    except HTTPException:
        raise
    except SessionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        logger.exception("Delete session error")
        raise HTTPException(status_code=500, detail="Server error deleting session")
