import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from studytracker.auth import get_current_user
from studytracker.database import get_db
from studytracker.routes.common import get_user_or_401, user_now
from studytracker.services.analytics_service import AnalyticsService
from studytracker.services.session_service import SessionService, build_pagination
from studytracker.services.subject_service import (
    DuplicateSubjectError,
    SubjectInUseError,
    SubjectService,
    SubjectValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subjects", tags=["Subjects"])

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class SubjectCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)
    weekly_goal: Optional[int] = Field(None, alias="weeklyGoal", ge=0)
    description: Optional[str] = Field(None, max_length=500)


class SubjectUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)
    weekly_goal: Optional[int] = Field(None, alias="weeklyGoal", ge=0)
    description: Optional[str] = Field(None, max_length=500)


@router.post("", status_code=201)
async def create_subject(body: SubjectCreate, user_id: int = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    try:
        subject = SubjectService.create(db, user_id, body.model_dump(exclude_unset=True))
        return {"message": "Subject created successfully", "subject": subject.to_dict()}
    except (DuplicateSubjectError, SubjectValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Create subject error")
        raise HTTPException(status_code=500, detail="Server error creating subject")


@router.get("")
async def list_subjects(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    """All subjects with this week's study time against each weekly goal."""
    try:
        user = get_user_or_401(db, user_id)
        now = user_now(user)
        subjects = SubjectService.get_all(db, user_id)
        sessions = SessionService.get_all(db, user_id)
        return [
            {**subject.to_dict(), **AnalyticsService.weekly_progress(sessions, subject, now)}
            for subject in subjects
        ]
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get subjects error")
        raise HTTPException(status_code=500, detail="Server error retrieving subjects")


@router.get("/{subject_id}")
async def get_subject(subject_id: int, user_id: int = Depends(get_current_user),
                      db: Session = Depends(get_db)):
    try:
        user = get_user_or_401(db, user_id)
        subject = SubjectService.get_by_id(db, user_id, subject_id)
        if not subject:
            raise HTTPException(status_code=404, detail="Subject not found")

        sessions = SessionService.get_all(db, user_id, {"subject_id": subject.id})
        return {**subject.to_dict(), **AnalyticsService.subject_statistics(sessions, subject, user_now(user))}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get subject error")
        raise HTTPException(status_code=500, detail="Server error retrieving subject")


@router.put("/{subject_id}")
async def update_subject(subject_id: int, body: SubjectUpdate, user_id: int = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    try:
        subject = SubjectService.update(db, user_id, subject_id, body.model_dump(exclude_unset=True))
        if not subject:
            raise HTTPException(status_code=404, detail="Subject not found")
        return {"message": "Subject updated successfully", "subject": subject.to_dict()}
    except HTTPException:
        raise
    except (DuplicateSubjectError, SubjectValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Update subject error")
        raise HTTPException(status_code=500, detail="Server error updating subject")


@router.delete("/{subject_id}")
async def delete_subject(subject_id: int, force: bool = False, user_id: int = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    """Delete a subject; one with sessions needs ?force=true and takes its sessions with it."""
    try:
        deleted = SubjectService.delete(db, user_id, subject_id, force=force)
        if deleted is None:
            raise HTTPException(status_code=404, detail="Subject not found")
        return {"message": "Subject deleted successfully", "deletedSessions": deleted}
    except HTTPException:
        raise
    except SubjectInUseError as e:
        return JSONResponse(status_code=400, content={"detail": str(e), "sessionCount": e.session_count})
    except Exception:
        logger.exception("Delete subject error")
        raise HTTPException(status_code=500, detail="Server error deleting subject")


@router.get("/{subject_id}/sessions")
async def list_subject_sessions(subject_id: int, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                                user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        subject = SubjectService.get_by_id(db, user_id, subject_id)
        if not subject:
            raise HTTPException(status_code=404, detail="Subject not found")

        sessions, total = SubjectService.get_sessions(db, user_id, subject.id, page, limit)
        return {
            "subject": {"id": subject.id, "name": subject.name, "color": subject.color},
            "sessions": [s.to_dict(include_subject=False) for s in sessions],
            "pagination": build_pagination(page, limit, total, len(sessions)),
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get subject sessions error")
        raise HTTPException(status_code=500, detail="Server error retrieving subject sessions")


@router.post("/{subject_id}/recalculate")
async def recalculate_subject(subject_id: int, user_id: int = Depends(get_current_user),
                              db: Session = Depends(get_db)):
    """Rebuild the subject's study totals from its sessions."""
    try:
        subject = SubjectService.recalculate_totals(db, user_id, subject_id)
        if not subject:
            raise HTTPException(status_code=404, detail="Subject not found")
        return {"message": "Subject totals recalculated", "subject": subject.to_dict()}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Recalculate subject error")
        raise HTTPException(status_code=500, detail="Server error recalculating subject")
