"""
session_service.py — Study session management
CRUD for study sessions. Every write also adjusts the owning subject's
denormalized totals (total_study_time, total_sessions) inside the same
transaction, using in-database increments so concurrent writers never lose
an update.

Sessions carry a version counter; an update or delete based on an outdated
copy of the row is refused with SessionConflictError and nothing is written.
"""

import logging
import math
from datetime import datetime, timezone

from sqlalchemy import case, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from studytracker.models.study_session import StudySession, compute_duration
from studytracker.models.subject import Subject

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "subject_id", "start_time", "end_time", "study_method", "location",
    "focus_rating", "difficulty_rating", "notes", "total_break_time", "break_count",
)


class SessionValidationError(ValueError):
    """Session times are out of order or too short to record."""


class SubjectNotFoundError(LookupError):
    """The referenced subject does not exist or belongs to another user."""


class SessionConflictError(RuntimeError):
    """The session was changed or deleted by another request since it was loaded."""


def to_utc_naive(value: datetime) -> datetime:
    """Stored timestamps are naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def checked_duration(start_time: datetime, end_time: datetime) -> int:
    if end_time <= start_time:
        raise SessionValidationError("End time must be after start time")
    duration = compute_duration(start_time, end_time)
    if duration < 1:
        raise SessionValidationError("Session must last at least one minute")
    return duration


def build_pagination(page: int, limit: int, total: int, returned: int) -> dict:
    skip = (page - 1) * limit
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "totalSessions": total,
        "hasNext": skip + returned < total,
        "hasPrev": page > 1,
    }


def adjust_subject_totals(db: Session, subject_id: int, minutes: int, sessions: int):
    """Add deltas to a subject's totals in one UPDATE, clamping both at zero."""
    new_time = Subject.total_study_time + minutes
    new_count = Subject.total_sessions + sessions
    db.execute(
        update(Subject)
        .where(Subject.id == subject_id)
        .values(
            total_study_time=case((new_time > 0, new_time), else_=0),
            total_sessions=case((new_count > 0, new_count), else_=0),
        )
        .execution_options(synchronize_session=False)
    )


class SessionService:
    @staticmethod
    def _owned_subject(db: Session, user_id: int, subject_id: int) -> Subject:
        subject = db.query(Subject).filter_by(id=subject_id, user_id=user_id).first()
        if not subject:
            raise SubjectNotFoundError("Subject not found")
        return subject

    @staticmethod
    def create(db: Session, user_id: int, data: dict) -> StudySession:
        """Create a session and credit its subject's totals."""
        subject = SessionService._owned_subject(db, user_id, data.get("subject_id"))
        start_time = to_utc_naive(data["start_time"])
        end_time = to_utc_naive(data["end_time"])
        duration = checked_duration(start_time, end_time)

        try:
            session = StudySession(
                user_id=user_id,
                subject_id=subject.id,
                start_time=start_time,
                end_time=end_time,
                duration=duration,
                study_method=data.get("study_method") or "other",
                location=data.get("location") or "other",
                focus_rating=data.get("focus_rating") or 5,
                difficulty_rating=data.get("difficulty_rating") or 5,
                notes=data.get("notes"),
                total_break_time=data.get("total_break_time") or 0,
                break_count=data.get("break_count") or 0,
            )
            db.add(session)
            adjust_subject_totals(db, subject.id, duration, 1)
            db.commit()
            db.refresh(session)
            logger.info("Created session %s (%s min) for subject %s", session.id, duration, subject.id)
            return session
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def _filtered(db: Session, user_id: int, filters: dict = None):
        query = db.query(StudySession).filter(StudySession.user_id == user_id)
        if not filters:
            return query

        if filters.get("subject_id") is not None:
            query = query.filter(StudySession.subject_id == filters["subject_id"])
        if filters.get("start_date") is not None:
            query = query.filter(StudySession.start_time >= to_utc_naive(filters["start_date"]))
        if filters.get("end_date") is not None:
            query = query.filter(StudySession.start_time <= to_utc_naive(filters["end_date"]))
        if filters.get("study_method"):
            query = query.filter(StudySession.study_method == filters["study_method"])
        return query

    @staticmethod
    def get_page(db: Session, user_id: int, filters: dict = None, page: int = 1, limit: int = 20) -> tuple:
        """Newest-first page of sessions plus the unpaginated total."""
        query = SessionService._filtered(db, user_id, filters)
        total = query.count()
        sessions = (
            query.order_by(StudySession.start_time.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return sessions, total

    @staticmethod
    def get_all(db: Session, user_id: int, filters: dict = None) -> list[StudySession]:
        """Everything matching the filters, oldest first (analytics input)."""
        return (
            SessionService._filtered(db, user_id, filters)
            .order_by(StudySession.start_time.asc())
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, user_id: int, session_id: int) -> StudySession | None:
        return db.query(StudySession).filter_by(id=session_id, user_id=user_id).first()

    @staticmethod
    def update(db: Session, user_id: int, session_id: int, data: dict) -> StudySession | None:
        """Apply changes, recompute duration and move/adjust subject totals."""
        session = SessionService.get_by_id(db, user_id, session_id)
        if not session:
            return None

        old_duration = session.duration
        old_subject_id = session.subject_id

        new_subject_id = data.get("subject_id")
        if new_subject_id is not None and new_subject_id != old_subject_id:
            SessionService._owned_subject(db, user_id, new_subject_id)

        start_time = to_utc_naive(data["start_time"]) if data.get("start_time") else session.start_time
        end_time = to_utc_naive(data["end_time"]) if data.get("end_time") else session.end_time
        duration = checked_duration(start_time, end_time)

        try:
            for key, value in data.items():
                if key in UPDATABLE_FIELDS and value is not None:
                    setattr(session, key, value)
            session.start_time = start_time
            session.end_time = end_time
            session.duration = duration
            # Version-checked row write first: the deltas below assume old_duration is current
            db.flush()

            if session.subject_id != old_subject_id:
                adjust_subject_totals(db, old_subject_id, -old_duration, -1)
                adjust_subject_totals(db, session.subject_id, duration, 1)
            elif duration != old_duration:
                adjust_subject_totals(db, session.subject_id, duration - old_duration, 0)

            db.commit()
            db.refresh(session)
            return session
        except StaleDataError:
            db.rollback()
            logger.warning("Concurrent update rejected for session %s", session_id)
            raise SessionConflictError("Session was modified by another request; reload and retry")
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def delete(db: Session, user_id: int, session_id: int) -> bool:
        session = SessionService.get_by_id(db, user_id, session_id)
        if not session:
            return False
        subject_id, duration = session.subject_id, session.duration
        try:
            db.delete(session)
            db.flush()
            adjust_subject_totals(db, subject_id, -duration, -1)
            db.commit()
            logger.info("Deleted session %s", session_id)
            return True
        except StaleDataError:
            db.rollback()
            logger.warning("Concurrent delete rejected for session %s", session_id)
            raise SessionConflictError("Session was modified by another request; reload and retry")
        except Exception:
            db.rollback()
            raise
