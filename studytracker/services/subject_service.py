"""
subject_service.py — Subject management
CRUD for subjects, guarded deletion and a repair path for the denormalized
study totals kept on each subject.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from studytracker.config import DEFAULT_SUBJECT_COLOR, DEFAULT_SUBJECT_WEEKLY_GOAL
from studytracker.models.study_session import StudySession
from studytracker.models.subject import Subject

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "color", "weekly_goal", "description")


class SubjectValidationError(ValueError):
    """Subject data cannot be stored as given (blank name)."""


class DuplicateSubjectError(ValueError):
    """A subject with the same name (ignoring case) already exists for the user."""


class SubjectInUseError(Exception):
    """Deletion refused because sessions still reference the subject."""

    def __init__(self, session_count: int):
        super().__init__(
            f"Cannot delete subject with {session_count} study sessions. "
            "Add ?force=true to delete anyway."
        )
        self.session_count = session_count


class SubjectService:
    @staticmethod
    def _name_taken(db: Session, user_id: int, name: str, exclude_id: int = None) -> bool:
        query = db.query(Subject).filter(
            Subject.user_id == user_id,
            func.lower(Subject.name) == name.strip().lower(),
        )
        if exclude_id is not None:
            query = query.filter(Subject.id != exclude_id)
        return query.first() is not None

    @staticmethod
    def create(db: Session, user_id: int, data: dict) -> Subject:
        name = data["name"].strip()
        if not name:
            raise SubjectValidationError("Subject name must not be blank")
        if SubjectService._name_taken(db, user_id, name):
            raise DuplicateSubjectError("Subject with this name already exists")

        weekly_goal = data.get("weekly_goal")
        if weekly_goal is None:
            weekly_goal = DEFAULT_SUBJECT_WEEKLY_GOAL

        try:
            subject = Subject(
                user_id=user_id,
                name=name,
                color=data.get("color") or DEFAULT_SUBJECT_COLOR,
                weekly_goal=weekly_goal,
                description=data.get("description"),
            )
            db.add(subject)
            db.commit()
            db.refresh(subject)
            logger.info("Created subject %s for user %s", subject.id, user_id)
            return subject
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def get_all(db: Session, user_id: int) -> list[Subject]:
        return db.query(Subject).filter_by(user_id=user_id).order_by(Subject.name.asc()).all()

    @staticmethod
    def get_by_id(db: Session, user_id: int, subject_id: int) -> Subject | None:
        return db.query(Subject).filter_by(id=subject_id, user_id=user_id).first()

    @staticmethod
    def update(db: Session, user_id: int, subject_id: int, data: dict) -> Subject | None:
        subject = SubjectService.get_by_id(db, user_id, subject_id)
        if not subject:
            return None

        name = data.get("name")
        if name is not None:
            data["name"] = name = name.strip()
            if not name:
                raise SubjectValidationError("Subject name must not be blank")
            if name != subject.name and SubjectService._name_taken(db, user_id, name, exclude_id=subject.id):
                raise DuplicateSubjectError("Subject with this name already exists")

        try:
            for key, value in data.items():
                if key in UPDATABLE_FIELDS and value is not None:
                    setattr(subject, key, value)
            db.commit()
            db.refresh(subject)
            return subject
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def session_count(db: Session, subject_id: int) -> int:
        return db.query(StudySession).filter_by(subject_id=subject_id).count()

    @staticmethod
    def delete(db: Session, user_id: int, subject_id: int, force: bool = False) -> int | None:
        """Delete a subject; returns how many sessions went with it, None if not found."""
        subject = SubjectService.get_by_id(db, user_id, subject_id)
        if not subject:
            return None

        count = SubjectService.session_count(db, subject.id)
        if count > 0 and not force:
            raise SubjectInUseError(count)

        try:
            if count:
                db.query(StudySession).filter_by(subject_id=subject.id).delete(synchronize_session=False)
            db.delete(subject)
            db.commit()
            logger.info("Deleted subject %s with %s sessions", subject_id, count)
            return count
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def get_sessions(db: Session, user_id: int, subject_id: int, page: int = 1, limit: int = 20) -> tuple:
        query = db.query(StudySession).filter_by(subject_id=subject_id, user_id=user_id)
        total = query.count()
        sessions = (
            query.order_by(StudySession.start_time.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return sessions, total

    @staticmethod
    def recalculate_totals(db: Session, user_id: int, subject_id: int) -> Subject | None:
        """Rebuild total_study_time/total_sessions from the sessions table."""
        subject = SubjectService.get_by_id(db, user_id, subject_id)
        if not subject:
            return None

        total_time, total_sessions = (
            db.query(func.coalesce(func.sum(StudySession.duration), 0), func.count(StudySession.id))
            .filter(StudySession.subject_id == subject.id)
            .one()
        )
        try:
            subject.total_study_time = int(total_time)
            subject.total_sessions = int(total_sessions)
            db.commit()
            db.refresh(subject)
            return subject
        except Exception:
            db.rollback()
            raise
