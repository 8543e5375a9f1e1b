from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from studytracker.database import Base

STUDY_METHODS = (
    "reading", "practice_problems", "notes", "video",
    "discussion", "research", "review", "other",
)
LOCATIONS = ("library", "home", "cafe", "classroom", "outdoor", "other")


def compute_duration(start_time: datetime, end_time: datetime) -> int:
    """Whole minutes between two instants, rounded half up."""
    seconds = (end_time - start_time).total_seconds()
    return int(seconds / 60 + 0.5)


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes or 0, 60)
    return f"{hours}h {mins}m" if hours > 0 else f"{mins}m"


class StudySession(Base):
    __tablename__ = "study_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)

    start_time = Column(DateTime, nullable=False)  # naive UTC
    end_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes, >= 1

    study_method = Column(String(30), default="other", nullable=False)
    location = Column(String(20), default="other", nullable=False)
    focus_rating = Column(Integer, default=5, nullable=False)  # 1-10
    difficulty_rating = Column(Integer, default=5, nullable=False)  # 1-10
    notes = Column(Text, nullable=True)  # max 1000 chars

    total_break_time = Column(Integer, default=0, nullable=False)
    break_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Bumped on every UPDATE; a write against an outdated copy raises StaleDataError
    version_id = Column(Integer, nullable=False)

    user = relationship("User", back_populates="sessions")
    subject = relationship("Subject", back_populates="sessions")

    __table_args__ = (
        Index("ix_sessions_user_start", "user_id", "start_time"),
        Index("ix_sessions_subject_start", "subject_id", "start_time"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    def to_dict(self, include_subject: bool = True) -> dict:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "subjectId": self.subject_id,
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "formattedDuration": self.formatted_duration,
            "studyMethod": self.study_method,
            "location": self.location,
            "focusRating": self.focus_rating,
            "difficultyRating": self.difficulty_rating,
            "notes": self.notes,
            "totalBreakTime": self.total_break_time,
            "breakCount": self.break_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_subject and self.subject is not None:
            data["subject"] = {
                "id": self.subject.id,
                "name": self.subject.name,
                "color": self.subject.color,
            }
        return data
