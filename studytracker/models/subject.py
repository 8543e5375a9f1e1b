from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from studytracker.config import DEFAULT_SUBJECT_COLOR, DEFAULT_SUBJECT_WEEKLY_GOAL
from studytracker.database import Base


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String(100), nullable=False)  # unique per user, case-insensitive
    color = Column(String(7), default=DEFAULT_SUBJECT_COLOR, nullable=False)  # "#RRGGBB"
    weekly_goal = Column(Integer, default=DEFAULT_SUBJECT_WEEKLY_GOAL, nullable=False)  # minutes
    description = Column(Text, nullable=True)

    # Denormalized, maintained by SessionService on every session write
    total_study_time = Column(Integer, default=0, nullable=False)
    total_sessions = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="subjects")
    sessions = relationship("StudySession", back_populates="subject")

    __table_args__ = (
        Index("ix_subjects_user_name", "user_id", "name"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "color": self.color,
            "weeklyGoal": self.weekly_goal,
            "description": self.description,
            "totalStudyTime": self.total_study_time,
            "totalSessions": self.total_sessions,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
