from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from studytracker.config import (
    DEFAULT_BREAK_LENGTH,
    DEFAULT_DAILY_GOAL,
    DEFAULT_TIMEZONE,
    DEFAULT_WEEKLY_GOAL,
)
from studytracker.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)  # stored lower-cased
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)

    # Goals (minutes)
    daily_study_time = Column(Integer, default=DEFAULT_DAILY_GOAL, nullable=False)
    weekly_study_time = Column(Integer, default=DEFAULT_WEEKLY_GOAL, nullable=False)

    # Preferences
    default_break_length = Column(Integer, default=DEFAULT_BREAK_LENGTH, nullable=False)
    notifications = Column(Boolean, default=True, nullable=False)
    timezone = Column(String(64), default=DEFAULT_TIMEZONE, nullable=False)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    last_login = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    subjects = relationship("Subject", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("StudySession", back_populates="user", cascade="all, delete-orphan")

    @property
    def goals(self) -> dict:
        return {
            "dailyStudyTime": self.daily_study_time or 0,
            "weeklyStudyTime": self.weekly_study_time or 0,
        }

    @property
    def preferences(self) -> dict:
        return {
            "defaultBreakLength": self.default_break_length,
            "notifications": self.notifications,
            "timezone": self.timezone,
        }

    def to_dict(self) -> dict:
        # never exposes the password hash
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "goals": self.goals,
            "preferences": self.preferences,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
        }
