# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from studytracker.models.user import User
from studytracker.models.subject import Subject
from studytracker.models.study_session import StudySession, STUDY_METHODS, LOCATIONS

__all__ = [
    "User",
    "Subject",
    "StudySession",
    "STUDY_METHODS",
    "LOCATIONS",
]
