"""StudyTracker: study session tracking API with analytics."""

__version__ = "1.0.0"
