import os
from dotenv import load_dotenv

load_dotenv()

# --- JWT Configuration ---
JWT_SECRET = os.getenv("JWT_SECRET", "change-this-secret-key")
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", "168"))  # 7 days

# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/studytracker.db")

# Fix for common SQLAlchemy issues with postgres:// vs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# --- Server ---
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- User defaults (minutes) ---
DEFAULT_DAILY_GOAL = int(os.getenv("DEFAULT_DAILY_GOAL", "240"))
DEFAULT_WEEKLY_GOAL = int(os.getenv("DEFAULT_WEEKLY_GOAL", "1680"))
DEFAULT_BREAK_LENGTH = 15
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/New_York")

# --- Subjects ---
DEFAULT_SUBJECT_COLOR = "#3B82F6"
DEFAULT_SUBJECT_WEEKLY_GOAL = 300  # 5 hours

# --- Analytics ---
MAX_ANALYTICS_DAYS = 365
DEFAULT_ANALYTICS_DAYS = 30
