import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import HTTPException
from sqlalchemy.orm import Session

from studytracker.models.user import User

logger = logging.getLogger(__name__)


def parse_iso_datetime(value: str | None, field: str) -> datetime | None:
    """Parse an ISO-8601 query value ("2024-05-01" or a full timestamp); 400 when malformed."""
    if value is None or value == "":
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field}: expected an ISO-8601 date")


def parse_iso_date(value: str | None, field: str) -> date | None:
    parsed = parse_iso_datetime(value, field)
    return parsed.date() if parsed else None


def get_user_or_401(db: Session, user_id: int) -> User:
    user = db.query(User).filter_by(id=user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists")
    return user


def user_zone(user: User):
    try:
        return ZoneInfo(user.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r for user %s, using UTC", user.timezone, user.id)
        return timezone.utc


def user_now(user: User) -> datetime:
    """Current instant in the user's preferred timezone."""
    return datetime.now(user_zone(user))
