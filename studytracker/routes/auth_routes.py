# ---------- routes/auth_routes.py ----------
"""
Auth routes: registration, login, profile, goals and preferences.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from studytracker.auth import hash_password, verify_password, issue_token, get_current_user
from studytracker.database import get_db
from studytracker.models.user import User
from studytracker.routes.common import get_user_or_401

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ── Pydantic schemas ──────────────────────────────────────────────
class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6)


class LoginRequest(BaseModel):
    email: str
    password: str


class GoalsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    daily_study_time: Optional[int] = Field(None, alias="dailyStudyTime", ge=0)
    weekly_study_time: Optional[int] = Field(None, alias="weeklyStudyTime", ge=0)


class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    default_break_length: Optional[int] = Field(None, alias="defaultBreakLength", ge=0)
    notifications: Optional[bool] = None
    timezone: Optional[str] = None


# ── Routes ────────────────────────────────────────────────────────
@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: Session = Depends(get_db)):
    """Create an account and return a token for it."""
    email = body.email.strip().lower()
    try:
        if db.query(User).filter_by(email=email).first():
            raise HTTPException(status_code=400, detail="User already exists with this email")

        user = User(
            name=body.name.strip(),
            email=email,
            hashed_password=hash_password(body.password),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Registered user %s", user.id)

        return {
            "message": "User registered successfully",
            "token": issue_token(user),
            "user": user.to_dict(),
        }
    except HTTPException:
        raise
    except Exception:
        db.rollback()
        logger.exception("Registration error")
        raise HTTPException(status_code=500, detail="Server error during registration")


@router.post("/login")
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate with email + password."""
    try:
        user = db.query(User).filter_by(email=body.email.strip().lower()).first()
        if not user or not verify_password(body.password, user.hashed_password):
            logger.info("Failed login attempt for %s", body.email)
            raise HTTPException(status_code=401, detail="Invalid email or password")

        user.last_login = datetime.now(timezone.utc)
        db.commit()
        db.refresh(user)

        return {
            "message": "Login successful",
            "token": issue_token(user),
            "user": user.to_dict(),
        }
    except HTTPException:
        raise
    except Exception:
        db.rollback()
        logger.exception("Login error")
        raise HTTPException(status_code=500, detail="Server error during login")


@router.get("/me")
async def me(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    """Return the current user's profile."""
    return get_user_or_401(db, user_id).to_dict()


@router.put("/goals")
async def update_goals(body: GoalsUpdate, user_id: int = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    """Merge new daily/weekly study goals into the profile."""
    user = get_user_or_401(db, user_id)
    try:
        for key, value in body.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return {"message": "Goals updated successfully", "goals": user.goals}
    except Exception:
        db.rollback()
        logger.exception("Update goals error")
        raise HTTPException(status_code=500, detail="Server error updating goals")


@router.put("/preferences")
async def update_preferences(body: PreferencesUpdate, user_id: int = Depends(get_current_user),
                             db: Session = Depends(get_db)):
    user = get_user_or_401(db, user_id)
    data = body.model_dump(exclude_unset=True)

    if data.get("timezone") is not None:
        try:
            ZoneInfo(data["timezone"])
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(status_code=400, detail=f"Unknown timezone: {data['timezone']}")

    try:
        for key, value in data.items():
            if value is not None:
                setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return {"message": "Preferences updated successfully", "preferences": user.preferences}
    except Exception:
        db.rollback()
        logger.exception("Update preferences error")
        raise HTTPException(status_code=500, detail="Server error updating preferences")
