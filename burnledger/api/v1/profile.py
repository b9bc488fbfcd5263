from datetime import date as DateType

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from burnledger.api.deps import get_db
from burnledger.core import burned
from burnledger.core.profiles import get_user_profile
from burnledger.models.profile import ActivityLevel, UserProfile

router = APIRouter(prefix="/users/{user_id}/profile", tags=["profile"])


class ProfileIn(BaseModel):
    gender: str | None = None
    date_of_birth: DateType | None = None
    height_cm: float | None = Field(default=None, gt=0)
    weight_lb: float | None = Field(default=None, gt=0)
    activity_level: ActivityLevel | None = None


@router.put("")
def upsert_profile(user_id: str, payload: ProfileIn, db: Session = Depends(get_db)):
    """
    Create or update the biometric profile. Only fields present in the payload
    are written. Today's burned row (if any) picks up the new baseline.
    """
    profile = get_user_profile(db, user_id)
    if profile is None:
        profile = UserProfile(user_id=user_id)
        db.add(profile)

    data = payload.model_dump(exclude_unset=True)
    if "activity_level" in data and data["activity_level"] is not None:
        data["activity_level"] = data["activity_level"].value

    for field, value in data.items():
        setattr(profile, field, value)

    db.commit()
    db.refresh(profile)

    today_row = burned.refresh_today_from_profile_change(db, user_id)

    return {
        "status": "ok",
        "user_id": user_id,
        "gender": profile.gender,
        "date_of_birth": profile.date_of_birth.isoformat() if profile.date_of_birth else None,
        "height_cm": profile.height_cm,
        "weight_lb": profile.weight_lb,
        "activity_level": profile.activity_level,
        "burned_today_refreshed": today_row is not None,
    }
