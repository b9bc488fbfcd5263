from typing import Optional

from sqlalchemy.orm import Session

from burnledger.models.profile import UserProfile


def get_user_profile(db: Session, user_id: str) -> Optional[UserProfile]:
    return (
        db.query(UserProfile)
        .filter(UserProfile.user_id == user_id)
        .one_or_none()
    )
