from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Date, DateTime, Float, Integer, String

from burnledger.core.db import Base


class ActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, unique=True, index=True)

    gender = Column(String(16))
    date_of_birth = Column(Date)
    height_cm = Column(Float)
    # Last known weight; historical weigh-ins live in body_metrics
    weight_lb = Column(Float)
    activity_level = Column(String(16), default=ActivityLevel.SEDENTARY.value)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
