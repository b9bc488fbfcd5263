from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
)

from burnledger.core.db import Base


class BurnSource(str, Enum):
    SYSTEM = "system"
    VENDOR = "vendor"
    MANUAL = "manual"


class DailyBurnedEntry(Base):
    """
    One row per (user, local calendar day) of energy burned.

    bmr/active/tdee are the effective values the app shows; system_* is the
    baseline captured when the row was created and is what reset restores.
    """

    __tablename__ = "daily_sum_burned"
    __table_args__ = (
        UniqueConstraint("user_id", "entry_date", name="uq_daily_sum_burned_user_date"),
        CheckConstraint(
            "bmr_cal >= 0 AND active_cal >= 0 AND tdee_cal >= 0 AND "
            "system_bmr_cal >= 0 AND system_active_cal >= 0 AND system_tdee_cal >= 0",
            name="ck_daily_sum_burned_non_negative",
        ),
        CheckConstraint(
            "tdee_cal = bmr_cal + active_cal AND "
            "system_tdee_cal = system_bmr_cal + system_active_cal",
            name="ck_daily_sum_burned_tdee_consistency",
        ),
        CheckConstraint(
            "burn_reduction_pct_int >= 0 AND burn_reduction_pct_int <= 100",
            name="ck_daily_sum_burned_reduction_pct",
        ),
        CheckConstraint(
            "NOT (burn_reduction_pct_int = 0 AND raw_burn IS NOT NULL AND raw_last_synced_at IS NULL)",
            name="ck_daily_sum_burned_raw_synced_at",
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    entry_date = Column(Date, nullable=False)

    # Effective values used by the app
    bmr_cal = Column(Integer, nullable=False)
    active_cal = Column(Integer, nullable=False)
    tdee_cal = Column(Integer, nullable=False)

    # Baseline at creation time (reset target)
    system_bmr_cal = Column(Integer, nullable=False)
    system_active_cal = Column(Integer, nullable=False)
    system_tdee_cal = Column(Integer, nullable=False)

    bmr_overridden = Column(Boolean, nullable=False, default=False)
    active_overridden = Column(Boolean, nullable=False, default=False)
    tdee_overridden = Column(Boolean, nullable=False, default=False)
    is_overridden = Column(Boolean, nullable=False, default=False)

    # Raw burn model: effective active = raw_burn * (1 - pct / 100)
    burn_reduction_pct_int = Column(Integer, nullable=False, default=0)
    raw_burn = Column(Float)
    raw_tdee = Column(Float)
    raw_burn_source = Column(String(16), nullable=False, default=BurnSource.SYSTEM.value)
    raw_last_synced_at = Column(DateTime)

    source = Column(String(16), nullable=False, default=BurnSource.SYSTEM.value)

    # Wearable sync bookkeeping
    vendor_external_id = Column(String(128))
    vendor_payload_hash = Column(String(64))
    synced_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
