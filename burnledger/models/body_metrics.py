# burnledger/models/body_metrics.py

from datetime import datetime, date

from sqlalchemy import Column, Date, DateTime, Float, Index, Integer, String

from burnledger.core.db import Base


class BodyMetricsEntry(Base):
    """
    Weigh-in / body-composition measurement for a single timestamp.
    Not tied to any specific device brand.
    """

    __tablename__ = "body_metrics"
    __table_args__ = (Index("ix_body_metrics_user_timestamp", "user_id", "timestamp"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    # When the measurement happened (naive UTC)
    timestamp = Column(DateTime, nullable=False, index=True)
    # Cached local calendar date, same keying as the burned ledger
    date = Column(Date, nullable=False, index=True)

    # Weight
    weight_kg = Column(Float)          # from device or converted
    weight_lb = Column(Float)          # optional, as reported

    # Core composition
    bmi = Column(Float)
    body_fat_pct = Column(Float)
    body_water_pct = Column(Float)
    muscle_mass_kg = Column(Float)

    # Device-reported BMR, informational only (ledger baselines come from the estimator)
    bmr_kcal = Column(Float)

    # Where this came from (scale, screenshot, integration, etc.)
    source = Column(String(64), default="manual")
