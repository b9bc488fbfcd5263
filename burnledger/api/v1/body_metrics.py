# burnledger/api/v1/body_metrics.py

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from burnledger.api.deps import get_db
from burnledger.core import burned, datekey
from burnledger.models.body_metrics import BodyMetricsEntry

router = APIRouter(prefix="/users/{user_id}/body-metrics", tags=["body-metrics"])


# ---------- Pydantic schemas ----------

class BodyMetricsIn(BaseModel):
    timestamp: datetime = Field(..., description="ISO8601 timestamp of measurement")

    # Weight
    weight_kg: float | None = None
    weight_lb: float | None = None

    # Core composition
    bmi: float | None = None
    body_fat_pct: float | None = None
    body_water_pct: float | None = None
    muscle_mass_kg: float | None = None

    bmr_kcal: float | None = None
    source: str | None = "manual"

    @model_validator(mode="after")
    def validate_weight_positive(self):
        # Only enforce positivity if a weight value is actually provided
        if self.weight_kg is not None and self.weight_kg <= 0:
            raise ValueError("weight_kg must be greater than 0 when provided")
        if self.weight_lb is not None and self.weight_lb <= 0:
            raise ValueError("weight_lb must be greater than 0 when provided")
        return self


class BodyMetricsBatchIn(BaseModel):
    measurements: list[BodyMetricsIn]


# ---------- Endpoints ----------

@router.post("/ingest")
def ingest_body_metrics(user_id: str, payload: BodyMetricsBatchIn, db: Session = Depends(get_db)):
    """
    Insert one or more body-metric measurements, then refresh burned baselines
    for the days the new weigh-ins affect.
    """
    created = 0
    weighed: list[datetime] = []
    for m in payload.measurements:
        # Naive timestamps are UTC, same as storage
        measured_at = m.timestamp if m.timestamp.tzinfo else m.timestamp.replace(tzinfo=timezone.utc)
        ts = datekey.to_utc_naive(measured_at)
        entry = BodyMetricsEntry(
            user_id=user_id,
            timestamp=ts,
            date=datekey.normalize_day_key(measured_at),
            weight_kg=m.weight_kg,
            weight_lb=m.weight_lb,
            bmi=m.bmi,
            body_fat_pct=m.body_fat_pct,
            body_water_pct=m.body_water_pct,
            muscle_mass_kg=m.muscle_mass_kg,
            bmr_kcal=m.bmr_kcal,
            source=m.source or "manual",
        )
        db.add(entry)
        created += 1

        if m.weight_kg is not None or m.weight_lb is not None:
            weighed.append(ts)

    db.commit()

    # Each weigh-in affects the days up to the next weigh-in
    refreshed = 0
    for ts in sorted(set(weighed)):
        result = burned.refresh_from_weight_change(db, user_id, changed_at=ts)
        if result is not None:
            refreshed += result.updated

    return {"status": "ok", "created": created, "burned_refreshed": refreshed}


@router.get("/daily/{date_str}")
def get_body_metrics_for_date(user_id: str, date_str: str, db: Session = Depends(get_db)):
    """
    Return the latest body-metrics entry for a given local date (YYYY-MM-DD).
    """
    try:
        target_date = datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format, expected YYYY-MM-DD")

    entry: BodyMetricsEntry | None = (
        db.query(BodyMetricsEntry)
        .filter(BodyMetricsEntry.user_id == user_id)
        .filter(BodyMetricsEntry.date == target_date)
        .order_by(BodyMetricsEntry.timestamp.desc())
        .first()
    )

    if not entry:
        return {"status": "ok", "date": date_str, "found": False}

    return {
        "status": "ok",
        "date": date_str,
        "found": True,
        "weight_kg": entry.weight_kg,
        "weight_lb": entry.weight_lb,
        "bmi": entry.bmi,
        "body_fat_pct": entry.body_fat_pct,
        "body_water_pct": entry.body_water_pct,
        "muscle_mass_kg": entry.muscle_mass_kg,
        "bmr_kcal": entry.bmr_kcal,
        "source": entry.source,
        "raw": {
            "timestamp": entry.timestamp.isoformat(),
        },
    }
