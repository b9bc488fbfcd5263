from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from burnledger.core.datekey import to_utc_naive
from burnledger.models.body_metrics import BodyMetricsEntry

KG_TO_LB = 2.20462


@dataclass(frozen=True)
class WeighIn:
    weighed_at: datetime
    weight_lb: float


def _weight_lb(entry: BodyMetricsEntry) -> Optional[float]:
    # Prefer the reported lb value; fall back to converting from kg.
    if entry.weight_lb is not None:
        return entry.weight_lb
    if entry.weight_kg is not None:
        return entry.weight_kg * KG_TO_LB
    return None


def _has_weight():
    return (BodyMetricsEntry.weight_lb.isnot(None)) | (BodyMetricsEntry.weight_kg.isnot(None))


def latest_weight_at_or_before(db: Session, user_id: str, instant: datetime) -> Optional[WeighIn]:
    """Most recent weigh-in with a weight value at or before `instant`."""
    entry = (
        db.query(BodyMetricsEntry)
        .filter(BodyMetricsEntry.user_id == user_id)
        .filter(BodyMetricsEntry.timestamp <= to_utc_naive(instant))
        .filter(_has_weight())
        .order_by(BodyMetricsEntry.timestamp.desc())
        .first()
    )
    if entry is None:
        return None
    return WeighIn(weighed_at=entry.timestamp, weight_lb=_weight_lb(entry))


def next_weigh_in_after(db: Session, user_id: str, instant: datetime) -> Optional[datetime]:
    entry = (
        db.query(BodyMetricsEntry)
        .filter(BodyMetricsEntry.user_id == user_id)
        .filter(BodyMetricsEntry.timestamp > to_utc_naive(instant))
        .filter(_has_weight())
        .order_by(BodyMetricsEntry.timestamp.asc())
        .first()
    )
    return entry.timestamp if entry else None


def weights_in_range(db: Session, user_id: str, start: datetime, end: datetime) -> list[WeighIn]:
    """Weigh-ins within [start, end], oldest first."""
    rows = (
        db.query(BodyMetricsEntry)
        .filter(BodyMetricsEntry.user_id == user_id)
        .filter(BodyMetricsEntry.timestamp >= to_utc_naive(start))
        .filter(BodyMetricsEntry.timestamp <= to_utc_naive(end))
        .filter(_has_weight())
        .order_by(BodyMetricsEntry.timestamp.asc())
        .all()
    )
    return [WeighIn(weighed_at=r.timestamp, weight_lb=_weight_lb(r)) for r in rows]
