"""
Persistence for daily_sum_burned rows.

Only burnledger.core.burned may call insert(); every default row has to be
built from the point-in-time profile/weight snapshot taken there.
"""

from datetime import date
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from burnledger.models.ledger import DailyBurnedEntry

# SQLSTATE unique_violation (Postgres)
UNIQUE_VIOLATION = "23505"


def find_by_day(db: Session, user_id: str, day: date) -> Optional[DailyBurnedEntry]:
    return (
        db.query(DailyBurnedEntry)
        .filter(DailyBurnedEntry.user_id == user_id)
        .filter(DailyBurnedEntry.entry_date == day)
        .one_or_none()
    )


def find_range(db: Session, user_id: str, start: date, end: date) -> list[DailyBurnedEntry]:
    return (
        db.query(DailyBurnedEntry)
        .filter(DailyBurnedEntry.user_id == user_id)
        .filter(DailyBurnedEntry.entry_date >= start)
        .filter(DailyBurnedEntry.entry_date <= end)
        .order_by(DailyBurnedEntry.entry_date.asc())
        .all()
    )


def is_unique_violation(e: IntegrityError) -> bool:
    orig = e.orig
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    # sqlite3 has no error codes on IntegrityError, only the message
    return "UNIQUE constraint failed" in str(orig)


def insert(db: Session, values: dict[str, Any]) -> Optional[DailyBurnedEntry]:
    """
    Insert and commit a row. Returns None if another writer already owns this
    user/day (unique violation); the transaction is rolled back.
    Any other integrity failure (CHECK, NOT NULL) is re-raised after rollback.
    """
    row = DailyBurnedEntry(**values)
    db.add(row)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not is_unique_violation(e):
            raise
        return None
    db.refresh(row)
    return row


def update(db: Session, entry_id: int, patch: dict[str, Any]) -> Optional[DailyBurnedEntry]:
    row = db.get(DailyBurnedEntry, entry_id)
    if row is None:
        return None

    for field, value in patch.items():
        setattr(row, field, value)

    db.commit()
    db.refresh(row)
    return row
