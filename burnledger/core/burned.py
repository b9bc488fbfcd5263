"""
Daily burned-calorie ledger.

daily_sum_burned is a lazy local-day cache: a row is materialized the first
time a day is asked for, with defaults computed from the profile and the
weight the user had on that day. get_or_create() is the only place that
creates rows.

Three tiers of values live on each row:
- system_*: baseline captured at creation (reset target)
- raw_burn / raw_tdee: unreduced activity burn (baseline or wearable)
- bmr_cal / active_cal / tdee_cal: effective values, possibly overridden
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from sqlalchemy.orm import Session

from burnledger.core import datekey, ledger_store, weights
from burnledger.core.config import settings
from burnledger.core.errors import (
    DefaultsInputMissing,
    InvalidNumber,
    MaxExceeded,
    NegativeNotAllowed,
    ProfileMissing,
    ReductionPctInvalid,
    TdeeBelowBmr,
)
from burnledger.core.estimator import Baseline, compute_baseline
from burnledger.core.profiles import get_user_profile
from burnledger.models.ledger import BurnSource, DailyBurnedEntry
from burnledger.models.profile import UserProfile

log = structlog.get_logger()


@dataclass(frozen=True)
class TouchedFields:
    bmr: bool = False
    active: bool = False
    tdee: bool = False


@dataclass(frozen=True)
class EditedValues:
    bmr_cal: float
    active_cal: float
    tdee_cal: float


@dataclass(frozen=True)
class ReductionEdit:
    burn_reduction_pct_int: int
    # None keeps the stored raw figures and only changes the percentage
    raw_burn: Optional[float] = None
    raw_tdee: Optional[float] = None
    raw_burn_source: str = BurnSource.MANUAL.value


@dataclass(frozen=True)
class VendorSync:
    external_id: Optional[str] = None
    payload_hash: Optional[str] = None
    synced_at: Optional[datetime] = None


@dataclass(frozen=True)
class RefreshResult:
    updated: int
    start_date: date
    end_date: date


def _utcnow() -> datetime:
    return datekey.to_utc_naive(datekey.now_local())


def _to_safe_int(value) -> int:
    # Edited values may arrive as strings from free-text fields
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidNumber(f"Not a number: {value!r}")
    if not math.isfinite(number):
        raise InvalidNumber(f"Not a finite number: {value!r}")
    return math.trunc(number)


def _assert_reduction_pct(pct) -> int:
    max_pct = settings.BURN_REDUCTION_MAX_PCT
    if isinstance(pct, bool) or not isinstance(pct, (int, float)):
        raise ReductionPctInvalid(f"Reduction must be a whole number, got {pct!r}")
    if not math.isfinite(pct) or math.trunc(pct) != pct or pct < 0 or pct > max_pct:
        raise ReductionPctInvalid(f"Reduction must be a whole number between 0 and {max_pct}, got {pct!r}")
    return int(pct)


def _check_max(*values: int) -> None:
    max_kcal = settings.BURNED_TDEE_MAX_KCAL
    for value in values:
        if value > max_kcal:
            raise MaxExceeded(f"{value} kcal exceeds the {max_kcal} kcal limit")


# ---------- Baseline resolution ----------

def _effective_weight_for_day(
    db: Session,
    user_id: str,
    day: date,
    fallback_weight_lb: Optional[float],
) -> Optional[float]:
    """Latest weigh-in at or before the local end of `day`, else the profile weight."""
    weigh_in = weights.latest_weight_at_or_before(db, user_id, datekey.end_of_local_day(day))
    if weigh_in is not None and weigh_in.weight_lb is not None:
        return weigh_in.weight_lb
    return fallback_weight_lb


def _baseline_for(profile: UserProfile, weight_lb: Optional[float], day: date) -> Optional[Baseline]:
    return compute_baseline(
        gender=profile.gender,
        date_of_birth=profile.date_of_birth,
        height_cm=profile.height_cm,
        weight_lb=weight_lb,
        activity_level=profile.activity_level,
        on=day,
    )


def _system_baseline(db: Session, user_id: str, day: date) -> Baseline:
    profile = get_user_profile(db, user_id)
    if profile is None:
        raise ProfileMissing(f"No profile for user {user_id}")

    weight_lb = _effective_weight_for_day(db, user_id, day, profile.weight_lb)
    if weight_lb is None:
        raise DefaultsInputMissing(f"No weigh-in or profile weight for user {user_id}")

    baseline = _baseline_for(profile, weight_lb, day)
    if baseline is None:
        raise DefaultsInputMissing(f"Profile for user {user_id} is incomplete")
    return baseline


def _system_values(baseline: Baseline) -> dict[str, Any]:
    return {
        "system_bmr_cal": baseline.bmr,
        "system_active_cal": baseline.active,
        "system_tdee_cal": baseline.tdee,
    }


def _system_defaults(system_bmr: int, system_active: int, system_tdee: int, now: datetime) -> dict[str, Any]:
    """Effective values, raw-burn model and flags of a purely-system row."""
    return {
        "bmr_cal": system_bmr,
        "active_cal": system_active,
        "tdee_cal": system_tdee,
        "burn_reduction_pct_int": 0,
        "raw_burn": system_active,
        "raw_tdee": None,
        "raw_burn_source": BurnSource.SYSTEM.value,
        # pct == 0 with raw_burn present requires a timestamp
        "raw_last_synced_at": now,
        "bmr_overridden": False,
        "active_overridden": False,
        "tdee_overridden": False,
        "is_overridden": False,
        "source": BurnSource.SYSTEM.value,
    }


# ---------- Lazy creation ----------

def get_or_create(db: Session, user_id: str, date_input=None) -> Optional[DailyBurnedEntry]:
    """
    Return the burned row for (user, local day), creating it with system
    defaults on first access.

    Returns None for future days, and when an insert lost a race but the
    winner's row still cannot be read back.
    Raises ProfileMissing / DefaultsInputMissing when defaults can't be computed.
    """
    if not user_id:
        return None

    entry_date = datekey.normalize_day_key(date_input)

    # Nothing to estimate yet for future days
    if entry_date > datekey.today_key():
        return None

    existing = ledger_store.find_by_day(db, user_id, entry_date)
    if existing is not None:
        return existing

    baseline = _system_baseline(db, user_id, entry_date)

    values = {
        "user_id": user_id,
        "entry_date": entry_date,
        **_system_values(baseline),
        **_system_defaults(baseline.bmr, baseline.active, baseline.tdee, _utcnow()),
        "vendor_external_id": None,
        "vendor_payload_hash": None,
        "synced_at": None,
    }

    inserted = ledger_store.insert(db, values)
    if inserted is not None:
        log.info(
            "burned_row_created",
            user_id=user_id,
            entry_date=entry_date.isoformat(),
            bmr=baseline.bmr,
            active=baseline.active,
            tdee=baseline.tdee,
        )
        return inserted

    # Unique (user_id, entry_date) conflict: a concurrent caller created it. Read once.
    log.info("burned_insert_conflict", user_id=user_id, entry_date=entry_date.isoformat())
    retry = ledger_store.find_by_day(db, user_id, entry_date)
    if retry is None:
        log.warning("burned_race_unresolved", user_id=user_id, entry_date=entry_date.isoformat())
    return retry


def get_range(db: Session, user_id: str, start_input, end_input) -> list[DailyBurnedEntry]:
    """Existing rows between two days (inclusive). Never creates rows."""
    start = datekey.normalize_day_key(start_input)
    end = datekey.normalize_day_key(end_input)
    if end < start:
        return []
    return ledger_store.find_range(db, user_id, start, end)


# ---------- Reset ----------

def _is_system_state(row: DailyBurnedEntry) -> bool:
    expected = _system_defaults(row.system_bmr_cal, row.system_active_cal, row.system_tdee_cal, now=None)
    expected.pop("raw_last_synced_at")
    return row.raw_last_synced_at is not None and all(
        getattr(row, field) == value for field, value in expected.items()
    )


def reset(db: Session, user_id: str, date_input=None) -> Optional[DailyBurnedEntry]:
    """
    Put a day back on its stored system baseline.

    The baseline is not recomputed: it is the value captured when the row was
    created. A row that is already at its defaults (e.g. just created) is
    returned as is with no write, so its raw_last_synced_at keeps the time
    the raw burn was last set rather than the time of the reset.
    """
    row = get_or_create(db, user_id, date_input)
    if row is None:
        return None

    _check_max(row.system_bmr_cal, row.system_active_cal, row.system_tdee_cal)

    if _is_system_state(row):
        return row

    updated = ledger_store.update(
        db,
        row.id,
        _system_defaults(row.system_bmr_cal, row.system_active_cal, row.system_tdee_cal, _utcnow()),
    )
    log.info("burned_row_reset", user_id=user_id, entry_date=row.entry_date.isoformat())
    return updated


# ---------- Manual edits ----------

def _reduction_patch(
    row: DailyBurnedEntry,
    reduction: ReductionEdit,
    patch: dict[str, Any],
    active_set: bool,
    now: datetime,
) -> dict[str, Any]:
    pct = _assert_reduction_pct(reduction.burn_reduction_pct_int)
    out: dict[str, Any] = {"burn_reduction_pct_int": pct}

    raw_burn = row.raw_burn
    raw_synced_at = row.raw_last_synced_at
    if reduction.raw_burn is not None:
        raw_burn = float(_to_safe_int(reduction.raw_burn))
        if raw_burn < 0:
            raise NegativeNotAllowed("raw_burn must not be negative")
        raw_synced_at = now
        out.update(
            raw_burn=raw_burn,
            raw_tdee=reduction.raw_tdee,
            raw_burn_source=reduction.raw_burn_source,
            raw_last_synced_at=now,
        )

    if pct == 0 and raw_burn is not None and raw_synced_at is None:
        out["raw_last_synced_at"] = now

    # Effective activity follows the corrected raw figure unless it is being set explicitly
    if not active_set and raw_burn is not None:
        active = round(raw_burn * (1 - pct / 100))
        bmr = patch.get("bmr_cal", row.bmr_cal)
        tdee = bmr + active
        _check_max(tdee)
        out.update(active_cal=active, tdee_cal=tdee)

    return out


def save_overrides(
    db: Session,
    user_id: str,
    date_input,
    touched: TouchedFields,
    values: EditedValues,
    reduction: Optional[ReductionEdit] = None,
) -> Optional[DailyBurnedEntry]:
    """
    Apply manual burned edits.

    - TDEE edited: BMR snaps back to the system BMR, activity becomes the
      remainder, both activity and TDEE are flagged as overridden.
    - BMR and/or activity edited: TDEE is derived as their sum and is never
      flagged; previously overridden metrics stay overridden.
    Source provenance is preserved in both cases.
    """
    if not user_id:
        return None

    row = get_or_create(db, user_id, date_input)
    if row is None:
        return None

    next_bmr = _to_safe_int(values.bmr_cal)
    next_active = _to_safe_int(values.active_cal)
    next_tdee = _to_safe_int(values.tdee_cal)

    patch: dict[str, Any] = {}

    if touched.tdee:
        system_bmr = row.system_bmr_cal
        derived_active = next_tdee - system_bmr
        if derived_active < 0:
            raise TdeeBelowBmr(f"TDEE {next_tdee} is below BMR {system_bmr}")
        _check_max(next_tdee)

        patch = {
            "bmr_cal": system_bmr,
            "bmr_overridden": False,
            "active_cal": derived_active,
            "active_overridden": True,
            "tdee_cal": next_tdee,
            "tdee_overridden": True,
            "is_overridden": True,
        }

    elif touched.bmr or touched.active:
        bmr = next_bmr if touched.bmr else row.bmr_cal
        active = next_active if touched.active else row.active_cal
        if bmr < 0 or active < 0:
            raise NegativeNotAllowed("BMR and activity must not be negative")
        tdee = bmr + active
        _check_max(tdee)

        bmr_overridden = True if touched.bmr else row.bmr_overridden
        active_overridden = True if touched.active else row.active_overridden

        patch = {
            "bmr_cal": bmr,
            "active_cal": active,
            "tdee_cal": tdee,
            "bmr_overridden": bmr_overridden,
            "active_overridden": active_overridden,
            # tdee is derived when editing bmr/active
            "tdee_overridden": False,
            "is_overridden": bmr_overridden or active_overridden,
        }

    if reduction is not None:
        patch.update(
            _reduction_patch(
                row,
                reduction,
                patch,
                active_set=touched.tdee or touched.active,
                now=_utcnow(),
            )
        )

    if not patch:
        return row

    updated = ledger_store.update(db, row.id, patch)
    log.info(
        "burned_row_overridden",
        user_id=user_id,
        entry_date=row.entry_date.isoformat(),
        fields=sorted(patch),
    )
    return updated


# ---------- Wearable totals ----------

def _wearable_bmr(entry_date: date, system_bmr: int, total: int) -> int:
    """Full-day system BMR, prorated by elapsed local time when the day is today."""
    now = datekey.now_local()
    bmr = system_bmr
    if entry_date == now.date():
        elapsed = now - datekey.start_of_local_day(entry_date)
        fraction = min(max(elapsed / timedelta(days=1), 0.0), 1.0)
        bmr = round(system_bmr * fraction)
    return min(bmr, total)


def save_wearable_total(
    db: Session,
    user_id: str,
    date_input,
    tdee_cal,
    vendor: Optional[VendorSync] = None,
) -> Optional[DailyBurnedEntry]:
    """
    Store a wearable-reported total for the day as the final TDEE.

    The split keeps tdee == bmr + active, and raw_burn is back-computed so the
    current burn correction still reproduces the requested total.
    system_* is never touched.
    """
    if not user_id:
        return None

    row = get_or_create(db, user_id, date_input)
    if row is None:
        return None

    total = _to_safe_int(tdee_cal)
    if total < 0:
        raise NegativeNotAllowed("Total burned must not be negative")
    _check_max(total)

    pct = _assert_reduction_pct(row.burn_reduction_pct_int or 0)
    factor = 1 - pct / 100

    bmr = _wearable_bmr(row.entry_date, row.system_bmr_cal, total)
    desired_active = max(0, total - bmr)
    raw_burn = desired_active / factor if factor > 0 else 0.0

    final_active = round(raw_burn * factor)
    final_tdee = bmr + final_active
    _check_max(final_tdee)

    now = _utcnow()
    patch = {
        "bmr_cal": bmr,
        "active_cal": final_active,
        "tdee_cal": final_tdee,
        "raw_tdee": bmr + raw_burn,
        "raw_burn": raw_burn,
        "raw_burn_source": BurnSource.VENDOR.value,
        "raw_last_synced_at": now,
        "bmr_overridden": True,
        "active_overridden": True,
        "tdee_overridden": True,
        "is_overridden": True,
        "source": BurnSource.VENDOR.value,
    }
    if vendor is not None:
        patch.update(
            vendor_external_id=vendor.external_id,
            vendor_payload_hash=vendor.payload_hash,
            synced_at=vendor.synced_at or now,
        )

    updated = ledger_store.update(db, row.id, patch)
    log.info(
        "burned_wearable_total_saved",
        user_id=user_id,
        entry_date=row.entry_date.isoformat(),
        tdee=final_tdee,
        bmr=bmr,
    )
    return updated


# ---------- Refresh after weight / profile changes ----------

def _refresh_patch(row: DailyBurnedEntry, baseline: Baseline, now: datetime) -> dict[str, Any]:
    """
    New system_* for an existing row. Overridden rows keep their effective
    values; other rows go back to pure system values, burn correction and
    any manual raw figure included.
    Returns {} when nothing would change.
    """
    system = _system_values(baseline)
    system_unchanged = all(getattr(row, field) == value for field, value in system.items())

    if row.is_overridden:
        return {} if system_unchanged else system

    patch = {
        **system,
        "bmr_cal": baseline.bmr,
        "active_cal": baseline.active,
        "tdee_cal": baseline.tdee,
        "burn_reduction_pct_int": 0,
        "raw_burn": baseline.active,
        "raw_tdee": None,
        "raw_burn_source": BurnSource.SYSTEM.value,
        "raw_last_synced_at": row.raw_last_synced_at or now,
        "bmr_overridden": False,
        "active_overridden": False,
        "tdee_overridden": False,
        "is_overridden": False,
    }
    if all(getattr(row, field) == value for field, value in patch.items()):
        return {}
    return patch


def _effective_weight_map(
    db: Session,
    user_id: str,
    start: date,
    end: date,
    fallback_weight_lb: Optional[float],
) -> dict[date, Optional[float]]:
    """Weight in effect at the local end of each day in [start, end], carried forward."""
    window_start = datekey.start_of_local_day(start)
    logs = weights.weights_in_range(db, user_id, window_start, datekey.end_of_local_day(end))
    prior = weights.latest_weight_at_or_before(db, user_id, window_start - timedelta(microseconds=1))

    current = prior.weight_lb if prior is not None else fallback_weight_lb
    out: dict[date, Optional[float]] = {}
    i = 0
    day = start
    while day <= end:
        cutoff = datekey.to_utc_naive(datekey.end_of_local_day(day))
        while i < len(logs) and logs[i].weighed_at <= cutoff:
            if logs[i].weight_lb is not None:
                current = logs[i].weight_lb
            i += 1
        out[day] = current
        day = datekey.add_days(day, 1)
    return out


def refresh_from_weight_change(
    db: Session,
    user_id: str,
    changed_at: Optional[datetime] = None,
) -> Optional[RefreshResult]:
    """
    Recompute system_* for existing rows affected by a weigh-in change.

    The window runs from the changed day (no earlier than the lookback limit)
    to the day before the next weigh-in, capped at today. Without changed_at
    the whole lookback window is refreshed. Never inserts rows.
    Naive changed_at values are UTC.
    """
    if not user_id:
        return None

    today = datekey.today_key()
    min_day = datekey.add_days(today, -(settings.BURNED_REFRESH_LOOKBACK_DAYS - 1))

    if changed_at is not None and changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=timezone.utc)

    start = min_day
    if changed_at is not None:
        start = max(datekey.normalize_day_key(changed_at), min_day)

    end = today
    if changed_at is not None:
        next_at = weights.next_weigh_in_after(db, user_id, changed_at)
        if next_at is not None:
            next_day = datekey.normalize_day_key(next_at.replace(tzinfo=timezone.utc))
            end = min(datekey.add_days(next_day, -1), today)

    if end < start:
        return RefreshResult(updated=0, start_date=start, end_date=end)

    profile = get_user_profile(db, user_id)
    if profile is None:
        return None

    weight_map = _effective_weight_map(db, user_id, start, end, profile.weight_lb)
    rows = ledger_store.find_range(db, user_id, start, end)

    updated = 0
    now = _utcnow()
    for row in rows:
        baseline = _baseline_for(profile, weight_map.get(row.entry_date, profile.weight_lb), row.entry_date)
        if baseline is None:
            # Days that cannot be estimated keep their current values
            continue

        patch = _refresh_patch(row, baseline, now)
        if not patch:
            continue

        if ledger_store.update(db, row.id, patch) is not None:
            updated += 1

    log.info(
        "burned_refreshed_from_weight",
        user_id=user_id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        updated=updated,
    )
    return RefreshResult(updated=updated, start_date=start, end_date=end)


def refresh_today_from_profile_change(db: Session, user_id: str) -> Optional[DailyBurnedEntry]:
    """Recompute today's system_* after height/activity/gender/dob edits. Never creates the row."""
    if not user_id:
        return None

    today = datekey.today_key()
    existing = ledger_store.find_by_day(db, user_id, today)
    if existing is None:
        return None

    profile = get_user_profile(db, user_id)
    if profile is None:
        return None

    weight_lb = _effective_weight_for_day(db, user_id, today, profile.weight_lb)
    baseline = _baseline_for(profile, weight_lb, today)
    if baseline is None:
        return None

    patch = _refresh_patch(existing, baseline, _utcnow())
    if not patch:
        return existing

    return ledger_store.update(db, existing.id, patch)
