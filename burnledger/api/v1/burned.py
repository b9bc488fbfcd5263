from datetime import date as DateType, datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from burnledger.api.deps import get_db
from burnledger.core import burned, datekey
from burnledger.core.errors import (
    BurnedError,
    DefaultsInputMissing,
    ProfileMissing,
    VendorSyncError,
)
from burnledger.core.vendor import sync_whoop_total
from burnledger.models.ledger import BurnSource, DailyBurnedEntry

router = APIRouter(prefix="/users/{user_id}/burned", tags=["burned"])


# ---------- Pydantic schemas ----------

class BurnedOut(BaseModel):
    id: int
    user_id: str
    entry_date: str

    bmr_cal: int
    active_cal: int
    tdee_cal: int

    system_bmr_cal: int
    system_active_cal: int
    system_tdee_cal: int

    bmr_overridden: bool
    active_overridden: bool
    tdee_overridden: bool
    is_overridden: bool

    burn_reduction_pct_int: int
    raw_burn: float | None
    raw_tdee: float | None
    raw_burn_source: str
    raw_last_synced_at: datetime | None

    source: str
    vendor_external_id: str | None
    vendor_payload_hash: str | None
    synced_at: datetime | None
    updated_at: datetime | None


class TouchedIn(BaseModel):
    bmr: bool = False
    active: bool = False
    tdee: bool = False


class ValuesIn(BaseModel):
    bmr_cal: float
    active_cal: float
    tdee_cal: float


class ReductionIn(BaseModel):
    burn_reduction_pct_int: int
    raw_burn: float | None = None
    raw_tdee: float | None = None
    raw_burn_source: BurnSource = BurnSource.MANUAL


class OverridesIn(BaseModel):
    touched: TouchedIn
    values: ValuesIn
    reduction: ReductionIn | None = None


class WearableTotalIn(BaseModel):
    tdee_cal: float
    vendor_external_id: str | None = None
    vendor_payload_hash: str | None = None


# ---------- Helpers ----------

def _to_out(row: DailyBurnedEntry) -> BurnedOut:
    return BurnedOut(
        id=row.id,
        user_id=row.user_id,
        entry_date=row.entry_date.isoformat(),
        bmr_cal=row.bmr_cal,
        active_cal=row.active_cal,
        tdee_cal=row.tdee_cal,
        system_bmr_cal=row.system_bmr_cal,
        system_active_cal=row.system_active_cal,
        system_tdee_cal=row.system_tdee_cal,
        bmr_overridden=row.bmr_overridden,
        active_overridden=row.active_overridden,
        tdee_overridden=row.tdee_overridden,
        is_overridden=row.is_overridden,
        burn_reduction_pct_int=row.burn_reduction_pct_int,
        raw_burn=row.raw_burn,
        raw_tdee=row.raw_tdee,
        raw_burn_source=row.raw_burn_source,
        raw_last_synced_at=row.raw_last_synced_at,
        source=row.source,
        vendor_external_id=row.vendor_external_id,
        vendor_payload_hash=row.vendor_payload_hash,
        synced_at=row.synced_at,
        updated_at=row.updated_at,
    )


def _parse_day(date_str: str) -> DateType:
    try:
        return datekey.normalize_day_key(date_str)
    except ValueError:
        raise HTTPException(400, f"Invalid date format: {date_str}, expected YYYY-MM-DD")


def _raise_http(e: BurnedError):
    # Incomplete account setup vs. rejected values vs. upstream wearable failure
    if isinstance(e, (ProfileMissing, DefaultsInputMissing)):
        status = 409
    elif isinstance(e, VendorSyncError):
        status = 502
    else:
        status = 422
    raise HTTPException(status_code=status, detail={"code": e.code, "message": str(e)})


def _found(row: DailyBurnedEntry | None, day: DateType) -> BurnedOut:
    if row is None:
        raise HTTPException(404, f"No burned entry available for {day.isoformat()}")
    return _to_out(row)


# ---------- Endpoints ----------

@router.get("", response_model=list[BurnedOut])
def list_burned(user_id: str, start: str, end: str, db: Session = Depends(get_db)):
    """
    Existing burned rows between start and end (inclusive). Does not create rows.
    """
    rows = burned.get_range(db, user_id, _parse_day(start), _parse_day(end))
    return [_to_out(r) for r in rows]


@router.get("/{date}", response_model=BurnedOut)
def get_burned_for_date(user_id: str, date: str, db: Session = Depends(get_db)):
    """
    Burned row for a local day, created with system defaults on first access.
    404 for future days.
    """
    d = _parse_day(date)
    try:
        row = burned.get_or_create(db, user_id, d)
    except BurnedError as e:
        _raise_http(e)
    return _found(row, d)


@router.post("/{date}/reset", response_model=BurnedOut)
def reset_burned(user_id: str, date: str, db: Session = Depends(get_db)):
    d = _parse_day(date)
    try:
        row = burned.reset(db, user_id, d)
    except BurnedError as e:
        _raise_http(e)
    return _found(row, d)


@router.put("/{date}", response_model=BurnedOut)
def save_burned_overrides(user_id: str, date: str, payload: OverridesIn, db: Session = Depends(get_db)):
    d = _parse_day(date)
    reduction = None
    if payload.reduction is not None:
        reduction = burned.ReductionEdit(
            burn_reduction_pct_int=payload.reduction.burn_reduction_pct_int,
            raw_burn=payload.reduction.raw_burn,
            raw_tdee=payload.reduction.raw_tdee,
            raw_burn_source=payload.reduction.raw_burn_source.value,
        )

    try:
        row = burned.save_overrides(
            db,
            user_id,
            d,
            touched=burned.TouchedFields(**payload.touched.model_dump()),
            values=burned.EditedValues(**payload.values.model_dump()),
            reduction=reduction,
        )
    except BurnedError as e:
        _raise_http(e)
    return _found(row, d)


@router.put("/{date}/wearable", response_model=BurnedOut)
def save_burned_wearable_total(
    user_id: str,
    date: str,
    payload: WearableTotalIn,
    db: Session = Depends(get_db),
):
    d = _parse_day(date)
    vendor = None
    if payload.vendor_external_id or payload.vendor_payload_hash:
        vendor = burned.VendorSync(
            external_id=payload.vendor_external_id,
            payload_hash=payload.vendor_payload_hash,
        )

    try:
        row = burned.save_wearable_total(db, user_id, d, payload.tdee_cal, vendor=vendor)
    except BurnedError as e:
        _raise_http(e)
    return _found(row, d)


@router.post("/{date}/sync/whoop", response_model=BurnedOut)
def sync_burned_from_whoop(user_id: str, date: str, db: Session = Depends(get_db)):
    """
    Import the day's WHOOP cycle energy as the wearable total.
    404 when WHOOP has no scored cycle for the day yet.
    """
    d = _parse_day(date)
    try:
        row = sync_whoop_total(db, user_id, d)
    except BurnedError as e:
        _raise_http(e)
    return _found(row, d)
