"""
WHOOP total-energy sync into the burned ledger.

MyWhoop runs as a separate service and owns OAuth + token refresh; we only
read the latest access_token from its credentials file.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import httpx
import structlog
from sqlalchemy.orm import Session

from burnledger.core import datekey
from burnledger.core.burned import VendorSync, save_wearable_total
from burnledger.core.config import settings
from burnledger.core.errors import VendorSyncError
from burnledger.models.ledger import DailyBurnedEntry

log = structlog.get_logger()

KJ_PER_KCAL = 4.184


@dataclass(frozen=True)
class CycleEnergy:
    cycle_id: str
    kcal: int
    payload_hash: str


def load_access_token(credentials_path: Optional[str] = None) -> str:
    p = Path(credentials_path or settings.WHOOP_CREDENTIALS_PATH)

    if not p.exists():
        raise VendorSyncError(f"WHOOP credentials file not found at {p}")

    try:
        data = json.loads(p.read_text())
    except (OSError, ValueError) as e:
        raise VendorSyncError(f"Failed to read WHOOP credentials: {e}")

    token = data.get("access_token") if isinstance(data, dict) else None
    if not token:
        raise VendorSyncError("WHOOP credentials file is missing 'access_token'")

    return token


def payload_hash(record: dict) -> str:
    canonical = json.dumps(record, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _cycle_records(data: Any) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("records") or data.get("cycle") or []
    return []


def extract_cycle_energy(data: Any) -> Optional[CycleEnergy]:
    """Highest-energy scored cycle in a WHOOP /cycle response, converted to kcal."""
    best: Optional[CycleEnergy] = None
    for crec in _cycle_records(data):
        if not isinstance(crec, dict):
            continue
        if crec.get("score_state") not in (None, "SCORED"):
            continue

        score = crec.get("score") or {}
        kj = score.get("kilojoule") if isinstance(score, dict) else None
        if not isinstance(kj, (int, float)) or kj < 0:
            continue

        energy = CycleEnergy(
            cycle_id=str(crec.get("id")),
            kcal=round(kj / KJ_PER_KCAL),
            payload_hash=payload_hash(crec),
        )
        if best is None or energy.kcal > best.kcal:
            best = energy
    return best


def fetch_cycle_energy(
    day,
    access_token: str,
    client: Optional[httpx.Client] = None,
) -> Optional[CycleEnergy]:
    """Fetch WHOOP cycles overlapping the local day `day`."""
    start_dt = datekey.start_of_local_day(datekey.normalize_day_key(day))
    end_dt = start_dt + timedelta(days=1)

    own_client = client is None
    client = client or httpx.Client(timeout=10.0)
    try:
        resp = client.get(
            f"{settings.WHOOP_API_BASE}/developer/v2/cycle",
            params={"start": start_dt.isoformat(), "end": end_dt.isoformat()},
            headers={"Authorization": f"Bearer {access_token}"},
        )
    except httpx.HTTPError as e:
        raise VendorSyncError(f"WHOOP cycle fetch failed: {e}")
    finally:
        if own_client:
            client.close()

    if resp.status_code != 200:
        raise VendorSyncError(f"WHOOP cycle fetch failed ({resp.status_code}): {resp.text}")

    try:
        data = resp.json()
    except ValueError:
        raise VendorSyncError("WHOOP cycle response is not JSON")

    return extract_cycle_energy(data)


def sync_whoop_total(
    db: Session,
    user_id: str,
    date_input=None,
    client: Optional[httpx.Client] = None,
    access_token: Optional[str] = None,
) -> Optional[DailyBurnedEntry]:
    """Pull the day's WHOOP energy and store it as the wearable total. None when nothing is scored yet."""
    day = datekey.normalize_day_key(date_input)
    token = access_token or load_access_token()

    try:
        energy = fetch_cycle_energy(day, token, client=client)
    except VendorSyncError as e:
        log.warning("whoop_sync_failed", user_id=user_id, entry_date=day.isoformat(), err=str(e))
        raise

    if energy is None:
        log.info("whoop_sync_no_cycle", user_id=user_id, entry_date=day.isoformat())
        return None

    return save_wearable_total(
        db,
        user_id,
        day,
        energy.kcal,
        vendor=VendorSync(external_id=energy.cycle_id, payload_hash=energy.payload_hash),
    )
