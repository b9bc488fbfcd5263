from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from burnledger.models.profile import ActivityLevel

LB_TO_KG = 0.45359237

ACTIVITY_FACTORS = {
    ActivityLevel.SEDENTARY.value: 1.2,
    ActivityLevel.LIGHT.value: 1.375,
    ActivityLevel.MODERATE.value: 1.55,
    ActivityLevel.ACTIVE.value: 1.725,
    ActivityLevel.VERY_ACTIVE.value: 1.9,
}

# Mifflin-St Jeor sex constant; unspecified genders use the midpoint
_SEX_OFFSET = {"male": 5.0, "female": -161.0}
_NEUTRAL_OFFSET = -78.0


@dataclass(frozen=True)
class Baseline:
    bmr: int
    active: int
    tdee: int


def age_on(date_of_birth: date, on: date) -> int:
    return on.year - date_of_birth.year - ((on.month, on.day) < (date_of_birth.month, date_of_birth.day))


def compute_baseline(
    gender: Optional[str],
    date_of_birth: Optional[date],
    height_cm: Optional[float],
    weight_lb: Optional[float],
    activity_level: Optional[str],
    on: Optional[date] = None,
) -> Optional[Baseline]:
    """
    Baseline BMR / activity burn / TDEE for one day.

    BMR is Mifflin-St Jeor, TDEE is BMR times the activity factor and active is
    the difference, so tdee == bmr + active always holds. Age is taken as of
    `on` (defaults to today) so past days get the age the user had then.

    Returns None when any input is missing or not positive.
    """
    if not gender or date_of_birth is None or activity_level is None:
        return None
    if not height_cm or height_cm <= 0 or not weight_lb or weight_lb <= 0:
        return None

    factor = ACTIVITY_FACTORS.get(str(activity_level).lower())
    if factor is None:
        return None

    on = on or date.today()
    age = age_on(date_of_birth, on)
    if age < 0:
        return None

    weight_kg = weight_lb * LB_TO_KG
    offset = _SEX_OFFSET.get(gender.lower(), _NEUTRAL_OFFSET)

    bmr = round(10 * weight_kg + 6.25 * height_cm - 5 * age + offset)
    bmr = max(0, bmr)
    tdee = round(bmr * factor)

    return Baseline(bmr=bmr, active=tdee - bmr, tdee=tdee)
