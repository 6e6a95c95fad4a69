"""Calorie expenditure estimate from heart rate.

Active expenditure uses the Keytel et al. (2005) heart-rate regression, basal
metabolism the Harris-Benedict equation spread over the day.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Sex = Literal["male", "female"]

MIN_KCAL_PER_MIN = 1.5
MAX_KCAL_PER_MIN = 30.0


@dataclass(frozen=True)
class UserProfile:
    sex: Sex
    age: int
    height_cm: float
    weight_kg: float


def calories_per_minute(profile: UserProfile, heart_rate: float) -> float:
    age = profile.age
    weight = profile.weight_kg
    height = profile.height_cm

    if profile.sex == "male":
        active = (-55.0969 + 0.6309 * heart_rate + 0.1988 * weight + 0.2017 * age) / 4.184
        bmr = 88.362 + (13.397 * weight) + (4.799 * height) - (5.677 * age)
    else:
        active = (-20.4022 + 0.4472 * heart_rate + 0.1263 * weight + 0.074 * age) / 4.184
        bmr = 447.593 + (9.247 * weight) + (3.098 * height) - (4.330 * age)

    total = active + bmr / 1440.0
    return max(MIN_KCAL_PER_MIN, min(total, MAX_KCAL_PER_MIN))


class CalorieCounter:
    def __init__(self, profile: UserProfile) -> None:
        self.profile = profile
        self.total_kcal = 0.0

    def add(self, heart_rate: float | None, dt_sec: float) -> None:
        if heart_rate is None or heart_rate <= 0 or dt_sec <= 0:
            return
        self.total_kcal += calories_per_minute(self.profile, heart_rate) * (dt_sec / 60.0)

    def reset(self) -> None:
        self.total_kcal = 0.0
