from __future__ import annotations

import pytest

from backend.core.calories import (
    MAX_KCAL_PER_MIN,
    MIN_KCAL_PER_MIN,
    CalorieCounter,
    UserProfile,
    calories_per_minute,
)

MALE = UserProfile(sex="male", age=35, height_cm=180, weight_kg=75)
FEMALE = UserProfile(sex="female", age=35, height_cm=165, weight_kg=60)


def test_rate_rises_with_heart_rate() -> None:
    assert calories_per_minute(MALE, 150) > calories_per_minute(MALE, 120)
    assert calories_per_minute(FEMALE, 150) > calories_per_minute(FEMALE, 120)


def test_rate_is_clamped() -> None:
    assert calories_per_minute(MALE, 40) == MIN_KCAL_PER_MIN
    assert calories_per_minute(MALE, 400) == MAX_KCAL_PER_MIN


def test_male_rate_at_moderate_effort() -> None:
    active = (-55.0969 + 0.6309 * 140 + 0.1988 * 75 + 0.2017 * 35) / 4.184
    bmr = 88.362 + 13.397 * 75 + 4.799 * 180 - 5.677 * 35

    assert calories_per_minute(MALE, 140) == pytest.approx(active + bmr / 1440)


def test_counter_accumulates_and_ignores_missing_heart_rate() -> None:
    counter = CalorieCounter(MALE)

    counter.add(140, 30)
    counter.add(140, 30)
    counter.add(None, 30)
    counter.add(0, 30)
    counter.add(140, 0)

    assert counter.total_kcal == pytest.approx(calories_per_minute(MALE, 140))

    counter.reset()
    assert counter.total_kcal == 0
