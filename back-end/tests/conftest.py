"""
Shared fixtures: realistic measurement records at each level of completeness.
"""

import pytest

from bodycomp.schemas import BreadthSet, GirthSet, RawMeasurement, SkinfoldSet


COMPLETE_MALE = {
    "weight_kg": 75.0,
    "height_cm": 178.0,
    "age_years": 30,
    "sex": "male",
    "skinfolds": {
        "triceps": 10.0,
        "subscapular": 12.0,
        "biceps": 5.0,
        "suprailiac": 14.0,
        "abdominal": 18.0,
        "thigh": 15.0,
        "calf": 8.0,
    },
    "girths": {
        "arm_relaxed": 31.0,
        "arm_flexed": 34.0,
        "forearm": 28.0,
        "waist": 80.0,
        "thigh": 55.0,
        "calf": 37.0,
    },
    "breadths": {
        "humerus": 7.0,
        "femur": 9.8,
        "biacromial": 40.0,
        "biiliocristal": 28.0,
    },
    "sitting_height_cm": 92.0,
    "head_circumference_cm": 57.0,
}


@pytest.fixture
def complete_male_payload() -> dict:
    """JSON body of a complete ISAK L3 record (for API tests)."""
    return {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in COMPLETE_MALE.items()
    }


@pytest.fixture
def complete_male() -> RawMeasurement:
    """A complete, valid record: the Kerr 5C tier applies."""
    return RawMeasurement(**COMPLETE_MALE)


@pytest.fixture
def skinfolds_only_male(complete_male) -> RawMeasurement:
    """All skinfolds but no girths or breadths: Durnin-Womersley applies."""
    return complete_male.model_copy(update={"girths": GirthSet(), "breadths": BreadthSet()})


@pytest.fixture
def basic_only_male() -> RawMeasurement:
    """Weight, height and age only: BMI estimate applies."""
    return RawMeasurement(weight_kg=70, height_cm=175, age_years=30, sex="male")


@pytest.fixture
def sloan_female() -> RawMeasurement:
    """Only the two Sloan skinfolds for women."""
    return RawMeasurement(
        weight_kg=60,
        height_cm=165,
        age_years=28,
        sex="female",
        skinfolds=SkinfoldSet(suprailiac=12.0, triceps=16.0),
    )
