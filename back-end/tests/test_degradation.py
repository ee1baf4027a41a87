"""
Tests for the Graceful Degradation Service
===========================================
Test matrix:
  1. Tier ordering: complete -> Kerr, skinfolds -> Durnin, 2 skinfolds -> Sloan,
     basic data -> BMI, nothing -> error
  2. Downgrade reasons are accumulated in warnings and downgrade_reason
  3. Kerr blocked by Σ6 > 200 mm and by validator errors
  4. Deurenberg worked example
  5. Tier introspection without calculation
"""

import pytest

from bodycomp.schemas import BreadthSet, RawMeasurement, SkinfoldSet
from bodycomp.services.degradation import (
    DEFAULT_TIERS,
    LEVEL_INFO,
    build_tiers,
    calculate_with_graceful_degradation,
    deurenberg_fat_percent,
    get_best_available_level,
    get_missing_for_level,
)


class TestTierOrdering:

    def test_complete_record_uses_kerr(self, complete_male):
        result = calculate_with_graceful_degradation(complete_male)
        assert result.level == "kerr_5c"
        assert result.confidence_score == 95
        assert result.is_downgraded is False
        assert result.downgrade_reason is None
        assert result.five_component is not None
        assert result.muscle_mass_kg == result.five_component.muscle.kg

    def test_kerr_unified_values(self, complete_male):
        result = calculate_with_graceful_degradation(complete_male)
        assert result.fat_percent == result.five_component.lipid_fat_percent
        assert result.fat_mass_kg + result.lean_mass_kg == pytest.approx(75.0, abs=0.02)

    def test_skinfolds_only_uses_durnin(self, skinfolds_only_male):
        result = calculate_with_graceful_degradation(skinfolds_only_male)
        assert result.level == "durnin_4sf"
        assert result.confidence_score == 80
        assert result.is_downgraded is True
        assert result.two_component.formula == "control"
        assert result.fat_percent == pytest.approx(18.52, abs=0.05)
        assert result.muscle_mass_kg is None

    def test_two_skinfolds_use_sloan(self):
        m = RawMeasurement(
            weight_kg=75, height_cm=178, age_years=30, sex="male",
            skinfolds=SkinfoldSet(thigh=15, subscapular=12),
        )
        result = calculate_with_graceful_degradation(m)
        assert result.level == "sloan_2sf"
        assert result.confidence_score == 60
        assert result.fat_percent == pytest.approx(13.19, abs=0.05)

    def test_sloan_sites_depend_on_sex(self, sloan_female):
        result = calculate_with_graceful_degradation(sloan_female)
        assert result.level == "sloan_2sf"
        assert result.fat_percent == pytest.approx(20.26, abs=0.05)

        as_male = sloan_female.model_copy(update={"sex": "male"})
        assert calculate_with_graceful_degradation(as_male).level == "bmi_only"

    def test_basic_data_only_uses_bmi(self, basic_only_male):
        result = calculate_with_graceful_degradation(basic_only_male)
        assert result.level == "bmi_only"
        assert result.confidence_score == 30
        assert result.fat_percent == pytest.approx(18.1, abs=0.05)
        assert result.fat_mass_kg + result.lean_mass_kg == pytest.approx(70, abs=0.1)

    def test_missing_age_is_an_error(self):
        m = RawMeasurement(weight_kg=70, height_cm=175, sex="male")
        result = calculate_with_graceful_degradation(m)
        assert result.level == "error"
        assert result.is_error is True
        assert result.confidence_score == 0
        assert result.is_downgraded is True

    def test_confidence_decreases_with_each_tier(self):
        confidences = [tier.confidence for tier in DEFAULT_TIERS]
        assert confidences == sorted(confidences, reverse=True)


class TestDowngradeReasons:

    def test_each_skipped_tier_adds_a_reason(self, basic_only_male):
        result = calculate_with_graceful_degradation(basic_only_male)
        assert "Kerr 5C" in result.downgrade_reason
        assert "Durnin-Womersley" in result.downgrade_reason
        assert "thigh" in result.downgrade_reason
        skipped = [w for w in result.warnings if "Using an alternative formula" in w]
        assert len(skipped) == 3

    def test_high_skinfold_sum_blocks_kerr(self, complete_male):
        m = complete_male.model_copy(update={
            "skinfolds": SkinfoldSet(
                triceps=40, subscapular=45, biceps=20, suprailiac=50,
                abdominal=60, thigh=55, calf=30,
            )
        })
        result = calculate_with_graceful_degradation(m)
        assert result.level == "durnin_4sf"
        assert "Skinfold sum too high" in result.downgrade_reason

    def test_anatomical_error_blocks_kerr_only(self, complete_male):
        m = complete_male.model_copy(update={"breadths": BreadthSet(humerus=10, femur=9)})
        result = calculate_with_graceful_degradation(m)
        assert result.level == "durnin_4sf"
        assert "breadths.femur" in result.downgrade_reason
        assert result.validation.is_valid is False

    def test_invalid_skinfold_blocks_the_tiers_that_use_it(self, skinfolds_only_male):
        m = skinfolds_only_male.model_copy(update={
            "skinfolds": SkinfoldSet(triceps=10, subscapular=12, biceps=80, suprailiac=14, thigh=15)
        })
        result = calculate_with_graceful_degradation(m)
        assert result.level == "sloan_2sf"
        assert "skinfolds.biceps" in result.downgrade_reason

    def test_invalid_weight_is_an_error(self):
        m = RawMeasurement(weight_kg=400, height_cm=175, age_years=30, sex="male")
        result = calculate_with_graceful_degradation(m)
        assert result.level == "error"
        assert "weight_kg" in result.downgrade_reason


class TestBelowAdultRange:

    def test_thirteen_year_old_gets_a_bmi_estimate(self):
        m = RawMeasurement(weight_kg=50, height_cm=160, age_years=13, sex="female")
        result = calculate_with_graceful_degradation(m)
        assert result.level == "bmi_only"
        assert result.confidence_score == 25
        assert result.validation.is_valid is False
        assert any("age_years (13)" in w for w in result.warnings)

    def test_light_adult_gets_a_bmi_estimate(self):
        m = RawMeasurement(weight_kg=29, height_cm=150, age_years=40, sex="female")
        result = calculate_with_graceful_degradation(m)
        assert result.level == "bmi_only"
        assert result.confidence_score == 25
        assert any("weight_kg (29)" in w for w in result.warnings)

    def test_adult_range_keeps_full_confidence(self, basic_only_male):
        result = calculate_with_graceful_degradation(basic_only_male)
        assert result.confidence_score == 30
        assert not any("adult range" in w for w in result.warnings)

    def test_best_level_agrees(self):
        m = RawMeasurement(weight_kg=50, height_cm=160, age_years=13, sex="female")
        assert get_best_available_level(m) == "bmi_only"

    def test_zero_height_is_an_error(self, complete_male):
        m = complete_male.model_copy(update={"height_cm": 0})
        result = calculate_with_graceful_degradation(m)
        assert result.level == "error"
        assert result.confidence_score == 0


class TestDeurenberg:

    def test_worked_example(self):
        # 1.20 × 22.86 + 0.23 × 30 − 10.8 − 5.4
        assert deurenberg_fat_percent(70 / 1.75 ** 2, 30, "male") == pytest.approx(18.13, abs=0.01)

    def test_women_have_no_sex_offset(self):
        male = deurenberg_fat_percent(22, 30, "male")
        female = deurenberg_fat_percent(22, 30, "female")
        assert female - male == pytest.approx(10.8)

    def test_clamped(self):
        assert deurenberg_fat_percent(12, 14, "male") == 3.0
        assert deurenberg_fat_percent(60, 90, "female") == 60.0


class TestIntrospection:

    def test_best_level_matches_router(self, complete_male, skinfolds_only_male, basic_only_male):
        for m in (complete_male, skinfolds_only_male, basic_only_male):
            assert get_best_available_level(m) == calculate_with_graceful_degradation(m).level

    def test_best_level_without_basic_data(self):
        assert get_best_available_level(RawMeasurement(sex="female")) == "error"

    def test_missing_for_kerr(self, skinfolds_only_male):
        missing = get_missing_for_level(skinfolds_only_male, "kerr_5c")
        assert "breadths.humerus" in missing
        assert "breadths.femur" in missing

    def test_missing_for_sloan_depends_on_sex(self, basic_only_male):
        assert get_missing_for_level(basic_only_male, "sloan_2sf") == [
            "skinfolds.thigh", "skinfolds.subscapular",
        ]

    def test_nothing_missing_for_reachable_level(self, complete_male):
        assert get_missing_for_level(complete_male, "kerr_5c") == []

    def test_level_info_for_every_tier(self):
        for tier in build_tiers():
            assert LEVEL_INFO[tier.level].id == tier.level


class TestIdempotence:

    def test_same_input_same_output(self, complete_male):
        assert calculate_with_graceful_degradation(complete_male) == calculate_with_graceful_degradation(complete_male)
