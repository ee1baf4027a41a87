"""
Tests for the Five-Component Fractionation Service (Kerr 1988)
===============================================================
Test matrix:
  1. Phantom Z-score: known value, null-safety (height 0, SD 0, missing value)
  2. Mass conservation after rescaling
  3. Prerequisites: missing data listed, invalid record -> zeroed result
  4. Flags: deviation threshold, residual estimation, uncorrected girths
  5. Cormic index and obesity warning
  6. Idempotence
"""

import pytest

from bodycomp.core.reference import PhantomValue, PHANTOM_SKINFOLDS
from bodycomp.schemas import BreadthSet, SkinfoldSet
from bodycomp.services.degradation import calculate_with_graceful_degradation
from bodycomp.services.fractionation import (
    calculate_five_component_fractionation,
    cormic_index,
    corrected_girth,
    find_missing_data,
    mean_z_score,
    obesity_warning,
    z_score,
)


def _flag_codes(result) -> list[str]:
    return [flag.code for flag in result.flags]


class TestZScore:

    def test_phantom_height_and_mean_give_zero(self):
        assert z_score(15.4, 170.18, PHANTOM_SKINFOLDS["triceps"]) == pytest.approx(0.0)

    def test_known_value(self):
        # 10 mm triceps at 178 cm: (10 × 170.18/178 − 15.4) / 4.47
        assert z_score(10.0, 178.0, PHANTOM_SKINFOLDS["triceps"]) == pytest.approx(-1.306, abs=0.001)

    def test_height_zero_is_undefined(self):
        assert z_score(10.0, 0, PHANTOM_SKINFOLDS["triceps"]) is None

    def test_sd_zero_is_undefined(self):
        assert z_score(10.0, 170.0, PhantomValue(15.4, 0.0)) is None

    def test_missing_value_is_undefined(self):
        assert z_score(None, 170.0, PHANTOM_SKINFOLDS["triceps"]) is None

    def test_undefined_scores_are_left_out_of_the_mean(self):
        assert mean_z_score([1.0, None, 3.0]) == 2.0
        assert mean_z_score([None, None]) == 0.0


class TestCorrectedGirth:

    def test_subtracts_pi_times_skinfold_in_cm(self):
        assert corrected_girth(31.0, 10.0) == pytest.approx(31.0 - 3.14159, abs=1e-4)

    def test_missing_skinfold_keeps_girth(self):
        assert corrected_girth(31.0, None) == 31.0


class TestMassConservation:

    def test_components_sum_to_body_weight(self, complete_male):
        result = calculate_five_component_fractionation(complete_male)
        assert result.is_valid is True
        assert result.total_mass_kg == pytest.approx(complete_male.weight_kg, abs=0.1)

    def test_every_component_is_positive(self, complete_male):
        result = calculate_five_component_fractionation(complete_male)
        for component in (result.skin, result.adipose, result.muscle, result.bone, result.residual):
            assert component.kg > 0

    def test_lipid_fat_is_eighty_percent_of_adipose(self, complete_male):
        result = calculate_five_component_fractionation(complete_male)
        assert result.lipid_fat_percent == pytest.approx(result.adipose_percent * 0.8, abs=0.1)

    def test_density_is_inverse_siri_of_lipid_fat(self, complete_male):
        result = calculate_five_component_fractionation(complete_male)
        assert result.body_density == pytest.approx(495 / (result.lipid_fat_percent + 450), abs=1e-4)

    def test_more_skinfold_means_more_adipose(self, complete_male):
        thicker = complete_male.model_copy(update={
            "skinfolds": SkinfoldSet(
                triceps=20, subscapular=24, biceps=10, suprailiac=28,
                abdominal=36, thigh=30, calf=16,
            )
        })
        lean = calculate_five_component_fractionation(complete_male)
        fat = calculate_five_component_fractionation(thicker)
        assert fat.adipose.kg > lean.adipose.kg


class TestPrerequisites:

    def test_complete_record_has_nothing_missing(self, complete_male):
        assert find_missing_data(complete_male) == []

    def test_four_of_six_skinfolds_is_enough(self, complete_male):
        m = complete_male.model_copy(update={
            "skinfolds": SkinfoldSet(triceps=10, subscapular=12, abdominal=18, thigh=15)
        })
        assert find_missing_data(m) == []

    def test_three_skinfolds_are_not_enough(self, complete_male):
        m = complete_male.model_copy(update={
            "skinfolds": SkinfoldSet(triceps=10, subscapular=12, abdominal=18)
        })
        missing = find_missing_data(m)
        assert "skinfolds.suprailiac" in missing
        assert "skinfolds.thigh" in missing
        assert "skinfolds.calf" in missing

    def test_both_breadths_are_required(self, complete_male):
        m = complete_male.model_copy(update={"breadths": BreadthSet(humerus=7.0)})
        assert find_missing_data(m) == ["breadths.femur"]

    def test_missing_data_gives_zeroed_invalid_result(self, skinfolds_only_male):
        result = calculate_five_component_fractionation(skinfolds_only_male)
        assert result.is_valid is False
        assert result.total_mass_kg == 0
        assert "breadths.humerus" in result.missing_data
        assert "girths.arm_relaxed" in result.missing_data

    def test_zero_height_record_is_invalid_not_a_crash(self, complete_male):
        m = complete_male.model_copy(update={"height_cm": 0})
        result = calculate_five_component_fractionation(m)
        assert result.is_valid is False
        assert result.total_mass_kg == 0
        assert "height_cm" in result.missing_data

        routed = calculate_with_graceful_degradation(m)
        assert routed.level == "error"
        assert routed.five_component is None

    def test_femur_below_humerus_is_invalid(self, complete_male):
        m = complete_male.model_copy(update={"breadths": BreadthSet(humerus=10, femur=9)})
        result = calculate_five_component_fractionation(m)
        assert result.is_valid is False
        assert result.missing_data == ()
        assert result.validation.errors[0].issue == "anatomically_impossible"


class TestFlags:

    def test_deviation_flag_follows_threshold(self, complete_male):
        strict = calculate_five_component_fractionation(complete_male, deviation_warn_percent=5.0)
        lenient = calculate_five_component_fractionation(complete_male, deviation_warn_percent=100.0)
        assert "KERR_DEVIATION_HIGH" in _flag_codes(strict)
        assert "KERR_DEVIATION_HIGH" not in _flag_codes(lenient)
        assert strict.total_mass_kg == pytest.approx(lenient.total_mass_kg)

    def test_residual_uses_trunk_measurements_when_available(self, complete_male):
        result = calculate_five_component_fractionation(complete_male)
        assert result.residual_is_estimated is False
        assert "RESIDUAL_ESTIMATED" not in _flag_codes(result)

    def test_residual_is_estimated_without_trunk_measurements(self, complete_male):
        m = complete_male.model_copy(update={
            "head_circumference_cm": None,
            "breadths": BreadthSet(humerus=7.0, femur=9.8),
        })
        result = calculate_five_component_fractionation(m)
        assert result.residual_is_estimated is True
        assert "RESIDUAL_ESTIMATED" in _flag_codes(result)
        zs = result.z_scores
        assert zs.residual == pytest.approx((zs.adipose + zs.muscle + zs.bone) / 3, abs=0.02)

    def test_girth_without_skinfold_is_flagged(self, complete_male):
        m = complete_male.model_copy(update={
            "skinfolds": SkinfoldSet(triceps=10, subscapular=12, suprailiac=14, abdominal=18, thigh=15)
        })
        result = calculate_five_component_fractionation(m)
        assert result.is_valid is True
        assert "GIRTH_UNCORRECTED" in _flag_codes(result)


class TestProportionsAndWarnings:

    def test_cormic_index(self, complete_male):
        result = calculate_five_component_fractionation(complete_male)
        assert result.cormic_index == pytest.approx(51.69, abs=0.01)
        assert result.cormic_interpretation.startswith("Metriocormic")

    def test_cormic_categories(self):
        assert cormic_index(85, 180)[1].startswith("Brachycormic")
        assert cormic_index(98, 180)[1].startswith("Macrocormic")

    def test_no_cormic_index_without_sitting_height(self, complete_male):
        m = complete_male.model_copy(update={"sitting_height_cm": None})
        assert calculate_five_component_fractionation(m).cormic_index is None

    def test_obesity_warning_thresholds(self):
        assert obesity_warning(100) is None
        assert obesity_warning(130).alternative_formulas == ()
        assert len(obesity_warning(160).alternative_formulas) == 3


class TestIdempotence:

    def test_same_input_same_output(self, complete_male):
        first = calculate_five_component_fractionation(complete_male)
        second = calculate_five_component_fractionation(complete_male)
        assert first == second
