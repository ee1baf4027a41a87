"""
Tests for the Two-Component Body Fat Service
=============================================
Density formulas -> Siri equation -> fat / lean mass.

Test matrix:
  1. Siri conversion: known values, monotonicity, clamping, inverse
  2. Required skinfolds: missing sites reported, nothing computed
  3. Formulas: Wilmore-Behnke, Durnin-Womersley, Sloan worked examples
  4. Implausible density -> invalid result
  5. Survival flags for extreme fat percentages
  6. Unknown formula / sex -> ValueError
"""

import pytest

from bodycomp.schemas import FormulaSkinfolds
from bodycomp.services.body_fat import (
    FORMULA_INFO,
    body_density_to_fat_percent,
    calculate_body_composition,
    calculate_body_density,
    fat_percent_to_body_density,
    find_missing_skinfolds,
    survival_flags,
)


class TestSiriEquation:
    """Body Fat % = 495 / density - 450"""

    def test_known_value(self):
        assert body_density_to_fat_percent(1.05) == pytest.approx(21.43, abs=0.01)

    def test_monotonically_decreasing(self):
        densities = [1.00, 1.02, 1.04, 1.06, 1.08, 1.10]
        fats = [body_density_to_fat_percent(d) for d in densities]
        assert fats == sorted(fats, reverse=True)

    def test_clamped_to_sixty(self):
        assert body_density_to_fat_percent(0.91) == 60.0

    def test_clamped_to_zero(self):
        assert body_density_to_fat_percent(1.12) == 0.0

    def test_non_positive_density_returns_zero(self):
        assert body_density_to_fat_percent(0) == 0.0
        assert body_density_to_fat_percent(-1.05) == 0.0

    def test_inverse(self):
        density = fat_percent_to_body_density(20.0)
        assert body_density_to_fat_percent(density) == pytest.approx(20.0)


class TestRequiredSkinfolds:

    def test_missing_sites_are_listed(self):
        missing = find_missing_skinfolds("control", "male", FormulaSkinfolds(triceps=10))
        assert missing == ["biceps", "subscapular", "iliac_crest"]

    def test_zero_counts_as_missing(self):
        missing = find_missing_skinfolds("rapid", "male", FormulaSkinfolds(thigh=0, subscapular=12))
        assert missing == ["thigh"]

    def test_missing_skinfolds_give_invalid_result(self):
        result = calculate_body_composition("general", "male", FormulaSkinfolds(abdominal=18), 75)
        assert result.is_valid is False
        assert result.missing_skinfolds == ("thigh",)
        assert result.fat_percent == 0.0
        assert result.body_density == 0.0

    def test_non_positive_weight_gives_invalid_result(self):
        skinfolds = FormulaSkinfolds(abdominal=18, thigh=15)
        assert calculate_body_composition("general", "male", skinfolds, 0).is_valid is False

    def test_every_formula_declares_sites_for_both_sexes(self):
        for info in FORMULA_INFO.values():
            assert info.required_skinfolds["male"]
            assert info.required_skinfolds["female"]


class TestFormulas:

    def test_wilmore_behnke_male(self):
        skinfolds = FormulaSkinfolds(abdominal=18, thigh=15)
        result = calculate_body_composition("general", "male", skinfolds, 75)
        assert result.is_valid is True
        assert result.body_density == pytest.approx(1.06348, abs=1e-5)
        assert result.fat_percent == pytest.approx(15.45, abs=0.05)

    def test_durnin_womersley_male(self):
        skinfolds = FormulaSkinfolds(triceps=10, biceps=5, subscapular=12, iliac_crest=14)
        result = calculate_body_composition("control", "male", skinfolds, 75)
        assert result.is_valid is True
        assert result.fat_percent == pytest.approx(18.52, abs=0.05)

    def test_sloan_female(self):
        skinfolds = FormulaSkinfolds(iliac_crest=12, triceps=16)
        result = calculate_body_composition("rapid", "female", skinfolds, 60)
        assert result.fat_percent == pytest.approx(20.26, abs=0.05)

    def test_masses_add_up_to_weight(self):
        skinfolds = FormulaSkinfolds(thigh=15, subscapular=12)
        result = calculate_body_composition("rapid", "male", skinfolds, 80)
        assert result.fat_mass_kg + result.lean_mass_kg == pytest.approx(80, abs=0.02)

    def test_thicker_skinfolds_mean_more_fat(self):
        thin = calculate_body_composition("rapid", "male", FormulaSkinfolds(thigh=10, subscapular=10), 75)
        thick = calculate_body_composition("rapid", "male", FormulaSkinfolds(thigh=30, subscapular=30), 75)
        assert thick.fat_percent > thin.fat_percent


class TestImplausibleDensity:

    def test_density_below_range_is_invalid(self):
        huge = FormulaSkinfolds(
            triceps=100, biceps=100, subscapular=100, supraspinale=100,
            abdominal=100, thigh=100, calf=100,
        )
        assert calculate_body_density("athlete", "male", huge) == 0.0
        result = calculate_body_composition("athlete", "male", huge, 90)
        assert result.is_valid is False
        assert result.missing_skinfolds == ()


class TestSurvivalFlags:

    def test_life_incompatible_fat_for_men(self):
        flags = survival_flags(2.0, "male")
        assert [f.code for f in flags] == ["BIO_RISK_FAT_LOW"]
        assert flags[0].level == "critical"

    def test_female_floor_is_higher(self):
        assert survival_flags(5.0, "male") == []
        assert [f.code for f in survival_flags(5.0, "female")] == ["BIO_RISK_FAT_LOW"]

    def test_metabolic_risk(self):
        flags = survival_flags(50.0, "male")
        assert [f.code for f in flags] == ["METABOLIC_RISK"]
        assert flags[0].level == "warning"


class TestUnknownInputs:

    def test_unknown_formula(self):
        with pytest.raises(ValueError, match="Unknown formula"):
            calculate_body_composition("pollock", "male", FormulaSkinfolds(), 70)

    def test_unknown_sex(self):
        with pytest.raises(ValueError, match="Unknown sex"):
            find_missing_skinfolds("general", "other", FormulaSkinfolds())
