"""
Tests for the Formula Advisor Service
======================================
Recommendation rules (first match wins) and match severities.
"""

import pytest

from bodycomp.schemas import SubjectProfile
from bodycomp.services.formula_advisor import get_recommended_formula, validate_formula_match


def _profile(activity="sedentary", age=30, weight=70, height=175) -> SubjectProfile:
    return SubjectProfile(activity_level=activity, age_years=age, weight_kg=weight, height_cm=height)


class TestRecommendation:

    def test_lean_intense_athlete(self):
        rec = get_recommended_formula(_profile("intense", weight=70))
        assert rec.recommended == "athlete"
        assert rec.confidence == "high"

    def test_heavy_intense_athlete_gets_fitness(self):
        rec = get_recommended_formula(_profile("very_intense", weight=95))  # BMI 31
        assert rec.recommended == "fitness"

    def test_activity_rule_wins_over_age(self):
        assert get_recommended_formula(_profile("intense", age=70)).recommended == "athlete"

    def test_older_adult(self):
        rec = get_recommended_formula(_profile("sedentary", age=70))
        assert rec.recommended == "control"
        assert "70" in rec.reasoning

    def test_obesity(self):
        assert get_recommended_formula(_profile("light", weight=100)).recommended == "control"

    def test_moderate_activity_normal_bmi(self):
        assert get_recommended_formula(_profile("moderate")).recommended == "fitness"

    def test_moderate_activity_underweight(self):
        assert get_recommended_formula(_profile("moderate", weight=50)).recommended == "general"

    def test_default_profile(self):
        rec = get_recommended_formula(SubjectProfile())
        assert rec.recommended == "general"
        assert rec.confidence == "medium"


class TestFormulaMatch:

    def test_optimal(self):
        check = validate_formula_match("general", _profile())
        assert check.is_optimal is True
        assert check.severity == "info"

    def test_athlete_formula_for_sedentary_is_critical(self):
        check = validate_formula_match("athlete", _profile("sedentary"))
        assert check.is_optimal is False
        assert check.severity == "critical"
        assert check.recommended == "general"

    def test_athlete_formula_for_obesity_is_critical(self):
        check = validate_formula_match("athlete", _profile("intense", weight=100))
        assert check.severity == "critical"
        assert "BMI" in check.message

    def test_age_outside_validated_range(self):
        check = validate_formula_match("fitness", _profile("sedentary", age=60))
        assert check.severity == "warning"
        assert "18-55" in check.message

    def test_other_mismatch(self):
        check = validate_formula_match("rapid", _profile())
        assert check.severity == "warning"
        assert check.recommended == "general"

    def test_unknown_formula(self):
        with pytest.raises(ValueError, match="Unknown formula"):
            validate_formula_match("pollock", _profile())
