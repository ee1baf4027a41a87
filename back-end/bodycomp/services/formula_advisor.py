"""
Formula Advisor Service
========================
Recommends which density formula suits a subject and checks a formula someone
already picked against that recommendation.

DECISION RULES (first match wins):
  1. intense / very intense activity, BMI < 26   -> athlete (Withers)       high
  2. intense / very intense activity, BMI >= 26  -> fitness (Katch-McArdle) medium
  3. age >= 65                                   -> control (Durnin)        high
  4. BMI >= 30                                   -> control (Durnin)        high
  5. moderate activity, 18.5 <= BMI < 28         -> fitness                 medium
  6. otherwise                                   -> general (Wilmore)       medium

MATCH SEVERITIES:
  critical : athlete formula with BMI >= 30, or with sedentary / light activity
  warning  : subject age outside the selected formula's validated range
  warning  : any other mismatch
  info     : selected formula is the recommended one
"""

import logging

from bodycomp.schemas import (
    FormulaCheck,
    FormulaRecommendation,
    FormulaType,
    SubjectProfile,
)
from bodycomp.services.body_fat import FORMULA_INFO

logger = logging.getLogger(__name__)

INTENSE_ACTIVITY = ("intense", "very_intense")
LOW_ACTIVITY = ("sedentary", "light")
ATHLETE_MAX_BMI = 26.0
ELDERLY_AGE = 65
OBESE_BMI = 30.0


def _bmi(profile: SubjectProfile) -> float:
    return profile.weight_kg / (profile.height_cm / 100) ** 2


def get_recommended_formula(profile: SubjectProfile) -> FormulaRecommendation:
    """
    Pick the most appropriate density formula for a subject profile.

    Args:
        profile: Activity level, age, weight and height

    Returns:
        FormulaRecommendation with a confidence level and the reasoning.
    """
    bmi = _bmi(profile)
    activity = profile.activity_level

    if activity in INTENSE_ACTIVITY:
        if bmi < ATHLETE_MAX_BMI:
            return FormulaRecommendation(
                recommended="athlete",
                confidence="high",
                reasoning=f"Intense activity ({activity}) and BMI {bmi:.1f} suggest an athlete.",
                scientific_basis=(
                    "Withers et al. (1987) was developed specifically for athletes "
                    "with low body fat."
                ),
            )
        return FormulaRecommendation(
            recommended="fitness",
            confidence="medium",
            reasoning=f"Intense activity but BMI {bmi:.1f} indicates a recreational athlete.",
            scientific_basis=(
                "Katch & McArdle (1973) suits active people without a competitive athlete profile."
            ),
        )

    if profile.age_years >= ELDERLY_AGE:
        return FormulaRecommendation(
            recommended="control",
            confidence="high",
            reasoning=f"Subject aged {profile.age_years:g} needs a formula validated for older adults.",
            scientific_basis="Durnin & Womersley (1974) was validated over a wide age range (17-72 years).",
        )

    if bmi >= OBESE_BMI:
        return FormulaRecommendation(
            recommended="control",
            confidence="high",
            reasoning=f"BMI {bmi:.1f} indicates obesity and needs a weight-control formula.",
            scientific_basis="Durnin & Womersley is the most validated formula for overweight and obesity.",
        )

    if activity == "moderate" and 18.5 <= bmi < 28:
        return FormulaRecommendation(
            recommended="fitness",
            confidence="medium",
            reasoning=f"Moderate activity and normal BMI {bmi:.1f} suggest an active person.",
            scientific_basis="Katch & McArdle is more precise for physically active people.",
        )

    return FormulaRecommendation(
        recommended="general",
        confidence="medium",
        reasoning=f"General profile: BMI {bmi:.1f}, activity {activity}.",
        scientific_basis=(
            "Wilmore & Behnke is the standard for the general sedentary to "
            "moderately active population."
        ),
    )


def validate_formula_match(selected: FormulaType, profile: SubjectProfile) -> FormulaCheck:
    """
    Check a chosen formula against the recommendation for the profile.

    Raises:
        ValueError: If the selected formula is unknown.
    """
    if selected not in FORMULA_INFO:
        raise ValueError(
            f"Unknown formula '{selected}'. Choose one of: {', '.join(FORMULA_INFO)}"
        )

    recommendation = get_recommended_formula(profile)
    recommended = recommendation.recommended

    if selected == recommended:
        return FormulaCheck(
            is_optimal=True,
            selected=selected,
            recommended=recommended,
            severity="info",
            message="Optimal formula for this profile",
            suggestion=recommendation.scientific_basis,
        )

    selected_info = FORMULA_INFO[selected]
    recommended_info = FORMULA_INFO[recommended]
    bmi = _bmi(profile)
    logger.info(f"Formula '{selected}' is not optimal; '{recommended}' recommended (BMI {bmi:.1f})")

    if selected == "athlete" and bmi >= OBESE_BMI:
        return FormulaCheck(
            is_optimal=False,
            selected=selected,
            recommended=recommended,
            severity="critical",
            message=f"CRITICAL: {selected_info.name} is not valid for BMI {bmi:.1f}",
            suggestion=(
                "This formula was developed for athletes with <18% body fat. "
                f"Use {recommended_info.name} for higher precision."
            ),
        )

    if selected == "athlete" and profile.activity_level in LOW_ACTIVITY:
        return FormulaCheck(
            is_optimal=False,
            selected=selected,
            recommended=recommended,
            severity="critical",
            message=f"CRITICAL: {selected_info.name} does not apply to {profile.activity_level} activity",
            suggestion=(
                "Withers et al. assumes high muscle mass. "
                f"Use {recommended_info.name} for the general population."
            ),
        )

    low, high = selected_info.age_range
    if not low <= profile.age_years <= high:
        return FormulaCheck(
            is_optimal=False,
            selected=selected,
            recommended=recommended,
            severity="warning",
            message=f"{selected_info.name} is validated for ages {low}-{high}",
            suggestion=(
                f"Subject aged {profile.age_years:g}. Consider {recommended_info.name}: "
                f"{recommendation.reasoning}"
            ),
        )

    return FormulaCheck(
        is_optimal=False,
        selected=selected,
        recommended=recommended,
        severity="warning",
        message="A more precise formula exists for this profile",
        suggestion=f"Recommendation: {recommended_info.name}. {recommendation.reasoning}",
    )
