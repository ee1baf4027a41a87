"""
Graceful Degradation Service — Body Composition Tier Router
============================================================
Picks the most precise body composition method the data can support and
computes through it, falling back tier by tier instead of failing.

HIERARCHY (each tier is an independent strategy object):
  1. kerr_5c    : Kerr 5-component fractionation (ISAK L3)          confidence 95
                  needs the 5C prerequisites and Σ6 skinfolds <= 200 mm
  2. durnin_4sf : Durnin & Womersley, 4 skinfolds                   confidence 80
                  triceps, biceps, subscapular, suprailiac
  3. sloan_2sf  : Sloan, 2 skinfolds                                confidence 60
                  male: thigh + subscapular, female: suprailiac + triceps
  4. bmi_only   : Deurenberg (1991) BMI regression                  confidence 30
                  fat % = 1.20 × BMI + 0.23 × age − 10.8 × sex − 5.4, clamped [3, 60]
                  confidence 25 when weight, height or age is under the adult range

RULES:
  - Presence and positivity are checked before a tier is attempted; the router
    never guesses a missing value.
  - A tier is skipped when the input validator reported an error on a field
    that tier uses (the Kerr tier needs a fully valid record). The BMI tier
    only yields to impossible basic values: negative or above the hard maximum.
  - Every downgrade appends its reason to `warnings` and `downgrade_reason`.
  - Missing or impossible weight/height/age is the only fatal case: the
    result has level "error" and confidence 0.
"""

import logging
from dataclasses import dataclass

from bodycomp.core.reference import (
    DEURENBERG_AGE,
    DEURENBERG_BMI,
    DEURENBERG_FAT_MAX,
    DEURENBERG_FAT_MIN,
    DEURENBERG_INTERCEPT,
    DEURENBERG_SEX,
    ISAK_BOUNDS,
)
from bodycomp.schemas import (
    BodyCompositionResult,
    CompositionLevel,
    FormulaSkinfolds,
    FractionationResult,
    GracefulResult,
    LevelInfo,
    RawMeasurement,
    ValidationOutcome,
)
from bodycomp.services.body_fat import calculate_body_composition
from bodycomp.services.fractionation import (
    CORE_SKINFOLDS,
    DEFAULT_DEVIATION_WARN_PERCENT,
    calculate_five_component_fractionation,
    find_missing_data,
)
from bodycomp.services.validation import validate_measurement

logger = logging.getLogger(__name__)

KERR_MAX_SKINFOLD_SUM_MM = 200.0
BASIC_FIELDS = ("weight_kg", "height_cm", "age_years")


# ============================================================
# LEVEL METADATA
# ============================================================

LEVEL_INFO: dict[CompositionLevel, LevelInfo] = {
    "kerr_5c": LevelInfo(
        id="kerr_5c",
        name="Five-Component Fractionation (Kerr)",
        description="Highest precision. Requires a complete ISAK L3 assessment.",
        required_measurements=(
            "4+ of 6 skinfolds",
            "2+ of 3 corrected girths",
            "Humerus and femur breadths",
        ),
        confidence_range=(90, 100),
    ),
    "durnin_4sf": LevelInfo(
        id="durnin_4sf",
        name="Durnin-Womersley (4 skinfolds)",
        description="Good precision for the general population.",
        required_measurements=("Triceps", "Biceps", "Subscapular", "Suprailiac"),
        confidence_range=(75, 89),
    ),
    "sloan_2sf": LevelInfo(
        id="sloan_2sf",
        name="Sloan (2 skinfolds - rapid)",
        description="Quick assessment with limited precision.",
        required_measurements=("Men: thigh + subscapular", "Women: suprailiac + triceps"),
        confidence_range=(55, 74),
    ),
    "bmi_only": LevelInfo(
        id="bmi_only",
        name="BMI Estimate (Deurenberg)",
        description="Last resort. Low precision (~±8% vs DXA).",
        required_measurements=("Weight, height, age and sex only",),
        confidence_range=(25, 54),
    ),
    "error": LevelInfo(
        id="error",
        name="Error",
        description="Could not calculate.",
        confidence_range=(0, 0),
    ),
}


# ============================================================
# STRATEGY PROTOCOL
# ============================================================

@dataclass(frozen=True)
class TierCheck:
    """Outcome of CompositionTier.can_attempt()."""
    can_calculate: bool
    reason: str = ""
    missing_fields: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return self.can_calculate


@dataclass(frozen=True)
class TierComputation:
    """What a tier computed; the router wraps it into a GracefulResult."""
    fat_percent: float
    fat_mass_kg: float
    lean_mass_kg: float
    five_component: FractionationResult | None = None
    two_component: BodyCompositionResult | None = None
    warnings: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    # Overrides the tier confidence when set
    confidence: int | None = None


def _positive(value: float | None) -> bool:
    return value is not None and value > 0


def _blocking_errors(validation: ValidationOutcome, fields: tuple[str, ...]) -> list[str]:
    """Validator errors that fall on any of the given fields."""
    error_fields = validation.error_fields()
    return [f for f in fields if f in error_fields]


class CompositionTier:
    """
    One precision level of the router.

    Subclasses declare `level` and `confidence` and implement can_attempt()
    and compute(). compute() returns None when the calculator itself rejects
    the input, so the router can fall through to the next tier.
    """
    level: CompositionLevel
    confidence: int

    @property
    def info(self) -> LevelInfo:
        return LEVEL_INFO[self.level]

    def can_attempt(self, m: RawMeasurement, validation: ValidationOutcome) -> TierCheck:
        raise NotImplementedError

    def compute(self, m: RawMeasurement) -> TierComputation | None:
        raise NotImplementedError


def _from_two_component(result: BodyCompositionResult, recommendations: tuple[str, ...]) -> TierComputation:
    return TierComputation(
        fat_percent=result.fat_percent,
        fat_mass_kg=result.fat_mass_kg,
        lean_mass_kg=result.lean_mass_kg,
        two_component=result,
        warnings=tuple(flag.message for flag in result.flags),
        recommendations=recommendations,
    )


# ============================================================
# TIERS
# ============================================================

class KerrFiveComponentTier(CompositionTier):
    level = "kerr_5c"
    confidence = 95

    def __init__(self, deviation_warn_percent: float = DEFAULT_DEVIATION_WARN_PERCENT):
        self.deviation_warn_percent = deviation_warn_percent

    def can_attempt(self, m, validation):
        missing = find_missing_data(m)
        if missing:
            listed = ", ".join(missing[:3]) + ("..." if len(missing) > 3 else "")
            return TierCheck(False, f"Missing data for Kerr 5C: {listed}", tuple(missing))

        if not validation.is_valid:
            fields = ", ".join(sorted(validation.error_fields()))
            return TierCheck(False, f"Kerr 5C blocked by invalid measurements: {fields}")

        skinfold_sum = m.skinfolds.total(*CORE_SKINFOLDS)
        if skinfold_sum > KERR_MAX_SKINFOLD_SUM_MM:
            return TierCheck(
                False,
                f"Skinfold sum too high ({skinfold_sum:g} mm). "
                "Measurements unreliable due to high adiposity",
            )
        return TierCheck(True)

    def compute(self, m):
        result = calculate_five_component_fractionation(m, self.deviation_warn_percent)
        if not result.is_valid:
            return None

        warnings: list[str] = []
        recommendations: list[str] = []
        if result.obesity_warning:
            warnings.append(result.obesity_warning.message)
            recommendations.extend(result.obesity_warning.alternative_formulas)
        warnings.extend(flag.message for flag in result.flags)
        warnings.extend(w.message for w in result.validation.warnings)

        fat_mass_kg = m.weight_kg * result.lipid_fat_percent / 100
        return TierComputation(
            fat_percent=result.lipid_fat_percent,
            fat_mass_kg=round(fat_mass_kg, 2),
            lean_mass_kg=round(m.weight_kg - fat_mass_kg, 2),
            five_component=result,
            warnings=tuple(warnings),
            recommendations=tuple(recommendations),
        )


class DurninWomersleyTier(CompositionTier):
    level = "durnin_4sf"
    confidence = 80
    sites = ("triceps", "biceps", "subscapular", "suprailiac")

    def can_attempt(self, m, validation):
        missing = [s for s in self.sites if not _positive(getattr(m.skinfolds, s))]
        if missing:
            return TierCheck(
                False,
                f"Missing skinfolds for Durnin-Womersley: {', '.join(missing)}",
                tuple(f"skinfolds.{s}" for s in missing),
            )
        blocked = _blocking_errors(validation, tuple(f"skinfolds.{s}" for s in self.sites))
        if blocked:
            return TierCheck(False, f"Invalid skinfolds for Durnin-Womersley: {', '.join(blocked)}")
        return TierCheck(True)

    def compute(self, m):
        sf = m.skinfolds
        skinfolds = FormulaSkinfolds(
            triceps=sf.triceps,
            biceps=sf.biceps,
            subscapular=sf.subscapular,
            iliac_crest=sf.suprailiac,
        )
        result = calculate_body_composition("control", m.sex, skinfolds, m.weight_kg)
        if not result.is_valid:
            return None
        return _from_two_component(
            result, ("Consider a complete ISAK assessment for higher precision.",)
        )


class SloanTier(CompositionTier):
    level = "sloan_2sf"
    confidence = 60
    sites_by_sex = {
        "male": ("thigh", "subscapular"),
        "female": ("suprailiac", "triceps"),
    }

    def can_attempt(self, m, validation):
        sites = self.sites_by_sex[m.sex]
        missing = [s for s in sites if not _positive(getattr(m.skinfolds, s))]
        if missing:
            return TierCheck(
                False,
                f"Missing skinfolds {' and/or '.join(missing)} (required for {m.sex}s)",
                tuple(f"skinfolds.{s}" for s in missing),
            )
        blocked = _blocking_errors(validation, tuple(f"skinfolds.{s}" for s in sites))
        if blocked:
            return TierCheck(False, f"Invalid skinfolds for Sloan: {', '.join(blocked)}")
        return TierCheck(True)

    def compute(self, m):
        sf = m.skinfolds
        skinfolds = FormulaSkinfolds(
            thigh=sf.thigh,
            subscapular=sf.subscapular,
            iliac_crest=sf.suprailiac,
            triceps=sf.triceps,
        )
        result = calculate_body_composition("rapid", m.sex, skinfolds, m.weight_kg)
        if not result.is_valid:
            return None
        return _from_two_component(result, (
            "This is a rapid estimate. Complete at least an ISAK L2 assessment for higher precision.",
            "Consider bioelectrical impedance (BIA) as a complementary method.",
        ))


class BmiOnlyTier(CompositionTier):
    """
    Deurenberg BMI estimate, the last resort.

    Only impossible basic values (negative, above the hard maximum) block it.
    Values under the adult ISAK floor (child, very light or short subject)
    still get an estimate, flagged and at reduced confidence.
    """
    level = "bmi_only"
    confidence = 30
    reduced_confidence = 25
    blocking_issues = ("anatomically_impossible", "above_max")

    def can_attempt(self, m, validation):
        if not m.has_basic_data:
            return TierCheck(
                False,
                "Missing basic data (weight, height or age)",
                tuple(f for f in BASIC_FIELDS if not _positive(getattr(m, f))),
            )
        blocked = sorted({
            error.field for error in validation.errors
            if error.field in BASIC_FIELDS and error.issue in self.blocking_issues
        })
        if blocked:
            return TierCheck(False, f"Invalid basic data: {', '.join(blocked)}")
        return TierCheck(True)

    def compute(self, m):
        fat_percent = deurenberg_fat_percent(m.bmi, m.age_years, m.sex)
        fat_mass_kg = fat_percent / 100 * m.weight_kg

        below_adult = [
            f"{field} ({getattr(m, field):g}) is below the adult range ({bound.min:g}) "
            "the BMI equation was derived from."
            for field, bound in _basic_bounds()
            if getattr(m, field) < bound.min
        ]
        return TierComputation(
            fat_percent=round(fat_percent, 1),
            fat_mass_kg=round(fat_mass_kg, 1),
            lean_mass_kg=round(m.weight_kg - fat_mass_kg, 1),
            warnings=(
                "WARNING: estimate based on BMI only.",
                "Precision is limited (~±8% vs DXA).",
                "Do not use for athletic or precision clinical prescription.",
                *below_adult,
            ),
            recommendations=(
                "Perform a skinfold assessment with a caliper for higher precision.",
                "Consider bioelectrical impedance (BIA) as an alternative.",
                "For athletes, schedule a complete ISAK assessment.",
            ),
            confidence=self.reduced_confidence if below_adult else None,
        )


def _basic_bounds():
    basic = ISAK_BOUNDS["basic"]
    return (
        ("weight_kg", basic["weight"]),
        ("height_cm", basic["height"]),
        ("age_years", basic["age"]),
    )


def deurenberg_fat_percent(bmi: float, age_years: float, sex: str) -> float:
    """
    Deurenberg et al. (1991): fat % = 1.20 × BMI + 0.23 × age − 10.8 × sex − 5.4
    (sex = 1 for male, 0 for female), clamped to [3, 60].
    """
    sex_factor = 1 if sex == "male" else 0
    fat_percent = (
        DEURENBERG_BMI * bmi
        + DEURENBERG_AGE * age_years
        - DEURENBERG_SEX * sex_factor
        + DEURENBERG_INTERCEPT
    )
    return max(DEURENBERG_FAT_MIN, min(DEURENBERG_FAT_MAX, fat_percent))


def build_tiers(deviation_warn_percent: float = DEFAULT_DEVIATION_WARN_PERCENT) -> tuple[CompositionTier, ...]:
    """Tiers in precision order."""
    return (
        KerrFiveComponentTier(deviation_warn_percent),
        DurninWomersleyTier(),
        SloanTier(),
        BmiOnlyTier(),
    )


DEFAULT_TIERS = build_tiers()


# ============================================================
# ROUTER
# ============================================================

def _error_result(reason: str, warnings: list[str], validation: ValidationOutcome) -> GracefulResult:
    return GracefulResult(
        level="error",
        level_name=LEVEL_INFO["error"].name,
        is_downgraded=True,
        downgrade_reason=reason,
        confidence_score=0,
        warnings=tuple(warnings),
        recommendations=("Enter the patient's weight, height and age.",),
        level_info=LEVEL_INFO["error"],
        validation=validation,
    )


def calculate_with_graceful_degradation(
    m: RawMeasurement,
    tiers: tuple[CompositionTier, ...] = DEFAULT_TIERS,
    validation: ValidationOutcome | None = None,
) -> GracefulResult:
    """
    Calculate body composition with the best tier the data supports.

    Args:
        m: The raw measurement record
        tiers: Strategies in precision order (first = ideal)
        validation: A precomputed validator outcome (computed when omitted)

    Returns:
        GracefulResult. level == "error" (confidence 0) only when no tier,
        not even the BMI estimate, could run.
    """
    if validation is None:
        validation = validate_measurement(m)

    warnings: list[str] = []
    reasons: list[str] = []

    if not m.has_basic_data:
        logger.warning("Body composition impossible: missing weight, height or age")
        return _error_result(
            "Missing basic data (weight, height or age)",
            ["Missing basic data for any calculation"],
            validation,
        )

    for index, tier in enumerate(tiers):
        check = tier.can_attempt(m, validation)
        computation = tier.compute(m) if check else None

        if computation is None:
            reason = check.reason or f"{tier.info.name} produced an invalid result"
            reasons.append(reason)
            warnings.append(f"{reason}. Using an alternative formula.")
            logger.info(f"Tier '{tier.level}' skipped: {reason}")
            continue

        is_downgraded = index > 0
        confidence = tier.confidence if computation.confidence is None else computation.confidence
        five = computation.five_component
        logger.info(
            f"Body composition via '{tier.level}' (downgraded={is_downgraded}): "
            f"fat={computation.fat_percent}%"
        )
        return GracefulResult(
            level=tier.level,
            level_name=tier.info.name,
            is_downgraded=is_downgraded,
            downgrade_reason="; ".join(reasons) if is_downgraded else None,
            five_component=five,
            two_component=computation.two_component,
            fat_percent=computation.fat_percent,
            lean_mass_kg=computation.lean_mass_kg,
            fat_mass_kg=computation.fat_mass_kg,
            muscle_mass_kg=five.muscle.kg if five else None,
            bone_mass_kg=five.bone.kg if five else None,
            residual_mass_kg=five.residual.kg if five else None,
            skin_mass_kg=five.skin.kg if five else None,
            confidence_score=confidence,
            warnings=tuple(warnings) + computation.warnings,
            recommendations=computation.recommendations,
            level_info=tier.info,
            validation=validation,
        )

    logger.warning(f"All body composition tiers exhausted: {reasons}")
    return _error_result("; ".join(reasons), warnings, validation)


def get_best_available_level(
    m: RawMeasurement,
    tiers: tuple[CompositionTier, ...] = DEFAULT_TIERS,
) -> CompositionLevel:
    """The tier the router would try first, without calculating anything."""
    validation = validate_measurement(m)
    for tier in tiers:
        if tier.can_attempt(m, validation):
            return tier.level
    return "error"


def get_missing_for_level(
    m: RawMeasurement,
    level: CompositionLevel,
    tiers: tuple[CompositionTier, ...] = DEFAULT_TIERS,
) -> list[str]:
    """Fields that would need to be measured to reach the given tier."""
    validation = validate_measurement(m)
    for tier in tiers:
        if tier.level == level:
            return list(tier.can_attempt(m, validation).missing_fields)
    return []
