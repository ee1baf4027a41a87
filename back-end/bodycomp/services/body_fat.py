"""
Body Fat Calculation Service (Two-Component Model)
===================================================
Implements five skinfold -> body density regressions and converts density to
body fat percentage with the Siri equation.

FORMULAS (coefficients in bodycomp.core.reference.DENSITY_EQUATIONS):
  general : Wilmore & Behnke (1969/1970)  2 skinfolds (male), 3 (female)
  control : Durnin & Womersley (1974)     log10 of 4 skinfolds
  fitness : Katch & McArdle (1973)        3 skinfolds (male), 2 (female)
  athlete : Withers et al. (1987)         7 skinfolds (male), log10 of 4 (female)
  rapid   : Sloan (1962/1967)             2 skinfolds

SIRI EQUATION (1961):
  Body Fat % = (495 / Body Density) - 450

Each formula declares its own required skinfolds per sex. They are checked for
presence and positivity BEFORE anything is computed: a missing site yields an
explicit invalid result listing it, never a silent calculation with zero.
"""

import logging
import math

from bodycomp.core.reference import (
    DENSITY_EQUATIONS,
    DENSITY_MAX,
    DENSITY_MIN,
    FAT_PERCENT_MAX,
    FAT_PERCENT_MIN,
    LIFE_INCOMPATIBLE_FAT_PERCENT,
    METABOLIC_RISK_FAT_PERCENT,
    SIRI_NUMERATOR,
    SIRI_OFFSET,
    DensityEquation,
)
from bodycomp.schemas import (
    BodyCompositionResult,
    FormulaInfo,
    FormulaSkinfolds,
    FormulaType,
    SafetyFlag,
    Sex,
)

logger = logging.getLogger(__name__)


# ============================================================
# FORMULA METADATA
# ============================================================

FORMULA_INFO: dict[FormulaType, FormulaInfo] = {
    "general": FormulaInfo(
        id="general",
        name="General (Wilmore & Behnke)",
        author="Wilmore & Behnke",
        year="1969/1970",
        target_population="General adult population, sedentary to moderately active",
        required_skinfolds={
            "male": DENSITY_EQUATIONS["general"]["male"].required_sites,
            "female": DENSITY_EQUATIONS["general"]["female"].required_sites,
        },
        age_range=(18, 65),
        activity_levels=("sedentary", "light", "moderate"),
    ),
    "control": FormulaInfo(
        id="control",
        name="Weight Control (Durnin & Womersley)",
        author="Durnin & Womersley",
        year="1974",
        target_population="Weight-control programmes, all ages",
        required_skinfolds={
            "male": DENSITY_EQUATIONS["control"]["male"].required_sites,
            "female": DENSITY_EQUATIONS["control"]["female"].required_sites,
        },
        age_range=(17, 72),
        activity_levels=("sedentary", "light", "moderate", "intense"),
    ),
    "fitness": FormulaInfo(
        id="fitness",
        name="Fitness (Katch & McArdle)",
        author="Katch & McArdle",
        year="1973",
        target_population="Physically active people, recreational athletes",
        required_skinfolds={
            "male": DENSITY_EQUATIONS["fitness"]["male"].required_sites,
            "female": DENSITY_EQUATIONS["fitness"]["female"].required_sites,
        },
        age_range=(18, 55),
        activity_levels=("moderate", "intense", "very_intense"),
    ),
    "athlete": FormulaInfo(
        id="athlete",
        name="Athlete (Withers et al.)",
        author="Withers et al.",
        year="1987",
        target_population="Competitive athletes with low body fat",
        required_skinfolds={
            "male": DENSITY_EQUATIONS["athlete"]["male"].required_sites,
            "female": DENSITY_EQUATIONS["athlete"]["female"].required_sites,
        },
        age_range=(16, 45),
        activity_levels=("intense", "very_intense"),
    ),
    "rapid": FormulaInfo(
        id="rapid",
        name="Rapid Assessment (Sloan)",
        author="Sloan",
        year="1962/1967",
        target_population="Quick screening, mass assessments",
        required_skinfolds={
            "male": DENSITY_EQUATIONS["rapid"]["male"].required_sites,
            "female": DENSITY_EQUATIONS["rapid"]["female"].required_sites,
        },
        age_range=(18, 65),
        activity_levels=("sedentary", "light", "moderate", "intense", "very_intense"),
    ),
}


def get_equation(formula: FormulaType, sex: Sex) -> DensityEquation:
    """
    Look up the coefficient table of a formula.

    Raises:
        ValueError: If the formula or sex is unknown.
    """
    if formula not in DENSITY_EQUATIONS:
        raise ValueError(
            f"Unknown formula '{formula}'. Choose one of: {', '.join(DENSITY_EQUATIONS)}"
        )
    equations = DENSITY_EQUATIONS[formula]
    if sex not in equations:
        raise ValueError(f"Unknown sex '{sex}'. Expected 'male' or 'female'.")
    return equations[sex]


def find_missing_skinfolds(
    formula: FormulaType,
    sex: Sex,
    skinfolds: FormulaSkinfolds,
) -> list[str]:
    """
    Return the skinfold sites the formula needs that are absent or not positive.
    """
    missing = []
    for site in get_equation(formula, sex).required_sites:
        value = getattr(skinfolds, site)
        if value is None or value <= 0 or not math.isfinite(value):
            missing.append(site)
    return missing


def calculate_body_density(
    formula: FormulaType,
    sex: Sex,
    skinfolds: FormulaSkinfolds,
) -> float:
    """
    Calculate body density (g/cm³) with the selected formula.

    The required skinfolds must already be known to be present; use
    find_missing_skinfolds() first.

    Returns:
        Body density rounded to 5 decimals, or 0.0 when the result falls outside
        the plausible range [0.9, 1.2] g/cm³ (invalid sentinel).
    """
    equation = get_equation(formula, sex)

    density = equation.intercept
    for site, coefficient in equation.linear:
        density += coefficient * getattr(skinfolds, site)

    if equation.sum_sites:
        total = sum(getattr(skinfolds, site) for site in equation.sum_sites)
        if equation.log_sum:
            if total <= 0:
                return 0.0
            total = math.log10(total)
        density += equation.sum_coefficient * total

    if not math.isfinite(density) or density < DENSITY_MIN or density > DENSITY_MAX:
        logger.warning(
            f"Density out of range for formula '{formula}' ({sex}): {density:.5f} g/cm³. "
            f"Expected {DENSITY_MIN}-{DENSITY_MAX}."
        )
        return 0.0

    return round(density, 5)


def body_density_to_fat_percent(body_density: float) -> float:
    """
    Convert body density to body fat percentage using the Siri equation.

    Formula:
        Body Fat % = (495 / Body Density) - 450

    Args:
        body_density: Body density in g/cm³

    Returns:
        Body fat percentage clamped to [0, 60]. 0.0 for a non-positive density.

    Reference:
        Siri, W.E. (1961). Body composition from fluid spaces and density:
        Analysis of methods. In J. Brozek & A. Henschel (Eds.), Techniques for
        Measuring Body Composition (pp. 223-224). Washington, DC: National
        Academy of Sciences.
    """
    if body_density <= 0 or not math.isfinite(body_density):
        logger.warning(f"Invalid body density: {body_density}. Returning 0.")
        return 0.0

    fat_percent = (SIRI_NUMERATOR / body_density) - SIRI_OFFSET

    # Clamp to reasonable range (0% to 60%)
    return max(FAT_PERCENT_MIN, min(fat_percent, FAT_PERCENT_MAX))


def fat_percent_to_body_density(fat_percent: float) -> float:
    """Inverse Siri: density = 495 / (fat % + 450)."""
    return SIRI_NUMERATOR / (fat_percent + SIRI_OFFSET)


def survival_flags(fat_percent: float, sex: Sex) -> list[SafetyFlag]:
    """
    Biological survival guard: flags extreme results without blocking them.
    """
    flags = []
    floor = LIFE_INCOMPATIBLE_FAT_PERCENT[sex]
    if fat_percent < floor:
        flags.append(SafetyFlag(
            level="critical",
            code="BIO_RISK_FAT_LOW",
            message=f"Critical risk: body fat incompatible with life (<{floor:g}% in {sex}s).",
        ))

    ceiling = METABOLIC_RISK_FAT_PERCENT[sex]
    if fat_percent > ceiling:
        flags.append(SafetyFlag(
            level="warning",
            code="METABOLIC_RISK",
            message=f"Alert: body fat above {ceiling:g}% carries high metabolic risk.",
        ))
    return flags


def _invalid(formula: FormulaType, missing: list[str] | None = None) -> BodyCompositionResult:
    return BodyCompositionResult(
        body_density=0.0,
        fat_percent=0.0,
        fat_mass_kg=0.0,
        lean_mass_kg=0.0,
        formula=formula,
        is_valid=False,
        missing_skinfolds=tuple(missing or ()),
    )


def calculate_body_composition(
    formula: FormulaType,
    sex: Sex,
    skinfolds: FormulaSkinfolds,
    weight_kg: float,
) -> BodyCompositionResult:
    """
    Complete two-component calculation for one formula.

    This is the main entry point for the body fat calculation service.
    It checks the formula's required skinfolds, calculates body density,
    converts it to body fat percentage and splits body weight into fat and
    lean mass.

    Args:
        formula: One of general, control, fitness, athlete, rapid
        sex: 'male' or 'female'
        skinfolds: Skinfold thicknesses in mm
        weight_kg: Body weight in kg

    Returns:
        BodyCompositionResult. is_valid is False when skinfolds are missing
        (listed in missing_skinfolds), weight is not positive, or the density
        is implausible.

    Raises:
        ValueError: If the formula or sex is unknown.
    """
    missing = find_missing_skinfolds(formula, sex, skinfolds)
    if missing or weight_kg is None or weight_kg <= 0:
        logger.info(
            f"Formula '{formula}' ({sex}) not calculable: "
            f"missing={missing}, weight={weight_kg}"
        )
        return _invalid(formula, missing)

    body_density = calculate_body_density(formula, sex, skinfolds)
    if body_density <= 0:
        return _invalid(formula)

    fat_percent = body_density_to_fat_percent(body_density)
    fat_mass_kg = (fat_percent / 100) * weight_kg
    lean_mass_kg = weight_kg - fat_mass_kg
    flags = survival_flags(fat_percent, sex)

    logger.info(
        f"Formula '{formula}' ({sex}): density={body_density:.5f} g/cm³ "
        f"-> fat={fat_percent:.2f}%, fat_mass={fat_mass_kg:.2f}kg"
    )

    return BodyCompositionResult(
        body_density=body_density,
        fat_percent=round(fat_percent, 2),
        fat_mass_kg=round(fat_mass_kg, 2),
        lean_mass_kg=round(lean_mass_kg, 2),
        formula=formula,
        is_valid=True,
        flags=tuple(flags),
    )
