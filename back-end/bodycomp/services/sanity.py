"""
Result Sanity Audit Service
============================
Post-calculation audit: checks a computed composition against physiological
plausibility limits and lowers its confidence score for every finding.

CHECKS & PENALTIES (score starts at 100, floored at 0):
  mass balance outside [95, 105] % of weight   critical error   -30
  any 5C component mass <= 0                   critical error   -15 each
  fat % < 1                                    critical error   -25
  fat % below essential fat (M 2 / F 8)        warning          -10
  fat % above obese ceiling (M 50 / F 55)      warning           -5
  bone mass < 5 % of weight                    warning           -5
  bone mass > 20 % of weight                   high error       -15
  muscle : bone ratio < 3                      warning           -5
  muscle : bone ratio > 8                      warning           -3
  Σ6 skinfolds > 300 mm                        high error       -20
  Σ6 skinfolds > 200 mm                        warning          -10

The result is valid when no *critical* error was raised.

For two-component tiers the balance is fat mass + lean mass, and the
component checks (non-positive mass, bone %, muscle:bone) are skipped.
"""

import logging
from typing import Literal, NamedTuple

from bodycomp.core.reference import (
    FAT_PERCENT_IMPOSSIBLE,
    MASS_BALANCE_TOLERANCE_PERCENT,
    PHYSIOLOGICAL_LIMITS,
)
from bodycomp.schemas import (
    FractionationResult,
    GracefulResult,
    RawMeasurement,
    SanityCheckResult,
    SanityError,
    SanityWarning,
    Sex,
)
from bodycomp.services.fractionation import CORE_SKINFOLDS

logger = logging.getLogger(__name__)

PENALTY_MASS_BALANCE = 30
PENALTY_NON_POSITIVE_MASS = 15
PENALTY_FAT_IMPOSSIBLE = 25
PENALTY_FAT_BELOW_ESSENTIAL = 10
PENALTY_FAT_ABOVE_OBESE = 5
PENALTY_BONE_LOW = 5
PENALTY_BONE_HIGH = 15
PENALTY_RATIO_LOW = 5
PENALTY_RATIO_HIGH = 3
PENALTY_SKINFOLD_CRITICAL = 20
PENALTY_SKINFOLD_HIGH = 10


class FatPercentCheck(NamedTuple):
    valid: bool
    level: Literal["ok", "warning", "error"]
    message: str | None = None
    code: str | None = None


class MassBalanceCheck(NamedTuple):
    valid: bool
    percent_diff: float


def check_fat_percent_range(fat_percent: float, sex: Sex) -> FatPercentCheck:
    """Quick plausibility check of a single fat percentage."""
    limits = PHYSIOLOGICAL_LIMITS["fat_percent"][sex]
    if fat_percent < FAT_PERCENT_IMPOSSIBLE:
        return FatPercentCheck(False, "error", "Physiologically impossible value", "FAT_PERCENT_IMPOSSIBLE")
    if fat_percent < limits.essential:
        return FatPercentCheck(True, "warning", "Below essential fat", "FAT_PERCENT_VERY_LOW")
    if fat_percent > limits.obese:
        return FatPercentCheck(True, "warning", "Indicates severe obesity", "FAT_PERCENT_VERY_HIGH")
    return FatPercentCheck(True, "ok")


def check_mass_balance(
    total_mass_kg: float,
    weight_kg: float,
    tolerance_percent: float = MASS_BALANCE_TOLERANCE_PERCENT,
) -> MassBalanceCheck:
    """
    Compare a sum of component masses with body weight.

    Raises:
        ValueError: If weight is not positive.
    """
    if weight_kg <= 0:
        raise ValueError("Body weight must be positive to check mass balance")
    percent_diff = abs((total_mass_kg - weight_kg) / weight_kg * 100)
    return MassBalanceCheck(percent_diff <= tolerance_percent, percent_diff)


class _Audit:
    """Accumulates findings and the running confidence score."""

    def __init__(self):
        self.errors: list[SanityError] = []
        self.warnings: list[SanityWarning] = []
        self.score = 100

    def error(self, penalty: int, **fields) -> None:
        self.errors.append(SanityError(**fields))
        self.score -= penalty

    def warn(self, penalty: int, code: str, message: str, recommendation: str) -> None:
        self.warnings.append(SanityWarning(code=code, message=message, recommendation=recommendation))
        self.score -= penalty

    def result(self) -> SanityCheckResult:
        return SanityCheckResult(
            is_valid=not any(e.severity == "critical" for e in self.errors),
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            confidence_score=max(0, self.score),
        )


def _check_fat_percent(audit: _Audit, fat_percent: float, sex: Sex) -> None:
    limits = PHYSIOLOGICAL_LIMITS["fat_percent"][sex]
    check = check_fat_percent_range(fat_percent, sex)

    # An impossible value is also below essential fat
    if check.code in ("FAT_PERCENT_VERY_LOW", "FAT_PERCENT_IMPOSSIBLE"):
        audit.warn(
            PENALTY_FAT_BELOW_ESSENTIAL,
            "FAT_PERCENT_VERY_LOW",
            f"Fat ({fat_percent:.1f}%) is below essential fat. Elite athlete or measurement error.",
            "Verify the skinfold measurements. In competitive athletes values "
            "below 3% are possible but need confirmation.",
        )
    if not check.valid:
        audit.error(
            PENALTY_FAT_IMPOSSIBLE,
            code="FAT_PERCENT_IMPOSSIBLE",
            field="fat_percent",
            value=fat_percent,
            expected_range=(limits.essential, limits.obese),
            message=f"Fat ({fat_percent:.1f}%) is physiologically impossible.",
            severity="critical",
        )
    elif check.code == "FAT_PERCENT_VERY_HIGH":
        audit.warn(
            PENALTY_FAT_ABOVE_OBESE,
            "FAT_PERCENT_VERY_HIGH",
            f"Fat ({fat_percent:.1f}%) indicates severe obesity. Consider alternative methods.",
            "In severe obesity consider segmental bioimpedance or DXA for higher precision.",
        )


def _check_components(audit: _Audit, five: FractionationResult, weight_kg: float) -> None:
    for name in ("adipose", "muscle", "bone", "residual", "skin"):
        kg = getattr(five, name).kg
        if kg <= 0:
            audit.error(
                PENALTY_NON_POSITIVE_MASS,
                code="NEGATIVE_MASS",
                field=name,
                value=kg,
                expected_range=(0.1, weight_kg),
                message=f"{name.capitalize()} mass ({kg:.2f} kg) is zero or negative. Calculation error.",
                severity="critical",
            )

    bone_limits = PHYSIOLOGICAL_LIMITS["bone_mass_percent"]
    bone_percent = five.bone.kg / weight_kg * 100
    if bone_percent < bone_limits.min:
        audit.warn(
            PENALTY_BONE_LOW,
            "BONE_MASS_LOW",
            f"Bone mass ({bone_percent:.1f}% of weight) is unusually low. Possible osteopenia.",
            "Verify the bone breadths. Consider densitometry if clinically indicated.",
        )
    if bone_percent > bone_limits.max:
        audit.error(
            PENALTY_BONE_HIGH,
            code="BONE_MASS_HIGH",
            field="bone_mass",
            value=bone_percent,
            expected_range=(bone_limits.min, bone_limits.max),
            message=f"Bone mass ({bone_percent:.1f}%) is excessively high. Verify bone breadths.",
            severity="high",
        )

    # ── Muscle : bone ratio ──
    if five.bone.kg <= 0:
        return
    ratio_limits = PHYSIOLOGICAL_LIMITS["muscle_to_bone_ratio"]
    ratio = five.muscle.kg / five.bone.kg
    if ratio < ratio_limits.min:
        audit.warn(
            PENALTY_RATIO_LOW,
            "MUSCLE_BONE_RATIO_LOW",
            f"Muscle/bone ratio ({ratio:.1f}:1) is low. Possible sarcopenia or girth error.",
            "Review the corrected girths. In older adults low values can indicate sarcopenia.",
        )
    if ratio > ratio_limits.max:
        audit.warn(
            PENALTY_RATIO_HIGH,
            "MUSCLE_BONE_RATIO_HIGH",
            f"Muscle/bone ratio ({ratio:.1f}:1) is very high. Typical of bodybuilders, or an error.",
            "If the subject is not a strength athlete, review girths and breadths.",
        )


def run_sanity_checks(result: GracefulResult, m: RawMeasurement) -> SanityCheckResult:
    """
    Audit a router result against physiological limits.

    Args:
        result: The composition returned by the degradation router
        m: The measurement record it was computed from

    Returns:
        SanityCheckResult with the penalised confidence score. An error-level
        composition is never valid and scores 0.
    """
    if result.is_error or not m.weight_kg:
        return SanityCheckResult(
            is_valid=False,
            errors=(SanityError(
                code="NO_RESULT",
                field="level",
                value=0.0,
                expected_range=(0.0, 0.0),
                message="No body composition could be calculated.",
                severity="critical",
            ),),
            confidence_score=0,
        )

    audit = _Audit()
    weight_kg = m.weight_kg
    five = result.five_component

    # ── Mass balance ──
    if five is not None:
        total_mass = five.total_mass_kg
    else:
        total_mass = result.fat_mass_kg + result.lean_mass_kg
    balance = check_mass_balance(total_mass, weight_kg)
    if not balance.valid:
        balance_percent = total_mass / weight_kg * 100
        audit.error(
            PENALTY_MASS_BALANCE,
            code="MASS_SUM_OOB",
            field="total_mass",
            value=round(balance_percent, 2),
            expected_range=(
                100 - MASS_BALANCE_TOLERANCE_PERCENT,
                100 + MASS_BALANCE_TOLERANCE_PERCENT,
            ),
            message=(
                f"Sum of masses ({balance_percent:.1f}% of weight) is out of range. "
                "Possible calculation or measurement error."
            ),
            severity="critical",
        )

    _check_fat_percent(audit, result.fat_percent, m.sex)

    if five is not None:
        _check_components(audit, five, weight_kg)

    # ── Skinfold sum ──
    sum_limits = PHYSIOLOGICAL_LIMITS["skinfold_sum"]
    skinfold_sum = m.skinfolds.total(*CORE_SKINFOLDS)
    if skinfold_sum > sum_limits.max:
        audit.error(
            PENALTY_SKINFOLD_CRITICAL,
            code="SKINFOLD_SUM_CRITICAL",
            field="skinfold_sum",
            value=skinfold_sum,
            expected_range=(0.0, sum_limits.min),
            message=f"Skinfold sum ({skinfold_sum:g} mm) is extremely high. Anthropometry is unreliable.",
            severity="high",
        )
    elif skinfold_sum > sum_limits.min:
        audit.warn(
            PENALTY_SKINFOLD_HIGH,
            "SKINFOLD_SUM_HIGH",
            f"Skinfold sum ({skinfold_sum:g} mm) is high. Tissue compressibility may affect precision.",
            "Consider a two-component method (BIA, DXA) for higher precision in obesity.",
        )

    outcome = audit.result()
    if outcome.errors or outcome.warnings:
        logger.info(
            f"Sanity audit on '{result.level}': {len(outcome.errors)} error(s), "
            f"{len(outcome.warnings)} warning(s), score={outcome.confidence_score}"
        )
    return outcome
