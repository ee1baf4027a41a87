"""
Input Validation Service
=========================
Checks a RawMeasurement against ISAK biological bounds before any calculator
is allowed to trust it.

Three kinds of findings are produced:
  1. Range violations (errors)     : value below the hard minimum, above the hard
                                     maximum, or negative (anatomically impossible).
  2. Unusual values (warnings)     : value above the "unusual" band; calculation
                                     proceeds, the caller should double-check.
  3. Anatomical consistency errors : cross-field contradictions, never auto-corrected:
       - waist girth < flexed arm girth
       - thigh girth < calf girth
       - femur breadth < humerus breadth
       - sitting height >= standing height

Plus two heuristics that only ever warn:
  - total skinfold sum > 250 mm (tissue compressibility)
  - BMI inconsistent with the skinfold sum (likely typing error)

Missing values (None) are never validated here; which fields are *required*
depends on the formula, and is checked by each calculator.
"""

import logging
from collections.abc import Iterator

from bodycomp.core.reference import ISAK_BOUNDS, SKINFOLD_SUM_WARNING_MM, FieldBound
from bodycomp.schemas import RawMeasurement, ValidationIssue, ValidationOutcome

logger = logging.getLogger(__name__)

# BMI vs skinfolds cross-check (sum of triceps, subscapular, abdominal, thigh)
CROSS_CHECK_SITES = ("triceps", "subscapular", "abdominal", "thigh")
OBESE_BMI = 30.0
UNDERWEIGHT_BMI = 18.5
NORMAL_BMI_MAX = 25.0


def _iter_bounded_fields(
    m: RawMeasurement,
) -> Iterator[tuple[str, float | None, FieldBound]]:
    """Yield (field path, value, bound) for every field that has a bound."""
    basic = ISAK_BOUNDS["basic"]
    yield "weight_kg", m.weight_kg, basic["weight"]
    yield "height_cm", m.height_cm, basic["height"]
    yield "age_years", m.age_years, basic["age"]
    yield "sitting_height_cm", m.sitting_height_cm, basic["sitting_height"]
    yield "head_circumference_cm", m.head_circumference_cm, basic["head_circumference"]

    for group, values in (
        ("skinfolds", m.skinfolds),
        ("girths", m.girths),
        ("breadths", m.breadths),
    ):
        bounds = ISAK_BOUNDS[group]
        for site, value in values:
            yield f"{group}.{site}", value, bounds[site]


def _decimal_slip_hint(value: float, bound: FieldBound) -> str:
    """Suggest value/10 when it would fall inside the expected range (75 instead of 7.5)."""
    corrected = value / 10
    if bound.min <= corrected <= bound.warn:
        return f" Did you mean {corrected:g}?"
    return ""


def check_range(field: str, value: float, bound: FieldBound) -> ValidationIssue | None:
    """
    Validate one present value against its bound.

    Returns:
        None if the value is fine, otherwise an error (below_min, above_max,
        anatomically_impossible) or a warning-level issue.
    """
    if value < 0:
        return ValidationIssue(
            field=field,
            value=value,
            bound=0.0,
            issue="anatomically_impossible",
            message=f"{field} cannot be negative ({value})",
        )
    if value < bound.min:
        return ValidationIssue(
            field=field,
            value=value,
            bound=bound.min,
            issue="below_min",
            message=f"{field} ({value}) is below the ISAK minimum ({bound.min})",
        )
    if value > bound.max:
        return ValidationIssue(
            field=field,
            value=value,
            bound=bound.max,
            issue="above_max",
            message=(
                f"{field} ({value}) exceeds the ISAK maximum ({bound.max})."
                + _decimal_slip_hint(value, bound)
            ),
        )
    if value > bound.warn:
        return ValidationIssue(
            field=field,
            value=value,
            bound=bound.warn,
            issue="warning",
            message=f"{field} ({value}) is unusually high - verify the measurement",
        )
    return None


def _anatomical_errors(m: RawMeasurement) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []
    g, b = m.girths, m.breadths

    if g.waist is not None and g.arm_flexed is not None and g.waist < g.arm_flexed:
        errors.append(ValidationIssue(
            field="girths.waist",
            value=g.waist,
            bound=g.arm_flexed,
            issue="anatomically_impossible",
            message=f"Waist ({g.waist} cm) cannot be smaller than flexed arm ({g.arm_flexed} cm)",
        ))

    if g.thigh is not None and g.calf is not None and g.thigh < g.calf:
        errors.append(ValidationIssue(
            field="girths.thigh",
            value=g.thigh,
            bound=g.calf,
            issue="anatomically_impossible",
            message=f"Thigh ({g.thigh} cm) cannot be smaller than calf ({g.calf} cm)",
        ))

    if b.femur is not None and b.humerus is not None and b.femur < b.humerus:
        errors.append(ValidationIssue(
            field="breadths.femur",
            value=b.femur,
            bound=b.humerus,
            issue="anatomically_impossible",
            message=(
                f"Femur breadth ({b.femur} cm) cannot be smaller than "
                f"humerus breadth ({b.humerus} cm). Verify measurements."
            ),
        ))

    if (
        m.sitting_height_cm is not None
        and m.height_cm is not None
        and m.sitting_height_cm >= m.height_cm
    ):
        errors.append(ValidationIssue(
            field="sitting_height_cm",
            value=m.sitting_height_cm,
            bound=m.height_cm,
            issue="anatomically_impossible",
            message=(
                f"Sitting height ({m.sitting_height_cm} cm) must be smaller than "
                f"standing height ({m.height_cm} cm)"
            ),
        ))

    return errors


def cross_check_bmi_vs_skinfolds(m: RawMeasurement) -> list[ValidationIssue]:
    """
    Flag a BMI that contradicts the skinfold sum (a sign of a typing error).

    Only runs when at least 2 of triceps, subscapular, abdominal and thigh
    are present.
    """
    bmi = m.bmi
    present = m.skinfolds.present()
    count = sum(1 for site in CROSS_CHECK_SITES if present.get(site, 0) > 0)
    if bmi is None or count < 2:
        return []

    total = m.skinfolds.total(*CROSS_CHECK_SITES)
    messages = []

    if bmi > OBESE_BMI and total < 40:
        messages.append(
            f"High BMI ({bmi:.1f}) but low skinfold sum ({total:g} mm). "
            "Check the skinfold technique."
        )
    if bmi < UNDERWEIGHT_BMI and total > 80:
        messages.append(
            f"Low BMI ({bmi:.1f}) but high skinfold sum ({total:g} mm). "
            "Check weight/height or skinfolds."
        )
    if UNDERWEIGHT_BMI <= bmi <= NORMAL_BMI_MAX:
        if total > 150:
            messages.append(
                f"Normal BMI ({bmi:.1f}) but very high skinfolds ({total:g} mm). "
                "Possible typing error."
            )
        if total < 15:
            messages.append(
                f"Normal BMI ({bmi:.1f}) but very low skinfolds ({total:g} mm). "
                "Verify the entered values."
            )

    return [
        ValidationIssue(field="bmi", value=round(bmi, 2), issue="warning", message=msg)
        for msg in messages
    ]


def validate_measurement(m: RawMeasurement) -> ValidationOutcome:
    """
    Validate every present field of a measurement record.

    Args:
        m: The raw measurement record

    Returns:
        ValidationOutcome with errors (block calculation) and warnings
        (reported, calculation proceeds).
    """
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    for field, value, bound in _iter_bounded_fields(m):
        if value is None:
            continue
        finding = check_range(field, value, bound)
        if finding is None:
            continue
        if finding.issue == "warning":
            warnings.append(finding)
        else:
            errors.append(finding)

    errors.extend(_anatomical_errors(m))

    skinfold_sum = m.skinfolds.total()
    if skinfold_sum > SKINFOLD_SUM_WARNING_MM:
        warnings.append(ValidationIssue(
            field="skinfolds.sum",
            value=skinfold_sum,
            bound=SKINFOLD_SUM_WARNING_MM,
            issue="warning",
            message=f"Skinfold sum ({skinfold_sum:g} mm) is very high - verify measurements",
        ))

    warnings.extend(cross_check_bmi_vs_skinfolds(m))

    if errors:
        logger.warning(
            f"Measurement validation failed with {len(errors)} error(s): "
            f"{', '.join(e.field for e in errors)}"
        )

    return ValidationOutcome(errors=tuple(errors), warnings=tuple(warnings))
