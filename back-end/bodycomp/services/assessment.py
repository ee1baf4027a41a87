"""
Assessment Pipeline
====================
validate -> route (graceful degradation) -> audit, in one call.

The final confidence is the tier confidence scaled by the audit score:
  confidence = round(tier_confidence × audit_score / 100)
so a Kerr result (95) with a clean audit keeps 95, and one with a -30 mass
balance error drops to 66.

The assessment is valid only when a tier produced a result, the audit raised
no critical error and the input validator reported no error at all. A record
with an invalid field still gets the best estimate the remaining fields allow,
but it is never reported as valid.
"""

import logging

from bodycomp.schemas import AssessmentResult, RawMeasurement
from bodycomp.services.degradation import build_tiers, calculate_with_graceful_degradation
from bodycomp.services.fractionation import DEFAULT_DEVIATION_WARN_PERCENT
from bodycomp.services.sanity import run_sanity_checks
from bodycomp.services.validation import validate_measurement

logger = logging.getLogger(__name__)


def assess_body_composition(
    m: RawMeasurement,
    deviation_warn_percent: float = DEFAULT_DEVIATION_WARN_PERCENT,
) -> AssessmentResult:
    """
    Run the full body composition pipeline on one measurement record.

    Args:
        m: The raw measurement record
        deviation_warn_percent: Kerr mass-balance deviation that raises a warning

    Returns:
        AssessmentResult with the router result, its audit and the combined
        confidence. Never raises for bad data; problems are reported in the
        result.
    """
    validation = validate_measurement(m)
    composition = calculate_with_graceful_degradation(
        m,
        tiers=build_tiers(deviation_warn_percent),
        validation=validation,
    )
    audit = run_sanity_checks(composition, m)

    confidence = round(composition.confidence_score * audit.confidence_score / 100)
    # Validator errors only steer tier selection; they still invalidate the assessment
    is_valid = not composition.is_error and audit.is_valid and validation.is_valid

    logger.info(
        f"Assessment complete: level={composition.level}, valid={is_valid}, "
        f"confidence={confidence}"
    )

    return AssessmentResult(
        composition=composition,
        audit=audit,
        confidence_score=confidence,
        is_valid=is_valid,
    )
