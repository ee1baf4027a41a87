"""
Body Composition Router
========================
Endpoints for estimating body composition from anthropometric measurements.

Endpoints:
  POST /composition/assess                   - Full pipeline (validate -> route -> audit)
  POST /composition/validate                 - Input validation only
  POST /composition/five-component           - Kerr 5-component fractionation only
  POST /composition/two-component            - Density formula (configured default)
  POST /composition/two-component/{formula}  - One specific density formula
  GET  /composition/levels                   - Precision tier metadata
  POST /composition/best-level               - Which tier would run (no calculation)
"""

import logging

from fastapi import APIRouter, HTTPException

from bodycomp.core.config import settings
from bodycomp.schemas import (
    AssessmentResult,
    BestLevelResponse,
    BodyCompositionResult,
    FractionationResult,
    LevelInfo,
    RawMeasurement,
    TwoComponentRequest,
    ValidationOutcome,
)
from bodycomp.services.assessment import assess_body_composition
from bodycomp.services.body_fat import calculate_body_composition
from bodycomp.services.degradation import (
    DEFAULT_TIERS,
    LEVEL_INFO,
    get_best_available_level,
    get_missing_for_level,
)
from bodycomp.services.fractionation import calculate_five_component_fractionation
from bodycomp.services.validation import validate_measurement

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/composition", tags=["Body Composition"])


@router.post("/assess", response_model=AssessmentResult)
async def assess(measurement: RawMeasurement):
    """
    Estimate body composition with the most precise method the data supports.

    HOW IT WORKS:
      1. Validates every field against ISAK bounds and anatomical rules
      2. Walks the precision tiers: Kerr 5C -> Durnin 4SF -> Sloan 2SF -> BMI
      3. Audits the result against physiological limits

    Missing data never fails the request: a lower tier is used and the reason
    is reported in `composition.warnings` / `composition.downgrade_reason`.
    Without weight, height and age the composition level is "error".
    """
    return assess_body_composition(
        measurement,
        deviation_warn_percent=settings.KERR_DEVIATION_WARN_PERCENT,
    )


@router.post("/validate", response_model=ValidationOutcome)
async def validate(measurement: RawMeasurement):
    """Check a measurement record without calculating anything."""
    return validate_measurement(measurement)


@router.post("/five-component", response_model=FractionationResult)
async def five_component(measurement: RawMeasurement):
    """
    Kerr (1988) five-component fractionation: skin, adipose, muscle, bone and
    residual mass. Returns an invalid result listing `missing_data` when the
    record is incomplete.
    """
    return calculate_five_component_fractionation(
        measurement,
        deviation_warn_percent=settings.KERR_DEVIATION_WARN_PERCENT,
    )


@router.post("/two-component", response_model=BodyCompositionResult)
async def two_component_default(request: TwoComponentRequest):
    """Two-component estimate with the configured default formula."""
    return _two_component(settings.DEFAULT_FORMULA, request)


@router.post("/two-component/{formula}", response_model=BodyCompositionResult)
async def two_component(formula: str, request: TwoComponentRequest):
    """
    Two-component estimate (density -> Siri) with one formula:
    general, control, fitness, athlete or rapid.
    """
    return _two_component(formula, request)


def _two_component(formula: str, request: TwoComponentRequest) -> BodyCompositionResult:
    try:
        return calculate_body_composition(
            formula, request.sex, request.skinfolds, request.weight_kg  # type: ignore[arg-type]
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/levels", response_model=list[LevelInfo])
async def list_levels():
    """Metadata of the precision tiers, most precise first."""
    return [tier.info for tier in DEFAULT_TIERS]


@router.post("/best-level", response_model=BestLevelResponse)
async def best_level(measurement: RawMeasurement):
    """
    Report the tier the router would use, and what is missing for every
    more precise tier.
    """
    level = get_best_available_level(measurement)
    missing_by_level: dict[str, list[str]] = {}
    for tier in DEFAULT_TIERS:
        if tier.level == level:
            break
        missing_by_level[tier.level] = get_missing_for_level(measurement, tier.level)

    logger.info(f"Best available level: {level} ({LEVEL_INFO[level].name})")
    return BestLevelResponse(level=level, missing_by_level=missing_by_level)
