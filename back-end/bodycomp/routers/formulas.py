"""
Formulas Router
================
Endpoints describing the density formulas and advising which one to use.

Endpoints:
  GET  /formulas            - Metadata of the five density formulas
  POST /formulas/recommend  - Recommend a formula for a subject profile
  POST /formulas/check      - Validate a chosen formula against a profile
"""

import logging

from fastapi import APIRouter, HTTPException

from bodycomp.schemas import (
    FormulaCheck,
    FormulaCheckRequest,
    FormulaInfo,
    FormulaRecommendation,
    SubjectProfile,
)
from bodycomp.services.body_fat import FORMULA_INFO
from bodycomp.services.formula_advisor import get_recommended_formula, validate_formula_match

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/formulas", tags=["Formulas"])


@router.get("", response_model=list[FormulaInfo])
async def list_formulas():
    """Author, year, target population, required skinfolds and age range."""
    return list(FORMULA_INFO.values())


@router.post("/recommend", response_model=FormulaRecommendation)
async def recommend(profile: SubjectProfile):
    """
    Recommend a density formula from activity level, age and BMI.

    Rules (first match wins):
      - intense activity, BMI < 26  -> athlete
      - intense activity, BMI >= 26 -> fitness
      - age >= 65 or BMI >= 30      -> control
      - moderate activity, normal BMI -> fitness
      - otherwise                   -> general
    """
    return get_recommended_formula(profile)


@router.post("/check", response_model=FormulaCheck)
async def check(request: FormulaCheckRequest):
    """Tell whether the selected formula is a good fit for the profile."""
    try:
        result = validate_formula_match(request.selected, request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result.severity == "critical":
        logger.warning(f"Critical formula mismatch: {result.message}")
    return result
