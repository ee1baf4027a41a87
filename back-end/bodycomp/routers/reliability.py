"""
Measurement Reliability Router
===============================
Endpoints for the Technical Error of Measurement (ISAK).

Endpoints:
  POST /reliability/site         - TEM of one site's replicate readings
  POST /reliability/report       - Aggregate reliability of a session
  POST /reliability/needs-third  - Do two readings call for a third?
  POST /reliability/final-value  - Final value (mean of 2, median of 3)
"""

from fastapi import APIRouter, HTTPException

from bodycomp.schemas import (
    FinalValueRequest,
    FinalValueResponse,
    MeasurementReplication,
    NeedsThirdRequest,
    NeedsThirdResponse,
    ReliabilityReport,
    ReliabilityReportRequest,
    TEMResult,
)
from bodycomp.services.tem import (
    calculate_overall_reliability,
    calculate_site_tem,
    get_final_value,
    needs_third_measurement,
)

router = APIRouter(prefix="/reliability", tags=["Measurement Reliability"])


@router.post("/site", response_model=TEMResult)
async def site_tem(replication: MeasurementReplication):
    """Dahlberg TEM and ISAK reliability class for one site."""
    return calculate_site_tem(replication)


@router.post("/report", response_model=ReliabilityReport)
async def reliability_report(request: ReliabilityReportRequest):
    """
    Session report: poor if any site is poor, acceptable if more than half
    are acceptable, excellent otherwise.
    """
    return calculate_overall_reliability(request.replications)


@router.post("/needs-third", response_model=NeedsThirdResponse)
async def needs_third(request: NeedsThirdRequest):
    return NeedsThirdResponse(
        site=request.site,
        needs_third_measurement=needs_third_measurement(request.first, request.second, request.site),
    )


@router.post("/final-value", response_model=FinalValueResponse)
async def final_value(request: FinalValueRequest):
    try:
        return FinalValueResponse(final_value=get_final_value(request.values))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
