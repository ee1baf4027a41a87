"""
Technical Error of Measurement (TEM) Service
=============================================
Quantifies how repeatable an anthropometrist's readings are, following the
ISAK accreditation protocol.

FORMULA (Dahlberg):
  TEM  = sqrt( Σd² / (2 × n) )      d = difference of one pair of readings
                                    n = number of pairwise comparisons
  TEM% = (TEM / mean) × 100

With three replicates every pair (1-2, 1-3, 2-3) is compared.

ISAK INTRA-OBSERVER THRESHOLDS (TEM%, excellent / acceptable):
  skinfolds  2.5 / 5.0
  girths     0.5 / 1.0
  breadths   0.5 / 1.0
  basic      0.2 / 0.5
Anything above the acceptable threshold is "poor" and must be re-measured.
Sites without a known category are judged as skinfolds (the strictest common case).
A non-positive mean reading cannot be physical and is always rated "poor".
"""

import logging
import math
import statistics
from collections.abc import Sequence
from itertools import combinations

from bodycomp.core.reference import MEASUREMENT_CATEGORIES, TEM_THRESHOLDS, TEMThreshold
from bodycomp.schemas import (
    MeasurementQuality,
    MeasurementReplication,
    Reliability,
    ReliabilityReport,
    TEMResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "skinfolds"


def site_category(site: str) -> str:
    return MEASUREMENT_CATEGORIES.get(site, DEFAULT_CATEGORY)


def site_thresholds(site: str) -> TEMThreshold:
    return TEM_THRESHOLDS[site_category(site)]


def classify_tem_percent(tem_percent: float, thresholds: TEMThreshold) -> Reliability:
    if tem_percent <= thresholds.intra_excellent:
        return "excellent"
    if tem_percent <= thresholds.intra_acceptable:
        return "acceptable"
    return "poor"


def calculate_tem(measurement_sets: Sequence[Sequence[float]]) -> float:
    """
    Pooled Dahlberg TEM over several sets of replicate readings.

    Each set contributes every pairwise difference between its readings.
    Sets with fewer than two readings are skipped.

    Returns:
        The absolute TEM, or 0.0 when no set had a pair to compare.
    """
    squared_diffs = 0.0
    comparisons = 0
    for readings in measurement_sets:
        for first, second in combinations(readings, 2):
            squared_diffs += (first - second) ** 2
            comparisons += 1

    if comparisons == 0:
        return 0.0
    return math.sqrt(squared_diffs / (2 * comparisons))


def calculate_site_tem(replication: MeasurementReplication) -> TEMResult:
    """
    TEM and reliability class for the replicates of a single site.

    Args:
        replication: Site key plus its replicate readings

    Returns:
        TEMResult. A single reading cannot be assessed and is returned as
        poor / not reliable.
    """
    values = replication.values
    category = site_category(replication.site)

    if len(values) < 2:
        return TEMResult(
            site=replication.site,
            category=category,
            tem=0.0,
            tem_percent=0.0,
            mean=values[0] if values else 0.0,
            is_reliable=False,
            reliability="poor",
            message="At least 2 measurements are required to calculate TEM",
        )

    mean = statistics.fmean(values)
    tem = calculate_tem([values])
    if mean > 0:
        tem_percent = (tem / mean) * 100
        reliability = classify_tem_percent(tem_percent, TEM_THRESHOLDS[category])
    else:
        tem_percent = 0.0
        reliability = "poor"

    # ── Message ──
    if mean <= 0:
        message = f"Mean reading ({mean:g}) is not positive - re-measure"
        logger.warning(f"Site '{replication.site}' has a non-positive mean reading: {mean:g}")
    elif reliability == "excellent":
        message = f"Excellent precision (TEM {tem_percent:.1f}%)"
    elif reliability == "acceptable":
        message = f"Acceptable precision (TEM {tem_percent:.1f}%)"
    else:
        message = f"Insufficient precision (TEM {tem_percent:.1f}%) - re-measure"
        logger.info(f"Site '{replication.site}' needs re-measurement: TEM {tem_percent:.2f}%")

    return TEMResult(
        site=replication.site,
        category=category,
        tem=round(tem, 2),
        tem_percent=round(tem_percent, 2),
        mean=round(mean, 2),
        is_reliable=reliability != "poor",
        reliability=reliability,
        message=message,
    )


def calculate_overall_reliability(
    replications: Sequence[MeasurementReplication],
) -> ReliabilityReport:
    """
    Aggregate reliability of a whole session.

    Rating rules:
      - poor if any site is poor
      - acceptable if more than half of the sites are acceptable
      - excellent otherwise

    The averaged TEM / TEM% only include sites with a non-zero TEM.
    """
    quality: list[MeasurementQuality] = []
    tems: list[TEMResult] = []

    for replication in replications:
        result = calculate_site_tem(replication)
        quality.append(MeasurementQuality(
            site=replication.site,
            tem=result.tem,
            tem_percent=result.tem_percent,
            reliability=result.reliability,
            needs_remeasurement=not result.is_reliable,
        ))
        if result.tem > 0:
            tems.append(result)

    avg_tem = statistics.fmean(r.tem for r in tems) if tems else 0.0
    avg_percent = statistics.fmean(r.tem_percent for r in tems) if tems else 0.0

    poor = sum(1 for q in quality if q.reliability == "poor")
    acceptable = sum(1 for q in quality if q.reliability == "acceptable")

    if poor > 0:
        rating = "poor"
    elif acceptable > len(quality) / 2:
        rating = "acceptable"
    else:
        rating = "excellent"

    logger.info(
        f"Reliability report over {len(quality)} site(s): rating={rating}, "
        f"mean TEM%={avg_percent:.2f}"
    )

    return ReliabilityReport(
        intra_observer_tem=round(avg_tem, 2),
        intra_observer_percent=round(avg_percent, 2),
        meets_isak_standard=poor == 0,
        quality_by_measurement=tuple(quality),
        overall_rating=rating,
    )


def needs_third_measurement(first: float, second: float, site: str) -> bool:
    """
    True when two readings differ by more than the site's acceptable TEM%,
    or when their mean is not positive.
    """
    mean = (first + second) / 2
    if mean <= 0:
        return True
    percent_diff = abs(first - second) / mean * 100
    return percent_diff > site_thresholds(site).intra_acceptable


def get_final_value(values: Sequence[float]) -> float:
    """
    ISAK final value of a site: the mean of two readings, the median of three
    or more.

    Raises:
        ValueError: If no readings are given.
    """
    if not values:
        raise ValueError("At least one measurement is required")
    if len(values) <= 2:
        return statistics.fmean(values)
    return statistics.median(values)
