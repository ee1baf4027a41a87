"""
Five-Component Fractionation Service (Kerr 1988)
=================================================
Splits body weight into skin, adipose, muscle, bone and residual mass using the
Phantom stratagem (Ross & Wilson 1974). ISAK Level 3 methodology.

ALGORITHM, for a measurement v at a site with Phantom mean p and SD s, and
subject height h:
  1. Height adjustment : v' = v × (170.18 / h)
  2. Z-score           : z  = (v' − p) / s
                         undefined (None) when h, v or s is not positive;
                         undefined scores are left out of every average.
  3. Per component, the Z-scores of its sites are averaged (0 when none).
       skin     : Du Bois surface area × 2.07 mm dermis × 1.05 g/cm³ (no Z-score)
       adipose  : triceps, subscapular, supraspinale, abdominal, thigh, calf skinfolds
       muscle   : arm, thigh, calf girths corrected as  g − π × skinfold/10,
                  plus the uncorrected forearm girth
       bone     : humerus, femur (+ wrist, ankle, biacromial, bi-iliocristal)
       residual : head circumference, biacromial, bi-iliocristal; when none is
                  available, the mean of the adipose, muscle and bone Z-scores
                  (residual_is_estimated = True)
  4. Mass              : M = max(0, z × S + P) × (h / 170.18)³
  5. Mass balance      : every component × (weight / Σ components), so the five
                         always sum to body weight. A pre-scaling deviation above
                         the threshold (5% by default) is flagged.
  6. adipose %, lipid fat % (= 0.8 × adipose %) and the equivalent density
     (inverse Siri).
  7. Cormic index when sitting height is supplied.
  8. Obesity-precision warning from the skinfold sum (>150 mm, milder >120 mm).
"""

import logging
import math

from bodycomp.core.reference import (
    ADIPOSE_LIPID_FRACTION,
    CORMIC_BRACHY_BELOW,
    CORMIC_METRIO_MAX,
    DU_BOIS_FACTOR_CM2,
    DU_BOIS_HEIGHT_EXPONENT,
    DU_BOIS_WEIGHT_EXPONENT,
    PHANTOM_BREADTHS,
    PHANTOM_GIRTHS,
    PHANTOM_HEIGHT_CM,
    PHANTOM_MASSES,
    PHANTOM_SKINFOLDS,
    SKIN_DENSITY_G_CM3,
    SKIN_THICKNESS_MM,
    PhantomValue,
)
from bodycomp.schemas import (
    ComponentMass,
    FractionationResult,
    ObesityWarning,
    RawMeasurement,
    SafetyFlag,
    ZScores,
)
from bodycomp.services.body_fat import fat_percent_to_body_density
from bodycomp.services.validation import validate_measurement

logger = logging.getLogger(__name__)

# ── Prerequisites ──
CORE_SKINFOLDS = ("triceps", "subscapular", "suprailiac", "abdominal", "thigh", "calf")
CORE_GIRTHS = ("arm_relaxed", "thigh", "calf")
CORE_BREADTHS = ("humerus", "femur")
MIN_CORE_SKINFOLDS = 4
MIN_CORE_GIRTHS = 2

DEFAULT_DEVIATION_WARN_PERCENT = 5.0

# ── Obesity precision thresholds (Σ skinfolds, mm) ──
OBESITY_WARNING_SUM_MM = 150.0
OBESITY_NOTE_SUM_MM = 120.0
OBESITY_ALTERNATIVES = (
    "Weltman (1988) - obesity-specific equation using abdominal circumference",
    "Peterson (2008) - 4-component model correlated with DXA in obesity",
    "Bioelectrical impedance (BIA) - consider as an alternative validation method",
)

# (girth site, skinfold site used to correct it)
MUSCLE_GIRTH_CORRECTIONS = (
    ("arm_relaxed", "triceps"),
    ("thigh", "thigh"),
    ("calf", "calf"),
)


# ============================================================
# PHANTOM HELPERS
# ============================================================

def z_score(value: float | None, height_cm: float | None, reference: PhantomValue) -> float | None:
    """
    Phantom Z-score: Z = (v × (170.18 / h) − p) / s

    Returns None when the value, the height or the reference SD is not
    strictly positive (guards the divisions).
    """
    if value is None or height_cm is None:
        return None
    if value <= 0 or height_cm <= 0 or reference.sd <= 0:
        return None
    adjusted = value * (PHANTOM_HEIGHT_CM / height_cm)
    z = (adjusted - reference.mean) / reference.sd
    return z if math.isfinite(z) else None


def mean_z_score(scores: list[float | None]) -> float:
    """Average of the defined Z-scores; 0.0 (the Phantom itself) when none is defined."""
    valid = [z for z in scores if z is not None]
    if not valid:
        return 0.0
    return sum(valid) / len(valid)


def phantom_mass(z: float, reference: PhantomValue, height_cm: float) -> float:
    """Mass (kg) = max(0, z × S + P) × (h / 170.18)³"""
    height_ratio = (height_cm / PHANTOM_HEIGHT_CM) ** 3
    return max(0.0, z * reference.sd + reference.mean) * height_ratio


def du_bois_surface_area(weight_kg: float, height_cm: float) -> float:
    """Du Bois body surface area in cm²: W^0.425 × H^0.725 × 71.84"""
    return (
        weight_kg ** DU_BOIS_WEIGHT_EXPONENT
        * height_cm ** DU_BOIS_HEIGHT_EXPONENT
        * DU_BOIS_FACTOR_CM2
    )


# ============================================================
# COMPONENTS
# ============================================================

def skin_mass(weight_kg: float, height_cm: float) -> float:
    """
    Skin mass (kg) = SA (cm²) × thickness (cm) × density (g/cm³) / 1000
    """
    surface_area = du_bois_surface_area(weight_kg, height_cm)
    return max(0.0, surface_area * (SKIN_THICKNESS_MM / 10) * SKIN_DENSITY_G_CM3 / 1000)


def adipose_z_score(m: RawMeasurement) -> float:
    sf, h = m.skinfolds, m.height_cm
    return mean_z_score([
        z_score(sf.triceps, h, PHANTOM_SKINFOLDS["triceps"]),
        z_score(sf.subscapular, h, PHANTOM_SKINFOLDS["subscapular"]),
        z_score(sf.suprailiac, h, PHANTOM_SKINFOLDS["supraspinale"]),
        z_score(sf.abdominal, h, PHANTOM_SKINFOLDS["abdominal"]),
        z_score(sf.thigh, h, PHANTOM_SKINFOLDS["thigh"]),
        z_score(sf.calf, h, PHANTOM_SKINFOLDS["calf"]),
    ])


def corrected_girth(girth_cm: float, skinfold_mm: float | None) -> float:
    """Girth corrected for subcutaneous fat: g − π × (skinfold mm / 10)."""
    if skinfold_mm is None:
        return girth_cm
    return girth_cm - math.pi * (skinfold_mm / 10)


def muscle_z_score(m: RawMeasurement) -> tuple[float, list[str]]:
    """
    Mean Z-score of the corrected limb girths (+ forearm).

    Returns:
        (mean Z, girth sites used without correction because their skinfold was missing)
    """
    h = m.height_cm
    scores: list[float | None] = []
    uncorrected: list[str] = []

    for girth_site, skinfold_site in MUSCLE_GIRTH_CORRECTIONS:
        girth = getattr(m.girths, girth_site)
        if girth is None:
            continue
        skinfold = getattr(m.skinfolds, skinfold_site)
        if skinfold is None:
            uncorrected.append(girth_site)
        scores.append(z_score(corrected_girth(girth, skinfold), h, PHANTOM_GIRTHS[girth_site]))

    # Forearm is used as measured (no skinfold correction)
    if m.girths.forearm is not None:
        scores.append(z_score(m.girths.forearm, h, PHANTOM_GIRTHS["forearm"]))

    return mean_z_score(scores), uncorrected


def bone_z_score(m: RawMeasurement) -> float:
    b, h = m.breadths, m.height_cm
    scores = [
        z_score(b.humerus, h, PHANTOM_BREADTHS["humerus"]),
        z_score(b.femur, h, PHANTOM_BREADTHS["femur"]),
    ]
    # Optional breadths, trunk diameters improve the skeletal frame estimate
    for site in ("wrist", "ankle", "biacromial", "biiliocristal"):
        value = getattr(b, site)
        if value is not None:
            scores.append(z_score(value, h, PHANTOM_BREADTHS[site]))
    return mean_z_score(scores)


def residual_z_score(
    m: RawMeasurement,
    z_adipose: float,
    z_muscle: float,
    z_bone: float,
) -> tuple[float, bool]:
    """
    Residual (viscera + organs + fluids) Z-score.

    Priority: head circumference, then biacromial / bi-iliocristal breadths.
    Without any of them the mean of the other three Z-scores is used.

    Returns:
        (mean Z, is_estimated)
    """
    h = m.height_cm
    trunk_scores = [
        z_score(m.head_circumference_cm, h, PHANTOM_BREADTHS["head_circumference"]),
        z_score(m.breadths.biacromial, h, PHANTOM_BREADTHS["biacromial"]),
        z_score(m.breadths.biiliocristal, h, PHANTOM_BREADTHS["biiliocristal"]),
    ]
    if any(z is not None for z in trunk_scores):
        return mean_z_score(trunk_scores), False

    return (z_adipose + z_muscle + z_bone) / 3, True


def cormic_index(sitting_height_cm: float, height_cm: float) -> tuple[float, str]:
    """
    Cormic index = sitting height / height × 100, with its skeletal proportion.
    """
    index = sitting_height_cm / height_cm * 100
    if index < CORMIC_BRACHY_BELOW:
        interpretation = "Brachycormic (long legs / short trunk)"
    elif index <= CORMIC_METRIO_MAX:
        interpretation = "Metriocormic (proportional)"
    else:
        interpretation = "Macrocormic (short legs / long trunk)"
    return index, interpretation


def obesity_warning(skinfold_sum: float) -> ObesityWarning | None:
    if skinfold_sum > OBESITY_WARNING_SUM_MM:
        return ObesityWarning(
            skinfold_sum=skinfold_sum,
            message=(
                f"High skinfold sum ({skinfold_sum:g} mm). With high adiposity, tissue "
                "compressibility can reduce the precision of skinfold-based models."
            ),
            alternative_formulas=OBESITY_ALTERNATIVES,
        )
    if skinfold_sum > OBESITY_NOTE_SUM_MM:
        return ObesityWarning(
            skinfold_sum=skinfold_sum,
            message=f"Moderately high skinfold sum ({skinfold_sum:g} mm). Verify measurement technique.",
        )
    return None


# ============================================================
# PREREQUISITES
# ============================================================

def find_missing_data(m: RawMeasurement) -> list[str]:
    """
    List what the five-component model needs and does not have:
    weight/height/age, 4 of 6 core skinfolds, 2 of 3 core girths and both
    core breadths. Non-positive values count as missing.
    """
    missing = []
    for field in ("weight_kg", "height_cm", "age_years"):
        value = getattr(m, field)
        if value is None or value <= 0:
            missing.append(field)

    def _absent(group, sites):
        return [site for site in sites if (getattr(group, site) or 0) <= 0]

    absent_skinfolds = _absent(m.skinfolds, CORE_SKINFOLDS)
    if len(CORE_SKINFOLDS) - len(absent_skinfolds) < MIN_CORE_SKINFOLDS:
        missing.extend(f"skinfolds.{site}" for site in absent_skinfolds)

    absent_girths = _absent(m.girths, CORE_GIRTHS)
    if len(CORE_GIRTHS) - len(absent_girths) < MIN_CORE_GIRTHS:
        missing.extend(f"girths.{site}" for site in absent_girths)

    missing.extend(f"breadths.{site}" for site in _absent(m.breadths, CORE_BREADTHS))
    return missing


# ============================================================
# MAIN CALCULATION
# ============================================================

def _to_component(kg: float, weight_kg: float) -> ComponentMass:
    return ComponentMass(kg=round(kg, 2), percent=round(kg / weight_kg * 100, 1))


def calculate_five_component_fractionation(
    m: RawMeasurement,
    deviation_warn_percent: float = DEFAULT_DEVIATION_WARN_PERCENT,
) -> FractionationResult:
    """
    Kerr five-component fractionation of a measurement record.

    Args:
        m: The raw measurement record
        deviation_warn_percent: Pre-scaling deviation (%) above which the
            KERR_DEVIATION_HIGH flag is raised

    Returns:
        FractionationResult. Invalid (all masses zero) when prerequisites are
        missing or the input validator reports errors.
    """
    validation = validate_measurement(m)
    missing = find_missing_data(m)

    if missing or not validation.is_valid:
        logger.info(
            f"Five-component model not calculable: missing={missing}, "
            f"errors={[e.field for e in validation.errors]}"
        )
        return FractionationResult(
            is_valid=False,
            missing_data=tuple(missing),
            validation=validation,
        )

    weight, height = m.weight_kg, m.height_cm
    flags: list[SafetyFlag] = []

    # ── Components ──
    skin_kg = skin_mass(weight, height)

    z_adipose = adipose_z_score(m)
    adipose_kg = phantom_mass(z_adipose, PHANTOM_MASSES["adipose"], height)

    z_muscle, uncorrected = muscle_z_score(m)
    muscle_kg = phantom_mass(z_muscle, PHANTOM_MASSES["muscle"], height)
    if uncorrected:
        flags.append(SafetyFlag(
            level="info",
            code="GIRTH_UNCORRECTED",
            message=(
                f"Girths used without skinfold correction: {', '.join(uncorrected)}. "
                "Muscle mass may be overestimated."
            ),
        ))

    z_bone = bone_z_score(m)
    bone_kg = phantom_mass(z_bone, PHANTOM_MASSES["bone"], height)

    z_residual, residual_is_estimated = residual_z_score(m, z_adipose, z_muscle, z_bone)
    residual_kg = phantom_mass(z_residual, PHANTOM_MASSES["residual"], height)
    if residual_is_estimated:
        flags.append(SafetyFlag(
            level="info",
            code="RESIDUAL_ESTIMATED",
            message=(
                "Residual mass estimated from the other components: no head "
                "circumference or trunk breadths were measured."
            ),
        ))

    # ── Mass balance: force the five components to sum to body weight ──
    total = skin_kg + adipose_kg + muscle_kg + bone_kg + residual_kg
    scale = weight / total if total > 0 else 1.0
    deviation = abs(1 - scale) * 100

    if deviation > deviation_warn_percent:
        flags.append(SafetyFlag(
            level="warning",
            code="KERR_DEVIATION_HIGH",
            message=(
                f"High Kerr model deviation ({deviation:.1f}%): the sum of the components "
                f"({total:.1f} kg) differs significantly from body weight ({weight:g} kg)."
            ),
        ))
        logger.warning(
            f"Kerr deviation {deviation:.1f}% (raw sum {total:.2f}kg vs weight {weight}kg)"
        )

    skin = _to_component(skin_kg * scale, weight)
    adipose = _to_component(adipose_kg * scale, weight)
    muscle = _to_component(muscle_kg * scale, weight)
    bone = _to_component(bone_kg * scale, weight)
    residual = _to_component(residual_kg * scale, weight)

    # ── Fat estimates ──
    adipose_percent = round(adipose_kg * scale / weight * 100, 1)
    lipid_fat_percent = round(adipose_percent * ADIPOSE_LIPID_FRACTION, 1)
    body_density = round(fat_percent_to_body_density(lipid_fat_percent), 4)

    # ── Skeletal proportion ──
    index = interpretation = None
    if m.sitting_height_cm is not None and m.sitting_height_cm > 0:
        index, interpretation = cormic_index(m.sitting_height_cm, height)
        index = round(index, 2)

    logger.info(
        f"Kerr 5C: weight={weight}kg, height={height}cm -> "
        f"adipose={adipose.kg}kg, muscle={muscle.kg}kg, bone={bone.kg}kg, "
        f"residual={residual.kg}kg (estimated={residual_is_estimated}), skin={skin.kg}kg, "
        f"scale={scale:.3f}"
    )

    return FractionationResult(
        skin=skin,
        adipose=adipose,
        muscle=muscle,
        bone=bone,
        residual=residual,
        is_valid=True,
        body_density=body_density,
        adipose_percent=adipose_percent,
        lipid_fat_percent=lipid_fat_percent,
        z_scores=ZScores(
            adipose=round(z_adipose, 2),
            muscle=round(z_muscle, 2),
            bone=round(z_bone, 2),
            residual=round(z_residual, 2),
        ),
        residual_is_estimated=residual_is_estimated,
        cormic_index=index,
        cormic_interpretation=interpretation,
        obesity_warning=obesity_warning(m.skinfolds.total()),
        flags=tuple(flags),
        validation=validation,
    )
