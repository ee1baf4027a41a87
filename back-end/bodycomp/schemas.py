"""
Pydantic V2 Schemas (Value Objects, Requests and Responses)
============================================================
These schemas define the shape of data that flows in and out of the engine.

Naming Convention:
  - *Set / RawMeasurement : measurement records supplied by the caller
  - *Result / *Outcome    : immutable values returned by the calculators
  - *Request              : request bodies used only by the HTTP routers

Every model is frozen: results are created fresh on each call and never mutated
afterwards. Collections are tuples for the same reason.

Units are explicit and never converted inside the engine:
  weight kg, height cm, age years, skinfolds mm, girths cm, breadths cm.

A measurement that was not taken is None. Zero is a real (and usually invalid)
reading, so it is validated instead of being treated as "absent".
"""

from typing import Literal

from pydantic import BaseModel, Field, computed_field

Sex = Literal["male", "female"]
FormulaType = Literal["general", "control", "fitness", "athlete", "rapid"]
CompositionLevel = Literal["kerr_5c", "durnin_4sf", "sloan_2sf", "bmi_only", "error"]
Reliability = Literal["excellent", "acceptable", "poor"]
ActivityLevel = Literal["sedentary", "light", "moderate", "intense", "very_intense"]

FROZEN = {"frozen": True, "allow_inf_nan": False}


# ============================================================
# MEASUREMENT RECORD
# ============================================================

class SkinfoldSet(BaseModel):
    """ISAK skinfold thicknesses in millimeters. Any site may be missing."""
    triceps: float | None = Field(default=None, description="Triceps skinfold (mm)")
    subscapular: float | None = Field(default=None, description="Subscapular skinfold (mm)")
    biceps: float | None = Field(default=None, description="Biceps skinfold (mm)")
    suprailiac: float | None = Field(
        default=None,
        description=(
            "Suprailiac skinfold (mm). Taken at the ISAK supraspinale site; "
            "also used as the iliac crest site by Durnin-Womersley and Sloan"
        ),
    )
    abdominal: float | None = Field(default=None, description="Abdominal skinfold (mm)")
    thigh: float | None = Field(default=None, description="Front thigh skinfold (mm)")
    calf: float | None = Field(default=None, description="Medial calf skinfold (mm)")

    model_config = FROZEN

    def present(self) -> dict[str, float]:
        """Sites that were actually measured."""
        return {site: value for site, value in self if value is not None}

    def total(self, *sites: str) -> float:
        """Sum of the given sites (all sites when none given), ignoring missing ones."""
        values = self.present()
        selected = sites or tuple(values)
        return sum(values.get(site, 0.0) for site in selected)


class GirthSet(BaseModel):
    """Girths (circumferences) in centimeters."""
    arm_relaxed: float | None = Field(default=None, description="Arm relaxed girth (cm)")
    arm_flexed: float | None = Field(default=None, description="Arm flexed and tensed girth (cm)")
    forearm: float | None = Field(default=None, description="Forearm maximal girth (cm)")
    waist: float | None = Field(default=None, description="Waist minimal girth (cm)")
    thigh: float | None = Field(default=None, description="Mid-thigh girth (cm)")
    calf: float | None = Field(default=None, description="Calf maximal girth (cm)")

    model_config = FROZEN

    def present(self) -> dict[str, float]:
        return {site: value for site, value in self if value is not None}


class BreadthSet(BaseModel):
    """Bone breadths in centimeters."""
    humerus: float | None = Field(default=None, description="Biepicondylar humerus breadth (cm)")
    femur: float | None = Field(default=None, description="Biepicondylar femur breadth (cm)")
    wrist: float | None = Field(default=None, description="Bistyloid wrist breadth (cm)")
    ankle: float | None = Field(default=None, description="Bimalleolar ankle breadth (cm)")
    biacromial: float | None = Field(default=None, description="Biacromial breadth (cm)")
    biiliocristal: float | None = Field(default=None, description="Bi-iliocristal breadth (cm)")

    model_config = FROZEN

    def present(self) -> dict[str, float]:
        return {site: value for site, value in self if value is not None}


class RawMeasurement(BaseModel):
    """
    One subject's anthropometric record.

    Only sex is structurally required. Weight, height and age are needed for
    any calculation, but their absence is reported as data (error-level result)
    rather than rejected at parse time.
    """
    weight_kg: float | None = Field(default=None, description="Body weight (kg)")
    height_cm: float | None = Field(default=None, description="Standing height (cm)")
    age_years: float | None = Field(default=None, description="Age (years)")
    sex: Sex = Field(..., description="Biological sex")

    skinfolds: SkinfoldSet = Field(default_factory=SkinfoldSet)
    girths: GirthSet = Field(default_factory=GirthSet)
    breadths: BreadthSet = Field(default_factory=BreadthSet)

    sitting_height_cm: float | None = Field(
        default=None, description="Sitting height (cm), used for the Cormic index"
    )
    head_circumference_cm: float | None = Field(
        default=None, description="Head circumference (cm), used for residual mass"
    )

    model_config = FROZEN

    @property
    def has_basic_data(self) -> bool:
        """Weight, height and age all present and positive."""
        return all(
            value is not None and value > 0
            for value in (self.weight_kg, self.height_cm, self.age_years)
        )

    @property
    def bmi(self) -> float | None:
        if not self.has_basic_data:
            return None
        return self.weight_kg / (self.height_cm / 100) ** 2


# ============================================================
# VALIDATION FINDINGS
# ============================================================

class ValidationIssue(BaseModel):
    """A single field-level finding from the input validator."""
    field: str = Field(description="Dotted field path, e.g. 'breadths.femur'")
    value: float
    bound: float | None = Field(default=None, description="The bound that was violated")
    issue: Literal["below_min", "above_max", "anatomically_impossible", "warning"]
    message: str

    model_config = FROZEN

    @computed_field
    @property
    def classification(self) -> Literal["anatomically_impossible", "out_of_range"]:
        if self.issue == "anatomically_impossible":
            return "anatomically_impossible"
        return "out_of_range"


class ValidationOutcome(BaseModel):
    """Errors block calculation; warnings are reported but let it proceed."""
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()

    model_config = FROZEN

    @computed_field
    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def error_fields(self) -> set[str]:
        return {error.field for error in self.errors}


class SafetyFlag(BaseModel):
    """Clinical flag attached to a computed result (does not block output)."""
    level: Literal["info", "warning", "critical"]
    code: str
    message: str

    model_config = FROZEN


# ============================================================
# TWO-COMPONENT (DENSITY) RESULTS
# ============================================================

class FormulaSkinfolds(BaseModel):
    """
    Skinfold input for the density formulas (mm).

    Unlike SkinfoldSet, the ISAK supraspinale and iliac crest sites are kept
    apart: Withers uses supraspinale, Durnin-Womersley, Katch-McArdle (female)
    and Sloan (female) use the iliac crest.
    """
    triceps: float | None = None
    subscapular: float | None = None
    biceps: float | None = None
    iliac_crest: float | None = None
    supraspinale: float | None = None
    abdominal: float | None = None
    thigh: float | None = None
    calf: float | None = None

    model_config = FROZEN


class BodyCompositionResult(BaseModel):
    """Two-component (fat mass / lean mass) result of one density formula."""
    body_density: float
    fat_percent: float
    fat_mass_kg: float
    lean_mass_kg: float
    formula: FormulaType
    is_valid: bool
    missing_skinfolds: tuple[str, ...] = ()
    flags: tuple[SafetyFlag, ...] = ()

    model_config = FROZEN


# ============================================================
# FIVE-COMPONENT (KERR) RESULTS
# ============================================================

class ComponentMass(BaseModel):
    kg: float
    percent: float

    model_config = FROZEN


class ZScores(BaseModel):
    """Mean Phantom Z-score per Z-scored component."""
    adipose: float = 0.0
    muscle: float = 0.0
    bone: float = 0.0
    residual: float = 0.0

    model_config = FROZEN


class ObesityWarning(BaseModel):
    skinfold_sum: float
    message: str
    alternative_formulas: tuple[str, ...] = ()

    model_config = FROZEN


ZERO_MASS = ComponentMass(kg=0.0, percent=0.0)


class FractionationResult(BaseModel):
    """
    Kerr five-component fractionation.

    When is_valid is False every mass is zero and `missing_data` and/or
    `validation.errors` explain why.
    """
    skin: ComponentMass = ZERO_MASS
    adipose: ComponentMass = ZERO_MASS
    muscle: ComponentMass = ZERO_MASS
    bone: ComponentMass = ZERO_MASS
    residual: ComponentMass = ZERO_MASS
    is_valid: bool
    missing_data: tuple[str, ...] = ()
    body_density: float = 0.0
    adipose_percent: float = Field(default=0.0, description="Adipose tissue %, includes water/connective tissue")
    lipid_fat_percent: float = Field(default=0.0, description="Estimated lipid fat % (80% of adipose %)")
    z_scores: ZScores = ZScores()
    residual_is_estimated: bool | None = Field(
        default=None,
        description="True when residual mass fell back to the mean of the other Z-scores",
    )
    cormic_index: float | None = None
    cormic_interpretation: str | None = None
    obesity_warning: ObesityWarning | None = None
    flags: tuple[SafetyFlag, ...] = ()
    validation: ValidationOutcome = ValidationOutcome()

    model_config = FROZEN

    @property
    def total_mass_kg(self) -> float:
        return self.skin.kg + self.adipose.kg + self.muscle.kg + self.bone.kg + self.residual.kg


# ============================================================
# GRACEFUL DEGRADATION RESULTS
# ============================================================

class LevelInfo(BaseModel):
    id: CompositionLevel
    name: str
    description: str
    required_measurements: tuple[str, ...] = ()
    confidence_range: tuple[int, int]

    model_config = FROZEN


class GracefulResult(BaseModel):
    """Unified composition view, whatever calculator actually ran."""
    level: CompositionLevel
    level_name: str
    is_downgraded: bool
    downgrade_reason: str | None = None

    five_component: FractionationResult | None = None
    two_component: BodyCompositionResult | None = None

    # Unified values
    fat_percent: float = 0.0
    lean_mass_kg: float = 0.0
    fat_mass_kg: float = 0.0

    # Only for the 5C model
    muscle_mass_kg: float | None = None
    bone_mass_kg: float | None = None
    residual_mass_kg: float | None = None
    skin_mass_kg: float | None = None

    confidence_score: int = Field(ge=0, le=100)
    warnings: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    level_info: LevelInfo
    validation: ValidationOutcome = ValidationOutcome()

    model_config = FROZEN

    @computed_field
    @property
    def is_error(self) -> bool:
        return self.level == "error"


# ============================================================
# SANITY AUDIT RESULTS
# ============================================================

class SanityError(BaseModel):
    code: str
    field: str
    value: float
    expected_range: tuple[float, float]
    message: str
    severity: Literal["critical", "high"]

    model_config = FROZEN


class SanityWarning(BaseModel):
    code: str
    message: str
    recommendation: str

    model_config = FROZEN


class SanityCheckResult(BaseModel):
    is_valid: bool
    errors: tuple[SanityError, ...] = ()
    warnings: tuple[SanityWarning, ...] = ()
    confidence_score: int = Field(ge=0, le=100)

    model_config = FROZEN


class AssessmentResult(BaseModel):
    """Full pipeline output: validator -> router -> auditor."""
    composition: GracefulResult
    audit: SanityCheckResult
    confidence_score: int = Field(ge=0, le=100, description="Tier confidence reduced by audit penalties")
    is_valid: bool

    model_config = FROZEN


# ============================================================
# TECHNICAL ERROR OF MEASUREMENT
# ============================================================

class MeasurementReplication(BaseModel):
    """Repeated readings (typically 2-3) at one measurement site."""
    site: str = Field(..., min_length=1, description="Site key, e.g. 'triceps' or 'waist'")
    values: list[float] = Field(..., min_length=1, description="Replicate readings")
    unit: Literal["mm", "cm", "kg"] = "mm"

    model_config = FROZEN


class TEMResult(BaseModel):
    site: str
    category: str
    tem: float = Field(description="Absolute TEM in measurement units")
    tem_percent: float = Field(description="Relative TEM (% of the mean)")
    mean: float
    is_reliable: bool
    reliability: Reliability
    message: str

    model_config = FROZEN


class MeasurementQuality(BaseModel):
    site: str
    tem: float
    tem_percent: float
    reliability: Reliability
    needs_remeasurement: bool

    model_config = FROZEN


class ReliabilityReport(BaseModel):
    intra_observer_tem: float
    intra_observer_percent: float
    meets_isak_standard: bool
    quality_by_measurement: tuple[MeasurementQuality, ...] = ()
    overall_rating: Reliability

    model_config = FROZEN


# ============================================================
# FORMULA ADVISOR
# ============================================================

class FormulaInfo(BaseModel):
    id: FormulaType
    name: str
    author: str
    year: str
    target_population: str
    required_skinfolds: dict[Sex, tuple[str, ...]]
    age_range: tuple[int, int]
    activity_levels: tuple[ActivityLevel, ...]

    model_config = FROZEN


class FormulaRecommendation(BaseModel):
    recommended: FormulaType
    confidence: Literal["high", "medium", "low"]
    reasoning: str
    scientific_basis: str

    model_config = FROZEN


class FormulaCheck(BaseModel):
    is_optimal: bool
    selected: FormulaType
    recommended: FormulaType
    severity: Literal["info", "warning", "critical"]
    message: str
    suggestion: str

    model_config = FROZEN


# ============================================================
# REQUEST BODIES (HTTP layer)
# ============================================================

class TwoComponentRequest(BaseModel):
    """Body for POST /composition/two-component/{formula}."""
    sex: Sex
    weight_kg: float = Field(..., gt=0, description="Body weight (kg)")
    skinfolds: FormulaSkinfolds = Field(default_factory=FormulaSkinfolds)


class SubjectProfile(BaseModel):
    """Profile used by the formula advisor."""
    activity_level: ActivityLevel = "sedentary"
    age_years: float = Field(default=30, gt=0)
    weight_kg: float = Field(default=70, gt=0)
    height_cm: float = Field(default=170, gt=0)


class FormulaCheckRequest(SubjectProfile):
    selected: FormulaType


class NeedsThirdRequest(BaseModel):
    site: str = Field(..., min_length=1)
    first: float
    second: float


class NeedsThirdResponse(BaseModel):
    site: str
    needs_third_measurement: bool


class FinalValueRequest(BaseModel):
    values: list[float] = Field(..., min_length=1)


class FinalValueResponse(BaseModel):
    final_value: float


class ReliabilityReportRequest(BaseModel):
    replications: list[MeasurementReplication] = Field(..., min_length=1)


class BestLevelResponse(BaseModel):
    """Which tier would run, and what is missing for each higher tier."""
    level: CompositionLevel
    missing_by_level: dict[str, list[str]]
