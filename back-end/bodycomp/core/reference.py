"""
Reference Constant Tables
==========================
Immutable scientific constants shared by every calculator in the engine.

Contents:
  - PHANTOM_*            : Ross & Wilson (1974) Phantom means/SDs per site and per
                           fractional mass (Kerr 1988 reference values).
  - ISAK_BOUNDS          : hard min / max and "unusual" upper band per field.
  - DENSITY_EQUATIONS    : coefficient tables of the five skinfold -> density formulas.
  - PHYSIOLOGICAL_LIMITS : plausibility limits used by the result sanity auditor.
  - TEM_THRESHOLDS       : ISAK intra-observer TEM cut points per category.

Every table is a read-only mapping (types.MappingProxyType) of NamedTuples, built
once at import time and never written afterwards. Lookups are safe to share
between threads and processes.
"""

from types import MappingProxyType
from typing import NamedTuple


# ============================================================
# PHANTOM STRATAGEM (Ross & Wilson 1974)
# ============================================================
# Reference subject: Height = 170.18 cm, Weight = 64.58 kg

PHANTOM_HEIGHT_CM = 170.18


class PhantomValue(NamedTuple):
    """Reference mean (p) and standard deviation (s) of the Phantom population."""
    mean: float
    sd: float


# Skinfolds (mm)
PHANTOM_SKINFOLDS = MappingProxyType({
    "triceps": PhantomValue(15.4, 4.47),
    "subscapular": PhantomValue(17.2, 5.07),
    "supraspinale": PhantomValue(15.4, 4.47),
    "abdominal": PhantomValue(25.4, 7.78),
    "thigh": PhantomValue(27.0, 8.33),      # front thigh
    "calf": PhantomValue(16.0, 4.67),       # medial calf
})

# Girths (cm)
PHANTOM_GIRTHS = MappingProxyType({
    "arm_relaxed": PhantomValue(26.89, 2.33),
    "forearm": PhantomValue(25.13, 1.41),
    "thigh": PhantomValue(55.82, 4.23),     # mid thigh
    "calf": PhantomValue(35.25, 2.30),      # maximal calf
})

# Bone breadths and trunk measurements (cm)
PHANTOM_BREADTHS = MappingProxyType({
    "humerus": PhantomValue(6.48, 0.35),
    "femur": PhantomValue(9.52, 0.48),
    "wrist": PhantomValue(5.21, 0.28),
    "ankle": PhantomValue(6.68, 0.36),
    "biacromial": PhantomValue(38.04, 1.92),
    "biiliocristal": PhantomValue(28.84, 1.75),
    "head_circumference": PhantomValue(57.20, 1.52),  # adults
})

# Fractional masses (kg), Kerr reference values
PHANTOM_MASSES = MappingProxyType({
    "adipose": PhantomValue(12.13, 3.25),
    "muscle": PhantomValue(25.55, 2.99),
    "bone": PhantomValue(6.68, 0.85),
    "residual": PhantomValue(6.35, 1.24),
})

# Skin mass: average dermis thickness and density
SKIN_THICKNESS_MM = 2.07
SKIN_DENSITY_G_CM3 = 1.05

# Du Bois body surface area: SA (cm²) = W^0.425 × H^0.725 × 71.84
DU_BOIS_WEIGHT_EXPONENT = 0.425
DU_BOIS_HEIGHT_EXPONENT = 0.725
DU_BOIS_FACTOR_CM2 = 71.84

# Adipose tissue is ~80% lipid in adults
ADIPOSE_LIPID_FRACTION = 0.8

# Cormic index cut points (Ross & Marfell-Jones)
CORMIC_BRACHY_BELOW = 51.0
CORMIC_METRIO_MAX = 53.0


# ============================================================
# ISAK BIOLOGICAL BOUNDS
# ============================================================

class FieldBound(NamedTuple):
    """
    Hard range [min, max] (outside = error) and the upper "unusual" threshold
    above which a value is only flagged as a warning.
    """
    min: float
    max: float
    warn: float


ISAK_BOUNDS = MappingProxyType({
    # Skinfolds (mm)
    "skinfolds": MappingProxyType({
        "triceps": FieldBound(3, 45, 35),
        "subscapular": FieldBound(4, 50, 40),
        "biceps": FieldBound(2, 25, 20),
        "suprailiac": FieldBound(3, 55, 45),
        "abdominal": FieldBound(4, 70, 55),
        "thigh": FieldBound(4, 60, 50),
        "calf": FieldBound(2, 35, 28),
    }),
    # Girths (cm)
    "girths": MappingProxyType({
        "arm_relaxed": FieldBound(18, 55, 45),
        "arm_flexed": FieldBound(20, 60, 50),
        "forearm": FieldBound(18, 40, 35),
        "waist": FieldBound(50, 180, 130),
        "thigh": FieldBound(35, 90, 75),
        "calf": FieldBound(25, 55, 48),
    }),
    # Bone breadths (cm), strict adult ranges for the Kerr model
    "breadths": MappingProxyType({
        "humerus": FieldBound(5.5, 12, 9),
        "femur": FieldBound(8.0, 16, 13),
        "wrist": FieldBound(4.5, 7.5, 6.5),
        "ankle": FieldBound(6.0, 10, 8.5),
        "biacromial": FieldBound(30, 60, 45),
        "biiliocristal": FieldBound(22, 50, 38),
    }),
    # Basic measurements (adult range)
    "basic": MappingProxyType({
        "weight": FieldBound(30, 250, 180),                 # kg
        "height": FieldBound(120, 230, 210),                # cm
        "age": FieldBound(14, 110, 100),                    # years
        "sitting_height": FieldBound(60, 130, 110),         # cm
        "head_circumference": FieldBound(40, 65, 62),       # cm (adults)
    }),
})

# Sum of all skinfolds above which tissue compressibility makes readings doubtful
SKINFOLD_SUM_WARNING_MM = 250.0


# ============================================================
# DENSITY FORMULA COEFFICIENTS
# ============================================================

class DensityEquation(NamedTuple):
    """
    Body density regression:

        density = intercept
                  + Σ coefficient_i × site_i                  (linear terms)
                  + sum_coefficient × f(Σ sum_sites)          (sum term)

    where f is log10 when `log_sum` is True, identity otherwise.
    """
    intercept: float
    linear: tuple[tuple[str, float], ...] = ()
    sum_sites: tuple[str, ...] = ()
    sum_coefficient: float = 0.0
    log_sum: bool = False

    @property
    def required_sites(self) -> tuple[str, ...]:
        return tuple(site for site, _ in self.linear) + self.sum_sites


DENSITY_EQUATIONS = MappingProxyType({
    # Wilmore & Behnke (1969/1970)
    "general": MappingProxyType({
        "male": DensityEquation(1.08543, linear=(("abdominal", -0.000886), ("thigh", -0.00040))),
        "female": DensityEquation(
            1.06234,
            linear=(("subscapular", -0.00068), ("triceps", -0.00039), ("thigh", -0.00025)),
        ),
    }),
    # Durnin & Womersley (1974). "Suprailiac" maps to the ISAK iliac crest site.
    "control": MappingProxyType({
        "male": DensityEquation(
            1.1765,
            sum_sites=("triceps", "biceps", "subscapular", "iliac_crest"),
            sum_coefficient=-0.0744,
            log_sum=True,
        ),
        "female": DensityEquation(
            1.1567,
            sum_sites=("triceps", "biceps", "subscapular", "iliac_crest"),
            sum_coefficient=-0.0717,
            log_sum=True,
        ),
    }),
    # Katch & McArdle (1973)
    "fitness": MappingProxyType({
        "male": DensityEquation(
            1.09655,
            linear=(("triceps", -0.00103), ("subscapular", -0.00056), ("abdominal", 0.00054)),
        ),
        "female": DensityEquation(
            1.09246,
            linear=(("subscapular", -0.00049), ("iliac_crest", -0.00075)),
        ),
    }),
    # Withers et al. (1987)
    "athlete": MappingProxyType({
        "male": DensityEquation(
            1.0988,
            sum_sites=("triceps", "biceps", "subscapular", "supraspinale", "abdominal", "thigh", "calf"),
            sum_coefficient=-0.0004,
        ),
        "female": DensityEquation(
            1.20953,
            sum_sites=("triceps", "subscapular", "supraspinale", "calf"),
            sum_coefficient=-0.08294,
            log_sum=True,
        ),
    }),
    # Sloan (1962/1967)
    "rapid": MappingProxyType({
        "male": DensityEquation(1.1043, linear=(("thigh", -0.001327), ("subscapular", -0.001310))),
        "female": DensityEquation(1.0764, linear=(("iliac_crest", -0.00081), ("triceps", -0.00088))),
    }),
})

# Siri (1961): fat % = 495 / density − 450
SIRI_NUMERATOR = 495.0
SIRI_OFFSET = 450.0

DENSITY_MIN = 0.9
DENSITY_MAX = 1.2
FAT_PERCENT_MIN = 0.0
FAT_PERCENT_MAX = 60.0

# Biological survival guard (fat %)
LIFE_INCOMPATIBLE_FAT_PERCENT = MappingProxyType({"male": 3.0, "female": 8.0})
METABOLIC_RISK_FAT_PERCENT = MappingProxyType({"male": 45.0, "female": 55.0})


# ============================================================
# BMI-ONLY ESTIMATE: Deurenberg et al. (1991)
# ============================================================
# fat % = 1.20 × BMI + 0.23 × age − 10.8 × sex − 5.4   (sex: 1 male, 0 female)

DEURENBERG_BMI = 1.20
DEURENBERG_AGE = 0.23
DEURENBERG_SEX = 10.8
DEURENBERG_INTERCEPT = -5.4
DEURENBERG_FAT_MIN = 3.0
DEURENBERG_FAT_MAX = 60.0


# ============================================================
# PHYSIOLOGICAL LIMITS (ISAK / ACSM / Lohman 1992)
# ============================================================

class FatPercentLimits(NamedTuple):
    essential: float    # minimal essential fat (elite athletes)
    athletic: float
    fitness: float
    acceptable: float
    obese: float        # upper limit of extreme obesity


class Range(NamedTuple):
    min: float
    max: float


PHYSIOLOGICAL_LIMITS = MappingProxyType({
    "fat_percent": MappingProxyType({
        "male": FatPercentLimits(2, 6, 14, 24, 50),
        "female": FatPercentLimits(8, 14, 21, 31, 55),
    }),
    "bone_mass_percent": Range(5, 20),
    "muscle_to_bone_ratio": Range(3.0, 8.0),
    # Σ skinfolds (mm): warning above min, error above max
    "skinfold_sum": Range(200, 300),
})

# Σ of the components may deviate from body weight by at most this (%)
MASS_BALANCE_TOLERANCE_PERCENT = 5.0

# Physiologically impossible fat percentage
FAT_PERCENT_IMPOSSIBLE = 1.0


# ============================================================
# TECHNICAL ERROR OF MEASUREMENT: ISAK thresholds (%)
# ============================================================
# Intra-observer: <5% skinfolds, <1% girths/lengths (acceptable)

class TEMThreshold(NamedTuple):
    intra_excellent: float
    intra_acceptable: float


TEM_THRESHOLDS = MappingProxyType({
    "skinfolds": TEMThreshold(2.5, 5.0),
    "girths": TEMThreshold(0.5, 1.0),
    "breadths": TEMThreshold(0.5, 1.0),
    "basic": TEMThreshold(0.2, 0.5),
})

# Measurement site -> threshold category
MEASUREMENT_CATEGORIES = MappingProxyType({
    # Skinfolds
    "triceps": "skinfolds",
    "subscapular": "skinfolds",
    "biceps": "skinfolds",
    "suprailiac": "skinfolds",
    "supraspinale": "skinfolds",
    "iliac_crest": "skinfolds",
    "abdominal": "skinfolds",
    "thigh": "skinfolds",
    "calf": "skinfolds",
    # Girths
    "arm_relaxed": "girths",
    "arm_flexed": "girths",
    "forearm": "girths",
    "chest": "girths",
    "waist": "girths",
    "hip": "girths",
    "thigh_girth": "girths",
    "calf_girth": "girths",
    # Breadths
    "humerus": "breadths",
    "femur": "breadths",
    "wrist": "breadths",
    "ankle": "breadths",
    "biacromial": "breadths",
    "biiliocristal": "breadths",
    # Basic
    "weight": "basic",
    "height": "basic",
    "sitting_height": "basic",
})
