"""
Per-subject risk-aversion estimation: ratings -> z-scores -> OLS -> coefficient -> bucket.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from app.utils.catalog import Catalog, Subject, coerce_rating
from app.utils.errors import NoQualifyingData, SubjectNotFound
from app.utils.regression import (
    MultiFit,
    SimpleFit,
    design_matrix,
    fit_multivariate,
    fit_simple,
)
from app.utils.stats import mean, std_dev, zscore_normalize


class ClassificationScheme(str, Enum):
    FOUR_CATEGORY = "four_category"     # simple regression, rating ~ risk
    FIVE_CATEGORY = "five_category"     # multivariate, rating ~ return + risk

    @classmethod
    def parse(cls, value) -> "ClassificationScheme":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        aliases = {"four": "four_category", "4": "four_category", "simple": "four_category",
                   "five": "five_category", "5": "five_category", "multivariate": "five_category"}
        return cls(aliases.get(key, key))


# ---- Interpretation buckets (evaluated top-down, lower bound inclusive, last is the catch-all) ----
RISK_BUCKETS = {
    ClassificationScheme.FOUR_CATEGORY: [
        {"min": 0.5, "label": "Very Aggressive"},
        {"min": 0.2, "label": "Aggressive"},
        {"min": -0.2, "label": "Moderate"},
        {"min": None, "label": "Conservative"},
    ],
    ClassificationScheme.FIVE_CATEGORY: [
        {"min": 2.0, "label": "Very Risk Averse"},
        {"min": 1.0, "label": "Mild Risk Aversion"},
        {"min": 0.5, "label": "Low Risk Aversion"},
        {"min": -0.5, "label": "Risk Neutral"},
        {"min": None, "label": "Risk Seeking"},
    ],
}

# Display order used by distributions and charts
CATEGORY_ORDER = {
    ClassificationScheme.FOUR_CATEGORY: ["Conservative", "Moderate", "Aggressive", "Very Aggressive"],
    ClassificationScheme.FIVE_CATEGORY: [
        "Very Risk Averse", "Mild Risk Aversion", "Low Risk Aversion", "Risk Neutral", "Risk Seeking",
    ],
}

NEUTRAL_CATEGORY = {
    ClassificationScheme.FOUR_CATEGORY: "Moderate",
    ClassificationScheme.FIVE_CATEGORY: "Risk Neutral",
}


def classify(coefficient: float, scheme: ClassificationScheme = ClassificationScheme.FOUR_CATEGORY) -> str:
    buckets = RISK_BUCKETS[ClassificationScheme.parse(scheme)]
    for b in buckets[:-1]:
        if coefficient >= b["min"]:
            return b["label"]
    return buckets[-1]["label"]


def derive_coefficient(fit) -> float:
    """
    SimpleFit: -slope (rating falling with risk reads as positive aversion).
    MultiFit: -2 * beta1 / beta2, the mean-variance trade-off ratio; 0 when beta2 == 0.
    """
    if isinstance(fit, SimpleFit):
        return -fit.slope if fit.slope != 0 else 0.0
    if isinstance(fit, MultiFit):
        if fit.beta2 == 0:
            return 0.0
        coefficient = -2.0 * fit.beta1 / fit.beta2
        return coefficient if math.isfinite(coefficient) else 0.0
    raise TypeError(f"Unsupported fit type: {type(fit).__name__}")


@dataclass(frozen=True)
class Observation:
    question_id: str
    label: str
    expected_return: float
    risk_measure: float
    rating: float
    max_drawdown: Optional[float] = None


@dataclass(frozen=True)
class SubjectProfile:
    subject_id: str
    display_name: str
    email: str
    scheme: ClassificationScheme
    observations: Tuple[Observation, ...] = field(default_factory=tuple)
    normalized_ratings: Tuple[float, ...] = field(default_factory=tuple)
    risk_aversion_coefficient: float = 0.0
    risk_category: str = "Moderate"
    r_squared: float = 0.0
    mean_rating: float = 0.0
    std_dev_rating: float = 0.0
    alpha: float = 0.0
    beta1: float = 0.0
    beta2: float = 0.0

    @property
    def has_data(self) -> bool:
        return len(self.observations) > 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["scheme"] = self.scheme.value
        d["observations"] = [
            {**asdict(o), "normalized_rating": z}
            for o, z in zip(self.observations, self.normalized_ratings)
        ]
        d["normalized_ratings"] = list(self.normalized_ratings)
        return d


def extract_observations(subject: Subject, catalog: Catalog) -> List[Observation]:
    """Join answers to the catalog, keeping only rated answers on catalogued questions."""
    out: List[Observation] = []
    for a in subject.answers:
        ref = catalog.get(a.question_id)
        if ref is None:
            continue
        rating = coerce_rating(a.raw_value)
        if rating is None:
            continue
        out.append(Observation(
            question_id=ref.question_id,
            label=ref.display_name,
            expected_return=ref.expected_return,
            risk_measure=ref.risk_measure,
            rating=rating,
            max_drawdown=ref.max_drawdown,
        ))
    return out


def build_profile(
    subject: Subject,
    catalog: Catalog,
    scheme: ClassificationScheme = ClassificationScheme.FOUR_CATEGORY,
) -> SubjectProfile:
    """
    Run the full pipeline for one subject. Never raises for missing data:
    a subject with no usable observations gets the neutral profile (coefficient 0).
    """
    scheme = ClassificationScheme.parse(scheme)
    obs = extract_observations(subject, catalog)
    if not obs:
        return SubjectProfile(
            subject_id=subject.subject_id,
            display_name=subject.display_name,
            email=subject.email,
            scheme=scheme,
            risk_category=NEUTRAL_CATEGORY[scheme],
        )

    ratings = [o.rating for o in obs]
    z = zscore_normalize(ratings)

    alpha = beta1 = beta2 = 0.0
    if scheme is ClassificationScheme.FOUR_CATEGORY:
        fit = fit_simple([o.risk_measure for o in obs], z)
    else:
        fit = fit_multivariate(
            design_matrix([o.expected_return for o in obs], [o.risk_measure for o in obs]), z
        )
        alpha, beta1, beta2 = fit.alpha, fit.beta1, fit.beta2

    coefficient = derive_coefficient(fit)
    return SubjectProfile(
        subject_id=subject.subject_id,
        display_name=subject.display_name,
        email=subject.email,
        scheme=scheme,
        observations=tuple(obs),
        normalized_ratings=tuple(float(v) for v in z),
        risk_aversion_coefficient=coefficient,
        risk_category=classify(coefficient, scheme),
        r_squared=fit.r_squared,
        mean_rating=mean(ratings),
        std_dev_rating=std_dev(ratings),
        alpha=alpha,
        beta1=beta1,
        beta2=beta2,
    )


def analyze_subject(
    subject_id: str,
    subjects: Iterable[Subject],
    catalog: Catalog,
    scheme: ClassificationScheme = ClassificationScheme.FOUR_CATEGORY,
) -> SubjectProfile:
    """
    Single-subject drill-down. Unlike the cohort path this is strict:
    raises SubjectNotFound / NoQualifyingData instead of returning a neutral profile.
    """
    subject = next((s for s in subjects if s.subject_id == subject_id), None)
    if subject is None:
        raise SubjectNotFound(subject_id)
    profile = build_profile(subject, catalog, scheme)
    if not profile.has_data:
        raise NoQualifyingData(subject_id)
    return profile
