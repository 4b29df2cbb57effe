"""
Cohort-level aggregation of subject risk profiles plus chart / table projections.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Tuple

import pandas as pd

from app.utils.catalog import Catalog, Subject, coerce_rating
from app.utils.glossary import CATEGORY_COLORS, CATEGORY_HELP, FALLBACK_COLOR
from app.utils.profiler import (
    CATEGORY_ORDER,
    ClassificationScheme,
    SubjectProfile,
    build_profile,
)
from app.utils.stats import mean


class EmptyPolicy(str, Enum):
    SKIP = "skip"                   # drop subjects without rated, catalogued answers
    PLACEHOLDER = "placeholder"     # keep them as neutral zero-coefficient profiles


@dataclass(frozen=True)
class CohortSummary:
    scheme: ClassificationScheme
    total_subjects: int
    distribution: Dict[str, int]
    average_coefficient: float
    coefficient_range: Dict[str, float]
    profiles: Tuple[SubjectProfile, ...] = field(default_factory=tuple)
    average_r_squared: float = 0.0
    average_alpha: float = 0.0
    average_beta1: float = 0.0
    average_beta2: float = 0.0
    skipped: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "scheme": self.scheme.value,
            "total_subjects": self.total_subjects,
            "distribution": dict(self.distribution),
            "average_coefficient": self.average_coefficient,
            "coefficient_range": dict(self.coefficient_range),
            "average_r_squared": self.average_r_squared,
            "average_alpha": self.average_alpha,
            "average_beta1": self.average_beta1,
            "average_beta2": self.average_beta2,
            "skipped": list(self.skipped),
            "profiles": [p.to_dict() for p in self.profiles],
        }


def _zero_distribution(scheme: ClassificationScheme) -> Dict[str, int]:
    return {c: 0 for c in CATEGORY_ORDER[scheme]}


def empty_summary(scheme: ClassificationScheme, skipped: Iterable[str] = ()) -> CohortSummary:
    return CohortSummary(
        scheme=scheme,
        total_subjects=0,
        distribution=_zero_distribution(scheme),
        average_coefficient=0.0,
        coefficient_range={"min": 0.0, "max": 0.0},
        skipped=tuple(skipped),
    )


def analyze_cohort(
    subjects: Iterable[Subject],
    catalog: Catalog,
    scheme: ClassificationScheme = ClassificationScheme.FOUR_CATEGORY,
    empty_policy: EmptyPolicy = EmptyPolicy.SKIP,
) -> CohortSummary:
    """
    Profile every subject and summarize the cohort.

    - Subjects without qualifying data never abort the batch; see EmptyPolicy.
    - Profiles are sorted by coefficient, highest first; ties keep input order.
    """
    scheme = ClassificationScheme.parse(scheme)
    empty_policy = EmptyPolicy(empty_policy)

    profiles: List[SubjectProfile] = []
    skipped: List[str] = []
    for s in subjects:
        p = build_profile(s, catalog, scheme)
        if not p.has_data and empty_policy is EmptyPolicy.SKIP:
            skipped.append(s.subject_id)
            continue
        profiles.append(p)

    if not profiles:
        return empty_summary(scheme, skipped)

    coeffs = [p.risk_aversion_coefficient for p in profiles]
    distribution = _zero_distribution(scheme)
    for p in profiles:
        distribution[p.risk_category] = distribution.get(p.risk_category, 0) + 1

    return CohortSummary(
        scheme=scheme,
        total_subjects=len(profiles),
        distribution=distribution,
        average_coefficient=sum(coeffs) / len(coeffs),
        coefficient_range={"min": min(coeffs), "max": max(coeffs)},
        profiles=tuple(sorted(profiles, key=lambda p: p.risk_aversion_coefficient, reverse=True)),
        average_r_squared=mean(p.r_squared for p in profiles),
        average_alpha=mean(p.alpha for p in profiles),
        average_beta1=mean(p.beta1 for p in profiles),
        average_beta2=mean(p.beta2 for p in profiles),
        skipped=tuple(skipped),
    )


# ---- Projections ----

def chart_projection(summary: CohortSummary) -> dict:
    """Scatter points (coefficient vs mean z-rating) and per-category counts, ready to plot."""
    scatter = [
        {
            "x": p.risk_aversion_coefficient,
            "y": mean(p.normalized_ratings),
            "category": p.risk_category,
            "subject_id": p.subject_id,
            "display_name": p.display_name,
        }
        for p in summary.profiles
    ]
    categories = [
        {
            "category": c,
            "count": summary.distribution.get(c, 0),
            "color": CATEGORY_COLORS.get(c, FALLBACK_COLOR),
            "description": CATEGORY_HELP.get(c, ""),
        }
        for c in CATEGORY_ORDER[summary.scheme]
    ]
    return {"scatter": scatter, "categories": categories}


def export_rows(summary: CohortSummary) -> pd.DataFrame:
    cols = ["subject_id", "display_name", "email", "risk_aversion_coefficient", "r_squared", "risk_category"]
    if summary.scheme is ClassificationScheme.FIVE_CATEGORY:
        cols += ["alpha", "beta1", "beta2"]
    rows = [{c: getattr(p, c) for c in cols} for p in summary.profiles]
    return pd.DataFrame(rows, columns=cols)


def export_csv(summary: CohortSummary) -> str:
    return export_rows(summary).to_csv(index=False)


def top_alpha_profiles(summary: CohortSummary, percentile: float = 0.9) -> Tuple[float, List[SubjectProfile]]:
    """
    Profiles whose alpha is at or above the nearest-rank percentile of alpha.
    Returns (threshold, profiles sorted by alpha descending).
    """
    if not 0 < percentile <= 1:
        raise ValueError(f"percentile must be in (0, 1], got {percentile}")
    if not summary.profiles:
        return 0.0, []
    alphas = sorted(p.alpha for p in summary.profiles)
    idx = max(math.ceil(len(alphas) * percentile) - 1, 0)
    threshold = alphas[idx]
    ranked = sorted(summary.profiles, key=lambda p: p.alpha, reverse=True)
    return threshold, [p for p in ranked if p.alpha >= threshold]


def item_rating_summary(subjects: Iterable[Subject], catalog: Catalog) -> pd.DataFrame:
    """
    Per reference item: how many valid ratings it received, their average/min/max and
    the rating distribution. Items nobody rated report zeros.
    """
    pairs = []
    distribution: Dict[str, Dict[float, int]] = {qid: {} for qid in catalog}
    for s in subjects:
        for a in s.answers:
            if a.question_id not in catalog:
                continue
            r = coerce_rating(a.raw_value)
            if r is None:
                continue
            pairs.append((a.question_id, r))
            counts = distribution[a.question_id]
            counts[r] = counts.get(r, 0) + 1

    long = pd.DataFrame(pairs, columns=["question_id", "rating"]).astype({"question_id": str, "rating": float})
    agg = long.groupby("question_id")["rating"].agg(["count", "mean", "min", "max"])
    agg = agg.rename(columns={"count": "responses", "mean": "average"})

    base = pd.DataFrame(
        [
            {
                "question_id": m.question_id,
                "display_name": m.display_name,
                "expected_return": m.expected_return,
                "risk_measure": m.risk_measure,
            }
            for m in catalog.values()
        ],
        columns=["question_id", "display_name", "expected_return", "risk_measure"],
    )
    out = base.merge(agg, left_on="question_id", right_index=True, how="left")
    out["responses"] = out["responses"].fillna(0).astype(int)
    out[["average", "min", "max"]] = out[["average", "min", "max"]].fillna(0.0)
    out["distribution"] = [dict(sorted(distribution[q].items())) for q in out["question_id"]]
    return out
