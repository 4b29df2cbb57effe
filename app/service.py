"""
Service boundary around the risk engine.

Hosts (HTTP handlers, batch jobs) call this class instead of the core modules so
that logging and settings live in one place. Every method is synchronous and
stateless apart from the catalog and settings given at construction.
"""
from __future__ import annotations

import time
from typing import Iterable, List, Optional

import pandas as pd

from app.utils.catalog import Catalog, Subject
from app.utils.cohort import (
    CohortSummary,
    analyze_cohort,
    chart_projection,
    export_csv,
    item_rating_summary,
    top_alpha_profiles,
)
from app.utils.config import Settings, get_settings
from app.utils.errors import NoQualifyingData, SubjectNotFound
from app.utils.log import get_logger
from app.utils.profiler import SubjectProfile, analyze_subject


class RiskAnalysisService:
    def __init__(self, catalog: Catalog, settings: Optional[Settings] = None, logger=None):
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.log = logger or get_logger(__name__)

    def analyze_cohort(self, subjects: Iterable[Subject]) -> CohortSummary:
        subjects = list(subjects)
        t0 = time.perf_counter()
        summary = analyze_cohort(subjects, self.catalog, self.settings.scheme, self.settings.empty_policy)
        self.log.info(
            "cohort_analyzed",
            scheme=summary.scheme.value,
            subjects_in=len(subjects),
            total_subjects=summary.total_subjects,
            skipped=len(summary.skipped),
            average_coefficient=round(summary.average_coefficient, 6),
            duration_ms=round((time.perf_counter() - t0) * 1000, 3),
        )
        if summary.skipped:
            self.log.debug("subjects_skipped", subject_ids=list(summary.skipped))
        return summary

    def analyze_subject(self, subject_id: str, subjects: Iterable[Subject]) -> SubjectProfile:
        try:
            profile = analyze_subject(subject_id, subjects, self.catalog, self.settings.scheme)
        except (SubjectNotFound, NoQualifyingData) as e:
            self.log.warning("subject_analysis_failed", subject_id=subject_id, error=type(e).__name__)
            raise
        self.log.info(
            "subject_analyzed",
            subject_id=subject_id,
            observations=len(profile.observations),
            coefficient=round(profile.risk_aversion_coefficient, 6),
            category=profile.risk_category,
        )
        return profile

    def chart_data(self, subjects: Iterable[Subject]) -> dict:
        return chart_projection(self.analyze_cohort(subjects))

    def export_csv(self, subjects: Iterable[Subject]) -> str:
        return export_csv(self.analyze_cohort(subjects))

    def item_summary(self, subjects: Iterable[Subject]) -> pd.DataFrame:
        return item_rating_summary(subjects, self.catalog)

    def report(self, subjects: Iterable[Subject]) -> dict:
        """Summary, chart projection and top-alpha selection in one JSON-serializable dict."""
        return self.build_report(self.analyze_cohort(subjects))

    def build_report(self, summary: CohortSummary) -> dict:
        threshold, top = top_alpha_profiles(summary, self.settings.top_alpha_percentile)
        top_ids: List[str] = [p.subject_id for p in top]
        return {
            "summary": summary.to_dict(),
            "chart": chart_projection(summary),
            "top_alpha": {
                "percentile": self.settings.top_alpha_percentile,
                "threshold": threshold,
                "subject_ids": top_ids,
            },
        }
