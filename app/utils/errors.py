"""
Typed errors raised by the risk profiler.
Only SubjectNotFound / NoQualifyingData are expected to reach callers.
"""
from __future__ import annotations


class RiskProfilerError(Exception):
    """Base class for every error raised by the engine."""


class InsufficientData(RiskProfilerError):
    """
    Not enough points for the requested regression mode.

    Never raised by the fitters: fit_simple / fit_multivariate return ZERO_SIMPLE /
    ZERO_MULTI instead, so a sparse subject degrades to "no signal". Kept so hosts
    can report the condition with the same error family.
    """


class SingularMatrix(RiskProfilerError):
    """Pivot fell below the elimination epsilon; matrix has no usable inverse."""

    def __init__(self, column: int, pivot: float):
        self.column = column
        self.pivot = pivot
        super().__init__(f"Singular matrix: |pivot|={abs(pivot):.3e} in column {column}")


class SubjectNotFound(RiskProfilerError):
    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Subject not found: {subject_id}")


class NoQualifyingData(RiskProfilerError):
    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"No rated answers tied to reference metrics for subject {subject_id}")
