"""
Input records supplied by the host (survey store) and the built-in reference catalog.

The catalog maps a question id to the performance metrics of the trader shown in
that question. Subjects rate traders on a 1-10 scale; 0 / blank means "not rated".
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class ReferenceMetric:
    question_id: str
    display_name: str
    expected_return: float      # mean monthly return, %
    risk_measure: float         # std dev of monthly returns, %
    max_drawdown: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ReferenceMetric":
        name = d.get("display_name")
        dd = d.get("max_drawdown")
        if dd is None or dd == "" or (isinstance(dd, float) and math.isnan(dd)):
            dd = None
        return cls(
            question_id=str(d["question_id"]),
            display_name=name if isinstance(name, str) and name else f"Trader {d['question_id']}",
            expected_return=float(d["expected_return"]),
            risk_measure=float(d["risk_measure"]),
            max_drawdown=None if dd is None else float(dd),
        )


@dataclass(frozen=True)
class Answer:
    question_id: str
    raw_value: Any


@dataclass(frozen=True)
class Subject:
    subject_id: str
    display_name: str
    email: str = ""
    answers: Sequence[Answer] = field(default_factory=tuple)


Catalog = Dict[str, ReferenceMetric]


def build_catalog(metrics) -> Catalog:
    """Index ReferenceMetric records (or plain dicts) by question id."""
    out: Catalog = {}
    for m in metrics:
        rm = m if isinstance(m, ReferenceMetric) else ReferenceMetric.from_dict(m)
        out[rm.question_id] = rm
    return out


def coerce_rating(raw_value: Any) -> Optional[float]:
    """
    Parse a stored answer value into a usable rating.

    - list/tuple values: the first element is used (multi-value answers).
    - non-numeric, non-finite or <= 0 -> None (not rated).
    """
    if isinstance(raw_value, (list, tuple)):
        if not raw_value:
            return None
        raw_value = raw_value[0]
    if raw_value is None or isinstance(raw_value, bool):
        return None
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


# ---- Sample reference data (12 months of returns, 5 Cr capital each) ----
SAMPLE_TRADERS: List[dict] = [
    {"question_id": "trader-1", "display_name": "Trader Alpha", "expected_return": 1.73, "risk_measure": 2.15, "max_drawdown": 2.3},
    {"question_id": "trader-2", "display_name": "Trader Beta", "expected_return": 2.98, "risk_measure": 3.45, "max_drawdown": 3.2},
    {"question_id": "trader-3", "display_name": "Trader Gamma", "expected_return": 1.02, "risk_measure": 0.42, "max_drawdown": 0.5},
    {"question_id": "trader-4", "display_name": "Trader Delta", "expected_return": 2.58, "risk_measure": 6.78, "max_drawdown": 5.2},
    {"question_id": "trader-5", "display_name": "Trader Epsilon", "expected_return": 2.11, "risk_measure": 0.22, "max_drawdown": 0.7},
    {"question_id": "trader-6", "display_name": "Trader Zeta", "expected_return": 4.12, "risk_measure": 13.45, "max_drawdown": 12.5},
    {"question_id": "trader-7", "display_name": "Trader Eta", "expected_return": 1.68, "risk_measure": 0.28, "max_drawdown": 0.6},
    {"question_id": "trader-8", "display_name": "Trader Theta", "expected_return": 4.15, "risk_measure": 3.89, "max_drawdown": 2.1},
    {"question_id": "trader-9", "display_name": "Trader Iota", "expected_return": 0.38, "risk_measure": 0.25, "max_drawdown": 0.1},
    {"question_id": "trader-10", "display_name": "Trader Kappa", "expected_return": 4.35, "risk_measure": 0.58, "max_drawdown": 0.3},
]


def sample_catalog() -> Catalog:
    return build_catalog(SAMPLE_TRADERS)


def demo_cohort(n_subjects: int = 40, seed: int = 42) -> List[Subject]:
    """
    Generate a SMALL synthetic cohort against the sample catalog.
    Each subject has a latent risk appetite; ratings trade off return against risk,
    plus noise, rounded onto the 1-10 scale. About 1 in 10 subjects skip everything.
    """
    rng = np.random.default_rng(seed)
    traders = SAMPLE_TRADERS
    subjects: List[Subject] = []
    for i in range(1, n_subjects + 1):
        appetite = rng.normal(0.0, 0.6)
        skip_all = rng.uniform() < 0.1
        answers = []
        for t in traders:
            if skip_all or rng.uniform() < 0.1:
                answers.append(Answer(t["question_id"], ["0"]))
                continue
            score = 5.5 + 0.8 * t["expected_return"] + appetite * 0.5 * t["risk_measure"] - 0.3 * t["risk_measure"]
            score += rng.normal(0.0, 1.0)
            answers.append(Answer(t["question_id"], [str(int(np.clip(round(score), 1, 10)))]))
        subjects.append(Subject(
            subject_id=f"u{i:04d}",
            display_name=f"Subject {i:02d}",
            email=f"subject{i:02d}@example.com",
            answers=tuple(answers),
        ))
    return subjects
