import io
import json
import math

import pandas as pd
import pytest

from app.utils.catalog import Answer, Subject, demo_cohort, sample_catalog
from app.utils.cohort import (
    CohortSummary,
    EmptyPolicy,
    analyze_cohort,
    chart_projection,
    export_csv,
    export_rows,
    item_rating_summary,
    top_alpha_profiles,
)
from app.utils.profiler import CATEGORY_ORDER, ClassificationScheme, SubjectProfile

FOUR = ClassificationScheme.FOUR_CATEGORY
FIVE = ClassificationScheme.FIVE_CATEGORY


def subject(sid, ratings):
    """ratings: {trader number: raw value}"""
    return Subject(
        subject_id=sid,
        display_name=f"Subject {sid}",
        email=f"{sid}@example.com",
        answers=tuple(Answer(f"trader-{k}", [str(v)]) for k, v in ratings.items()),
    )


# prefers low-risk traders -> positive coefficient
AVERSE = subject("averse", {3: 9, 1: 6, 4: 2})
# prefers high-risk traders -> negative coefficient
SEEKER = subject("seeker", {3: 2, 1: 6, 4: 9})
EMPTY = subject("empty", {1: 0, 2: 0})


@pytest.fixture
def catalog():
    return sample_catalog()


def test_empty_cohort_summary(catalog):
    s = analyze_cohort([], catalog, FOUR)
    assert s.total_subjects == 0
    assert s.average_coefficient == 0.0
    assert s.coefficient_range == {"min": 0.0, "max": 0.0}
    assert s.distribution == {c: 0 for c in CATEGORY_ORDER[FOUR]}
    assert s.profiles == ()


def test_skip_policy_drops_subjects_without_data(catalog):
    s = analyze_cohort([AVERSE, EMPTY, SEEKER], catalog, FOUR, EmptyPolicy.SKIP)
    assert s.total_subjects == 2
    assert s.skipped == ("empty",)
    assert [p.subject_id for p in s.profiles] == ["averse", "seeker"]


def test_placeholder_policy_keeps_neutral_profiles(catalog):
    s = analyze_cohort([AVERSE, EMPTY, SEEKER], catalog, FOUR, EmptyPolicy.PLACEHOLDER)
    assert s.total_subjects == 3
    assert s.skipped == ()
    placeholder = next(p for p in s.profiles if p.subject_id == "empty")
    assert placeholder.risk_aversion_coefficient == 0.0
    assert placeholder.risk_category == "Moderate"
    assert s.distribution["Moderate"] >= 1


def test_all_subjects_empty_under_skip(catalog):
    s = analyze_cohort([EMPTY, subject("e2", {5: ""})], catalog, FIVE, "skip")
    assert s.total_subjects == 0
    assert s.skipped == ("empty", "e2")
    assert s.distribution == {c: 0 for c in CATEGORY_ORDER[FIVE]}


def test_summary_statistics(catalog):
    s = analyze_cohort([SEEKER, AVERSE], catalog, FOUR)
    coeffs = [p.risk_aversion_coefficient for p in s.profiles]

    assert coeffs == sorted(coeffs, reverse=True)
    assert s.profiles[0].subject_id == "averse"
    assert s.average_coefficient == pytest.approx(sum(coeffs) / 2)
    assert s.coefficient_range == {"min": min(coeffs), "max": max(coeffs)}
    assert sum(s.distribution.values()) == s.total_subjects
    assert s.profiles[0].risk_category == "Aggressive"
    assert s.profiles[1].risk_category == "Conservative"


def test_ties_keep_input_order(catalog):
    a = subject("a", {1: 5, 2: 5})
    b = subject("b", {3: 7})
    c = subject("c", {4: 4, 5: 4, 6: 4})
    s = analyze_cohort([a, b, c], catalog, FOUR)
    assert [p.subject_id for p in s.profiles] == ["a", "b", "c"]


def test_five_category_averages(catalog):
    s = analyze_cohort([AVERSE, SEEKER], catalog, FIVE)
    assert s.average_alpha == pytest.approx(sum(p.alpha for p in s.profiles) / 2)
    assert s.average_beta1 == pytest.approx(sum(p.beta1 for p in s.profiles) / 2)
    assert s.average_beta2 == pytest.approx(sum(p.beta2 for p in s.profiles) / 2)
    assert s.average_r_squared == pytest.approx(1.0, abs=1e-9)
    assert set(s.distribution) == set(CATEGORY_ORDER[FIVE])


def test_summary_to_dict_is_json_serializable(catalog):
    s = analyze_cohort([AVERSE, EMPTY], catalog, FIVE)
    payload = json.loads(json.dumps(s.to_dict()))
    assert payload["scheme"] == "five_category"
    assert payload["skipped"] == ["empty"]
    assert len(payload["profiles"]) == 1


def test_chart_projection(catalog):
    s = analyze_cohort([AVERSE, SEEKER], catalog, FOUR)
    chart = chart_projection(s)

    assert [pt["subject_id"] for pt in chart["scatter"]] == ["averse", "seeker"]
    for pt in chart["scatter"]:
        # z-scored ratings always average to ~0
        assert pt["y"] == pytest.approx(0.0, abs=1e-12)
    assert [c["category"] for c in chart["categories"]] == CATEGORY_ORDER[FOUR]
    assert sum(c["count"] for c in chart["categories"]) == 2
    assert all(c["color"].startswith("#") and c["description"] for c in chart["categories"])


def test_export_rows_columns(catalog):
    four = export_rows(analyze_cohort([AVERSE, SEEKER], catalog, FOUR))
    assert list(four.columns) == [
        "subject_id", "display_name", "email", "risk_aversion_coefficient", "r_squared", "risk_category",
    ]
    assert four["subject_id"].tolist() == ["averse", "seeker"]

    five = export_rows(analyze_cohort([AVERSE], catalog, FIVE))
    assert list(five.columns)[-3:] == ["alpha", "beta1", "beta2"]

    empty = export_rows(analyze_cohort([], catalog, FOUR))
    assert empty.empty and "risk_category" in empty.columns


def test_export_csv_round_trips_through_pandas(catalog):
    text = export_csv(analyze_cohort([AVERSE, SEEKER], catalog, FOUR))
    df = pd.read_csv(io.StringIO(text))
    assert len(df) == 2
    assert df.loc[0, "email"] == "averse@example.com"


def _profile(sid, alpha):
    return SubjectProfile(subject_id=sid, display_name=sid, email="", scheme=FIVE,
                          risk_category="Risk Neutral", alpha=alpha)


def _summary(profiles):
    return CohortSummary(
        scheme=FIVE,
        total_subjects=len(profiles),
        distribution={"Risk Neutral": len(profiles)},
        average_coefficient=0.0,
        coefficient_range={"min": 0.0, "max": 0.0},
        profiles=tuple(profiles),
    )


def test_top_alpha_uses_nearest_rank():
    s = _summary([_profile(f"s{i}", float(i)) for i in range(1, 11)])
    threshold, top = top_alpha_profiles(s, 0.9)
    assert threshold == 9.0
    assert [p.subject_id for p in top] == ["s10", "s9"]

    threshold, top = top_alpha_profiles(s, 1.0)
    assert threshold == 10.0 and len(top) == 1


def test_top_alpha_edge_cases():
    assert top_alpha_profiles(_summary([]), 0.9) == (0.0, [])
    threshold, top = top_alpha_profiles(_summary([_profile("only", -0.3)]), 0.9)
    assert threshold == -0.3 and [p.subject_id for p in top] == ["only"]
    with pytest.raises(ValueError):
        top_alpha_profiles(_summary([]), 0.0)
    with pytest.raises(ValueError):
        top_alpha_profiles(_summary([]), 1.5)


def test_item_rating_summary(catalog):
    df = item_rating_summary([AVERSE, SEEKER, EMPTY], catalog)

    assert len(df) == len(catalog)
    row = df.set_index("question_id").loc["trader-3"]
    assert row["responses"] == 2
    assert row["average"] == pytest.approx(5.5)
    assert row["min"] == 2.0 and row["max"] == 9.0
    assert row["distribution"] == {2.0: 1, 9.0: 1}

    unrated = df.set_index("question_id").loc["trader-2"]
    assert unrated["responses"] == 0
    assert unrated["average"] == 0.0
    assert unrated["distribution"] == {}


def test_item_rating_summary_without_answers(catalog):
    df = item_rating_summary([], catalog)
    assert len(df) == len(catalog)
    assert (df["responses"] == 0).all()


@pytest.mark.parametrize("scheme", [FOUR, FIVE])
def test_demo_cohort_is_well_formed(catalog, scheme):
    subjects = demo_cohort(n_subjects=30, seed=7)
    s = analyze_cohort(subjects, catalog, scheme, EmptyPolicy.PLACEHOLDER)

    assert s.total_subjects == 30
    assert sum(s.distribution.values()) == 30
    for p in s.profiles:
        assert math.isfinite(p.risk_aversion_coefficient)
        assert 0.0 <= p.r_squared <= 1.0
        assert p.risk_category in CATEGORY_ORDER[scheme]
