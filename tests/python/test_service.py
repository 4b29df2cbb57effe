import json

import pytest

from app.service import RiskAnalysisService
from app.utils.catalog import Answer, Subject, sample_catalog
from app.utils.cohort import EmptyPolicy
from app.utils.config import Settings, get_settings, load_cfg
from app.utils.errors import InsufficientData, NoQualifyingData, RiskProfilerError, SubjectNotFound
from app.utils.log import get_logger
from app.utils.profiler import ClassificationScheme


class RecordingLogger:
    def __init__(self):
        self.events = []

    def _record(self, level, event, **kw):
        self.events.append((level, event, kw))

    def debug(self, event, **kw):
        self._record("debug", event, **kw)

    def info(self, event, **kw):
        self._record("info", event, **kw)

    def warning(self, event, **kw):
        self._record("warning", event, **kw)

    def names(self, level=None):
        return [e for lvl, e, _ in self.events if level is None or lvl == level]


SUBJECTS = [
    Subject("u1", "One", "one@example.com", (
        Answer("trader-3", ["9"]), Answer("trader-1", ["6"]), Answer("trader-4", ["2"]),
    )),
    Subject("u2", "Two", "two@example.com", (
        Answer("trader-5", ["8"]), Answer("trader-6", ["3"]), Answer("trader-10", ["10"]),
    )),
    Subject("u3", "Blank", "", (Answer("trader-1", ["0"]),)),
]


@pytest.fixture
def clean_env(monkeypatch):
    for var in ("RISK_SCHEME", "RISK_EMPTY_POLICY", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


# ---- Settings ----

def test_settings_from_yaml(tmp_path, clean_env):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "analysis:\n"
        "  scheme: five_category\n"
        "  empty_policy: placeholder\n"
        "  top_alpha_percentile: 0.75\n"
        "logging:\n"
        "  level: debug\n"
        "  format: json\n"
    )
    s = get_settings(cfg)
    assert s.scheme is ClassificationScheme.FIVE_CATEGORY
    assert s.empty_policy is EmptyPolicy.PLACEHOLDER
    assert s.top_alpha_percentile == 0.75
    assert s.log_level == "DEBUG"
    assert s.log_format == "json"


def test_env_overrides_yaml(tmp_path, clean_env):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("analysis:\n  scheme: four_category\n  empty_policy: skip\n")
    clean_env.setenv("RISK_SCHEME", "five")
    clean_env.setenv("RISK_EMPTY_POLICY", "PLACEHOLDER")
    clean_env.setenv("LOG_LEVEL", "warning")

    s = get_settings(cfg)
    assert s.scheme is ClassificationScheme.FIVE_CATEGORY
    assert s.empty_policy is EmptyPolicy.PLACEHOLDER
    assert s.log_level == "WARNING"


def test_missing_config_file_gives_defaults(tmp_path, clean_env):
    missing = tmp_path / "nope.yaml"
    assert load_cfg(missing) == {}
    assert get_settings(missing) == Settings()


def test_invalid_settings_raise(tmp_path, clean_env):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("analysis:\n  top_alpha_percentile: 0\n")
    with pytest.raises(ValueError):
        get_settings(cfg)

    clean_env.setenv("RISK_SCHEME", "nine_category")
    with pytest.raises(ValueError):
        get_settings(tmp_path / "nope.yaml")


# ---- Service ----

def _service(**overrides):
    log = RecordingLogger()
    return RiskAnalysisService(sample_catalog(), Settings(**overrides), logger=log), log


def test_analyze_cohort_logs_summary_and_skips():
    svc, log = _service()
    summary = svc.analyze_cohort(iter(SUBJECTS))

    assert summary.total_subjects == 2
    assert summary.skipped == ("u3",)
    assert log.names("info") == ["cohort_analyzed"]
    _, _, fields = log.events[0]
    assert fields["subjects_in"] == 3
    assert fields["skipped"] == 1
    assert log.names("debug") == ["subjects_skipped"]


def test_analyze_subject_logs_and_reraises():
    svc, log = _service()
    assert svc.analyze_subject("u1", SUBJECTS).risk_category == "Aggressive"
    assert log.names("info") == ["subject_analyzed"]

    with pytest.raises(SubjectNotFound) as exc:
        svc.analyze_subject("ghost", SUBJECTS)
    assert exc.value.subject_id == "ghost"
    with pytest.raises(NoQualifyingData):
        svc.analyze_subject("u3", SUBJECTS)
    assert log.names("warning") == ["subject_analysis_failed", "subject_analysis_failed"]
    assert all(issubclass(e, RiskProfilerError) for e in (InsufficientData, NoQualifyingData, SubjectNotFound))


def test_report_is_json_serializable():
    svc, _ = _service(scheme=ClassificationScheme.FIVE_CATEGORY, top_alpha_percentile=0.5)
    report = svc.report(SUBJECTS)
    payload = json.loads(json.dumps(report))

    assert set(payload) == {"summary", "chart", "top_alpha"}
    assert payload["summary"]["total_subjects"] == 2
    assert payload["top_alpha"]["percentile"] == 0.5
    assert 1 <= len(payload["top_alpha"]["subject_ids"]) <= 2
    assert len(payload["chart"]["categories"]) == 5


def test_chart_and_csv_helpers():
    svc, _ = _service(empty_policy=EmptyPolicy.PLACEHOLDER)
    chart = svc.chart_data(SUBJECTS)
    assert len(chart["scatter"]) == 3
    text = svc.export_csv(SUBJECTS)
    assert text.splitlines()[0].startswith("subject_id,display_name,email")
    assert len(text.strip().splitlines()) == 4

    items = svc.item_summary(SUBJECTS)
    assert items.set_index("question_id").loc["trader-1", "responses"] == 1


def test_get_logger_binds_name():
    log = get_logger("tests.service")
    log.info("logger_smoke_test", value=1)
