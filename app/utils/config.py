"""
Settings for the service layer and batch scripts.
config/config.yaml provides defaults; environment variables win.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from app.utils.cohort import EmptyPolicy
from app.utils.profiler import ClassificationScheme

CONFIG_PATH = Path(os.environ.get("RISK_CONFIG_PATH", "config/config.yaml"))


@dataclass(frozen=True)
class Settings:
    scheme: ClassificationScheme = ClassificationScheme.FOUR_CATEGORY
    empty_policy: EmptyPolicy = EmptyPolicy.SKIP
    top_alpha_percentile: float = 0.9
    log_level: str = "INFO"
    log_format: str = "console"


def load_cfg(path: Optional[Path] = None) -> dict:
    path = Path(path) if path is not None else CONFIG_PATH
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def get_settings(path: Optional[Path] = None) -> Settings:
    cfg = load_cfg(path)
    analysis = cfg.get("analysis", {}) or {}
    logging_cfg = cfg.get("logging", {}) or {}

    scheme = os.environ.get("RISK_SCHEME", analysis.get("scheme", "four_category"))
    policy = os.environ.get("RISK_EMPTY_POLICY", analysis.get("empty_policy", "skip"))
    pct = float(analysis.get("top_alpha_percentile", 0.9))
    if not 0 < pct <= 1:
        raise ValueError(f"analysis.top_alpha_percentile must be in (0, 1], got {pct}")

    return Settings(
        scheme=ClassificationScheme.parse(scheme),
        empty_policy=EmptyPolicy(str(policy).strip().lower()),
        top_alpha_percentile=pct,
        log_level=os.environ.get("LOG_LEVEL", logging_cfg.get("level", "INFO")).upper(),
        log_format=os.environ.get("LOG_FORMAT", logging_cfg.get("format", "console")).strip().lower(),
    )
