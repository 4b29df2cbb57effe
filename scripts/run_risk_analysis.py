#!/usr/bin/env python3
"""
Batch risk-aversion analysis over exported survey responses.

Usage:
  python scripts/run_risk_analysis.py --catalog data/catalog.csv --responses data/responses.csv
  python scripts/run_risk_analysis.py --demo --scheme five_category
Inputs:
  catalog.csv    question_id, display_name, expected_return, risk_measure[, max_drawdown]
  responses.csv  subject_id, display_name, email, question_id, rating  (one row per answer)
Outputs (--out, default: artifacts):
  risk_profiles.csv   one row per profiled subject
  item_summary.csv    rating stats per reference item
  risk_summary.json   cohort summary + chart projection + top-alpha selection
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List

import duckdb

from app.service import RiskAnalysisService
from app.utils.catalog import Answer, Catalog, Subject, build_catalog, demo_cohort, sample_catalog
from app.utils.cohort import export_rows
from app.utils.config import get_settings
from app.utils.log import configure_logging, get_logger
from app.utils.profiler import ClassificationScheme


def eprint(*a, **k):
    print(*a, file=sys.stderr, **k)


def read_csv(con: duckdb.DuckDBPyConnection, csv_path: Path) -> List[dict]:
    if not csv_path.exists():
        raise FileNotFoundError(f"Expected file missing: {csv_path}")
    # all_varchar: ids like "01" must survive, values are parsed by the engine
    q = f"""
    SELECT * FROM read_csv_auto(
        '{csv_path.as_posix()}',
        header = true,
        normalize_names = true,
        all_varchar = true
    );
    """
    return con.execute(q).fetchdf().to_dict("records")


def _text(v, default: str = "") -> str:
    if v is None or (isinstance(v, float) and v != v):
        return default
    return str(v)


def load_catalog(con: duckdb.DuckDBPyConnection, csv_path: Path) -> Catalog:
    return build_catalog(read_csv(con, csv_path))


def load_subjects(con: duckdb.DuckDBPyConnection, csv_path: Path) -> List[Subject]:
    """Group answer rows by subject, preserving first-seen subject order."""
    grouped: Dict[str, dict] = {}
    for row in read_csv(con, csv_path):
        sid = str(row["subject_id"])
        entry = grouped.setdefault(sid, {
            "display_name": _text(row.get("display_name"), sid),
            "email": _text(row.get("email")),
            "answers": [],
        })
        entry["answers"].append(Answer(str(row["question_id"]), row["rating"]))
    return [
        Subject(subject_id=sid, display_name=e["display_name"], email=e["email"], answers=tuple(e["answers"]))
        for sid, e in grouped.items()
    ]


def parse_args(argv=None) -> argparse.Namespace:
    data_dir = Path(os.environ.get("RISK_DATA_DIR", "data"))
    p = argparse.ArgumentParser(description="Risk-aversion analysis over survey responses")
    p.add_argument("--catalog", type=Path, default=data_dir / "catalog.csv", help="Reference metrics CSV")
    p.add_argument("--responses", type=Path, default=data_dir / "responses.csv", help="Answers CSV")
    p.add_argument("--out", type=Path, default=Path("artifacts"), help="Output folder")
    p.add_argument("--scheme", choices=[s.value for s in ClassificationScheme], help="Override config scheme")
    p.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    p.add_argument("--demo", action="store_true", help="Use the built-in sample catalog and a synthetic cohort")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings(args.config)
    if args.scheme:
        settings = replace(settings, scheme=ClassificationScheme(args.scheme))
    configure_logging(settings.log_level, settings.log_format)
    log = get_logger("scripts.run_risk_analysis")

    if args.demo:
        catalog, subjects = sample_catalog(), demo_cohort()
        source = "demo"
    else:
        con = duckdb.connect()
        try:
            catalog = load_catalog(con, args.catalog)
            subjects = load_subjects(con, args.responses)
        finally:
            con.close()
        source = args.responses.as_posix()
    log.info("inputs_loaded", source=source, reference_items=len(catalog), subjects=len(subjects))

    service = RiskAnalysisService(catalog, settings, logger=log)
    summary = service.analyze_cohort(subjects)
    report = service.build_report(summary)

    args.out.mkdir(parents=True, exist_ok=True)
    export_rows(summary).to_csv(args.out / "risk_profiles.csv", index=False)
    service.item_summary(subjects).to_csv(args.out / "item_summary.csv", index=False)
    with open(args.out / "risk_summary.json", "w") as f:
        json.dump(report, f, indent=2)

    eprint("\n=== Risk Summary ===")
    eprint(f"scheme={summary.scheme.value}  subjects={summary.total_subjects}  skipped={len(summary.skipped)}")
    eprint(f"average coefficient={summary.average_coefficient:.4f}  "
           f"range=[{summary.coefficient_range['min']:.4f}, {summary.coefficient_range['max']:.4f}]")
    longest = max((len(c) for c in summary.distribution), default=0)
    for category, n in summary.distribution.items():
        eprint(f"{category.ljust(longest)}  {n}")
    eprint(f"Wrote {args.out / 'risk_profiles.csv'}, {args.out / 'item_summary.csv'}, {args.out / 'risk_summary.json'}")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except FileNotFoundError as e:
        eprint(f"[ERROR] {e}")
        sys.exit(2)
    except (KeyError, ValueError) as e:
        eprint(f"[ERROR] Bad input data: {type(e).__name__}: {e}")
        sys.exit(2)
    except duckdb.Error as e:
        eprint(f"[FATAL][DuckDB] {e}")
        sys.exit(1)
    except Exception as e:
        eprint(f"[FATAL] {type(e).__name__}: {e}")
        sys.exit(1)
