#!/usr/bin/env python3
"""
Fast-fail data contracts on the survey export before running the risk analysis.

Usage:
  python scripts/quality_checks.py --catalog data/catalog.csv --responses data/responses.csv
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import duckdb


def connect() -> duckdb.DuckDBPyConnection:
    return duckdb.connect()


def load_tables(con: duckdb.DuckDBPyConnection, catalog: Path, responses: Path) -> None:
    for path, table in ((catalog, "raw_catalog"), (responses, "raw_responses")):
        if not path.exists():
            raise FileNotFoundError(f"Expected file missing: {path}")
        con.execute(f"""
            CREATE OR REPLACE TABLE {table} AS
            SELECT * FROM read_csv_auto(
                '{path.as_posix()}',
                header = true,
                normalize_names = true,
                all_varchar = true
            );
        """)


def _run_count(con: duckdb.DuckDBPyConnection, sql: str) -> int:
    return int(con.execute(sql).fetchone()[0])


def _assert_zero(con: duckdb.DuckDBPyConnection, sql: str, msg: str, failures: list[str]) -> None:
    cnt = _run_count(con, sql)
    if cnt != 0:
        failures.append(f"{msg} (violations={cnt})")


def _assert_positive(con: duckdb.DuckDBPyConnection, sql: str, msg: str, failures: list[str]) -> None:
    cnt = _run_count(con, sql)
    if cnt <= 0:
        failures.append(f"{msg} (count={cnt})")


REQUIRED_COLUMNS = {
    "raw_catalog": ("question_id", "display_name", "expected_return", "risk_measure"),
    "raw_responses": ("subject_id", "display_name", "email", "question_id", "rating"),
}


def _missing_columns(con: duckdb.DuckDBPyConnection, table: str) -> list[str]:
    have = {r[0] for r in con.execute(f"DESCRIBE {table}").fetchall()}
    return [c for c in REQUIRED_COLUMNS[table] if c not in have]


def check_inputs(con: duckdb.DuckDBPyConnection) -> list[str]:
    """Contracts for raw_catalog / raw_responses."""
    failures: list[str] = []

    # ---------- columns ----------
    for t in REQUIRED_COLUMNS:
        missing = _missing_columns(con, t)
        if missing:
            failures.append(f"Missing columns on {t}: {', '.join(missing)}")
    # the value checks below reference these columns
    if failures:
        return failures

    # ---------- presence ----------
    for t in ("raw_catalog", "raw_responses"):
        _assert_positive(con, f"SELECT COUNT(*) FROM {t}", f"Missing or empty table: {t}", failures)

    # ---------- PK uniqueness ----------
    for table, cols in (("raw_catalog", "question_id"), ("raw_responses", "subject_id, question_id")):
        _assert_zero(
            con,
            f"WITH a AS (SELECT {cols}, COUNT(*) c FROM {table} GROUP BY {cols}) SELECT COUNT(*) FROM a WHERE c>1",
            f"PK not unique on {table} ({cols})",
            failures,
        )
        _assert_zero(
            con,
            f"SELECT COUNT(*) FROM {table} WHERE { ' OR '.join([c.strip() + ' IS NULL' for c in cols.split(',')]) }",
            f"PK contains NULLs on {table} ({cols})",
            failures,
        )

    # ---------- value constraints ----------
    _assert_zero(
        con,
        """
        SELECT COUNT(*) FROM raw_catalog
        WHERE TRY_CAST(expected_return AS DOUBLE) IS NULL
           OR TRY_CAST(risk_measure AS DOUBLE) IS NULL
        """,
        "Non-numeric expected_return/risk_measure in raw_catalog",
        failures,
    )
    _assert_zero(
        con,
        "SELECT COUNT(*) FROM raw_catalog WHERE TRY_CAST(risk_measure AS DOUBLE) < 0",
        "Negative risk_measure in raw_catalog",
        failures,
    )

    # ---------- FK integrity ----------
    _assert_zero(
        con,
        """
        SELECT COUNT(*) FROM raw_responses r
        LEFT JOIN raw_catalog c ON r.question_id = c.question_id
        WHERE c.question_id IS NULL
        """,
        "FK missing: raw_responses.question_id → raw_catalog(question_id)",
        failures,
    )

    return failures


def parse_args(argv=None) -> argparse.Namespace:
    data_dir = Path(os.environ.get("RISK_DATA_DIR", "data"))
    p = argparse.ArgumentParser(description="Pre-analysis data quality checks")
    p.add_argument("--catalog", type=Path, default=data_dir / "catalog.csv")
    p.add_argument("--responses", type=Path, default=data_dir / "responses.csv")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    con = connect()
    try:
        print(f"[quality] catalog={args.catalog} responses={args.responses}")
        load_tables(con, args.catalog, args.responses)
        failures = check_inputs(con)
    finally:
        con.close()

    if failures:
        print("\n[QUALITY FAIL] One or more data contracts were violated:")
        for i, f in enumerate(failures, 1):
            print(f" {i:02d}. {f}")
        print("\nFix the above issues (or data files) and rerun.")
        return 2

    print("[quality] All checks passed ✔")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except FileNotFoundError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(2)
    except duckdb.Error as e:
        print(f"[FATAL][DuckDB] {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"[FATAL] {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)
