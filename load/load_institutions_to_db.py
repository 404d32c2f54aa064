# -*- coding: utf-8 -*-
"""
Bulk import of schools and colleges from CSV or Excel.

Expected columns (header case and spacing do not matter)
- type, name, city, state, address, contact_number, email, image_url
- schools: standards_offered, pattern, medium, total_strength, principal_name
- colleges: fields, subfields, university_type, university_name, course_duration, dean_name

What it does
- Validates every row with the same rules as the HTTP API
- Creates the institution and its detail row in one transaction per row
- Skips invalid rows and duplicates (same name, city and state), reporting them
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from edu_directory_webapp.config import LOG_LEVEL, setup_logging
from edu_directory_webapp.db import init_db, new_session
from edu_directory_webapp.errors import ConflictError, ValidationError
from edu_directory_webapp.institution_repo import create_institution
from edu_directory_webapp.schemas import parse_institution_payload
from load_common import clean_cell, read_table, resolve_user_path

COLUMN_ALIASES: Dict[str, str] = {
    "institution_type": "type",
    "phone": "contact_number",
    "contact": "contact_number",
    "e_mail": "email",
    "image": "image_url",
    "board": "pattern",
    "field": "fields",
}


@dataclass
class LoadSummary:
    created: int = 0
    validated: int = 0
    duplicates: int = 0
    invalid: int = 0
    errors: List[str] = field(default_factory=list)


def row_to_payload(row: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key, value in row.items():
        payload[COLUMN_ALIASES.get(key, key)] = clean_cell(value)
    type_value = payload.get("type")
    if isinstance(type_value, str):
        payload["type"] = type_value.strip().capitalize()
    return payload


def load_to_db(df: pd.DataFrame, dry_run: bool = False) -> LoadSummary:
    summary = LoadSummary()
    if df.empty:
        logging.info("No rows to load")
        return summary

    if dry_run:
        logging.info("Dry run: rows are validated only, nothing is written")
    else:
        init_db()

    db = None if dry_run else new_session()
    try:
        # Header is line 1, so the row labelled N sits on line N + 2, blank rows included.
        for idx, row in zip(df.index, df.to_dict(orient="records")):
            line = int(idx) + 2
            try:
                payload = parse_institution_payload(row_to_payload(row))
            except ValidationError as exc:
                summary.invalid += 1
                problems = "; ".join(f"{d['field']}: {d['message']}" for d in exc.details)
                summary.errors.append(f"line {line}: {problems}")
                logging.warning("Line %s skipped: %s", line, problems)
                continue

            if db is None:
                summary.validated += 1
                continue

            try:
                create_institution(db, payload)
            except ConflictError:
                summary.duplicates += 1
                logging.warning("Line %s skipped: %s (%s, %s) already exists", line, payload.name, payload.city, payload.state)
                continue
            summary.created += 1
    finally:
        if db is not None:
            db.close()

    return summary


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Load schools and colleges from CSV or Excel into the directory")
    p.add_argument("file", help="Path to a .csv/.xlsx file or a file name in the current folder")
    p.add_argument("--sheet", default="", help="Excel sheet name or index (1..N). Defaults to the first sheet.")
    p.add_argument("--dry-run", action="store_true", help="Validate rows without writing to the database")
    p.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (INFO, DEBUG, ...)")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    path: Path = resolve_user_path(args.file)
    logging.info("File: %s", path)
    df = read_table(path, sheet=args.sheet)
    logging.info("Rows read: %s", len(df))

    summary = load_to_db(df, dry_run=bool(args.dry_run))

    print("Load finished")
    if args.dry_run:
        print(f"Valid rows – {summary.validated}")
    else:
        print(f"Created – {summary.created}")
        print(f"Duplicates skipped – {summary.duplicates}")
    print(f"Invalid rows – {summary.invalid}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
