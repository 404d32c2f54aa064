# -*- coding: utf-8 -*-
"""
Shared helpers for the loaders:
- string and column-name normalization;
- resolving the input file path;
- reading CSV or Excel sheets into a DataFrame.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, List

import pandas as pd

EXCEL_SUFFIXES = (".xlsx", ".xls")


def norm_spaces(s: Any) -> str:
    s = "" if s is None else str(s)
    s = s.replace("\u00A0", " ")
    return re.sub(r"\s+", " ", s.strip())


def norm_col_name(x: object) -> str:
    s = norm_spaces(str(x).replace("\n", " ")).casefold()
    return re.sub(r"[\s\-]+", "_", s)


def clean_cell(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, str):
        text = norm_spaces(value)
        if text.casefold() in {"nan", "none", "nat"}:
            return None
        return text or None
    return value


def resolve_user_path(s: str) -> Path:
    p = Path(s)
    if p.exists():
        return p
    cand = Path.cwd() / s
    if cand.exists():
        return cand

    if not s.lower().endswith(EXCEL_SUFFIXES + (".csv",)):
        for suffix in (".csv", ".xlsx"):
            cand2 = Path.cwd() / f"{s}{suffix}"
            if cand2.exists():
                return cand2

    raise FileNotFoundError(f"File not found: {s}. Pass a full path or put the file into the current folder.")


def get_sheet_names(path: Path) -> List[str]:
    with pd.ExcelFile(path, engine="openpyxl") as xls:
        return list(xls.sheet_names)


def resolve_sheet_argument(sheet_arg: str, sheet_names: List[str]) -> str:
    value = sheet_arg.strip()
    if not value:
        if not sheet_names:
            raise ValueError("The workbook has no sheets.")
        return sheet_names[0]

    # Sheet names win over indexes, including numeric names like "2024".
    for sheet_name in sheet_names:
        if sheet_name.casefold() == value.casefold():
            return sheet_name

    if value.isdigit():
        idx = int(value)
        if 1 <= idx <= len(sheet_names):
            return sheet_names[idx - 1]
        if idx == 0 and sheet_names:
            return sheet_names[0]

    raise ValueError(f"Sheet '{value}' not found. Available sheets: {', '.join(sheet_names)}")


def read_table(path: Path, sheet: str = "") -> pd.DataFrame:
    if path.suffix.lower() in EXCEL_SUFFIXES:
        sheet_name = resolve_sheet_argument(sheet, get_sheet_names(path))
        df = pd.read_excel(path, sheet_name=sheet_name, engine="openpyxl", dtype=str)
    else:
        df = pd.read_csv(path, dtype=str, skip_blank_lines=False)
    # Row labels keep their original positions so loaders can report file line numbers.
    df = df.dropna(how="all").dropna(axis=1, how="all")
    df.columns = [norm_col_name(c) for c in df.columns]
    return df
