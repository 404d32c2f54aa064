from __future__ import annotations

import io
from typing import Any

import pandas as pd
from fastapi import Request

from .config import TRUST_FORWARDED_FOR

EXPORT_COLUMNS = [
    "id",
    "name",
    "type",
    "city",
    "state",
    "address",
    "contact_number",
    "email",
    "rating",
    "rating_count",
    "created_at",
]


def build_listing_response(rows: list[dict[str, Any]], total: int, *, page: int, limit: int) -> dict[str, Any]:
    total_pages = (total + limit - 1) // limit if limit > 0 else 0
    return {
        "institutions": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
        },
    }


def get_submitter_key(request: Request) -> str:
    if TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def build_export_frame(rows: list[dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame([{col: r.get(col) for col in EXPORT_COLUMNS} for r in rows], columns=EXPORT_COLUMNS)
    if not df.empty:
        # Excel cannot store timezone-aware datetimes.
        df["created_at"] = pd.to_datetime(df["created_at"], utc=True).dt.tz_localize(None)
    return df


def export_workbook(rows: list[dict[str, Any]]) -> io.BytesIO:
    df = build_export_frame(rows)
    out = io.BytesIO()
    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="institutions")
    out.seek(0)
    return out
