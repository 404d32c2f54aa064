from __future__ import annotations

import math
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .config import DEFAULT_PAGE_SIZE, MAX_PAGE, MAX_PAGE_SIZE
from .db import MAX_ID, get_db
from .errors import NotFoundError
from .filter_options_repo import fetch_filter_options
from .institution_repo import create_institution
from .rating_repo import submit_rating
from .schemas import parse_institution_payload, parse_rating_payload
from .search_repo import InstitutionSearchFilters, fetch_institution_card, search_institutions
from .services import build_listing_response, export_workbook, get_submitter_key

router = APIRouter(prefix="/api")


# Malformed query values are treated as absent rather than rejected.
def _parse_optional_int(value: str | None) -> int | None:
    raw = (value or "").strip()
    if not raw:
        return None
    # isdigit() also accepts characters such as "²" that int() rejects.
    return int(raw) if raw.isascii() and raw.isdigit() else None


def _parse_bounded_int(value: str | None, *, default: int, min_value: int, max_value: int | None = None) -> int:
    parsed = _parse_optional_int(value)
    if parsed is None:
        parsed = default
    if parsed < min_value:
        parsed = min_value
    if max_value is not None and parsed > max_value:
        parsed = max_value
    return parsed


def _parse_optional_float(value: str | None) -> float | None:
    raw = (value or "").strip().replace(",", ".")
    if not raw:
        return None
    try:
        parsed = float(raw)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _build_search_filters(
    *,
    type: str | None,
    city: str | None,
    state: str | None,
    pattern: str | None,
    fields: str | None,
    rating: str | None,
    search: str | None,
    sort_by: str | None,
    sort_order: str | None,
) -> InstitutionSearchFilters:
    return InstitutionSearchFilters(
        institution_type=(type or "").strip() or None,
        city=(city or "").strip() or None,
        state=(state or "").strip() or None,
        pattern=(pattern or "").strip() or None,
        fields=(fields or "").strip() or None,
        min_rating=_parse_optional_float(rating),
        search=(search or "").strip(),
        sort_by=(sort_by or "").strip() or "name",
        sort_order=(sort_order or "").strip().lower() or "asc",
    )


@router.get("/institutions")
def list_institutions(
    page: str | None = Query(default="1"),
    limit: str | None = Query(default=None),
    type: str | None = Query(default=None),
    city: str | None = Query(default=None),
    state: str | None = Query(default=None),
    pattern: str | None = Query(default=None),
    fields: str | None = Query(default=None),
    rating: str | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    db: Session = Depends(get_db),
):
    safe_page = _parse_bounded_int(page, default=1, min_value=1, max_value=MAX_PAGE)
    safe_limit = _parse_bounded_int(limit, default=DEFAULT_PAGE_SIZE, min_value=1, max_value=MAX_PAGE_SIZE)
    filters = _build_search_filters(
        type=type,
        city=city,
        state=state,
        pattern=pattern,
        fields=fields,
        rating=rating,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    rows, total = search_institutions(db, filters, page=safe_page, per_page=safe_limit)
    return build_listing_response(rows, total, page=safe_page, limit=safe_limit)


@router.get("/institutions/export")
def export_institutions(
    type: str | None = Query(default=None),
    city: str | None = Query(default=None),
    state: str | None = Query(default=None),
    pattern: str | None = Query(default=None),
    fields: str | None = Query(default=None),
    rating: str | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    db: Session = Depends(get_db),
):
    filters = _build_search_filters(
        type=type,
        city=city,
        state=state,
        pattern=pattern,
        fields=fields,
        rating=rating,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    rows, _ = search_institutions(db, filters, apply_pagination=False)
    out = export_workbook(rows)

    headers = {"Content-Disposition": "attachment; filename=institutions_export.xlsx"}
    return StreamingResponse(
        out,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )


@router.post("/institutions")
def create_institution_action(payload: Any = Body(...), db: Session = Depends(get_db)):
    data = parse_institution_payload(payload)
    institution_id = create_institution(db, data)
    return {"success": True, "id": institution_id}


@router.get("/institutions/{institution_id}")
def institution_card(institution_id: str, db: Session = Depends(get_db)):
    institution_id_value = _parse_optional_int(institution_id)
    if institution_id_value is None or institution_id_value > MAX_ID:
        raise NotFoundError("Institution not found")
    return fetch_institution_card(db, institution_id_value)


@router.get("/filters")
def filter_options(type: str | None = Query(default=None), db: Session = Depends(get_db)):
    return fetch_filter_options(db, type)


@router.post("/ratings")
def rating_action(request: Request, payload: Any = Body(...), db: Session = Depends(get_db)):
    data = parse_rating_payload(payload)
    result = submit_rating(db, data.institution_id, get_submitter_key(request), data.stars)
    return {"success": True, "rating": round(result.rating, 2), "rating_count": result.rating_count}
