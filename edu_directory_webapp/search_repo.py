from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from .config import DEFAULT_PAGE_SIZE, MAX_PAGE, MAX_PAGE_SIZE
from .db import (
    INSTITUTION_TYPES,
    SCHOOL_PATTERNS,
    CollegeDetails,
    Institution,
    Rating,
    SchoolDetails,
)
from .errors import NotFoundError

_SPACE_RE = re.compile(r"\s+")

SORT_COLUMNS = ("name", "city", "state", "rating", "created_at")
DEFAULT_SORT_COLUMN = "name"

_LISTING_COLUMNS = (
    Institution.id,
    Institution.name,
    Institution.type,
    Institution.image_url,
    Institution.city,
    Institution.state,
    Institution.address,
    Institution.contact_number,
    Institution.email,
    Institution.created_at,
)


@dataclass(frozen=True)
class InstitutionSearchFilters:
    institution_type: str | None = None
    city: str | None = None
    state: str | None = None
    pattern: str | None = None
    fields: str | None = None
    min_rating: float | None = None
    search: str = ""
    sort_by: str = DEFAULT_SORT_COLUMN
    sort_order: str = "asc"


def normalize_search_text(text: str | None) -> str:
    return _SPACE_RE.sub(" ", (text or "").replace("\u00A0", " ").strip()).lower()


def canonical_choice(value: str | None, choices: tuple[str, ...]) -> str | None:
    raw = (value or "").strip().casefold()
    if not raw:
        return None
    for choice in choices:
        if choice.casefold() == raw:
            return choice
    return None


def to_float(value: Any, *, default: float = 0.0) -> float:
    """Aggregates come back as Decimal on PostgreSQL and float on SQLite."""
    return default if value is None else float(value)


def _rating_expr():
    return func.coalesce(func.avg(Rating.stars), 0)


def _build_institution_filters(filters: InstitutionSearchFilters) -> tuple[list[Any], list[type]]:
    clauses: list[Any] = []
    detail_tables: list[type] = []

    institution_type = canonical_choice(filters.institution_type, INSTITUTION_TYPES)
    if institution_type is not None:
        clauses.append(Institution.type == institution_type)

    city = normalize_search_text(filters.city)
    if city:
        clauses.append(func.lower(Institution.city) == city)

    state = normalize_search_text(filters.state)
    if state:
        clauses.append(func.lower(Institution.state) == state)

    q_norm = normalize_search_text(filters.search)
    if q_norm:
        clauses.append(
            or_(
                func.lower(Institution.name).contains(q_norm, autoescape=True),
                func.lower(Institution.city).contains(q_norm, autoescape=True),
                func.lower(Institution.state).contains(q_norm, autoescape=True),
            )
        )

    # Detail tables are joined only for an active type-specific filter.
    pattern = canonical_choice(filters.pattern, SCHOOL_PATTERNS)
    if pattern is not None and institution_type == "School":
        detail_tables.append(SchoolDetails)
        clauses.append(SchoolDetails.pattern == pattern)

    fields_norm = normalize_search_text(filters.fields)
    if fields_norm and institution_type == "College":
        detail_tables.append(CollegeDetails)
        clauses.append(func.lower(CollegeDetails.fields).contains(fields_norm, autoescape=True))

    return clauses, detail_tables


def _apply_filters(stmt: Select, clauses: list[Any], detail_tables: list[type]) -> Select:
    for table in detail_tables:
        stmt = stmt.join(table, table.institution_id == Institution.id)
    if clauses:
        stmt = stmt.where(*clauses)
    return stmt


def _sort_clauses(filters: InstitutionSearchFilters) -> list[Any]:
    column = filters.sort_by if filters.sort_by in SORT_COLUMNS else DEFAULT_SORT_COLUMN
    if column == "rating":
        sort_expr = _rating_expr()
    else:
        sort_expr = getattr(Institution, column)
    descending = (filters.sort_order or "").strip().lower() == "desc"
    # id keeps pages stable when the sort column has equal values.
    return [sort_expr.desc() if descending else sort_expr.asc(), Institution.id.asc()]


def _count_institutions(db: Session, filters: InstitutionSearchFilters, clauses: list[Any], detail_tables: list[type]) -> int:
    if filters.min_rating is None:
        stmt = _apply_filters(
            select(func.count(func.distinct(Institution.id))).select_from(Institution),
            clauses,
            detail_tables,
        )
        return int(db.execute(stmt).scalar_one())

    grouped = _apply_filters(
        select(Institution.id).select_from(Institution).outerjoin(Rating, Rating.institution_id == Institution.id),
        clauses,
        detail_tables,
    )
    grouped = grouped.group_by(Institution.id).having(_rating_expr() >= filters.min_rating).subquery()
    return int(db.execute(select(func.count()).select_from(grouped)).scalar_one())


def _listing_row(row: Any) -> dict[str, Any]:
    item = dict(row._mapping)
    item["rating"] = round(to_float(item.get("rating")), 2)
    item["rating_count"] = int(item.get("rating_count") or 0)
    return item


def search_institutions(
    db: Session,
    filters: InstitutionSearchFilters,
    *,
    page: int = 1,
    per_page: int = DEFAULT_PAGE_SIZE,
    apply_pagination: bool = True,
) -> tuple[list[dict[str, Any]], int]:
    clauses, detail_tables = _build_institution_filters(filters)
    total = _count_institutions(db, filters, clauses, detail_tables)

    stmt = _apply_filters(
        select(
            *_LISTING_COLUMNS,
            _rating_expr().label("rating"),
            func.count(Rating.id).label("rating_count"),
        )
        .select_from(Institution)
        .outerjoin(Rating, Rating.institution_id == Institution.id),
        clauses,
        detail_tables,
    )
    stmt = stmt.group_by(*_LISTING_COLUMNS)
    if filters.min_rating is not None:
        stmt = stmt.having(_rating_expr() >= filters.min_rating)
    stmt = stmt.order_by(*_sort_clauses(filters))

    if apply_pagination:
        safe_page = max(1, min(int(page), MAX_PAGE))
        safe_per_page = max(1, min(int(per_page), MAX_PAGE_SIZE))
        stmt = stmt.limit(safe_per_page).offset((safe_page - 1) * safe_per_page)

    rows = [_listing_row(r) for r in db.execute(stmt).all()]
    return rows, total


def _details_to_dict(details: SchoolDetails | CollegeDetails | None) -> dict[str, Any] | None:
    if details is None:
        return None
    return {c.name: getattr(details, c.name) for c in details.__table__.columns}


def fetch_institution_card(db: Session, institution_id: int) -> dict[str, Any]:
    row = db.execute(
        select(
            *_LISTING_COLUMNS,
            _rating_expr().label("rating"),
            func.count(Rating.id).label("rating_count"),
        )
        .select_from(Institution)
        .outerjoin(Rating, Rating.institution_id == Institution.id)
        .where(Institution.id == institution_id)
        .group_by(*_LISTING_COLUMNS)
    ).one_or_none()
    if row is None:
        raise NotFoundError("Institution not found")

    card = _listing_row(row)
    if card["type"] == "School":
        details = db.execute(
            select(SchoolDetails).where(SchoolDetails.institution_id == institution_id)
        ).scalar_one_or_none()
    else:
        details = db.execute(
            select(CollegeDetails).where(CollegeDetails.institution_id == institution_id)
        ).scalar_one_or_none()
    card[f"{card['type'].lower()}_details"] = _details_to_dict(details)
    return card
