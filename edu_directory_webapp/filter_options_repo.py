from __future__ import annotations

import os
import threading
from copy import deepcopy
from time import monotonic
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import INSTITUTION_TYPES, CollegeDetails, Institution, SchoolDetails
from .search_repo import canonical_choice


def _read_cache_ttl_seconds() -> float:
    raw = os.getenv("FILTER_OPTIONS_CACHE_TTL_SEC", "300").strip()
    try:
        ttl = float(raw)
    except ValueError:
        ttl = 300.0
    return max(0.0, ttl)


_CACHE_TTL_SECONDS = _read_cache_ttl_seconds()
_CACHE_LOCK = threading.Lock()
_FILTER_OPTIONS_CACHE: dict[str | None, tuple[float, dict[str, list[str]]]] = {}


def _cache_get(cache: dict[Any, tuple[float, Any]], key: Any) -> Any | None:
    if _CACHE_TTL_SECONDS <= 0:
        return None
    now = monotonic()
    with _CACHE_LOCK:
        item = cache.get(key)
        if item is None:
            return None
        expires_at, value = item
        if expires_at <= now:
            cache.pop(key, None)
            return None
        return deepcopy(value)


def _cache_put(cache: dict[Any, tuple[float, Any]], key: Any, value: Any) -> None:
    if _CACHE_TTL_SECONDS <= 0:
        return
    expires_at = monotonic() + _CACHE_TTL_SECONDS
    with _CACHE_LOCK:
        cache[key] = (expires_at, deepcopy(value))


def clear_filter_options_cache() -> None:
    with _CACHE_LOCK:
        _FILTER_OPTIONS_CACHE.clear()


def _distinct_values(db: Session, column, institution_type: str | None, detail_table=None) -> list[str]:
    stmt = select(column).distinct()
    if detail_table is not None:
        stmt = stmt.select_from(detail_table).join(Institution, Institution.id == detail_table.institution_id)
    if institution_type is not None:
        stmt = stmt.where(Institution.type == institution_type)
    stmt = stmt.where(column.is_not(None)).order_by(column)
    return [str(v) for v in db.execute(stmt).scalars().all()]


def fetch_filter_options(db: Session, institution_type: str | None = None) -> dict[str, list[str]]:
    """Distinct cities and states for a type, plus patterns (schools) or fields (colleges).

    An unknown or missing type yields cities and states across every institution.
    """
    type_value = canonical_choice(institution_type, INSTITUTION_TYPES)
    cached = _cache_get(_FILTER_OPTIONS_CACHE, type_value)
    if cached is not None:
        return cached

    result = {
        "cities": _distinct_values(db, Institution.city, type_value),
        "states": _distinct_values(db, Institution.state, type_value),
    }
    if type_value == "School":
        result["patterns"] = _distinct_values(db, SchoolDetails.pattern, type_value, SchoolDetails)
    elif type_value == "College":
        result["fields"] = _distinct_values(db, CollegeDetails.fields, type_value, CollegeDetails)

    _cache_put(_FILTER_OPTIONS_CACHE, type_value, result)
    return result
