from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .db import MAX_ID, Institution, Rating, transaction
from .errors import NotFoundError, ValidationError
from .search_repo import to_float

MIN_STARS = 1
MAX_STARS = 5


@dataclass(frozen=True)
class RatingResult:
    institution_id: int
    stars: int
    rating: float
    rating_count: int
    created: bool


def validate_stars(stars: Any) -> int:
    if isinstance(stars, bool) or not isinstance(stars, int):
        raise ValidationError(
            "Stars must be a whole number",
            details=[{"field": "stars", "message": f"Expected an integer between {MIN_STARS} and {MAX_STARS}"}],
        )
    if not MIN_STARS <= stars <= MAX_STARS:
        raise ValidationError(
            f"Stars must be between {MIN_STARS} and {MAX_STARS}",
            details=[{"field": "stars", "message": f"Got {stars}"}],
        )
    return stars


def recompute_institution_rating(db: Session, institution: Institution) -> tuple[float, int]:
    avg_stars, rating_count = db.execute(
        select(func.avg(Rating.stars), func.count(Rating.id)).where(Rating.institution_id == institution.id)
    ).one()
    mean = to_float(avg_stars)
    institution.rating = mean
    return mean, int(rating_count or 0)


def submit_rating(db: Session, institution_id: int, submitter_key: str, stars: Any) -> RatingResult:
    stars = validate_stars(stars)
    submitter_key = (submitter_key or "unknown").strip()[:45] or "unknown"
    if not 0 < institution_id <= MAX_ID:
        raise NotFoundError("Institution not found")

    with transaction(db):
        # Row lock on the institution serializes concurrent submissions for it,
        # so the mean is never computed from a stale set of ratings.
        institution = db.execute(
            select(Institution).where(Institution.id == institution_id).with_for_update()
        ).scalar_one_or_none()
        if institution is None:
            raise NotFoundError("Institution not found")

        existing = db.execute(
            select(Rating).where(Rating.institution_id == institution_id, Rating.submitter_key == submitter_key)
        ).scalar_one_or_none()
        if existing is not None:
            existing.stars = stars
            existing.submitted_at = func.now()
            created = False
        else:
            db.add(Rating(institution_id=institution_id, submitter_key=submitter_key, stars=stars))
            created = True
        db.flush()

        mean, rating_count = recompute_institution_rating(db, institution)

    logging.info(
        "Rating %s for institution %s: stars=%s mean=%.2f count=%s",
        "stored" if created else "updated",
        institution_id,
        stars,
        mean,
        rating_count,
    )
    return RatingResult(
        institution_id=institution_id,
        stars=stars,
        rating=mean,
        rating_count=rating_count,
        created=created,
    )
