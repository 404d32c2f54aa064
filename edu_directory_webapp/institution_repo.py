from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db import CollegeDetails, Institution, SchoolDetails, transaction
from .errors import ConflictError, ValidationError
from .filter_options_repo import clear_filter_options_cache
from .schemas import CollegeCreate, SchoolCreate

DUPLICATE_MESSAGE = "An institution with this name already exists in this location"


def find_duplicate_institution(db: Session, *, name: str, city: str, state: str) -> int | None:
    return db.execute(
        select(Institution.id).where(
            Institution.name == name,
            Institution.city == city,
            Institution.state == state,
        )
    ).scalar_one_or_none()


def create_institution(db: Session, payload: SchoolCreate | CollegeCreate) -> int:
    """Insert an institution together with its single detail row.

    Both rows are committed in one transaction; a duplicate (name, city, state)
    raises ``ConflictError`` and leaves the database untouched.
    """
    if isinstance(payload, SchoolCreate):
        detail_model = SchoolDetails
    elif isinstance(payload, CollegeCreate):
        detail_model = CollegeDetails
    else:
        raise ValidationError("Unsupported institution type")

    with transaction(db):
        if find_duplicate_institution(db, name=payload.name, city=payload.city, state=payload.state) is not None:
            raise ConflictError(DUPLICATE_MESSAGE)

        institution = Institution(**payload.common_fields())
        db.add(institution)
        try:
            db.flush()
        except IntegrityError as exc:
            # Lost a race against a concurrent insert of the same institution.
            raise ConflictError(DUPLICATE_MESSAGE) from exc
        db.add(detail_model(institution_id=institution.id, **payload.detail_fields()))
        db.flush()
        institution_id = int(institution.id)

    clear_filter_options_cache()
    logging.info(
        "Created %s #%s: %s (%s, %s)",
        payload.type,
        institution_id,
        payload.name,
        payload.city,
        payload.state,
    )
    return institution_id
