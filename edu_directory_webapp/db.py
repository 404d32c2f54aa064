from __future__ import annotations

import os
import threading
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, relationship, sessionmaker
from sqlalchemy.sql import func as sqlfunc

from .config import DATABASE_URL, DB_CONNECT_TIMEOUT_SEC, get_pg_config
from .errors import StorageError

INSTITUTION_TYPES = ("School", "College")
SCHOOL_PATTERNS = ("CBSE", "ICSE", "State", "IB", "Other")
UNIVERSITY_TYPES = ("Autonomous", "Affiliated")
# Integer primary keys are 32-bit on PostgreSQL.
MAX_ID = 2**31 - 1


class Base(DeclarativeBase):
    pass


class Institution(Base):
    __tablename__ = "institutions"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    type = Column(Enum(*INSTITUTION_TYPES, name="institution_type"), nullable=False, index=True)
    image_url = Column(Text, nullable=True)
    city = Column(String(100), nullable=False, index=True)
    state = Column(String(100), nullable=False, index=True)
    address = Column(Text, nullable=True)
    contact_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    # Cached mean of ratings.stars, rewritten on every rating submission.
    rating = Column(Float, nullable=False, default=0.0, server_default="0", index=True)
    created_at = Column(DateTime(timezone=True), server_default=sqlfunc.now(), nullable=False)

    school_details = relationship(
        "SchoolDetails", uselist=False, back_populates="institution", cascade="all, delete-orphan"
    )
    college_details = relationship(
        "CollegeDetails", uselist=False, back_populates="institution", cascade="all, delete-orphan"
    )
    ratings = relationship("Rating", back_populates="institution", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("name", "city", "state", name="uq_institution_name_location"),
    )


class SchoolDetails(Base):
    __tablename__ = "school_details"
    id = Column(Integer, primary_key=True)
    institution_id = Column(
        Integer, ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    standards_offered = Column(String(255), nullable=False)
    pattern = Column(Enum(*SCHOOL_PATTERNS, name="school_pattern"), nullable=False, index=True)
    medium = Column(String(100), nullable=False)
    total_strength = Column(Integer, nullable=True)
    principal_name = Column(String(255), nullable=True)

    institution = relationship("Institution", back_populates="school_details")


class CollegeDetails(Base):
    __tablename__ = "college_details"
    id = Column(Integer, primary_key=True)
    institution_id = Column(
        Integer, ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    fields = Column(String(255), nullable=False)
    subfields = Column(String(255), nullable=True)
    university_type = Column(Enum(*UNIVERSITY_TYPES, name="university_type"), nullable=False)
    university_name = Column(String(255), nullable=True)
    course_duration = Column(String(100), nullable=True)
    dean_name = Column(String(255), nullable=True)

    institution = relationship("Institution", back_populates="college_details")


class Rating(Base):
    __tablename__ = "ratings"
    id = Column(Integer, primary_key=True)
    institution_id = Column(
        Integer, ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    submitter_key = Column(String(45), nullable=False)
    stars = Column(Integer, nullable=False)
    submitted_at = Column(DateTime(timezone=True), server_default=sqlfunc.now(), nullable=False)

    institution = relationship("Institution", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("institution_id", "submitter_key", name="uq_rating_institution_submitter"),
        CheckConstraint("stars >= 1 AND stars <= 5", name="ck_rating_stars_range"),
    )


_ENGINE: Engine | None = None
_SESSION_FACTORY: sessionmaker | None = None
_ENGINE_LOCK = threading.Lock()


def _get_pool_bounds() -> tuple[int, int]:
    raw_min = os.getenv("PG_POOL_MIN_SIZE", "1")
    raw_max = os.getenv("PG_POOL_MAX_SIZE", "10")
    try:
        min_size = int(raw_min)
    except ValueError:
        min_size = 1
    try:
        max_size = int(raw_max)
    except ValueError:
        max_size = 10
    min_size = max(1, min(min_size, 32))
    max_size = max(min_size, min(max_size, 64))
    return min_size, max_size


def _database_url() -> URL:
    if DATABASE_URL:
        return make_url(DATABASE_URL)
    cfg = get_pg_config()
    return URL.create(
        "postgresql+psycopg2",
        username=str(cfg["user"]),
        password=str(cfg["password"]),
        host=str(cfg["host"]),
        port=int(cfg["port"]),
        database=str(cfg["dbname"]),
    )


def _build_engine() -> Engine:
    url = _database_url()
    if url.get_backend_name() == "sqlite":
        # Request handlers run in a threadpool, so the connection must be shareable.
        return create_engine(url, echo=False, future=True, connect_args={"check_same_thread": False})

    min_size, max_size = _get_pool_bounds()
    connect_args = {}
    if url.get_backend_name() == "postgresql":
        connect_args["connect_timeout"] = DB_CONNECT_TIMEOUT_SEC
    return create_engine(
        url,
        echo=False,
        future=True,
        pool_size=min_size,
        max_overflow=max_size - min_size,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def get_engine() -> Engine:
    global _ENGINE, _SESSION_FACTORY
    engine = _ENGINE
    if engine is not None:
        return engine

    with _ENGINE_LOCK:
        engine = _ENGINE
        if engine is None:
            engine = _build_engine()
            _SESSION_FACTORY = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
            _ENGINE = engine
    return engine


def dispose_engine() -> None:
    global _ENGINE, _SESSION_FACTORY
    with _ENGINE_LOCK:
        engine = _ENGINE
        _ENGINE = None
        _SESSION_FACTORY = None
    if engine is not None:
        engine.dispose()


def new_session() -> Session:
    get_engine()
    assert _SESSION_FACTORY is not None
    return _SESSION_FACTORY()


def get_db() -> Generator[Session, None, None]:
    db = new_session()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """Commit the session's work on success, roll it back on any error.

    Database failures are re-raised as ``StorageError``; domain errors raised
    inside the block propagate unchanged after the rollback.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("Storage operation failed") from exc
    except Exception:
        db.rollback()
        raise


def init_db() -> None:
    Base.metadata.create_all(bind=get_engine())
