"""Shared fixtures: a throwaway SQLite database, sessions, an API client and payload builders."""

import os
import tempfile
from pathlib import Path

_TMP_DIR = Path(tempfile.mkdtemp(prefix="edu_directory_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{(_TMP_DIR / 'test.db').as_posix()}"
os.environ["TRUST_FORWARDED_FOR"] = "true"
os.environ["FILTER_OPTIONS_CACHE_TTL_SEC"] = "0"
os.environ["AUTO_CREATE_SCHEMA"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from edu_directory_webapp.db import Base, get_engine, new_session  # noqa: E402
from edu_directory_webapp.filter_options_repo import clear_filter_options_cache  # noqa: E402
from edu_directory_webapp.institution_repo import create_institution  # noqa: E402
from edu_directory_webapp.main import app  # noqa: E402
from edu_directory_webapp.schemas import parse_institution_payload  # noqa: E402


def build_school_payload(**overrides):
    data = {
        "type": "School",
        "name": "Oak School",
        "city": "Pune",
        "state": "Maharashtra",
        "address": "12 Hill Road, Kothrud",
        "contact_number": "+91 98765 43210",
        "email": "office@oak.example.org",
        "image_url": "",
        "standards_offered": "1-12",
        "pattern": "CBSE",
        "medium": "English",
        "total_strength": 800,
        "principal_name": "A. Rao",
    }
    data.update(overrides)
    return data


def build_college_payload(**overrides):
    data = {
        "type": "College",
        "name": "Riverside College",
        "city": "Bengaluru",
        "state": "Karnataka",
        "address": "4 Lake View Road",
        "contact_number": "080-2345-6789",
        "email": "admissions@riverside.example.edu",
        "fields": "Engineering",
        "subfields": "Computer Science, Mechanical",
        "university_type": "Affiliated",
        "university_name": "Visvesvaraya Technological University",
        "course_duration": "4 years",
        "dean_name": "",
    }
    data.update(overrides)
    return data


@pytest.fixture(autouse=True)
def _fresh_schema():
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    clear_filter_options_cache()
    yield


@pytest.fixture
def db():
    session = new_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def school_payload():
    return build_school_payload


@pytest.fixture
def college_payload():
    return build_college_payload


@pytest.fixture
def make_school(db):
    def _make(**overrides) -> int:
        return create_institution(db, parse_institution_payload(build_school_payload(**overrides)))

    return _make


@pytest.fixture
def make_college(db):
    def _make(**overrides) -> int:
        return create_institution(db, parse_institution_payload(build_college_payload(**overrides)))

    return _make
