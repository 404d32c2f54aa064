import pytest

from edu_directory_webapp.errors import ValidationError
from edu_directory_webapp.schemas import (
    CollegeCreate,
    SchoolCreate,
    parse_institution_payload,
    parse_rating_payload,
)


def _fields(exc_info):
    return {d["field"] for d in exc_info.value.details}


def test_school_payload_is_parsed(school_payload):
    payload = parse_institution_payload(school_payload(name="  Oak School  ", principal_name=""))

    assert isinstance(payload, SchoolCreate)
    assert payload.name == "Oak School"
    assert payload.image_url is None
    assert payload.principal_name is None
    assert payload.detail_fields()["pattern"] == "CBSE"


def test_college_payload_is_parsed(college_payload):
    payload = parse_institution_payload(college_payload(image_url="https://example.org/riverside.png"))

    assert isinstance(payload, CollegeCreate)
    assert payload.image_url == "https://example.org/riverside.png"
    assert payload.common_fields()["type"] == "College"
    assert payload.detail_fields()["dean_name"] is None


def test_missing_type_is_reported_on_type_field(school_payload):
    data = school_payload()
    del data["type"]

    with pytest.raises(ValidationError) as exc_info:
        parse_institution_payload(data)

    assert _fields(exc_info) == {"type"}


def test_unknown_type_is_rejected(school_payload):
    with pytest.raises(ValidationError) as exc_info:
        parse_institution_payload(school_payload(type="University"))

    assert _fields(exc_info) == {"type"}


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"name": "O"}, "name"),
        ({"city": ""}, "city"),
        ({"address": "abc"}, "address"),
        ({"contact_number": "12345"}, "contact_number"),
        ({"contact_number": "call me maybe"}, "contact_number"),
        ({"email": "not-an-email"}, "email"),
        ({"image_url": "ftp://example.org/a.png"}, "image_url"),
        ({"pattern": "Montessori"}, "pattern"),
        ({"total_strength": -10}, "total_strength"),
        ({"medium": ""}, "medium"),
    ],
)
def test_invalid_school_fields(school_payload, overrides, field):
    with pytest.raises(ValidationError) as exc_info:
        parse_institution_payload(school_payload(**overrides))

    assert field in _fields(exc_info)


def test_missing_college_fields_are_all_reported(college_payload):
    data = college_payload()
    for key in ("fields", "university_type", "university_name"):
        del data[key]

    with pytest.raises(ValidationError) as exc_info:
        parse_institution_payload(data)

    assert _fields(exc_info) == {"fields", "university_type", "university_name"}


def test_blank_total_strength_is_absent(school_payload):
    payload = parse_institution_payload(school_payload(total_strength=""))

    assert payload.total_strength is None


def test_non_object_payload_is_rejected():
    with pytest.raises(ValidationError):
        parse_institution_payload(["School"])


def test_rating_payload():
    payload = parse_rating_payload({"institution_id": 3, "stars": 5})

    assert payload.institution_id == 3
    assert payload.stars == 5


@pytest.mark.parametrize(
    "data",
    [
        {"institution_id": 3, "stars": 0},
        {"institution_id": 3, "stars": 6},
        {"institution_id": 3, "stars": 2.5},
        {"institution_id": 3, "stars": "4"},
        {"institution_id": 3, "stars": 4.0},
        {"institution_id": 3, "stars": True},
        {"institution_id": "3", "stars": 4},
        {"institution_id": 2**31, "stars": 4},
        {"institution_id": 0, "stars": 3},
        {"stars": 3},
        {},
    ],
)
def test_invalid_rating_payload(data):
    with pytest.raises(ValidationError):
        parse_rating_payload(data)
