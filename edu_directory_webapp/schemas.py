from __future__ import annotations

from typing import Annotated, Any, Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from .db import INSTITUTION_TYPES, MAX_ID
from .errors import ValidationError

CONTACT_NUMBER_PATTERN = r"^\+?[\d\s\-()]{10,}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


class InstitutionBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    type: Literal["School", "College"]
    name: str = Field(min_length=2, max_length=255)
    image_url: str | None = None
    city: str = Field(min_length=2, max_length=100)
    state: str = Field(min_length=2, max_length=100)
    address: str = Field(min_length=5)
    contact_number: str = Field(pattern=CONTACT_NUMBER_PATTERN, max_length=20)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)

    @field_validator("image_url", mode="before")
    @classmethod
    def _check_image_url(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if value is None:
            return None
        parsed = urlparse(str(value).strip())
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("Please enter a valid URL")
        return str(value).strip()

    def common_fields(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "image_url": self.image_url,
            "city": self.city,
            "state": self.state,
            "address": self.address,
            "contact_number": self.contact_number,
            "email": self.email,
        }


class SchoolCreate(InstitutionBase):
    type: Literal["School"]
    standards_offered: str = Field(min_length=1, max_length=255)
    pattern: Literal["CBSE", "ICSE", "State", "IB", "Other"]
    medium: str = Field(min_length=1, max_length=100)
    total_strength: int | None = Field(default=None, gt=0)
    principal_name: str | None = Field(default=None, max_length=255)

    @field_validator("total_strength", "principal_name", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def detail_fields(self) -> dict[str, Any]:
        return {
            "standards_offered": self.standards_offered,
            "pattern": self.pattern,
            "medium": self.medium,
            "total_strength": self.total_strength,
            "principal_name": self.principal_name,
        }


class CollegeCreate(InstitutionBase):
    type: Literal["College"]
    fields: str = Field(min_length=1, max_length=255)
    subfields: str | None = Field(default=None, max_length=255)
    university_type: Literal["Autonomous", "Affiliated"]
    university_name: str = Field(min_length=1, max_length=255)
    course_duration: str | None = Field(default=None, max_length=100)
    dean_name: str | None = Field(default=None, max_length=255)

    @field_validator("subfields", "course_duration", "dean_name", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def detail_fields(self) -> dict[str, Any]:
        return {
            "fields": self.fields,
            "subfields": self.subfields,
            "university_type": self.university_type,
            "university_name": self.university_name,
            "course_duration": self.course_duration,
            "dean_name": self.dean_name,
        }


InstitutionCreate = Annotated[Union[SchoolCreate, CollegeCreate], Field(discriminator="type")]


class RatingSubmission(BaseModel):
    # Strict: "4" and 4.0 are not star counts.
    model_config = ConfigDict(strict=True)

    institution_id: int = Field(gt=0, le=MAX_ID)
    stars: int = Field(ge=1, le=5)


_INSTITUTION_ADAPTER: TypeAdapter[SchoolCreate | CollegeCreate] = TypeAdapter(InstitutionCreate)


def format_validation_errors(exc: PydanticValidationError) -> list[dict[str, str]]:
    result: list[dict[str, str]] = []
    for err in exc.errors():
        # Discriminated unions prefix the location with the tag ("School", ...).
        loc = [str(part) for part in err.get("loc", ()) if str(part) not in INSTITUTION_TYPES]
        if str(err.get("type", "")).startswith("union_tag"):
            loc = ["type"]
        result.append({"field": ".".join(loc) or "body", "message": str(err.get("msg", "Invalid value"))})
    return result


def parse_institution_payload(data: Any) -> SchoolCreate | CollegeCreate:
    try:
        return _INSTITUTION_ADAPTER.validate_python(data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid institution data", details=format_validation_errors(exc)) from exc


def parse_rating_payload(data: Any) -> RatingSubmission:
    try:
        return RatingSubmission.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid rating data", details=format_validation_errors(exc)) from exc
