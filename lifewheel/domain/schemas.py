"""
Pydantic schemas for input validation at the application boundary.

The core only ever receives values that passed through these schemas;
score clamping is the one range rule left to the core itself.
"""

from __future__ import annotations

import re
from html import unescape
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MOBILE_PATTERN = re.compile(r"^\+?[0-9]{7,15}$")
PERSIAN_DIGITS = str.maketrans("۰۱۲۳۴۵۶۷۸۹٠١٢٣٤٥٦٧٨٩", "01234567890123456789")


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=True,
    )

    @field_validator("*", mode="before")
    @classmethod
    def sanitize_strings(cls, v):
        """Strip markup and control characters from every string input."""
        if isinstance(v, str):
            cleaned = unescape(v.strip())
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                cleaned,
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


def _validate_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Email address is not valid")
    return v


class RegistrationInput(BaseValidationSchema):
    """Validation schema for registering or refreshing a user."""

    name: str = Field(..., min_length=1, max_length=120)
    mobile: str = Field(..., min_length=7, max_length=16)
    age: int = Field(..., ge=10, le=100)
    email: str = Field(..., max_length=254)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator("mobile", mode="before")
    @classmethod
    def normalise_mobile(cls, v):
        """Accept Persian/Arabic digits and common separators."""
        if isinstance(v, str):
            v = re.sub(r"[\s\-()]", "", v.translate(PERSIAN_DIGITS))
            if not MOBILE_PATTERN.match(v):
                raise ValueError("Mobile number must contain 7 to 15 digits")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class ScoreUpdateInput(BaseValidationSchema):
    """A single category score update; out-of-range values are clamped by the board."""

    category_id: str | None = Field(None, max_length=64)
    score: int


class AdminSettingsInput(BaseValidationSchema):
    intro_text: str = Field(..., min_length=1, max_length=4000)
    advice_template_low: str = Field(..., min_length=1, max_length=4000)
    advice_template_high: str = Field(..., min_length=1, max_length=4000)
    advice_template_unbalanced: str = Field(..., min_length=1, max_length=4000)


class ReportRequestInput(BaseValidationSchema):
    email: str = Field(..., max_length=254)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


NotificationChannel = Literal["sms", "whatsapp", "email"]


class NotificationInput(BaseValidationSchema):
    channel: NotificationChannel


class ValidationErrorDetail(BaseModel):
    """Schema for validation error details."""

    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    """Schema for validation responses."""

    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Centralized validation function that returns structured validation results.

    Example:
        >>> result = validate_input(RegistrationInput, {"name": "Sara", "mobile": "09121234567",
        ...                                             "age": 30, "email": "s@example.com"})
        >>> result.success
        True
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):
            for error in e.errors():
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]) or "general",
                        message=error["msg"],
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
