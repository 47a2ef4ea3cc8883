"""
Donation input validation.

Everything here runs before any network call: a donation with a bad field or an
unacceptable image is rejected with field-level messages and nothing is uploaded.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator, model_validator

from medshare.config.settings import UploadSettings
from medshare.domain.models import NewMedicine

# YYYY-MM-DD, MM/DD/YYYY, or "Month YYYY".
EXPIRY_PATTERNS = (
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    re.compile(r"^\d{2}/\d{2}/\d{4}$"),
    re.compile(r"^[A-Za-z]+ \d{4}$"),
)


class InvalidImage(ValueError):
    """Rejected image upload (type or size)."""

    field = "image"


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def validate_image(image: ImageUpload, settings: UploadSettings) -> None:
    if image.size > settings.max_image_bytes:
        limit_mb = settings.max_image_bytes / (1024 * 1024)
        raise InvalidImage(f"Image size must be less than {limit_mb:g}MB")
    if image.content_type not in settings.allowed_content_types:
        raise InvalidImage("Please upload a valid image file (JPEG, PNG, GIF, or WEBP)")


class DonationForm(BaseModel):
    """What a donor submits; turned into a `NewMedicine` once the image is stored."""

    name: str
    description: str
    expiry: str
    category: str
    locality: str
    is_free: bool
    price: float | None = Field(default=None, validate_default=True)
    latitude: float | None = None
    longitude: float | None = None

    @field_validator("name", "description", "expiry", "category", "locality", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("price", "latitude", "longitude", mode="before")
    @classmethod
    def _blank_is_none(cls, value: object) -> object:
        return None if isinstance(value, str) and not value.strip() else value

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if len(value) < 3:
            raise ValueError("Medicine name must be at least 3 characters")
        return value

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        if len(value) < 10:
            raise ValueError("Description must be at least 10 characters")
        return value

    @field_validator("expiry")
    @classmethod
    def _check_expiry(cls, value: str) -> str:
        if not any(p.match(value) for p in EXPIRY_PATTERNS):
            raise ValueError("Please enter a valid expiry date (YYYY-MM-DD, MM/DD/YYYY, or Month YYYY)")
        return value

    @field_validator("category")
    @classmethod
    def _check_category(cls, value: str) -> str:
        if not value:
            raise ValueError("Please select a category")
        return value

    @field_validator("locality")
    @classmethod
    def _check_locality(cls, value: str) -> str:
        if len(value) < 3:
            raise ValueError("Location must be at least 3 characters")
        return value

    @field_validator("price")
    @classmethod
    def _check_price(cls, value: float | None, info: ValidationInfo) -> float | None:
        if info.data.get("is_free"):
            # Switching a listing to free clears whatever price was typed.
            return None
        if value is None or value <= 0:
            raise ValueError("Price must be a valid number greater than 0")
        return value

    @field_validator("latitude")
    @classmethod
    def _check_latitude(cls, value: float | None) -> float | None:
        if value is not None and not -90 <= value <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return value

    @field_validator("longitude")
    @classmethod
    def _check_longitude(cls, value: float | None) -> float | None:
        if value is not None and not -180 <= value <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        return value

    @model_validator(mode="after")
    def _check_location_pair(self) -> "DonationForm":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and longitude must be provided together")
        return self

    def to_new_medicine(self, *, user_id: str, image_url: str) -> NewMedicine:
        return NewMedicine(user_id=user_id, image_url=image_url, **self.model_dump())


def field_errors(exc: ValidationError) -> dict[str, str]:
    """Flatten a pydantic error into `{field: message}` (model-level errors under `form`)."""
    out: dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        field = str(loc[0]) if loc else "form"
        message = str(err.get("msg", "Invalid value"))
        # pydantic prefixes messages from custom validators.
        message = message.removeprefix("Value error, ")
        out.setdefault(field, message)
    return out
