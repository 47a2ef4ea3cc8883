"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- store rows (`MedicineListing`, `SavedMedicine`, `UserProfile`)
- browsing inputs (`Coordinate`, `FilterValues`, `MedicineFilters`)
- listing output (`ListingResult`, `DisplayListing`)

Keeping these models in one place helps:
- validation (reject inconsistent rows early),
- typed refactors,
- consistent JSON output across CLI/API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

ListingType = Literal["all", "free", "paid"]
SortBy = Literal["distance", "expiry", "recent"]


class Coordinate(BaseModel):
    """A viewer or listing position in decimal degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class MedicineListing(BaseModel):
    """One donated or for-sale medicine, as stored in the `medicines` table."""

    id: str
    name: str
    description: str = ""
    image_url: str = ""
    expiry: str
    is_free: bool
    price: float | None = None
    locality: str = ""
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime
    user_id: str
    category: str | None = None

    # Kilometers from the viewer; computed per request, never written back.
    distance: float | None = None

    @model_validator(mode="after")
    def _validate_invariants(self) -> "MedicineListing":
        if self.is_free and self.price is not None:
            raise ValueError("free listings must not carry a price")
        if not self.is_free and (self.price is None or self.price <= 0):
            raise ValueError("paid listings need a positive price")
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_row(self) -> dict[str, Any]:
        """Return the persisted column set (derived fields dropped)."""
        return self.model_dump(mode="json", exclude={"distance"})


class NewMedicine(BaseModel):
    """Insert payload; id and created_at are assigned by the store."""

    name: str
    description: str
    image_url: str
    expiry: str
    is_free: bool
    price: float | None = None
    locality: str
    latitude: float | None = None
    longitude: float | None = None
    user_id: str
    category: str | None = None


class SavedMedicine(MedicineListing):
    """A listing bookmarked by a user, with the time it was saved."""

    saved_at: datetime | None = None


class MedicineFilters(BaseModel):
    """Filter shape accepted by `MedicineRepository.list_medicines`."""

    is_free: bool | None = None
    category: str | None = None
    lat: float | None = None
    lng: float | None = None
    sort_by: SortBy | None = None
    # Radius selected in the UI; carried along but not applied to the result set.
    distance: float | None = None


class FilterValues(BaseModel):
    """Serialized browsing filter state (what listeners and the API see)."""

    type: ListingType = "all"
    sort_by: SortBy = "distance"
    categories: list[str] = Field(default_factory=list)
    distance: float = 10
    category: str | None = None


class ListingResult(BaseModel):
    """Repository answer: rows plus an error descriptor; never an exception."""

    data: list[MedicineListing] = Field(default_factory=list)
    error: str | None = None
    # True only when built-in sample listings replaced real data.
    is_fallback: bool = False


class DisplayListing(BaseModel):
    """A listing card, with distance and price already formatted."""

    id: str
    name: str
    description: str
    image: str
    expiry: str
    distance: str
    is_free: bool
    price: str | None = None
    locality: str
    category: str | None = None


class UserProfile(BaseModel):
    """Donor profile assembled from the auth user plus a donation count."""

    id: str
    email: str = ""
    display_name: str = ""
    phone_number: str = ""
    address: str = ""
    avatar_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    total_donations: int = 0


class ProfileUpdate(BaseModel):
    """Editable profile metadata (stored as auth user metadata)."""

    display_name: str | None = None
    phone_number: str | None = None
    address: str | None = None
    avatar_url: str | None = None
