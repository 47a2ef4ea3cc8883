"""
Built-in sample listings.

Used in two places:
- `backend.mode: memory` seeds the in-process store with these rows (demos, UI work);
- `repository.sample_fallback: true` substitutes them when the backend fails (development only).

Sample ids carry the `sample-` prefix so fallback data can never be mistaken for real rows.
"""

from __future__ import annotations

from medshare.domain.models import MedicineListing
from medshare.repository.ports import Row

SAMPLE_ID_PREFIX = "sample-"

SAMPLE_ROWS: tuple[Row, ...] = (
    {
        "id": "sample-1",
        "name": "Paracetamol",
        "description": "Pain reliever and fever reducer",
        "image_url": "https://placehold.co/600x400?text=Paracetamol",
        "expiry": "2026-12-31",
        "is_free": True,
        "price": None,
        "locality": "Downtown",
        "latitude": 37.7749,
        "longitude": -122.4194,
        "created_at": "2026-01-06T09:00:00+00:00",
        "user_id": "sample-user-1",
        "category": "Pain Relief",
    },
    {
        "id": "sample-2",
        "name": "Amoxicillin",
        "description": "Antibiotic medication",
        "image_url": "https://placehold.co/600x400?text=Amoxicillin",
        "expiry": "2026-10-15",
        "is_free": False,
        "price": 15.99,
        "locality": "Uptown",
        "latitude": 37.7833,
        "longitude": -122.4167,
        "created_at": "2026-01-05T09:00:00+00:00",
        "user_id": "sample-user-2",
        "category": "Antibiotics",
    },
    {
        "id": "sample-3",
        "name": "Ibuprofen",
        "description": "Anti-inflammatory drug",
        "image_url": "https://placehold.co/600x400?text=Ibuprofen",
        "expiry": "2026-06-30",
        "is_free": True,
        "price": None,
        "locality": "Westside",
        "latitude": 37.7851,
        "longitude": -122.4774,
        "created_at": "2026-01-04T09:00:00+00:00",
        "user_id": "sample-user-1",
        "category": "Pain Relief",
    },
    {
        "id": "sample-4",
        "name": "Cetirizine",
        "description": "Antihistamine for allergies",
        "image_url": "https://placehold.co/600x400?text=Cetirizine",
        "expiry": "2026-08-15",
        "is_free": False,
        "price": 8.99,
        "locality": "Eastside",
        "latitude": 37.8044,
        "longitude": -122.2711,
        "created_at": "2026-01-03T09:00:00+00:00",
        "user_id": "sample-user-3",
        "category": "Allergy",
    },
    {
        "id": "sample-5",
        "name": "Omeprazole",
        "description": "Reduces stomach acid production",
        "image_url": "https://placehold.co/600x400?text=Omeprazole",
        "expiry": "2026-05-20",
        "is_free": True,
        "price": None,
        "locality": "Northside",
        "latitude": 37.8715,
        "longitude": -122.2730,
        "created_at": "2026-01-02T09:00:00+00:00",
        "user_id": "sample-user-2",
        "category": "Digestive Health",
    },
    {
        "id": "sample-6",
        "name": "Vitamin D",
        "description": "Dietary supplement",
        "image_url": "https://placehold.co/600x400?text=Vitamin+D",
        "expiry": "2027-01-10",
        "is_free": False,
        "price": 12.50,
        "locality": "Southside",
        "latitude": 37.7683,
        "longitude": -122.4474,
        "created_at": "2026-01-01T09:00:00+00:00",
        "user_id": "sample-user-3",
        "category": "Vitamins & Supplements",
    },
)


def sample_listings() -> list[MedicineListing]:
    """Fresh model instances (callers attach per-request distances)."""
    return [MedicineListing.model_validate(row) for row in SAMPLE_ROWS]


def is_sample_id(medicine_id: str) -> bool:
    return medicine_id.startswith(SAMPLE_ID_PREFIX)
