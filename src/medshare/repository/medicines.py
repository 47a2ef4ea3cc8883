from __future__ import annotations

# Medicine repository: the query + filter composition behind every listing view.
#
# Data flow:
# - browsing state (MedicineFilters) -> store query (ListingQuery)
# - store rows -> validated MedicineListing models
# - viewer coordinate -> per-listing distance (+ optional distance re-sort)
#
# Listing reads never raise: a failed store call becomes an error descriptor on the
# ListingResult (and, in development, optionally the built-in sample listings).

import logging
from typing import Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from medshare.backend.client import UNIQUE_VIOLATION, BackendError
from medshare.core.geo import UNKNOWN_DISTANCE_KM, calculate_distance
from medshare.domain.models import (
    Coordinate,
    ListingResult,
    MedicineFilters,
    MedicineListing,
    NewMedicine,
    SavedMedicine,
)
from medshare.repository.ports import ListingQuery, MedicineStore, Row
from medshare.repository.samples import is_sample_id, sample_listings

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)


class MedicineNotFound(LookupError):
    """No listing with the requested id."""

    def __init__(self, medicine_id: str):
        super().__init__(f"Medicine '{medicine_id}' not found")
        self.medicine_id = medicine_id


class NotListingOwner(PermissionError):
    """The acting user did not create the listing."""


def _store_query(query: str, filters: MedicineFilters) -> ListingQuery:
    # Only expiry changes the store ordering; distance sorting happens after distances exist.
    if filters.sort_by == "expiry":
        order_by, descending = "expiry", False
    else:
        order_by, descending = "created_at", True
    return ListingQuery(
        name_contains=query,
        is_free=filters.is_free,
        category=filters.category or None,
        order_by=order_by,
        descending=descending,
    )


def _valid_rows(rows: Iterable[Row], model: type[_M]) -> list[_M]:
    """Validate rows one by one; a row breaking the listing rules is logged and skipped."""
    out: list[_M] = []
    for row in rows:
        try:
            out.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning("Skipping invalid listing row %s: %s", row.get("id"), e.errors()[0].get("msg"))
    return out


def viewer_from_filters(filters: MedicineFilters) -> Coordinate | None:
    """Viewer position from the filters; an out-of-range position counts as unknown."""
    if filters.lat is None or filters.lng is None:
        return None
    try:
        return Coordinate(lat=filters.lat, lng=filters.lng)
    except ValidationError:
        logger.warning("Ignoring out-of-range viewer position lat=%s lng=%s", filters.lat, filters.lng)
        return None


def attach_distances(listings: Iterable[MedicineListing], viewer: Coordinate) -> None:
    """Set `distance` on each listing (sentinel when the listing has no coordinates)."""
    for listing in listings:
        if listing.has_coordinates:
            listing.distance = calculate_distance(viewer.lat, viewer.lng, listing.latitude, listing.longitude)
        else:
            listing.distance = UNKNOWN_DISTANCE_KM


def sort_by_distance(listings: list[MedicineListing]) -> list[MedicineListing]:
    """Stable ascending sort; unknown distances end up last, ties keep the store order."""
    return sorted(
        listings,
        key=lambda m: m.distance if m.distance is not None else UNKNOWN_DISTANCE_KM,
    )


class MedicineRepository:
    """Reads and writes listings through an injected `MedicineStore`."""

    def __init__(self, store: MedicineStore, *, sample_fallback: bool = False):
        self._store = store
        self._sample_fallback = sample_fallback

    @property
    def store(self) -> MedicineStore:
        return self._store

    def _failed(self, error: Exception, *, limit: int | None = None) -> ListingResult:
        if self._sample_fallback:
            samples = sample_listings()
            logger.warning("Serving built-in sample listings after backend failure: %s", error)
            return ListingResult(
                data=samples[:limit] if limit is not None else samples,
                error=str(error),
                is_fallback=True,
            )
        return ListingResult(data=[], error=str(error))

    async def list_medicines(self, query: str = "", filters: MedicineFilters | None = None) -> ListingResult:
        filters = filters or MedicineFilters()
        logger.info("Fetching medicines query=%r filters=%s", query, filters.model_dump(exclude_none=True))

        try:
            rows = await self._store.query(_store_query(query, filters))
            listings = _valid_rows(rows, MedicineListing)
        except Exception as e:
            # Any retrieval failure (transport, HTTP status, bad payload) is reported, not raised.
            logger.exception("Error fetching medicines")
            return self._failed(e)

        viewer = viewer_from_filters(filters)
        if viewer is not None:
            attach_distances(listings, viewer)
            if filters.sort_by == "distance":
                listings = sort_by_distance(listings)

        logger.info("Medicines fetched: %d", len(listings))
        return ListingResult(data=listings)

    async def get_featured_medicines(self, limit: int = 4) -> ListingResult:
        """The `limit` most recently listed medicines, unfiltered."""
        try:
            rows = await self._store.query(ListingQuery(limit=limit))
            listings = _valid_rows(rows, MedicineListing)
        except Exception as e:
            logger.exception("Error fetching featured medicines")
            return self._failed(e, limit=limit)
        return ListingResult(data=listings)

    async def get_medicine(self, medicine_id: str, *, viewer: Coordinate | None = None) -> MedicineListing:
        try:
            row = await self._store.get(medicine_id)
        except BackendError:
            # Sample cards served during a fallback must stay openable.
            if not (self._sample_fallback and is_sample_id(medicine_id)):
                raise
            row = next((s.model_dump() for s in sample_listings() if s.id == medicine_id), None)
        if row is None:
            raise MedicineNotFound(medicine_id)
        listing = MedicineListing.model_validate(row)
        if viewer is not None:
            attach_distances([listing], viewer)
        return listing

    async def add_medicine(self, medicine: NewMedicine) -> MedicineListing:
        row = await self._store.insert(medicine.model_dump(mode="json"))
        listing = MedicineListing.model_validate(row)
        logger.info("Medicine %s added by %s", listing.id, listing.user_id)
        return listing

    async def delete_medicine(self, medicine_id: str, *, user_id: str) -> None:
        listing = await self.get_medicine(medicine_id)
        if listing.user_id != user_id:
            raise NotListingOwner(f"Medicine '{medicine_id}' belongs to another user")
        await self._store.delete(medicine_id)
        logger.info("Medicine %s deleted", medicine_id)

    async def get_user_donations(self, user_id: str) -> list[MedicineListing]:
        rows = await self._store.query(ListingQuery(user_id=user_id))
        return _valid_rows(rows, MedicineListing)

    async def save_medicine(self, user_id: str, medicine_id: str) -> None:
        """Bookmark a listing; saving twice is not an error."""
        try:
            await self._store.save(user_id, medicine_id)
        except BackendError as e:
            if e.code != UNIQUE_VIOLATION:
                raise
            logger.info("Medicine %s already saved by %s", medicine_id, user_id)

    async def unsave_medicine(self, user_id: str, medicine_id: str) -> None:
        await self._store.unsave(user_id, medicine_id)

    async def is_medicine_saved(self, user_id: str, medicine_id: str) -> bool:
        return await self._store.is_saved(user_id, medicine_id)

    async def get_user_saved_medicines(self, user_id: str) -> list[SavedMedicine]:
        rows: list[Row] = await self._store.saved_for_user(user_id)
        return _valid_rows(rows, SavedMedicine)
