"""
Listing pipeline: browsing state in, display-ready cards out.

Steps:
1. translate `FilterValues` + viewer location into repository `MedicineFilters`
2. run the repository query (distances and distance sort happen there)
3. format each listing for display (distance text, price text)

There is no caching; every call goes to the repository.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from medshare.core.geo import format_distance
from medshare.domain.models import (
    Coordinate,
    DisplayListing,
    FilterValues,
    MedicineFilters,
    MedicineListing,
)
from medshare.repository.medicines import MedicineRepository

_IS_FREE = {"free": True, "paid": False, "all": None}


def to_repository_filters(values: FilterValues, location: Coordinate | None) -> MedicineFilters:
    return MedicineFilters(
        is_free=_IS_FREE[values.type],
        category=values.category,
        sort_by=values.sort_by,
        distance=values.distance,
        lat=location.lat if location else None,
        lng=location.lng if location else None,
    )


def format_price(price: float | None, currency_symbol: str) -> str | None:
    if price is None:
        return None
    # Shown as stored: whole amounts drop the ".0", nothing is rounded.
    amount = str(int(price)) if float(price).is_integer() else repr(float(price))
    return f"{currency_symbol}{amount}"


def to_display(listing: MedicineListing, *, currency_symbol: str) -> DisplayListing:
    return DisplayListing(
        id=listing.id,
        name=listing.name,
        description=listing.description,
        image=listing.image_url,
        expiry=listing.expiry,
        distance=format_distance(listing.distance) if listing.distance is not None else "Distance unknown",
        is_free=listing.is_free,
        price=None if listing.is_free else format_price(listing.price, currency_symbol),
        locality=listing.locality,
        category=listing.category,
    )


@dataclass
class PipelineResult:
    listings: list[DisplayListing] = field(default_factory=list)
    error: str | None = None
    is_fallback: bool = False


class ListingPipeline:
    def __init__(self, repository: MedicineRepository, *, currency_symbol: str = "₹"):
        self._repository = repository
        self._currency_symbol = currency_symbol

    async def run(self, query: str, values: FilterValues, location: Coordinate | None) -> PipelineResult:
        result = await self._repository.list_medicines(query, to_repository_filters(values, location))
        return PipelineResult(
            listings=[to_display(m, currency_symbol=self._currency_symbol) for m in result.data],
            error=result.error,
            is_fallback=result.is_fallback,
        )

    async def featured(self, limit: int) -> PipelineResult:
        result = await self._repository.get_featured_medicines(limit)
        return PipelineResult(
            listings=[to_display(m, currency_symbol=self._currency_symbol) for m in result.data],
            error=result.error,
            is_fallback=result.is_fallback,
        )
