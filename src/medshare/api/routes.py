"""
API routes.

Endpoints:
- GET    `/api/settings`: public settings for the web UI (categories, currency, default filters).
- GET    `/api/medicines`: listing pipeline (search + filters + distance ranking).
- GET    `/api/medicines/featured`: most recent listings for the landing page.
- GET    `/api/medicines/{id}`: listing detail, optionally with distance from the viewer.
- POST   `/api/medicines`: donate (multipart form + image).
- DELETE `/api/medicines/{id}`: owner removes a listing.
- GET    `/api/me/donations`, `/api/me/saved`; PUT/DELETE `/api/me/saved/{id}`.
- GET    `/api/profiles/{user_id}`; PATCH `/api/me/profile`; POST `/api/me/avatar`.
- POST   `/api/auth/sign-up`, `/api/auth/sign-in`, `/api/auth/sign-out`.

Backend failures, not-found lookups and ownership errors are mapped to HTTP
responses by the handlers registered in `medshare.api.app`.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from pydantic import BaseModel, ValidationError

from medshare.backend.client import SupabaseClient
from medshare.config.settings import Settings
from medshare.domain.models import (
    Coordinate,
    DisplayListing,
    FilterValues,
    ListingType,
    MedicineListing,
    ProfileUpdate,
    SavedMedicine,
    SortBy,
    UserProfile,
)
from medshare.donations.submit import submit_donation
from medshare.donations.validation import DonationForm, ImageUpload, field_errors
from medshare.listing.pipeline import ListingPipeline, to_display
from medshare.repository.medicines import MedicineRepository
from medshare.repository.profiles import ProfileService

from .deps import (
    AuthUser,
    get_app_settings,
    get_backend,
    get_current_user,
    get_pipeline,
    get_profiles,
    get_repository,
    get_user_repository,
)

router = APIRouter(prefix="/api")


class ListingsResponse(BaseModel):
    results: list[DisplayListing]
    error: str | None = None
    is_fallback: bool = False
    filters: FilterValues | None = None


class MedicineDetail(BaseModel):
    medicine: MedicineListing
    card: DisplayListing


class Credentials(BaseModel):
    email: str
    password: str


def _viewer(lat: float | None, lng: float | None) -> Coordinate | None:
    if lat is None or lng is None:
        return None
    return Coordinate(lat=lat, lng=lng)


async def _read_image(upload: UploadFile) -> ImageUpload:
    return ImageUpload(
        filename=upload.filename or "upload",
        content_type=upload.content_type or "",
        content=await upload.read(),
    )


@router.get("/settings")
def get_public_settings(settings: Settings = Depends(get_app_settings)) -> dict:
    """Settings the web UI needs (no credentials)."""
    return {
        "app_name": settings.app.name,
        "backend_mode": settings.backend.mode,
        "categories": settings.categories,
        "currency_symbol": settings.listing.currency_symbol,
        "featured_limit": settings.repository.featured_limit,
        "default_filters": FilterValues(distance=settings.listing.default_distance_km).model_dump(),
        "uploads": settings.uploads.model_dump(),
    }


@router.get("/medicines", response_model=ListingsResponse)
async def list_medicines(
    q: str = "",
    type: ListingType = "all",
    sort_by: SortBy = "distance",
    category: str | None = None,
    distance: float = Query(10, ge=0),
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    pipeline: ListingPipeline = Depends(get_pipeline),
) -> ListingsResponse:
    """Search and filter listings; never fails, errors travel in `error`."""
    values = FilterValues(
        type=type,
        sort_by=sort_by,
        category=category or None,
        categories=[category] if category else [],
        distance=distance,
    )
    result = await pipeline.run(q, values, _viewer(lat, lng))
    return ListingsResponse(
        results=result.listings,
        error=result.error,
        is_fallback=result.is_fallback,
        filters=values,
    )


@router.get("/medicines/featured", response_model=ListingsResponse)
async def featured_medicines(
    limit: int | None = Query(None, ge=1, le=50),
    pipeline: ListingPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> ListingsResponse:
    result = await pipeline.featured(limit or settings.repository.featured_limit)
    return ListingsResponse(results=result.listings, error=result.error, is_fallback=result.is_fallback)


@router.get("/medicines/{medicine_id}", response_model=MedicineDetail)
async def get_medicine(
    medicine_id: str,
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    repository: MedicineRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
) -> MedicineDetail:
    medicine = await repository.get_medicine(medicine_id, viewer=_viewer(lat, lng))
    return MedicineDetail(
        medicine=medicine,
        card=to_display(medicine, currency_symbol=settings.listing.currency_symbol),
    )


@router.post("/medicines", response_model=MedicineListing, status_code=201)
async def donate_medicine(
    name: str = Form(...),
    description: str = Form(...),
    expiry: str = Form(...),
    category: str = Form(...),
    locality: str = Form(...),
    is_free: bool = Form(...),
    price: str | None = Form(None),
    latitude: str | None = Form(None),
    longitude: str | None = Form(None),
    image: UploadFile = File(...),
    user: AuthUser = Depends(get_current_user),
    repository: MedicineRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_app_settings),
) -> MedicineListing:
    """Create a listing: fields and image are validated before anything is uploaded."""
    try:
        form = DonationForm.model_validate(
            {
                "name": name,
                "description": description,
                "expiry": expiry,
                "category": category,
                "locality": locality,
                "is_free": is_free,
                "price": price,
                "latitude": latitude,
                "longitude": longitude,
            }
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"code": "VALIDATION_ERROR", "fields": field_errors(e)},
        ) from e

    return await submit_donation(
        store=repository.store,
        form=form,
        image=await _read_image(image),
        user_id=user.id,
        uploads=settings.uploads,
    )


@router.delete("/medicines/{medicine_id}", status_code=204)
async def delete_medicine(
    medicine_id: str,
    user: AuthUser = Depends(get_current_user),
    repository: MedicineRepository = Depends(get_user_repository),
) -> Response:
    await repository.delete_medicine(medicine_id, user_id=user.id)
    return Response(status_code=204)


@router.get("/medicines/{medicine_id}/saved")
async def is_medicine_saved(
    medicine_id: str,
    user: AuthUser = Depends(get_current_user),
    repository: MedicineRepository = Depends(get_user_repository),
) -> dict:
    return {"is_saved": await repository.is_medicine_saved(user.id, medicine_id)}


@router.get("/me/donations", response_model=list[MedicineListing])
async def my_donations(
    user: AuthUser = Depends(get_current_user),
    repository: MedicineRepository = Depends(get_user_repository),
) -> list[MedicineListing]:
    return await repository.get_user_donations(user.id)


@router.get("/me/saved", response_model=list[SavedMedicine])
async def my_saved_medicines(
    user: AuthUser = Depends(get_current_user),
    repository: MedicineRepository = Depends(get_user_repository),
) -> list[SavedMedicine]:
    return await repository.get_user_saved_medicines(user.id)


@router.put("/me/saved/{medicine_id}", status_code=204)
async def save_medicine(
    medicine_id: str,
    user: AuthUser = Depends(get_current_user),
    repository: MedicineRepository = Depends(get_user_repository),
) -> Response:
    await repository.get_medicine(medicine_id)
    await repository.save_medicine(user.id, medicine_id)
    return Response(status_code=204)


@router.delete("/me/saved/{medicine_id}", status_code=204)
async def unsave_medicine(
    medicine_id: str,
    user: AuthUser = Depends(get_current_user),
    repository: MedicineRepository = Depends(get_user_repository),
) -> Response:
    await repository.unsave_medicine(user.id, medicine_id)
    return Response(status_code=204)


@router.get("/profiles/{user_id}", response_model=UserProfile)
async def get_profile(user_id: str, profiles: ProfileService = Depends(get_profiles)) -> UserProfile:
    return await profiles.get_user_profile(user_id)


@router.patch("/me/profile", response_model=UserProfile)
async def update_profile(
    updates: ProfileUpdate,
    user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profiles),
) -> UserProfile:
    return await profiles.update_user_profile(user.access_token, updates)


@router.post("/me/avatar")
async def upload_avatar(
    image: UploadFile = File(...),
    user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profiles),
) -> dict:
    url = await profiles.upload_profile_image(user.access_token, user.id, await _read_image(image))
    return {"avatar_url": url}


@router.post("/auth/sign-up")
async def sign_up(credentials: Credentials, backend: SupabaseClient = Depends(get_backend)) -> dict[str, Any]:
    return await backend.auth.sign_up(credentials.email, credentials.password)


@router.post("/auth/sign-in")
async def sign_in(credentials: Credentials, backend: SupabaseClient = Depends(get_backend)) -> dict[str, Any]:
    # Session is returned to the caller, not kept on the shared client.
    return await backend.as_user(backend.anon_key).auth.sign_in_with_password(
        credentials.email, credentials.password
    )


@router.post("/auth/sign-out", status_code=204)
async def sign_out(
    user: AuthUser = Depends(get_current_user),
    backend: SupabaseClient = Depends(get_backend),
) -> Response:
    await backend.auth.sign_out(user.access_token)
    return Response(status_code=204)
