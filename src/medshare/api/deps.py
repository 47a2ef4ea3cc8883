"""
Dependency providers for the API.

Long-lived objects (backend client, store) are built once per process through
cached factories; tests swap them with `app.dependency_overrides`.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from medshare.backend.client import BackendError, SupabaseClient
from medshare.config.settings import Settings, get_settings
from medshare.listing.pipeline import ListingPipeline
from medshare.repository.factory import build_store
from medshare.repository.medicines import MedicineRepository
from medshare.repository.ports import MedicineStore
from medshare.repository.profiles import ProfileService
from medshare.repository.supabase_store import SupabaseMedicineStore


@lru_cache
def get_backend() -> SupabaseClient:
    return SupabaseClient.from_settings(get_settings())


@lru_cache
def get_store() -> MedicineStore:
    settings = get_settings()
    if settings.backend.mode == "memory":
        return build_store(settings)
    return build_store(settings, get_backend())


def get_app_settings() -> Settings:
    return get_settings()


def get_repository(
    store: MedicineStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> MedicineRepository:
    return MedicineRepository(store, sample_fallback=settings.repository.sample_fallback)


def get_pipeline(
    repository: MedicineRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
) -> ListingPipeline:
    return ListingPipeline(repository, currency_symbol=settings.listing.currency_symbol)


def get_profiles(
    backend: SupabaseClient = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> ProfileService:
    return ProfileService(backend, settings.backend, settings.uploads)


@dataclass(frozen=True)
class AuthUser:
    id: str
    access_token: str
    email: str = ""


def _bearer_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHENTICATED", "message": "Sign in to continue."},
        )
    return token.strip()


async def get_current_user(
    authorization: str | None = Header(default=None),
    backend: SupabaseClient = Depends(get_backend),
) -> AuthUser:
    """Resolve the bearer token to a user through the auth service."""
    token = _bearer_token(authorization)
    try:
        user = await backend.auth.get_user(token)
    except BackendError as e:
        if e.status in {401, 403}:
            raise HTTPException(
                status_code=401,
                detail={"code": "UNAUTHENTICATED", "message": e.message},
            ) from e
        raise
    if not user.get("id"):
        raise HTTPException(status_code=401, detail={"code": "UNAUTHENTICATED", "message": "Unknown user."})
    return AuthUser(id=str(user["id"]), access_token=token, email=str(user.get("email") or ""))


def get_user_repository(
    user: AuthUser = Depends(get_current_user),
    store: MedicineStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> MedicineRepository:
    """Repository whose writes run with the signed-in user's token (row-level security)."""
    if isinstance(store, SupabaseMedicineStore):
        store = store.for_user(user.access_token)
    return MedicineRepository(store, sample_fallback=settings.repository.sample_fallback)
