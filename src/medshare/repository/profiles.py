"""
Donor profiles.

Profile data lives with the auth user (GoTrue metadata); the backend exposes it to
other users through the `get_user_info` RPC, with the `auth_users_info` view as a
second route. A donor's listing count comes from the `get_user_donation_count` RPC
and degrades to 0 when that call fails (a profile without a count is still useful).
"""

from __future__ import annotations

import json
import logging
from pathlib import PurePosixPath
from typing import Any

from medshare.backend.client import BackendError, SupabaseClient
from medshare.config.settings import BackendSettings, UploadSettings
from medshare.domain.models import ProfileUpdate, UserProfile
from medshare.donations.validation import ImageUpload, validate_image

logger = logging.getLogger(__name__)


class ProfileNotFound(LookupError):
    """Neither the RPC, the view nor the caller's own session know this user."""


def _profile_from_info(info: dict[str, Any], total_donations: int) -> UserProfile:
    email = info.get("email") or ""
    return UserProfile(
        id=str(info["id"]),
        email=email,
        display_name=info.get("display_name") or email or "Anonymous User",
        phone_number=info.get("phone_number") or "",
        address=info.get("address") or "",
        avatar_url=info.get("avatar_url") or "",
        created_at=info.get("created_at"),
        updated_at=info.get("updated_at"),
        total_donations=total_donations,
    )


def _profile_from_auth_user(user: dict[str, Any], total_donations: int) -> UserProfile:
    meta = user.get("user_metadata") or {}
    email = user.get("email") or ""
    return UserProfile(
        id=str(user["id"]),
        email=email,
        display_name=meta.get("full_name") or email,
        phone_number=meta.get("phone_number") or "",
        address=meta.get("address") or "",
        avatar_url=meta.get("avatar_url") or "",
        created_at=user.get("created_at"),
        total_donations=total_donations,
    )


class ProfileService:
    def __init__(self, client: SupabaseClient, backend: BackendSettings, uploads: UploadSettings):
        self._client = client
        self._backend = backend
        self._uploads = uploads

    async def donation_count(self, user_id: str) -> int:
        try:
            count = await self._client.rpc("get_user_donation_count", {"user_id": user_id})
        except BackendError as e:
            logger.warning("Donation count unavailable for %s: %s", user_id, e)
            return 0
        return int(count or 0)

    async def _user_info(self, user_id: str) -> dict[str, Any] | None:
        try:
            info = await self._client.rpc("get_user_info", {"user_id": user_id})
            if isinstance(info, str):
                info = json.loads(info)
            if isinstance(info, list):
                info = info[0] if info else None
            if isinstance(info, dict) and info.get("id"):
                return info
        except BackendError as e:
            logger.warning("get_user_info failed for %s, trying %s: %s", user_id, self._backend.user_info_view, e)

        try:
            return await (
                self._client.table(self._backend.user_info_view).select("*").eq("id", user_id).maybe_single().execute()
            )
        except BackendError as e:
            logger.warning("User info view lookup failed for %s: %s", user_id, e)
            return None

    async def get_user_profile(self, user_id: str, *, access_token: str | None = None) -> UserProfile:
        """Profile plus donation count.

        When both lookups miss and the caller is the user themselves, their own auth
        record is used instead.
        """
        info = await self._user_info(user_id)
        if info is not None:
            return _profile_from_info(info, await self.donation_count(user_id))

        if access_token:
            user = await self._client.auth.get_user(access_token)
            if str(user.get("id")) == user_id:
                return _profile_from_auth_user(user, await self.donation_count(user_id))

        raise ProfileNotFound(f"Profile '{user_id}' not found")

    async def update_user_profile(self, access_token: str, updates: ProfileUpdate) -> UserProfile:
        metadata = {
            "full_name": updates.display_name,
            "phone_number": updates.phone_number,
            "address": updates.address,
            "avatar_url": updates.avatar_url,
        }
        user = await self._client.auth.update_user(
            access_token, {k: v for k, v in metadata.items() if v is not None}
        )
        logger.info("Profile %s updated", user.get("id"))
        return _profile_from_auth_user(user, await self.donation_count(str(user.get("id"))))

    async def upload_profile_image(self, access_token: str, user_id: str, image: ImageUpload) -> str:
        """Replace the user's avatar and point their metadata at it; returns the public URL."""
        validate_image(image, self._uploads)

        bucket = self._client.as_user(access_token).storage(self._backend.avatar_bucket)
        existing = await bucket.list(user_id)
        await bucket.remove([f"{user_id}/{f['name']}" for f in existing if f.get("name")])

        ext = PurePosixPath(image.filename).suffix.lstrip(".").lower() or "img"
        path = f"{user_id}/avatar.{ext}"
        await bucket.upload(path, image.content, content_type=image.content_type, upsert=True)
        url = bucket.get_public_url(path)

        try:
            await self._client.auth.update_user(access_token, {"avatar_url": url})
        except BackendError as e:
            # The image is stored; only the metadata pointer is stale.
            logger.error("Avatar uploaded but metadata update failed for %s: %s", user_id, e)
        return url
