"""
Store backed by the hosted Supabase project.

Translates `ListingQuery` into a PostgREST request on the `medicines` table and keeps
bookmarks in the `saved_medicines` join table (`user_id`, `medicine_id`, `saved_at`).
Images go to the `medicines` storage bucket and are served by public URL.
"""

from __future__ import annotations

import logging

from medshare.backend.client import SupabaseClient
from medshare.config.settings import BackendSettings
from medshare.repository.ports import ListingQuery, MedicineStore, Row

logger = logging.getLogger(__name__)


class SupabaseMedicineStore(MedicineStore):
    def __init__(self, client: SupabaseClient, settings: BackendSettings):
        self._client = client
        self._settings = settings
        self._medicines = settings.medicines_table
        self._saved = settings.saved_table
        self._bucket = settings.medicine_bucket

    def for_user(self, access_token: str) -> "SupabaseMedicineStore":
        """Same store, acting with the signed-in user's token."""
        return SupabaseMedicineStore(self._client.as_user(access_token), self._settings)

    async def query(self, query: ListingQuery) -> list[Row]:
        q = self._client.table(self._medicines).select("*")
        if query.name_contains:
            q = q.ilike("name", f"%{query.name_contains}%")
        if query.is_free is not None:
            q = q.eq("is_free", query.is_free)
        if query.category:
            q = q.eq("category", query.category)
        if query.user_id:
            q = q.eq("user_id", query.user_id)
        q = q.order(query.order_by, ascending=not query.descending)
        if query.limit is not None:
            q = q.limit(query.limit)
        return await q.execute() or []

    async def get(self, medicine_id: str) -> Row | None:
        return await self._client.table(self._medicines).select("*").eq("id", medicine_id).maybe_single().execute()

    async def insert(self, row: Row) -> Row:
        data = await self._client.table(self._medicines).insert(row).execute()
        return data[0]

    async def delete(self, medicine_id: str) -> None:
        await self._client.table(self._medicines).delete().eq("id", medicine_id).execute()

    async def upload(self, path: str, content: bytes, *, content_type: str) -> str:
        bucket = self._client.storage(self._bucket)
        await bucket.upload(path, content, content_type=content_type)
        return bucket.get_public_url(path)

    async def save(self, user_id: str, medicine_id: str) -> None:
        await self._client.table(self._saved).insert(
            {"user_id": user_id, "medicine_id": medicine_id}, returning=False
        ).execute()

    async def unsave(self, user_id: str, medicine_id: str) -> None:
        await self._client.table(self._saved).delete().match(
            {"user_id": user_id, "medicine_id": medicine_id}
        ).execute()

    async def is_saved(self, user_id: str, medicine_id: str) -> bool:
        row = await self._client.table(self._saved).select("medicine_id").match(
            {"user_id": user_id, "medicine_id": medicine_id}
        ).maybe_single().execute()
        return row is not None

    async def saved_for_user(self, user_id: str) -> list[Row]:
        rows = await self._client.table(self._saved).select(
            f"medicine_id, saved_at, {self._medicines} (*)"
        ).eq("user_id", user_id).execute() or []

        out: list[Row] = []
        for r in rows:
            medicine = r.get(self._medicines)
            if not isinstance(medicine, dict):
                # Listing deleted since it was bookmarked.
                logger.debug("Skipping dangling bookmark %s", r.get("medicine_id"))
                continue
            out.append({**medicine, "saved_at": r.get("saved_at")})
        return out
