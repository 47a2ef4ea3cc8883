"""
In-process store.

Mirrors the PostgREST semantics the repository relies on (case-insensitive name
match, equality filters, single-column ordering, limit) over a list of row dicts.
Selected with `backend.mode: memory`; tests use it as a deterministic fixture.
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from medshare.backend.client import UNIQUE_VIOLATION, BackendError
from medshare.repository.ports import ListingQuery, MedicineStore, Row


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _order_key(column: str, value: Any) -> Any:
    # Only timestamps are parsed; expiry is free text and orders as stored.
    if column == "created_at" and isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


class MemoryMedicineStore(MedicineStore):
    def __init__(self, rows: Iterable[Row] = (), *, public_url_base: str = "memory://medicines"):
        self._rows: list[Row] = [copy.deepcopy(dict(r)) for r in rows]
        self._saved: dict[tuple[str, str], str] = {}
        self._objects: dict[str, bytes] = {}
        self._public_url_base = public_url_base.rstrip("/")

    @property
    def objects(self) -> dict[str, bytes]:
        """Uploaded objects by path (read-only view for inspection)."""
        return dict(self._objects)

    async def query(self, query: ListingQuery) -> list[Row]:
        needle = query.name_contains.casefold()
        rows = [
            r
            for r in self._rows
            if needle in str(r.get("name") or "").casefold()
            and (query.is_free is None or r.get("is_free") is query.is_free)
            and (query.category is None or r.get("category") == query.category)
            and (query.user_id is None or r.get("user_id") == query.user_id)
        ]

        # Rows missing the sort column go last in both directions.
        present = [r for r in rows if r.get(query.order_by) is not None]
        missing = [r for r in rows if r.get(query.order_by) is None]
        present.sort(key=lambda r: _order_key(query.order_by, r[query.order_by]), reverse=query.descending)
        ordered = present + missing

        if query.limit is not None:
            ordered = ordered[: query.limit]
        return [copy.deepcopy(r) for r in ordered]

    async def get(self, medicine_id: str) -> Row | None:
        for r in self._rows:
            if r.get("id") == medicine_id:
                return copy.deepcopy(r)
        return None

    async def insert(self, row: Row) -> Row:
        stored = {**row, "id": str(uuid.uuid4()), "created_at": _now_iso()}
        self._rows.append(stored)
        return copy.deepcopy(stored)

    async def delete(self, medicine_id: str) -> None:
        self._rows = [r for r in self._rows if r.get("id") != medicine_id]
        self._saved = {k: v for k, v in self._saved.items() if k[1] != medicine_id}

    async def upload(self, path: str, content: bytes, *, content_type: str) -> str:
        self._objects[path] = bytes(content)
        return f"{self._public_url_base}/{path}"

    async def save(self, user_id: str, medicine_id: str) -> None:
        key = (user_id, medicine_id)
        if key in self._saved:
            raise BackendError("duplicate key value violates unique constraint", code=UNIQUE_VIOLATION, status=409)
        self._saved[key] = _now_iso()

    async def unsave(self, user_id: str, medicine_id: str) -> None:
        self._saved.pop((user_id, medicine_id), None)

    async def is_saved(self, user_id: str, medicine_id: str) -> bool:
        return (user_id, medicine_id) in self._saved

    async def saved_for_user(self, user_id: str) -> list[Row]:
        out: list[Row] = []
        for (uid, medicine_id), saved_at in self._saved.items():
            if uid != user_id:
                continue
            row = await self.get(medicine_id)
            if row is not None:
                out.append({**row, "saved_at": saved_at})
        return out
