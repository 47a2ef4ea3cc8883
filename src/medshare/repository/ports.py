"""
Persistence port.

The repository never talks to a concrete backend; it receives one `MedicineStore`
built at process start (`build_store`) and passed in explicitly. Stores return raw
row dicts, the repository owns validation and ranking.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

Row = dict[str, Any]


@dataclass(frozen=True)
class ListingQuery:
    """What to fetch from the `medicines` table, already in store terms."""

    name_contains: str = ""
    is_free: bool | None = None
    category: str | None = None
    user_id: str | None = None
    order_by: Literal["created_at", "expiry"] = "created_at"
    descending: bool = True
    limit: int | None = None


class MedicineStore(ABC):
    @abstractmethod
    async def query(self, query: ListingQuery) -> list[Row]: ...

    @abstractmethod
    async def get(self, medicine_id: str) -> Row | None: ...

    @abstractmethod
    async def insert(self, row: Row) -> Row:
        """Insert a listing; the store assigns `id` and `created_at`."""

    @abstractmethod
    async def delete(self, medicine_id: str) -> None: ...

    @abstractmethod
    async def upload(self, path: str, content: bytes, *, content_type: str) -> str:
        """Store an image and return its public URL."""

    @abstractmethod
    async def save(self, user_id: str, medicine_id: str) -> None:
        """Bookmark a listing; a duplicate raises `BackendError(code="23505")`."""

    @abstractmethod
    async def unsave(self, user_id: str, medicine_id: str) -> None: ...

    @abstractmethod
    async def is_saved(self, user_id: str, medicine_id: str) -> bool: ...

    @abstractmethod
    async def saved_for_user(self, user_id: str) -> list[Row]:
        """Saved listings as medicine rows with an extra `saved_at` key."""
