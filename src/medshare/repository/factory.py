"""Build the process-wide store from settings."""

from __future__ import annotations

import logging

from medshare.backend.client import SupabaseClient
from medshare.config.settings import Settings
from medshare.repository.memory import MemoryMedicineStore
from medshare.repository.ports import MedicineStore
from medshare.repository.samples import SAMPLE_ROWS
from medshare.repository.supabase_store import SupabaseMedicineStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings, client: SupabaseClient | None = None) -> MedicineStore:
    if settings.backend.mode == "memory":
        logger.info("Using in-memory store seeded with %d sample listings", len(SAMPLE_ROWS))
        return MemoryMedicineStore(SAMPLE_ROWS)
    return SupabaseMedicineStore(client or SupabaseClient.from_settings(settings), settings.backend)
