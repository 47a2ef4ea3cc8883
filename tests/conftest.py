from __future__ import annotations

import pytest

from medshare.config.settings import get_settings
from medshare.core.env import load_dotenv_if_present


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    # Settings are cached per process; keep env-driven tests from leaking into each other.
    for name in (
        "MEDSHARE_CONFIG_PATH",
        "MEDSHARE_LOG_LEVEL",
        "MEDSHARE_BACKEND_MODE",
        "MEDSHARE_ENV_FILE",
        "MEDSHARE_SAMPLE_FALLBACK",
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    load_dotenv_if_present.cache_clear()
    yield
    get_settings.cache_clear()
    load_dotenv_if_present.cache_clear()
