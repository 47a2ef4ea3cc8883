"""
`.env` loading.

Developers keep their Supabase URL/anon key in a repo-local `.env` file; uvicorn,
pytest and the CLI should all pick it up regardless of the working directory.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import find_dotenv, load_dotenv


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load `.env` once if present; returns the loaded env path (or None).

    `MEDSHARE_ENV_FILE` names the file explicitly; otherwise the nearest `.env`
    above the working directory is used. Never overrides env vars already set.
    """
    explicit = os.getenv("MEDSHARE_ENV_FILE")
    if explicit:
        env_path = Path(explicit).expanduser().resolve()
    else:
        found = find_dotenv(usecwd=True)
        if not found:
            return None
        env_path = Path(found)

    if not env_path.is_file():
        return None
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path
