"""
Logging configuration.

The packaged `src/medshare/config/logging.yaml` is the baseline; the level comes from
settings (`MEDSHARE_LOG_LEVEL`) unless the caller passes one explicitly (CLI `--verbose`).
"""

from __future__ import annotations

import copy
import logging.config

from medshare.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> None:
    """Apply the YAML logging config with the effective level on root and all handlers."""
    # The cached mapping is shared, dictConfig must get its own copy.
    config = copy.deepcopy(get_logging_config())
    effective = (level or get_settings().app.log_level).upper()

    config.setdefault("root", {})["level"] = effective
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = effective

    logging.config.dictConfig(config)
