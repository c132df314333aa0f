"""Configuration defaults, overridable through the environment."""

from __future__ import annotations

import os

import structlog

logger = structlog.get_logger(__name__)

# Environment variable names
ENV_PAGE_SIZE = "EDGEMAP_PAGE_SIZE"
ENV_MAP_SIZE = "EDGEMAP_MAP_SIZE"
ENV_DEBUG = "EDGEMAP_DEBUG"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            "invalid integer in environment, using default",
            variable=name,
            value=raw,
            default=default,
        )
        return default


# Edges fetched per range scan while iterating the whole graph
DEFAULT_PAGE_SIZE = _env_int(ENV_PAGE_SIZE, 100)

# LMDB map size (upper bound of the database file), 1GB default
DEFAULT_MAP_SIZE = _env_int(ENV_MAP_SIZE, 1024**3)

# LMDB's compiled-in key limit (mdb_env_get_maxkeysize)
MAX_KEY_SIZE = 511

# Private stores are created as <tmpdir>/<prefix><uuid>
TEMP_DIR_PREFIX = "edgemap-"


def debug_enabled() -> bool:
    """Whether EDGEMAP_DEBUG asks for debug logging."""
    return os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes")
