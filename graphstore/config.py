"""
Shared configuration for graphstore.
"""

from __future__ import annotations

import logging
import os


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


LOG_LEVEL = os.environ.get("GRAPHSTORE_LOG_LEVEL", "INFO").strip().upper()

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("graphstore")


# Database settings
DB_BACKEND = os.environ.get("DB_BACKEND", "postgres").strip().lower()
SQLITE_PATH = os.environ.get("SQLITE_PATH", "/data/graphstore.db")
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_BACKEND_EFFECTIVE = DB_BACKEND if DB_BACKEND in {"postgres", "sqlite"} else "postgres"

# Database initialization controls
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)

# Request/input limits
MAX_RESULT_LIMIT = _get_int("GRAPHSTORE_MAX_RESULT_LIMIT", 500)
MAX_TENANT_ID_LENGTH = _get_int("GRAPHSTORE_MAX_TENANT_ID_LENGTH", 100)
MAX_TYPE_LENGTH = _get_int("GRAPHSTORE_MAX_TYPE_LENGTH", 50)
MAX_EDGE_NAME_LENGTH = _get_int("GRAPHSTORE_MAX_EDGE_NAME_LENGTH", 100)
MAX_SEARCH_LENGTH = _get_int("GRAPHSTORE_MAX_SEARCH_LENGTH", 1000)
MAX_DOCUMENT_BYTES = _get_int("GRAPHSTORE_MAX_DOCUMENT_BYTES", 1_000_000)
MAX_BATCH_SIZE = _get_int("GRAPHSTORE_MAX_BATCH_SIZE", 1000)

# Behaviour switches
REINDEX_MERGED_DATA = _get_bool("GRAPHSTORE_REINDEX_MERGED_DATA", False)
AUDIT_ENABLED = _get_bool("GRAPHSTORE_AUDIT_ENABLED", True)
VALIDATE_PAYLOADS = _get_bool("GRAPHSTORE_VALIDATE_PAYLOADS", True)


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL, DB_BACKEND_EFFECTIVE

    errors = []
    if DB_BACKEND not in {"postgres", "sqlite"}:
        errors.append("DB_BACKEND must be 'postgres' or 'sqlite'")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not SQLITE_PATH:
                errors.append("SQLITE_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = f"sqlite:///{SQLITE_PATH}"
        else:
            errors.append("DATABASE_URL environment variable is required")
    else:
        is_sqlite_url = DATABASE_URL.lower().startswith("sqlite")
        if DB_BACKEND == "sqlite" and not is_sqlite_url:
            errors.append("DATABASE_URL must be a sqlite URL when DB_BACKEND=sqlite")
        if DB_BACKEND == "postgres" and is_sqlite_url:
            errors.append("DATABASE_URL must be a postgres URL when DB_BACKEND=postgres")

    if MAX_RESULT_LIMIT <= 0:
        errors.append("GRAPHSTORE_MAX_RESULT_LIMIT must be positive")

    DB_BACKEND_EFFECTIVE = DB_BACKEND if DB_BACKEND in {"postgres", "sqlite"} else "postgres"

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
