"""
Database initialization and migration helpers.
"""

from __future__ import annotations

import os
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

import graphstore.config as config


class DB:
    """Database state holder (avoids global scoping issues)."""

    engine = None
    SessionLocal = None


def _get_alembic_config():
    try:
        from alembic.config import Config
    except ImportError as exc:
        raise RuntimeError("Alembic is required for migrations") from exc

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    alembic_cfg = Config(os.path.join(base_dir, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(base_dir, "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", config.DATABASE_URL)
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg


def get_schema_revisions(engine) -> tuple[Optional[str], Optional[str]]:
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    alembic_cfg = _get_alembic_config()
    script = ScriptDirectory.from_config(alembic_cfg)
    head_revision = script.get_current_head()
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        current_revision = context.get_current_revision()
    return current_revision, head_revision


def _ensure_schema_up_to_date(engine) -> None:
    from alembic import command

    current_rev, head_rev = get_schema_revisions(engine)
    if current_rev == head_rev:
        return

    if config.AUTO_MIGRATE_ON_STARTUP:
        alembic_cfg = _get_alembic_config()
        command.upgrade(alembic_cfg, "head")
        new_current, _ = get_schema_revisions(engine)
        if new_current != head_rev:
            raise RuntimeError("Database migration did not reach expected revision")
    else:
        raise RuntimeError(
            f"Database schema out of date (current={current_rev}, expected={head_rev}). "
            "Run 'alembic upgrade head' or set AUTO_MIGRATE_ON_STARTUP=true for dev."
        )


def _unicode_lower(value):
    if value is None:
        return None
    return str(value).lower()


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    # ILIKE compiles to lower() LIKE lower() on SQLite, whose built-in lower() is ASCII-only.
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def create_db_engine(url: str):
    """Create an engine with the pool and pragma settings the store relies on."""
    engine_kwargs = {"pool_pre_ping": True}
    is_sqlite = url.lower().startswith("sqlite")
    if is_sqlite:
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    engine = create_engine(url, **engine_kwargs)
    if is_sqlite:
        event.listen(engine, "connect", _configure_sqlite_connection)
    return engine


def init_db() -> None:
    """Initialize database connection and bring the schema to head."""
    config.validate_and_prepare_config()

    config.logger.info("Connecting to database...")
    DB.engine = create_db_engine(config.DATABASE_URL)
    DB.SessionLocal = sessionmaker(bind=DB.engine, expire_on_commit=False)

    _ensure_schema_up_to_date(DB.engine)

    config.logger.info("Database initialized")


def dispose_db() -> None:
    if DB.engine is not None:
        DB.engine.dispose()
    DB.engine = None
    DB.SessionLocal = None
