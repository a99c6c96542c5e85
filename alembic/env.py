from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context

import graphstore.config as graphstore_config
from graphstore.models import Base

config = context.config

# init_db() passes the URL explicitly; the CLI falls back to the environment.
if not config.get_main_option("sqlalchemy.url"):
    graphstore_config.validate_and_prepare_config()
    config.set_main_option("sqlalchemy.url", graphstore_config.DATABASE_URL)

# Interpret the config file for Python logging, but leave the
# application's logging alone when called from init_db().
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL without a DBAPI)."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
