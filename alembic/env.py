"""Alembic environment for the schema pool registry.

Runs against the environment named by PHANTM_ENV, or the active one.
The version table lives in the ``common`` schema next to schema_pool.
"""
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool, text

from phantm.database import Base, build_database_url
from phantm.models import SchemaPool  # noqa: F401
from phantm.models.schema_pool import POOL_SCHEMA
from phantm.services.environment_store import EnvironmentStore

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url():
    _, env = EnvironmentStore().resolve(os.getenv("PHANTM_ENV"))
    return build_database_url(env)


def include_object(obj, name, type_, reflected, compare_to):
    # Tenant schemas are not managed here
    if type_ == "table":
        return obj.schema == POOL_SCHEMA
    return True


def run_migrations_offline() -> None:
    context.configure(
        url=get_url().render_as_string(hide_password=False),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        version_table_schema=POOL_SCHEMA,
        include_schemas=True,
        include_object=include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        connection.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{POOL_SCHEMA}"'))
        connection.commit()

        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            version_table_schema=POOL_SCHEMA,
            include_schemas=True,
            include_object=include_object,
        )
        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
