# migrations/env.py
from __future__ import annotations

from logging.config import fileConfig
import sys
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from app.core.config import settings
from app.db.session import Base

# Importar todos los modelos para poblar Base.metadata.
from app.models import user       # noqa: F401  # User, Role, Permission
from app.models import promotion  # noqa: F401  # Promotion

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Alembic always runs on a sync driver.
alembic_url = settings.DATABASE_URL
if alembic_url.startswith("postgresql+asyncpg"):
    alembic_url = alembic_url.replace("+asyncpg", "+psycopg")
elif alembic_url.startswith("postgresql://"):
    alembic_url = alembic_url.replace("postgresql://", "postgresql+psycopg://", 1)

config.set_main_option("sqlalchemy.url", alembic_url)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations without an Engine, emitting SQL to stdout."""
    context.configure(
        url=alembic_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=alembic_url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
