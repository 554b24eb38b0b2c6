# migrations/env.py

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from backoffice.core.config import settings
from backoffice.database.database import Base

# Todos los modelos deben importarse para quedar registrados en Base.metadata
import backoffice.modules.staff.models           # noqa: F401
import backoffice.modules.catalog.models         # noqa: F401
import backoffice.modules.sequences.models       # noqa: F401
import backoffice.modules.inventory.models       # noqa: F401
import backoffice.modules.prices.models          # noqa: F401
import backoffice.modules.tables.models           # noqa: F401
import backoffice.modules.orders.models          # noqa: F401
import backoffice.modules.cash_registers.models  # noqa: F401
import backoffice.modules.invoices.models        # noqa: F401
import backoffice.modules.cxc.models             # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.database_url)


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,  # sin pool: conexión abierta solo durante la migración
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
