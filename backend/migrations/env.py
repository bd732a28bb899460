"""Alembic environment for the batch installer schema.

The database URL comes from DATABASE_URL (a .env file is honoured), falling
back to alembic.ini and finally a local SQLite file.
"""
from __future__ import annotations
from logging.config import fileConfig
import os, sys

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from batch_installer.models.authz import Base  # noqa: E402
# every model module must be imported so autogenerate sees its table
import batch_installer.models.audit  # noqa: F401,E402
import batch_installer.models.repository  # noqa: F401,E402
import batch_installer.models.installed_plugin  # noqa: F401,E402

load_dotenv()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

db_url = os.getenv('DATABASE_URL') or config.get_main_option('sqlalchemy.url') or 'sqlite:///dev.db'
config.set_main_option('sqlalchemy.url', db_url)

target_metadata = Base.metadata


def run_migrations_offline():
    context.configure(url=db_url, target_metadata=target_metadata, literal_binds=True, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        # batch mode: SQLite cannot ALTER constraints in place
        context.configure(connection=connection, target_metadata=target_metadata,
                          render_as_batch=True, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
