from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlmodel import SQLModel

# alembic.ini puts backend/ on sys.path (prepend_sys_path)
from vidhub.database import DATABASE_URL, import_models

import_models()

if context.config.config_file_name:
    fileConfig(context.config.config_file_name)

target_metadata = SQLModel.metadata

# An explicit sqlalchemy.url (programmatic runs) wins over the app setting
url = context.config.get_main_option("sqlalchemy.url") or DATABASE_URL

# SQLite cannot ALTER most columns in place
render_as_batch = url.startswith("sqlite")


if context.is_offline_mode():
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=render_as_batch,
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    connectable = create_engine(url, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=render_as_batch)
        with context.begin_transaction():
            context.run_migrations()
