import logging
import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from vidhub.errors import InternalError

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./vidhub.db")
STORE_TIMEOUT_SECONDS = int(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

_is_sqlite = DATABASE_URL.startswith("sqlite")
_echo = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")

if _is_sqlite:
    _connect_args = {"check_same_thread": False, "timeout": STORE_TIMEOUT_SECONDS}
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
else:
    # Postgres: abort any single statement that outlives the request budget
    _connect_args = {"options": f"-c statement_timeout={STORE_TIMEOUT_SECONDS * 1000}"}

engine: Engine = create_engine(
    DATABASE_URL,
    echo=_echo,
    connect_args=_connect_args,
    pool_pre_ping=not _is_sqlite,
)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def import_models() -> None:
    """Register every table with SQLModel metadata"""
    from vidhub.models.comment import Comment  # noqa: F401
    from vidhub.models.identity import Identity  # noqa: F401
    from vidhub.models.playlist import Playlist  # noqa: F401
    from vidhub.models.reaction import Reaction  # noqa: F401
    from vidhub.models.session_record import SessionRecord  # noqa: F401
    from vidhub.models.subscription import Subscription  # noqa: F401
    from vidhub.models.video import Video  # noqa: F401


def init_db(bind: Engine = None) -> None:
    """Create all tables and verify the store answers"""
    bind = bind or engine
    import_models()
    try:
        SQLModel.metadata.create_all(bind)
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.exception("Store unreachable at %s", bind.url.render_as_string(hide_password=True))
        raise InternalError("Store is unreachable") from exc
    logger.info("Store ready: %s", bind.url.render_as_string(hide_password=True))


def close_db(bind: Engine = None) -> None:
    """Drain pooled connections and release the engine"""
    bind = bind or engine
    bind.dispose()
    logger.info("Store connections released")
