import logging
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./canteen.db")

Base = declarative_base()


def make_engine(url: str, **kwargs) -> Engine:
    """Build an engine for ``url``. SQLite connections get foreign keys switched on."""
    if not url.startswith("sqlite"):
        return create_engine(url, future=True, **kwargs)

    # requests are served from a threadpool, so one connection may cross threads
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True, **kwargs)

    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_db(bind: Engine) -> None:
    # No migration tooling: existing tables are left as they are
    from . import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=bind)
    logger.debug("tables ready on %s", bind.url.render_as_string(hide_password=True))


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
