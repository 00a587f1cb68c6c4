from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from taskflow.config import SETTINGS

Base = declarative_base()


def enable_sqlite_foreign_keys(target: Engine) -> None:
    if target.dialect.name != "sqlite":
        return

    @event.listens_for(target, "connect")
    def _set_pragma(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_engine(SETTINGS.database_url, pool_pre_ping=True)
enable_sqlite_foreign_keys(engine)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_db() -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def create_schema(bind: Engine = engine) -> None:
    # Alembic owns the schema in deployed databases; this is for local SQLite files.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind)
