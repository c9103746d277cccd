import logging

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def use_unicode_lower(engine):
    """Replace SQLite's ASCII-only lower() so case-insensitive matching covers accented letters"""
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine, "connect")
    def register_lower(dbapi_connection, connection_record):
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)

    return engine


# check_same_thread is only meaningful for SQLite
engine_args = {"connect_args": {"check_same_thread": False}} if DATABASE_URL.startswith("sqlite") else {}
engine = use_unicode_lower(create_engine(DATABASE_URL, echo=SQL_ECHO, **engine_args))


def create_db_and_tables():
    """Create all tables registered on the SQLModel metadata"""
    # Registers the table models on the metadata
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency yielding one session per request"""
    with Session(engine) as session:
        yield session


def ping_store(session: Session) -> bool:
    """Return True when the store answers a trivial query"""
    try:
        session.connection().execute(text("SELECT 1")).scalar_one()
        return True
    except SQLAlchemyError as e:
        logger.error(f"Store ping failed: {str(e)}")
        session.rollback()
        return False


def describe_store(session: Session) -> dict:
    """Dialect and host of the store behind this session, without credentials"""
    url = session.get_bind().url
    return {"name": url.get_backend_name(), "host": url.host or url.database}
