# common/database.py
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()

_engine = None
_session_factory = None


def configure(database_url=None):
    """
    Bind the session factory to a database.

    :param database_url: SQLAlchemy URL; falls back to DATABASE_URL. Empty disables the audit table.
    :return: the engine, or None when disabled
    """
    global _engine, _session_factory

    if database_url is None:
        database_url = os.getenv("DATABASE_URL", "")

    if _engine is not None:
        _engine.dispose()
    _engine, _session_factory = None, None

    if not database_url:
        return None

    engine_kwargs = {"pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        engine_kwargs["pool_recycle"] = 3600

    _engine = create_engine(database_url, **engine_kwargs)
    _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine


def get_session_factory():
    return _session_factory

