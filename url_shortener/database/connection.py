"""
Database engine and session wiring.

The engine owns the connection pool shared by every request and by the
analytics worker. Nothing here is created at import time: the service
container builds one engine per application.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def build_engine(database_url: str, pool_size: int = 20, max_overflow: int = 10, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for the given URL.

    SQLite gets the pysqlite transaction fix from the SQLAlchemy docs:
    the driver's own BEGIN handling is disabled and BEGIN is emitted
    explicitly, which SAVEPOINT needs to behave inside a batch flush.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """Sessions keep loaded attributes after commit so rows can leave the session."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
