from typing import Tuple

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """
    SQLite has no row locks and drops FOR UPDATE. Taking the write lock at
    BEGIN serializes units instead of letting two readers race to upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # stop the driver from issuing its own BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_and_sessionmaker(
    database_url: str, echo: bool = False
) -> Tuple[AsyncEngine, async_sessionmaker]:
    """
    Build the async engine and its session factory.

    The caller owns the engine and must dispose it on shutdown.
    """
    engine = create_async_engine(database_url, echo=echo, future=True)
    if engine.dialect.name == "sqlite":
        _use_immediate_transactions(engine)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    return engine, session_factory
