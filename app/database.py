import logging
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.exceptions import ConflictError, DatabaseError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def install_sqlite_foreign_keys(engine) -> None:
    """
    Register a ``connect`` event listener on *engine* that turns on
    foreign-key enforcement for every new SQLite connection.

    SQLite ignores ``FOREIGN KEY`` clauses unless the pragma is set per
    connection, so without it deleting a user who still owns posts would
    silently succeed.
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Database:
    """
    Connection-pooled database handle.

    Construct one instance at process start and pass it by reference to
    whatever opens sessions; nothing in the service layer reaches for a
    module-level engine.
    """

    def __init__(self, url: str | None = None, **engine_kwargs) -> None:
        self.url = url or settings.DATABASE_URL
        engine_kwargs.setdefault("echo", settings.DEBUG)
        if not self.url.startswith("sqlite"):
            engine_kwargs.setdefault("pool_pre_ping", True)

        self.engine = create_async_engine(self.url, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            install_sqlite_foreign_keys(self.engine)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session whose transaction commits on success and rolls
        back on any exception.  Service functions only flush; this scope
        owns the transaction boundary.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close the connection pool.  Called once at process shutdown."""
        await self.engine.dispose()


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

# SQLSTATE unique_violation (asyncpg, psycopg) and the SQLite equivalents.
_PG_UNIQUE_VIOLATION = "23505"
_SQLITE_UNIQUE_ERRORNAME = "SQLITE_CONSTRAINT_UNIQUE"
_SQLITE_UNIQUE_PREFIX = "UNIQUE constraint failed"


def _is_unique_violation(orig: BaseException | None) -> bool:
    if getattr(orig, "sqlstate", None) == _PG_UNIQUE_VIOLATION:
        return True
    if getattr(orig, "sqlite_errorname", None) == _SQLITE_UNIQUE_ERRORNAME:
        return True
    return str(orig).startswith(_SQLITE_UNIQUE_PREFIX)


@contextmanager
def translate_db_errors() -> Iterator[None]:
    """
    Re-raise SQLAlchemy failures from the wrapped block as service errors.

    Unique-constraint violations become ``ConflictError``; every other
    store failure (foreign keys included) becomes ``DatabaseError``.
    """
    try:
        yield
    except IntegrityError as exc:
        if _is_unique_violation(exc.orig):
            logger.info("Unique constraint violated: %s", exc.orig)
            raise ConflictError("A record with this unique value already exists") from exc
        logger.warning("Integrity error: %s", exc.orig)
        raise DatabaseError(str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        logger.error("Database error: %s", exc)
        raise DatabaseError(str(exc)) from exc
