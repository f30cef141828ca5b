from __future__ import annotations

from contextlib import contextmanager
from typing import AsyncIterator, Iterator

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from gator.core.config import settings
from gator.core.errors import AlreadyExistsError, StoreError

def sqlite_url(path: str) -> str:
    return f"sqlite+aiosqlite:///{path}"

def _enable_foreign_keys(dbapi_conn, _record) -> None:
    # SQLite ignores ON DELETE CASCADE unless asked per connection
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def make_engine(url: str) -> AsyncEngine:
    eng = create_async_engine(url, echo=False)
    if eng.dialect.name == "sqlite":
        event.listen(eng.sync_engine, "connect", _enable_foreign_keys)
    return eng

def make_session_factory(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng, expire_on_commit=False, class_=AsyncSession)

engine = make_engine(sqlite_url(settings.db_path))

SessionLocal = make_session_factory(engine)

class Base(DeclarativeBase):
    pass

async def init_db(eng: AsyncEngine) -> None:
    # Register every mapped class on Base.metadata before creating tables
    import gator.models  # noqa: F401

    with store_errors():
        async with eng.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

@contextmanager
def store_errors(conflict: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy failures into StoreError.

    With ``conflict`` set, an IntegrityError becomes AlreadyExistsError carrying
    that message.
    """
    try:
        yield
    except IntegrityError as exc:
        if conflict is not None:
            raise AlreadyExistsError(conflict) from exc
        raise StoreError(f"constraint violation: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        raise StoreError(f"database error: {exc}") from exc

async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
