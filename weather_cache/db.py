import logging
from typing import Any, Dict, Optional

from sqlalchemy import Table, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from .config import Settings
from .errors import CacheUnavailable
from .models import cache_table

logger = logging.getLogger(__name__)


def make_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, pool_pre_ping=True)


def make_session_maker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


class SqlExpiringStore:
    """Cache rows in a Postgres table, one row per key, replaced on every write.

    Rows past their ``ttl`` are left in place; readers decide freshness.
    """

    def __init__(self, session_maker, table: Table, engine: Optional[AsyncEngine] = None):
        self._session_maker = session_maker
        self.table = table
        self.engine = engine

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        stmt = select(self.table).where(self.table.c.city_id == key)
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                row = result.mappings().first()
        except (SQLAlchemyError, OSError) as e:
            raise CacheUnavailable(f"Cache table read failed for {key!r}: {e}") from e
        return dict(row) if row is not None else None

    def upsert_statement(self, item: Dict[str, Any]):
        stmt = insert(self.table).values(**item)
        return stmt.on_conflict_do_update(
            index_elements=[self.table.c.city_id],
            set_={
                "weather_data": stmt.excluded.weather_data,
                "ttl": stmt.excluded.ttl,
                "timestamp": stmt.excluded.timestamp,
            },
        )

    async def put(self, key: str, item: Dict[str, Any]) -> None:
        stmt = self.upsert_statement({**item, "city_id": key})
        try:
            async with self._session_maker() as session:
                await session.execute(stmt)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise CacheUnavailable(f"Cache table write failed for {key!r}: {e}") from e

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.debug("SqlExpiringStore: engine disposed")


def make_sql_store(settings: Settings) -> SqlExpiringStore:
    engine = make_engine(settings)
    return SqlExpiringStore(
        make_session_maker(engine),
        cache_table(settings.cache_table_name),
        engine=engine,
    )
