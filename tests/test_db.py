import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from weather_cache.db import SqlExpiringStore
from weather_cache.errors import CacheUnavailable
from weather_cache.models import cache_table


class FakeResult:
    def __init__(self, rows):
        self._rows = rows

    def mappings(self):
        return self

    def first(self):
        return self._rows[0] if self._rows else None


class FakeSession:
    def __init__(self, rows, error=None):
        self._rows = rows
        self._error = error
        self.executed = []
        self.committed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, stmt, *args, **kwargs):
        if self._error is not None:
            raise self._error
        self.executed.append(stmt)
        return FakeResult(self._rows)

    async def commit(self):
        self.committed = True


class FakeSessionMaker:
    def __init__(self, rows=(), error=None):
        self.session = FakeSession(list(rows), error=error)

    def __call__(self):
        return self.session


ITEM = {"city_id": "1850147", "weather_data": {"name": "Tokyo"}, "ttl": 1_700_003_600,
        "timestamp": "2023-11-14T22:13:20.000Z"}


def test_cache_table_is_reused():
    assert cache_table("weather_cache") is cache_table("weather_cache")
    assert cache_table("other_cache").name == "other_cache"


@pytest.mark.asyncio
async def test_get_returns_row_as_item():
    store = SqlExpiringStore(FakeSessionMaker([ITEM]), cache_table())
    assert await store.get("1850147") == ITEM


@pytest.mark.asyncio
async def test_get_missing_row():
    store = SqlExpiringStore(FakeSessionMaker([]), cache_table())
    assert await store.get("1850147") is None


@pytest.mark.asyncio
async def test_put_executes_upsert_and_commits():
    maker = FakeSessionMaker()
    store = SqlExpiringStore(maker, cache_table())

    await store.put("1850147", ITEM)

    assert maker.session.committed
    (stmt,) = maker.session.executed
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "ON CONFLICT (city_id) DO UPDATE" in sql


def test_upsert_replaces_every_column():
    store = SqlExpiringStore(FakeSessionMaker(), cache_table())
    sql = str(store.upsert_statement(ITEM).compile(dialect=postgresql.dialect()))
    for column in ("weather_data", "ttl"):
        assert f"{column} = excluded.{column}" in sql
    assert "timestamp" in sql.split("DO UPDATE SET", 1)[1]


@pytest.mark.asyncio
async def test_database_errors_become_cache_unavailable():
    error = OperationalError("SELECT 1", {}, Exception("connection refused"))
    store = SqlExpiringStore(FakeSessionMaker(error=error), cache_table())
    with pytest.raises(CacheUnavailable):
        await store.get("1850147")
    with pytest.raises(CacheUnavailable):
        await store.put("1850147", ITEM)


@pytest.mark.asyncio
async def test_connection_refused_becomes_cache_unavailable():
    error = ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 1)")
    store = SqlExpiringStore(FakeSessionMaker(error=error), cache_table())
    with pytest.raises(CacheUnavailable):
        await store.get("1850147")
    with pytest.raises(CacheUnavailable):
        await store.put("1850147", ITEM)
