"""
Тесты адаптеров хранилища
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import ydb

from ydb_record import (
    ConnectionConfig,
    MemoryConnection,
    QueryError,
    QuerySpec,
    Schema,
    StoreConnectionError,
    YDBConnection,
    eq,
    open_connection,
)


class TestMemoryConnection:

    @pytest.mark.asyncio
    async def test_insert_and_fetch(self):
        connection = MemoryConnection()
        connection.insert("users", {"id": "1", "name": "Ann"})

        assert await connection.fetch(QuerySpec(table="users")) == [{"id": "1", "name": "Ann"}]

    @pytest.mark.asyncio
    async def test_unknown_table_is_empty(self):
        assert await MemoryConnection().fetch(QuerySpec(table="ghosts")) == []

    @pytest.mark.asyncio
    async def test_projects_columns(self):
        connection = MemoryConnection({"users": [{"id": "1", "name": "Ann", "extra": True}]})

        rows = await connection.fetch(QuerySpec(table="users", columns=("id", "name", "age")))

        assert rows == [{"id": "1", "name": "Ann", "age": None}]

    @pytest.mark.asyncio
    async def test_nulls_sort_first(self):
        connection = MemoryConnection({"users": [{"id": "1", "age": 3}, {"id": "2", "age": None}]})

        rows = await connection.fetch(QuerySpec(table="users", order=("age", "asc")))

        assert [row["id"] for row in rows] == ["2", "1"]

    @pytest.mark.asyncio
    async def test_returned_rows_are_copies(self):
        connection = MemoryConnection({"users": [{"id": "1"}]})

        rows = await connection.fetch(QuerySpec(table="users"))
        rows[0]["id"] = "changed"

        assert connection.rows("users") == [{"id": "1"}]

    @pytest.mark.asyncio
    async def test_closed_connection_raises(self):
        connection = MemoryConnection()
        await connection.close()

        with pytest.raises(StoreConnectionError):
            await connection.fetch(QuerySpec(table="users"))
        with pytest.raises(StoreConnectionError):
            await connection.count(QuerySpec(table="users"))
        with pytest.raises(StoreConnectionError):
            connection.insert("users", {"id": "1"})


class TestOpenConnection:

    def test_returns_connection_as_is(self):
        connection = MemoryConnection()
        assert open_connection(connection) is connection

    def test_memory_urls_share_storage_by_name(self):
        first = open_connection({"url": "memory://shared-test"})

        assert open_connection("memory://shared-test") is first
        assert open_connection("memory://other-test") is not first

    @pytest.mark.asyncio
    async def test_closed_memory_url_is_reopened(self):
        first = open_connection("memory://reopen-test")
        await first.close()

        assert open_connection("memory://reopen-test") is not first

    @pytest.mark.parametrize("config", [
        "grpc://localhost:2136/local",
        {"url": "grpcs://localhost:2135/local", "timeout": 1},
        ConnectionConfig("grpc://localhost:2136/local"),
    ])
    def test_grpc_urls_open_ydb(self, config):
        assert isinstance(open_connection(config), YDBConnection)

    @pytest.mark.parametrize("config", [
        {"url": "smth://localhost:1234/blah"},
        {"host": "localhost"},
        None,
        42,
    ])
    def test_unknown_config_raises(self, config):
        with pytest.raises(StoreConnectionError):
            open_connection(config)

    @pytest.mark.asyncio
    async def test_schema_opens_executor_lazily(self):
        schema = Schema("memory://schema-test")

        assert schema.executor is schema.executor
        await schema.close()
        assert schema._executor is None


class FakeSessionPool:
    """Пул сессий YDB: отдаёт одну подменённую сессию"""

    created = []

    def __init__(self, driver, size):
        self.driver = driver
        self.size = size
        self.session = driver.session
        self.retry_error = driver.retry_error
        self.stop = AsyncMock()
        FakeSessionPool.created.append(self)

    async def retry_operation(self, callee):
        if self.retry_error is not None:
            raise self.retry_error
        return await callee(self.session)


@pytest.fixture
def session_pool(monkeypatch):
    FakeSessionPool.created = []
    monkeypatch.setattr(ydb.aio, "SessionPool", FakeSessionPool)
    return FakeSessionPool


def make_driver(rows=None, execute_error=None, retry_error=None):
    """Драйвер YDB с подменённой сессией и транзакцией"""
    tx = MagicMock()
    if execute_error is not None:
        tx.execute = AsyncMock(side_effect=execute_error)
    else:
        tx.execute = AsyncMock(return_value=[SimpleNamespace(rows=rows or [])])

    session = MagicMock()
    session.transaction.return_value = tx

    driver = MagicMock()
    driver.wait = AsyncMock()
    driver.stop = AsyncMock()
    driver.session = session
    driver.retry_error = retry_error
    return driver, session, tx


class TestYDBConnection:

    @pytest.mark.asyncio
    async def test_fetch_executes_typed_query(self, session_pool):
        driver, session, tx = make_driver(rows=[{"id": "1", "name": "Ann"}])
        connection = YDBConnection("grpc://localhost:2136", "/local", driver=driver)
        spec = QuerySpec(table="users", columns=("id", "name"), conditions=(eq("name", "Ann"),))

        rows = await connection.fetch(spec)

        assert rows == [{"id": "1", "name": "Ann"}]
        driver.wait.assert_awaited_once()
        session.transaction.assert_called_once()
        assert isinstance(session.transaction.call_args.args[0], ydb.OnlineReadOnly)

        query, params = tx.execute.await_args.args
        assert isinstance(query, ydb.DataQuery)
        assert query.yql_text.startswith("DECLARE $p0 AS Utf8;")
        assert query.parameters_types == {"$p0": ydb.PrimitiveType.Utf8}
        assert params == {"$p0": "Ann"}
        assert tx.execute.await_args.kwargs == {"commit_tx": True}

    @pytest.mark.asyncio
    async def test_prepared_queries_are_cached(self, session_pool):
        driver, _, tx = make_driver()
        connection = YDBConnection("grpc://localhost:2136", "/local", driver=driver)

        await connection.fetch(QuerySpec(table="users"))
        await connection.fetch(QuerySpec(table="users"))

        first, second = (call.args[0] for call in tx.execute.await_args_list)
        assert first is second

    @pytest.mark.asyncio
    async def test_count(self, session_pool):
        driver, _, _ = make_driver(rows=[{"count": 7}])
        connection = YDBConnection("grpc://localhost:2136", "/local", driver=driver)

        assert await connection.count(QuerySpec(table="users")) == 7

    @pytest.mark.asyncio
    async def test_concurrent_queries_share_one_pool(self, session_pool):
        driver, _, tx = make_driver(rows=[{"id": "1"}])

        async def slow_wait(**kwargs):
            await asyncio.sleep(0.01)

        driver.wait = AsyncMock(side_effect=slow_wait)
        connection = YDBConnection("grpc://localhost:2136", "/local", driver=driver, pool_size=4)

        results = await asyncio.gather(
            connection.fetch(QuerySpec(table="users")),
            connection.count(QuerySpec(table="users")),
        )

        assert results[0] == [{"id": "1"}]
        driver.wait.assert_awaited_once()
        assert len(session_pool.created) == 1
        assert session_pool.created[0].size == 4
        assert tx.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_connect_failure_raises_connection_error(self, session_pool):
        driver, _, _ = make_driver()
        driver.wait = AsyncMock(side_effect=TimeoutError("no endpoints"))
        connection = YDBConnection("grpc://localhost:2136", "/local", driver=driver)

        with pytest.raises(StoreConnectionError) as exc_info:
            await connection.fetch(QuerySpec(table="users"))

        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert session_pool.created == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ydb.issues.Unavailable("down"),
        ydb.issues.BadSession("session is gone"),
        ydb.issues.SessionExpired("expired"),
    ])
    async def test_exhausted_retries_raise_connection_error(self, session_pool, error):
        driver, _, _ = make_driver(retry_error=error)
        connection = YDBConnection("grpc://localhost:2136", "/local", driver=driver)

        with pytest.raises(StoreConnectionError) as exc_info:
            await connection.fetch(QuerySpec(table="users"))

        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_query_failure_raises_query_error(self, session_pool):
        driver, _, _ = make_driver(execute_error=ydb.issues.SchemeError("no table"))
        connection = YDBConnection("grpc://localhost:2136", "/local", driver=driver)

        with pytest.raises(QueryError):
            await connection.fetch(QuerySpec(table="users"))

    @pytest.mark.asyncio
    async def test_close_stops_pool_and_keeps_external_driver(self, session_pool):
        driver, _, _ = make_driver()
        connection = YDBConnection("grpc://localhost:2136", "/local", driver=driver)
        await connection.fetch(QuerySpec(table="users"))

        await connection.close()

        session_pool.created[0].stop.assert_awaited_once()
        driver.stop.assert_not_awaited()
        assert connection._pool is None
