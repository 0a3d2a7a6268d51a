# tests/facade/test_connection.py
import asyncio
import pytest

from duckdb_async import Connection, HandleState, HandleClosedError, UsageError
from ..mock_engine import EngineFailure


class TestConnectionCreate:
    """Tests for Connection.create."""

    def test_direct_instantiation_is_refused(self, database):
        with pytest.raises(UsageError):
            Connection(object(), database)

    @pytest.mark.asyncio
    async def test_create_from_database(self, database, engine):
        conn = await Connection.create(database)
        assert conn.state is HandleState.READY
        assert conn.database is database
        assert engine.calls[-1] == ("connection", "connect", ())

    @pytest.mark.asyncio
    async def test_create_from_connection_attaches_to_same_database(self, connection, database):
        other = await Connection.create(connection)
        assert other.database is database
        assert other is not connection

    @pytest.mark.asyncio
    async def test_native_connection_gets_native_database(self, connection, database):
        assert connection._native.database is database.get_native()

    @pytest.mark.asyncio
    async def test_create_from_unrelated_object(self):
        with pytest.raises(UsageError):
            await Connection.create("not a database")

    @pytest.mark.asyncio
    async def test_create_failure_carries_engine_error(self, database, engine):
        error = EngineFailure("Connection Error: too many connections", transient=True)
        engine.connect_error = error
        with pytest.raises(EngineFailure) as info:
            await database.connect()
        assert info.value is error
        assert info.value.transient is True

    @pytest.mark.asyncio
    async def test_inherits_logger_and_omni_log(self, database, mock_logger):
        conn = await database.connect()
        assert conn.logger is mock_logger
        assert conn.omni_log is database.omni_log


class TestConnectionOperations:
    """Tests for operations dispatched on a connection."""

    @pytest.mark.asyncio
    async def test_all_goes_to_connection_handle(self, connection, engine):
        engine.tables["SELECT 1"] = [(1,)]
        assert await connection.all("SELECT 1") == [(1,)]
        assert engine.calls[-1] == ("connection", "all", ("SELECT 1",))

    @pytest.mark.asyncio
    async def test_prepare_statement_owned_by_connection(self, connection):
        statement = await connection.prepare("SELECT ?")
        assert statement.owner is connection

    @pytest.mark.asyncio
    async def test_exec_failure(self, connection, engine):
        error = EngineFailure("Catalog Error")
        engine.errors["DROP TABLE nope"] = error
        with pytest.raises(EngineFailure) as info:
            await connection.exec("DROP TABLE nope")
        assert info.value is error

    @pytest.mark.asyncio
    async def test_each_requires_callable(self, connection, engine):
        calls = list(engine.calls)
        with pytest.raises(UsageError):
            connection.each("SELECT 1", callback=None)
        with pytest.raises(UsageError):
            connection.each("SELECT 1", callback=lambda e, r: None, complete="nope")
        assert engine.calls == calls

    @pytest.mark.asyncio
    async def test_each_error_reaches_callbacks(self, connection, engine):
        error = EngineFailure("Binder Error")
        engine.errors["SELECT x"] = error
        seen = []
        done = []
        connection.each("SELECT x", callback=lambda e, r: seen.append((e, r)),
                        complete=lambda e, n: done.append((e, n)))
        await asyncio.sleep(0)
        assert seen == [(error, None)]
        assert done == [(error, 0)]

    @pytest.mark.asyncio
    async def test_interrupt(self, connection, engine):
        assert connection.interrupt() is None
        assert connection._native.interrupted == 1

    @pytest.mark.asyncio
    async def test_registrations(self, connection, engine):
        await connection.register_udf("f", "INTEGER", len)
        await connection.register_buffer("b", [b"schema"], False)
        await connection.unregister_buffer("b")
        await connection.unregister_udf("f")
        assert engine.operations("connection")[-4:] == [
            "register_udf", "register_buffer", "unregister_buffer", "unregister_udf",
        ]


class TestConnectionLifecycle:
    """Tests for close and parent validity."""

    @pytest.mark.asyncio
    async def test_close(self, connection, engine):
        await connection.close()
        assert connection.closed
        assert engine.calls[-1] == ("connection", "close", ())
        with pytest.raises(HandleClosedError):
            await connection.all("SELECT 1")

    @pytest.mark.asyncio
    async def test_unusable_after_database_close(self, connection, database, engine):
        await database.close()
        calls = list(engine.calls)
        assert connection.closed
        assert connection.state is HandleState.READY
        with pytest.raises(HandleClosedError):
            await connection.all("SELECT 1")
        with pytest.raises(HandleClosedError):
            await Connection.create(connection)
        assert engine.calls == calls

    @pytest.mark.asyncio
    async def test_closing_connection_leaves_database_usable(self, connection, database):
        await connection.close()
        assert not database.closed
        await database.all("SELECT 1")

    @pytest.mark.asyncio
    async def test_async_context_manager(self, database, engine):
        async with await database.connect() as conn:
            await conn.all("SELECT 1")
        assert conn.closed
        assert engine.calls[-1] == ("connection", "close", ())
