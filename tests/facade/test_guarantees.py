# tests/facade/test_guarantees.py
import asyncio
import pytest

from duckdb_async import Database, Statement, HandleClosedError
from ..mock_engine import EngineFailure, InterruptFailure, MockEngine


async def open_database(engine, **kwargs):
    """Open a database on an engine that parks its callbacks."""
    task = asyncio.ensure_future(Database.create(":memory:", engine=engine, **kwargs))
    await asyncio.sleep(0)
    engine.flush()
    return await task


@pytest.fixture
def manual_engine():
    return MockEngine(auto=False)


class TestSingleCompletion:
    """An awaited operation settles once, whatever the engine does."""

    @pytest.mark.asyncio
    async def test_duplicate_completion_is_dropped(self, database, engine, mock_logger):
        engine.tables["SELECT 1"] = [(1,)]
        engine.duplicate_callbacks = True
        assert await database.all("SELECT 1") == [(1,)]
        warnings = [c.args[0] for c in mock_logger.warning.call_args_list]
        assert any("Dropping duplicate completion" in w for w in warnings)

    @pytest.mark.asyncio
    async def test_duplicate_completion_after_failure_keeps_first_error(self, database, engine):
        error = EngineFailure("Parser Error")
        engine.errors["SELEC 1"] = error
        engine.duplicate_callbacks = True
        with pytest.raises(EngineFailure) as info:
            await database.all("SELEC 1")
        assert info.value is error


class TestExecOrdering:
    """exec runs its statements in order and stops at the first failure."""

    @pytest.mark.asyncio
    async def test_exec_stops_at_failing_statement(self, database, engine):
        error = EngineFailure("Catalog Error: Table with name missing does not exist!")
        engine.errors["INSERT INTO missing VALUES (1)"] = error
        sql = "CREATE TABLE a (x INT); INSERT INTO a VALUES (1); INSERT INTO missing VALUES (1); DROP TABLE a"
        with pytest.raises(EngineFailure) as info:
            await database.exec(sql)
        assert info.value is error
        assert engine.executed == [
            "CREATE TABLE a (x INT)",
            "INSERT INTO a VALUES (1)",
            "INSERT INTO missing VALUES (1)",
        ]
        assert engine.operations("database").count("exec") == 1

    @pytest.mark.asyncio
    async def test_exec_success_runs_everything(self, database, engine):
        await database.exec("CREATE TABLE a (x INT); INSERT INTO a VALUES (1);")
        assert engine.executed == ["CREATE TABLE a (x INT)", "INSERT INTO a VALUES (1)"]


class TestIssueOrder:
    """Operations reach the engine, and settle, in the order they were issued."""

    @pytest.mark.asyncio
    async def test_fifo_dispatch_and_settlement(self, manual_engine):
        database = await open_database(manual_engine)
        for name in ("A", "B", "C"):
            manual_engine.tables[f"SELECT '{name}'"] = [(name,)]
        settled = []

        async def query(name):
            rows = await database.all(f"SELECT '{name}'")
            settled.append(rows[0][0])

        tasks = [asyncio.ensure_future(query(name)) for name in ("A", "B", "C")]
        await asyncio.sleep(0)
        assert [args for _, op, args in manual_engine.calls if op == "all"] == [
            ("SELECT 'A'",), ("SELECT 'B'",), ("SELECT 'C'",)
        ]
        assert settled == []
        manual_engine.flush()
        await asyncio.gather(*tasks)
        assert settled == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_nothing_settles_before_the_engine_answers(self, manual_engine):
        database = await open_database(manual_engine)
        task = asyncio.ensure_future(database.exec("CHECKPOINT"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert not task.done()
        manual_engine.flush()
        await task


class TestOpenFailure:
    """A failed open surfaces the engine's own error object."""

    @pytest.mark.asyncio
    async def test_open_error_identity(self, engine):
        error = EngineFailure("IO Error: Cannot open file", category="io")
        engine.open_error = error
        with pytest.raises(EngineFailure) as info:
            await Database.create("/nowhere/db.duckdb", engine=engine)
        assert info.value is error
        assert info.value.category == "io"

    @pytest.mark.asyncio
    async def test_open_error_is_not_wrapped(self, engine):
        engine.open_error = EngineFailure("IO Error")
        with pytest.raises(EngineFailure):
            await Database.create(engine=engine)
        assert engine.operations() == ["open"]


class TestFinalizedStatement:
    """A finalized statement never reaches the engine again."""

    @pytest.mark.asyncio
    async def test_finalized_statement(self, database, engine):
        statement = await database.prepare("SELECT ?")
        assert isinstance(statement, Statement)
        await statement.finalize()
        before = len(engine.calls)
        for attempt in (statement.all, statement.arrow_ipc_all, statement.run):
            with pytest.raises(HandleClosedError):
                await attempt(1)
        assert len(engine.calls) == before


class TestEachDelivery:
    """each delivers every row in order, then completes once."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 1, 1000])
    async def test_rows_then_completion(self, database, engine, count):
        engine.tables["SELECT i FROM range(?)"] = list(range(count))
        rows = []
        completions = []
        done = asyncio.Event()

        def on_complete(error, total):
            completions.append((error, total))
            done.set()

        database.each("SELECT i FROM range(?)", count,
                      callback=lambda error, row: rows.append(row), complete=on_complete)
        await asyncio.wait_for(done.wait(), timeout=5)
        await asyncio.sleep(0)
        assert rows == list(range(count))
        assert completions == [(None, count)]

    @pytest.mark.asyncio
    async def test_rows_arrive_on_the_loop(self, database, engine):
        engine.tables["SELECT 1"] = [1]
        loop = asyncio.get_running_loop()
        seen = []
        done = asyncio.Event()

        def on_row(error, row):
            seen.append(asyncio.get_running_loop() is loop)

        database.each("SELECT 1", callback=on_row, complete=lambda e, n: done.set())
        assert seen == []
        await asyncio.wait_for(done.wait(), timeout=5)
        assert seen == [True]


class TestInterrupt:
    """interrupt is fire-and-forget; in-flight work settles on its own."""

    @pytest.mark.asyncio
    async def test_interrupt_rejects_in_flight_work(self, manual_engine):
        database = await open_database(manual_engine)
        task = asyncio.ensure_future(database.run("SELECT count(*) FROM range(1000000000)"))
        await asyncio.sleep(0)
        assert database.interrupt() is None
        manual_engine.flush()
        with pytest.raises(InterruptFailure):
            await task

    @pytest.mark.asyncio
    async def test_interrupt_after_completion_is_harmless(self, manual_engine):
        database = await open_database(manual_engine)
        task = asyncio.ensure_future(database.run("SELECT 1"))
        await asyncio.sleep(0)
        manual_engine.flush()
        database.interrupt()
        statement = await task
        assert isinstance(statement, Statement)
        assert manual_engine.operations("database")[-1] == "interrupt"

    @pytest.mark.asyncio
    async def test_interrupt_on_closed_database(self, database):
        await database.close()
        with pytest.raises(HandleClosedError):
            database.interrupt()
