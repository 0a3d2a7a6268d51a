# tests/adapter/test_relay.py
import asyncio
import threading
import pytest

from duckdb_async.adapter.relay import relay, QueryResult, IpcResultStream
from ..mock_engine import MockEngine, MockChunks


class TestRelay:
    """Tests for the pass-through relay."""

    def test_none_passes_through(self):
        assert relay(None) is None

    def test_without_running_loop_callback_is_unchanged(self):
        """Test that outside a loop the caller's callback is forwarded as is."""
        def callback(error, row):
            pass
        assert relay(callback) is callback

    @pytest.mark.asyncio
    async def test_forwards_every_invocation_in_order(self):
        seen = []
        forward = relay(lambda error, row: seen.append(row))
        for i in range(100):
            forward(None, i)
        await asyncio.sleep(0)
        assert seen == list(range(100))

    @pytest.mark.asyncio
    async def test_forwards_from_worker_thread_on_loop_thread(self):
        loop_thread = threading.get_ident()
        threads = []
        done = asyncio.Event()

        def callback(error, row):
            threads.append(threading.get_ident())
            if row == 9:
                done.set()

        forward = relay(callback)
        worker = threading.Thread(target=lambda: [forward(None, i) for i in range(10)])
        worker.start()
        await asyncio.wait_for(done.wait(), timeout=5)
        worker.join()
        assert len(threads) == 10
        assert set(threads) == {loop_thread}


class TestQueryResult:
    """Tests for the lazily consumed row stream."""

    @pytest.mark.asyncio
    async def test_iterates_rows_across_chunks(self):
        engine = MockEngine()
        result = QueryResult(MockChunks(engine, [[1, 2], [3, 4], [5]]))
        assert [row async for row in result] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_fetches_lazily(self):
        """Test that chunks are only requested as rows are consumed."""
        engine = MockEngine()
        result = QueryResult(MockChunks(engine, [[1, 2], [3]]))
        assert await result.__anext__() == 1
        assert engine.operations() == ["next_chunk"]
        assert await result.__anext__() == 2
        assert engine.operations() == ["next_chunk"]
        assert await result.__anext__() == 3
        assert engine.operations() == ["next_chunk", "next_chunk"]

    @pytest.mark.asyncio
    async def test_empty_result(self):
        result = QueryResult(MockChunks(MockEngine(), []))
        assert await result.fetch_all() == []

    @pytest.mark.asyncio
    async def test_stays_exhausted(self):
        engine = MockEngine()
        result = QueryResult(MockChunks(engine, [[1]]))
        assert await result.fetch_all() == [1]
        assert await result.fetch_all() == []
        assert engine.operations() == ["next_chunk", "next_chunk"]


class TestIpcResultStream:
    """Tests for the Arrow IPC message stream."""

    @pytest.mark.asyncio
    async def test_yields_messages_then_stops(self):
        stream = IpcResultStream(MockChunks(MockEngine(), [b"schema", b"batch-1", b"batch-2"]))
        assert await stream.to_list() == [b"schema", b"batch-1", b"batch-2"]
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
