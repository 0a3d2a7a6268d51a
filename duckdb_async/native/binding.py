"""
Callback-style binding over the ``duckdb`` package.

Every handle runs its operations on a worker thread fed by a FIFO queue and
reports completion through node-style ``callback(error, result)`` callbacks,
invoked exactly once per operation from the worker thread. Errors are the
exceptions raised by ``duckdb`` itself, handed over untouched.

Statements share the queue of their connection; stream cursors are separate
DuckDB cursors so that other work on the connection cannot clobber them.
"""
from __future__ import annotations
import itertools
import logging
import os
import re
import threading
import weakref
from contextlib import contextmanager, nullcontext
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

import duckdb
import pyarrow as pa

from ..utils import is_ipc_chunks, split_callback, split_callbacks
from .constants import DEFAULT_ACCESS_MODE, MEMORY_PATH, OPEN_CREATE, OPEN_READONLY
from .row_factory import RowFactory, dict_row_factory
from .task_queue import TaskQueue, invoke_callback

_logger = logging.getLogger(__name__)

_MISSING_TABLE = re.compile(r'Table with name "?([^"\s!]+)"? does not exist', re.IGNORECASE)
_ids = itertools.count(1)

DEFAULT_CHUNK_SIZE = 1024

_BINDABLE = frozenset({"SELECT", "INSERT", "UPDATE", "DELETE"})


def bind_parameters(params: Sequence[Any]) -> Any:
    """Map positional bind arguments onto what ``DuckDBPyConnection.execute`` expects."""
    if not params:
        return None
    if len(params) == 1 and isinstance(params[0], dict):
        return params[0]
    return list(params)


def to_arrow_source(data: Any) -> Any:
    """Decode Arrow IPC message buffers into a table; other objects are returned unchanged."""
    if is_ipc_chunks(data):
        return pa.ipc.open_stream(b"".join(bytes(chunk) for chunk in data)).read_all()
    return data


def ipc_messages(reader: pa.RecordBatchReader) -> List[bytes]:
    messages = [reader.schema.serialize().to_pybytes()]
    while True:
        try:
            batch = reader.read_next_batch()
        except StopIteration:
            break
        messages.append(batch.serialize().to_pybytes())
    return messages


class _NativeHandle:
    _queue: TaskQueue
    logger: logging.Logger

    def _closed_error(self) -> Exception:
        return duckdb.ConnectionException(f"{type(self).__name__} is closed")

    def _is_closed(self) -> bool:
        return self._queue.stopped

    def _enqueue(self, job: Callable[[], None], *callbacks: Optional[Callable]) -> None:
        """Queue ``job``; if the handle is closed, report that to every callback instead."""
        if self._is_closed():
            error = self._closed_error()
            for callback in callbacks:
                invoke_callback(callback, error, None, logger=self.logger)
            return
        self._queue.submit(job)

    def _submit(self, callback: Optional[Callable], fn: Callable[..., Any], *args: Any) -> None:
        """Run ``fn(*args)`` on the worker and report its outcome to ``callback`` exactly once."""
        def job() -> None:
            try:
                result = fn(*args)
            except Exception as exc:
                invoke_callback(callback, exc, None, logger=self.logger)
                return
            invoke_callback(callback, None, result, logger=self.logger)
        self._enqueue(job, callback)


class NativeDatabase(_NativeHandle):
    """
    One opened DuckDB database.

    Construction returns at once; ``callback(error, database)`` fires when the
    file has been opened (or failed to open). Query methods run on the
    database's default connection.
    """

    def __init__(
        self,
        path: str = MEMORY_PATH,
        access_mode: int = DEFAULT_ACCESS_MODE,
        config: Optional[dict] = None,
        callback: Optional[Callable] = None,
        *,
        row_factory: RowFactory = dict_row_factory,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be a positive integer.")
        self.path = path or MEMORY_PATH
        self.access_mode = int(access_mode)
        self.config = dict(config or {})
        self.row_factory = row_factory
        self.chunk_size = chunk_size
        self.logger = logger or _logger

        self._root: Optional[duckdb.DuckDBPyConnection] = None
        self._open_error: Optional[BaseException] = None
        self._opened = threading.Event()
        self._closing = False
        self._serialized = False
        self._serial_lock = threading.RLock()
        self._connections: "weakref.WeakSet[NativeConnection]" = weakref.WeakSet()
        self._replacement_scans: List[Callable[[str], Any]] = []

        self._queue = TaskQueue(f"duckdb-db-{next(_ids)}", gate=self._gate, logger=self.logger)
        self._default = NativeConnection(self)
        self._queue.submit(self._open, callback)

    def _gate(self):
        return self._serial_lock if self._serialized else nullcontext()

    def _is_closed(self) -> bool:
        return self._closing or self._queue.stopped

    def _connect(self) -> duckdb.DuckDBPyConnection:
        read_only = bool(self.access_mode & OPEN_READONLY)
        if (self.path != MEMORY_PATH and not (self.access_mode & OPEN_CREATE)
                and not os.path.exists(self.path)):
            raise duckdb.IOException(f'IO Error: Cannot open database "{self.path}": file does not exist')
        return duckdb.connect(database=self.path, read_only=read_only, config=self.config)

    def _open(self, callback: Optional[Callable]) -> None:
        try:
            self._root = self._connect()
        except Exception as exc:
            self._open_error = exc
            self._closing = True
            self._opened.set()
            self._default._queue.stop()
            self._queue.stop()
            self.logger.debug(f"Failed to open {self.path}: {exc}")
            invoke_callback(callback, exc, None, logger=self.logger)
            return
        self._opened.set()
        self.logger.debug(f"Opened {self.path}")
        invoke_callback(callback, None, self, logger=self.logger)

    def _replace_missing_table(self, conn: duckdb.DuckDBPyConnection, error: Exception,
                               tried: Iterable[str]) -> Optional[str]:
        """
        Ask the replacement scans for a table DuckDB could not find; register it on ``conn`` if one answers.

        The registration only lives for the statement being retried: callers unregister the returned
        name once the result is consumed, so the scans are asked again on the next query.
        """
        match = _MISSING_TABLE.search(str(error))
        if match is None or not self._replacement_scans:
            return None
        name = match.group(1)
        if name in tried:
            return None
        for scan in list(self._replacement_scans):
            source = scan(name)
            if source is not None:
                conn.register(name, to_arrow_source(source))
                return name
        return None

    # Flow control
    def serialize(self, callback: Optional[Callable] = None) -> None:
        self._default._submit(callback, self._set_serialized, True)

    def parallelize(self, callback: Optional[Callable] = None) -> None:
        self._default._submit(callback, self._set_serialized, False)

    def _set_serialized(self, value: bool) -> None:
        self._serialized = value

    def wait(self, callback: Optional[Callable] = None) -> None:
        """Fire ``callback`` once every queue of this database ran what was submitted before."""
        if self._is_closed():
            invoke_callback(callback, self._closed_error(), None, logger=self.logger)
            return
        queues = {id(q): q for q in [self._queue] + [c._queue for c in list(self._connections)]
                  if not q.stopped}
        remaining = [len(queues)]
        lock = threading.Lock()

        def arrive() -> None:
            with lock:
                remaining[0] -= 1
                done = remaining[0] == 0
            if done:
                invoke_callback(callback, None, None, logger=self.logger)

        for q in queues.values():
            q.submit(arrive)

    def interrupt(self) -> None:
        for conn in list(self._connections):
            conn.interrupt()

    def register_replacement_scan(self, scan: Callable[[str], Any], callback: Optional[Callable] = None) -> None:
        self._default._submit(callback, self._replacement_scans.append, scan)

    def close(self, callback: Optional[Callable] = None) -> None:
        if self._is_closed():
            invoke_callback(callback, self._closed_error(), None, logger=self.logger)
            return
        self._closing = True
        connections = [c for c in list(self._connections) if not c._is_closed()]
        remaining = [len(connections)]
        lock = threading.Lock()

        def connection_closed(error: Any = None, result: Any = None) -> None:
            with lock:
                remaining[0] -= 1
                done = remaining[0] == 0
            if done:
                self._queue.submit(self._close_root, callback)

        if not connections:
            self._queue.submit(self._close_root, callback)
        for conn in connections:
            conn.close(connection_closed)

    def _close_root(self, callback: Optional[Callable]) -> None:
        self._queue.stop()
        try:
            if self._root is not None:
                self._root.close()
        except Exception as exc:
            invoke_callback(callback, exc, None, logger=self.logger)
            return
        self.logger.debug(f"Closed {self.path}")
        invoke_callback(callback, None, None, logger=self.logger)


def _delegate_to_default(name: str) -> Callable[..., Any]:
    def method(self: NativeDatabase, *args: Any, **kwargs: Any) -> Any:
        return getattr(self._default, name)(*args, **kwargs)
    method.__name__ = name
    method.__doc__ = f"Run ``{name}`` on the database's default connection."
    return method


for _name in ("all", "arrow_ipc_all", "each", "exec", "prepare", "run", "stream", "arrow_ipc_stream",
              "register_udf", "register_bulk", "unregister_udf", "register_buffer", "unregister_buffer"):
    setattr(NativeDatabase, _name, _delegate_to_default(_name))


class NativeConnection(_NativeHandle):
    """A DuckDB cursor on a ``NativeDatabase``, with its own worker queue."""

    def __init__(self, database: NativeDatabase, callback: Optional[Callable] = None) -> None:
        self.database = database
        self.logger = database.logger
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._buffers: set = set()
        self._cursors: "weakref.WeakSet" = weakref.WeakSet()
        self._queue = TaskQueue(f"duckdb-conn-{next(_ids)}", gate=database._gate, logger=self.logger)
        if database._is_closed():
            self._queue.stop()
        database._connections.add(self)
        self._submit(callback, self._open)

    def _open(self) -> NativeConnection:
        self.database._opened.wait()
        if self.database._open_error is not None or self.database._root is None:
            self._queue.stop()
            self.database._connections.discard(self)
            raise duckdb.ConnectionException("Database is not open")
        self._conn = self.database._root.cursor()
        return self

    def _execute(self, sql: Any, params: Sequence[Any], conn: Optional[duckdb.DuckDBPyConnection] = None,
                 replaced: Optional[List[str]] = None):
        """Execute on ``conn``, retrying after replacement scans resolve missing tables into ``replaced``."""
        conn = conn or self._conn
        replaced = [] if replaced is None else replaced
        while True:
            try:
                return conn.execute(sql, bind_parameters(params))
            except duckdb.CatalogException as exc:
                name = self.database._replace_missing_table(conn, exc, replaced)
                if name is None:
                    raise
                replaced.append(name)

    @contextmanager
    def _query(self, sql: Any, params: Sequence[Any],
               conn: Optional[duckdb.DuckDBPyConnection] = None) -> Iterator[Any]:
        """Execute and yield the result; tables served by replacement scans are dropped on exit."""
        conn = conn or self._conn
        replaced: List[str] = []
        try:
            yield self._execute(sql, params, conn, replaced)
        finally:
            for name in replaced:
                conn.unregister(name)

    def _rows(self, result) -> list:
        description = result.description
        factory = self.database.row_factory
        return [factory(description, row) for row in result.fetchall()]

    def _all(self, sql: str, params: Sequence[Any]) -> list:
        with self._query(sql, params) as result:
            return self._rows(result)

    def _ipc_all(self, sql: str, params: Sequence[Any]) -> List[bytes]:
        with self._query(sql, params) as result:
            return ipc_messages(result.to_arrow_reader(self.database.chunk_size))

    def _run(self, sql: str, params: Sequence[Any]) -> None:
        with self._query(sql, params):
            pass

    def _each(self, sql: str, params: Sequence[Any], row_callback: Callable,
              complete_callback: Optional[Callable]) -> None:
        def job() -> None:
            count = 0
            try:
                with self._query(sql, params) as result:
                    description = result.description
                    factory = self.database.row_factory
                    while True:
                        rows = result.fetchmany(self.database.chunk_size)
                        if not rows:
                            break
                        for row in rows:
                            invoke_callback(row_callback, None, factory(description, row), logger=self.logger)
                            count += 1
            except Exception as exc:
                invoke_callback(row_callback, exc, None, logger=self.logger)
                invoke_callback(complete_callback, exc, count, logger=self.logger)
                return
            invoke_callback(complete_callback, None, count, logger=self.logger)
        self._enqueue(job, row_callback, complete_callback)

    def _exec(self, sql: str, params: Sequence[Any]) -> None:
        if params:
            self._run(sql, params)
            return None
        for statement in self._conn.extract_statements(sql):
            self._run(statement.query, ())
        return None

    def _bind(self, sql: str) -> None:
        """Bind a single statement against the catalog without running it."""
        statements = self._conn.extract_statements(sql)
        if not statements:
            raise duckdb.InvalidInputException("No statement to prepare")
        if len(statements) > 1 or getattr(statements[0].type, "name", "") not in _BINDABLE:
            return
        name = f"duckdb_async_{next(_ids)}"
        self._run(f"PREPARE {name} AS {statements[0].query}", ())
        self._conn.execute(f"DEALLOCATE {name}")

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        cursor = self._conn.cursor()
        self._cursors.add(cursor)
        return cursor

    def _release(self, cursor: Optional[duckdb.DuckDBPyConnection]) -> None:
        if cursor is not None:
            self._cursors.discard(cursor)
            cursor.close()

    def _type(self, type_spec: Any) -> Any:
        return self._conn.type(type_spec) if isinstance(type_spec, str) else type_spec

    def all(self, sql: str, *args: Any) -> None:
        params, callback = split_callback(args)
        self._submit(callback, self._all, sql, params)

    def arrow_ipc_all(self, sql: str, *args: Any) -> None:
        params, callback = split_callback(args)
        self._submit(callback, self._ipc_all, sql, params)

    def each(self, sql: str, *args: Any) -> None:
        params, (row_callback, complete_callback) = split_callbacks(args, 2)
        self._each(sql, params, row_callback, complete_callback)

    def exec(self, sql: str, *args: Any) -> None:
        params, callback = split_callback(args)
        self._submit(callback, self._exec, sql, params)

    def prepare(self, sql: str, *args: Any) -> NativeStatement:
        params, callback = split_callback(args)
        statement = NativeStatement(self, sql, params)
        self._submit(callback, statement._prepare)
        return statement

    def run(self, sql: str, *args: Any) -> NativeStatement:
        statement = NativeStatement(self, sql, ())
        return statement.run(*args)

    def stream(self, sql: str, *params: Any) -> NativeQueryResult:
        result = NativeQueryResult(self)
        self._enqueue(lambda: result._start(sql, params))
        if self._is_closed():
            result._error = self._closed_error()
        return result

    def arrow_ipc_stream(self, sql: str, *args: Any) -> None:
        params, callback = split_callback(args)

        def start() -> NativeIpcStream:
            cursor = self._cursor()
            try:
                reader = self._execute(sql, params, conn=cursor).to_arrow_reader(self.database.chunk_size)
            except Exception:
                self._release(cursor)
                raise
            return NativeIpcStream(self, reader, cursor)
        self._submit(callback, start)

    def register_udf(self, name: str, return_type: Any, fn: Callable, callback: Optional[Callable] = None,
                     parameters: Optional[List[Any]] = None) -> None:
        self._submit(callback, self._create_function, name, return_type, fn, parameters, None)

    def register_bulk(self, name: str, return_type: Any, fn: Callable, callback: Optional[Callable] = None,
                      parameters: Optional[List[Any]] = None) -> None:
        self._submit(callback, self._create_function, name, return_type, fn, parameters, "arrow")

    def _create_function(self, name: str, return_type: Any, fn: Callable,
                         parameters: Optional[List[Any]], udf_type: Optional[str]) -> None:
        if parameters is not None:
            parameters = [self._type(p) for p in parameters]
        kwargs = {"type": udf_type} if udf_type else {}
        self._conn.create_function(name, fn, parameters, self._type(return_type), **kwargs)

    def unregister_udf(self, name: str, callback: Optional[Callable] = None) -> None:
        def unregister() -> None:
            self._conn.remove_function(name)
        self._submit(callback, unregister)

    def register_buffer(self, name: str, data: Any, force: bool, callback: Optional[Callable] = None) -> None:
        def register() -> None:
            if name in self._buffers:
                if not force:
                    raise duckdb.InvalidInputException(f'Buffer "{name}" is already registered')
                self._conn.unregister(name)
            self._conn.register(name, to_arrow_source(data))
            self._buffers.add(name)
        self._submit(callback, register)

    def unregister_buffer(self, name: str, callback: Optional[Callable] = None) -> None:
        def unregister() -> None:
            self._conn.unregister(name)
            self._buffers.discard(name)
        self._submit(callback, unregister)

    def interrupt(self) -> None:
        """Interrupt whatever runs on this connection right now. Not queued."""
        if self._conn is not None and not self._queue.stopped:
            self._conn.interrupt()
        for cursor in list(self._cursors):
            cursor.interrupt()

    def close(self, callback: Optional[Callable] = None) -> None:
        if self._is_closed():
            invoke_callback(callback, self._closed_error(), None, logger=self.logger)
            return

        def shutdown() -> None:
            try:
                for cursor in list(self._cursors):
                    self._release(cursor)
                if self._conn is not None:
                    self._conn.close()
            except Exception as exc:
                invoke_callback(callback, exc, None, logger=self.logger)
                return
            finally:
                self.database._connections.discard(self)
            invoke_callback(callback, None, None, logger=self.logger)
        self._queue.submit(shutdown)
        self._queue.stop()


class NativeStatement:
    """A statement bound to a connection; it runs on the connection's queue."""

    def __init__(self, connection: NativeConnection, sql: str, params: Sequence[Any] = ()) -> None:
        self.connection = connection
        self.sql = sql
        self._params = tuple(params)
        self._finalized = False

    def _bound(self, params: Tuple[Any, ...]) -> Tuple[Any, ...]:
        return params or self._params

    def _submit(self, callback: Optional[Callable], fn: Callable[..., Any], *args: Any) -> None:
        if self._finalized:
            invoke_callback(callback, duckdb.InvalidInputException("Statement has been finalized"), None,
                            logger=self.connection.logger)
            return
        self.connection._submit(callback, fn, *args)

    def _prepare(self) -> NativeStatement:
        self.connection._bind(self.sql)
        return self

    def all(self, *args: Any) -> None:
        params, callback = split_callback(args)
        self._submit(callback, self.connection._all, self.sql, self._bound(params))

    def arrow_ipc_all(self, *args: Any) -> None:
        params, callback = split_callback(args)
        self._submit(callback, self.connection._ipc_all, self.sql, self._bound(params))

    def each(self, *args: Any) -> None:
        params, (row_callback, complete_callback) = split_callbacks(args, 2)
        if self._finalized:
            error = duckdb.InvalidInputException("Statement has been finalized")
            invoke_callback(row_callback, error, None, logger=self.connection.logger)
            invoke_callback(complete_callback, error, 0, logger=self.connection.logger)
            return
        self.connection._each(self.sql, self._bound(params), row_callback, complete_callback)

    def run(self, *args: Any) -> NativeStatement:
        params, callback = split_callback(args)
        self._submit(callback, self.connection._run, self.sql, self._bound(params))
        return self

    def finalize(self, callback: Optional[Callable] = None) -> None:
        self._submit(callback, self._finalize)

    def _finalize(self) -> None:
        self._finalized = True


class NativeQueryResult:
    """A streamed query on its own cursor; ``next_chunk`` yields lists of rows, then ``None``."""

    def __init__(self, connection: NativeConnection) -> None:
        self.connection = connection
        self._cursor: Optional[duckdb.DuckDBPyConnection] = None
        self._description = None
        self._error: Optional[BaseException] = None
        self._done = False

    def _start(self, sql: str, params: Sequence[Any]) -> None:
        try:
            self._cursor = self.connection._cursor()
            self._description = self.connection._execute(sql, params, conn=self._cursor).description
        except Exception as exc:
            self._error = exc
            self._finish()

    def _finish(self) -> None:
        self._done = True
        self.connection._release(self._cursor)
        self._cursor = None

    def _next(self) -> Optional[list]:
        if self._error is not None:
            raise self._error
        if self._done:
            return None
        rows = self._cursor.fetchmany(self.connection.database.chunk_size)
        if not rows:
            self._finish()
            return None
        factory = self.connection.database.row_factory
        return [factory(self._description, row) for row in rows]

    def next_chunk(self, callback: Callable) -> None:
        if self._error is not None and self.connection._is_closed():
            invoke_callback(callback, self._error, None, logger=self.connection.logger)
            return
        self.connection._submit(callback, self._next)


class NativeIpcStream:
    """Arrow IPC messages of a query: schema first, one per record batch, then ``None``."""

    def __init__(self, connection: NativeConnection, reader: pa.RecordBatchReader,
                 cursor: duckdb.DuckDBPyConnection) -> None:
        self.connection = connection
        self._reader = reader
        self._cursor = cursor
        self._schema_sent = False

    def _next(self) -> Optional[bytes]:
        if self._reader is None:
            return None
        if not self._schema_sent:
            self._schema_sent = True
            return self._reader.schema.serialize().to_pybytes()
        try:
            batch = self._reader.read_next_batch()
        except StopIteration:
            self._reader = None
            self.connection._release(self._cursor)
            self._cursor = None
            return None
        return batch.serialize().to_pybytes()

    def next_chunk(self, callback: Callable) -> None:
        self.connection._submit(callback, self._next)
