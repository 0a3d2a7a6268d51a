from __future__ import annotations
from functools import partial
from logging import Logger, getLogger as logging_getLogger
from typing import Any, Callable, List, Optional, Tuple, TYPE_CHECKING

from ..adapter import PendingOperation, QueryResult, IpcResultStream, call_native, relay
from ..exceptions import HandleClosedError, UsageError
from ..log import OperationLog
from .types import ArrowArray, HandleState, NativeCallback, TableData

if TYPE_CHECKING:
    from .statement import Statement

# Only the factories hold this; direct instantiation is refused.
_CREATE_KEY = object()


class HandleBase:
    """
    Common state and logging of the three wrapper types.

    A wrapper owns exactly one native handle and moves through
    ``UNINITIALIZED -> READY -> CLOSED``. Only READY wrappers whose parent
    chain is READY accept operations.
    """

    _kind = "handle"

    def __init__(
        self,
        native: Any,
        *,
        logger: Optional[Logger] = None,
        omni_log: bool = False,
        _key: Any = None,
    ) -> None:
        if _key is not _CREATE_KEY:
            raise UsageError(
                f"{type(self).__name__} cannot be instantiated directly; use its async factory."
            )
        self._native = native
        self._state = HandleState.UNINITIALIZED
        self.logger = logger or logging_getLogger(__name__)
        self.omni_log = omni_log

    # State
    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def closed(self) -> bool:
        parent = self._parent()
        return self._state is HandleState.CLOSED or (parent is not None and parent.closed)

    def _parent(self) -> Optional[HandleBase]:
        return None

    def _mark_ready(self) -> None:
        self._state = HandleState.READY

    def _mark_closed(self) -> None:
        self._state = HandleState.CLOSED

    def _ensure_ready(self) -> None:
        if self._state is HandleState.CLOSED:
            raise HandleClosedError(f"The {self._kind} is closed.")
        if self._state is not HandleState.READY:
            raise UsageError(f"The {self._kind} is not initialized.")
        parent = self._parent()
        if parent is not None:
            try:
                parent._ensure_ready()
            except HandleClosedError as e:
                raise HandleClosedError(f"The {self._kind} belongs to a closed {parent._kind}.") from e

    # Argument checks
    @staticmethod
    def _check_sql(sql: Any) -> None:
        if not isinstance(sql, str):
            raise UsageError(f"sql must be a str, not {type(sql).__name__}.")

    @staticmethod
    def _check_name(name: Any) -> None:
        if not isinstance(name, str) or not name:
            raise UsageError("name must be a non-empty str.")

    @staticmethod
    def _check_callable(fn: Any, what: str, optional: bool = False) -> None:
        if fn is None and optional:
            return
        if not callable(fn):
            raise UsageError(f"{what} must be callable.")

    # Logging
    def _call_logger(self, method: str, *args, **kwargs) -> None:
        if self.logger:
            f = getattr(self.logger, method, None)
            if callable(f):
                f(*args, **kwargs)

    def _log_operation(self, operation: str, sql: Optional[str] = None, params: Tuple[Any, ...] = ()) -> None:
        entry = OperationLog(self._kind, operation, sql, params)
        self._call_logger("info" if self.omni_log else "debug", str(entry))

    def _log_failure(self, operation: str) -> NativeCallback:
        """Completion callback for fire-and-forget dispatches: failures are only logged."""
        def callback(error: Any = None, result: Any = None) -> None:
            if error is not None:
                self._call_logger("error", f"[{self._kind}] {operation} failed: {error}")
        return callback

    # Dispatch
    async def _call(self, operation: str, method: Callable[..., Any], *args: Any,
                    sql: Optional[str] = None, params: Tuple[Any, ...] = ()) -> Any:
        """Check state, log, then await the single-resolution native call."""
        self._ensure_ready()
        self._log_operation(operation, sql, params)
        return await call_native(method, *args, description=f"{self._kind}.{operation}", logger=self.logger)

    async def _release(self, operation: str, method: Callable[..., Any]) -> None:
        """Mark the wrapper closed first, so later calls fail fast, then await the native release."""
        self._ensure_ready()
        self._mark_closed()
        self._log_operation(operation)
        await call_native(method, description=f"{self._kind}.{operation}", logger=self.logger)

    def _pending(self, operation: str) -> PendingOperation:
        return PendingOperation(f"{self._kind}.{operation}", logger=self.logger)

    def _relay(self, callback: Optional[Callable[..., Any]]) -> Optional[Callable[..., Any]]:
        return relay(callback, logger=self.logger)


class QueryInterface(HandleBase):
    """
    Query and registration methods shared by ``Database`` and ``Connection``.

    The native database and native connection expose the same methods, so
    both wrappers dispatch to ``self._native`` the same way.
    """

    def _make_statement(self, native_statement: Any) -> Statement:
        from .statement import Statement
        return Statement._create_internal(native_statement, self)

    async def all(self, sql: str, *params: Any) -> TableData:
        """
        Run a query and collect every row.

        Args:
            sql (str): Query text.
            *params: Bind parameters.

        Returns:
            list: Rows as produced by the engine's row factory.
        """
        self._check_sql(sql)
        return await self._call("all", self._native.all, sql, *params, sql=sql, params=params)

    async def arrow_ipc_all(self, sql: str, *params: Any) -> ArrowArray:
        """Run a query and collect the result as Arrow IPC messages (schema first)."""
        self._check_sql(sql)
        return await self._call("arrow_ipc_all", self._native.arrow_ipc_all, sql, *params, sql=sql, params=params)

    def each(self, sql: str, *params: Any, callback: Callable[[Any, Any], Any],
             complete: Optional[Callable[[Any, Any], Any]] = None) -> None:
        """
        Run a query and call ``callback(error, row)`` for every row.

        Nothing is awaited: rows keep arriving after this method returns.
        ``complete(error, row_count)`` fires once after the last row. When
        called inside a running event loop, both callbacks run on that loop,
        in the order the engine produced them.
        """
        self._ensure_ready()
        self._check_sql(sql)
        self._check_callable(callback, "callback")
        self._check_callable(complete, "complete", optional=True)
        self._log_operation("each", sql, params)
        self._native.each(sql, *params, self._relay(callback), self._relay(complete))

    async def exec(self, sql: str, *params: Any) -> None:
        """
        Execute one or more semicolon-separated statements without returning results.

        Completes once every statement ran, in order; raises the error of the
        first failing statement.
        """
        self._check_sql(sql)
        await self._call("exec", self._native.exec, sql, *params, sql=sql, params=params)

    def _prepare(self, sql: str, params: Tuple[Any, ...], callback: NativeCallback) -> Statement:
        self._ensure_ready()
        self._check_sql(sql)
        self._log_operation("prepare", sql, params)
        return self._make_statement(self._native.prepare(sql, *params, callback))

    def prepare_sync(self, sql: str, *params: Any) -> Statement:
        """Issue the prepare and return the statement without waiting for it."""
        return self._prepare(sql, params, self._log_failure("prepare"))

    async def prepare(self, sql: str, *params: Any) -> Statement:
        op = self._pending("prepare")
        statement = self._prepare(sql, params, op.callback)
        await op
        return statement

    def _run(self, sql: str, params: Tuple[Any, ...], callback: NativeCallback) -> Statement:
        self._ensure_ready()
        self._check_sql(sql)
        self._log_operation("run", sql, params)
        return self._make_statement(self._native.run(sql, *params, callback))

    def run_sync(self, sql: str, *params: Any) -> Statement:
        """Issue the statement and return it without waiting for it to finish."""
        return self._run(sql, params, self._log_failure("run"))

    async def run(self, sql: str, *params: Any) -> Statement:
        op = self._pending("run")
        statement = self._run(sql, params, op.callback)
        await op
        return statement

    def stream(self, sql: str, *params: Any) -> QueryResult:
        """Start a query and return an async iterator that fetches its rows lazily."""
        self._ensure_ready()
        self._check_sql(sql)
        self._log_operation("stream", sql, params)
        return QueryResult(self._native.stream(sql, *params), logger=self.logger)

    async def arrow_ipc_stream(self, sql: str, *params: Any) -> IpcResultStream:
        """Start a query and return an async iterator of its Arrow IPC messages."""
        self._check_sql(sql)
        native_stream = await self._call("arrow_ipc_stream", self._native.arrow_ipc_stream, sql, *params,
                                         sql=sql, params=params)
        return IpcResultStream(native_stream, logger=self.logger)

    async def register_udf(self, name: str, return_type: Any, fn: Callable[..., Any], *,
                           parameters: Optional[List[Any]] = None) -> None:
        """
        Register a scalar Python function under ``name``.

        Args:
            name (str): SQL function name.
            return_type: DuckDB type name (``"VARCHAR"``) or type object.
            fn (Callable): Called once per row.
            parameters (list, optional): Argument types; inferred from annotations when omitted.
        """
        self._check_name(name)
        self._check_callable(fn, "fn")
        register = partial(self._native.register_udf, parameters=parameters)
        await self._call("register_udf", register, name, return_type, fn, sql=name)

    async def register_bulk(self, name: str, return_type: Any, fn: Callable[..., Any], *,
                            parameters: Optional[List[Any]] = None) -> None:
        """Register a vectorized function receiving and returning Arrow arrays."""
        self._check_name(name)
        self._check_callable(fn, "fn")
        register = partial(self._native.register_bulk, parameters=parameters)
        await self._call("register_bulk", register, name, return_type, fn, sql=name)

    async def unregister_udf(self, name: str) -> None:
        self._check_name(name)
        await self._call("unregister_udf", self._native.unregister_udf, name, sql=name)

    async def register_buffer(self, name: str, data: Any, force: bool = False) -> None:
        """
        Expose ``data`` as a table named ``name``.

        ``data`` may be Arrow IPC messages (as returned by ``arrow_ipc_all``) or
        any object the engine can scan (Arrow table, pandas DataFrame...).
        Without ``force``, reusing a registered name is an engine error.
        """
        self._check_name(name)
        await self._call("register_buffer", self._native.register_buffer, name, data, force, sql=name)

    async def unregister_buffer(self, name: str) -> None:
        self._check_name(name)
        await self._call("unregister_buffer", self._native.unregister_buffer, name, sql=name)
