from __future__ import annotations
from typing import Any, Callable, Optional, Tuple

from .base import _CREATE_KEY, HandleBase
from .types import ArrowArray, NativeCallback, TableData


class Statement(HandleBase):
    """
    A prepared (or immediately run) statement owned by a database or connection.

    Statements are created by ``prepare``/``prepare_sync`` and ``run``/``run_sync``;
    they must be released with ``finalize()``. After that, every method
    raises ``HandleClosedError`` without touching the engine.
    """

    _kind = "statement"

    def __init__(self, native: Any, parent: HandleBase, *, _key: Any = None) -> None:
        super().__init__(native, logger=parent.logger, omni_log=parent.omni_log, _key=_key)
        self._owner = parent

    @classmethod
    def _create_internal(cls, native: Any, parent: HandleBase) -> Statement:
        """Wrap a native statement. Internal: use ``prepare()`` or ``run()``."""
        statement = cls(native, parent, _key=_CREATE_KEY)
        statement._mark_ready()
        return statement

    def _parent(self) -> Optional[HandleBase]:
        return self._owner

    @property
    def sql(self) -> Optional[str]:
        return getattr(self._native, "sql", None)

    @property
    def owner(self) -> HandleBase:
        """The database or connection the statement was created on."""
        return self._owner

    async def all(self, *params: Any) -> TableData:
        return await self._call("all", self._native.all, *params, sql=self.sql, params=params)

    async def arrow_ipc_all(self, *params: Any) -> ArrowArray:
        return await self._call("arrow_ipc_all", self._native.arrow_ipc_all, *params, sql=self.sql, params=params)

    def each(self, *params: Any, callback: Callable[[Any, Any], Any],
             complete: Optional[Callable[[Any, Any], Any]] = None) -> None:
        """
        Execute with ``params`` and call ``callback(error, row)`` once per row.

        Same calling convention as ``Connection.each``.
        """
        self._ensure_ready()
        self._check_callable(callback, "callback")
        self._check_callable(complete, "complete", optional=True)
        self._log_operation("each", self.sql, params)
        self._native.each(*params, self._relay(callback), self._relay(complete))

    def _run(self, params: Tuple[Any, ...], callback: NativeCallback) -> Statement:
        self._ensure_ready()
        self._log_operation("run", self.sql, params)
        self._native.run(*params, callback)
        return self

    def run_sync(self, *params: Any) -> Statement:
        """Execute without waiting for completion; failures are logged. Returns ``self``."""
        return self._run(params, self._log_failure("run"))

    async def run(self, *params: Any) -> Statement:
        op = self._pending("run")
        self._run(params, op.callback)
        await op
        return self

    async def finalize(self) -> None:
        """Release the engine-side statement. The statement is unusable afterwards."""
        await self._release("finalize", self._native.finalize)

    async def __aenter__(self) -> Statement:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.closed:
            await self.finalize()
