from __future__ import annotations
import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Optional

from .pending import call_native

_logger = logging.getLogger(__name__)


def relay(callback: Optional[Callable[..., Any]], loop: Optional[asyncio.AbstractEventLoop] = None,
          logger: Optional[logging.Logger] = None) -> Optional[Callable[..., None]]:
    """
    Wrap a caller callback so every native invocation is replayed on the event loop.

    Each invocation from the engine schedules exactly one call of ``callback``
    with the same arguments. ``call_soon`` is FIFO, so emission order is kept.
    Nothing is buffered, merged or dropped while the loop is running.

    Outside a running loop there is nowhere to relay to, and ``callback`` is
    handed to the engine as is.

    Args:
        callback (Callable, optional): The caller's callback. ``None`` is passed through.
        loop (asyncio.AbstractEventLoop, optional): Target loop. Defaults to the running loop.
        logger (logging.Logger, optional): Logger used when the loop is already closed.

    Returns:
        Optional[Callable]: The forwarding callback handed to the native layer.
    """
    if callback is None:
        return None
    target = loop
    if target is None:
        try:
            target = asyncio.get_running_loop()
        except RuntimeError:
            return callback
    log = logger or _logger

    def forward(*args: Any) -> None:
        try:
            target.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            log.debug("Event loop closed; dropping streamed callback invocation")

    return forward


class QueryResult:
    """
    Async iterator over the rows of a streamed query.

    Rows are pulled from the native result one chunk at a time, only when the
    consumer asks for more.
    """

    def __init__(self, native_result: Any, logger: Optional[logging.Logger] = None) -> None:
        self._native = native_result
        self._rows: Deque[Any] = deque()
        self._exhausted = False
        self.logger = logger or _logger

    async def _fetch_chunk(self) -> None:
        chunk = await call_native(self._native.next_chunk, description="stream chunk", logger=self.logger)
        if chunk is None:
            self._exhausted = True
        else:
            self._rows.extend(chunk)

    def __aiter__(self) -> QueryResult:
        return self

    async def __anext__(self) -> Any:
        while not self._rows:
            if self._exhausted:
                raise StopAsyncIteration
            await self._fetch_chunk()
        return self._rows.popleft()

    async def fetch_all(self) -> list:
        """Drain the remaining rows into a list."""
        return [row async for row in self]


class IpcResultStream:
    """
    Async iterator over Arrow IPC messages: the schema message first, then one per record batch.
    """

    def __init__(self, native_stream: Any, logger: Optional[logging.Logger] = None) -> None:
        self._native = native_stream
        self._exhausted = False
        self.logger = logger or _logger

    def __aiter__(self) -> IpcResultStream:
        return self

    async def __anext__(self) -> bytes:
        if self._exhausted:
            raise StopAsyncIteration
        chunk = await call_native(self._native.next_chunk, description="ipc chunk", logger=self.logger)
        if chunk is None:
            self._exhausted = True
            raise StopAsyncIteration
        return chunk

    async def to_list(self) -> list:
        return [chunk async for chunk in self]
