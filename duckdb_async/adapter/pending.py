from __future__ import annotations
import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from ..exceptions import EngineError

_logger = logging.getLogger(__name__)


class PendingOperation:
    """
    An in-flight native call whose completion callback has not fired yet.

    ``callback`` is handed to the native layer as the trailing completion
    callback. It may be invoked from any thread; the future is settled on the
    owning event loop. Only the first invocation counts: later ones are
    dropped and logged, so the future settles exactly once.

    Args:
        description (str): Label used in log messages.
        loop (asyncio.AbstractEventLoop, optional): Loop owning the future.
            Defaults to the running loop.
        logger (logging.Logger, optional): Logger for dropped completions.
    """

    def __init__(
        self,
        description: str = "native call",
        loop: Optional[asyncio.AbstractEventLoop] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.description = description
        self.loop = loop or asyncio.get_running_loop()
        self.future: asyncio.Future = self.loop.create_future()
        self.logger = logger or _logger
        self._fired = False
        self._lock = threading.Lock()

    @property
    def fired(self) -> bool:
        return self._fired

    def callback(self, error: Any = None, result: Any = None) -> None:
        with self._lock:
            if self._fired:
                self.logger.warning(f"Dropping duplicate completion for {self.description}")
                return
            self._fired = True
        try:
            self.loop.call_soon_threadsafe(self._settle, error, result)
        except RuntimeError:
            # Loop already closed: nobody can await the result any more.
            self.logger.debug(f"Event loop closed before {self.description} completed")

    def _settle(self, error: Any, result: Any) -> None:
        if self.future.done():
            self.logger.debug(f"Discarding completion of {self.description}: future already done")
            return
        if error is not None:
            if not isinstance(error, BaseException):
                error = EngineError(error)
            self.future.set_exception(error)
        else:
            self.future.set_result(result)

    def __await__(self):
        return self.future.__await__()


async def call_native(method: Callable[..., Any], *args: Any, description: Optional[str] = None,
                      logger: Optional[logging.Logger] = None) -> Any:
    """
    Await a native operation that reports completion through one ``(error, result)`` callback.

    ``method`` is called as ``method(*args, callback)``: bind parameters keep
    their position in front of the injected callback.

    Args:
        method (Callable): Bound native method.
        *args: Arguments forwarded unchanged.
        description (str, optional): Label for log messages. Defaults to the method name.
        logger (logging.Logger, optional): Logger passed on to the pending operation.

    Returns:
        Any: The callback's ``result``.

    Raises:
        BaseException: The exact error object the engine passed to the callback.
    """
    op = PendingOperation(description or getattr(method, "__name__", "native call"), logger=logger)
    method(*args, op.callback)
    return await op


async def construct_native(factory: Callable[..., Any], *args: Any, description: Optional[str] = None,
                           logger: Optional[logging.Logger] = None, **kwargs: Any) -> Any:
    """
    Await a callback-style native constructor and return the handle it built.

    The factory is called as ``factory(*args, callback, **kwargs)`` and
    returns the handle immediately; the handle is only handed out once the
    callback reports success.

    Raises:
        BaseException: The exact error object the engine reported for the construction.
    """
    op = PendingOperation(description or getattr(factory, "__name__", "native constructor"), logger=logger)
    handle = factory(*args, op.callback, **kwargs)
    await op
    return handle
