from __future__ import annotations
from logging import Logger, getLogger as logging_getLogger
from typing import Any, Callable, Optional

from .. import native as default_engine
from ..adapter import construct_native
from ..exceptions import UsageError
from ..native.constants import DEFAULT_ACCESS_MODE, MEMORY_PATH
from ..native.protocol import Engine, NativeDatabaseProtocol
from .base import _CREATE_KEY, QueryInterface
from .connection import Connection


class Database(QueryInterface):
    """
    An opened database. Owns the native database handle.

    ``Database`` cannot be instantiated directly because opening is
    asynchronous; use ``await Database.create(path)``. Query methods run on
    the engine's default connection for this database.
    """

    _kind = "database"

    def __init__(
        self,
        native: NativeDatabaseProtocol,
        engine: Engine,
        path: str,
        *,
        logger: Optional[Logger] = None,
        omni_log: bool = False,
        _key: Any = None,
    ) -> None:
        super().__init__(native, logger=logger, omni_log=omni_log, _key=_key)
        self._engine = engine
        self._path = path

    @classmethod
    async def create(
        cls,
        path: str = MEMORY_PATH,
        access_mode: int = DEFAULT_ACCESS_MODE,
        config: Optional[dict] = None,
        *,
        engine: Optional[Engine] = None,
        logger: Optional[Logger] = None,
        omni_log: bool = False,
        **options: Any,
    ) -> Database:
        """
        Open a database.

        Args:
            path (str): Database file, or ``":memory:"``.
            access_mode (int): ``AccessMode`` flags.
            config (dict, optional): Engine configuration options.
            engine (optional): Object providing the callback-style ``Database`` and
                ``Connection`` constructors. Defaults to ``duckdb_async.native``.
            logger (Logger, optional): Logger shared with connections and statements.
            omni_log (bool): Log every operation at INFO instead of DEBUG.
            **options: Passed to the engine's ``Database`` constructor
                (``row_factory``, ``chunk_size`` for the default engine).

        Returns:
            Database: A ready database.

        Raises:
            UsageError: If ``path`` is not a str or ``access_mode`` not an int.
            Exception: The exact error the engine reported while opening.
        """
        if not isinstance(path, str):
            raise UsageError(f"path must be a str, not {type(path).__name__}.")
        if not isinstance(access_mode, int):
            raise UsageError("access_mode must be an int made of AccessMode flags.")
        engine = engine or default_engine
        logger = logger or logging_getLogger(__name__)
        if omni_log:
            logger.info(f"Opening database {path}")
        native = await construct_native(
            engine.Database, path, access_mode, config,
            description=f"database.create({path})", logger=logger, **options,
        )
        database = cls(native, engine, path, logger=logger, omni_log=omni_log, _key=_CREATE_KEY)
        database._mark_ready()
        return database

    @property
    def path(self) -> str:
        return self._path

    @property
    def engine(self) -> Engine:
        return self._engine

    def get_native(self) -> NativeDatabaseProtocol:
        """Return the native database handle (for engine features this facade does not wrap)."""
        self._ensure_ready()
        return self._native

    async def connect(self) -> Connection:
        return await Connection.create(self)

    async def close(self) -> None:
        """Close the database and every connection the engine still holds for it."""
        await self._release("close", self._native.close)

    # Flow control
    async def serialize(self) -> None:
        """Make the engine run this database's work one operation at a time."""
        await self._call("serialize", self._native.serialize)

    async def parallelize(self) -> None:
        """Let the engine run the work of different connections concurrently again."""
        await self._call("parallelize", self._native.parallelize)

    async def wait(self) -> None:
        """Complete once the work issued before this call has drained."""
        await self._call("wait", self._native.wait)

    def interrupt(self) -> None:
        """
        Ask the engine to abort in-flight work.

        Returns nothing to await: the interrupted operations settle on their
        own, either with the engine's interrupt error or normally if they had
        already finished.
        """
        self._ensure_ready()
        self._log_operation("interrupt")
        self._native.interrupt()

    async def register_replacement_scan(self, scan: Callable[[str], Any]) -> None:
        """
        Register a hook resolving unknown table names.

        ``scan(table_name)`` returns an object the engine can scan, or ``None``.
        """
        self._check_callable(scan, "scan")
        await self._call("register_replacement_scan", self._native.register_replacement_scan, scan)

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.closed:
            await self.close()


create_database = Database.create
