from __future__ import annotations
from typing import Any, Optional, Union, TYPE_CHECKING

from ..adapter import construct_native
from ..exceptions import UsageError
from .base import _CREATE_KEY, HandleBase, QueryInterface

if TYPE_CHECKING:
    from .database import Database


class Connection(QueryInterface):
    """
    A logical session on a ``Database``.

    Create one with ``await Connection.create(database)`` or
    ``await database.connect()``. The connection keeps a back-reference to
    its database only to refuse work once the database is closed.
    """

    _kind = "connection"

    def __init__(self, native: Any, database: Database, *, _key: Any = None) -> None:
        super().__init__(native, logger=database.logger, omni_log=database.omni_log, _key=_key)
        self._database = database

    @classmethod
    async def create(cls, parent: Union[Database, Connection]) -> Connection:
        """
        Open a new connection on ``parent``'s database.

        Args:
            parent (Database | Connection): The database, or any connection of it.

        Returns:
            Connection: A ready connection.

        Raises:
            UsageError: If ``parent`` is not a wrapper, or is closed.
            Exception: The engine's error if the native connection fails.
        """
        if isinstance(parent, Connection):
            database = parent.database
        elif isinstance(parent, QueryInterface):
            database = parent
        else:
            raise UsageError(f"Cannot connect to a {type(parent).__name__}.")
        parent._ensure_ready()
        database._log_operation("connect")
        native = await construct_native(
            database.engine.Connection, database.get_native(),
            description="connection.create", logger=database.logger,
        )
        connection = cls(native, database, _key=_CREATE_KEY)
        connection._mark_ready()
        return connection

    def _parent(self) -> Optional[HandleBase]:
        return self._database

    @property
    def database(self) -> Database:
        return self._database

    def interrupt(self) -> None:
        """Ask the engine to abort the work in flight on this connection. Returns nothing to await."""
        self._ensure_ready()
        self._log_operation("interrupt")
        self._native.interrupt()

    async def close(self) -> None:
        await self._release("close", self._native.close)

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.closed:
            await self.close()
