from .facade import Database, Connection, Statement, create_database, HandleState
from .adapter import (
    PendingOperation,
    QueryResult,
    IpcResultStream,
    call_native,
    construct_native,
    relay,
)
from .exceptions import (
    AsyncDuckDBError,
    UsageError,
    HandleClosedError,
    EngineError,
)
from .native import (
    AccessMode,
    OPEN_READONLY,
    OPEN_READWRITE,
    OPEN_CREATE,
    OPEN_FULLMUTEX,
    OPEN_SHAREDCACHE,
    OPEN_PRIVATECACHE,
    dict_row_factory,
    tuple_row_factory,
    namedtuple_row_factory,
)

__all__ = (
    "Database",
    "Connection",
    "Statement",
    "create_database",
    "HandleState",
    "PendingOperation",
    "QueryResult",
    "IpcResultStream",
    "call_native",
    "construct_native",
    "relay",
    "AsyncDuckDBError",
    "UsageError",
    "HandleClosedError",
    "EngineError",
    "AccessMode",
    "OPEN_READONLY",
    "OPEN_READWRITE",
    "OPEN_CREATE",
    "OPEN_FULLMUTEX",
    "OPEN_SHAREDCACHE",
    "OPEN_PRIVATECACHE",
    "dict_row_factory",
    "tuple_row_factory",
    "namedtuple_row_factory",
)
