"""
Default engine: a callback-style binding over the ``duckdb`` package.

The module itself satisfies ``protocol.Engine``: ``Database`` and
``Connection`` are the callback-style constructors.
"""
from .binding import (
    NativeDatabase,
    NativeConnection,
    NativeStatement,
    NativeQueryResult,
    NativeIpcStream,
    DEFAULT_CHUNK_SIZE,
)
from .constants import (
    AccessMode,
    OPEN_READONLY,
    OPEN_READWRITE,
    OPEN_CREATE,
    OPEN_FULLMUTEX,
    OPEN_SHAREDCACHE,
    OPEN_PRIVATECACHE,
    DEFAULT_ACCESS_MODE,
    MEMORY_PATH,
)
from .row_factory import (
    dict_row_factory,
    tuple_row_factory,
    namedtuple_row_factory,
)

Database = NativeDatabase
Connection = NativeConnection

__all__ = [
    "Database",
    "Connection",
    "NativeDatabase",
    "NativeConnection",
    "NativeStatement",
    "NativeQueryResult",
    "NativeIpcStream",
    "DEFAULT_CHUNK_SIZE",
    "AccessMode",
    "OPEN_READONLY",
    "OPEN_READWRITE",
    "OPEN_CREATE",
    "OPEN_FULLMUTEX",
    "OPEN_SHAREDCACHE",
    "OPEN_PRIVATECACHE",
    "DEFAULT_ACCESS_MODE",
    "MEMORY_PATH",
    "dict_row_factory",
    "tuple_row_factory",
    "namedtuple_row_factory",
]
