from enum import IntFlag


class AccessMode(IntFlag):
    """Open flags accepted by ``Database.create``. Only READONLY and CREATE change DuckDB's behaviour."""
    OPEN_READONLY = 0x00000001
    OPEN_READWRITE = 0x00000002
    OPEN_CREATE = 0x00000004
    OPEN_FULLMUTEX = 0x00010000
    OPEN_SHAREDCACHE = 0x00020000
    OPEN_PRIVATECACHE = 0x00040000


OPEN_READONLY = AccessMode.OPEN_READONLY
OPEN_READWRITE = AccessMode.OPEN_READWRITE
OPEN_CREATE = AccessMode.OPEN_CREATE
OPEN_FULLMUTEX = AccessMode.OPEN_FULLMUTEX
OPEN_SHAREDCACHE = AccessMode.OPEN_SHAREDCACHE
OPEN_PRIVATECACHE = AccessMode.OPEN_PRIVATECACHE

DEFAULT_ACCESS_MODE = OPEN_READWRITE | OPEN_CREATE
MEMORY_PATH = ":memory:"
