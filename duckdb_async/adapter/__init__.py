from .pending import (
    PendingOperation,
    call_native,
    construct_native,
)
from .relay import (
    relay,
    QueryResult,
    IpcResultStream,
)

__all__ = ("PendingOperation", "call_native", "construct_native", "relay", "QueryResult", "IpcResultStream")
