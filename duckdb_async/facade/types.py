from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

# Type aliases
NativeCallback = Callable[[Optional[BaseException], Any], None]
RowData = Dict[str, Any]
TableData = List[Any]
ArrowArray = List[bytes]


class HandleState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"
