from typing import Any, Optional, Tuple


class OperationLog:
    """A single operation dispatched to a native handle."""
    __slots__ = ("handle", "operation", "sql", "params")
    def __init__(self, handle: str, operation: str, sql: Optional[str] = None, params: Tuple[Any, ...] = ()):
        self.handle = handle
        self.operation = operation
        self.sql = sql
        self.params = params
    def __repr__(self):
        return f"OperationLog({self.handle!r}, {self.operation!r}, {self.sql!r}, {self.params!r})"
    def __str__(self):
        text = f"[{self.handle}] {self.operation}"
        if self.sql is not None:
            text += f": {self.sql}"
        if self.params:
            text += f" | {self.params}"
        return text

    def to_dict(self) -> dict:
        return {
            "handle": self.handle,
            "operation": self.operation,
            "sql": self.sql,
            "params": self.params,
        }
    def __eq__(self, other):
        if not isinstance(other, OperationLog):
            return False
        return (
            self.handle == other.handle and
            self.operation == other.operation and
            self.sql == other.sql and
            self.params == other.params
        )
