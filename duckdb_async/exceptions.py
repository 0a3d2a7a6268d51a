class AsyncDuckDBError(Exception):
    """Base exception for the async DuckDB facade."""
    pass

class UsageError(AsyncDuckDBError):
    """Raised when the API is used wrongly, before anything reaches the engine."""
    pass

class HandleClosedError(UsageError):
    """Raised when operating on a closed database/connection or a finalized statement."""
    pass

class EngineError(AsyncDuckDBError):
    """Raised when the engine reports a failure with a value that is not an exception."""
    def __init__(self, error):
        super().__init__(f"Engine reported error: {error!r}")
        self.error = error
