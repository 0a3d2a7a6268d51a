"""
The callback-style interface an engine must offer to be wrapped by the facade.

Every operation that completes takes a trailing ``callback(error, result)``
which the engine invokes exactly once, from any thread. Operations issued
against one handle are executed in submission order.
"""
from __future__ import annotations
from typing import Any, Callable, Optional, Protocol

Callback = Callable[[Optional[BaseException], Any], None]


class ChunkSource(Protocol):
    def next_chunk(self, callback: Callback) -> None: ...


class NativeStatementProtocol(Protocol):
    sql: str

    def all(self, *args: Any) -> None: ...
    def arrow_ipc_all(self, *args: Any) -> None: ...
    def each(self, *args: Any) -> None: ...
    def run(self, *args: Any) -> "NativeStatementProtocol": ...
    def finalize(self, callback: Optional[Callback] = None) -> None: ...


class NativeConnectionProtocol(Protocol):
    def all(self, sql: str, *args: Any) -> None: ...
    def arrow_ipc_all(self, sql: str, *args: Any) -> None: ...
    def each(self, sql: str, *args: Any) -> None: ...
    def exec(self, sql: str, *args: Any) -> None: ...
    def prepare(self, sql: str, *args: Any) -> NativeStatementProtocol: ...
    def run(self, sql: str, *args: Any) -> NativeStatementProtocol: ...
    def stream(self, sql: str, *params: Any) -> ChunkSource: ...
    def arrow_ipc_stream(self, sql: str, *args: Any) -> None: ...
    def register_udf(self, name: str, return_type: Any, fn: Callable, callback: Optional[Callback] = None,
                     parameters: Optional[list] = None) -> None: ...
    def register_bulk(self, name: str, return_type: Any, fn: Callable, callback: Optional[Callback] = None,
                      parameters: Optional[list] = None) -> None: ...
    def unregister_udf(self, name: str, callback: Optional[Callback] = None) -> None: ...
    def register_buffer(self, name: str, data: Any, force: bool, callback: Optional[Callback] = None) -> None: ...
    def unregister_buffer(self, name: str, callback: Optional[Callback] = None) -> None: ...
    def interrupt(self) -> None: ...
    def close(self, callback: Optional[Callback] = None) -> None: ...


class NativeDatabaseProtocol(NativeConnectionProtocol, Protocol):
    def serialize(self, callback: Optional[Callback] = None) -> None: ...
    def parallelize(self, callback: Optional[Callback] = None) -> None: ...
    def wait(self, callback: Optional[Callback] = None) -> None: ...
    def register_replacement_scan(self, scan: Callable[[str], Any], callback: Optional[Callback] = None) -> None: ...


class Engine(Protocol):
    """What ``Database.create`` needs: the two callback-style constructors."""

    def Database(self, path: str, access_mode: int, config: Optional[dict], callback: Callback,
                 **options: Any) -> NativeDatabaseProtocol: ...
    def Connection(self, database: NativeDatabaseProtocol, callback: Callback) -> NativeConnectionProtocol: ...
