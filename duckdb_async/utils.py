from typing import Any, Callable, Tuple


def split_callback(args: Tuple[Any, ...]) -> Tuple[Tuple[Any, ...], Callable]:
    """
    Split a native-style argument tuple into bind parameters and the trailing callback.

    Args:
        args (tuple): Positional arguments where the last item is the completion callback.

    Returns:
        tuple: ``(params, callback)``.

    Raises:
        TypeError: If the last argument is missing or not callable.
    """
    if not args or not callable(args[-1]):
        raise TypeError("A completion callback must be passed as the last positional argument.")
    return args[:-1], args[-1]


def split_callbacks(args: Tuple[Any, ...], count: int) -> Tuple[Tuple[Any, ...], Tuple[Callable, ...]]:
    """Like ``split_callback`` but for ``count`` trailing callbacks; ``None`` is allowed after the first."""
    if len(args) < count:
        raise TypeError(f"Expected {count} trailing callbacks.")
    params, callbacks = args[:-count], args[-count:]
    if not callable(callbacks[0]) or any(cb is not None and not callable(cb) for cb in callbacks[1:]):
        raise TypeError(f"The last {count} positional arguments must be callbacks.")
    return params, callbacks


def is_bytes_like(obj) -> bool:
    return isinstance(obj, (bytes, bytearray, memoryview))


def is_ipc_chunks(obj) -> bool:
    """
    Check whether the object is a non-empty sequence of Arrow IPC message buffers.

    Args:
        obj: The object to check.

    Returns:
        bool: True for a list or tuple whose items are all bytes-like.
    """
    return isinstance(obj, (list, tuple)) and bool(obj) and all(is_bytes_like(item) for item in obj)
