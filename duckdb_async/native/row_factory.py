"""
Row factories used by the native binding to materialize DuckDB result rows.

A row factory receives the cursor ``description`` (a sequence whose items
start with the column name) and one raw row tuple.
"""
from collections import namedtuple
from functools import lru_cache
from typing import Any, Callable, Dict, Sequence, Tuple

RowFactory = Callable[[Sequence[Sequence[Any]], Tuple], Any]


def column_names(description: Sequence[Sequence[Any]]) -> list:
    return [column[0] for column in description or ()]


def tuple_row_factory(description: Sequence[Sequence[Any]], row: Tuple) -> Tuple:
    """Return the row unchanged, as a tuple."""
    return tuple(row)


def dict_row_factory(description: Sequence[Sequence[Any]], row: Tuple) -> Dict[str, Any]:
    """
    Row factory that returns rows as dictionaries.

    Args:
        description: The cursor description.
        row: The raw row tuple from DuckDB.

    Returns:
        A dictionary mapping column names to values.

    Examples:
        >>> dict_row_factory([("id",), ("name",)], (1, "hello"))
        {'id': 1, 'name': 'hello'}
    """
    return dict(zip(column_names(description), row))


def namedtuple_row_factory(description: Sequence[Sequence[Any]], row: Tuple) -> Tuple:
    """
    Row factory that returns ``Row`` namedtuples.

    Column names that are not valid identifiers are renamed positionally
    (``_0``, ``_1``...), as ``collections.namedtuple(rename=True)`` does.
    """
    return _row_type(tuple(column_names(description)))(*row)


@lru_cache(maxsize=64)
def _row_type(names: Tuple[str, ...]):
    return namedtuple("Row", names, rename=True)
