"""Render parsed rows and hash tables as delimited text or SQL statements."""
from __future__ import annotations

from typing import Iterable, Sequence

EXTRACTS_SEPARATOR = "|EXTRACTS|"
HASHES_DELIMITER = "|"


def sql_quote(value: str) -> str:
    """Single-quote a SQL text literal, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


def format_delimited(
    fields: Sequence[str],
    extracts: Sequence[str],
    delimiter: str,
    unique_id: str = "",
) -> str:
    """``a|b|c|EXTRACTS|x|y``: fields, the literal separator, then extracts.

    A non-empty ``unique_id`` is emitted first, followed by the delimiter.
    """
    prefix = unique_id + delimiter if unique_id else ""
    return prefix + delimiter.join(fields) + EXTRACTS_SEPARATOR + delimiter.join(extracts)


def format_sql_insert(
    num_columns: int,
    table: str,
    fields: Sequence[str],
    extracts: Sequence[str],
    quote_columns: Iterable[int] = (),
    unique_id: str = "",
) -> str:
    """Render one row as ``INSERT OR IGNORE INTO <table> VALUES(...);``.

    Fields followed by extracts fill at most ``num_columns`` values; the rest
    is padded with ``NULL``.  Fields whose index is in ``quote_columns`` and
    every extract are quoted; other fields are emitted as-is, since a hash
    token or a number is already a literal.  A non-empty ``unique_id`` takes
    the first value.
    """
    quoted = set(quote_columns)
    out: list[str] = [sql_quote(unique_id)] if unique_id else []
    values = list(fields) + list(extracts)
    for i, value in enumerate(values[: max(0, num_columns - len(out))]):
        if i in quoted or i >= len(fields):
            out.append(sql_quote(value))
        else:
            out.append(value)
    out.extend(["NULL"] * (num_columns - len(out)))
    return f"INSERT OR IGNORE INTO {table} VALUES(" + ",".join(out) + ");"


def format_hash_row(digest: str, value: str) -> str:
    return HASHES_DELIMITER.join((digest, value))


def format_hash_insert(table: str, digest: str, value: str) -> str:
    return f"INSERT OR IGNORE INTO {table} VALUES({digest}, {sql_quote(value)});"
