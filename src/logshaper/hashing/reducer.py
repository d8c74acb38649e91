"""Content hashing of selected columns, for deduplication and pareto counts.

After extraction has replaced the variable parts of a message with tokens,
rows that describe the same kind of event have identical values in their
descriptive columns.  Hashing those columns gives one fingerprint per
message shape; counting fingerprints gives the pareto of message types.

The hash can also stand in for the columns it covers, which keeps the
per-row output small when the hash → value table is stored separately.
"""
from __future__ import annotations

import enum
import hashlib

from ..errors import ConfigError, HashColumnError
from ..rules.ruleset import RuleSet
from .state import HashState


class HashFormat(enum.Enum):
    """Textual rendering of a digest.

    ``STRING`` gives a quoted hex string (``'0xdeadbeef'``); ``SQL`` gives a
    SQLite blob literal (``x'deadbeef'``).
    """

    STRING = "string"
    SQL = "sql"


def _render(hex_digest: str, fmt: HashFormat) -> str:
    if fmt is HashFormat.SQL:
        return f"x'{hex_digest}'"
    return f"'0x{hex_digest}'"


def content_hash(text: str, fmt: HashFormat = HashFormat.STRING) -> str:
    """MD5 of ``text`` (UTF-8), rendered per ``fmt``."""
    return _render(hashlib.md5(text.encode("utf-8")).hexdigest(), fmt)


def djb2_hash(text: str, fmt: HashFormat = HashFormat.STRING) -> str:
    """Short djb2 digest (http://www.cse.yorku.ca/~oz/hash.html).

    Wraps at 64 bits like a machine integer would and renders the absolute
    value; the ``SQL`` rendering is zero-padded to 8 bytes.

    A library helper for callers that want a shorter digest than MD5.  File
    processing always hashes with :func:`content_hash`.
    """
    h = 0
    for ch in text:
        h = (h * 33 + ord(ch)) & 0xFFFFFFFFFFFFFFFF
    if h >= 1 << 63:
        h = (1 << 64) - h
    if fmt is HashFormat.SQL:
        return f"x'{h:016x}'"
    return f"'0x{h:x}'"


class HashReducer:
    """Collapse a row's hash columns into a single hash token.

    Args:
        ruleset: Supplies the (ascending) hash columns and the delimiter used
                 to join their values before hashing.
        state:   Where hashes and counts are recorded.  Defaults to a fresh
                 :class:`HashState`.
        fmt:     Rendering of the hash token.
    """

    def __init__(
        self,
        ruleset: RuleSet,
        state: HashState | None = None,
        fmt: HashFormat = HashFormat.STRING,
    ) -> None:
        self._columns = ruleset.hash_columns
        self._delimiter = ruleset.output_delimiter
        self.state = state if state is not None else HashState()
        self.format = fmt

    @property
    def enabled(self) -> bool:
        return bool(self._columns)

    @property
    def columns(self) -> tuple[int, ...]:
        return self._columns

    def reduce(self, fields: list[str]) -> tuple[list[str], str]:
        """Return ``(reduced_fields, hash)`` and record the hash.

        ``reduced_fields`` is a new list: ``fields`` without the hash columns,
        with the hash inserted once, where the lowest hash column was.  Its
        length is ``len(fields) - len(hash_columns) + 1``.

        Raises:
            HashColumnError: a hash column is beyond the end of ``fields``.
                Nothing is recorded in that case.
        """
        if not self._columns:
            raise ConfigError("reduce called but no HashColumns are configured")
        last = self._columns[-1]
        if last >= len(fields):
            raise HashColumnError(last, len(fields))

        value = self._delimiter.join(fields[c] for c in self._columns)
        digest = content_hash(value, self.format)
        self.state.record(digest, value)

        hashed = set(self._columns)
        first = self._columns[0]
        reduced: list[str] = []
        for i, text in enumerate(fields):
            if i == first:
                reduced.append(digest)
            elif i not in hashed:
                reduced.append(text)
        return reduced, digest
