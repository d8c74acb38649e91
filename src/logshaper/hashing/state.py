"""Per-scanner record of content hashes and how often each occurred."""
from __future__ import annotations

from collections import Counter


class HashState:
    """Hash → first-seen value and hash → occurrence count.

    Entries are only ever added.  One instance belongs to one scanner, so
    there is no locking; scanners running in parallel each own their own.

    Usage::

        state = HashState()
        state.record("'0xab..'", "notification|debug|Unit {} message ({})")
        state.most_common(10)   # [("'0xab..'", 1)]
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._counts: Counter[str] = Counter()

    def record(self, digest: str, value: str) -> int:
        """Count one occurrence of ``digest``; return the new count.

        The value stored for a digest is the one seen first.
        """
        self._values.setdefault(digest, value)
        self._counts[digest] += 1
        return self._counts[digest]

    def value(self, digest: str) -> str | None:
        return self._values.get(digest)

    def count(self, digest: str) -> int:
        return self._counts[digest]

    @property
    def values(self) -> dict[str, str]:
        return dict(self._values)

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def most_common(self, n: int | None = None) -> list[tuple[str, int]]:
        """Hashes by descending count; equal counts keep first-seen order."""
        return self._counts.most_common(n)

    def __contains__(self, digest: object) -> bool:
        return digest in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"HashState(hashes={len(self._values)}, rows={self.total})"
