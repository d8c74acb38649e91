"""Error taxonomy shared by the rule compiler, transformer, reducer and scanner.

Construction-time problems are raised.  Per-row problems (field-count
mismatches, bad submatch indices) are *returned* next to usable results so
the caller can decide whether to count, log or abort.
"""
from __future__ import annotations


class LogShaperError(Exception):
    """Base class for every error raised or reported by logshaper."""


class ConfigError(LogShaperError, ValueError):
    """A rule document or RuleSet could not be built."""


class ScannerStateError(LogShaperError, RuntimeError):
    """A StreamingScanner method was called in the wrong lifecycle state."""


class FieldCountMismatch(LogShaperError):
    """Split produced a different number of fields than expected."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Split expected_field_count: {expected}, actual: {actual}")
        self.expected = expected
        self.actual = actual


class SubmatchIndexError(LogShaperError, IndexError):
    """An extract rule referenced a capture group the match does not have."""

    def __init__(self, submatch: int, groups: tuple[str, ...], pattern: str) -> None:
        super().__init__(
            f"submatch index {submatch} out of range for submatches: {list(groups)!r}, regex: {pattern}"
        )
        self.submatch = submatch
        self.groups = groups
        self.pattern = pattern


class HashColumnError(LogShaperError, IndexError):
    """A hash column is beyond the number of fields in the row."""

    def __init__(self, column: int, field_count: int) -> None:
        super().__init__(f"hash column {column} out of range for {field_count} fields")
        self.column = column
        self.field_count = field_count


class LineDecodeError(LogShaperError):
    """A raw input line could not be decoded to text."""

    def __init__(self, line_number: int, cause: UnicodeDecodeError) -> None:
        super().__init__(f"line {line_number}: {cause}")
        self.line_number = line_number
        self.cause = cause


class ProcessedFileMoveError(LogShaperError, OSError):
    """A fully read input file could not be moved to the processed directory."""


class SqliteImportError(LogShaperError):
    """An SQL output file could not be applied to the database."""
