"""Compiled, read-only rule set for one input type.

``RuleSet.from_inputs`` validates everything up front (every regex is
compiled and every index checked) so nothing in the per-line path can fail
because of bad configuration.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ..errors import ConfigError
from ..transform.epoch import DATE_TIME_PATTERN, date_time_to_epoch
from .inputs import Inputs
from .templates import Template, substitute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Replacement:
    """A compiled replacement rule.

    Attributes:
        pattern:     Regex searched for in the whole (unsplit) line.
        substitute:  Callable producing the replacement text; a
                     :class:`Template` or the date-time epoch converter.
    """

    pattern: re.Pattern[str]
    substitute: Callable[[re.Match[str]], str]

    @property
    def is_epoch(self) -> bool:
        return self.substitute is date_time_to_epoch

    def apply(self, line: str) -> str:
        return substitute(self.pattern, self.substitute, line)


@dataclass(frozen=True)
class Extract:
    """A compiled extract rule: which columns, what to capture, what to leave."""

    columns: tuple[int, ...]
    pattern: re.Pattern[str]
    submatch: int
    token: Template


@dataclass(frozen=True)
class RuleSet:
    """Immutable, compiled configuration shared by every scanner of an input type.

    Build with :meth:`from_inputs`; the dataclass constructor performs no
    validation.
    """

    input_delimiter: re.Pattern[str]
    expected_field_count: int = 0
    negative_filter: re.Pattern[str] | None = None
    positive_filter: re.Pattern[str] | None = None
    replacements: tuple[Replacement, ...] = ()
    extracts: tuple[Extract, ...] = ()
    hash_columns: tuple[int, ...] = ()
    output_delimiter: str = "|"
    sql_quote_columns: frozenset[int] = frozenset()
    processed_directory: Path | None = None
    data_directory: Path | None = None

    @property
    def hashing_enabled(self) -> bool:
        return bool(self.hash_columns)

    @classmethod
    def from_inputs(cls, inputs: Inputs) -> "RuleSet":
        """Compile a rule document.

        Raises:
            ConfigError: a pattern does not compile, an index is negative, or
                the processed directory does not exist.  The message names
                the offending field.
        """
        delimiter = _compile("InputDelimiter", inputs.input_delimiter)

        replacements: list[Replacement] = []
        for i, rule in enumerate(inputs.replacements):
            if not rule.regex_string:
                continue
            pattern = _compile(f"Replacements[{i}].RegexString", rule.regex_string)
            if rule.regex_string == DATE_TIME_PATTERN:
                substitute: Callable[[re.Match[str]], str] = date_time_to_epoch
            else:
                substitute = Template(rule.replacement)
            replacements.append(Replacement(pattern=pattern, substitute=substitute))

        extracts: list[Extract] = []
        for i, rule in enumerate(inputs.extracts):
            if not rule.regex_string:
                continue
            pattern = _compile(f"Extracts[{i}].RegexString", rule.regex_string)
            if rule.submatch < 0:
                raise ConfigError(f"Extracts[{i}].Submatch must be >= 0, got {rule.submatch}")
            _check_indices(f"Extracts[{i}].Columns", rule.columns)
            extracts.append(
                Extract(
                    columns=tuple(rule.columns),
                    pattern=pattern,
                    submatch=rule.submatch,
                    token=Template(rule.token),
                )
            )

        _check_indices("HashColumns", inputs.hash_columns)
        _check_indices("SqlQuoteColumns", inputs.sql_quote_columns)
        if inputs.expected_field_count < 0:
            raise ConfigError(
                f"ExpectedFieldCount must be >= 0, got {inputs.expected_field_count}"
            )

        processed: Path | None = None
        if inputs.processed_input_directory:
            processed = Path(inputs.processed_input_directory)
            if not processed.is_dir():
                raise ConfigError(
                    f"ProcessedInputDirectory does not exist: {processed}"
                )

        ruleset = cls(
            input_delimiter=delimiter,
            expected_field_count=inputs.expected_field_count,
            negative_filter=_compile_optional("NegativeFilter", inputs.negative_filter),
            positive_filter=_compile_optional("PositiveFilter", inputs.positive_filter),
            replacements=tuple(replacements),
            extracts=tuple(extracts),
            hash_columns=tuple(sorted(set(inputs.hash_columns))),
            output_delimiter=inputs.output_delimiter,
            sql_quote_columns=frozenset(inputs.sql_quote_columns),
            processed_directory=processed,
            data_directory=Path(inputs.data_directory) if inputs.data_directory else None,
        )
        logger.debug(
            "Compiled rule set: %d replacements, %d extracts, hash columns %s",
            len(ruleset.replacements), len(ruleset.extracts), list(ruleset.hash_columns),
        )
        return ruleset


def _compile(field_name: str, pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"{field_name}: invalid regex {pattern!r}: {exc}") from exc


def _compile_optional(field_name: str, pattern: str) -> re.Pattern[str] | None:
    return _compile(field_name, pattern) if pattern else None


def _check_indices(field_name: str, indices: list[int]) -> None:
    bad = [i for i in indices if i < 0]
    if bad:
        raise ConfigError(f"{field_name}: column indices must be >= 0, got {bad}")
