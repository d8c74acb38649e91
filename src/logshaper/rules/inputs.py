"""Rule document model: the JSON file that describes one input type.

Field names follow the on-disk document (``InputDelimiter``, ``Extracts`` ...);
Python code may use the snake_case names as well::

    inputs = Inputs(input_delimiter=r"\\s\\s+", expected_field_count=8)
    inputs = load_inputs("inputs/exampleInputs.json")

Every rule entry accepts a free-text ``Comment`` that is ignored by the
compiler.  Entries with an empty ``RegexString`` are comment-only.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ConfigError

logger = logging.getLogger(__name__)


class _RuleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ReplacementRule(_RuleModel):
    """Line-level regex substitution, applied before splitting."""

    regex_string: str = Field(default="", alias="RegexString")
    replacement: str = Field(default="", alias="Replacement")
    comment: str = Field(default="", alias="Comment")


class ExtractRule(_RuleModel):
    """Pull a capture group out of one or more split columns.

    ``submatch`` indexes the match groups: 0 is the whole match, so the first
    capture group is 1.
    """

    columns: list[int] = Field(default_factory=list, alias="Columns")
    regex_string: str = Field(default="", alias="RegexString")
    submatch: int = Field(default=0, alias="Submatch")
    token: str = Field(default="", alias="Token")
    comment: str = Field(default="", alias="Comment")


class Inputs(_RuleModel):
    """Raw, uncompiled configuration for one input type."""

    data_directory: str = Field(default="", alias="DataDirectory")
    expected_field_count: int = Field(default=0, alias="ExpectedFieldCount")
    extracts: list[ExtractRule] = Field(default_factory=list, alias="Extracts")
    hash_columns: list[int] = Field(default_factory=list, alias="HashColumns")
    input_delimiter: str = Field(default="", alias="InputDelimiter")
    negative_filter: str = Field(default="", alias="NegativeFilter")
    output_delimiter: str = Field(default="|", alias="OutputDelimiter")
    positive_filter: str = Field(default="", alias="PositiveFilter")
    processed_input_directory: str = Field(default="", alias="ProcessedInputDirectory")
    replacements: list[ReplacementRule] = Field(default_factory=list, alias="Replacements")
    sql_quote_columns: list[int] = Field(default_factory=list, alias="SqlQuoteColumns")


def load_inputs(path: str | Path) -> Inputs:
    """Read and validate a JSON rule document.

    Raises:
        ConfigError: the file cannot be read, is not JSON, or does not match
            the document schema.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read rule file {path}: {exc}") from exc
    try:
        inputs = Inputs.model_validate(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"rule file {path} is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        raise ConfigError(f"rule file {path} is invalid: {exc}") from exc
    logger.debug(
        "Loaded rule file %s: %d replacements, %d extracts",
        path, len(inputs.replacements), len(inputs.extracts),
    )
    return inputs
