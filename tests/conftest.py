"""Shared pytest fixtures for logshaper tests."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from logshaper.rules.inputs import Inputs
from logshaper.rules.ruleset import RuleSet

DELIMITER = r"\s\s+"


@pytest.fixture()
def tmp_log_file(tmp_path: Path):
    """Return a factory that creates temporary log files."""

    def _make(lines: list[str], name: str = "test.log", directory: Path | None = None) -> Path:
        p = (directory or tmp_path) / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return p

    return _make


@pytest.fixture()
def rules_file(tmp_path: Path):
    """Return a factory that writes a JSON rule document."""

    def _make(document: dict[str, Any], name: str = "rules.json") -> Path:
        p = tmp_path / name
        p.write_text(json.dumps(document), encoding="utf-8")
        return p

    return _make


@pytest.fixture()
def make_ruleset():
    """Build a compiled RuleSet from snake_case or document-style keyword args."""

    def _make(**kwargs: Any) -> RuleSet:
        kwargs.setdefault("input_delimiter", DELIMITER)
        return RuleSet.from_inputs(Inputs(**kwargs))

    return _make


@pytest.fixture()
def extract_rules() -> list[dict[str, Any]]:
    """Extract rules for the message column of the sample rows, in evaluation order."""
    return [
        {
            "Columns": [7],
            "RegexString": r"(^|\s+)(([0-9]+[a-zA-Z_\.-]|[a-zA-Z_\.-]+[0-9])[a-zA-Z0-9\.\-_:]*)",
            "Token": "${1}{}",
            "Submatch": 2,
            "Comment": "alphanumeric word",
        },
        {
            "Columns": [7],
            "RegexString": r"(^|\s+)([\w]+[:=])([\w:\._]+)",
            "Token": "${1}${2}{}",
            "Submatch": 3,
            "Comment": "key=value or key:value",
        },
        {
            "Columns": [7],
            "RegexString": r"(\()([\w:\.]+)(\))",
            "Token": "${1}{}${3}",
            "Submatch": 2,
        },
        {
            "Columns": [7],
            "RegexString": r"(^|\s+)(0x[a-fA-F0-9]+)",
            "Token": "${1}{}",
            "Submatch": 2,
        },
        {
            "Columns": [7],
            "RegexString": r"(^|\s+)([0-9\.:_]+)",
            "Token": "${1}{}",
            "Submatch": 2,
        },
    ]


@pytest.fixture()
def read_lines() -> list[str]:
    return [
        "2023-10-07 12:00:00.00 MDT  0         0         notification  debug          multi word type     sw_a          Debug SW message",
        "2023-10-07 12:00:00.01 MDT  1         001       notification  info           SingleWordType      sw_b          Info SW message",
        "2023-10-07 12:00:00.02 MDT  1         002       status        info           alphanumeric value  sw_a          Message with alphanumberic value abc123def",
    ]


@pytest.fixture()
def filter_lines() -> list[str]:
    return [
        "# Comment line",
        "2023-10-07 12:00:00.00 MDT  0         0         notification  debug          will it filter     sw_a          Debug SW message",
        "2023-10-07 12:00:00.01 MDT  1         001       notification  info           negative filter      sw_b          Info SW message",
        "2023-10-07 12:00:00.02 MDT  1         002       status        info           will it filter  sw_a          Message with alphanumberic value abc123def",
    ]


@pytest.fixture()
def extract_lines() -> list[str]:
    return [
        "2023-10-07 12:00:00.00 MDT  0  0  notification  debug  multi word type  sw_a  Unit 12.Ab.34 message (789)",
        "2023-10-07 12:00:00.01 MDT  1  001  notification  info  SingleWordType  sw_b  Info SW version = 1.2.34 release=a.1.1",
        "2023-10-07 12:00:00.02 MDT  1  002  status  info  alphanumeric value  sw_a  Message with alphanumberic value abc123def",
        "2023-10-07 12:00:00.03 MDT  1  003  status  info  alphanumeric value  sw_a  val:1 flag:x20 other:X30 on 127.0.0.1:8080",
        "2023-10-07 12:00:00.04 MDT  1  004  status  info  alphanumeric value  sw_a  val=2 flag = 30 other 3.cd on (ABC.123_45)",
        "2023-10-07 12:00:00.05 MDT  1  005  status  info  alphanumeric value  sw_a  val=3 flag = 40 other 4.ef on (DEF.678_90)",
        "2023-10-07 12:00:00.06 MDT  1  006  status  info  alphanumeric value  sw_a  val=4 flag = 50 other 5.gh on (GHI.098_76)",
    ]
