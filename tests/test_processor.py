"""Tests for per-file processing, directory fan-out and output files."""
from __future__ import annotations

import hashlib
import re
import sqlite3
from pathlib import Path

import pytest

from logshaper.pipeline.processor import (
    OutputOptions,
    list_data_files,
    output_paths,
    process_directory,
    process_file,
    watch_directory,
)


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


@pytest.fixture()
def out_dir(tmp_path: Path) -> Path:
    return tmp_path / "out"


@pytest.fixture()
def hashing_ruleset(make_ruleset, extract_rules):
    return make_ruleset(
        extracts=extract_rules,
        hash_columns=[3, 4, 5, 7],
        negative_filter="^#",
        expected_field_count=8,
    )


class TestProcessFile:
    def test_delimited_output(self, hashing_ruleset, tmp_log_file, extract_lines, out_dir: Path) -> None:
        data = tmp_log_file(["# header"] + extract_lines)
        report = process_file(hashing_ruleset, data, OutputOptions(output_directory=out_dir))

        parsed, hashes = output_paths(out_dir, data)
        assert report.parsed_output == parsed
        assert report.hashes_output == hashes
        assert (report.rows, report.filtered, report.lines) == (7, 1, 8)
        assert report.field_count_mismatches == 0

        rows = parsed.read_text(encoding="utf-8").splitlines()
        assert len(rows) == 7
        digest = f"'0x{_md5('notification|debug|multi word type|Unit {} message ({})')}'"
        assert rows[0] == f"2023-10-07 12:00:00.00 MDT|0|0|{digest}|sw_a|EXTRACTS|12.Ab.34|789"

    def test_no_locked_files_left(self, hashing_ruleset, tmp_log_file, extract_lines, out_dir: Path) -> None:
        process_file(hashing_ruleset, tmp_log_file(extract_lines), OutputOptions(output_directory=out_dir))
        names = sorted(p.name for p in out_dir.iterdir())
        assert names == ["test.log.hashes.txt", "test.log.parsed.txt"]

    def test_hashes_most_common_first(self, hashing_ruleset, tmp_log_file, extract_lines, out_dir: Path) -> None:
        data = tmp_log_file(extract_lines)
        process_file(hashing_ruleset, data, OutputOptions(output_directory=out_dir))
        _, hashes = output_paths(out_dir, data)
        lines = hashes.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 5
        value = "status|info|alphanumeric value|val={} flag = {} other {} on ({})"
        assert lines[0] == f"'0x{_md5(value)}'|{value}"

    def test_no_hash_file_without_hash_columns(self, make_ruleset, tmp_log_file, out_dir: Path) -> None:
        data = tmp_log_file(["a  b", "c  d"])
        report = process_file(make_ruleset(), data, OutputOptions(output_directory=out_dir))
        assert report.hashes_output is None
        assert report.parsed_output.read_text(encoding="utf-8") == "a|b|EXTRACTS|\nc|d|EXTRACTS|\n"
        assert not output_paths(out_dir, data)[1].exists()

    def test_field_count_mismatch_counted(self, make_ruleset, tmp_log_file, out_dir: Path) -> None:
        data = tmp_log_file(["a  b  c", "a  b"])
        report = process_file(make_ruleset(expected_field_count=3), data, OutputOptions(output_directory=out_dir))
        assert report.rows == 2
        assert report.field_count_mismatches == 1

    def test_short_row_written_unhashed(self, make_ruleset, tmp_log_file, out_dir: Path) -> None:
        data = tmp_log_file(["a  b  c", "a"])
        report = process_file(make_ruleset(hash_columns=[1, 2]), data, OutputOptions(output_directory=out_dir))
        assert report.hash_errors == 1
        rows = report.parsed_output.read_text(encoding="utf-8").splitlines()
        assert rows[0] == f"a|'0x{_md5('b|c')}'|EXTRACTS|"
        assert rows[1] == "a|EXTRACTS|"

    def test_extract_errors_counted(self, make_ruleset, tmp_log_file, out_dir: Path) -> None:
        rs = make_ruleset(extracts=[{"Columns": [0], "RegexString": r"\d", "Submatch": 1, "Token": "{}"}])
        report = process_file(rs, tmp_log_file(["a1 b2"]), OutputOptions(output_directory=out_dir))
        assert report.extract_errors == 2

    def test_read_errors_counted(self, make_ruleset, tmp_path: Path, out_dir: Path) -> None:
        data = tmp_path / "bad.log"
        data.write_bytes(b"good\n\xff\n")
        report = process_file(make_ruleset(), data, OutputOptions(output_directory=out_dir))
        assert (report.rows, report.read_errors) == (1, 1)

    def test_unique_id(self, make_ruleset, tmp_log_file, out_dir: Path) -> None:
        options = OutputOptions(output_directory=out_dir, unique_id="run1")
        report = process_file(make_ruleset(), tmp_log_file(["a  b"]), options)
        assert report.parsed_output.read_text(encoding="utf-8") == "run1|a|b|EXTRACTS|\n"

    def test_unique_id_regex(self, make_ruleset, tmp_log_file, out_dir: Path) -> None:
        options = OutputOptions(
            output_directory=out_dir,
            unique_id="ignored",
            unique_id_regex=re.compile(r"serial=(\w+)"),
        )
        data = tmp_log_file(["before", "boot serial=SN42", "after"])
        report = process_file(make_ruleset(), data, options)
        assert report.parsed_output.read_text(encoding="utf-8").splitlines() == [
            "before|EXTRACTS|",
            "SN42|boot serial=SN42|EXTRACTS|",
            "SN42|after|EXTRACTS|",
        ]

    def test_echo(self, make_ruleset, tmp_log_file, out_dir: Path) -> None:
        echoed: list[str] = []
        options = OutputOptions(output_directory=out_dir, echo=echoed.append)
        process_file(make_ruleset(hash_columns=[0]), tmp_log_file(["a  b"]), options)
        assert echoed == [f"'0x{_md5('a')}'|b|EXTRACTS|", f"'0x{_md5('a')}'|a"]

    def test_missing_input(self, make_ruleset, tmp_path: Path, out_dir: Path) -> None:
        with pytest.raises(OSError):
            process_file(make_ruleset(), tmp_path / "missing.log", OutputOptions(output_directory=out_dir))


class TestSqlOutput:
    def test_sql_rows_and_hashes(self, make_ruleset, tmp_log_file, out_dir: Path) -> None:
        rs = make_ruleset(hash_columns=[1], sql_quote_columns=[0])
        options = OutputOptions(output_directory=out_dir, sql_columns=4)
        report = process_file(rs, tmp_log_file(["a  b"]), options)

        digest = f"x'{_md5('b')}'"
        assert report.parsed_output.read_text(encoding="utf-8") == (
            f"INSERT OR IGNORE INTO data VALUES('a',{digest},NULL,NULL);\n"
        )
        assert report.hashes_output is not None
        assert report.hashes_output.read_text(encoding="utf-8") == (
            f"INSERT OR IGNORE INTO hash VALUES({digest}, 'b');\n"
        )

    def test_sqlite_import(self, make_ruleset, tmp_log_file, tmp_path: Path, out_dir: Path) -> None:
        db = tmp_path / "logs.db"
        conn = sqlite3.connect(db)
        conn.executescript(
            "CREATE TABLE data (c0 TEXT, c1 TEXT, c2 TEXT);"
            "CREATE TABLE hash (hash BLOB PRIMARY KEY, value TEXT);"
        )
        conn.close()

        rs = make_ruleset(hash_columns=[1], sql_quote_columns=[0])
        options = OutputOptions(output_directory=out_dir, sql_columns=3, sqlite3_file=db)
        report = process_file(rs, tmp_log_file(["a  b", "c  b"]), options)

        assert report.imported
        assert not report.parsed_output.exists()
        assert report.hashes_output is not None and not report.hashes_output.exists()
        conn = sqlite3.connect(db)
        try:
            assert conn.execute("SELECT COUNT(*) FROM data").fetchone() == (2,)
            assert conn.execute("SELECT value FROM hash").fetchall() == [("b",)]
        finally:
            conn.close()

    def test_repeated_hash_across_files(self, make_ruleset, tmp_log_file, tmp_path: Path, out_dir: Path) -> None:
        db = tmp_path / "logs.db"
        conn = sqlite3.connect(db)
        conn.executescript(
            "CREATE TABLE data (c0 TEXT, c1 TEXT, c2 TEXT);"
            "CREATE TABLE hash (hash BLOB PRIMARY KEY, value TEXT);"
        )
        conn.close()

        rs = make_ruleset(hash_columns=[1], sql_quote_columns=[0])
        options = OutputOptions(output_directory=out_dir, sql_columns=3, sqlite3_file=db)
        first = process_file(rs, tmp_log_file(["a  b"], name="one.log"), options)
        second = process_file(rs, tmp_log_file(["c  b", "d  b"], name="two.log"), options)

        assert first.imported and second.imported
        assert second.hashes_output is not None and not second.hashes_output.exists()
        conn = sqlite3.connect(db)
        try:
            assert conn.execute("SELECT c0 FROM data ORDER BY c0").fetchall() == [("a",), ("c",), ("d",)]
            assert conn.execute("SELECT COUNT(*) FROM hash").fetchone() == (1,)
        finally:
            conn.close()

    def test_hash_import_failure_keeps_data(self, make_ruleset, tmp_log_file, tmp_path: Path, out_dir: Path) -> None:
        db = tmp_path / "logs.db"
        conn = sqlite3.connect(db)
        conn.execute("CREATE TABLE data (c0 TEXT, c1 TEXT, c2 TEXT)")
        conn.close()

        rs = make_ruleset(hash_columns=[1], sql_quote_columns=[0])
        options = OutputOptions(output_directory=out_dir, sql_columns=3, sqlite3_file=db)
        report = process_file(rs, tmp_log_file(["a  b"]), options)

        assert report.imported
        assert report.hashes_output is not None and report.hashes_output.exists()
        conn = sqlite3.connect(db)
        try:
            assert conn.execute("SELECT COUNT(*) FROM data").fetchone() == (1,)
        finally:
            conn.close()


class TestDirectory:
    def test_list_data_files(self, tmp_log_file, tmp_path: Path) -> None:
        tmp_log_file(["x"], name="b.log")
        tmp_log_file(["x"], name="a.log")
        tmp_log_file(["x"], name=".hidden")
        (tmp_path / "sub").mkdir()
        assert [p.name for p in list_data_files(tmp_path)] == ["a.log", "b.log"]

    def test_files_are_isolated(self, make_ruleset, tmp_log_file, tmp_path: Path, out_dir: Path) -> None:
        data_dir = tmp_path / "data"
        tmp_log_file(["x  same", "y  same"], name="a.log", directory=data_dir)
        tmp_log_file(["z  same"], name="b.log", directory=data_dir)

        reports = process_directory(
            make_ruleset(hash_columns=[1]), data_dir, OutputOptions(output_directory=out_dir), threads=2,
        )

        assert [r.data_file.name for r in reports] == ["a.log", "b.log"]
        digest = f"'0x{_md5('same')}'"
        assert reports[0].hash_state.count(digest) == 2
        assert reports[1].hash_state.count(digest) == 1
        assert reports[0].hash_state is not reports[1].hash_state

    def test_empty_directory(self, make_ruleset, tmp_path: Path, out_dir: Path) -> None:
        assert process_directory(make_ruleset(), tmp_path, OutputOptions(output_directory=out_dir)) == []

    def test_watch_moves_processed_files(self, make_ruleset, tmp_log_file, tmp_path: Path, out_dir: Path) -> None:
        data_dir = tmp_path / "data"
        processed = tmp_path / "processed"
        processed.mkdir()
        tmp_log_file(["a  b"], name="a.log", directory=data_dir)
        rs = make_ruleset(processed_input_directory=str(processed))

        reports = watch_directory(
            rs, data_dir, OutputOptions(output_directory=out_dir), interval=0, max_passes=2,
        )

        assert [r.data_file.name for r in reports] == ["a.log"]
        assert list(data_dir.iterdir()) == []
        assert (processed / "a.log").exists()

    def test_watch_without_processed_dir_is_single_pass(self, make_ruleset, tmp_log_file, tmp_path: Path, out_dir: Path) -> None:
        data_dir = tmp_path / "data"
        tmp_log_file(["a  b"], name="a.log", directory=data_dir)
        reports = watch_directory(make_ruleset(), data_dir, OutputOptions(output_directory=out_dir), interval=0)
        assert len(reports) == 1
