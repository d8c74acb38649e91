"""Process whole files: scan, transform, hash and write the output files.

For ``app.log`` two files are produced in the output directory:

* ``app.log.parsed.txt``: one line per kept input line, delimited or as SQL
  ``INSERT`` statements;
* ``app.log.hashes.txt``: one line per distinct hash, most frequent first
  (only when hash columns are configured).

While being written both carry a ``.locked`` suffix, removed when the file is
complete, so anything watching the output directory never sees partial
output.  Each file gets its own scanner and hash state; nothing is shared
between files.
"""
from __future__ import annotations

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TextIO

from ..errors import HashColumnError, LogShaperError, SqliteImportError
from ..hashing.reducer import HashFormat
from ..hashing.state import HashState
from ..output.formatter import (
    format_delimited,
    format_hash_insert,
    format_hash_row,
    format_sql_insert,
)
from ..output.sqlite_import import import_sql_file
from ..rules.ruleset import RuleSet
from ..scanner.streaming import StreamingScanner, consume

logger = logging.getLogger(__name__)

PARSED_SUFFIX = ".parsed.txt"
HASHES_SUFFIX = ".hashes.txt"
LOCKED_SUFFIX = ".locked"

Echo = Callable[[str], None]


@dataclass
class OutputOptions:
    """How and where parsed output is written.

    Attributes:
        output_directory: Directory for ``.parsed.txt`` / ``.hashes.txt`` files.
        sql_columns:      When > 0, write SQL ``INSERT`` statements with this
                          many values instead of delimited text; hashes are
                          rendered as blob literals.
        sql_data_table:   Table name used for parsed rows in SQL mode.
        sql_hash_table:   Table name used for hashes in SQL mode.
        sqlite3_file:     Import the SQL output into this database, then
                          delete the output files.
        unique_id:        Emitted at the start of every row.
        unique_id_regex:  Searched in raw input lines until it matches; group 1
                          (or the whole match) becomes the unique id from then
                          on.  Takes precedence over ``unique_id``.
        echo:             Also send every output line here (e.g. stdout).
    """

    output_directory: Path
    sql_columns: int = 0
    sql_data_table: str = "data"
    sql_hash_table: str = "hash"
    sqlite3_file: Path | None = None
    unique_id: str = ""
    unique_id_regex: re.Pattern[str] | None = None
    data_buffer: int = 100
    error_buffer: int = 100
    echo: Echo | None = None

    @property
    def sql_mode(self) -> bool:
        return self.sql_columns > 0

    @property
    def hash_format(self) -> HashFormat:
        return HashFormat.SQL if self.sql_mode else HashFormat.STRING


@dataclass
class FileReport:
    """What happened while processing one input file."""

    data_file: Path
    parsed_output: Path
    hashes_output: Path | None = None
    rows: int = 0
    filtered: int = 0
    field_count_mismatches: int = 0
    extract_errors: int = 0
    hash_errors: int = 0
    read_errors: int = 0
    imported: bool = False
    hash_state: HashState = field(default_factory=HashState)

    @property
    def lines(self) -> int:
        return self.rows + self.filtered


def output_paths(output_directory: Path, data_file: Path) -> tuple[Path, Path]:
    """Final ``(parsed, hashes)`` output paths for ``data_file``."""
    return (
        output_directory / (data_file.name + PARSED_SUFFIX),
        output_directory / (data_file.name + HASHES_SUFFIX),
    )


def _locked(path: Path) -> Path:
    return path.with_name(path.name + LOCKED_SUFFIX)


def process_file(ruleset: RuleSet, data_file: str | Path, options: OutputOptions) -> FileReport:
    """Parse one file and write its output files.

    Raises:
        OSError: the input cannot be opened or an output file cannot be written.
        SqliteImportError: the parsed rows could not be imported into the
            database; the output files are kept in that case.  A failed hash
            import is only logged.
    """
    data_file = Path(data_file)
    parsed_path, hashes_path = output_paths(options.output_directory, data_file)
    report = FileReport(data_file=data_file, parsed_output=parsed_path)
    options.output_directory.mkdir(parents=True, exist_ok=True)

    scanner = StreamingScanner(ruleset, hash_format=options.hash_format)
    scanner.open_file(data_file)
    report.hash_state = scanner.hash_state
    logger.info("Parsing %s -> %s", data_file, parsed_path)

    try:
        with open(_locked(parsed_path), "w", encoding="utf-8") as out:
            _process_scanner(scanner, out, options, report)
    except BaseException:
        scanner.cancel()
        raise
    finally:
        scanner.shutdown()
    _locked(parsed_path).replace(parsed_path)

    if ruleset.hashing_enabled:
        with open(_locked(hashes_path), "w", encoding="utf-8") as out:
            _write_hashes(scanner.hash_state, out, options)
        _locked(hashes_path).replace(hashes_path)
        report.hashes_output = hashes_path

    logger.info(
        "%s: %d rows, %d filtered, %d unexpected field counts, %d extract errors, %d read errors",
        data_file.name, report.rows, report.filtered, report.field_count_mismatches,
        report.extract_errors, report.read_errors,
    )

    if options.sqlite3_file is not None:
        if report.hashes_output is not None and options.sql_hash_table:
            # A failed hash import keeps its file; parsed rows are imported regardless.
            try:
                import_sql_file(options.sqlite3_file, report.hashes_output)
            except SqliteImportError as exc:
                logger.error("%s: hash import failed, keeping %s: %s",
                             data_file.name, report.hashes_output, exc)
            else:
                report.hashes_output.unlink()
        import_sql_file(options.sqlite3_file, parsed_path)
        parsed_path.unlink()
        report.imported = True

    return report


def _process_scanner(
    scanner: StreamingScanner,
    out: TextIO,
    options: OutputOptions,
    report: FileReport,
) -> None:
    ruleset = scanner.ruleset
    transformer = scanner.transformer
    reducer = scanner.reducer
    name = report.data_file.name

    id_regex = options.unique_id_regex
    unique_id = "" if id_regex is not None else options.unique_id
    if id_regex is None and unique_id:
        logger.info("UniqueID from input: %s", unique_id)

    def on_error(exc: Exception) -> None:
        report.read_errors += 1
        logger.error("%s: %s", name, exc)

    def emit(line: str) -> None:
        out.write(line + "\n")
        if options.echo is not None:
            options.echo(line)

    data, errors = scanner.read(options.data_buffer, options.error_buffer)
    for line in consume(data, errors, on_error):
        if id_regex is not None:
            match = id_regex.search(line)
            if match is not None:
                unique_id = match.group(1) if id_regex.groups else match.group(0)
                id_regex = None
                logger.info("UniqueID found via regex: %s", unique_id)

        if transformer.filter(line):
            report.filtered += 1
            continue

        fields, mismatch = transformer.split(transformer.replace(line))
        if mismatch is not None:
            report.field_count_mismatches += 1
            logger.error("%s: %s, fields: %s", name, mismatch, ruleset.output_delimiter.join(fields))
        extracts, extract_errors = transformer.extract(fields)
        for err in extract_errors:
            report.extract_errors += 1
            logger.warning("%s: %s", name, err)

        if reducer.enabled:
            try:
                fields, _ = reducer.reduce(fields)
            except HashColumnError as exc:
                report.hash_errors += 1
                logger.error("%s: %s, row written unhashed", name, exc)

        if options.sql_mode:
            emit(format_sql_insert(
                options.sql_columns, options.sql_data_table, fields, extracts,
                ruleset.sql_quote_columns, unique_id,
            ))
        else:
            emit(format_delimited(fields, extracts, ruleset.output_delimiter, unique_id))
        report.rows += 1


def _write_hashes(state: HashState, out: TextIO, options: OutputOptions) -> None:
    logger.info("%d distinct hashes", len(state))
    for digest, count in state.most_common():
        value = state.value(digest) or ""
        logger.debug("hash: %s, count: %d, value: %s", digest, count, value)
        if options.sql_mode:
            line = format_hash_insert(options.sql_hash_table, digest, value)
        else:
            line = format_hash_row(digest, value)
        out.write(line + "\n")
        if options.echo is not None:
            options.echo(line)


def list_data_files(directory: Path) -> list[Path]:
    """Regular, non-hidden files in ``directory``, sorted by name."""
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and not p.name.startswith(".")
    )


def process_directory(
    ruleset: RuleSet,
    directory: str | Path,
    options: OutputOptions,
    threads: int = 6,
) -> list[FileReport]:
    """Process every file in ``directory`` on a pool of ``threads`` workers.

    A file that fails is logged and skipped; the others still run.  Reports
    are returned in file-name order.
    """
    directory = Path(directory)
    files = list_data_files(directory)
    if not files:
        logger.debug("No files to process in %s", directory)
        return []

    reports: list[FileReport] = []
    with ThreadPoolExecutor(max_workers=max(1, threads), thread_name_prefix="logshaper") as pool:
        futures = [(f, pool.submit(process_file, ruleset, f, options)) for f in files]
        for path, future in futures:
            try:
                reports.append(future.result())
            except (OSError, LogShaperError) as exc:
                logger.error("Processing %s failed: %s", path, exc)
    return reports


def watch_directory(
    ruleset: RuleSet,
    directory: str | Path,
    options: OutputOptions,
    threads: int = 6,
    interval: float = 1.0,
    max_passes: int | None = None,
) -> list[FileReport]:
    """Keep processing files as they arrive in ``directory``.

    Only meaningful with a processed directory configured: processed files
    are moved away, so each pass sees only new files.  Without one, a single
    pass is made.  Stops after ``max_passes`` passes, or on Ctrl+C.
    """
    reports: list[FileReport] = []
    passes = 0
    try:
        while True:
            reports.extend(process_directory(ruleset, directory, options, threads))
            passes += 1
            if ruleset.processed_directory is None:
                break
            if max_passes is not None and passes >= max_passes:
                break
            if passes % 60 == 0:
                logger.debug("Waiting to process more input in %s", directory)
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.info("Stopped watching %s", directory)
    return reports
