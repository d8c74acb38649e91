"""logshaper CLI: entry point.

Commands:
    logshaper parse --inputfile RULES [--datafile FILE]   Parse a file or a data directory
    logshaper check --inputfile RULES [LINE ...]          Show what the rules do to sample lines
"""
from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import settings
from .errors import ConfigError, LogShaperError
from .rules.inputs import load_inputs
from .rules.ruleset import RuleSet

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

# ── Helpers ─────────────────────────────────────────────────────────────────


def _setup_logging(level: str, log_file: Path | None) -> None:
    handlers: list[logging.Handler] = [
        RichHandler(console=err_console, show_path=False, rich_tracebacks=True)
    ]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)
    logging.basicConfig(level=level.upper(), format="%(message)s", handlers=handlers)


def _load_ruleset(inputfile: Path) -> RuleSet:
    ruleset = RuleSet.from_inputs(load_inputs(inputfile))
    logger.info("Loaded rules from %s", inputfile)
    return ruleset


def _fail(exc: Exception) -> None:
    err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
    sys.exit(1)


# ── CLI root ─────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version="1.0.0", prog_name="logshaper")
def main() -> None:
    """logshaper: regex-driven log line normalizer."""


# ── parse ────────────────────────────────────────────────────────────────────


@main.command()
@click.option(
    "--inputfile", "-i", required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON rule file describing the input type.",
)
@click.option(
    "--datafile", "-d", default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Parse this file only (default: every file in the rule file's DataDirectory).",
)
@click.option(
    "--output-dir", "-o", default=None, type=click.Path(file_okay=False, path_type=Path),
    help=f"Output directory [default: {settings.output_directory}].",
)
@click.option("--sqlcolumns", default=0, type=int, help="Write SQL INSERTs with this many values (0 = delimited text).")
@click.option("--sqldatatable", default="data", help="Table for parsed rows in SQL mode.", show_default=True)
@click.option("--sqlhashtable", default="hash", help="Table for hashes in SQL mode.", show_default=True)
@click.option(
    "--sqlite3file", default=None, type=click.Path(dir_okay=False, path_type=Path),
    help="Import the SQL output into this SQLite database, then delete it.",
)
@click.option("--stdout", "to_stdout", is_flag=True, help="Also print every output line.")
@click.option("--threads", "-t", default=None, type=int, help=f"Files processed in parallel [default: {settings.threads}].")
@click.option("--uniqueid", default="", help="Prefix every row with this id.")
@click.option("--uniqueidregex", default="", help="Take the row prefix from the first input line matching this regex.")
@click.option("--top", default=10, type=int, help="Show the N most frequent hashes (0 = all).", show_default=True)
@click.option("--watch", is_flag=True, help="Keep processing new files (needs ProcessedInputDirectory).")
@click.option(
    "--log-level", default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help=f"Log level [default: {settings.log_level}].",
)
@click.option("--log-file", default=None, help="Log file name, created in the output directory.")
def parse(
    inputfile: Path,
    datafile: Path | None,
    output_dir: Path | None,
    sqlcolumns: int,
    sqldatatable: str,
    sqlhashtable: str,
    sqlite3file: Path | None,
    to_stdout: bool,
    threads: int | None,
    uniqueid: str,
    uniqueidregex: str,
    top: int,
    watch: bool,
    log_level: str | None,
    log_file: str | None,
) -> None:
    """Parse log files with a JSON rule file.

    Writes FILE.parsed.txt and, when HashColumns are configured,
    FILE.hashes.txt to the output directory.

    \b
    Examples:
      logshaper parse -i inputs/tomcat.json -d catalina.out
      logshaper parse -i inputs/tomcat.json --sqlcolumns 10 --sqlite3file logs.db
      logshaper parse -i inputs/tomcat.json --watch
    """
    from .pipeline.processor import OutputOptions, process_directory, process_file, watch_directory
    from .visualization.tables import print_file_reports, print_hash_pareto

    output_directory = output_dir or settings.output_directory
    log_name = settings.log_file if log_file is None else log_file
    _setup_logging(
        log_level or settings.log_level,
        output_directory / log_name if log_name else None,
    )

    try:
        ruleset = _load_ruleset(inputfile)
        id_regex = None
        if uniqueidregex:
            try:
                id_regex = re.compile(uniqueidregex)
            except re.error as exc:
                raise ConfigError(f"--uniqueidregex: invalid regex {uniqueidregex!r}: {exc}") from exc
        if sqlite3file is not None and sqlcolumns <= 0:
            raise ConfigError("--sqlite3file needs --sqlcolumns")

        options = OutputOptions(
            output_directory=output_directory,
            sql_columns=sqlcolumns,
            sql_data_table=sqldatatable,
            sql_hash_table=sqlhashtable,
            sqlite3_file=sqlite3file,
            unique_id=uniqueid,
            unique_id_regex=id_regex,
            data_buffer=settings.data_buffer,
            error_buffer=settings.error_buffer,
            echo=click.echo if to_stdout else None,
        )
        workers = threads or settings.threads

        if datafile is not None:
            reports = [process_file(ruleset, datafile, options)]
        else:
            if ruleset.data_directory is None:
                raise ConfigError("no --datafile given and the rule file has no DataDirectory")
            if not ruleset.data_directory.is_dir():
                raise ConfigError(f"DataDirectory does not exist: {ruleset.data_directory}")
            if watch:
                err_console.print(f"[dim]Watching {ruleset.data_directory} (Ctrl+C to stop)[/dim]")
                reports = watch_directory(ruleset, ruleset.data_directory, options, workers)
            else:
                reports = process_directory(ruleset, ruleset.data_directory, options, workers)
    except (LogShaperError, OSError) as exc:
        _fail(exc)
        return

    if to_stdout:
        return
    print_file_reports(reports, console=console)
    if ruleset.hashing_enabled:
        for report in reports:
            print_hash_pareto(
                report.hash_state,
                top=top,
                title=f"Top hashes in {report.data_file.name}",
                console=console,
            )


# ── check ────────────────────────────────────────────────────────────────────


@main.command()
@click.option(
    "--inputfile", "-i", required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON rule file to test.",
)
@click.argument("lines", nargs=-1)
def check(inputfile: Path, lines: tuple[str, ...]) -> None:
    """Compile a rule file and show what it does to sample LINES.

    Without LINES only the rule file is validated.  Each line is shown after
    filtering, replacement, splitting and extraction.

    \b
    Examples:
      logshaper check -i inputs/tomcat.json
      logshaper check -i inputs/tomcat.json "2023-10-07 12:00:00  INFO  started"
    """
    from .transform.line_transformer import LineTransformer

    try:
        ruleset = _load_ruleset(inputfile)
    except (LogShaperError, OSError) as exc:
        _fail(exc)
        return

    console.print(
        f"[green]OK[/green] {inputfile.name}: {len(ruleset.replacements)} replacements, "
        f"{len(ruleset.extracts)} extracts, hash columns {escape(str(list(ruleset.hash_columns)))}"
    )
    transformer = LineTransformer(ruleset)

    for line in lines:
        tbl = Table(title=escape(line), box=box.ROUNDED, show_header=False, title_justify="left")
        tbl.add_column("Step", style="bold")
        tbl.add_column("Result", overflow="fold", max_width=90)
        if transformer.filter(line):
            tbl.add_row("filter", "[yellow]dropped[/yellow]")
            console.print(tbl)
            continue
        replaced = transformer.replace(line)
        tbl.add_row("replace", escape(replaced))
        fields, mismatch = transformer.split(replaced)
        for i, value in enumerate(fields):
            tbl.add_row(f"field {i}", escape(value))
        if mismatch is not None:
            tbl.add_row("split", f"[red]{mismatch}[/red]")
        values, errors = transformer.extract(fields)
        for i, value in enumerate(fields):
            tbl.add_row(f"field {i} (extracted)", escape(value))
        for i, value in enumerate(values):
            tbl.add_row(f"extract {i}", escape(value))
        for err in errors:
            tbl.add_row("extract", f"[red]{escape(str(err))}[/red]")
        console.print(tbl)


if __name__ == "__main__":
    main()
