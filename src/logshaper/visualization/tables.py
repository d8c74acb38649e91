"""Rich tables for run summaries and the hash pareto."""
from __future__ import annotations

from typing import TYPE_CHECKING

from rich import box
from rich.console import Console
from rich.table import Table

from ..hashing.state import HashState

if TYPE_CHECKING:
    from ..pipeline.processor import FileReport

_console = Console()


def print_hash_pareto(
    state: HashState,
    top: int = 10,
    title: str = "Most frequent message shapes",
    console: Console | None = None,
) -> None:
    """Render the ``top`` hashes by count, with share of rows and cumulative share.

    Args:
        state:   Hash state of one scanned file.
        top:     Number of rows to show; 0 shows all.
        title:   Table title.
        console: Where to print; defaults to stdout.
    """
    console = console or _console
    counts = state.most_common(top or None)
    if not counts:
        console.print("[yellow]No hashes recorded.[/yellow]")
        return

    total = state.total or 1
    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("#", style="dim", width=4)
    table.add_column("Hash", style="dim", no_wrap=True)
    table.add_column("Value", overflow="fold", max_width=70)
    table.add_column("Count", justify="right", style="cyan")
    table.add_column("%", justify="right")
    table.add_column("Cum %", justify="right", style="green")

    cumulative = 0
    for rank, (digest, count) in enumerate(counts, start=1):
        cumulative += count
        table.add_row(
            str(rank),
            digest,
            state.value(digest) or "",
            str(count),
            f"{count / total * 100:.1f}",
            f"{cumulative / total * 100:.1f}",
        )

    console.print(table)
    if len(state) > len(counts):
        console.print(f"[dim]... and {len(state) - len(counts)} more hashes (use --top 0 to see all)[/dim]")


def print_file_reports(
    reports: list["FileReport"],
    title: str = "Parsed files",
    console: Console | None = None,
) -> None:
    """One row per processed file with its row and error counts."""
    console = console or _console
    if not reports:
        console.print("[yellow]No files processed.[/yellow]")
        return

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("File")
    table.add_column("Rows", justify="right", style="cyan")
    table.add_column("Filtered", justify="right")
    table.add_column("Field count", justify="right")
    table.add_column("Extract errs", justify="right")
    table.add_column("Read errs", justify="right")
    table.add_column("Hashes", justify="right")
    table.add_column("Output", overflow="fold")

    for r in reports:
        problems = r.field_count_mismatches + r.extract_errors + r.read_errors + r.hash_errors
        table.add_row(
            r.data_file.name,
            str(r.rows),
            str(r.filtered),
            str(r.field_count_mismatches),
            str(r.extract_errors),
            str(r.read_errors),
            str(len(r.hash_state)),
            "imported" if r.imported else str(r.parsed_output),
            style="yellow" if problems else "",
        )

    console.print(table)
