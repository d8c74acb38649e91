"""Load an SQL output file into a SQLite database.

The target tables are expected to exist already (``data`` with enough
nullable text columns for fields plus extracts, ``hash`` with a blob key and
a text value).  Statements run in a single transaction, so a failing file
leaves the database untouched.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from ..errors import SqliteImportError

logger = logging.getLogger(__name__)


def import_sql_file(database: str | Path, sql_file: str | Path) -> int:
    """Execute every statement in ``sql_file`` against ``database``.

    Returns the number of rows changed.

    Raises:
        SqliteImportError: the file cannot be read or a statement fails.
    """
    sql_file = Path(sql_file)
    try:
        script = sql_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise SqliteImportError(f"cannot read {sql_file}: {exc}") from exc

    conn = sqlite3.connect(str(database))
    try:
        before = conn.total_changes
        conn.executescript("BEGIN;\n" + script + "\nCOMMIT;")
        changed = conn.total_changes - before
    except sqlite3.Error as exc:
        conn.rollback()
        raise SqliteImportError(f"importing {sql_file} into {database}: {exc}") from exc
    finally:
        conn.close()

    logger.info("Imported %s into %s (%d rows)", sql_file, database, changed)
    return changed
