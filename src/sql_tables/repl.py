"""Interactive REPL and batch runner for the sql_tables query language."""

from __future__ import annotations

import argparse
import logging
import readline  # noqa: F401 - enables line editing in input()
import sys
from pathlib import Path
from typing import Any

from sql_tables.database import (
    CreateResult,
    Database,
    DeleteResult,
    DropResult,
    InsertResult,
    QueryResult,
    UpdateResult,
)
from sql_tables.errors import DatabaseError

logger = logging.getLogger(__name__)

HISTORY_FILE = Path.home() / ".sqlt_history"


def _scan_statements(content: str) -> tuple[list[str], str, bool]:
    """Scan content for statements ending in a semicolon.

    Semicolons inside string literals (either quote kind) do not end a
    statement, and a backslash inside a literal escapes the next character.
    Outside literals ``--`` starts a comment that runs to the end of the
    line; comments are dropped from the statement text.

    Returns:
        The complete statements, the unterminated remainder, and whether
        the content ends inside a string literal.
    """
    statements = []
    current = []
    quote: str | None = None
    escape_next = False
    i = 0

    while i < len(content):
        ch = content[i]

        if escape_next:
            current.append(ch)
            escape_next = False
        elif quote is not None:
            current.append(ch)
            if ch == "\\":
                escape_next = True
            elif ch == quote:
                quote = None
        elif ch == "-" and content.startswith("--", i):
            # Skip to the newline, which is kept as whitespace
            end = content.find("\n", i)
            if end == -1:
                break
            i = end
            continue
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif ch == ";":
            stmt = "".join(current).strip()
            if stmt:
                statements.append(stmt)
            current = []
        else:
            current.append(ch)
        i += 1

    return statements, "".join(current).strip(), quote is not None


def _split_statements(content: str) -> list[str]:
    """Split content into statements, keeping any unterminated last one."""
    statements, remainder, _ = _scan_statements(content)
    if remainder:
        statements.append(remainder)
    return statements


def format_value(value: Any, max_width: int = 40) -> str:
    """Format a value for display."""
    if value is None:
        return "NULL"
    s = str(value)
    if len(s) > max_width:
        return s[:max_width - 3] + "..."
    return s


def print_result(result: QueryResult) -> None:
    """Print query results in a formatted table."""
    if isinstance(result, (InsertResult, UpdateResult, DeleteResult, DropResult)):
        if result.message:
            print(result.message)
        return
    if isinstance(result, CreateResult) and result.message:
        print(result.message)

    if not result.rows:
        print("(no results)")
        return

    # Calculate column widths
    col_widths = {col: len(col) for col in result.columns}
    for row in result.rows:
        for col in result.columns:
            col_widths[col] = max(col_widths[col], len(format_value(row.get(col))))

    header = " | ".join(col.ljust(col_widths[col]) for col in result.columns)
    print(header)
    print("-" * len(header))

    for row in result.rows:
        print(" | ".join(format_value(row.get(col)).ljust(col_widths[col]) for col in result.columns))

    print(f"\n({len(result.rows)} row{'s' if len(result.rows) != 1 else ''})")


def run_statements(content: str, database: Database, verbose: bool = False) -> tuple[int, int]:
    """Execute every statement in a script against database.

    A failing statement is reported and logged; the rest still run.

    Returns:
        A (succeeded, failed) pair of statement counts.
    """
    succeeded = failed = 0
    for stmt in _split_statements(content):
        if verbose:
            print(f"sqlt> {stmt};")
        try:
            result = database.execute_sql(stmt)
        except DatabaseError as e:
            failed += 1
            logger.warning("Statement failed: %s (%s)", stmt, e)
            print(f"Error: {e}", file=sys.stderr)
            continue
        succeeded += 1
        print_result(result)
    logger.info("Ran %d statement(s), %d failed", succeeded + failed, failed)
    return succeeded, failed


def run_file(file_path: Path, database: Database | None = None, verbose: bool = False) -> int:
    """Execute queries from a file.

    Args:
        file_path: Path to the file containing queries
        database: Database to run against; a new one when omitted
        verbose: If True, print each query before executing

    Returns:
        0 if every statement succeeded, 1 otherwise
    """
    try:
        content = file_path.read_text()
    except OSError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    if not _split_statements(content):
        print("No queries found in file", file=sys.stderr)
        return 1

    if database is None:
        database = Database()
    _, failed = run_statements(content, database, verbose)
    return 1 if failed else 0


def print_help() -> None:
    """Print help information."""
    print("""
sqlt - in-memory SQL tables

STATEMENTS (end each with ';'):
  CREATE TABLE name (col TYPE [PRIMARY_KEY] [NOT_EMPTY]
                     [FOREIGN_KEY_REFERENCES table.column], ...)
  INSERT INTO name (col, ...) VALUES (value, ...)[, (value, ...)]
  SELECT * | col, ... FROM name [INNER JOIN other ON a = b] [WHERE cond]
  UPDATE name SET col = value, ... [WHERE cond]
  DELETE FROM name [WHERE cond]
  DROP TABLE name

TYPES: VARCHAR(n), INT, LONGINT, DOUBLE, DATETIME ('YYYY-MM-DD HH:MM:SS')

CONDITIONS: col op value [AND|OR col op value ...], evaluated left to right
  Operators: = == != <> < <= > >=

COMMANDS:
  i <file>, source <file>   Run statements from a file
  help                      Show this help
  exit, quit                Leave the REPL
""")


def _needs_continuation(buffer: str) -> bool:
    """A statement is complete once it ends with a semicolon outside quotes and comments."""
    _, remainder, in_string = _scan_statements(buffer)
    return in_string or bool(remainder)


def run_repl(database: Database | None = None) -> int:
    """Run the interactive REPL."""
    if database is None:
        database = Database()

    print("sqlt - in-memory SQL tables")
    print("Type 'help' for commands, 'exit' to quit.\n")

    try:
        readline.read_history_file(HISTORY_FILE)
    except FileNotFoundError:
        pass

    try:
        while True:
            try:
                line = input("sqlt> ").strip()
            except EOFError:
                print()
                break

            if not line:
                continue

            # Handle special commands
            lower = line.lower()
            if lower in ("exit", "quit"):
                break
            if lower == "help":
                print_help()
                continue
            command, _, argument = line.partition(" ")
            if command.lower() in ("i", "source") and argument.strip():
                run_file(Path(argument.strip().rstrip(";")).expanduser(), database)
                print()
                continue

            # Read until the statement ends with a semicolon
            buffer = line
            while _needs_continuation(buffer):
                try:
                    buffer += "\n" + input("  ... ")
                except EOFError:
                    print()
                    break

            statements = _split_statements(buffer)
            if not statements:
                continue
            for stmt in statements:
                try:
                    result = database.execute_sql(stmt)
                except DatabaseError as e:
                    logger.debug("Statement failed: %s", e)
                    print(f"Error: {e}")
                else:
                    print_result(result)
            print()

    finally:
        try:
            readline.set_history_length(1000)
            readline.write_history_file(HISTORY_FILE)
        except OSError as e:
            logger.debug("Could not save history to %s: %s", HISTORY_FILE, e)

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(
        prog="sqlt",
        description="Interactive shell for in-memory SQL tables",
    )
    arg_parser.add_argument(
        "-c", "--command",
        type=str,
        help="Execute a single statement and exit",
    )
    arg_parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Execute statements from a file and exit",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print each statement before executing (for -f/--file)",
    )
    arg_parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    args = arg_parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.file:
        if not args.file.exists():
            print(f"Error: File not found: {args.file}", file=sys.stderr)
            return 1
        return run_file(args.file, verbose=args.verbose)

    if args.command:
        try:
            result = Database().execute_sql(args.command)
        except DatabaseError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print_result(result)
        return 0

    return run_repl()


if __name__ == "__main__":
    sys.exit(main())
