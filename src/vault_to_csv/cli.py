"""
vault_to_csv: flatten a Markdown vault into a CSV table.

Overview
--------
Every folder, note and block of a vault becomes one row of the export:

- folders carry their absolute path,
- notes carry their name, extension and timestamps,
- blocks carry their text, split by the Markdown construct they belong to
  (front matter, tables, fenced code, quotes, headings, list items, paragraphs
  or single lines).

Each row has a stable identifier chained from its parent's identifier and a
fingerprint of its content, so two exports of an unchanged vault can be
diffed. The CSV starts with a UTF-8 byte-order mark for spreadsheet tools.

Usage
-----
Run `python -m vault_to_csv.cli --help` for full options. Common examples:
    - Export the vault in the current directory:
        uv run vault-to-csv --output vault.csv

    - Merge soft-wrapped paragraphs, keep table rows separate:
        uv run vault-to-csv --vault ~/Notes --markdown-blocks --no-markdown-tables

    - Reuse the plugin's saved settings:
        uv run vault-to-csv --vault ~/Notes --options ~/Notes/.obsidian/plugins/vault-to-csv/data.json

    - Convert an export to Roam-style JSON:
        uv run vault-to-csv import VaultToCsv_2024_05_01_134502.csv --output vault.json
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from vault_to_csv import __version__, importer
from vault_to_csv.config import DEFAULT_EXCLUDE_TERMS, DEFAULT_EXTENSIONS
from vault_to_csv.exceptions import InvalidOptionsError, VaultToCsvError
from vault_to_csv.file_manipulation import FileSystemVault, export_vault
from vault_to_csv.logging import logger, setup_logging
from vault_to_csv.output_construction import build_csv, output_file_name, write_export
from vault_to_csv.settings import ReadErrorPolicy, Settings, describe_validation_error

if TYPE_CHECKING:
    from collections.abc import Sequence

IMPORT_COMMAND = "import"
EXPORT_COMMAND = "export"


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse the arguments of the export command.

    Flags left unset are not passed on, so the `Settings` defaults apply.

    Args:
        argv (Sequence[str] | None): Optional CLI arguments.

    Raises:
        InvalidOptionsError: if a flag value is rejected by `Settings`

    Returns:
        Settings: the export configuration
    """
    p = argparse.ArgumentParser(
        prog="vault-to-csv",
        description="Export a Markdown vault to CSV (folders, files and blocks as rows).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--vault", type=Path, help="Vault root (default: $VAULT_TO_CSV_VAULT or cwd).")

    out = p.add_mutually_exclusive_group()
    out.add_argument("--output", type=Path, help="Output CSV file.")
    out.add_argument(
        "--output-dir",
        type=Path,
        help="Folder for a timestamped VaultToCsv_*.csv (default: cwd).",
    )

    p.add_argument(
        "--options",
        dest="options_file",
        type=Path,
        help="YAML/JSON export options (plugin data.json accepted).",
    )
    p.add_argument(
        "--markdown-blocks",
        action=argparse.BooleanOptionalAction,
        help="Export consecutive lines as a single block.",
    )
    p.add_argument(
        "--markdown-tables",
        action=argparse.BooleanOptionalAction,
        help="Export a whole table as a single block.",
    )
    p.add_argument(
        "--code-blocks",
        action=argparse.BooleanOptionalAction,
        help="Export a whole fenced code block as a single block.",
    )
    p.add_argument(
        "--blank-lines",
        action=argparse.BooleanOptionalAction,
        help="Export blank lines as their own blocks.",
    )
    p.add_argument(
        "--extension",
        dest="extensions",
        action="append",
        help=f"File extension to export, repeatable (default: {', '.join(DEFAULT_EXTENSIONS)}).",
    )
    p.add_argument(
        "--exclude-term",
        dest="exclude_terms",
        action="append",
        help=f"Skip files whose name contains TERM, repeatable (default: {', '.join(DEFAULT_EXCLUDE_TERMS)}).",
    )
    p.add_argument(
        "--include-hidden",
        action="store_true",
        default=None,
        help="Walk dot-folders and dot-files.",
    )
    p.add_argument(
        "--on-read-error",
        choices=[policy.value for policy in ReadErrorPolicy],
        help="Abort the export (default) or skip unreadable entries.",
    )
    p.add_argument("--delimiter", type=str, help="CSV field delimiter (default: ,).")
    p.add_argument("--log-file", type=str, help="Log file path.")
    p.add_argument("--verbose", action="store_true", default=None, help="Log debug events.")
    args = p.parse_args(argv)
    try:
        return Settings(**{k: v for k, v in vars(args).items() if v is not None})
    except ValidationError as e:
        raise InvalidOptionsError(message=f"Invalid arguments: {describe_validation_error(e)}") from e


def run_export(settings: Settings) -> tuple[Path, int]:
    """Export the vault described by `settings` and write the CSV.

    Args:
        settings (Settings): the export configuration

    Raises:
        VaultToCsvError: if the vault or the options cannot be read; nothing
            is written in that case

    Returns:
        tuple[Path, int]: the written file and the number of rows
    """
    vault = FileSystemVault(settings.vault, include_hidden=settings.include_hidden)
    table = export_vault(
        vault,
        settings.export_options(),
        extensions=settings.extensions,
        exclude_terms=settings.exclude_terms,
        on_read_error=settings.on_read_error,
    )
    payload = build_csv(table, delimiter=settings.delimiter)
    out_path = settings.output or settings.output_dir / output_file_name()
    write_export(out_path, payload)
    return out_path, len(table)


def report_failure(error: VaultToCsvError) -> int:
    """Log a failed run and print its single diagnostic line."""
    logger.error("Run failed", error=str(error))
    print(f"error: {error}", file=sys.stderr)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if args and args[0] == IMPORT_COMMAND:
        try:
            return importer.main(args[1:])
        except VaultToCsvError as e:
            return report_failure(e)
    if args and args[0] == EXPORT_COMMAND:
        args = args[1:]

    try:
        settings = parse_args(args)
        if settings.log_file or settings.verbose:
            setup_logging(
                settings.log_file or None,
                level=logging.DEBUG if settings.verbose else logging.INFO,
                force=True,
            )
        out_path, rows = run_export(settings)
    except VaultToCsvError as e:
        return report_failure(e)

    print(f"Wrote {out_path} rows={rows}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
