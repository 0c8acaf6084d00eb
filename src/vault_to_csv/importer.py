"""Read a CSV export back and convert it to Roam-style JSON pages."""

from __future__ import annotations

import argparse
import csv
import io
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vault_to_csv.config import HEADER_TO_FIELD, Row, RowKind
from vault_to_csv.exceptions import ExportFormatError, InvalidOptionsError, VaultReadError
from vault_to_csv.logging import logger
from vault_to_csv.output_construction import UTF8_BOM, write_export
from vault_to_csv.settings import describe_validation_error

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

DEFAULT_USER_UID = "vault-to-csv"

_REQUIRED_HEADERS = ("uid", "parent", "order", "row-type", "block-type")
_DATETIME_FIELDS = {"created_at", "modified_at"}


class ImportConfig(BaseModel):
    """Configuration parameters parsed from CLI arguments."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    input: Path
    output: Path | None = None
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    user_uid: str = DEFAULT_USER_UID


def read_export(path: Path) -> str:
    """Read the raw payload of a CSV export, without its byte-order mark.

    Args:
        path (Path): the CSV file to read

    Raises:
        VaultReadError: if the file cannot be read

    Returns:
        str: the payload text
    """
    try:
        text = path.read_text(encoding="utf-8", newline="")
    except (OSError, UnicodeDecodeError) as e:
        raise VaultReadError(path=path, message=f"Cannot read {path}: {e}") from e
    return text.removeprefix(UTF8_BOM)


def _row_from_record(record: dict[str, str]) -> Row:
    values: dict[str, Any] = {}
    for header, raw in record.items():
        name = HEADER_TO_FIELD[header]
        if raw == "" and name not in {"content", "parent_id"}:
            values[name] = None
        elif name in _DATETIME_FIELDS:
            values[name] = datetime.fromisoformat(raw)
        else:
            values[name] = raw
    return Row.model_validate(values)


def parse_export(text: str, delimiter: str = ",") -> list[Row]:
    """Rebuild rows from a payload produced by `build_csv`.

    Empty fields become None, except the content and the parent identifier
    which stay empty strings.

    Args:
        text (str): the payload, with or without its byte-order mark
        delimiter (str): the field delimiter

    Raises:
        ExportFormatError: if a header is unknown, a required column is
            missing, or a line does not hold a valid row

    Returns:
        list[Row]: the rows, in file order
    """
    reader = csv.reader(io.StringIO(text.removeprefix(UTF8_BOM), newline=""), delimiter=delimiter)
    headers = next(reader, None)
    if headers is None:
        raise ExportFormatError(message="The CSV export is empty.")
    unknown = [h for h in headers if h not in HEADER_TO_FIELD]
    missing = [h for h in _REQUIRED_HEADERS if h not in headers]
    if unknown or missing:
        raise ExportFormatError(
            message=f"Unexpected CSV columns: unknown={unknown} missing={missing}",
        )

    rows: list[Row] = []
    for line_number, values in enumerate(reader, start=2):
        if len(values) != len(headers):
            raise ExportFormatError(
                message=f"Line {line_number} has {len(values)} fields, expected {len(headers)}.",
            )
        try:
            rows.append(_row_from_record(dict(zip(headers, values, strict=True))))
        except (ValidationError, ValueError) as e:
            raise ExportFormatError(message=f"Line {line_number} is not a valid row: {e}") from e
    return rows


def _epoch_ms(value: datetime | None) -> int | None:
    return None if value is None else int(value.timestamp() * 1000)


def rows_to_roam(rows: Iterable[Row], user_uid: str = DEFAULT_USER_UID) -> list[dict[str, Any]]:
    """Convert rows to Roam-style pages: one page per file, its blocks as children.

    Folder rows have no Roam counterpart and are dropped. Blocks whose parent
    file is not in `rows` are dropped as well.

    Args:
        rows (Iterable[Row]): rows in export order
        user_uid (str): user recorded as creator and editor

    Returns:
        list[dict[str, Any]]: the pages, in file order
    """
    user = {":user/uid": user_uid}
    pages: dict[str, dict[str, Any]] = {}
    dropped = 0
    for row in rows:
        stamps = {
            "create-time": _epoch_ms(row.created_at),
            "edit-time": _epoch_ms(row.modified_at),
            ":create/user": user,
            ":edit/user": user,
        }
        if row.row_kind is RowKind.FILE:
            pages[row.id] = {"title": row.content, "uid": row.id, **stamps, "children": []}
        elif row.row_kind is RowKind.BLOCK and row.parent_id in pages:
            pages[row.parent_id]["children"].append({"string": row.content, "uid": row.id, **stamps})
        elif row.row_kind is RowKind.BLOCK:
            dropped += 1
    if dropped:
        logger.warning("Dropped blocks without a parent file", count=dropped)
    return list(pages.values())


def build_parser() -> argparse.ArgumentParser:
    """Build parser for the ``import`` subcommand.

    Returns:
        argparse.ArgumentParser: Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="vault-to-csv import",
        description="Convert a vault CSV export to Roam-style JSON.",
    )
    parser.add_argument("input", type=Path, help="CSV export to read.")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="JSON file to write (default: stdout).",
    )
    parser.add_argument("--delimiter", type=str, default=",", help="CSV field delimiter.")
    parser.add_argument(
        "--user-uid",
        type=str,
        default=DEFAULT_USER_UID,
        help="User uid recorded on pages and blocks.",
    )
    return parser


def parse_config(argv: Sequence[str] | None = None) -> ImportConfig:
    """Parse CLI arguments into configuration object.

    Args:
        argv (Sequence[str] | None): Optional CLI args.

    Raises:
        InvalidOptionsError: if an argument value is rejected by `ImportConfig`

    Returns:
        ImportConfig: Parsed config.
    """
    args = build_parser().parse_args(argv)
    try:
        return ImportConfig.model_validate(vars(args))
    except ValidationError as e:
        raise InvalidOptionsError(message=f"Invalid arguments: {describe_validation_error(e)}") from e


def main(argv: Sequence[str] | None = None) -> int:
    """Convert a CSV export to Roam-style JSON.

    Args:
        argv (Sequence[str] | None): Optional CLI arguments.

    Returns:
        int: Process exit code.
    """
    config = parse_config(argv)
    rows = parse_export(read_export(config.input), delimiter=config.delimiter)
    rendered = json.dumps(rows_to_roam(rows, user_uid=config.user_uid), ensure_ascii=False, indent=2)
    if config.output is None:
        sys.stdout.write(rendered + "\n")
    else:
        write_export(config.output, rendered + "\n")
        print(f"Wrote {config.output} rows={len(rows)}")
    return 0
