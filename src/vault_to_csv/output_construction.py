from __future__ import annotations

import io
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from vault_to_csv.config import DEFAULT_HEADERS, HEADER_TO_FIELD
from vault_to_csv.exceptions import ExportFormatError, ExportWriteError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from vault_to_csv.config import Row

UTF8_BOM = "\ufeff"
OUTPUT_FILE_PREFIX = "VaultToCsv"


def clean_string(text: str, delimiter: str = ",") -> str:
    """Escape a value for a delimited text field.

    The value is wrapped in double quotes only when it contains the delimiter,
    a newline, a carriage return or a double quote; embedded double quotes are
    doubled first. Anything else is returned unchanged.

    Args:
        text (str): the raw value
        delimiter (str): the field delimiter of the output

    Returns:
        str: the value, quoted if needed
    """
    need_quotes = any(ch in text for ch in (delimiter, "\n", "\r"))
    if '"' in text:
        need_quotes = True
        text = text.replace('"', '""')
    if need_quotes:
        return f'"{text}"'
    return text


def format_value(value: object) -> str:
    """Render a row field as text: None is empty, datetimes are ISO 8601."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def check_headers(headers: Sequence[str]) -> None:
    """Raise `ExportFormatError` if a header is not mapped to a row field."""
    unknown = [h for h in headers if h not in HEADER_TO_FIELD]
    if unknown:
        raise ExportFormatError(message=f"Unknown CSV headers: {', '.join(unknown)}")


def build_csv(
    rows: Iterable[Row],
    headers: Sequence[str] = DEFAULT_HEADERS,
    delimiter: str = ",",
) -> str:
    """Render rows as delimited text.

    The output starts with a UTF-8 byte-order mark so that spreadsheet tools
    detect the encoding, followed by the header line and one line per row.
    Lines are joined with ``\\n``; multi-line values are quoted.

    Args:
        rows (Iterable[Row]): the rows, in export order
        headers (Sequence[str]): the column names, in output order
        delimiter (str): the field delimiter

    Raises:
        ExportFormatError: if a header is not mapped to a row field

    Returns:
        str: the complete payload
    """
    check_headers(headers)
    out = io.StringIO()
    out.write(UTF8_BOM)
    out.write(delimiter.join(clean_string(h, delimiter) for h in headers))
    for row in rows:
        values = (clean_string(format_value(row.field_for_header(h)), delimiter) for h in headers)
        out.write("\n")
        out.write(delimiter.join(values))
    return out.getvalue()


def output_file_name(now: datetime | None = None) -> str:
    """Suggest a file name embedding the generation time.

    Args:
        now (datetime | None): the generation time, the current local time if None

    Returns:
        str: a name such as ``VaultToCsv_2024_05_01_134502.csv``
    """
    stamp = now or datetime.now(UTC).astimezone()
    return f"{OUTPUT_FILE_PREFIX}_{stamp:%Y_%m_%d_%H%M%S}.csv"


def write_export(path: Path, payload: str) -> Path:
    """Write a rendered payload as UTF-8, keeping its line endings as they are.

    Args:
        path (Path): the destination file; missing parent folders are created
        payload (str): the rendered export

    Raises:
        ExportWriteError: if the folder cannot be created or the file written

    Returns:
        Path: the written path
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8", newline="")
    except OSError as e:
        raise ExportWriteError(path=path, message=f"Cannot write {path}: {e}") from e
    return path
