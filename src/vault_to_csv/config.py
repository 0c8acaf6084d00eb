from __future__ import annotations

from datetime import datetime
from enum import StrEnum, auto
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Iterator


class RowKind(StrEnum):
    """What a row of the export stands for."""

    FOLDER = auto()
    FILE = auto()
    BLOCK = auto()


class BlockKind(StrEnum):
    """How the text of a row was segmented.

    Folder and file rows carry their own kind; block rows are classified by
    the construct that produced them. Front matter, merged tables and merged
    paragraphs are all ``MULTI``.
    """

    FOLDER = auto()
    FILE = auto()
    LINE = auto()
    MULTI = auto()
    HEADER = auto()
    LIST = auto()
    CODE = auto()
    QUOTE = auto()


DEFAULT_EXTENSIONS: tuple[str, ...] = ("md",)

# Basename substrings of files that are not notes (drawing-tool sidecars).
DEFAULT_EXCLUDE_TERMS: tuple[str, ...] = (".excalidraw",)

ROOT_PARENT_ID = ""

FOLDER_ORDER = -1
FILE_ORDER = 0

CSV_HEADERS_CORE: tuple[str, ...] = (
    "uid",
    "string",
    "parent",
    "order",
    "create-time",
    "edit-time",
)
CSV_HEADERS_ADD: tuple[str, ...] = (
    "path-absolute",
    "file-ext",
    "row-type",
    "block-type",
)
DEFAULT_HEADERS: tuple[str, ...] = CSV_HEADERS_CORE + CSV_HEADERS_ADD

HEADER_TO_FIELD: dict[str, str] = {
    "uid": "id",
    "string": "content",
    "parent": "parent_id",
    "order": "order",
    "create-time": "created_at",
    "edit-time": "modified_at",
    "path-absolute": "path_absolute",
    "file-ext": "file_extension",
    "row-type": "row_kind",
    "block-type": "block_kind",
}


class Row(BaseModel):
    """One exported record: a folder, a file, or a block of a file.

    Attributes:
        id: Identifier derived from the content hash chained with the ancestry.
        parent_id: Identifier of the enclosing folder or file ("" for the root).
        content: Empty for folders, the basename for files, the text for blocks.
        order: -1 for folders, 0 for files, 1-based block position within a file.
        created_at: Creation time of the underlying file (None for folders).
        modified_at: Modification time of the underlying file (None for folders).
        path_absolute: Absolute path, set on folder rows only.
        file_extension: Extension without the dot, set on file rows only.
        row_kind: Folder, file or block.
        block_kind: How the content was segmented.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Row identifier")
    parent_id: str = Field(default=ROOT_PARENT_ID, description="Identifier of the parent row")
    content: str = Field(default="", description="Textual payload")
    order: int = Field(..., ge=-1, description="Position among siblings")
    created_at: datetime | None = Field(default=None, description="File creation time")
    modified_at: datetime | None = Field(default=None, description="File modification time")
    path_absolute: str | None = Field(default=None, description="Absolute folder path")
    file_extension: str | None = Field(default=None, description="File extension without dot")
    row_kind: RowKind = Field(..., description="Kind of exported record")
    block_kind: BlockKind = Field(..., description="Segmentation kind")

    def field_for_header(self, header: str) -> object:
        """Return the value exported under a CSV header name.

        Args:
            header (str): one of the keys of `HEADER_TO_FIELD`

        Raises:
            KeyError: if the header is not mapped to a row field

        Returns:
            object: the raw field value (may be None)
        """
        return getattr(self, HEADER_TO_FIELD[header])


class RowTable:
    """Append-only, ordered collection of the rows of one export run.

    Rows are kept exactly in the order they are appended. No sorting,
    deduplication or validation happens here; duplicate identifiers are left
    for downstream consumers to detect.
    """

    def __init__(self) -> None:
        self._rows: list[Row] = []

    def append(self, row: Row) -> Row:
        self._rows.append(row)
        return row

    @property
    def rows(self) -> tuple[Row, ...]:
        return tuple(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)
