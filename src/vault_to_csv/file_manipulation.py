from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from vault_to_csv.config import (
    DEFAULT_EXCLUDE_TERMS,
    DEFAULT_EXTENSIONS,
    FILE_ORDER,
    FOLDER_ORDER,
    ROOT_PARENT_ID,
    BlockKind,
    Row,
    RowKind,
    RowTable,
)
from vault_to_csv.exceptions import VaultNotFoundError, VaultReadError
from vault_to_csv.hashing import string_hash
from vault_to_csv.logging import logger
from vault_to_csv.segmenter import block_id, segment_text
from vault_to_csv.settings import ExportOptions, ReadErrorPolicy

if TYPE_CHECKING:
    from collections.abc import Sequence


class FolderNode(BaseModel):
    """A folder of the vault."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Folder path on disk")
    name: str = Field(..., description="Folder name ('' for the vault root)")


class FileNode(BaseModel):
    """A file of the vault with the metadata copied onto its rows.

    Attributes:
        path: File path on disk.
        name: Full file name, e.g. ``note.md``.
        basename: File name without its extension, e.g. ``note``.
        extension: Extension without the dot, e.g. ``md``.
        created_at: Creation time (birth time where the platform records it).
        modified_at: Last modification time.
    """

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="File path on disk")
    name: str = Field(..., description="File name")
    basename: str = Field(..., description="File name without extension")
    extension: str = Field(..., description="Extension without dot")
    created_at: datetime = Field(..., description="Creation time")
    modified_at: datetime = Field(..., description="Modification time")


VaultNode = FolderNode | FileNode


def to_datetime(timestamp: float) -> datetime:
    """Convert a POSIX timestamp to an aware datetime in the local timezone."""
    return datetime.fromtimestamp(timestamp, UTC).astimezone()


def creation_time(st: os.stat_result) -> float:
    """Return the birth time of a file, or its ctime where birth time is not recorded."""
    return getattr(st, "st_birthtime", st.st_ctime)


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


class FileSystemVault:
    """File-tree access to a vault stored on the local filesystem.

    Children are listed sorted by name, case-insensitively, so that two runs
    over an unchanged vault produce the same rows in the same order.
    """

    def __init__(self, root: Path, *, include_hidden: bool = False) -> None:
        self.root = root.expanduser().resolve()
        self.include_hidden = include_hidden
        if not self.root.is_dir():
            raise VaultNotFoundError(folder=self.root, message=f"Vault folder does not exist: {self.root}")

    def root_folder(self) -> FolderNode:
        return FolderNode(path=self.root, name="")

    def list_children(self, folder: FolderNode) -> list[VaultNode]:
        """List the folders and files directly under `folder`.

        Args:
            folder (FolderNode): the folder to list

        Raises:
            OSError: if the folder or one of its entries cannot be read

        Returns:
            list[VaultNode]: the child nodes, sorted by name
        """
        children: list[VaultNode] = []
        for entry in sorted(folder.path.iterdir(), key=lambda p: p.name.lower()):
            if not self.include_hidden and is_hidden(entry):
                continue
            if entry.is_dir():
                children.append(FolderNode(path=entry, name=entry.name))
            elif entry.is_file():
                st = entry.stat()
                children.append(
                    FileNode(
                        path=entry,
                        name=entry.name,
                        basename=entry.stem,
                        extension=entry.suffix.removeprefix("."),
                        created_at=to_datetime(creation_time(st)),
                        modified_at=to_datetime(st.st_mtime),
                    ),
                )
        return children

    def read_text(self, file: FileNode) -> str:
        return file.path.read_text(encoding="utf-8")

    def absolute_path(self, node: VaultNode) -> str:
        return str(node.path.resolve())


def is_exportable(file: FileNode, extensions: Sequence[str], exclude_terms: Sequence[str]) -> bool:
    """Check a file against the extension allow-list and the exclusion terms.

    Args:
        file (FileNode): the file to check
        extensions (Sequence[str]): allowed extensions, without dot, lowercase
        exclude_terms (Sequence[str]): substrings of the basename that disqualify the file

    Returns:
        bool: True if the file should be exported
    """
    if file.extension.lower() not in extensions:
        return False
    return not any(term in file.basename for term in exclude_terms)


@dataclass
class ExportRun:
    """State of one export run.

    `visited` holds the resolved paths of the folders already exported, so a
    folder reached again through a symbolic link is not exported twice.
    """

    vault: FileSystemVault
    options: ExportOptions = field(default_factory=ExportOptions)
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude_terms: tuple[str, ...] = DEFAULT_EXCLUDE_TERMS
    on_read_error: ReadErrorPolicy = ReadErrorPolicy.ABORT
    table: RowTable = field(default_factory=RowTable)
    visited: set[str] = field(default_factory=set)

    def handle_read_error(self, path: Path, error: Exception) -> None:
        """Abort the run, or log and carry on, depending on the read-error policy.

        Raises:
            VaultReadError: if the policy is to abort
        """
        if self.on_read_error is ReadErrorPolicy.ABORT:
            raise VaultReadError(path=path, message=f"Cannot read {path}: {error}") from error
        logger.warning("Skipping unreadable entry", path=str(path), error=str(error))


def folder_row(run: ExportRun, folder: FolderNode, parent_id: str) -> Row:
    path_absolute = run.vault.absolute_path(folder)
    return Row(
        id=string_hash(path_absolute),
        parent_id=parent_id,
        order=FOLDER_ORDER,
        path_absolute=path_absolute,
        row_kind=RowKind.FOLDER,
        block_kind=BlockKind.FOLDER,
    )


def export_file(run: ExportRun, file: FileNode, folder_id: str) -> str | None:
    """Append the row of a file followed by the rows of its blocks.

    The content is read before any row is appended, so an unreadable file
    contributes nothing when the run skips read errors.

    Args:
        run (ExportRun): the export in progress
        file (FileNode): the file to export
        folder_id (str): identifier of the enclosing folder

    Returns:
        str | None: the file identifier, or None if the file was skipped
    """
    try:
        text = run.vault.read_text(file)
    except (OSError, UnicodeDecodeError) as e:
        run.handle_read_error(file.path, e)
        return None

    file_id = f"{folder_id}-{string_hash(file.basename)}"
    run.table.append(
        Row(
            id=file_id,
            parent_id=folder_id,
            content=file.basename,
            order=FILE_ORDER,
            created_at=file.created_at,
            modified_at=file.modified_at,
            file_extension=file.extension,
            row_kind=RowKind.FILE,
            block_kind=BlockKind.FILE,
        ),
    )
    position = 0
    for position, block in enumerate(segment_text(text, run.options), start=1):
        run.table.append(
            Row(
                id=block_id(file_id, block),
                parent_id=file_id,
                content=block.text,
                order=position,
                created_at=file.created_at,
                modified_at=file.modified_at,
                row_kind=RowKind.BLOCK,
                block_kind=block.kind,
            ),
        )
    logger.debug("Exported file", path=str(file.path), blocks=position)
    return file_id


def walk_folder(run: ExportRun, folder: FolderNode, parent_id: str = ROOT_PARENT_ID) -> str | None:
    """Export a folder and everything below it, depth-first, pre-order.

    A folder whose resolved path was already exported (a symbolic link back to
    an ancestor or to a sibling) is skipped with a warning.

    Args:
        run (ExportRun): the export in progress
        folder (FolderNode): the folder to export
        parent_id (str): identifier of the parent folder ("" for the root)

    Returns:
        str | None: the folder identifier, or None if the folder was skipped
    """
    resolved = run.vault.absolute_path(folder)
    if resolved in run.visited:
        logger.warning("Skipping folder already exported", path=str(folder.path), target=resolved)
        return None
    run.visited.add(resolved)
    logger.debug("Walking folder", path=str(folder.path))
    folder_id = run.table.append(folder_row(run, folder, parent_id)).id
    try:
        children = run.vault.list_children(folder)
    except OSError as e:
        run.handle_read_error(folder.path, e)
        return folder_id

    for child in children:
        match child:
            case FolderNode():
                walk_folder(run, child, folder_id)
            case FileNode() if is_exportable(child, run.extensions, run.exclude_terms):
                export_file(run, child, folder_id)
            case FileNode():
                logger.debug("Skipping file", path=str(child.path))
    return folder_id


def export_vault(
    vault: FileSystemVault,
    options: ExportOptions | None = None,
    *,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
    exclude_terms: Sequence[str] = DEFAULT_EXCLUDE_TERMS,
    on_read_error: ReadErrorPolicy = ReadErrorPolicy.ABORT,
) -> RowTable:
    """Flatten a whole vault into a fresh row table.

    Args:
        vault (FileSystemVault): the vault to export
        options (ExportOptions | None): the segmentation policy, defaults if None
        extensions (Sequence[str]): file extensions to export, without dot
        exclude_terms (Sequence[str]): basename substrings of files to skip
        on_read_error (ReadErrorPolicy): abort the run or skip unreadable entries

    Raises:
        VaultReadError: if an entry cannot be read and the policy is to abort

    Returns:
        RowTable: folder, file and block rows in traversal order
    """
    run = ExportRun(
        vault=vault,
        options=options or ExportOptions(),
        extensions=tuple(ext.lstrip(".").lower() for ext in extensions),
        exclude_terms=tuple(exclude_terms),
        on_read_error=on_read_error,
    )
    logger.info("Starting vault export", vault=str(vault.root))
    walk_folder(run, vault.root_folder())
    logger.info("Finished vault export", rows=len(run.table))
    return run.table
