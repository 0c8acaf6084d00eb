"""Split the lines of a Markdown file into exportable blocks.

The segmenter is a single forward scan. The line at the current index decides
how many of the following lines belong to the same block, and the scan resumes
right after the last absorbed line:

1. blank lines are their own block (or are skipped);
2. front matter (``---`` on the very first line) runs to the closing ``---``;
3. tables (``|``) and 5. quotes (``>``) run to the next blank line or the next
   line opening a different construct;
4. fenced code runs to the closing fence;
6. headings and 7. list items stand alone;
8. other lines are merged with the following plain lines when the
   consecutive-lines policy is on.

Constructs left open at the end of the file are closed by it.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, NamedTuple

from vault_to_csv.config import BlockKind
from vault_to_csv.hashing import string_hash

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from vault_to_csv.settings import ExportOptions

FRONT_MATTER_DELIMITER = "---"
CODE_FENCE = "```"
TABLE_MARKER = "|"
QUOTE_MARKER = ">"
HEADING_MARKER = "#"

# Matched against stripped lines.
_OPENER_PATTERN = re.compile(r"^(#+ |\||```|>|- |\* |[1-9]\. |[1-9]\) )")
_LIST_PATTERN = re.compile(r"^(- |\* |[1-9]\. |[1-9]\) )")


class Block(NamedTuple):
    """A run of source lines exported as one row."""

    text: str
    kind: BlockKind
    line_number: int


def split_lines(text: str) -> list[str]:
    """Split file content on ``\\n``, dropping the ``\\r`` of CRLF endings.

    A trailing newline produces a trailing empty line, so every line of the
    file, including the last empty one, is accounted for.

    Args:
        text (str): the full file content

    Returns:
        list[str]: the lines of the file
    """
    return [line.removesuffix("\r") for line in text.split("\n")]


def is_blank(line: str) -> bool:
    return not line.strip()


def is_list_item(line: str) -> bool:
    return _LIST_PATTERN.match(line.strip()) is not None


def opens_construct(line: str) -> bool:
    """Check whether a line starts a table, code, quote, heading or list item."""
    return _OPENER_PATTERN.match(line.strip()) is not None


def join_lines(lines: Sequence[str], start: int, end: int) -> str:
    return "\n".join(lines[start : end + 1])


def find_fence_end(lines: Sequence[str], start: int, delimiter: str) -> int:
    """Find the line closing a fenced construct opened at `start`.

    Args:
        lines (Sequence[str]): the lines of the file
        start (int): index of the opening line
        delimiter (str): prefix of the closing line

    Returns:
        int: index of the first later line starting with `delimiter`, or of
            the last line when the construct is never closed
    """
    end = start + 1
    while end < len(lines) and not lines[end].startswith(delimiter):
        end += 1
    return min(end, len(lines) - 1)


def find_section_end(lines: Sequence[str], start: int, marker: str | None = None) -> int:
    """Find the last line of a section opened at `start`.

    The section runs until a blank line or a line opening a construct. Lines
    starting with `marker` continue the section even though they are openers,
    so a table absorbs its pipe rows and a quote its ``>`` lines.

    Args:
        lines (Sequence[str]): the lines of the file
        start (int): index of the first line of the section
        marker (str | None): opener that does not end the section

    Returns:
        int: index of the last line of the section (`start` if it is alone)
    """
    nxt = start + 1
    while nxt < len(lines):
        stripped = lines[nxt].strip()
        if not stripped:
            break
        if opens_construct(stripped) and not (marker and stripped.startswith(marker)):
            break
        nxt += 1
    return nxt - 1


def _classify(lines: Sequence[str], index: int, options: ExportOptions) -> tuple[int, BlockKind]:
    line = lines[index]

    if index == 0 and line == FRONT_MATTER_DELIMITER:
        return find_fence_end(lines, index, FRONT_MATTER_DELIMITER), BlockKind.MULTI
    if line.startswith(TABLE_MARKER):
        if options.treat_tables_as_block:
            return find_section_end(lines, index, TABLE_MARKER), BlockKind.MULTI
        return index, BlockKind.LINE
    if line.startswith(CODE_FENCE):
        if options.treat_code_as_block:
            return find_fence_end(lines, index, CODE_FENCE), BlockKind.CODE
        return index, BlockKind.LINE
    if line.startswith(QUOTE_MARKER):
        return find_section_end(lines, index, QUOTE_MARKER), BlockKind.QUOTE
    if line.startswith(HEADING_MARKER):
        return index, BlockKind.HEADER
    if is_list_item(line):
        return index, BlockKind.LIST

    has_next_line = index + 1 < len(lines) and not is_blank(lines[index + 1])
    if options.treat_consecutive_lines_as_block and has_next_line:
        end = find_section_end(lines, index)
        if end > index:
            return end, BlockKind.MULTI
    return index, BlockKind.LINE


def segment_lines(lines: Sequence[str], options: ExportOptions) -> Iterator[Block]:
    """Group the lines of a file into blocks, in document order.

    Every line belongs to exactly one block, except blank lines when
    `options.export_blank_lines` is off, which are skipped. A line holding
    only whitespace counts as blank; when blank lines are exported, it is
    exported with its whitespace.

    Args:
        lines (Sequence[str]): the lines of the file
        options (ExportOptions): the segmentation policy

    Yields:
        Iterator[Block]: the blocks, each with its 1-based start line number
    """
    index = 0
    while index < len(lines):
        line = lines[index]
        if is_blank(line):
            if options.export_blank_lines:
                yield Block(line, BlockKind.LINE, index + 1)
            index += 1
            continue
        end, kind = _classify(lines, index, options)
        yield Block(join_lines(lines, index, end), kind, index + 1)
        index = end + 1


def segment_text(text: str, options: ExportOptions) -> Iterator[Block]:
    """Segment the full content of a file. See `segment_lines`."""
    return segment_lines(split_lines(text), options)


def block_id(file_id: str, block: Block) -> str:
    """Chain the file identifier, start line and content hash of a block.

    Args:
        file_id (str): identifier of the file row owning the block
        block (Block): the block to identify

    Returns:
        str: the block identifier
    """
    return string_hash(f"{file_id}-{block.line_number}-{string_hash(block.text)}")
