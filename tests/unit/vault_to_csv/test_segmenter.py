from __future__ import annotations

import pytest

from vault_to_csv.config import BlockKind
from vault_to_csv.segmenter import (
    Block,
    block_id,
    find_section_end,
    segment_lines,
    segment_text,
    split_lines,
)
from vault_to_csv.settings import ExportOptions

DEFAULTS = ExportOptions()
MERGE_LINES = ExportOptions(treat_consecutive_lines_as_block=True)


def kinds(blocks: list[Block]) -> list[BlockKind]:
    return [b.kind for b in blocks]


@pytest.mark.unit
def test_split_lines_keeps_trailing_empty_line_and_drops_cr() -> None:
    assert split_lines("a\r\nb\n") == ["a", "b", ""]
    assert split_lines("") == [""]


@pytest.mark.unit
def test_plain_lines_are_one_block_each_without_merging() -> None:
    lines = ["first line", "second line", "third line"]

    blocks = list(segment_lines(lines, DEFAULTS))

    assert [b.text for b in blocks] == lines
    assert kinds(blocks) == [BlockKind.LINE] * 3
    assert [b.line_number for b in blocks] == [1, 2, 3]


@pytest.mark.unit
def test_plain_lines_are_one_multi_block_with_merging() -> None:
    lines = ["first line", "second line", "third line"]

    blocks = list(segment_lines(lines, MERGE_LINES))

    assert blocks == [Block("first line\nsecond line\nthird line", BlockKind.MULTI, 1)]


@pytest.mark.unit
def test_single_line_paragraph_stays_a_line_with_merging() -> None:
    blocks = list(segment_text("alone\n\nnext", MERGE_LINES))

    assert blocks == [
        Block("alone", BlockKind.LINE, 1),
        Block("", BlockKind.LINE, 2),
        Block("next", BlockKind.LINE, 3),
    ]


@pytest.mark.unit
@pytest.mark.parametrize("options", [DEFAULTS, MERGE_LINES])
def test_fenced_code_is_one_block_regardless_of_paragraph_policy(options: ExportOptions) -> None:
    lines = ["intro", "```", "line1", "line2", "```", "outro"]

    blocks = list(segment_lines(lines, options))

    assert Block("```\nline1\nline2\n```", BlockKind.CODE, 2) in blocks
    assert blocks[-1] == Block("outro", BlockKind.LINE, 6)


@pytest.mark.unit
def test_code_fence_kept_open_until_end_of_file() -> None:
    blocks = list(segment_lines(["```python", "x = 1", "", "y = 2"], DEFAULTS))

    assert blocks == [Block("```python\nx = 1\n\ny = 2", BlockKind.CODE, 1)]


@pytest.mark.unit
def test_code_lines_are_separate_when_code_merging_is_off() -> None:
    options = ExportOptions(treat_code_as_block=False)

    blocks = list(segment_lines(["```", "# not a heading", "```"], options))

    assert kinds(blocks) == [BlockKind.LINE, BlockKind.HEADER, BlockKind.LINE]


@pytest.mark.unit
def test_front_matter_at_first_line_is_one_block() -> None:
    blocks = list(segment_text("---\na: 1\n---\n", DEFAULTS))

    assert blocks == [
        Block("---\na: 1\n---", BlockKind.MULTI, 1),
        Block("", BlockKind.LINE, 4),
    ]


@pytest.mark.unit
def test_front_matter_pattern_elsewhere_is_not_front_matter() -> None:
    blocks = list(segment_lines(["intro", "---", "a: 1", "---"], DEFAULTS))

    assert [b.text for b in blocks] == ["intro", "---", "a: 1", "---"]
    assert kinds(blocks) == [BlockKind.LINE] * 4


@pytest.mark.unit
def test_unclosed_front_matter_runs_to_end_of_file() -> None:
    blocks = list(segment_lines(["---", "title: x", "body"], DEFAULTS))

    assert blocks == [Block("---\ntitle: x\nbody", BlockKind.MULTI, 1)]


@pytest.mark.unit
def test_table_is_one_block_and_stops_at_blank_line() -> None:
    lines = ["| a | b |", "|---|---|", "| 1 | 2 |", "", "after"]

    blocks = list(segment_lines(lines, DEFAULTS))

    assert blocks[0] == Block("| a | b |\n|---|---|\n| 1 | 2 |", BlockKind.MULTI, 1)
    assert blocks[1:] == [Block("", BlockKind.LINE, 4), Block("after", BlockKind.LINE, 5)]


@pytest.mark.unit
def test_table_stops_at_a_different_opener() -> None:
    lines = ["| a |", "| 1 |", "# Heading"]

    blocks = list(segment_lines(lines, DEFAULTS))

    assert blocks == [
        Block("| a |\n| 1 |", BlockKind.MULTI, 1),
        Block("# Heading", BlockKind.HEADER, 3),
    ]


@pytest.mark.unit
def test_table_rows_are_separate_when_table_merging_is_off() -> None:
    options = ExportOptions(treat_tables_as_block=False, treat_consecutive_lines_as_block=True)
    lines = ["text before", "| a |", "| 1 |"]

    blocks = list(segment_lines(lines, options))

    # the pipe line still ends the paragraph
    assert blocks == [
        Block("text before", BlockKind.LINE, 1),
        Block("| a |", BlockKind.LINE, 2),
        Block("| 1 |", BlockKind.LINE, 3),
    ]


@pytest.mark.unit
def test_quote_absorbs_lazy_continuation_lines() -> None:
    lines = ["> quoted", "lazy continuation", "> more", "- item"]

    blocks = list(segment_lines(lines, DEFAULTS))

    assert blocks == [
        Block("> quoted\nlazy continuation\n> more", BlockKind.QUOTE, 1),
        Block("- item", BlockKind.LIST, 4),
    ]


@pytest.mark.unit
def test_headings_and_list_items_stand_alone_even_when_merging() -> None:
    lines = ["# Title", "- one", "* two", "1. three", "2) four", "  - nested"]

    blocks = list(segment_lines(lines, MERGE_LINES))

    assert kinds(blocks) == [
        BlockKind.HEADER,
        BlockKind.LIST,
        BlockKind.LIST,
        BlockKind.LIST,
        BlockKind.LIST,
        BlockKind.LIST,
    ]


@pytest.mark.unit
def test_paragraph_merging_stops_at_list_item() -> None:
    lines = ["wrapped", "paragraph", "- item", "tail"]

    blocks = list(segment_lines(lines, MERGE_LINES))

    assert blocks == [
        Block("wrapped\nparagraph", BlockKind.MULTI, 1),
        Block("- item", BlockKind.LIST, 3),
        Block("tail", BlockKind.LINE, 4),
    ]


@pytest.mark.unit
def test_paragraph_followed_directly_by_opener_stays_a_line() -> None:
    blocks = list(segment_lines(["text", "> quote"], MERGE_LINES))

    assert blocks == [Block("text", BlockKind.LINE, 1), Block("> quote", BlockKind.QUOTE, 2)]


@pytest.mark.unit
def test_blank_lines_are_skipped_when_not_exported() -> None:
    options = ExportOptions(export_blank_lines=False)

    blocks = list(segment_text("a\n\n   \nb\n", options))

    assert blocks == [Block("a", BlockKind.LINE, 1), Block("b", BlockKind.LINE, 4)]


@pytest.mark.unit
def test_every_line_is_covered_exactly_once() -> None:
    text = "---\nk: v\n---\n# H\n\npara one\npara two\n| t |\n```\ncode\n```\n> q\n- l\nend"
    lines = split_lines(text)

    for options in (DEFAULTS, MERGE_LINES, ExportOptions(treat_tables_as_block=False, treat_code_as_block=False)):
        blocks = list(segment_lines(lines, options))
        rebuilt = [line for b in blocks for line in b.text.split("\n")]
        assert rebuilt == lines
        starts = [b.line_number for b in blocks]
        assert starts == sorted(set(starts))


@pytest.mark.unit
def test_segment_text_is_single_use() -> None:
    blocks = segment_text("a\nb", DEFAULTS)

    assert len(list(blocks)) == 2
    assert list(blocks) == []


@pytest.mark.unit
def test_find_section_end_keeps_marker_lines() -> None:
    lines = ["| a |", "| b |", "plain", "> quote"]

    assert find_section_end(lines, 0, "|") == 2
    assert find_section_end(lines, 0) == 0
    assert find_section_end(lines, 3, ">") == 3


@pytest.mark.unit
def test_block_id_depends_on_file_line_and_text() -> None:
    block = Block("same text", BlockKind.LINE, 3)

    assert block_id("file-1", block) == block_id("file-1", block)
    assert block_id("file-1", block) != block_id("file-2", block)
    assert block_id("file-1", block) != block_id("file-1", block._replace(line_number=4))
    assert block_id("file-1", block) != block_id("file-1", block._replace(text="other"))


@pytest.mark.unit
def test_whitespace_only_line_is_blank() -> None:
    exported = list(segment_lines(["a", "   ", "b"], MERGE_LINES))
    skipped = list(segment_lines(["a", "   ", "b"], ExportOptions(export_blank_lines=False)))

    assert exported == [
        Block("a", BlockKind.LINE, 1),
        Block("   ", BlockKind.LINE, 2),
        Block("b", BlockKind.LINE, 3),
    ]
    assert skipped == [Block("a", BlockKind.LINE, 1), Block("b", BlockKind.LINE, 3)]
