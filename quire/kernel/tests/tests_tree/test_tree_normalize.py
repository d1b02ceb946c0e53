"""
Quire Tree -- Normalization, Validation and Addressing Tests

normalize_document() repairs any tree into one that satisfies the block/leaf
invariants; resolve_point() clamps out-of-range points instead of failing.
"""

from quire.kernel.serializer import parse
from quire.kernel.tree import (
    covered_segments,
    document_title,
    normalize_document,
    point_at,
    resolve_point,
    split_leaves,
    validate_document,
)
from quire.kernel.types import (
    BULLET_LIST,
    CODE_BLOCK,
    HEADING1,
    LIST_ITEM,
    NUMBER_LIST,
    PARAGRAPH,
    Block,
    Document,
    Leaf,
    Point,
)


def normalized(*blocks):
    doc = Document(blocks=list(blocks))
    normalize_document(doc)
    return doc


# ============================================================================
# Normalization
# ============================================================================


class TestNormalizeLeaves:
    def test_merges_neighbours_with_equal_marks(self):
        doc = normalized(Block(PARAGRAPH, [Leaf("a", {"bold"}), Leaf("b", {"bold"}), Leaf("c")]))
        assert doc.blocks[0].children == [Leaf("ab", {"bold"}), Leaf("c")]

    def test_drops_empty_leaves(self):
        doc = normalized(Block(PARAGRAPH, [Leaf(""), Leaf("x", {"italic"}), Leaf("", {"bold"})]))
        assert doc.blocks[0].children == [Leaf("x", {"italic"})]

    def test_keeps_one_empty_leaf(self):
        doc = normalized(Block(PARAGRAPH, [Leaf("", {"bold"}), Leaf("")]))
        assert doc.blocks[0].children == [Leaf("", {"bold"})]

    def test_drops_invalid_marks(self):
        doc = normalized(Block(PARAGRAPH, [Leaf("x", {"sparkle", "bold", "bold:yes"})]))
        assert doc.blocks[0].children == [Leaf("x", {"bold"})]

    def test_flattens_nested_blocks(self):
        doc = normalized(Block(PARAGRAPH, [Leaf("a"), Block(PARAGRAPH, [Leaf("b")])]))
        assert doc.blocks[0].children == [Leaf("ab")]

    def test_code_block_lines_joined_with_newlines(self):
        doc = normalized(Block(CODE_BLOCK, [Block(PARAGRAPH, [Leaf("a")]), Block(PARAGRAPH, [Leaf("b")])]))
        assert doc.blocks[0].children == [Leaf("a\nb")]

    def test_newlines_outside_code_split_blocks(self):
        doc = normalized(Block(HEADING1, [Leaf("a\nb", {"bold"}), Leaf("c")]))
        assert doc.blocks == [
            Block(HEADING1, [Leaf("a", {"bold"})]),
            Block(HEADING1, [Leaf("b", {"bold"}), Leaf("c")]),
        ]

    def test_newlines_in_list_item_split_items(self):
        doc = normalized(Block(BULLET_LIST, [Block(LIST_ITEM, [Leaf("a\nb")])]))
        assert doc.blocks == [Block(BULLET_LIST, [Block(LIST_ITEM, [Leaf("a")]), Block(LIST_ITEM, [Leaf("b")])])]

    def test_lang_only_on_code_blocks(self):
        doc = normalized(Block(PARAGRAPH, [Leaf("x")], lang="python"))
        assert doc.blocks[0].lang is None


class TestNormalizeStructure:
    def test_empty_document_gets_a_paragraph(self):
        assert normalized() == Document(blocks=[Block(PARAGRAPH, [Leaf("")])])

    def test_unknown_kind_becomes_paragraph(self):
        doc = normalized(Block("callout", [Leaf("x")]))
        assert doc.blocks[0].kind == PARAGRAPH

    def test_top_level_leaf_becomes_paragraph(self):
        doc = normalized(Leaf("loose"))
        assert doc.blocks == [Block(PARAGRAPH, [Leaf("loose")])]

    def test_stray_list_item_wrapped(self):
        doc = normalized(Block(LIST_ITEM, [Leaf("a")]))
        assert doc.blocks == [Block(BULLET_LIST, [Block(LIST_ITEM, [Leaf("a")])])]

    def test_non_item_list_children_wrapped(self):
        doc = normalized(Block(BULLET_LIST, [Block(PARAGRAPH, [Leaf("a")]), Leaf("b")]))
        assert doc.blocks[0].children == [Block(LIST_ITEM, [Leaf("a")]), Block(LIST_ITEM, [Leaf("b")])]

    def test_empty_list_dropped(self):
        doc = normalized(Block(BULLET_LIST, []), Block(PARAGRAPH, [Leaf("x")]))
        assert [b.kind for b in doc.blocks] == [PARAGRAPH]

    def test_adjacent_lists_of_same_kind_merged(self):
        doc = normalized(
            Block(BULLET_LIST, [Block(LIST_ITEM, [Leaf("a")])]),
            Block(BULLET_LIST, [Block(LIST_ITEM, [Leaf("b")])]),
        )
        assert len(doc.blocks) == 1
        assert len(doc.blocks[0].children) == 2

    def test_adjacent_lists_of_different_kind_kept(self):
        doc = normalized(
            Block(BULLET_LIST, [Block(LIST_ITEM, [Leaf("a")])]),
            Block(NUMBER_LIST, [Block(LIST_ITEM, [Leaf("b")])]),
        )
        assert [b.kind for b in doc.blocks] == [BULLET_LIST, NUMBER_LIST]

    def test_nested_list_items_lifted(self):
        inner = Block(BULLET_LIST, [Block(LIST_ITEM, [Leaf("inner")])])
        doc = normalized(Block(BULLET_LIST, [Block(LIST_ITEM, [Leaf("outer")]), inner]))
        texts = [item.children[0].text for item in doc.blocks[0].children]
        assert texts == ["outer", "inner"]

    def test_normalize_is_idempotent(self):
        doc = parse("# a\n- b\n- c\n```\nd\n```")
        before = Document(blocks=list(doc.blocks))
        normalize_document(doc)
        assert doc == before


class TestValidate:
    def test_normalized_document_is_valid(self):
        assert validate_document(parse("# a\n- b\n> c")) == []

    def test_reports_problems(self):
        doc = Document(
            blocks=[
                Block(LIST_ITEM, [Leaf("a")]),
                Block(PARAGRAPH, [Leaf("x", {"sparkle"})]),
                Block(BULLET_LIST, [Block(PARAGRAPH, [Leaf("b")])]),
            ]
        )
        errors = validate_document(doc)
        assert any("listItem outside a list" in e for e in errors)
        assert any("invalid mark" in e for e in errors)
        assert any("not a listItem" in e for e in errors)

    def test_empty_document_invalid(self):
        assert validate_document(Document(blocks=[])) == ["document has no blocks"]


# ============================================================================
# Addressing
# ============================================================================


class TestResolvePoint:
    def test_leaf_point(self):
        doc = parse("one\ntwo")
        assert resolve_point(doc, Point((1, 0), 2)) == (1, 2)

    def test_offset_clamped(self):
        doc = parse("one\ntwo")
        assert resolve_point(doc, Point((0, 0), 99)) == (0, 3)

    def test_block_index_clamped(self):
        doc = parse("one\ntwo")
        assert resolve_point(doc, Point((9,), 50)) == (1, 3)

    def test_negative_values_clamped(self):
        doc = parse("one\ntwo")
        assert resolve_point(doc, Point((-3, 0), -1)) == (0, 0)

    def test_empty_path_is_document_start(self):
        assert resolve_point(parse("abc"), Point((), 5)) == (0, 0)

    def test_block_path_uses_block_offset(self):
        doc = Document(blocks=[Block(PARAGRAPH, [Leaf("ab", {"bold"}), Leaf("cd")])])
        assert resolve_point(doc, Point((0,), 3)) == (0, 3)

    def test_list_item_paths(self):
        doc = parse("intro\n- a\n- bc")
        assert resolve_point(doc, Point((1, 1, 0), 1)) == (2, 1)

    def test_later_leaf_offsets_add_up(self):
        doc = Document(blocks=[Block(PARAGRAPH, [Leaf("ab", {"bold"}), Leaf("cd")])])
        assert resolve_point(doc, Point((0, 1), 1)) == (0, 3)


class TestPointAt:
    def test_boundary_prefers_earlier_leaf(self):
        doc = Document(blocks=[Block(PARAGRAPH, [Leaf("ab", {"bold"}), Leaf("cd")])])
        assert point_at(doc, 0, 2) == Point((0, 0), 2)

    def test_inside_later_leaf(self):
        doc = Document(blocks=[Block(PARAGRAPH, [Leaf("ab", {"bold"}), Leaf("cd")])])
        assert point_at(doc, 0, 3) == Point((0, 1), 1)

    def test_list_item(self):
        doc = parse("- a\n- b")
        assert point_at(doc, 1, 1) == Point((0, 1, 0), 1)

    def test_inverse_of_resolve(self):
        doc = parse("# head\n- a\n- bc\ntail")
        for index, offset in [(0, 0), (0, 4), (2, 1), (3, 4)]:
            assert resolve_point(doc, point_at(doc, index, offset)) == (index, offset)


class TestLeafPrimitives:
    def test_split_leaves_inside_leaf(self):
        block = Block(PARAGRAPH, [Leaf("abcd", {"bold"})])
        assert split_leaves(block, 1) == 1
        assert block.children == [Leaf("a", {"bold"}), Leaf("bcd", {"bold"})]

    def test_split_leaves_on_boundary_is_noop(self):
        block = Block(PARAGRAPH, [Leaf("ab"), Leaf("cd", {"bold"})])
        assert split_leaves(block, 2) == 1
        assert len(block.children) == 2

    def test_covered_segments_skip_empty_ends(self):
        doc = parse("ab\ncd\nef")
        assert covered_segments(doc, (0, 2), (2, 0)) == [(1, 0, 2)]


class TestDocumentTitle:
    def test_first_heading1(self):
        assert document_title(parse("intro\n# \n# Real\n# Later")) == "Real"

    def test_none_without_heading(self):
        assert document_title(parse("## sub\ntext")) is None

    def test_title_of_heading_block(self):
        doc = Document(blocks=[Block(HEADING1, [Leaf("  Spaced  ")])])
        assert document_title(doc) == "Spaced"
