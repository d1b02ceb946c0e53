"""
Quire Selection -- Query Tests

is_mark_active and active_block_kind are pure functions of
(document, selection, pending marks). select() clamps points and drops
pending marks when the selection moves.
"""

import pytest

from quire.kernel.selection import (
    active_block_kind,
    active_marks,
    is_collapsed,
    is_mark_active,
    offset_to_utf16,
    select,
    selection_text,
    utf16_to_offset,
)
from quire.kernel.serializer import parse
from quire.kernel.tree import point_at
from quire.kernel.types import (
    BLOCKQUOTE,
    BULLET_LIST,
    HEADING1,
    NUMBER_LIST,
    PARAGRAPH,
    Point,
    Selection,
)

MIXED = '[{"type":"paragraph","children":[{"text":"ab","bold":true},{"text":"cd"}]}]'


def sel(doc, anchor, focus=None):
    return Selection(point_at(doc, *anchor), point_at(doc, *(focus or anchor)))


# ============================================================================
# is_mark_active
# ============================================================================


class TestIsMarkActive:
    def test_every_character_marked(self):
        doc = parse(MIXED)
        assert is_mark_active(doc, sel(doc, (0, 0), (0, 2)), "bold")

    def test_partially_marked(self):
        doc = parse(MIXED)
        assert not is_mark_active(doc, sel(doc, (0, 1), (0, 3)), "bold")

    def test_no_selection(self):
        doc = parse(MIXED)
        assert not is_mark_active(doc, None, "bold")

    def test_collapsed_uses_pending(self):
        doc = parse(MIXED)
        assert is_mark_active(doc, sel(doc, (0, 3)), "italic", pending_marks={"italic"})
        assert not is_mark_active(doc, sel(doc, (0, 1)), "bold", pending_marks=set())

    @pytest.mark.parametrize("offset, expected", [(0, True), (1, True), (2, True), (3, False), (4, False)])
    def test_collapsed_without_pending_uses_carried_marks(self, offset, expected):
        doc = parse(MIXED)
        assert is_mark_active(doc, sel(doc, (0, offset)), "bold") is expected

    def test_zero_width_range_behaves_as_collapsed(self):
        doc = parse(MIXED)
        selection = Selection(Point((0, 0), 2), Point((0, 1), 0))
        assert not selection.is_collapsed
        assert is_mark_active(doc, selection, "bold")

    def test_across_blocks(self):
        doc = parse('[{"type":"paragraph","children":[{"text":"a","code":true}]},'
                    '{"type":"paragraph","children":[{"text":"b","code":true}]}]')
        assert is_mark_active(doc, sel(doc, (0, 0), (1, 1)), "code")

    def test_active_marks_intersection(self):
        doc = parse('[{"type":"paragraph","children":[{"text":"a","bold":true,"italic":true},{"text":"b","bold":true}]}]')
        assert active_marks(doc, sel(doc, (0, 0), (0, 2))) == {"bold"}


# ============================================================================
# active_block_kind
# ============================================================================


class TestActiveBlockKind:
    def test_no_selection_is_paragraph(self):
        assert active_block_kind(parse("# Title"), None) == PARAGRAPH

    @pytest.mark.parametrize(
        "content, index, kind",
        [
            ("# Title\nbody", 0, HEADING1),
            ("# Title\nbody", 1, PARAGRAPH),
            ("> quote", 0, BLOCKQUOTE),
            ("- a\n- b", 1, BULLET_LIST),
        ],
    )
    def test_focus_block(self, content, index, kind):
        doc = parse(content)
        assert active_block_kind(doc, sel(doc, (index, 0))) == kind

    def test_numbered_list(self):
        doc = parse('[{"type":"numberList","children":[{"type":"listItem","children":[{"text":"x"}]}]}]')
        assert active_block_kind(doc, sel(doc, (0, 1))) == NUMBER_LIST

    def test_uses_focus_not_anchor(self):
        doc = parse("# Title\nbody")
        assert active_block_kind(doc, sel(doc, (0, 0), (1, 2))) == PARAGRAPH


# ============================================================================
# Other queries
# ============================================================================


class TestSelectionText:
    def test_across_blocks(self):
        doc = parse("ab\n- cd\nef")
        assert selection_text(doc, sel(doc, (0, 1), (2, 1))) == "b\ncd\ne"

    def test_collapsed_is_empty(self):
        doc = parse("ab")
        assert selection_text(doc, sel(doc, (0, 1))) == ""
        assert is_collapsed(doc, sel(doc, (0, 1)))

    def test_none(self):
        assert selection_text(parse("ab"), None) == ""
        assert not is_collapsed(parse("ab"), None)


class TestSelect:
    def test_clamps_points(self, make_state, flat):
        state = select(make_state("ab\ncd"), Point((5,), 99))
        assert flat(state) == ((1, 2), (1, 2))

    def test_shares_document(self, make_state):
        state = make_state("ab")
        assert select(state, Point((0, 0), 1)).document is state.document

    def test_moving_drops_pending_marks(self, make_state):
        state = make_state("ab", anchor=(0, 1), pending_marks={"bold"})
        assert select(state, Point((0, 0), 2)).pending_marks is None

    def test_same_selection_keeps_pending_marks(self, make_state):
        state = make_state("ab", anchor=(0, 1), pending_marks={"bold"})
        again = select(state, state.selection.anchor)
        assert again.pending_marks == {"bold"}

    def test_range(self, make_state, flat):
        state = select(make_state("ab\ncd"), Point((1, 0), 1), Point((0, 0), 1))
        assert flat(state) == ((1, 1), (0, 1))


class TestUtf16:
    def test_round_trip_with_astral_characters(self):
        text = "a😀b"
        assert offset_to_utf16(text, 2) == 3
        assert utf16_to_offset(text, 3) == 2

    def test_inside_surrogate_pair_snaps_back(self):
        assert utf16_to_offset("a😀b", 2) == 1

    def test_past_end(self):
        assert utf16_to_offset("ab", 10) == 2

    def test_bmp_text_is_identity(self):
        text = "naïve"
        assert all(utf16_to_offset(text, n) == n == offset_to_utf16(text, n) for n in range(len(text) + 1))
