"""
Quire Kernel — Selection Tracker

Queries over (Document, Selection) used by toolbars and the command layer.
All of them are pure: no hidden state, same inputs → same answer.

Host selections arrive as abstract Points; utf16_to_offset/offset_to_utf16
translate offsets for hosts that count UTF-16 code units.
"""

from __future__ import annotations

from quire.kernel.tree import (
    FlatPos,
    block_text,
    covered_segments,
    list_kind_at,
    marks_at,
    point_at,
    resolve_point,
    slice_leaves,
    text_block_paths,
    text_blocks,
)
from quire.kernel.types import PARAGRAPH, Document, EditorState, Point, Selection


def ordered_range(doc: Document, selection: Selection) -> tuple[FlatPos, FlatPos]:
    """(start, end) flat positions, start <= end, whatever the direction."""
    anchor = resolve_point(doc, selection.anchor)
    focus = resolve_point(doc, selection.focus)
    return (anchor, focus) if anchor <= focus else (focus, anchor)


def is_collapsed(doc: Document, selection: Selection | None) -> bool:
    if selection is None:
        return False
    start, end = ordered_range(doc, selection)
    return start == end


def active_marks(doc: Document, selection: Selection | None, pending_marks: set[str] | None = None) -> set[str]:
    """
    Marks present on every selected character. For a collapsed (or
    zero-character) selection: the pending marks, or the marks typing would
    carry forward when nothing is pending.
    """
    if selection is None:
        return set()
    start, end = ordered_range(doc, selection)
    segments = covered_segments(doc, start, end)

    if not segments:
        if pending_marks is not None:
            return set(pending_marks)
        return marks_at(text_blocks(doc)[start[0]], start[1])

    blocks = text_blocks(doc)
    common: set[str] | None = None
    for index, s, e in segments:
        for leaf in slice_leaves(blocks[index], s, e):
            common = set(leaf.marks) if common is None else common & leaf.marks
    return common or set()


def is_mark_active(
    doc: Document,
    selection: Selection | None,
    mark: str,
    pending_marks: set[str] | None = None,
) -> bool:
    return mark in active_marks(doc, selection, pending_marks)


def active_block_kind(doc: Document, selection: Selection | None) -> str:
    """
    Kind of the block holding the focus; `paragraph` with no selection.
    A list item reports its list's kind (bulletList / numberList).
    """
    if selection is None:
        return PARAGRAPH
    index, _ = resolve_point(doc, selection.focus)
    path = text_block_paths(doc)[index]
    return list_kind_at(doc, path) or text_blocks(doc)[index].kind


def selection_text(doc: Document, selection: Selection | None) -> str:
    """Selected text, blocks separated by newlines."""
    if selection is None:
        return ""
    start, end = ordered_range(doc, selection)
    blocks = text_blocks(doc)
    parts: list[str] = []
    for index in range(start[0], end[0] + 1):
        text = block_text(blocks[index])
        s = start[1] if index == start[0] else 0
        e = end[1] if index == end[0] else len(text)
        parts.append(text[s:e])
    return "\n".join(parts)


def select(state: EditorState, anchor: Point, focus: Point | None = None) -> EditorState:
    """
    Move the selection. Points are clamped onto the document. Pending marks
    are dropped when the selection actually moves.
    """
    doc = state.document
    anchor = point_at(doc, *resolve_point(doc, anchor))
    focus = point_at(doc, *resolve_point(doc, focus)) if focus is not None else anchor
    selection = Selection(anchor=anchor, focus=focus)

    moved = selection != state.selection
    return EditorState(
        document=doc,
        selection=selection,
        undo_stack=state.undo_stack,
        redo_stack=state.redo_stack,
        pending_marks=None if moved else state.pending_marks,
    )


# ---------------------------------------------------------------------------
# UTF-16 offsets
# ---------------------------------------------------------------------------


def utf16_to_offset(text: str, units: int) -> int:
    """
    Character offset for a UTF-16 code unit offset. An offset that lands
    inside a surrogate pair snaps back to the start of that character.
    """
    count = 0
    for index, char in enumerate(text):
        width = 2 if ord(char) > 0xFFFF else 1
        if count + width > units:
            return index
        count += width
    return len(text)


def offset_to_utf16(text: str, offset: int) -> int:
    return sum(2 if ord(char) > 0xFFFF else 1 for char in text[:offset])
