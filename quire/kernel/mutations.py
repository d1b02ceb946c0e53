"""
Quire Kernel — Mutation Engine

Pure functions: (state, ...) → MutationResult
No side effects. No IO. Deterministic.

The input state is never modified: every operation deep-copies the document
before editing it, normalizes the result, and maps the selection across the
edit through flat positions. History is not touched here; the command layer
commits results through quire.kernel.history.

Operations:
  set_block_type  — change the kind of the block at a path
  toggle_mark     — uniform mark toggle over the selection
  insert_text     — insert text at a point, carrying marks forward
  delete_range    — remove a range, merging boundary blocks
  insert_block    — split a block in two at a point

apply()/replay() run operation dicts ({"t": "insert_text", ...}) through a
dispatch table, for logs and scripted edits.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from typing import Any

from quire.kernel import selection as sel
from quire.kernel.tree import (
    FlatPos,
    block_text,
    covered_segments,
    delete_text,
    get_block,
    marks_at,
    normalize_document,
    point_at,
    resolve_point,
    slice_leaves,
    split_leaves,
    text_block_paths,
    text_blocks,
)
from quire.kernel.types import (
    BLOCK_KINDS,
    BULLET_LIST,
    CODE_BLOCK,
    HIGHLIGHT,
    LIST_ITEM,
    LIST_KINDS,
    Block,
    Document,
    EditorState,
    Leaf,
    MutationResult,
    Point,
    Selection,
    is_valid_mark,
    mark_kind,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _begin(state: EditorState) -> EditorState:
    """Working copy: fresh document, shared (immutable) history entries."""
    return EditorState(
        document=copy.deepcopy(state.document),
        selection=state.selection,
        undo_stack=list(state.undo_stack),
        redo_stack=list(state.redo_stack),
        pending_marks=set(state.pending_marks) if state.pending_marks is not None else None,
    )


def _finish(before: EditorState, snap: EditorState) -> MutationResult:
    return MutationResult(state=snap, changed=snap.document != before.document)


def _reject(state: EditorState, reason: str) -> MutationResult:
    return MutationResult(state=state, changed=False, reason=reason)


def _flat_selection(doc: Document, selection: Selection | None) -> tuple[FlatPos, FlatPos] | None:
    if selection is None:
        return None
    return resolve_point(doc, selection.anchor), resolve_point(doc, selection.focus)


def _restore_selection(doc: Document, flat: tuple[FlatPos, FlatPos] | None) -> Selection | None:
    if flat is None:
        return None
    anchor, focus = flat
    return Selection(anchor=point_at(doc, *anchor), focus=point_at(doc, *focus))


def _collapsed_at(doc: Document, pos: FlatPos) -> Selection:
    return Selection.collapsed(point_at(doc, *pos))


def _add_mark(marks: set[str], mark: str) -> None:
    if mark_kind(mark) == HIGHLIGHT:
        marks.difference_update({m for m in marks if mark_kind(m) == HIGHLIGHT})
    marks.add(mark)


def _toggled(marks: set[str], mark: str) -> set[str]:
    result = set(marks)
    if mark in result:
        result.discard(mark)
    else:
        _add_mark(result, mark)
    return result


def _target_kind(kind: str) -> str:
    """A bare listItem target means a bullet list."""
    return BULLET_LIST if kind == LIST_ITEM else kind


def _convert(doc: Document, path: tuple[int, ...], kind: str) -> None:
    """
    Change the kind of the text block at `path` in place. List membership is
    handled by splitting the enclosing list around the item; normalization
    merges neighbouring lists of the same kind afterwards.
    """
    if len(path) == 1:
        block = doc.blocks[path[0]]
        if kind in LIST_KINDS:
            doc.blocks[path[0]] = Block(kind, [Block(LIST_ITEM, block.children)])
        else:
            block.kind = kind
            if kind != CODE_BLOCK:
                block.lang = None
        return

    i, j = path
    lst = doc.blocks[i]
    if kind == lst.kind:
        return
    item = lst.children[j]
    if kind in LIST_KINDS:
        middle = Block(kind, [item])
    else:
        middle = Block(kind, item.children)  # type: ignore[union-attr]

    replacement: list[Block] = []
    if j > 0:
        replacement.append(Block(lst.kind, lst.children[:j]))
    replacement.append(middle)
    if j + 1 < len(lst.children):
        replacement.append(Block(lst.kind, lst.children[j + 1 :]))
    doc.blocks[i : i + 1] = replacement


def _split_block(doc: Document, index: int, offset: int, kind: str | None) -> int:
    """Split text block `index` at `offset`; returns the new block's index."""
    path = text_block_paths(doc)[index]
    block = get_block(doc, path)
    carried = marks_at(block, offset)

    k = split_leaves(block, offset)
    head, tail = block.children[:k], block.children[k:]
    block.children = head or [Leaf("", set(carried))]
    tail = tail or [Leaf("", carried)]

    if len(path) == 1:
        doc.blocks.insert(path[0] + 1, Block(block.kind, tail, lang=block.lang))
        new_path: tuple[int, ...] = (path[0] + 1,)
    else:
        doc.blocks[path[0]].children.insert(path[1] + 1, Block(LIST_ITEM, tail))
        new_path = (path[0], path[1] + 1)

    if kind is not None:
        _convert(doc, new_path, _target_kind(kind))
    return index + 1


def _remove_text_block(doc: Document, path: tuple[int, ...]) -> None:
    if len(path) == 1:
        del doc.blocks[path[0]]
    else:
        del doc.blocks[path[0]].children[path[1]]


def _insert_run(doc: Document, index: int, offset: int, text: str, marks: set[str]) -> int:
    block = text_blocks(doc)[index]
    k = split_leaves(block, offset)
    block.children.insert(k, Leaf(text, set(marks)))
    return offset + len(text)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def set_block_type(state: EditorState, path: Iterable[int], kind: str) -> MutationResult:
    """
    Replace the kind of the nearest text block enclosing `path`. Converting
    into or out of a list wraps or unwraps a listItem. Pending marks reset.
    """
    if kind not in BLOCK_KINDS:
        return _reject(state, f"UNKNOWN_KIND: {kind}")

    snap = _begin(state)
    doc = snap.document
    flat = _flat_selection(doc, snap.selection)

    index, _ = resolve_point(doc, Point(tuple(path), 0))
    _convert(doc, text_block_paths(doc)[index], _target_kind(kind))

    snap.pending_marks = None
    normalize_document(doc)
    snap.selection = _restore_selection(doc, flat)
    return _finish(state, snap)


def toggle_mark(state: EditorState, mark: str) -> MutationResult:
    """
    Uniform toggle: if every selected character carries `mark`, remove it
    from all of them, otherwise add it to all of them. A collapsed selection
    toggles the pending marks used by the next inserted run instead.
    """
    if not is_valid_mark(mark):
        return _reject(state, f"UNKNOWN_MARK: {mark}")
    if state.selection is None:
        return _reject(state, "NO_SELECTION")

    snap = _begin(state)
    doc = snap.document
    flat = _flat_selection(doc, snap.selection)
    start, end = sel.ordered_range(doc, snap.selection)
    segments = covered_segments(doc, start, end)

    if not segments:
        block = text_blocks(doc)[start[0]]
        base = snap.pending_marks if snap.pending_marks is not None else marks_at(block, start[1])
        snap.pending_marks = _toggled(base, mark)
        return MutationResult(state=snap, changed=False)

    blocks = text_blocks(doc)
    uniform = all(
        mark in leaf.marks for index, s, e in segments for leaf in slice_leaves(blocks[index], s, e)
    )
    for index, s, e in segments:
        block = blocks[index]
        i = split_leaves(block, s)
        j = split_leaves(block, e)
        for leaf in block.children[i:j]:
            if uniform:
                leaf.marks.discard(mark)
            else:
                _add_mark(leaf.marks, mark)

    normalize_document(doc)
    snap.selection = _restore_selection(doc, flat)
    return _finish(state, snap)


def insert_text(state: EditorState, point: Point, text: str) -> MutationResult:
    """
    Insert `text` at `point`. The run takes the pending marks if any (and
    consumes them), else the marks of the leaf at the insertion boundary.
    Outside code blocks a newline splits the block, as Enter would.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if not text:
        return _reject(state, "EMPTY_TEXT")

    snap = _begin(state)
    doc = snap.document
    index, offset = resolve_point(doc, point)
    block = text_blocks(doc)[index]
    marks = snap.pending_marks if snap.pending_marks is not None else marks_at(block, offset)

    chunks = [text] if block.kind == CODE_BLOCK else text.split("\n")
    for n, chunk in enumerate(chunks):
        if n > 0:
            index, offset = _split_block(doc, index, offset, None), 0
        if chunk:
            offset = _insert_run(doc, index, offset, chunk, marks)

    snap.pending_marks = None
    normalize_document(doc)
    snap.selection = _collapsed_at(doc, (index, offset))
    return _finish(state, snap)


def delete_range(state: EditorState, selection: Selection) -> MutationResult:
    """
    Remove everything in the range. When it spans blocks, the end block's
    remainder is merged into the start block, which keeps its kind.
    """
    snap = _begin(state)
    doc = snap.document
    start, end = sel.ordered_range(doc, selection)
    if start == end:
        return _reject(state, "EMPTY_RANGE")

    paths = text_block_paths(doc)
    first = get_block(doc, paths[start[0]])

    if start[0] == end[0]:
        delete_text(first, start[1], end[1])
    else:
        last = get_block(doc, paths[end[0]])
        delete_text(first, start[1], len(block_text(first)))
        k = split_leaves(last, end[1])
        first.children.extend(last.children[k:])
        for path in reversed(paths[start[0] + 1 : end[0] + 1]):
            _remove_text_block(doc, path)

    snap.pending_marks = None
    normalize_document(doc)
    snap.selection = _collapsed_at(doc, start)
    return _finish(state, snap)


def insert_block(state: EditorState, point: Point, kind: str | None = None) -> MutationResult:
    """
    Split the text block at `point` into two siblings. The second carries the
    remaining text and takes `kind` (default: the block's own kind; inside a
    list, a new listItem).
    """
    if kind is not None and kind not in BLOCK_KINDS:
        return _reject(state, f"UNKNOWN_KIND: {kind}")

    snap = _begin(state)
    doc = snap.document
    index, offset = resolve_point(doc, point)
    new_index = _split_block(doc, index, offset, kind)

    snap.pending_marks = None
    normalize_document(doc)
    snap.selection = _collapsed_at(doc, (new_index, 0))
    return _finish(state, snap)


# ---------------------------------------------------------------------------
# Operation dispatch
# ---------------------------------------------------------------------------


def apply(state: EditorState, op: dict[str, Any]) -> MutationResult:
    """
    Apply one operation dict. Unknown or malformed operations are returned
    unchanged with a reason; this never raises.
    """
    op_type = op.get("t")
    if op_type is None:
        return _reject(state, "MISSING_TYPE: operation has no 't' field")

    entry = _HANDLERS.get(op_type)
    if entry is None:
        return _reject(state, f"UNKNOWN_OPERATION: {op_type}")

    handler, read_args = entry
    try:
        args = read_args(op)
    except (KeyError, TypeError, ValueError) as e:
        return _reject(state, f"MALFORMED_OPERATION: {op_type}: {e!r}")
    return handler(state, *args)


def replay(state: EditorState, ops: Iterable[dict[str, Any]]) -> EditorState:
    """Apply a sequence of operations. Rejected operations are skipped."""
    for op in ops:
        result = apply(state, op)
        if result.reason:
            logger.warning("replay: skipped %s (%s)", op.get("t"), result.reason)
        state = result.state
    return state


def _select(state: EditorState, anchor: Point, focus: Point) -> MutationResult:
    return MutationResult(state=sel.select(state, anchor, focus), changed=False)


def _point_arg(value: Any) -> Point:
    if not isinstance(value, dict):
        raise TypeError("point must be an object")
    return Point.from_dict(value)


def _insert_text_args(op: dict[str, Any]) -> tuple[Any, ...]:
    return _point_arg(op["point"]), str(op["text"])


def _delete_range_args(op: dict[str, Any]) -> tuple[Any, ...]:
    selection = op["selection"]
    return (Selection(anchor=_point_arg(selection["anchor"]), focus=_point_arg(selection["focus"])),)


def _set_block_type_args(op: dict[str, Any]) -> tuple[Any, ...]:
    return [int(i) for i in op["path"]], str(op["kind"])


def _toggle_mark_args(op: dict[str, Any]) -> tuple[Any, ...]:
    return (str(op["mark"]),)


def _insert_block_args(op: dict[str, Any]) -> tuple[Any, ...]:
    kind = op.get("kind")
    return _point_arg(op["point"]), str(kind) if kind is not None else None


def _select_args(op: dict[str, Any]) -> tuple[Any, ...]:
    anchor = _point_arg(op["anchor"])
    focus = _point_arg(op["focus"]) if "focus" in op else anchor
    return anchor, focus


# ---------------------------------------------------------------------------
# Handler dispatch table: type → (operation, argument reader)
# ---------------------------------------------------------------------------

_HANDLERS: dict[str, Any] = {
    "insert_text": (insert_text, _insert_text_args),
    "delete_range": (delete_range, _delete_range_args),
    "set_block_type": (set_block_type, _set_block_type_args),
    "toggle_mark": (toggle_mark, _toggle_mark_args),
    "insert_block": (insert_block, _insert_block_args),
    "select": (_select, _select_args),
}
