"""
Quire Kernel — Undo / Redo History

Snapshot history over EditorState. Every committed mutation pushes one
entry holding the documents and selections on both sides of the edit;
undo restores the "before" side exactly, redo the "after" side. A commit
clears the redo stack. The undo stack is bounded by settings.HISTORY_LIMIT,
dropping the oldest entries first.
"""

from __future__ import annotations

import copy
import logging

from quire.config import settings
from quire.kernel.types import EditorState, HistoryEntry, MutationResult

logger = logging.getLogger(__name__)


def commit(before: EditorState, after: EditorState, limit: int | None = None) -> EditorState:
    """
    Record the step before → after on `after`'s stacks. The documents are
    copied into the entry so later edits cannot reach them.
    """
    limit = limit or settings.HISTORY_LIMIT
    entry = HistoryEntry(
        before=copy.deepcopy(before.document),
        after=copy.deepcopy(after.document),
        selection_before=before.selection,
        selection_after=after.selection,
    )
    undo_stack = [*before.undo_stack, entry]
    if len(undo_stack) > limit:
        dropped = len(undo_stack) - limit
        logger.debug("history: dropping %d oldest entries (limit %d)", dropped, limit)
        undo_stack = undo_stack[dropped:]

    return EditorState(
        document=after.document,
        selection=after.selection,
        undo_stack=undo_stack,
        redo_stack=[],
        pending_marks=after.pending_marks,
    )


def undo(state: EditorState) -> MutationResult:
    if not state.undo_stack:
        return MutationResult(state=state, changed=False, reason="NOTHING_TO_UNDO")

    entry = state.undo_stack[-1]
    restored = EditorState(
        document=copy.deepcopy(entry.before),
        selection=entry.selection_before,
        undo_stack=state.undo_stack[:-1],
        redo_stack=[*state.redo_stack, entry],
        pending_marks=None,
    )
    return MutationResult(state=restored, changed=True)


def redo(state: EditorState) -> MutationResult:
    if not state.redo_stack:
        return MutationResult(state=state, changed=False, reason="NOTHING_TO_REDO")

    entry = state.redo_stack[-1]
    restored = EditorState(
        document=copy.deepcopy(entry.after),
        selection=entry.selection_after,
        undo_stack=[*state.undo_stack, entry],
        redo_stack=state.redo_stack[:-1],
        pending_marks=None,
    )
    return MutationResult(state=restored, changed=True)


def clear(state: EditorState) -> EditorState:
    return EditorState(
        document=state.document,
        selection=state.selection,
        undo_stack=[],
        redo_stack=[],
        pending_marks=state.pending_marks,
    )


def can_undo(state: EditorState) -> bool:
    return bool(state.undo_stack)


def can_redo(state: EditorState) -> bool:
    return bool(state.redo_stack)
