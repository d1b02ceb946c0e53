"""
Quire Kernel — the pure engine.

Components:
  tree        — addressing, normalization and validation of the block/leaf tree
  serializer  — parse(text) → Document, serialize(doc) → text
  mutations   — (state, ...) → MutationResult  (pure, deterministic)
  selection   — is_mark_active / active_block_kind and other selection queries
  history     — linear undo/redo stacks
  commands    — CommandDispatcher: keys, autoformat, slash menu
  renderer    — Document → HTML preview page
"""

from quire.kernel.commands import CommandDispatcher
from quire.kernel.mutations import (
    apply,
    delete_range,
    insert_block,
    insert_text,
    replay,
    set_block_type,
    toggle_mark,
)
from quire.kernel.renderer import render_html
from quire.kernel.selection import active_block_kind, is_mark_active
from quire.kernel.serializer import parse, plain_text, serialize
from quire.kernel.tree import normalize_document, validate_document

__all__ = [
    "parse",
    "serialize",
    "plain_text",
    "normalize_document",
    "validate_document",
    "set_block_type",
    "toggle_mark",
    "insert_text",
    "delete_range",
    "insert_block",
    "apply",
    "replay",
    "is_mark_active",
    "active_block_kind",
    "render_html",
    "CommandDispatcher",
]
