"""
Quire kernel test configuration.

Shared fixtures for building documents and editor states. Positions are
given as flat (block_index, offset) pairs over the document's text blocks.
"""

import pytest

from quire.kernel.commands import CommandDispatcher
from quire.kernel.serializer import parse
from quire.kernel.tree import point_at, resolve_point
from quire.kernel.types import EditorState, Selection


def build_state(content="", anchor=None, focus=None, pending_marks=None):
    doc = parse(content)
    selection = None
    if anchor is not None:
        selection = Selection(point_at(doc, *anchor), point_at(doc, *(focus or anchor)))
    return EditorState(document=doc, selection=selection, pending_marks=pending_marks)


def flat_selection(state):
    """(anchor, focus) as flat positions, for comparing selections."""
    doc = state.document
    return resolve_point(doc, state.selection.anchor), resolve_point(doc, state.selection.focus)


@pytest.fixture
def make_state():
    return build_state


@pytest.fixture
def flat():
    return flat_selection


@pytest.fixture
def editor():
    """A dispatcher on an empty document."""
    return CommandDispatcher("")


@pytest.fixture
def sample_text():
    return "# Title\n\nSome body text."
