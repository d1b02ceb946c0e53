"""
Quire Kernel — Command Dispatcher

Turns host input (keys, toolbar commands, menu picks) into mutations.
One CommandDispatcher owns one EditorState; loading a document replaces it
wholesale, history included.

Two triggers:
  autoformat  — space after an exact block trigger ("#", "##", "###", ">",
                "-", "*", "```") at the start of a block converts the block
  slash menu  — "/" opens a menu of block kinds anchored at the cursor;
                idle → menu_open → idle (select | escape | blur)

Every committed mutation is one history entry and produces a ChangeEvent,
returned to the caller and passed to every registered listener.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from quire.kernel import history, mutations
from quire.kernel import selection as sel
from quire.kernel.serializer import char_count, parse, plain_text, serialize, word_count
from quire.kernel.tree import (
    FlatPos,
    block_text,
    end_position,
    point_at,
    resolve_point,
    text_block_paths,
    text_blocks,
)
from quire.kernel.types import (
    BLOCKQUOTE,
    BULLET_LIST,
    CODE_BLOCK,
    HEADING1,
    HEADING2,
    HEADING3,
    HEADING_KINDS,
    LIST_ITEM,
    NUMBER_LIST,
    PARAGRAPH,
    ChangeEvent,
    Document,
    EditorState,
    MutationResult,
    Point,
    Selection,
)

logger = logging.getLogger(__name__)

Step = Callable[[EditorState], MutationResult]
Listener = Callable[[ChangeEvent], None]

# ---------------------------------------------------------------------------
# Static registries
# ---------------------------------------------------------------------------

IDLE = "idle"
MENU_OPEN = "menu_open"

AUTOFORMAT_TRIGGERS: dict[str, str] = {
    "#": HEADING1,
    "##": HEADING2,
    "###": HEADING3,
    ">": BLOCKQUOTE,
    "-": BULLET_LIST,
    "*": BULLET_LIST,
    "```": CODE_BLOCK,
}

SLASH_TRIGGER = "/"


@dataclass(frozen=True)
class SlashItem:
    label: str
    kind: str
    keywords: tuple[str, ...] = ()

    def matches(self, query: str) -> bool:
        query = query.strip().lower()
        if not query:
            return True
        return query in self.label.lower() or any(k.startswith(query) for k in self.keywords)


SLASH_ITEMS: tuple[SlashItem, ...] = (
    SlashItem("Text", PARAGRAPH, ("paragraph", "plain")),
    SlashItem("Heading 1", HEADING1, ("h1", "title")),
    SlashItem("Heading 2", HEADING2, ("h2", "subtitle")),
    SlashItem("Heading 3", HEADING3, ("h3",)),
    SlashItem("Quote", BLOCKQUOTE, ("blockquote",)),
    SlashItem("Bulleted list", BULLET_LIST, ("ul", "unordered")),
    SlashItem("Numbered list", NUMBER_LIST, ("ol", "ordered")),
    SlashItem("Code", CODE_BLOCK, ("codeblock", "pre")),
)


@dataclass(frozen=True)
class SlashMenu:
    """
    An open slash menu. (block_index, offset) is where it was anchored;
    `trigger` is True when a typed "/" sits at that offset.
    """

    block_index: int
    offset: int
    trigger: bool = True

    @property
    def query_start(self) -> int:
        return self.offset + (len(SLASH_TRIGGER) if self.trigger else 0)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class CommandDispatcher:
    """The host's single entry point into an open document."""

    def __init__(self, content: str = "", history_limit: int | None = None) -> None:
        self._listeners: list[Listener] = []
        self._history_limit = history_limit
        self.state = EditorState()
        self.menu: SlashMenu | None = None
        self.load(content)

    # -- document lifecycle -------------------------------------------------

    def load(self, content: str) -> Document:
        """Replace the open document. Selection, pending marks and history go with it."""
        self.state = EditorState(document=parse(content))
        self.menu = None
        return self.state.document

    @property
    def document(self) -> Document:
        return self.state.document

    @property
    def selection(self) -> Selection | None:
        return self.state.selection

    def serialize(self, fmt: str | None = None) -> str:
        return serialize(self.state.document, fmt)

    def plain_text(self) -> str:
        return plain_text(self.state.document)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- queries -------------------------------------------------------------

    @property
    def menu_state(self) -> str:
        return MENU_OPEN if self.menu is not None else IDLE

    def is_mark_active(self, mark: str) -> bool:
        return sel.is_mark_active(self.state.document, self.state.selection, mark, self.state.pending_marks)

    def active_block_kind(self) -> str:
        return sel.active_block_kind(self.state.document, self.state.selection)

    def can_undo(self) -> bool:
        return history.can_undo(self.state)

    def can_redo(self) -> bool:
        return history.can_redo(self.state)

    # -- selection -----------------------------------------------------------

    def select(self, anchor: Point, focus: Point | None = None) -> Selection:
        self.state = sel.select(self.state, anchor, focus)
        self._check_menu()
        return self.state.selection  # type: ignore[return-value]

    def select_end(self) -> Selection:
        doc = self.state.document
        return self.select(point_at(doc, *end_position(doc)))

    # -- toolbar commands ----------------------------------------------------

    def toggle_mark(self, mark: str) -> ChangeEvent | None:
        return self._run(lambda s: mutations.toggle_mark(s, mark))

    def set_block_type(self, kind: str) -> ChangeEvent | None:
        return self._run(lambda s: mutations.set_block_type(s, _focus_path(s), kind))

    def toggle_block_type(self, kind: str) -> ChangeEvent | None:
        """Set `kind`, or back to paragraph if the focus block already has it."""
        target = BULLET_LIST if kind == LIST_ITEM else kind
        if self.active_block_kind() == target:
            kind = PARAGRAPH
        return self.set_block_type(kind)

    def undo(self) -> ChangeEvent | None:
        return self._restore(history.undo(self.state))

    def redo(self) -> ChangeEvent | None:
        return self._restore(history.redo(self.state))

    # -- keyboard ------------------------------------------------------------

    def key(self, name: str) -> ChangeEvent | None:
        """
        Handle one key: "Enter", "Backspace", "Delete", "Escape", "Tab",
        or a single printable character.
        """
        if name == "Enter":
            return self.enter()
        if name == "Backspace":
            return self.backspace()
        if name == "Delete":
            return self.delete_forward()
        if name == "Escape":
            self.escape()
            return None
        if name == "Tab":
            if self._current_kind() == CODE_BLOCK:
                return self._insert("\t")
            return None
        if name == " ":
            return self._space()
        if name == SLASH_TRIGGER:
            return self._slash()
        if len(name) == 1:
            return self._insert(name)
        logger.debug("key: ignoring %r", name)
        return None

    def type_text(self, text: str) -> ChangeEvent | None:
        """Feed text through key() one character at a time."""
        event = None
        for char in text:
            if char == "\n":
                result = self.enter()
            else:
                result = self.key(char)
            event = result or event
        return event

    def paste(self, text: str) -> ChangeEvent | None:
        """Insert text as one edit, replacing any selected range."""
        if not text:
            return None
        return self._insert(text)

    def enter(self) -> ChangeEvent | None:
        return self._run(*self._clear_range(), _enter_step)

    def backspace(self) -> ChangeEvent | None:
        if not self._collapsed():
            return self._run(*self._clear_range())
        return self._run(_backspace_step)

    def delete_forward(self) -> ChangeEvent | None:
        if not self._collapsed():
            return self._run(*self._clear_range())
        return self._run(_delete_forward_step)

    def escape(self) -> None:
        self.close_slash_menu()

    def blur(self) -> None:
        self.close_slash_menu()

    # -- slash menu ----------------------------------------------------------

    def open_slash_menu(self) -> None:
        """Open the menu at the cursor without typing a "/"."""
        if self.state.selection is None:
            self.select_end()
        index, offset = _cursor(self.state)
        self.menu = SlashMenu(index, offset, trigger=False)

    def close_slash_menu(self) -> None:
        self.menu = None

    def slash_menu_items(self) -> list[SlashItem]:
        if self.menu is None:
            return []
        return [item for item in SLASH_ITEMS if item.matches(self._menu_query())]

    def select_slash_item(self, kind: str) -> ChangeEvent | None:
        """Remove the "/" and any filter text, then convert the block."""
        menu = self.menu
        if menu is None:
            logger.debug("select_slash_item: menu is not open")
            return None
        self.menu = None

        steps: list[Step] = []
        index, offset = _cursor(self.state)
        if offset > menu.offset:
            span = Selection(point_at(self.document, index, menu.offset), point_at(self.document, index, offset))
            steps.append(lambda s: mutations.delete_range(s, span))
        steps.append(lambda s: mutations.set_block_type(s, text_block_paths(s.document)[index], kind))
        return self._run(*steps)

    # -- internals -----------------------------------------------------------

    def _run(self, *steps: Step) -> ChangeEvent | None:
        """
        Run steps in order as one edit. A rejected step abandons the edit;
        a document change is committed to history and announced.
        """
        before = self.state
        state = before
        for step in steps:
            result = step(state)
            if result.reason:
                logger.debug("command rejected: %s", result.reason)
                return None
            state = result.state

        if state.document == before.document:
            self.state = state
            self._check_menu()
            return None

        self.state = history.commit(before, state, self._history_limit)
        self._check_menu()
        return self._emit()

    def _restore(self, result: MutationResult) -> ChangeEvent | None:
        if not result.changed:
            logger.debug("history: %s", result.reason)
            return None
        self.state = result.state
        self.menu = None
        return self._emit()

    def _emit(self) -> ChangeEvent:
        doc = self.state.document
        event = ChangeEvent(
            serialized=serialize(doc),
            plain_text=plain_text(doc),
            word_count=word_count(doc),
            char_count=char_count(doc),
        )
        for listener in list(self._listeners):
            listener(event)
        return event

    def _collapsed(self) -> bool:
        selection = self.state.selection
        return selection is None or sel.is_collapsed(self.state.document, selection)

    def _clear_range(self) -> list[Step]:
        if self._collapsed():
            return []
        return [lambda s: mutations.delete_range(s, s.selection)]  # type: ignore[arg-type]

    def _current_kind(self) -> str:
        index, _ = _cursor(self.state)
        return text_blocks(self.state.document)[index].kind

    def _insert(self, text: str) -> ChangeEvent | None:
        return self._run(*self._clear_range(), lambda s: mutations.insert_text(s, _cursor_point(s), text))

    def _space(self) -> ChangeEvent | None:
        if not self._collapsed() or self._current_kind() == CODE_BLOCK:
            return self._insert(" ")

        index, offset = _cursor(self.state)
        before_cursor = block_text(text_blocks(self.state.document)[index])[:offset]
        kind = AUTOFORMAT_TRIGGERS.get(before_cursor)
        if kind is None or kind == self.active_block_kind():
            return self._insert(" ")

        doc = self.state.document
        trigger = Selection(point_at(doc, index, 0), point_at(doc, index, offset))
        return self._run(
            lambda s: mutations.delete_range(s, trigger),
            lambda s: mutations.set_block_type(s, text_block_paths(s.document)[index], kind),
        )

    def _slash(self) -> ChangeEvent | None:
        if not self._collapsed():
            return self._insert(SLASH_TRIGGER)
        index, offset = _cursor(self.state)
        event = self._insert(SLASH_TRIGGER)
        if event is not None:
            self.menu = SlashMenu(index, offset, trigger=True)
        return event

    def _menu_query(self) -> str:
        menu = self.menu
        if menu is None or self.state.selection is None:
            return ""
        index, offset = _cursor(self.state)
        return block_text(text_blocks(self.state.document)[index])[menu.query_start : offset]

    def _check_menu(self) -> None:
        """Close the menu once the cursor leaves its anchored range."""
        menu = self.menu
        if menu is None:
            return
        if not self._collapsed() or self.state.selection is None:
            self.menu = None
            return

        index, offset = _cursor(self.state)
        blocks = text_blocks(self.state.document)
        if index != menu.block_index or index >= len(blocks) or offset < menu.query_start:
            self.menu = None
            return
        if menu.trigger:
            text = block_text(blocks[index])
            if text[menu.offset : menu.query_start] != SLASH_TRIGGER:
                self.menu = None


# ---------------------------------------------------------------------------
# Step helpers (state → MutationResult)
# ---------------------------------------------------------------------------


def _cursor(state: EditorState) -> FlatPos:
    """Flat focus position; the end of the document with no selection."""
    doc = state.document
    if state.selection is None:
        return end_position(doc)
    return resolve_point(doc, state.selection.focus)


def _cursor_point(state: EditorState) -> Point:
    return point_at(state.document, *_cursor(state))


def _focus_path(state: EditorState) -> tuple[int, ...]:
    index, _ = _cursor(state)
    return text_block_paths(state.document)[index]


def _span(state: EditorState, start: FlatPos, end: FlatPos) -> Selection:
    doc = state.document
    return Selection(point_at(doc, *start), point_at(doc, *end))


def _enter_step(state: EditorState) -> MutationResult:
    doc = state.document
    index, offset = _cursor(state)
    path = text_block_paths(doc)[index]
    block = text_blocks(doc)[index]
    text = block_text(block)

    if block.kind == CODE_BLOCK:
        return mutations.insert_text(state, _cursor_point(state), "\n")
    if block.kind == LIST_ITEM and not text:
        return mutations.set_block_type(state, path, PARAGRAPH)
    if block.kind in HEADING_KINDS and offset == len(text):
        return mutations.insert_block(state, _cursor_point(state), PARAGRAPH)
    return mutations.insert_block(state, _cursor_point(state))


def _backspace_step(state: EditorState) -> MutationResult:
    doc = state.document
    index, offset = _cursor(state)
    if offset > 0:
        return mutations.delete_range(state, _span(state, (index, offset - 1), (index, offset)))

    block = text_blocks(doc)[index]
    if block.kind != PARAGRAPH:
        return mutations.set_block_type(state, text_block_paths(doc)[index], PARAGRAPH)
    if index == 0:
        return MutationResult(state=state, changed=False)

    previous = len(block_text(text_blocks(doc)[index - 1]))
    return mutations.delete_range(state, _span(state, (index - 1, previous), (index, 0)))


def _delete_forward_step(state: EditorState) -> MutationResult:
    doc = state.document
    blocks = text_blocks(doc)
    index, offset = _cursor(state)
    length = len(block_text(blocks[index]))
    if offset < length:
        return mutations.delete_range(state, _span(state, (index, offset), (index, offset + 1)))
    if index + 1 < len(blocks):
        return mutations.delete_range(state, _span(state, (index, offset), (index + 1, 0)))
    return MutationResult(state=state, changed=False)
