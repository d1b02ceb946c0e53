"""
Quire Kernel — Shared Types

Data classes used across tree, serializer, mutations, selection, history and
commands. These are the contracts that bind the kernel together.

Tree shape:
- `Document` holds top-level `Block`s
- list blocks (`bulletList`, `numberList`) hold `listItem` blocks
- every other block holds `Leaf`s only
- a `Leaf` is text plus a set of mark tokens ("bold", "highlight:#fde68a", ...)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Block kinds
# ---------------------------------------------------------------------------

PARAGRAPH = "paragraph"
HEADING1 = "heading1"
HEADING2 = "heading2"
HEADING3 = "heading3"
BLOCKQUOTE = "blockquote"
BULLET_LIST = "bulletList"
NUMBER_LIST = "numberList"
LIST_ITEM = "listItem"
CODE_BLOCK = "codeBlock"

BLOCK_KINDS: frozenset[str] = frozenset(
    {
        PARAGRAPH,
        HEADING1,
        HEADING2,
        HEADING3,
        BLOCKQUOTE,
        BULLET_LIST,
        NUMBER_LIST,
        LIST_ITEM,
        CODE_BLOCK,
    }
)

LIST_KINDS: frozenset[str] = frozenset({BULLET_LIST, NUMBER_LIST})

# Kinds that may sit at the top level and hold leaves directly
TEXT_KINDS: frozenset[str] = frozenset({PARAGRAPH, HEADING1, HEADING2, HEADING3, BLOCKQUOTE, CODE_BLOCK})

HEADING_KINDS: frozenset[str] = frozenset({HEADING1, HEADING2, HEADING3})

# ---------------------------------------------------------------------------
# Mark kinds
# ---------------------------------------------------------------------------

MARK_KINDS: frozenset[str] = frozenset(
    {
        "bold",
        "italic",
        "underline",
        "strikethrough",
        "code",
        "kbd",
        "highlight",
    }
)

HIGHLIGHT = "highlight"


def mark_kind(mark: str) -> str:
    """Kind part of a mark token: highlight:#fde68a → highlight."""
    return mark.partition(":")[0]


def highlight(color: str | None = None) -> str:
    """Build a highlight mark token, optionally colored."""
    return f"{HIGHLIGHT}:{color}" if color else HIGHLIGHT


def is_valid_mark(mark: str) -> bool:
    kind, sep, value = mark.partition(":")
    if kind not in MARK_KINDS:
        return False
    if sep and (kind != HIGHLIGHT or not value):
        return False
    return True


# ---------------------------------------------------------------------------
# Tree nodes
# ---------------------------------------------------------------------------


@dataclass
class Leaf:
    """Literal text plus the inline marks applied to all of it."""

    text: str = ""
    marks: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"text": self.text}
        for mark in sorted(self.marks):
            kind, _, value = mark.partition(":")
            d[kind] = value if value else True
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Leaf:
        text = d.get("text", "")
        marks: set[str] = set()
        for key, value in d.items():
            if key not in MARK_KINDS or not value:
                continue
            if key == HIGHLIGHT and isinstance(value, str):
                marks.add(highlight(value))
            else:
                marks.add(key)
        return cls(text=text if isinstance(text, str) else str(text), marks=marks)


@dataclass
class Block:
    """
    A paragraph-level node. `lang` is only meaningful on code blocks
    (the fence info string).
    """

    kind: str = PARAGRAPH
    children: list[Node] = field(default_factory=lambda: [Leaf()])
    lang: str | None = None

    @property
    def is_list(self) -> bool:
        return self.kind in LIST_KINDS

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.kind,
            "children": [child.to_dict() for child in self.children],
        }
        if self.lang:
            d["lang"] = self.lang
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Block:
        children: list[Node] = [
            Block.from_dict(c) if "type" in c else Leaf.from_dict(c) for c in d.get("children", [])
        ]
        return cls(kind=d.get("type", PARAGRAPH), children=children or [Leaf()], lang=d.get("lang"))


Node = Block | Leaf


@dataclass
class Document:
    """Ordered top-level blocks. Never empty once normalized."""

    blocks: list[Block] = field(default_factory=lambda: [Block()])

    def to_dict(self) -> list[dict[str, Any]]:
        return [block.to_dict() for block in self.blocks]

    @classmethod
    def from_dict(cls, data: list[dict[str, Any]]) -> Document:
        """Rebuild from to_dict() output as is. Use parse_json for untrusted input."""
        return cls(blocks=[Block.from_dict(d) for d in data] or [Block()])


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Point:
    """
    A position in the tree. `path` addresses a node from the root by child
    index; `offset` is a character offset into that leaf's text.
    """

    path: tuple[int, ...]
    offset: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"path": list(self.path), "offset": self.offset}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Point:
        return cls(path=tuple(int(i) for i in d.get("path", [])), offset=int(d.get("offset", 0)))


@dataclass(frozen=True)
class Selection:
    anchor: Point
    focus: Point

    @classmethod
    def collapsed(cls, point: Point) -> Selection:
        return cls(anchor=point, focus=point)

    @property
    def is_collapsed(self) -> bool:
        return self.anchor == self.focus

    def to_dict(self) -> dict[str, Any]:
        return {"anchor": self.anchor.to_dict(), "focus": self.focus.to_dict()}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Selection:
        return cls(anchor=Point.from_dict(d["anchor"]), focus=Point.from_dict(d["focus"]))


# ---------------------------------------------------------------------------
# Editor state and results
# ---------------------------------------------------------------------------


@dataclass
class HistoryEntry:
    """One undoable step: the documents and selections on either side of it."""

    before: Document
    after: Document
    selection_before: Selection | None
    selection_after: Selection | None


@dataclass
class EditorState:
    """
    Everything one open editor owns. Passed explicitly into every engine call;
    there is no global editor instance.
    """

    document: Document = field(default_factory=Document)
    selection: Selection | None = None
    undo_stack: list[HistoryEntry] = field(default_factory=list)
    redo_stack: list[HistoryEntry] = field(default_factory=list)
    pending_marks: set[str] | None = None


@dataclass
class MutationResult:
    """
    Result of one engine call.
    The engine never throws; it always returns one of these.
    """

    state: EditorState
    changed: bool
    reason: str | None = None


@dataclass
class ChangeEvent:
    """Emitted to the host on every committed mutation."""

    serialized: str
    plain_text: str
    word_count: int = 0
    char_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "serialized": self.serialized,
            "plain_text": self.plain_text,
            "word_count": self.word_count,
            "char_count": self.char_count,
        }
