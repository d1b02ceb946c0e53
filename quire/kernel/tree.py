"""
Quire Kernel — Document Tree

Addressing, leaf-level editing primitives, normalization and validation for
the block/leaf tree. Everything that edits text works on "text blocks": the
leaf containers (paragraphs, headings, quotes, code blocks and list items),
numbered in document order. A flat position is `(block_index, offset)` into
that sequence, which stays stable across the structural rewrites the
mutation engine performs.
"""

from __future__ import annotations

import logging

from quire.kernel.types import (
    BLOCK_KINDS,
    CODE_BLOCK,
    HEADING1,
    LIST_ITEM,
    LIST_KINDS,
    BULLET_LIST,
    PARAGRAPH,
    TEXT_KINDS,
    Block,
    Document,
    Leaf,
    Node,
    Point,
    is_valid_mark,
)

logger = logging.getLogger(__name__)

FlatPos = tuple[int, int]

# ---------------------------------------------------------------------------
# Addressing
# ---------------------------------------------------------------------------


def text_block_paths(doc: Document) -> list[tuple[int, ...]]:
    """Paths of every leaf container, in document order."""
    paths: list[tuple[int, ...]] = []
    for i, block in enumerate(doc.blocks):
        if block.kind in LIST_KINDS:
            paths.extend((i, j) for j in range(len(block.children)))
        else:
            paths.append((i,))
    return paths


def get_block(doc: Document, path: tuple[int, ...]) -> Block:
    node: Block = doc.blocks[path[0]]
    for idx in path[1:]:
        node = node.children[idx]  # type: ignore[assignment]
    return node


def text_blocks(doc: Document) -> list[Block]:
    return [get_block(doc, path) for path in text_block_paths(doc)]


def block_text(block: Block) -> str:
    return "".join(child.text for child in block.children if isinstance(child, Leaf))


def list_kind_at(doc: Document, path: tuple[int, ...]) -> str | None:
    """The enclosing list kind for a list item path, else None."""
    if len(path) > 1:
        return doc.blocks[path[0]].kind
    return None


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def resolve_point(doc: Document, point: Point) -> FlatPos:
    """
    Translate a tree point into a flat position, clamping any out-of-range
    path index or offset to the nearest valid position.

    A path that stops at a block (rather than a leaf) treats `offset` as an
    offset into that block's whole text.
    """
    path = point.path
    if not path:
        logger.debug("resolve_point: empty path, using document start")
        return 0, 0

    clamped = False

    def clamp(value: int, high: int) -> int:
        nonlocal clamped
        result = _clamp(value, 0, high)
        clamped = clamped or result != value
        return result

    i = clamp(path[0], len(doc.blocks) - 1)
    block = doc.blocks[i]
    rest = path[1:]
    block_path: tuple[int, ...] = (i,)

    if block.kind in LIST_KINDS:
        j = clamp(rest[0], len(block.children) - 1) if rest else 0
        rest = rest[1:]
        block = block.children[j]  # type: ignore[assignment]
        block_path = (i, j)

    if rest:
        k = clamp(rest[0], len(block.children) - 1)
        start = sum(len(leaf.text) for leaf in block.children[:k])
        offset = start + clamp(point.offset, len(block.children[k].text))
    else:
        offset = clamp(point.offset, len(block_text(block)))

    if clamped:
        logger.debug("resolve_point: clamped %r to block %r offset %d", point, block_path, offset)

    return text_block_paths(doc).index(block_path), offset


def point_at(doc: Document, index: int, offset: int) -> Point:
    """
    Build a leaf point for a flat position. At a boundary between two leaves
    the earlier leaf wins, so typing there carries its marks forward.
    """
    paths = text_block_paths(doc)
    path = paths[_clamp(index, 0, len(paths) - 1)]
    block = get_block(doc, path)
    offset = _clamp(offset, 0, len(block_text(block)))

    start = 0
    for k, leaf in enumerate(block.children):
        end = start + len(leaf.text)
        if offset <= end:
            return Point(path + (k,), offset - start)
        start = end
    last = len(block.children) - 1
    return Point(path + (last,), len(block.children[last].text))


def end_position(doc: Document) -> FlatPos:
    blocks = text_blocks(doc)
    return len(blocks) - 1, len(block_text(blocks[-1]))


def covered_segments(doc: Document, start: FlatPos, end: FlatPos) -> list[tuple[int, int, int]]:
    """(block_index, from, to) for every block holding characters in [start, end)."""
    blocks = text_blocks(doc)
    segments: list[tuple[int, int, int]] = []
    for index in range(start[0], end[0] + 1):
        length = len(block_text(blocks[index]))
        s = start[1] if index == start[0] else 0
        e = end[1] if index == end[0] else length
        if s < e:
            segments.append((index, s, e))
    return segments


# ---------------------------------------------------------------------------
# Leaf-level editing
# ---------------------------------------------------------------------------


def split_leaves(block: Block, offset: int) -> int:
    """
    Ensure a leaf boundary at `offset`. Returns the index of the first leaf
    at or after it; `block.children[:index]` covers exactly `[0, offset)`.
    """
    start = 0
    for k, leaf in enumerate(block.children):
        if offset <= start:
            return k
        end = start + len(leaf.text)
        if offset < end:
            cut = offset - start
            block.children[k : k + 1] = [
                Leaf(leaf.text[:cut], set(leaf.marks)),
                Leaf(leaf.text[cut:], set(leaf.marks)),
            ]
            return k + 1
        start = end
    return len(block.children)


def marks_at(block: Block, offset: int) -> set[str]:
    """Marks typing at `offset` would carry: those of the character before it."""
    leaves = block.children
    if offset > 0:
        start = 0
        for leaf in leaves:
            end = start + len(leaf.text)
            if start < offset <= end:
                return set(leaf.marks)
            start = end
    return set(leaves[0].marks) if leaves else set()


def slice_leaves(block: Block, start: int, end: int) -> list[Leaf]:
    """Copies of the leaf pieces covering characters [start, end)."""
    pieces: list[Leaf] = []
    pos = 0
    for leaf in block.children:
        leaf_end = pos + len(leaf.text)
        lo, hi = max(start, pos), min(end, leaf_end)
        if lo < hi:
            pieces.append(Leaf(leaf.text[lo - pos : hi - pos], set(leaf.marks)))
        pos = leaf_end
    return pieces


def delete_text(block: Block, start: int, end: int) -> None:
    i = split_leaves(block, start)
    j = split_leaves(block, end)
    del block.children[i:j]


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_block(block: Block) -> None:
    """
    Drop empty leaves (keeping one if nothing else is left), drop invalid
    marks, and merge neighbours with identical mark sets.
    """
    leaves = [child for child in block.children if isinstance(child, Leaf)]
    merged: list[Leaf] = []
    for leaf in leaves:
        marks = {m for m in leaf.marks if is_valid_mark(m)}
        if not leaf.text:
            continue
        if merged and merged[-1].marks == marks:
            merged[-1] = Leaf(merged[-1].text + leaf.text, merged[-1].marks)
        else:
            merged.append(Leaf(leaf.text, marks))

    if not merged:
        first = leaves[0] if leaves else Leaf()
        merged = [Leaf("", {m for m in first.marks if is_valid_mark(m)})]
    block.children = list(merged)


def _flatten_leaves(block: Block) -> list[Leaf]:
    leaves: list[Leaf] = []
    for idx, child in enumerate(block.children):
        if isinstance(child, Leaf):
            leaves.append(child)
            continue
        if block.kind == CODE_BLOCK and idx > 0:
            leaves.append(Leaf("\n"))
        leaves.extend(_flatten_leaves(child))
    return leaves


def _text_block(kind: str, children: list[Node], lang: str | None = None) -> Block:
    block = Block(kind, list(children), lang if kind == CODE_BLOCK else None)
    block.children = _flatten_leaves(block)
    normalize_block(block)
    return block


def _split_lines(block: Block) -> list[Block]:
    """One block per line for a non-code text block holding newlines."""
    if block.kind == CODE_BLOCK or not any("\n" in leaf.text for leaf in block.children):  # type: ignore[union-attr]
        return [block]
    lines: list[list[Node]] = [[]]
    for leaf in block.children:
        for n, part in enumerate(leaf.text.split("\n")):  # type: ignore[union-attr]
            if n:
                lines.append([])
            lines[-1].append(Leaf(part, set(leaf.marks)))  # type: ignore[union-attr]
    return [_text_block(block.kind, line) for line in lines]


def _normalize_list(block: Block) -> list[Block]:
    items: list[Block] = []
    loose: list[Leaf] = []

    def flush() -> None:
        if loose:
            items.extend(_split_lines(_text_block(LIST_ITEM, loose)))
            loose.clear()

    for child in block.children:
        if isinstance(child, Leaf):
            loose.append(child)
            continue
        flush()
        if child.kind in LIST_KINDS:
            for nested in _normalize_list(child):
                items.extend(nested.children)  # type: ignore[arg-type]
        else:
            items.extend(_split_lines(_text_block(LIST_ITEM, child.children)))
    flush()

    if not items:
        return []
    return [Block(block.kind, items)]  # type: ignore[arg-type]


def _normalize_top(node: Node) -> list[Block]:
    if isinstance(node, Leaf):
        return _split_lines(_text_block(PARAGRAPH, [node]))

    kind = node.kind
    if kind not in BLOCK_KINDS:
        logger.debug("normalize: unknown block kind %r treated as paragraph", kind)
        kind = PARAGRAPH

    if kind in LIST_KINDS:
        return _normalize_list(Block(kind, node.children))
    if kind == LIST_ITEM:
        return [Block(BULLET_LIST, _split_lines(_text_block(LIST_ITEM, node.children)))]  # type: ignore[arg-type]
    return _split_lines(_text_block(kind, node.children, node.lang))


def normalize_document(doc: Document) -> None:
    """Restore every structural invariant in place."""
    blocks: list[Block] = []
    for node in doc.blocks:
        for block in _normalize_top(node):
            if blocks and block.kind in LIST_KINDS and blocks[-1].kind == block.kind:
                blocks[-1].children.extend(block.children)
            else:
                blocks.append(block)
    doc.blocks = blocks or [Block()]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_document(doc: Document) -> list[str]:
    """
    Check the tree invariants.
    Returns a list of error strings. Empty list = valid.
    """
    errors: list[str] = []
    if not doc.blocks:
        errors.append("document has no blocks")

    for i, block in enumerate(doc.blocks):
        if not isinstance(block, Block):
            errors.append(f"blocks[{i}]: top-level node is not a block")
            continue
        if block.kind not in BLOCK_KINDS:
            errors.append(f"blocks[{i}]: unknown kind {block.kind!r}")
        if block.kind == LIST_ITEM:
            errors.append(f"blocks[{i}]: listItem outside a list")
        if not block.children:
            errors.append(f"blocks[{i}]: block has no children")

        if block.kind in LIST_KINDS:
            for j, item in enumerate(block.children):
                if not isinstance(item, Block) or item.kind != LIST_ITEM:
                    errors.append(f"blocks[{i}][{j}]: list child is not a listItem")
                    continue
                errors.extend(_validate_leaves(item, f"blocks[{i}][{j}]"))
        elif block.kind in TEXT_KINDS:
            errors.extend(_validate_leaves(block, f"blocks[{i}]"))

        if i > 0 and block.kind in LIST_KINDS and doc.blocks[i - 1].kind == block.kind:
            errors.append(f"blocks[{i}]: adjacent {block.kind} blocks are not merged")

    return errors


def _validate_leaves(block: Block, where: str) -> list[str]:
    errors: list[str] = []
    if not block.children:
        errors.append(f"{where}: block has no children")
    for k, child in enumerate(block.children):
        if not isinstance(child, Leaf):
            errors.append(f"{where}[{k}]: {block.kind} may only hold leaves")
            continue
        if not child.text and len(block.children) > 1:
            errors.append(f"{where}[{k}]: empty leaf beside siblings")
        for mark in child.marks:
            if not is_valid_mark(mark):
                errors.append(f"{where}[{k}]: invalid mark {mark!r}")
    return errors


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def document_title(doc: Document) -> str | None:
    """Text of the first level-one heading, if any."""
    for block in doc.blocks:
        if block.kind == HEADING1:
            title = block_text(block).strip()
            if title:
                return title
    return None
