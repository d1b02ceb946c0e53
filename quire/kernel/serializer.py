"""
Quire Kernel — Serializer / Deserializer

parse(text) → Document, serialize(doc) → text. No IO. Never throws.

Two portable forms:
  - the tree form: a JSON array of block objects, lossless (marks included)
  - the text form: a line-oriented markdown subset, marks dropped

parse() tries the tree form first and falls back to line parsing.

Line grammar (first match wins):
  ```lang   fenced code block, verbatim until the same fence or end of input
  # / ## / ###   heading1..3
  >         blockquote
  - / *     bullet list item (consecutive items share one list)
  other     paragraph; an empty line is an empty paragraph
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from quire.config import settings
from quire.kernel.tree import block_text, normalize_document, text_blocks
from quire.kernel.types import (
    BLOCKQUOTE,
    BLOCK_KINDS,
    BULLET_LIST,
    CODE_BLOCK,
    HEADING1,
    HEADING2,
    HEADING3,
    LIST_ITEM,
    NUMBER_LIST,
    PARAGRAPH,
    Block,
    Document,
    Leaf,
    Node,
)

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^(`{3,})(.*)$")
_LEADING_TICKS_RE = re.compile(r"^`+")

# Checked in order; "# " must not shadow "## " because "##" never starts with "# "
_LINE_PREFIXES: list[tuple[str, str]] = [
    ("# ", HEADING1),
    ("## ", HEADING2),
    ("### ", HEADING3),
    ("> ", BLOCKQUOTE),
    ("- ", LIST_ITEM),
    ("* ", LIST_ITEM),
]

_BLOCK_PREFIXES: dict[str, str] = {
    PARAGRAPH: "",
    HEADING1: "# ",
    HEADING2: "## ",
    HEADING3: "### ",
    BLOCKQUOTE: "> ",
}

# Plate-style node types accepted in the tree form
_KIND_ALIASES: dict[str, str] = {
    "p": PARAGRAPH,
    "h1": HEADING1,
    "h2": HEADING2,
    "h3": HEADING3,
    "ul": BULLET_LIST,
    "ol": NUMBER_LIST,
    "li": LIST_ITEM,
    "lic": PARAGRAPH,
    "code_block": CODE_BLOCK,
    "code_line": PARAGRAPH,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(text: str) -> Document:
    """
    Build a Document from host content: the JSON tree form if the text is a
    JSON array of objects, the line grammar otherwise.
    """
    data = _try_json(text)
    if data is not None:
        return parse_json(data)
    return parse_lines(text)


def serialize(doc: Document, fmt: str | None = None) -> str:
    """
    Serialize a Document.

    fmt "text" → line form, "json" → tree form, "auto" → line form when it
    parses back to the same document, tree form otherwise. Defaults to
    settings.SERIALIZE_FORMAT.
    """
    fmt = fmt or settings.SERIALIZE_FORMAT
    if fmt == "json":
        return serialize_json(doc)
    text = serialize_text(doc)
    if fmt == "auto" and parse(text) != doc:
        return serialize_json(doc)
    return text


def parse_lines(text: str) -> Document:
    lines = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    blocks: list[Block] = []
    i = 0

    while i < len(lines):
        line = lines[i]
        fence = _FENCE_RE.match(line)
        if fence:
            marker = fence.group(1)
            lang = fence.group(2).strip() or None
            body: list[str] = []
            i += 1
            while i < len(lines) and lines[i].rstrip() != marker:
                body.append(lines[i])
                i += 1
            i += 1  # closing fence
            blocks.append(Block(CODE_BLOCK, [Leaf("\n".join(body))], lang=lang))
            continue

        kind, content = _classify_line(line)
        if kind == LIST_ITEM:
            item = Block(LIST_ITEM, [Leaf(content)])
            if blocks and blocks[-1].kind == BULLET_LIST:
                blocks[-1].children.append(item)
            else:
                blocks.append(Block(BULLET_LIST, [item]))
        else:
            blocks.append(Block(kind, [Leaf(content)]))
        i += 1

    doc = Document(blocks=blocks)
    normalize_document(doc)
    return doc


def serialize_text(doc: Document) -> str:
    lines: list[str] = []
    for block in doc.blocks:
        if block.kind == BULLET_LIST:
            lines.extend(f"- {block_text(item)}" for item in block.children)  # type: ignore[arg-type]
        elif block.kind == NUMBER_LIST:
            lines.extend(
                f"{n}. {block_text(item)}"  # type: ignore[arg-type]
                for n, item in enumerate(block.children, start=1)
            )
        elif block.kind == CODE_BLOCK:
            content = block_text(block)
            fence = _fence_for(content)
            lines.append(fence + (block.lang or ""))
            lines.extend(content.split("\n"))
            lines.append(fence)
        else:
            lines.append(_BLOCK_PREFIXES.get(block.kind, "") + block_text(block))
    return "\n".join(lines)


def parse_json(data: list[Any]) -> Document:
    """Build a Document from the tree form. Unknown types become paragraphs."""
    nodes = [_node_from_json(item) for item in data if isinstance(item, dict)]
    doc = Document(blocks=nodes)  # type: ignore[arg-type]
    normalize_document(doc)
    return doc


def serialize_json(doc: Document) -> str:
    return json.dumps(doc.to_dict(), sort_keys=True, ensure_ascii=False)


def plain_text(doc: Document) -> str:
    """Mark-free text, one line per text block. Used for counts by the host."""
    return "\n".join(block_text(block) for block in text_blocks(doc))


def word_count(doc: Document) -> int:
    return len(plain_text(doc).split())


def char_count(doc: Document) -> int:
    return sum(len(block_text(block)) for block in text_blocks(doc))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _try_json(text: str) -> list[Any] | None:
    stripped = text.strip()
    if not stripped.startswith("["):
        return None
    try:
        data = json.loads(stripped)
    except (ValueError, RecursionError):
        logger.debug("parse: content is not valid JSON, using line grammar")
        return None
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        logger.debug("parse: JSON content is not an array of nodes, using line grammar")
        return None
    return data


def _classify_line(line: str) -> tuple[str, str]:
    for prefix, kind in _LINE_PREFIXES:
        if line.startswith(prefix):
            return kind, line[len(prefix) :]
    return PARAGRAPH, line


def _fence_for(content: str) -> str:
    longest = 0
    for line in content.split("\n"):
        ticks = _LEADING_TICKS_RE.match(line)
        if ticks:
            longest = max(longest, len(ticks.group(0)))
    return "`" * max(3, longest + 1)


def _node_from_json(d: dict[str, Any]) -> Node:
    if "children" not in d and "text" in d:
        return Leaf.from_dict(d)

    raw_kind = d.get("type", PARAGRAPH)
    kind = _KIND_ALIASES.get(raw_kind, raw_kind) if isinstance(raw_kind, str) else PARAGRAPH
    if kind not in BLOCK_KINDS:
        logger.debug("parse: unknown block type %r treated as paragraph", raw_kind)
        kind = PARAGRAPH

    raw_children = d.get("children")
    children: list[Node] = []
    if isinstance(raw_children, list):
        children = [_node_from_json(c) for c in raw_children if isinstance(c, dict)]

    lang = d.get("lang")
    return Block(kind, children or [Leaf()], lang=lang if isinstance(lang, str) and lang else None)
