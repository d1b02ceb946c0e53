"""
Quire Kernel — HTML Renderer

Pure function: Document → HTML string. No IO. Deterministic: same input →
same output, always.

The page shell is a Mustache template rendered with chevron; block and leaf
bodies are built here and escaped before they reach the template.
"""

from __future__ import annotations

from html import escape as _html_escape

import chevron

from quire.kernel.tree import block_text, document_title
from quire.kernel.types import (
    BLOCKQUOTE,
    BULLET_LIST,
    CODE_BLOCK,
    HEADING1,
    HEADING2,
    HEADING3,
    HIGHLIGHT,
    LIST_ITEM,
    NUMBER_LIST,
    Block,
    Document,
    Leaf,
    mark_kind,
)

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

BASE_CSS = """
*, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
body {
  font-family: Georgia, "Times New Roman", serif;
  color: #1f2328;
  line-height: 1.6;
}
.quire-page {
  max-width: 720px;
  margin: 0 auto;
  padding: 32px 24px;
}
@media (max-width: 640px) {
  .quire-page { padding: 20px 16px; }
}
h1, h2, h3 { font-weight: 500; line-height: 1.2; margin-bottom: 8px; }
h1 { font-size: 2rem; }
h2 { font-size: 1.5rem; }
h3 { font-size: 1.2rem; }
p, ul, ol, pre, blockquote { margin-bottom: 8px; }
ul, ol { padding-left: 24px; }
blockquote { padding-left: 12px; border-left: 3px solid #d0d7de; color: #57606a; }
pre { padding: 12px; background: #f6f8fa; overflow-x: auto; }
code, kbd, pre { font-family: ui-monospace, Menlo, monospace; font-size: 0.9em; }
kbd { padding: 1px 4px; border: 1px solid #d0d7de; border-radius: 3px; }
mark { background: #fde68a; }
.quire-empty { color: #888; font-style: italic; }
"""

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{title}}</title>
  <style>{{{css}}}</style>
</head>
<body>
  <main class="quire-page">
{{#blocks}}
    {{{html}}}
{{/blocks}}
{{^blocks}}
    <p class="quire-empty">This document is empty.</p>
{{/blocks}}
  </main>
</body>
</html>
"""

_BLOCK_TAGS: dict[str, str] = {
    HEADING1: "h1",
    HEADING2: "h2",
    HEADING3: "h3",
    BLOCKQUOTE: "blockquote",
    BULLET_LIST: "ul",
    NUMBER_LIST: "ol",
    LIST_ITEM: "li",
}

# Outermost first
_MARK_TAGS: list[tuple[str, str]] = [
    ("bold", "strong"),
    ("italic", "em"),
    ("underline", "u"),
    ("strikethrough", "s"),
    ("code", "code"),
    ("kbd", "kbd"),
]

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_html(doc: Document, title: str | None = None) -> str:
    """
    Render a complete HTML page for a document.
    The title defaults to the first level-one heading.
    """
    blocks = [{"html": render_block(block)} for block in doc.blocks if _has_content(block)]
    return chevron.render(
        PAGE_TEMPLATE,
        {
            "title": title or document_title(doc) or "Untitled",
            "css": BASE_CSS,
            "blocks": blocks,
        },
    )


def render_block(block: Block) -> str:
    """Render one block (and its items, for lists) as an HTML fragment."""
    if block.kind == CODE_BLOCK:
        lang = f' class="language-{escape(block.lang)}"' if block.lang else ""
        return f"<pre><code{lang}>{escape(block_text(block))}</code></pre>"

    if block.is_list:
        tag = _BLOCK_TAGS[block.kind]
        items = "".join(render_block(item) for item in block.children)  # type: ignore[arg-type]
        return f"<{tag}>{items}</{tag}>"

    tag = _BLOCK_TAGS.get(block.kind, "p")
    content = "".join(render_leaf(leaf) for leaf in block.children if isinstance(leaf, Leaf))
    return f"<{tag}>{content}</{tag}>"


def render_leaf(leaf: Leaf) -> str:
    html = escape(leaf.text).replace("\n", "<br>")
    for kind, tag in reversed(_MARK_TAGS):
        if kind in leaf.marks:
            html = f"<{tag}>{html}</{tag}>"
    for mark in leaf.marks:
        if mark_kind(mark) == HIGHLIGHT:
            _, _, color = mark.partition(":")
            style = f' style="background: {escape(color)}"' if color else ""
            html = f"<mark{style}>{html}</mark>"
    return html


def escape(text: str) -> str:
    """HTML-escape user content."""
    return _html_escape(str(text), quote=True)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _has_content(block: Block) -> bool:
    if block.is_list:
        return any(block_text(item) for item in block.children)  # type: ignore[arg-type]
    return bool(block_text(block))
