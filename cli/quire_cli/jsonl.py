"""
JSONL reader for operation logs.

One operation object per line. Buffers partial text until newlines, accepts
the long field name "type" for "t", and skips malformed lines with a warning.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from typing import Any

logger = logging.getLogger(__name__)

_ALIASES: dict[str, str] = {
    "type": "t",
}


class OpsReader:
    """
    Parses a JSONL operation log, whole or in chunks.

    Accumulates partial chunks in a buffer, emits complete parsed operations
    as they become available.
    """

    def __init__(self) -> None:
        self.buffer = ""

    def feed(self, chunk: str) -> list[dict[str, Any]]:
        """Feed a text chunk (may be partial), return any complete operations."""
        self.buffer += chunk
        ops = []
        while "\n" in self.buffer:
            line, self.buffer = self.buffer.split("\n", 1)
            op = self._parse_line(line)
            if op is not None:
                ops.append(op)
        return ops

    def flush(self) -> list[dict[str, Any]]:
        """Parse whatever is left after the last newline."""
        line, self.buffer = self.buffer, ""
        op = self._parse_line(line)
        return [op] if op is not None else []

    def _parse_line(self, line: str) -> dict[str, Any] | None:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            return None
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            logger.warning("OpsReader: skipping malformed line: %r", stripped[:200])
            return None
        if not isinstance(parsed, dict):
            logger.warning("OpsReader: skipping non-object line: %r", stripped[:200])
            return None
        return self.expand_aliases(parsed)

    @staticmethod
    def expand_aliases(op: dict[str, Any]) -> dict[str, Any]:
        expanded: dict[str, Any] = {}
        for key, value in op.items():
            expanded[_ALIASES.get(key, key)] = value
        return expanded


def read_ops(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """Yield operations from an iterable of text chunks (e.g. an open file)."""
    reader = OpsReader()
    for chunk in lines:
        yield from reader.feed(chunk)
    yield from reader.flush()
