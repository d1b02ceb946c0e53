"""Main entry point for the Quire CLI."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from quire.config import settings
from quire.kernel import parse, render_html, replay, serialize
from quire.kernel.serializer import char_count, word_count
from quire.kernel.tree import document_title, text_blocks, validate_document
from quire.kernel.types import Document, EditorState
from quire_cli import __version__
from quire_cli.jsonl import read_ops
from quire_cli.repl import Repl


class DocumentNotFound(Exception):
    """Document file does not exist or cannot be read."""
    pass


def print_help():
    """Print help message."""
    print(f"""
Quire CLI v{__version__}

Usage:
  quire [options] <command> FILE [args]

Commands:
  render FILE           Print the document (default: saved form)
  stats FILE            Show title, block, word and character counts
  replay FILE OPS       Apply a JSONL operation log and print the result
  edit FILE             Interactive editor

Options:
  --html                Output an HTML preview page (render, replay)
  --json                Output the JSON tree form (render, replay)
  --text                Output the markdown-like text form (render, replay)
  -h, --help            Show this help
  -v, --version         Show version

Environment:
  QUIRE_SERIALIZE_FORMAT   auto, text or json (default: auto)
  QUIRE_HISTORY_LIMIT      Undo steps kept (default: 500)
  QUIRE_LOG_LEVEL          Logging level (default: WARNING)

Examples:
  quire render notes.md --html > notes.html
  quire replay notes.md edits.jsonl --json
  quire edit notes.md
""")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None (render, stats, replay, edit)
        paths: list[str]
        output: str | None (html, json, text)
        show_help: bool
        show_version: bool
    """
    result = {
        "command": None,
        "paths": [],
        "output": None,
        "show_help": False,
        "show_version": False,
    }

    for arg in args:
        if arg in ("render", "stats", "replay", "edit") and result["command"] is None:
            result["command"] = arg
        elif arg in ("--html", "--json", "--text"):
            result["output"] = arg[2:]
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            print(f"Unknown option: {arg}")
            print("Run 'quire --help' for usage.")
            sys.exit(1)
        elif result["command"] is None:
            print(f"Unknown command: {arg}")
            print("Run 'quire --help' for usage.")
            sys.exit(1)
        else:
            result["paths"].append(arg)

    return result


def load_document(path: str) -> str:
    """Read a document file. Raises DocumentNotFound."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        raise DocumentNotFound(f"No such file: {path}") from None
    except OSError as e:
        raise DocumentNotFound(f"Cannot read {path}: {e}") from None


def format_document(doc: Document, output: str | None) -> str:
    if output == "html":
        return render_html(doc)
    return serialize(doc, output)


def show_stats(doc: Document) -> None:
    print(f"  Title: {document_title(doc) or 'Untitled'}")
    print(f"  Blocks: {len(text_blocks(doc))}")
    print(f"  Words: {word_count(doc)}")
    print(f"  Characters: {char_count(doc)}")
    for error in validate_document(doc):
        print(f"  Invalid: {error}")


def replay_file(doc: Document, ops_path: str) -> Document:
    try:
        with open(ops_path, encoding="utf-8") as f:
            state = replay(EditorState(document=doc), read_ops(f))
    except FileNotFoundError:
        raise DocumentNotFound(f"No such file: {ops_path}") from None
    return state.document


def _require(paths: list[str], count: int, usage: str) -> None:
    if len(paths) != count:
        print(f"Usage: {usage}")
        sys.exit(1)


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])

    # Handle help and version first
    if args["show_help"] or (args["command"] is None and not args["show_version"]):
        print_help()
        return

    if args["show_version"]:
        print(f"quire {__version__}")
        return

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    command = args["command"]
    paths = args["paths"]

    try:
        if command == "render":
            _require(paths, 1, "quire render FILE [--html|--json|--text]")
            doc = parse(load_document(paths[0]))
            print(format_document(doc, args["output"]))

        elif command == "stats":
            _require(paths, 1, "quire stats FILE")
            show_stats(parse(load_document(paths[0])))

        elif command == "replay":
            _require(paths, 2, "quire replay FILE OPS.jsonl [--html|--json|--text]")
            doc = replay_file(parse(load_document(paths[0])), paths[1])
            print(format_document(doc, args["output"]))

        elif command == "edit":
            _require(paths, 1, "quire edit FILE")
            path = Path(paths[0])
            content = load_document(paths[0]) if path.exists() else ""
            Repl(path, content).start()

    except DocumentNotFound as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
