"""REPL for the Quire CLI."""

from pathlib import Path

from quire.config import SERIALIZE_FORMATS
from quire.kernel import CommandDispatcher
from quire.kernel.renderer import render_html
from quire.kernel.selection import selection_text
from quire.kernel.tree import block_text, point_at, resolve_point, text_block_paths, text_blocks
from quire.kernel.types import BLOCK_KINDS, MARK_KINDS, ChangeEvent, highlight

_KEYS = {
    "enter": "Enter",
    "backspace": "Backspace",
    "delete": "Delete",
    "escape": "Escape",
    "esc": "Escape",
    "tab": "Tab",
}


class Repl:
    """Interactive editor over one document file."""

    def __init__(self, path: Path, content: str = ""):
        self.path = Path(path)
        self.editor = CommandDispatcher(content)
        self.editor.select_end()
        self.running = True
        self.dirty = False
        self.watch_mode = False
        self.editor.add_listener(self._on_change)

    def start(self):
        """Start the REPL."""
        print(f"quire > {self.path}")
        print("quire > Type text to insert it. /help for commands.")

        while self.running:
            try:
                line = input(self._prompt())

                if not line:
                    continue

                # Handle commands
                if line.startswith("/") and len(line) > 1:
                    self._handle_command(line)
                else:
                    self.editor.type_text(line)

            except (EOFError, KeyboardInterrupt):
                print()
                break
            except Exception as e:
                print(f"Error: {e}")

        if self.dirty:
            print("  Unsaved changes discarded. Use /save next time.")

    def _prompt(self) -> str:
        marker = "*" if self.dirty else ""
        menu = " /" if self.editor.menu is not None else ""
        return f"quire [{self.editor.active_block_kind()}{menu}]{marker} > "

    def _on_change(self, event: ChangeEvent):
        self.dirty = True
        if self.watch_mode:
            print("  " + "┄" * 50)
            for line in event.serialized.split("\n"):
                print(f"  {line}")

    def _handle_command(self, line: str):
        """Handle REPL commands."""
        parts = line.split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else None

        if cmd == "/quit":
            self.running = False
            print("Goodbye.")
        elif cmd[1:] in MARK_KINDS:
            self._toggle_mark(cmd[1:], arg)
        elif cmd == "/kind":
            if arg:
                self._set_kind(arg)
            else:
                print(f"Usage: /kind <{'|'.join(sorted(BLOCK_KINDS))}>")
        elif cmd == "/key":
            if arg:
                self.editor.key(_KEYS.get(arg.lower(), arg))
            else:
                print("Usage: /key enter|backspace|delete|escape|tab")
        elif cmd == "/enter":
            self.editor.enter()
        elif cmd == "/undo":
            if self.editor.undo() is None:
                print("  Nothing to undo.")
        elif cmd == "/redo":
            if self.editor.redo() is None:
                print("  Nothing to redo.")
        elif cmd == "/select":
            self._select(arg)
        elif cmd == "/slash":
            self._slash(arg)
        elif cmd == "/view":
            self._view()
        elif cmd == "/html":
            print(render_html(self.editor.document))
        elif cmd == "/info":
            self._show_info()
        elif cmd == "/watch":
            if arg and arg.lower() in ["on", "off"]:
                self._toggle_watch(arg.lower() == "on")
            else:
                self._toggle_watch(not self.watch_mode)
        elif cmd == "/save":
            self._save(arg)
        elif cmd == "/help":
            self._show_help()
        else:
            print(f"Unknown command: {cmd}")
            print("Type /help for available commands.")

    def _toggle_mark(self, mark: str, color: str | None):
        if mark == "highlight" and color:
            mark = highlight(color)
        self.editor.toggle_mark(mark)
        state = "on" if self.editor.is_mark_active(mark) else "off"
        print(f"  {mark}: {state}")

    def _set_kind(self, kind: str):
        if kind not in BLOCK_KINDS:
            print(f"  Unknown block kind: {kind}")
            return
        self.editor.toggle_block_type(kind)

    def _select(self, arg: str | None):
        """
        /select              cursor to the end of the document
        /select B O          cursor at offset O of text block B
        /select B O B2 O2    range between two positions
        """
        doc = self.editor.document
        if not arg:
            self.editor.select_end()
            return

        try:
            numbers = [int(n) for n in arg.split()]
        except ValueError:
            print("  Usage: /select [block offset [block offset]]")
            return
        if len(numbers) not in (2, 4):
            print("  Usage: /select [block offset [block offset]]")
            return

        anchor = point_at(doc, numbers[0], numbers[1])
        focus = point_at(doc, numbers[2], numbers[3]) if len(numbers) == 4 else None
        selection = self.editor.select(anchor, focus)
        text = selection_text(doc, selection)
        if text:
            print(f"  Selected: {text!r}")

    def _slash(self, arg: str | None):
        """/slash opens the menu; /slash <n> picks item n; /slash close closes it."""
        if arg is None:
            self.editor.open_slash_menu()
        elif arg == "close":
            self.editor.close_slash_menu()
            return
        elif arg.isdigit():
            items = self.editor.slash_menu_items()
            idx = int(arg) - 1
            if 0 <= idx < len(items):
                self.editor.select_slash_item(items[idx].kind)
            else:
                print("  Invalid index.")
            return

        items = self.editor.slash_menu_items()
        if not items:
            print("  No matching blocks.")
        for i, item in enumerate(items, 1):
            print(f"  {i}. {item.label}")

    def _view(self):
        """Print the document in text form with block numbers and the cursor."""
        doc = self.editor.document
        selection = self.editor.selection
        cursor = resolve_point(doc, selection.focus) if selection else None
        print()
        for index, block in enumerate(text_blocks(doc)):
            line = block_text(block)
            if cursor and cursor[0] == index:
                line = line[: cursor[1]] + "│" + line[cursor[1] :]
            print(f"  {index:>3} {block.kind:<10} {line}")
        print()

    def _show_info(self):
        doc = self.editor.document
        print(f"  File: {self.path}")
        print(f"  Blocks: {len(text_block_paths(doc))}")
        print(f"  Words: {len(self.editor.plain_text().split())}")
        print(f"  Undo: {len(self.editor.state.undo_stack)}  Redo: {len(self.editor.state.redo_stack)}")
        print(f"  Unsaved: {'yes' if self.dirty else 'no'}")

    def _toggle_watch(self, enable: bool):
        """Toggle watch mode."""
        self.watch_mode = enable

        if enable:
            print("  Watch mode: showing the document after each change.")
        else:
            print("  Watch mode: off.")

    def _save(self, fmt: str | None):
        if fmt and fmt not in SERIALIZE_FORMATS:
            print(f"  Unknown format: {fmt}")
            return
        content = self.editor.serialize(fmt)
        try:
            self.path.write_text(content, encoding="utf-8")
        except OSError as e:
            print(f"Failed to save: {e}")
            return
        self.dirty = False
        print(f"  Saved {self.path}")

    def _show_help(self):
        """Show help message."""
        print("""
  Typing:
    any text       - Typed character by character ("# " converts to a heading)
    /key <name>    - Press enter, backspace, delete, escape or tab
    /enter         - Same as /key enter

  Commands:
    /bold /italic /underline /strikethrough /code /kbd
                   - Toggle a mark on the selection
    /highlight [color]
                   - Toggle a highlight
    /kind <kind>   - Toggle the block kind (heading1, bulletList, ...)
    /select [b o [b o]]
                   - Move the cursor or select a range (block, offset)
    /slash [n|close]
                   - Open the block menu, pick item n, or close it
    /undo /redo    - Step through history
    /view          - Show blocks and cursor
    /html          - Print the HTML preview
    /info          - Show document details
    /watch [on|off]- Print the saved form after each change
    /save [format] - Save (auto, text or json)
    /help          - Show this help
    /quit          - Exit REPL
""")

