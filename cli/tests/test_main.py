"""
Tests for cli/quire_cli/main.py
"""

from __future__ import annotations

import json
import sys

import pytest

from quire_cli import __version__
from quire_cli.main import main, parse_args

SAMPLE = "# Title\n\nSome body text."


@pytest.fixture
def doc_file(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text(SAMPLE, encoding="utf-8")
    return path


def run(monkeypatch, capsys, *args):
    monkeypatch.setattr(sys, "argv", ["quire", *args])
    main()
    return capsys.readouterr().out


class TestParseArgs:
    def test_command_paths_and_output(self):
        args = parse_args(["replay", "a.md", "b.jsonl", "--json"])
        assert args["command"] == "replay"
        assert args["paths"] == ["a.md", "b.jsonl"]
        assert args["output"] == "json"

    def test_flags(self):
        args = parse_args(["-h", "-v"])
        assert args["show_help"]
        assert args["show_version"]
        assert args["command"] is None

    def test_unknown_option_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["--loud"])

    def test_unknown_command_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["publish"])


class TestMain:
    def test_no_command_prints_help(self, monkeypatch, capsys):
        assert "Usage:" in run(monkeypatch, capsys)

    def test_version(self, monkeypatch, capsys):
        assert run(monkeypatch, capsys, "--version").strip() == f"quire {__version__}"

    def test_render_text(self, monkeypatch, capsys, doc_file):
        assert run(monkeypatch, capsys, "render", str(doc_file), "--text") == SAMPLE + "\n"

    def test_render_json(self, monkeypatch, capsys, doc_file):
        out = run(monkeypatch, capsys, "render", str(doc_file), "--json")
        blocks = json.loads(out)
        assert [b["type"] for b in blocks] == ["heading1", "paragraph", "paragraph"]

    def test_render_html(self, monkeypatch, capsys, doc_file):
        out = run(monkeypatch, capsys, "render", str(doc_file), "--html")
        assert "<h1>Title</h1>" in out

    def test_stats(self, monkeypatch, capsys, doc_file):
        out = run(monkeypatch, capsys, "stats", str(doc_file))
        assert "Title: Title" in out
        assert "Blocks: 3" in out
        assert "Words: 4" in out
        assert "Characters: 20" in out
        assert "Invalid" not in out

    def test_replay(self, monkeypatch, capsys, doc_file, tmp_path):
        ops = tmp_path / "edits.jsonl"
        ops.write_text(
            '{"type":"insert_text","point":{"path":[0,0],"offset":0},"text":"My "}\n'
            "not json\n"
            '{"t":"set_block_type","path":[0],"kind":"heading2"}\n',
            encoding="utf-8",
        )
        out = run(monkeypatch, capsys, "replay", str(doc_file), str(ops), "--text")
        assert out.splitlines()[0] == "## My Title"

    def test_missing_file(self, monkeypatch, capsys, tmp_path):
        with pytest.raises(SystemExit) as exc:
            run(monkeypatch, capsys, "render", str(tmp_path / "nope.md"))
        assert exc.value.code == 1
        assert "Error: No such file" in capsys.readouterr().out

    def test_wrong_arity(self, monkeypatch, capsys, doc_file):
        with pytest.raises(SystemExit):
            run(monkeypatch, capsys, "replay", str(doc_file))
