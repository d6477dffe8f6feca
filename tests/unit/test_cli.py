"""Unit tests for the ``python -m compilab`` command line."""

from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from compilab.__main__ import build_parser, main

EXPR = """\
E -> E + T | T
T -> T * F | F
F -> ( E ) | id
"""

ODD_ONES = {
    "states": [{"id": "A", "is_initial": True}, {"id": "B", "is_final": True}],
    "transitions": [
        {"source": "A", "target": "A", "symbol": "0"},
        {"source": "A", "target": "B", "symbol": "1"},
        {"source": "B", "target": "A", "symbol": "1"},
        {"source": "B", "target": "B", "symbol": "0"},
    ],
}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(tmp_path: Path, name: str, content: str | bytes) -> str:
    path = tmp_path / name
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return str(path)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestParser:
    def test_defaults(self) -> None:
        args = build_parser().parse_args(["regex", "ab"])
        assert args.method == "subset"
        assert args.minimize == "partition"
        assert args.log_level == "WARNING"

    def test_requires_command(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_rejects_unknown_lr_method(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["lr", "g.txt", "--method", "glr"])


class TestRegexCommand:
    def test_subset_pipeline(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["regex", "(a|b)*abb", "--test", "abb", "ab"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Thompson NFA")
        assert "Subset DFA" in out
        assert "Minimized DFA" in out
        assert "Input 'abb':" in out
        assert "String accepted" in out
        assert "is not an accepting state" in out

    def test_direct_without_minimization(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["regex", "a*b", "--method", "direct", "--minimize", "none"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Syntax tree of (a*b)#")
        assert "Direct DFA" in out
        assert "Minimized DFA" not in out

    def test_significant_states(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["regex", "(a|b)*abb", "--minimize", "significant"]) == 0
        assert "DFA merged by significant states" in capsys.readouterr().out

    def test_significant_requires_subset(self, caplog: pytest.LogCaptureFixture) -> None:
        assert main(["regex", "ab", "--method", "direct", "--minimize", "significant"]) == 1
        assert "requires --method subset" in caplog.text

    def test_invalid_regex(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["regex", "a||b"]) == 1
        assert capsys.readouterr().out == ""


class TestAutomatonCommand:
    def test_both_methods(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "odd.json", orjson.dumps(ODD_ONES))
        assert main(["automaton", path, "--method", "both", "--test", "1"]) == 0
        out = capsys.readouterr().out
        assert "Regular expression: (0|10*1)*10*" in out
        assert "Regular expression: 0*1(0|10*1)*" in out
        assert "Input '1':" in out
        assert "String accepted" in out

    def test_invalid_automaton(self, tmp_path: Path) -> None:
        broken = {"states": [{"id": "A"}], "transitions": []}
        path = _write(tmp_path, "broken.json", orjson.dumps(broken))
        assert main(["automaton", path]) == 1

    def test_unknown_field(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "extra.json", orjson.dumps({**ODD_ONES, "kind": "DFA"}))
        assert main(["automaton", path]) == 1


class TestGrammarCommands:
    def test_ll1(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "expr.txt", EXPR)
        assert main(["ll1", path, "--input", "id + id * id"]) == 0
        out = capsys.readouterr().out
        assert "The grammar is LL(1)." in out
        assert out.rstrip().endswith("Accepted")

    def test_lr(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "expr.txt", EXPR)
        assert main(["lr", path, "--method", "lalr", "--input", "id * id"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("LALR(1) item sets:")
        assert "LALR table:" in out
        assert out.rstrip().endswith("Accepted")

    def test_lr_default_method(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "expr.txt", EXPR)
        assert main(["lr", path]) == 0
        assert "SLR table:" in capsys.readouterr().out

    def test_precedence(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "expr.txt", EXPR)
        assert main(["precedence", path, "--input", "id + id"]) == 0
        out = capsys.readouterr().out
        assert "end marker:" in out
        assert "Accepted" in out

    def test_missing_file(self, tmp_path: Path) -> None:
        assert main(["ll1", str(tmp_path / "missing.txt")]) == 1

    def test_invalid_grammar(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "bad.txt", "S -> A b\n")
        assert main(["precedence", path]) == 1

    def test_iteration_cap(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "expr.txt", EXPR)
        assert main(["--max-iterations", "1", "ll1", path]) == 1
