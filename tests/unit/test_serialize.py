"""Unit tests for JSON encoding of analysis results."""

from __future__ import annotations

import orjson
import pytest

from compilab.lexical.automaton import make_automaton
from compilab.lexical.recognize import recognize_string
from compilab.lexical.regex_ast import concat, star, symbol
from compilab.serialize import dumps, to_jsonable
from compilab.syntax.grammar import Production, parse_grammar
from compilab.syntax.lr import ActionEntry, ActionKind, LRItem


class TestToJsonable:
    def test_sets_are_sorted_lists(self) -> None:
        assert to_jsonable({"first": {"id", "(", "+"}}) == {"first": ["(", "+", "id"]}
        assert to_jsonable(frozenset({3, 1, 2})) == [1, 2, 3]

    def test_non_string_keys(self) -> None:
        assert to_jsonable({1: {"a"}, 2: set()}) == {"1": ["a"], "2": []}

    def test_printed_value_types(self) -> None:
        production = Production("E", ("E", "+", "T"))
        assert to_jsonable(production) == "E → E + T"
        assert to_jsonable(LRItem(production, 1, "$")) == "[E → E • + T, $]"
        assert to_jsonable(ActionEntry(ActionKind.SHIFT, 4)) == "s4"
        assert to_jsonable(concat(symbol("a"), star(symbol("b")))) == "ab*"

    def test_grammar(self) -> None:
        data = to_jsonable(parse_grammar("S -> a S | b"))
        assert data == {
            "start_symbol": "S",
            "terminals": ["a", "b"],
            "non_terminals": ["S"],
            "productions": ["S → a S", "S → b"],
        }

    def test_dataclass_with_enum(self) -> None:
        automaton = make_automaton("0", ["1"], [("0", "a", "1")])
        data = to_jsonable(recognize_string(automaton, "a"))
        assert data["accepted"] is True
        assert data["reason"] == "accepted"
        assert data["steps"][0]["step_number"] == 0
        assert data["steps"][0]["action"] == "Initial state"

    def test_unsupported_type(self) -> None:
        with pytest.raises(TypeError):
            dumps(object())


class TestDumps:
    def test_bytes(self) -> None:
        encoded = dumps({"regex": concat(symbol("a"), symbol("b"))})
        assert isinstance(encoded, bytes)
        assert orjson.loads(encoded) == {"regex": "ab"}
