"""Unit tests for the Thompson, subset and direct constructions."""

from __future__ import annotations

import itertools
import re

import pytest

from compilab.lexical.automaton import EPSILON, Automaton, AutomatonKind, is_deterministic
from compilab.lexical.minimize import minimize_partition
from compilab.lexical.recognize import language_up_to, recognize_string
from compilab.lexical.regex_parser import build_syntax_tree
from compilab.lexical.subset import (
    afd_from_syntax_tree,
    afn_to_afd,
    build_afd_full,
    build_afd_short,
    epsilon_closure,
    er_to_afd,
    letter_label,
    move,
)
from compilab.lexical.thompson import StateCounter, er_to_afn

REGEXES = ["(a|b)*abb", "a(b|c)*", "(ab)+|c?", "a*b*", "(a|b)?c+", "ab|ba"]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _words(alphabet: list[str], max_length: int) -> list[str]:
    return [
        "".join(chars)
        for n in range(max_length + 1)
        for chars in itertools.product(alphabet, repeat=n)
    ]


def _builders(regex: str) -> dict[str, Automaton]:
    nfa = er_to_afn(regex)
    subset = afn_to_afd(nfa)
    return {
        "nfa": nfa,
        "subset": subset,
        "direct": er_to_afd(regex),
        "minimized": minimize_partition(subset),
        "significant": build_afd_full(regex).optimized,
    }


# ---------------------------------------------------------------------------
# Thompson
# ---------------------------------------------------------------------------


class TestThompson:
    @pytest.mark.parametrize(
        ("regex", "states", "transitions"),
        [
            ("a", 2, 1),
            ("ab", 3, 2),
            ("a|b", 6, 6),
            ("a*", 4, 5),
            ("a+", 4, 4),
            ("a?", 4, 4),
        ],
    )
    def test_fragment_sizes(self, regex: str, states: int, transitions: int) -> None:
        nfa = er_to_afn(regex)
        assert len(nfa.states) == states
        assert len(nfa.transitions) == transitions

    def test_one_initial_one_final(self) -> None:
        for regex in REGEXES:
            nfa = er_to_afn(regex)
            assert sum(s.is_initial for s in nfa.states) == 1
            assert len(nfa.final_ids) == 1

    def test_state_ids_renumbered(self) -> None:
        nfa = er_to_afn("a|b")
        assert nfa.state_ids == [f"q{i}" for i in range(6)]
        assert nfa.initial_state is not None
        assert nfa.initial_state.id == "q0"
        assert nfa.final_ids == {"q5"}

    def test_concatenation_adds_no_epsilon(self) -> None:
        nfa = er_to_afn("abc")
        assert not nfa.has_epsilon()
        assert nfa.kind is AutomatonKind.NFA

    def test_epsilon_operand(self) -> None:
        nfa = er_to_afn("ε")
        assert nfa.alphabet == []
        assert [t.symbol for t in nfa.transitions] == [EPSILON]
        assert recognize_string(nfa, "").accepted

    def test_empty_language_operand(self) -> None:
        nfa = er_to_afn("∅")
        assert nfa.alphabet == []
        assert len(nfa.states) == 2
        assert nfa.transitions == []
        assert not recognize_string(nfa, "").accepted

    def test_counter(self) -> None:
        counter = StateCounter("n")
        assert counter() == "n0"
        assert counter() == "n1"
        assert counter.issued == 2


# ---------------------------------------------------------------------------
# Subset construction
# ---------------------------------------------------------------------------


class TestSubsetConstruction:
    def test_closure_and_move(self) -> None:
        nfa = er_to_afn("a*")
        assert epsilon_closure({"q0"}, nfa) == {"q0", "q1", "q3"}
        assert move({"q0", "q1", "q3"}, "a", nfa) == {"q2"}
        assert epsilon_closure({"q2"}, nfa) == {"q1", "q2", "q3"}

    def test_textbook_dfa(self) -> None:
        dfa = afn_to_afd(er_to_afn("(a|b)*abb"))
        assert dfa.kind is AutomatonKind.DFA
        assert is_deterministic(dfa)
        assert [s.label for s in dfa.states] == ["A", "B", "C", "D", "E"]
        assert [s.label for s in dfa.states if s.is_final] == ["E"]
        assert len(dfa.transitions) == 10

    def test_subset_metadata(self) -> None:
        nfa = er_to_afn("a*")
        dfa = afn_to_afd(nfa)
        assert [s.label for s in dfa.subset_states] == ["A", "B"]
        assert dfa.subset_states[0].nfa_states == ["q0", "q1", "q3"]
        assert dfa.subset_states[1].nfa_states == ["q1", "q2", "q3"]

    def test_partial_dfa(self) -> None:
        dfa = afn_to_afd(er_to_afn("ab"))
        assert len(dfa.states) == 3
        assert len(dfa.transitions) == 2

    def test_letter_labels(self) -> None:
        assert letter_label(0) == "A"
        assert letter_label(25) == "Z"
        assert letter_label(26) == "q26"


# ---------------------------------------------------------------------------
# Direct construction
# ---------------------------------------------------------------------------


class TestDirectConstruction:
    def test_textbook_dfa(self) -> None:
        dfa = er_to_afd("(a|b)*abb")
        assert len(dfa.states) == 4
        assert [s.label for s in dfa.states] == ["q0", "q1", "q2", "q3"]
        assert dfa.states[0].id == "{1,2,3}"
        assert dfa.final_ids == {"{1,2,3,6}"}

    def test_requires_augmented_tree(self) -> None:
        with pytest.raises(ValueError, match="augmented"):
            afd_from_syntax_tree(build_syntax_tree("ab"))

    def test_short_pipeline(self) -> None:
        result = build_afd_short("a|b")
        assert result.tree.end_position == 3
        assert len(result.dfa.states) == 2


# ---------------------------------------------------------------------------
# Equivalence of the builders
# ---------------------------------------------------------------------------


class TestBuilderEquivalence:
    @pytest.mark.parametrize("regex", REGEXES)
    def test_same_language(self, regex: str) -> None:
        automata = _builders(regex)
        languages = {name: language_up_to(a, 5) for name, a in automata.items()}
        reference = languages["nfa"]
        for name, language in languages.items():
            assert language == reference, name

    @pytest.mark.parametrize("regex", REGEXES)
    def test_matches_python_re(self, regex: str) -> None:
        pattern = re.compile(regex)
        alphabet = build_syntax_tree(regex).alphabet
        automata = _builders(regex)
        for word in _words(alphabet, 5):
            expected = pattern.fullmatch(word) is not None
            for name, automaton in automata.items():
                assert recognize_string(automaton, word).accepted == expected, (name, word)

    @pytest.mark.parametrize(
        ("regex", "expected"),
        [("∅", set()), ("a|∅", {"a"}), ("a∅b", set()), ("∅*", {""}), ("(∅|b)a", {"ba"})],
    )
    def test_empty_language_operand(self, regex: str, expected: set[str]) -> None:
        for name, automaton in _builders(regex).items():
            assert language_up_to(automaton, 3) == expected, name

    def test_minimized_textbook_size(self) -> None:
        automata = _builders("(a|b)*abb")
        assert len(automata["subset"].states) == 5
        assert len(automata["minimized"].states) == 4
        assert len(automata["direct"].states) == 4
        assert len(automata["significant"].states) == 4
        assert len(minimize_partition(automata["direct"]).states) == 4
