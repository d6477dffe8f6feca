"""Unit tests for DFA minimization."""

from __future__ import annotations

import pytest

from compilab.config import AnalysisConfig
from compilab.errors import AutomatonValidationError, ConvergenceError
from compilab.lexical.automaton import Automaton, make_automaton
from compilab.lexical.minimize import (
    minimize_partition,
    optimize_by_significant_states,
    refine_partition,
    significant_states,
)
from compilab.lexical.recognize import language_up_to
from compilab.lexical.subset import afn_to_afd
from compilab.lexical.thompson import er_to_afn


def _redundant() -> Automaton:
    """States 1 and 2 accept the same language."""
    return make_automaton(
        "0",
        ["1", "2"],
        [
            ("0", "a", "1"),
            ("0", "b", "2"),
            ("1", "a", "1"),
            ("1", "b", "2"),
            ("2", "a", "1"),
            ("2", "b", "2"),
        ],
    )


class TestPartition:
    def test_merges_equivalent_states(self) -> None:
        minimized = minimize_partition(_redundant())
        assert minimized.state_ids == ["0", "1"]
        assert minimized.final_ids == {"1"}
        assert len(minimized.transitions) == 4
        assert language_up_to(minimized, 4) == language_up_to(_redundant(), 4)

    def test_drops_unreachable_states(self) -> None:
        dfa = make_automaton("0", ["1"], [("0", "a", "1"), ("1", "a", "1"), ("2", "a", "1")])
        minimized = minimize_partition(dfa)
        assert minimized.state_ids == ["0", "1"]

    def test_blocks_start_with_initial(self) -> None:
        blocks = refine_partition(_redundant())
        assert blocks == [["0"], ["1", "2"]]

    def test_partial_dfa(self) -> None:
        dfa = afn_to_afd(er_to_afn("ab|ac"))
        minimized = minimize_partition(dfa)
        assert len(minimized.states) == 3
        assert language_up_to(minimized, 3) == {"ab", "ac"}

    def test_idempotent(self) -> None:
        once = minimize_partition(afn_to_afd(er_to_afn("(a|b)*abb")))
        twice = minimize_partition(once)
        assert len(once.states) == len(twice.states) == 4

    def test_keeps_subset_metadata_of_representatives(self) -> None:
        dfa = afn_to_afd(er_to_afn("(a|b)*abb"))
        minimized = minimize_partition(dfa)
        assert [s.label for s in minimized.subset_states] == [s.label for s in minimized.states]

    def test_rejects_nfa(self) -> None:
        with pytest.raises(AutomatonValidationError, match="not deterministic"):
            minimize_partition(er_to_afn("a|b"))

    def test_iteration_cap(self) -> None:
        dfa = afn_to_afd(er_to_afn("(a|b)*abb"))
        with pytest.raises(ConvergenceError, match="partition refinement"):
            minimize_partition(dfa, AnalysisConfig(max_iterations=1))


class TestSignificantStates:
    def test_significant_set(self) -> None:
        assert significant_states(er_to_afn("a*")) == {"q1", "q3"}

    def test_merge(self) -> None:
        nfa = er_to_afn("(a|b)*abb")
        dfa = afn_to_afd(nfa)
        optimized = optimize_by_significant_states(dfa, nfa)
        assert [s.label for s in optimized.states] == ["A", "B", "D", "E"]
        assert language_up_to(optimized, 5) == language_up_to(dfa, 5)

    def test_requires_subset_metadata(self) -> None:
        with pytest.raises(AutomatonValidationError, match="subset construction"):
            optimize_by_significant_states(_redundant(), er_to_afn("a"))

    def test_rejects_nfa(self) -> None:
        nfa = er_to_afn("a|b")
        with pytest.raises(AutomatonValidationError):
            optimize_by_significant_states(nfa, nfa)
