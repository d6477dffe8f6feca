"""Unit tests for the plain-text reports."""

from __future__ import annotations

from compilab.lexical.af_to_er import af_to_er, af_to_er_elimination
from compilab.lexical.automaton import Automaton, make_automaton
from compilab.lexical.recognize import recognize_string
from compilab.lexical.regex_parser import build_syntax_tree
from compilab.lexical.subset import afn_to_afd
from compilab.lexical.thompson import er_to_afn
from compilab.report import (
    render_arden,
    render_automaton,
    render_elimination,
    render_ll1,
    render_lr,
    render_parse,
    render_precedence,
    render_recognition,
    render_syntax_tree,
)
from compilab.syntax.grammar import parse_grammar
from compilab.syntax.ll1 import analyze_descendente
from compilab.syntax.lr import analyze_ascendente
from compilab.syntax.precedence import analyze_precedence

EXPR = """\
E -> E + T | T
T -> T * F | F
F -> ( E ) | id
"""


def _odd_ones() -> Automaton:
    return make_automaton(
        "A",
        ["B"],
        [("A", "0", "A"), ("A", "1", "B"), ("B", "1", "A"), ("B", "0", "B")],
    )


class TestLexicalReports:
    def test_automaton(self) -> None:
        text = render_automaton(_odd_ones(), "Odd ones")
        lines = text.splitlines()
        assert lines[0] == "Odd ones"
        assert lines[1] == "=" * len("Odd ones")
        assert lines[2].startswith("Type: DFA   States: 2   Transitions: 4")
        assert "→A" in text
        assert "*B" in text
        assert "Subsets:" not in text

    def test_subset_automaton_lists_subsets(self) -> None:
        text = render_automaton(afn_to_afd(er_to_afn("(a|b)*abb")))
        assert "Subsets:" in text
        assert "  A = {" in text

    def test_syntax_tree(self) -> None:
        text = render_syntax_tree(build_syntax_tree("(a|b)*abb", augment=True))
        assert text.startswith("Syntax tree of ((a|b)*abb)#")
        assert "followpos:" in text
        assert "Position | Symbol | followpos" in text

    def test_arden(self) -> None:
        text = render_arden(af_to_er(_odd_ones()))
        assert text.startswith("Frontiers:")
        assert "  A --1--> B" in text
        assert "Elimination order: B, A" in text
        assert "   A = 0A | 1B" in text
        assert text.rstrip().endswith("Regular expression: (0|10*1)*10*")

    def test_elimination(self) -> None:
        text = render_elimination(af_to_er_elimination(_odd_ones()))
        assert "   I --0*1(0|10*1)*--> F" in text
        assert text.rstrip().endswith("Regular expression: 0*1(0|10*1)*")

    def test_recognition(self) -> None:
        text = render_recognition(recognize_string(_odd_ones(), "10"))
        assert text.startswith("Step | State")
        assert text.rstrip().endswith("String accepted")


class TestSyntaxReports:
    def test_parse_accepted(self) -> None:
        analysis = analyze_ascendente(parse_grammar(EXPR), "slr", "id")
        assert analysis.parse is not None
        text = render_parse(analysis.parse)
        assert "Shift 5" in text
        assert text.rstrip().endswith("Accepted")

    def test_parse_rejected(self) -> None:
        analysis = analyze_ascendente(parse_grammar(EXPR), "slr", "id +")
        assert analysis.parse is not None
        assert "Rejected: no action for state 6 on '$'" in render_parse(analysis.parse)

    def test_ll1(self) -> None:
        text = render_ll1(analyze_descendente(parse_grammar(EXPR)))
        assert text.startswith("Transformations:")
        assert "  E' → + T E' | ε" in text
        assert "{+, ε}" in text
        assert "Parsing table:" in text
        assert text.rstrip().endswith("The grammar is LL(1).")

    def test_ll1_conflicts(self) -> None:
        grammar = parse_grammar("S -> i E t S | i E t S e S | a\nE -> b")
        text = render_ll1(analyze_descendente(grammar))
        assert "The grammar is not LL(1):" in text
        assert "  M[S', e]: S' → ε / S' → e S" in text

    def test_lr(self) -> None:
        text = render_lr(analyze_ascendente(parse_grammar(EXPR), "slr"))
        assert text.startswith("LR(0) item sets:")
        assert "SLR table:" in text
        assert "I11:" in text
        assert text.rstrip().endswith("No conflicts.")

    def test_lr_conflicts(self) -> None:
        text = render_lr(analyze_ascendente(parse_grammar(EXPR), "lr0"))
        assert "LR0 table:" in text
        assert "Conflicts:" in text
        assert "shift-reduce conflict in state" in text

    def test_precedence(self) -> None:
        text = render_precedence(analyze_precedence(parse_grammar(EXPR)))
        assert text.startswith("Non-terminal | LEADING")
        assert "end marker: $ < LEADING(E); TRAILING(E) > $" in text
        assert "Not an operator grammar" not in text

    def test_precedence_non_operator_grammar(self) -> None:
        text = render_precedence(analyze_precedence(parse_grammar("S -> A B\nA -> a\nB -> b")))
        assert text.startswith("Not an operator grammar:")
        assert "'S → A B' has adjacent non-terminals A B" in text
