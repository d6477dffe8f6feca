"""Sanity check: run the textbook examples through every algorithm and print a summary.

Usage:
    python scripts/sanity_check.py
    python scripts/sanity_check.py --examples regex lr
    python scripts/sanity_check.py --verbose
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable

from compilab.errors import CompilabError
from compilab.lexical.af_to_er import af_to_er, af_to_er_elimination
from compilab.lexical.minimize import minimize_partition, optimize_by_significant_states
from compilab.lexical.recognize import language_up_to
from compilab.lexical.regex_parser import build_syntax_tree
from compilab.lexical.subset import afd_from_syntax_tree, afn_to_afd
from compilab.lexical.thompson import er_to_afn
from compilab.report import render_automaton, render_ll1, render_lr, render_precedence
from compilab.syntax.grammar import parse_grammar
from compilab.syntax.ll1 import analyze_descendente
from compilab.syntax.lr import analyze_ascendente
from compilab.syntax.precedence import analyze_precedence

EXPRESSION_GRAMMAR = """\
E -> E + T | T
T -> T * F | F
F -> ( E ) | id
"""

TEXTBOOK_REGEX = "(a|b)*abb"


def check_regex(verbose: bool) -> list[str]:
    """Thompson, subset, direct and both minimizations must agree on (a|b)*abb."""
    problems = []
    nfa = er_to_afn(TEXTBOOK_REGEX)
    subset = afn_to_afd(nfa)
    direct = afd_from_syntax_tree(build_syntax_tree(TEXTBOOK_REGEX, augment=True))
    minimized = minimize_partition(subset)
    merged = optimize_by_significant_states(subset, nfa)
    if len(subset.states) != 5:
        problems.append(f"subset DFA has {len(subset.states)} states, expected 5")
    for name, dfa in (("direct", direct), ("minimized", minimized), ("merged", merged)):
        if len(dfa.states) != 4:
            problems.append(f"{name} DFA has {len(dfa.states)} states, expected 4")
    expected = language_up_to(nfa, 6)
    for dfa in (subset, direct, minimized, merged):
        if language_up_to(dfa, 6) != expected:
            problems.append(f"{dfa.name or 'DFA'} accepts a different language")
    if verbose:
        print(render_automaton(minimized, "Minimized DFA"))
    return problems


def check_automaton(verbose: bool) -> list[str]:
    """Arden and state elimination must describe the minimized DFA's language."""
    problems = []
    dfa = minimize_partition(afn_to_afd(er_to_afn(TEXTBOOK_REGEX)))
    expected = language_up_to(dfa, 6)
    for name, text in (
        ("Arden", af_to_er(dfa).text),
        ("elimination", af_to_er_elimination(dfa).text),
    ):
        if language_up_to(er_to_afn(text), 6) != expected:
            problems.append(f"{name} produced {text!r}, which changes the language")
        if verbose:
            print(f"  {name}: {text}")
    return problems


def check_ll1(verbose: bool) -> list[str]:
    analysis = analyze_descendente(parse_grammar(EXPRESSION_GRAMMAR))
    if verbose:
        print(render_ll1(analysis))
    return [] if analysis.is_ll1 else [f"LL(1) conflicts: {analysis.conflicts}"]


def check_lr(verbose: bool) -> list[str]:
    problems = []
    grammar = parse_grammar(EXPRESSION_GRAMMAR)
    for method in ("lr0", "slr", "lr1", "lalr"):
        analysis = analyze_ascendente(grammar, method, "id + id * id")
        conflict_free = analysis.table.is_conflict_free
        if conflict_free != (method != "lr0"):
            problems.append(f"{method}: unexpected conflicts {analysis.table.conflicts}")
        if analysis.parse is None or not analysis.parse.accepted:
            problems.append(f"{method}: 'id + id * id' was rejected")
        if verbose:
            print(render_lr(analysis))
    return problems


def check_precedence(verbose: bool) -> list[str]:
    analysis = analyze_precedence(parse_grammar(EXPRESSION_GRAMMAR), "id + id * id")
    if verbose:
        print(render_precedence(analysis))
    problems = [str(c) for c in analysis.table.conflicts]
    if analysis.parse is None or not analysis.parse.accepted:
        problems.append("'id + id * id' was rejected")
    return problems


CHECKS: dict[str, Callable[[bool], list[str]]] = {
    "regex": check_regex,
    "automaton": check_automaton,
    "ll1": check_ll1,
    "lr": check_lr,
    "precedence": check_precedence,
}


def run_check(name: str, verbose: bool) -> bool:
    """Run one check and print its problems. Returns True on success."""
    separator = "=" * 70
    print(f"\n{separator}")
    print(f"  {name.upper()}")
    print(separator)

    try:
        problems = CHECKS[name](verbose)
    except CompilabError as exc:
        print(f"  FAIL: {exc}")
        return False

    for problem in problems:
        print(f"  FAIL: {problem}")
    return not problems


def main() -> None:
    parser = argparse.ArgumentParser(description="Sanity-check the textbook examples.")
    parser.add_argument(
        "--examples",
        nargs="+",
        choices=list(CHECKS.keys()),
        default=list(CHECKS.keys()),
        help="Which checks to run (default: all).",
    )
    parser.add_argument("--verbose", action="store_true", help="Print the full reports.")
    args = parser.parse_args()

    results = {name: run_check(name, args.verbose) for name in args.examples}

    # Summary
    print("=" * 70)
    print("  SUMMARY")
    print("=" * 70)
    for name, ok in results.items():
        status = "OK" if ok else "FAIL"
        print(f"  {name:10s}  {status}")
    print()

    if not all(results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
