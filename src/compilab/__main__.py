"""CLI entry point: ``python -m compilab``.

Prints text reports::

    python -m compilab regex "(a|b)*abb" --method direct --test abb aab
    python -m compilab automaton dfa.json --method both
    python -m compilab ll1 expr.txt --input "id + id * id"
    python -m compilab lr expr.txt --method lalr --input "id * id"
    python -m compilab precedence expr.txt --input "id + id"
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import orjson

from compilab.config import AnalysisConfig
from compilab.errors import CompilabError
from compilab.lexical.af_to_er import af_to_er, af_to_er_elimination
from compilab.lexical.minimize import minimize_partition, optimize_by_significant_states
from compilab.lexical.recognize import recognize_string
from compilab.lexical.regex_parser import build_syntax_tree
from compilab.lexical.subset import afd_from_syntax_tree, afn_to_afd
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
from compilab.server.api import AutomatonModel
from compilab.syntax.grammar import Grammar, parse_grammar
from compilab.syntax.ll1 import analyze_descendente, parse_string_ll
from compilab.syntax.lr import analyze_ascendente
from compilab.syntax.precedence import analyze_precedence

logger = logging.getLogger(__name__)


def _read(path: str) -> str:
    return sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")


def _grammar(args: argparse.Namespace) -> Grammar:
    return parse_grammar(_read(args.grammar), args.terminals)


def _run_regex(args: argparse.Namespace, config: AnalysisConfig) -> list[str]:
    sections = []
    if args.method == "subset":
        nfa = er_to_afn(args.regex)
        sections.append(render_automaton(nfa, "Thompson NFA"))
        dfa = afn_to_afd(nfa)
        sections.append(render_automaton(dfa, "Subset DFA"))
    else:
        nfa = None
        tree = build_syntax_tree(args.regex, augment=True)
        sections.append(render_syntax_tree(tree))
        dfa = afd_from_syntax_tree(tree, name="Direct DFA")
        sections.append(render_automaton(dfa, "Direct DFA"))

    if args.minimize == "partition":
        dfa = minimize_partition(dfa, config)
        sections.append(render_automaton(dfa, "Minimized DFA"))
    elif args.minimize == "significant":
        if nfa is None:
            raise CompilabError("significant-state minimization requires --method subset")
        dfa = optimize_by_significant_states(dfa, nfa)
        sections.append(render_automaton(dfa, "DFA merged by significant states"))

    for text in args.test or []:
        sections.append(f"Input {text!r}:\n" + render_recognition(recognize_string(dfa, text)))
    return sections


def _run_automaton(args: argparse.Namespace, config: AnalysisConfig) -> list[str]:
    automaton = AutomatonModel.model_validate(orjson.loads(_read(args.automaton))).to_automaton()
    sections = [render_automaton(automaton)]
    if args.method in ("arden", "both"):
        sections.append(render_arden(af_to_er(automaton)))
    if args.method in ("elimination", "both"):
        sections.append(render_elimination(af_to_er_elimination(automaton)))
    for text in args.test or []:
        result = recognize_string(automaton, text)
        sections.append(f"Input {text!r}:\n" + render_recognition(result))
    return sections


def _run_ll1(args: argparse.Namespace, config: AnalysisConfig) -> list[str]:
    analysis = analyze_descendente(_grammar(args), config)
    sections = [render_ll1(analysis)]
    if args.input is not None:
        result = parse_string_ll(analysis.grammar, args.input, analysis.table, config)
        sections.append(render_parse(result))
    return sections


def _run_lr(args: argparse.Namespace, config: AnalysisConfig) -> list[str]:
    method = args.method or config.default_lr_method
    analysis = analyze_ascendente(_grammar(args), method, args.input, config)
    sections = [render_lr(analysis)]
    if analysis.parse is not None:
        sections.append(render_parse(analysis.parse))
    return sections


def _run_precedence(args: argparse.Namespace, config: AnalysisConfig) -> list[str]:
    analysis = analyze_precedence(_grammar(args), args.input, config)
    sections = [render_precedence(analysis)]
    if analysis.parse is not None:
        sections.append(render_parse(analysis.parse))
    return sections


_COMMANDS = {
    "regex": _run_regex,
    "automaton": _run_automaton,
    "ll1": _run_ll1,
    "lr": _run_lr,
    "precedence": _run_precedence,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="compiler-lab text reports")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    parser.add_argument("--max-iterations", type=int, default=1000)
    parser.add_argument("--max-parse-steps", type=int, default=10_000)
    sub = parser.add_subparsers(dest="command", required=True)

    regex = sub.add_parser("regex", help="regex -> NFA/DFA")
    regex.add_argument("regex")
    regex.add_argument("--method", default="subset", choices=["subset", "direct"])
    regex.add_argument(
        "--minimize", default="partition", choices=["none", "partition", "significant"]
    )
    regex.add_argument("--test", nargs="*", help="strings to run through the DFA")

    automaton = sub.add_parser("automaton", help="automaton JSON -> regex")
    automaton.add_argument("automaton", help="JSON file, or - for stdin")
    automaton.add_argument(
        "--method", default="arden", choices=["arden", "elimination", "both"]
    )
    automaton.add_argument("--test", nargs="*", help="strings to recognize")

    for name, help_text in (
        ("ll1", "LL(1) analysis"),
        ("lr", "LR table construction"),
        ("precedence", "operator-precedence analysis"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument("grammar", help="grammar file, or - for stdin")
        command.add_argument("--terminals", nargs="*", default=None)
        command.add_argument("--input", default=None, help="token string to parse")
        if name == "lr":
            command.add_argument("--method", default=None, choices=["lr0", "slr", "lr1", "lalr"])
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level), format="%(levelname)s: %(message)s"
    )
    config = AnalysisConfig(
        max_iterations=args.max_iterations, max_parse_steps=args.max_parse_steps
    )
    try:
        sections = _COMMANDS[args.command](args, config)
    except (CompilabError, ValueError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    print("\n\n".join(s.rstrip() for s in sections))
    return 0


if __name__ == "__main__":
    sys.exit(main())
