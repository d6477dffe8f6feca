"""Operator-precedence analysis.

Relations between terminals ``a`` and ``b``:

* ``a = b`` when they appear in one body separated by at most one non-terminal;
* ``a < b`` when ``a`` is followed by a non-terminal ``B`` and ``b ∈ LEADING(B)``;
* ``a > b`` when a non-terminal ``A`` followed by ``b`` has ``a ∈ TRAILING(A)``.

``$ < LEADING(S)`` and ``TRAILING(S) > $`` close the table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from compilab.config import DEFAULT_CONFIG, AnalysisConfig
from compilab.errors import ConvergenceError
from compilab.syntax.grammar import (
    END_MARKER,
    Grammar,
    ParseResult,
    ParseStep,
    Production,
    tokenize_input,
)

logger = logging.getLogger(__name__)

LESS = "<"
EQUAL = "="
GREATER = ">"
NO_RELATION = "·"


def is_operator_grammar(grammar: Grammar) -> tuple[bool, list[str]]:
    """An operator grammar has no ε-productions and no adjacent non-terminals."""
    reasons: list[str] = []
    for p in grammar.productions:
        if p.is_epsilon:
            reasons.append(f"'{p}' is an ε-production")
            continue
        for left, right in zip(p.right, p.right[1:]):
            if grammar.is_non_terminal(left) and grammar.is_non_terminal(right):
                reasons.append(f"'{p}' has adjacent non-terminals {left} {right}")
                break
    return not reasons, reasons


# ---------------------------------------------------------------------------
# LEADING / TRAILING
# ---------------------------------------------------------------------------


def _edge_terminals(
    grammar: Grammar, config: AnalysisConfig, *, reverse: bool, name: str
) -> dict[str, set[str]]:
    sets: dict[str, set[str]] = {nt: set() for nt in grammar.non_terminals}
    for _ in range(config.max_iterations):
        changed = False
        for p in grammar.productions:
            body = p.right[::-1] if reverse else p.right
            before = len(sets[p.left])
            if body and grammar.is_non_terminal(body[0]):
                sets[p.left] |= sets[body[0]]
                if len(body) > 1 and not grammar.is_non_terminal(body[1]):
                    sets[p.left].add(body[1])
            elif body:
                sets[p.left].add(body[0])
            changed |= len(sets[p.left]) != before
        if not changed:
            return sets
    raise ConvergenceError(name, config.max_iterations)


def compute_leading(
    grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG
) -> dict[str, set[str]]:
    """Terminals that can be the first terminal of a string derived from ``A``."""
    return _edge_terminals(grammar, config, reverse=False, name="LEADING computation")


def compute_trailing(
    grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG
) -> dict[str, set[str]]:
    """Terminals that can be the last terminal of a string derived from ``A``."""
    return _edge_terminals(grammar, config, reverse=True, name="TRAILING computation")


# ---------------------------------------------------------------------------
# Relations
# ---------------------------------------------------------------------------


@dataclass
class PrecedenceStep:
    """Relations contributed by one production (or by the end marker)."""

    production: str
    relations: list[tuple[str, str, str]]
    explanation: list[str]


def _ordered(symbols: set[str], grammar: Grammar) -> list[str]:
    rank = {t: i for i, t in enumerate(grammar.terminals)}
    return sorted(symbols, key=lambda s: (rank.get(s, len(rank)), s))


def calculate_precedence_steps(
    grammar: Grammar,
    leading: dict[str, set[str]],
    trailing: dict[str, set[str]],
) -> list[PrecedenceStep]:
    steps = []
    for p in grammar.productions:
        relations: list[tuple[str, str, str]] = []
        notes: list[str] = []
        body = p.right
        for i, symbol in enumerate(body):
            nxt = body[i + 1] if i + 1 < len(body) else None
            if grammar.is_non_terminal(symbol):
                if nxt is not None and not grammar.is_non_terminal(nxt):
                    for a in _ordered(trailing[symbol], grammar):
                        relations.append((a, GREATER, nxt))
                    notes.append(f"TRAILING({symbol}) > {nxt}")
                continue
            if nxt is None:
                continue
            if not grammar.is_non_terminal(nxt):
                relations.append((symbol, EQUAL, nxt))
                notes.append(f"{symbol} = {nxt} (adjacent)")
                continue
            for b in _ordered(leading[nxt], grammar):
                relations.append((symbol, LESS, b))
            notes.append(f"{symbol} < LEADING({nxt})")
            after = body[i + 2] if i + 2 < len(body) else None
            if after is not None and not grammar.is_non_terminal(after):
                relations.append((symbol, EQUAL, after))
                notes.append(f"{symbol} = {after} (separated by {nxt})")
        if relations:
            steps.append(PrecedenceStep(str(p), relations, notes))

    start = grammar.start_symbol
    end_relations = [(END_MARKER, LESS, b) for b in _ordered(leading[start], grammar)]
    end_relations += [(a, GREATER, END_MARKER) for a in _ordered(trailing[start], grammar)]
    steps.append(
        PrecedenceStep(
            "end marker",
            end_relations,
            [f"{END_MARKER} < LEADING({start})", f"TRAILING({start}) > {END_MARKER}"],
        )
    )
    return steps


@dataclass
class PrecedenceConflict:
    left: str
    right: str
    relations: list[str]

    def __str__(self) -> str:
        return f"'{self.left}' and '{self.right}': {' and '.join(self.relations)}"


@dataclass
class PrecedenceTable:
    """Relation matrix over the terminals plus ``$``.

    A conflicting cell keeps its first relation; all of them are listed in
    ``conflicts``.
    """

    grammar: Grammar
    terminals: list[str]
    relations: dict[str, dict[str, str]]
    leading: dict[str, set[str]]
    trailing: dict[str, set[str]]
    steps: list[PrecedenceStep] = field(default_factory=list)
    conflicts: list[PrecedenceConflict] = field(default_factory=list)
    is_operator_grammar: bool = True
    operator_errors: list[str] = field(default_factory=list)

    def relation(self, left: str, right: str) -> str:
        return self.relations.get(left, {}).get(right, NO_RELATION)


def build_precedence_table(
    grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG
) -> PrecedenceTable:
    """LEADING/TRAILING, per-production steps and the relation matrix.

    A grammar that is not an operator grammar still gets a table; the
    reasons are reported in ``operator_errors``.
    """
    grammar.validate()
    operator, reasons = is_operator_grammar(grammar)
    leading = compute_leading(grammar, config)
    trailing = compute_trailing(grammar, config)
    steps = calculate_precedence_steps(grammar, leading, trailing)

    terminals = [*grammar.terminals, END_MARKER]
    relations: dict[str, dict[str, str]] = {t: {} for t in terminals}
    seen: dict[tuple[str, str], list[str]] = {}
    for step in steps:
        for a, rel, b in step.relations:
            found = seen.setdefault((a, b), [])
            if rel not in found:
                found.append(rel)
            relations[a].setdefault(b, rel)
    conflicts = [PrecedenceConflict(a, b, rels) for (a, b), rels in seen.items() if len(rels) > 1]
    for conflict in conflicts:
        logger.info("Precedence conflict between %s", conflict)
    logger.debug("Precedence table: %d terminals, %d conflicts", len(terminals), len(conflicts))
    return PrecedenceTable(
        grammar, terminals, relations, leading, trailing, steps, conflicts, operator, reasons
    )


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _match_handle(grammar: Grammar, handle: list[str]) -> Production | None:
    """First production whose body equals ``handle`` up to non-terminal names."""
    for p in grammar.productions:
        if len(p.right) != len(handle):
            continue
        if all(
            a == b or (grammar.is_non_terminal(a) and grammar.is_non_terminal(b))
            for a, b in zip(p.right, handle)
        ):
            return p
    return None


def parse_string_precedence(
    table: PrecedenceTable, input_string: str, config: AnalysisConfig = DEFAULT_CONFIG
) -> ParseResult:
    """Shift on ``<`` or ``=``, reduce on ``>``.

    The relation is taken between the topmost terminal of the stack and the
    lookahead.  A reduction pops back to the first terminal related by ``<``
    to the last popped terminal and matches the popped handle against the
    production bodies, treating all non-terminals as equal.  The input is
    accepted when only ``$`` and one non-terminal remain on the stack and
    the input is exhausted.
    """
    grammar = table.grammar
    stack = [END_MARKER]
    tokens = tokenize_input(input_string)
    output: list[str] = []
    steps = [ParseStep(0, list(stack), list(tokens), "Start")]

    def step(action: str) -> None:
        steps.append(ParseStep(len(steps), list(stack), list(tokens), action, "\n".join(output)))

    def reject(error: str) -> ParseResult:
        step(f"Error: {error}")
        return ParseResult(False, steps, error, output)

    def top_terminal() -> str:
        return next(s for s in reversed(stack) if not grammar.is_non_terminal(s))

    while len(steps) <= config.max_parse_steps:
        a, b = top_terminal(), tokens[0]
        if a == END_MARKER and b == END_MARKER:
            if len(stack) == 2 and grammar.is_non_terminal(stack[1]):
                step("Accept")
                return ParseResult(True, steps, None, output)
            return reject("input does not reduce to a single non-terminal")
        if not grammar.is_terminal(b):
            return reject(f"unknown symbol '{b}'")
        relation = table.relation(a, b)
        if relation in (LESS, EQUAL):
            stack.append(tokens.pop(0))
            step(f"Shift {b} ({a} {relation} {b})")
            continue
        if relation != GREATER:
            return reject(f"no precedence relation between '{a}' and '{b}'")

        handle: list[str] = []
        last: str | None = None
        while len(stack) > 1:
            symbol = stack.pop()
            handle.insert(0, symbol)
            if not grammar.is_non_terminal(symbol):
                last = symbol
            below = stack[-1]
            if last is not None and not grammar.is_non_terminal(below):
                if below == END_MARKER or table.relation(below, last) == LESS:
                    break
        production = _match_handle(grammar, handle)
        if production is None:
            return reject(f"no production matches handle {' '.join(handle)}")
        stack.append(production.left)
        output.append(str(production))
        step(f"Reduce {production} ({a} > {b})")
    return reject(f"step limit of {config.max_parse_steps} reached")


def format_precedence_table(table: PrecedenceTable) -> str:
    width = max(len(t) for t in table.terminals) + 2
    lines = ["".ljust(width) + "".join(t.ljust(width) for t in table.terminals)]
    for a in table.terminals:
        cells = "".join(table.relation(a, b).ljust(width) for b in table.terminals)
        lines.append(a.ljust(width) + cells)
    return "\n".join(line.rstrip() for line in lines)


@dataclass
class PrecedenceAnalysis:
    table: PrecedenceTable
    parse: ParseResult | None = None


def analyze_precedence(
    grammar: Grammar,
    input_string: str | None = None,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> PrecedenceAnalysis:
    table = build_precedence_table(grammar, config)
    parse = (
        parse_string_precedence(table, input_string, config)
        if input_string is not None
        else None
    )
    return PrecedenceAnalysis(table, parse)
