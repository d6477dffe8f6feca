"""Top-down (LL(1)) analysis.

Grammar transformations (left recursion, left factoring), the predictive
parsing table and the table-driven parser.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from compilab.config import DEFAULT_CONFIG, AnalysisConfig
from compilab.errors import ConvergenceError
from compilab.syntax.first_follow import FirstFollow, generate_first_follow_with_rules
from compilab.syntax.grammar import (
    END_MARKER,
    EPSILON,
    Grammar,
    ParseResult,
    ParseStep,
    Production,
    tokenize_input,
)

logger = logging.getLogger(__name__)

Rule = tuple[str, tuple[str, ...]]


def _prime(base: str, taken: set[str]) -> str:
    candidate = base + "'"
    while candidate in taken:
        candidate += "'"
    return candidate


def _body(right: tuple[str, ...]) -> str:
    return " ".join(right) if right else EPSILON


def _insert_after(order: list[str], anchor: str, symbol: str) -> None:
    """Place ``symbol`` after ``anchor`` and the primes already following it."""
    i = order.index(anchor) + 1
    while i < len(order) and order[i].startswith(anchor + "'"):
        i += 1
    order.insert(i, symbol)


# ---------------------------------------------------------------------------
# Left recursion
# ---------------------------------------------------------------------------


def _left_cyclic(rules: list[Rule], non_terminals: list[str]) -> set[str]:
    """Non-terminals that reach themselves through leftmost symbols."""
    corners: dict[str, set[str]] = {nt: set() for nt in non_terminals}
    for left, right in rules:
        if right and right[0] in corners:
            corners[left].add(right[0])
    cyclic = set()
    for nt in non_terminals:
        seen: set[str] = set()
        stack = list(corners[nt])
        while stack:
            current = stack.pop()
            if current == nt:
                cyclic.add(nt)
                break
            if current not in seen:
                seen.add(current)
                stack.extend(corners[current])
    return cyclic


def _eliminate_immediate(
    nt: str, rules: list[Rule], order: list[str], steps: list[str]
) -> list[Rule]:
    own = [r for r in rules if r[0] == nt]
    recursive = [right[1:] for _, right in own if right and right[0] == nt and len(right) > 1]
    if not any(right and right[0] == nt for _, right in own):
        return rules
    base = [right for _, right in own if not right or right[0] != nt]
    prime = _prime(nt, set(order))
    _insert_after(order, nt, prime)
    steps.append(f"Eliminate immediate left recursion of {nt}: new non-terminal {prime}")

    replacement: list[Rule] = []
    for right in base or [()]:
        replacement.append((nt, (*right, prime)))
    for alpha in recursive:
        replacement.append((prime, (*alpha, prime)))
    replacement.append((prime, ()))
    for left, right in replacement:
        steps.append(f"  {left} → {_body(right)}")

    result: list[Rule] = []
    inserted = False
    for rule in rules:
        if rule[0] != nt:
            result.append(rule)
        elif not inserted:
            result.extend(replacement)
            inserted = True
    return result


def eliminate_left_recursion(grammar: Grammar) -> tuple[Grammar, list[str]]:
    """Remove immediate and indirect left recursion.

    Non-terminals are processed in grammar order.  For a non-terminal that
    reaches itself through leftmost symbols, rules ``A → B γ`` whose ``B``
    was processed earlier are expanded with ``B``'s current bodies before
    the immediate recursion of ``A`` is removed::

        A → A α | β      ⟹      A → β A'      A' → α A' | ε

    Rules ``A → A`` are dropped.  Non-terminals outside any left cycle are
    left untouched.

    Returns:
        The transformed grammar and a readable step log.
    """
    rules: list[Rule] = [(p.left, p.right) for p in grammar.productions]
    order = list(grammar.non_terminals)
    steps: list[str] = []
    cyclic = _left_cyclic(rules, grammar.non_terminals)

    processed: list[str] = []
    for nt in grammar.non_terminals:
        if nt in cyclic:
            for earlier in processed:
                if earlier not in cyclic:
                    continue
                expanded: list[Rule] = []
                for left, right in rules:
                    if left == nt and right and right[0] == earlier:
                        bodies = [r for lhs, r in rules if lhs == earlier]
                        steps.append(
                            f"Substitute {earlier} in {left} → {_body(right)}: "
                            + " | ".join(_body((*b, *right[1:])) for b in bodies)
                        )
                        expanded.extend((left, (*b, *right[1:])) for b in bodies)
                    else:
                        expanded.append((left, right))
                rules = expanded
            rules = _eliminate_immediate(nt, rules, order, steps)
        processed.append(nt)

    result = Grammar.from_rules(rules, grammar.terminals, grammar.start_symbol, order)
    return result, steps


# ---------------------------------------------------------------------------
# Left factoring
# ---------------------------------------------------------------------------


def _common_prefix(bodies: list[tuple[str, ...]]) -> tuple[str, ...]:
    prefix = bodies[0]
    for body in bodies[1:]:
        n = 0
        while n < len(prefix) and n < len(body) and prefix[n] == body[n]:
            n += 1
        prefix = prefix[:n]
    return prefix


def left_factorize(
    grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG
) -> tuple[Grammar, list[str]]:
    """Factor out common prefixes of alternatives.

    ``A → α β1 | α β2 | γ`` becomes ``A → α A' | γ`` and ``A' → β1 | β2``,
    repeated until no two alternatives share a first symbol.

    Raises:
        ConvergenceError: If factoring does not settle within
            ``config.max_factoring_rounds`` rounds.
    """
    rules: list[Rule] = [(p.left, p.right) for p in grammar.productions]
    order = list(grammar.non_terminals)
    steps: list[str] = []

    for _ in range(config.max_factoring_rounds):
        changed = False
        next_rules: list[Rule] = []
        for nt in list(order):
            own = [right for left, right in rules if left == nt]
            groups: dict[str, list[tuple[str, ...]]] = {}
            for right in own:
                groups.setdefault(right[0] if right else EPSILON, []).append(right)
            for head, bodies in groups.items():
                if head == EPSILON or len(bodies) < 2:
                    next_rules.extend((nt, b) for b in bodies)
                    continue
                prefix = _common_prefix(bodies)
                prime = _prime(nt, set(order))
                _insert_after(order, nt, prime)
                changed = True
                steps.append(f"Factor {nt} on common prefix {' '.join(prefix)}:")
                next_rules.append((nt, (*prefix, prime)))
                steps.append(f"  {nt} → {' '.join((*prefix, prime))}")
                seen: set[tuple[str, ...]] = set()
                for body in bodies:
                    suffix = body[len(prefix) :]
                    if suffix in seen:
                        continue
                    seen.add(suffix)
                    next_rules.append((prime, suffix))
                    steps.append(f"  {prime} → {_body(suffix)}")
        rules = next_rules
        if not changed:
            result = Grammar.from_rules(rules, grammar.terminals, grammar.start_symbol, order)
            return result, steps
    raise ConvergenceError("left factoring", config.max_factoring_rounds)


def remove_duplicate_productions(grammar: Grammar) -> Grammar:
    seen: set[Production] = set()
    unique = []
    for p in grammar.productions:
        if p not in seen:
            seen.add(p)
            unique.append((p.left, p.right))
    return Grammar.from_rules(
        unique, grammar.terminals, grammar.start_symbol, grammar.non_terminals
    )


@dataclass
class GrammarTransformation:
    original: Grammar
    without_left_recursion: Grammar
    factorized: Grammar
    steps: list[str]


def transform_grammar(
    grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG
) -> GrammarTransformation:
    """Left-recursion elimination, then left factoring, then de-duplication."""
    grammar.validate()
    steps = ["Left recursion elimination"]
    no_recursion, recursion_steps = eliminate_left_recursion(grammar)
    steps += recursion_steps or ["No left recursion found."]
    steps.append("Left factoring")
    factored, factor_steps = left_factorize(no_recursion, config)
    steps += factor_steps or ["No left factoring needed."]
    final = remove_duplicate_productions(factored)
    logger.debug(
        "Grammar transformation: %d -> %d productions",
        len(grammar.productions),
        len(final.productions),
    )
    return GrammarTransformation(grammar, no_recursion, final, steps)


# ---------------------------------------------------------------------------
# Parsing table
# ---------------------------------------------------------------------------


@dataclass
class TableConflict:
    non_terminal: str
    terminal: str
    productions: list[Production]

    def __str__(self) -> str:
        return f"M[{self.non_terminal}, {self.terminal}]: " + " / ".join(
            str(p) for p in self.productions
        )


@dataclass
class ParsingTable:
    """Predictive table ``M[non_terminal][terminal] -> production``.

    Conflicting cells keep the production written last; every candidate is
    listed in ``conflicts``.
    """

    non_terminals: list[str]
    terminals: list[str]
    cells: dict[str, dict[str, Production]]
    conflicts: list[TableConflict] = field(default_factory=list)

    def get(self, non_terminal: str, terminal: str) -> Production | None:
        return self.cells.get(non_terminal, {}).get(terminal)


def build_parsing_table(
    grammar: Grammar,
    first_follow: FirstFollow | None = None,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> ParsingTable:
    """Fill ``M[A, a]`` for every production ``A → α``.

    ``a`` ranges over FIRST(α) and, when α is nullable, over FOLLOW(A).
    """
    if first_follow is None:
        first_follow = generate_first_follow_with_rules(grammar, config)
    cells: dict[str, dict[str, Production]] = {nt: {} for nt in grammar.non_terminals}
    candidates: dict[tuple[str, str], list[Production]] = {}
    for p in grammar.productions:
        first = first_follow.first_of(p.right)
        lookaheads = first - {EPSILON}
        if EPSILON in first:
            lookaheads |= first_follow.follow[p.left]
        for terminal in first_follow.ordered(lookaheads):
            seen = candidates.setdefault((p.left, terminal), [])
            if p not in seen:
                seen.append(p)
            cells[p.left][terminal] = p

    conflicts = [
        TableConflict(nt, t, prods) for (nt, t), prods in candidates.items() if len(prods) > 1
    ]
    for conflict in conflicts:
        logger.info("LL(1) conflict at %s", conflict)
    return ParsingTable(
        non_terminals=list(grammar.non_terminals),
        terminals=[*grammar.terminals, END_MARKER],
        cells=cells,
        conflicts=conflicts,
    )


@dataclass
class LL1Check:
    is_ll1: bool
    conflicts: list[str]


def is_ll1(grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG) -> LL1Check:
    table = build_parsing_table(grammar, config=config)
    return LL1Check(not table.conflicts, [str(c) for c in table.conflicts])


# ---------------------------------------------------------------------------
# Predictive parser
# ---------------------------------------------------------------------------


def parse_string_ll(
    grammar: Grammar,
    input_string: str,
    table: ParsingTable | None = None,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> ParseResult:
    """Table-driven predictive parse of whitespace-separated tokens.

    The stack starts as ``[$, S]``.  A terminal on top must match the
    lookahead; a non-terminal is replaced by the body of ``M[top, lookahead]``.
    """
    if table is None:
        table = build_parsing_table(grammar, config=config)
    stack = [END_MARKER, grammar.start_symbol]
    tokens = tokenize_input(input_string)
    output: list[str] = []
    steps = [ParseStep(0, list(stack), list(tokens), "Start")]

    def step(action: str) -> None:
        steps.append(ParseStep(len(steps), list(stack), list(tokens), action, "\n".join(output)))

    def reject(error: str) -> ParseResult:
        step(f"Error: {error}")
        return ParseResult(False, steps, error, output)

    while len(steps) <= config.max_parse_steps:
        top, lookahead = stack[-1], tokens[0]
        if top == END_MARKER:
            if lookahead == END_MARKER:
                step("Accept")
                return ParseResult(True, steps, None, output)
            return reject(f"input not fully consumed, found '{lookahead}'")
        if not grammar.is_non_terminal(top):
            if top != lookahead:
                return reject(f"expected '{top}', found '{lookahead}'")
            stack.pop()
            tokens.pop(0)
            step(f"Match {top}")
            continue
        production = table.get(top, lookahead)
        if production is None:
            return reject(f"no production M[{top}, {lookahead}]")
        stack.pop()
        stack.extend(reversed(production.right))
        output.append(str(production))
        step(f"Apply {production}")
    return reject(f"step limit of {config.max_parse_steps} reached")


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------


@dataclass
class LLAnalysis:
    transformation: GrammarTransformation
    first_follow: FirstFollow
    table: ParsingTable
    is_ll1: bool
    conflicts: list[str]

    @property
    def grammar(self) -> Grammar:
        return self.transformation.factorized


def analyze_descendente(
    grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG
) -> LLAnalysis:
    """Transform the grammar, then compute FIRST/FOLLOW and the LL(1) table."""
    transformation = transform_grammar(grammar, config)
    transformed = transformation.factorized
    first_follow = generate_first_follow_with_rules(transformed, config)
    table = build_parsing_table(transformed, first_follow, config)
    conflicts = [str(c) for c in table.conflicts]
    return LLAnalysis(transformation, first_follow, table, not conflicts, conflicts)
