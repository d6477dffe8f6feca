"""FIRST and FOLLOW sets with rule citations.

FIRST rules:

1. ``X → a…`` with ``a`` terminal: ``a ∈ FIRST(X)``.
2. ``X → ε``, or every body symbol nullable: ``ε ∈ FIRST(X)``.
3. ``X → Y1…Yk``: ``FIRST(Yi) \\ {ε} ⊆ FIRST(X)`` while ``Y1…Yi-1`` are nullable.

FOLLOW rules:

1. ``$ ∈ FOLLOW(S)`` for the start symbol ``S``.
2. ``A → αBβ``: ``FIRST(β) \\ {ε} ⊆ FOLLOW(B)``.
3. ``A → αB`` or ``A → αBβ`` with ``β`` nullable: ``FOLLOW(A) ⊆ FOLLOW(B)``.

A citation is recorded each time a rule adds at least one new symbol, so
the citations of a set replay its construction.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from compilab.config import DEFAULT_CONFIG, AnalysisConfig
from compilab.errors import ConvergenceError
from compilab.syntax.grammar import END_MARKER, EPSILON, Grammar

logger = logging.getLogger(__name__)


@dataclass
class RuleCitation:
    """One contribution to a FIRST or FOLLOW set."""

    non_terminal: str
    rule: int
    production: str
    values: list[str]
    explanation: str


@dataclass
class FirstFollow:
    """FIRST/FOLLOW sets of a grammar's non-terminals.

    Attributes:
        first: non-terminal -> FIRST set (may contain ``ε``).
        follow: non-terminal -> FOLLOW set (may contain ``$``).
        first_rules: Citations in the order they fired.
        follow_rules: Citations in the order they fired.
    """

    grammar: Grammar
    first: dict[str, set[str]]
    follow: dict[str, set[str]]
    first_rules: list[RuleCitation] = field(default_factory=list)
    follow_rules: list[RuleCitation] = field(default_factory=list)

    def first_of(self, symbols: Sequence[str]) -> set[str]:
        return first_of_sequence(symbols, self.first, self.grammar)

    def ordered(self, symbols: set[str]) -> list[str]:
        """Grammar terminal order, then ``$``, then ``ε``."""
        rank = {t: i for i, t in enumerate([*self.grammar.terminals, END_MARKER, EPSILON])}
        return sorted(symbols, key=lambda s: (rank.get(s, len(rank)), s))

    def rules_for(self, non_terminal: str) -> tuple[list[RuleCitation], list[RuleCitation]]:
        return (
            [r for r in self.first_rules if r.non_terminal == non_terminal],
            [r for r in self.follow_rules if r.non_terminal == non_terminal],
        )


def first_of_sequence(
    symbols: Sequence[str], first: dict[str, set[str]], grammar: Grammar
) -> set[str]:
    """FIRST of a symbol string; contains ``ε`` iff every symbol is nullable."""
    result: set[str] = set()
    for symbol in symbols:
        if not grammar.is_non_terminal(symbol):
            result.add(symbol)
            return result
        result |= first[symbol] - {EPSILON}
        if EPSILON not in first[symbol]:
            return result
    result.add(EPSILON)
    return result


def _compute_first(
    grammar: Grammar, config: AnalysisConfig, citations: list[RuleCitation]
) -> dict[str, set[str]]:
    first: dict[str, set[str]] = {nt: set() for nt in grammar.non_terminals}

    def add(nt: str, values: set[str], rule: int, production: str, explanation: str) -> bool:
        new = values - first[nt]
        if not new:
            return False
        first[nt] |= new
        ordered = sorted(new, key=lambda s: (s == EPSILON, s))
        citations.append(RuleCitation(nt, rule, production, ordered, explanation))
        return True

    for _ in range(config.max_iterations):
        changed = False
        for p in grammar.productions:
            nullable_prefix = True
            for symbol in p.right:
                if not grammar.is_non_terminal(symbol):
                    changed |= add(
                        p.left,
                        {symbol},
                        1,
                        str(p),
                        f"Rule 1: {symbol} is a terminal, add it to FIRST({p.left})",
                    )
                    nullable_prefix = False
                    break
                changed |= add(
                    p.left,
                    first[symbol] - {EPSILON},
                    3,
                    str(p),
                    f"Rule 3: add FIRST({symbol}) without ε to FIRST({p.left})",
                )
                if EPSILON not in first[symbol]:
                    nullable_prefix = False
                    break
            if nullable_prefix:
                reason = (
                    f"Rule 2: {p.left} → ε, add ε to FIRST({p.left})"
                    if p.is_epsilon
                    else f"Rule 2: every symbol of {p.body()} derives ε, add ε to FIRST({p.left})"
                )
                changed |= add(p.left, {EPSILON}, 2, str(p), reason)
        if not changed:
            return first
    raise ConvergenceError("FIRST computation", config.max_iterations)


def _compute_follow(
    grammar: Grammar,
    first: dict[str, set[str]],
    config: AnalysisConfig,
    citations: list[RuleCitation],
) -> dict[str, set[str]]:
    follow: dict[str, set[str]] = {nt: set() for nt in grammar.non_terminals}

    def add(nt: str, values: set[str], rule: int, production: str, explanation: str) -> bool:
        new = values - follow[nt]
        if not new:
            return False
        follow[nt] |= new
        citations.append(RuleCitation(nt, rule, production, sorted(new), explanation))
        return True

    add(
        grammar.start_symbol,
        {END_MARKER},
        1,
        "start symbol",
        f"Rule 1: add {END_MARKER} to FOLLOW of the start symbol {grammar.start_symbol}",
    )
    for _ in range(config.max_iterations):
        changed = False
        for p in grammar.productions:
            for i, symbol in enumerate(p.right):
                if not grammar.is_non_terminal(symbol):
                    continue
                beta = p.right[i + 1 :]
                beta_first = first_of_sequence(beta, first, grammar)
                if beta:
                    changed |= add(
                        symbol,
                        beta_first - {EPSILON},
                        2,
                        str(p),
                        f"Rule 2: add FIRST({' '.join(beta)}) without ε to FOLLOW({symbol})",
                    )
                if EPSILON in beta_first and p.left != symbol:
                    reason = (
                        f"Rule 3: {symbol} ends the body, add FOLLOW({p.left}) to FOLLOW({symbol})"
                        if not beta
                        else f"Rule 3: {' '.join(beta)} derives ε, "
                        f"add FOLLOW({p.left}) to FOLLOW({symbol})"
                    )
                    changed |= add(symbol, set(follow[p.left]), 3, str(p), reason)
        if not changed:
            return follow
    raise ConvergenceError("FOLLOW computation", config.max_iterations)


def compute_first(grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG) -> dict[str, set[str]]:
    return _compute_first(grammar, config, [])


def compute_follow(
    grammar: Grammar,
    first: dict[str, set[str]] | None = None,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> dict[str, set[str]]:
    if first is None:
        first = compute_first(grammar, config)
    return _compute_follow(grammar, first, config, [])


def generate_first_follow_with_rules(
    grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG
) -> FirstFollow:
    """Compute FIRST and FOLLOW by fixed-point iteration, citing each contribution.

    Args:
        grammar: A valid grammar.
        config: Supplies the iteration cap.

    Returns:
        The sets together with the rule citations.

    Raises:
        GrammarValidationError: If the grammar is invalid.
        ConvergenceError: If either fixed point exceeds the iteration cap.
    """
    grammar.validate()
    first_rules: list[RuleCitation] = []
    follow_rules: list[RuleCitation] = []
    first = _compute_first(grammar, config, first_rules)
    follow = _compute_follow(grammar, first, config, follow_rules)
    logger.debug(
        "FIRST/FOLLOW: %d FIRST citations, %d FOLLOW citations",
        len(first_rules),
        len(follow_rules),
    )
    return FirstFollow(grammar, first, follow, first_rules, follow_rules)


def generate_first_follow(grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG) -> FirstFollow:
    """FIRST/FOLLOW sets without keeping the citations."""
    result = generate_first_follow_with_rules(grammar, config)
    result.first_rules.clear()
    result.follow_rules.clear()
    return result
