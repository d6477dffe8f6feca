"""NFA to DFA conversion.

Two builders produce language-equivalent DFAs:

- ``afn_to_afd``: subset construction over ε-closures of an NFA.
- ``er_to_afd``: the direct method on the augmented syntax tree ``(r)#``,
  where DFA states are sets of positions and the next state on ``a`` is the
  union of ``followpos(p)`` over positions ``p`` labelled ``a``.
"""

from __future__ import annotations

import logging
import string
from collections.abc import Iterable
from dataclasses import dataclass

from compilab.lexical.automaton import (
    EPSILON,
    Automaton,
    AutomatonKind,
    State,
    SubsetState,
    Transition,
)
from compilab.lexical.minimize import optimize_by_significant_states
from compilab.lexical.regex_parser import SyntaxTree, build_syntax_tree
from compilab.lexical.thompson import er_to_afn

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ε-closure and move
# ---------------------------------------------------------------------------


def epsilon_closure(states: Iterable[str], automaton: Automaton) -> set[str]:
    """All states reachable from ``states`` using only ε-edges."""
    epsilon_edges: dict[str, list[str]] = {}
    for t in automaton.transitions:
        if t.is_epsilon:
            epsilon_edges.setdefault(t.source, []).append(t.target)
    closure = set(states)
    stack = list(closure)
    while stack:
        state = stack.pop()
        for target in epsilon_edges.get(state, []):
            if target not in closure:
                closure.add(target)
                stack.append(target)
    return closure


def move(states: Iterable[str], symbol: str, automaton: Automaton) -> set[str]:
    """States reachable from ``states`` by exactly one ``symbol`` edge."""
    sources = set(states)
    return {t.target for t in automaton.transitions if t.source in sources and t.symbol == symbol}


def letter_label(index: int) -> str:
    """``A``..``Z`` for the first 26 states, ``q26``, ``q27``... afterwards."""
    if index < len(string.ascii_uppercase):
        return string.ascii_uppercase[index]
    return f"q{index}"


# ---------------------------------------------------------------------------
# Subset construction
# ---------------------------------------------------------------------------


def afn_to_afd(nfa: Automaton) -> Automaton:
    """Convert an NFA (with or without ε-edges) into a DFA.

    Each DFA state is keyed by its NFA subset, ordered as the NFA lists its
    states and comma-joined (``{q0,q1,q3}``).  Labels are ``A``, ``B``, ...
    in discovery order.  The empty subset is never materialized, so the
    result may be partial.

    Raises:
        AutomatonValidationError: If the NFA breaks a structural invariant.
    """
    nfa.validate()
    initial = nfa.initial_state
    assert initial is not None
    order = {sid: i for i, sid in enumerate(nfa.state_ids)}
    finals = nfa.final_ids

    def key_of(subset: set[str]) -> str:
        return "{" + ",".join(sorted(subset, key=order.__getitem__)) + "}"

    start = epsilon_closure({initial.id}, nfa)
    subsets: dict[str, set[str]] = {key_of(start): start}
    labels: dict[str, str] = {key_of(start): letter_label(0)}
    worklist = [key_of(start)]
    transitions: list[Transition] = []

    while worklist:
        current = worklist.pop(0)
        for symbol in nfa.alphabet:
            target = epsilon_closure(move(subsets[current], symbol, nfa), nfa)
            if not target:
                continue
            target_key = key_of(target)
            if target_key not in subsets:
                subsets[target_key] = target
                labels[target_key] = letter_label(len(labels))
                worklist.append(target_key)
            transitions.append(Transition(current, target_key, symbol))

    initial_key = key_of(start)
    states = [
        State(key, labels[key], is_initial=key == initial_key, is_final=bool(subset & finals))
        for key, subset in subsets.items()
    ]
    subset_states = [
        SubsetState(key, labels[key], sorted(subset, key=order.__getitem__))
        for key, subset in subsets.items()
    ]
    logger.debug(
        "Subset construction: %d NFA states -> %d DFA states", len(nfa.states), len(states)
    )
    return Automaton(
        states=states,
        transitions=transitions,
        alphabet=[s for s in nfa.alphabet if s != EPSILON],
        kind=AutomatonKind.DFA,
        name=f"DFA of {nfa.name}" if nfa.name else "DFA",
        subset_states=subset_states,
    )


# ---------------------------------------------------------------------------
# Direct construction
# ---------------------------------------------------------------------------


def afd_from_syntax_tree(tree: SyntaxTree, name: str = "") -> Automaton:
    """Direct DFA construction from an augmented syntax tree."""
    if tree.end_position is None:
        raise ValueError("The direct construction needs an augmented syntax tree")

    def key_of(positions: Iterable[int]) -> str:
        return "{" + ",".join(str(p) for p in sorted(positions)) + "}"

    start = frozenset(tree.firstpos)
    sets: dict[str, frozenset[int]] = {key_of(start): start}
    labels: dict[str, str] = {key_of(start): "q0"}
    worklist = [key_of(start)]
    transitions: list[Transition] = []

    while worklist:
        current = worklist.pop(0)
        for symbol in tree.alphabet:
            target: set[int] = set()
            for p in sets[current]:
                if p != tree.end_position and tree.symbols[p] == symbol:
                    target |= tree.followpos[p]
            if not target:
                continue
            target_key = key_of(target)
            if target_key not in sets:
                sets[target_key] = frozenset(target)
                labels[target_key] = f"q{len(labels)}"
                worklist.append(target_key)
            transitions.append(Transition(current, target_key, symbol))

    initial_key = key_of(start)
    states = [
        State(
            key,
            labels[key],
            is_initial=key == initial_key,
            is_final=tree.end_position in positions,
        )
        for key, positions in sets.items()
    ]
    return Automaton(
        states=states,
        transitions=transitions,
        alphabet=list(tree.alphabet),
        kind=AutomatonKind.DFA,
        name=name,
    )


def er_to_afd(regex: str) -> Automaton:
    """Build a DFA directly from a regex through followpos.

    Raises:
        RegexValidationError: If the regex is malformed.
    """
    tree = build_syntax_tree(regex, augment=True)
    dfa = afd_from_syntax_tree(tree, name=f"Direct DFA for {regex}")
    logger.debug("Direct DFA for %r: %d states", regex, len(dfa.states))
    return dfa


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------


@dataclass
class FullConstruction:
    """Regex -> NFA -> DFA -> DFA merged by significant states."""

    nfa: Automaton
    dfa: Automaton
    optimized: Automaton


@dataclass
class DirectConstruction:
    """Regex -> augmented syntax tree -> DFA."""

    tree: SyntaxTree
    dfa: Automaton


def build_afd_full(regex: str) -> FullConstruction:
    nfa = er_to_afn(regex)
    dfa = afn_to_afd(nfa)
    return FullConstruction(nfa=nfa, dfa=dfa, optimized=optimize_by_significant_states(dfa, nfa))


def build_afd_short(regex: str) -> DirectConstruction:
    tree = build_syntax_tree(regex, augment=True)
    dfa = afd_from_syntax_tree(tree, name=f"Direct DFA for {regex}")
    return DirectConstruction(tree=tree, dfa=dfa)
