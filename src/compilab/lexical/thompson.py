"""Regex to ε-NFA (Thompson construction).

Each syntax-tree node becomes a fragment with one start and one accept
state.  Concatenation fuses the left accept state with the right start
state instead of linking them with an ε-edge.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import assert_never

from compilab.lexical.automaton import EPSILON, Automaton, AutomatonKind, State, Transition
from compilab.lexical.regex_parser import NodeKind, TreeNode, build_syntax_tree

logger = logging.getLogger(__name__)


class StateCounter:
    """Hands out fresh state ids for one construction."""

    def __init__(self, prefix: str = "s") -> None:
        self._prefix = prefix
        self._next = 0

    def __call__(self) -> str:
        state_id = f"{self._prefix}{self._next}"
        self._next += 1
        return state_id

    @property
    def issued(self) -> int:
        return self._next


@dataclass
class Fragment:
    """Partial NFA: ``states`` in construction order, one start, one accept."""

    start: str
    accept: str
    states: list[str]
    transitions: list[Transition]


# ---------------------------------------------------------------------------
# Fragment builders
# ---------------------------------------------------------------------------


def _atom(counter: StateCounter, symbol: str) -> Fragment:
    start, accept = counter(), counter()
    return Fragment(start, accept, [start, accept], [Transition(start, accept, symbol)])


def _union(counter: StateCounter, a: Fragment, b: Fragment) -> Fragment:
    start, accept = counter(), counter()
    transitions = [
        Transition(start, a.start, EPSILON),
        Transition(start, b.start, EPSILON),
        *a.transitions,
        *b.transitions,
        Transition(a.accept, accept, EPSILON),
        Transition(b.accept, accept, EPSILON),
    ]
    return Fragment(start, accept, [start, *a.states, *b.states, accept], transitions)


def _concat(a: Fragment, b: Fragment) -> Fragment:
    merged, removed = a.accept, b.start

    def rewrite(state_id: str) -> str:
        return merged if state_id == removed else state_id

    transitions = [
        *a.transitions,
        *(Transition(rewrite(t.source), rewrite(t.target), t.symbol) for t in b.transitions),
    ]
    states = [*a.states, *(s for s in b.states if s != removed)]
    return Fragment(a.start, b.accept, states, transitions)


def _repeat(
    counter: StateCounter, inner: Fragment, *, skip: bool, loop: bool
) -> Fragment:
    """Wrap ``inner`` with new start/accept states.

    ``skip`` adds start -> accept (zero occurrences); ``loop`` adds
    inner.accept -> inner.start (more than one occurrence).
    """
    start, accept = counter(), counter()
    transitions = [Transition(start, inner.start, EPSILON)]
    if skip:
        transitions.append(Transition(start, accept, EPSILON))
    transitions.extend(inner.transitions)
    if loop:
        transitions.append(Transition(inner.accept, inner.start, EPSILON))
    transitions.append(Transition(inner.accept, accept, EPSILON))
    return Fragment(start, accept, [start, *inner.states, accept], transitions)


def build_fragment(node: TreeNode, counter: StateCounter) -> Fragment:
    """Recursively build the fragment for a syntax-tree node."""
    kind = node.kind
    if kind is NodeKind.SYMBOL:
        assert node.symbol is not None
        return _atom(counter, node.symbol)
    elif kind is NodeKind.EPSILON:
        return _atom(counter, EPSILON)
    elif kind is NodeKind.EMPTY:
        start, accept = counter(), counter()
        return Fragment(start, accept, [start, accept], [])
    elif kind is NodeKind.UNION:
        left, right = node.children
        return _union(counter, build_fragment(left, counter), build_fragment(right, counter))
    elif kind is NodeKind.CONCAT:
        left, right = node.children
        return _concat(build_fragment(left, counter), build_fragment(right, counter))
    elif kind is NodeKind.STAR:
        return _repeat(counter, build_fragment(node.children[0], counter), skip=True, loop=True)
    elif kind is NodeKind.PLUS:
        return _repeat(counter, build_fragment(node.children[0], counter), skip=False, loop=True)
    elif kind is NodeKind.OPTIONAL:
        return _repeat(counter, build_fragment(node.children[0], counter), skip=True, loop=False)
    else:
        assert_never(kind)


def fragment_to_automaton(fragment: Fragment, alphabet: list[str], name: str = "") -> Automaton:
    """Renumber a finished fragment to ``q0..qn`` in construction order."""
    rename = {old: f"q{i}" for i, old in enumerate(fragment.states)}
    states = [
        State(
            rename[old],
            rename[old],
            is_initial=old == fragment.start,
            is_final=old == fragment.accept,
        )
        for old in fragment.states
    ]
    transitions = [
        Transition(rename[t.source], rename[t.target], t.symbol) for t in fragment.transitions
    ]
    return Automaton(
        states=states,
        transitions=transitions,
        alphabet=list(alphabet),
        kind=AutomatonKind.NFA,
        name=name,
    )


def er_to_afn(regex: str) -> Automaton:
    """Build the Thompson ε-NFA of a regex.

    Args:
        regex: Regular expression text.

    Returns:
        An NFA with states ``q0..qn``, one initial and one final state.

    Raises:
        RegexValidationError: If the regex is malformed.
    """
    tree = build_syntax_tree(regex)
    counter = StateCounter()
    fragment = build_fragment(tree.root, counter)
    nfa = fragment_to_automaton(fragment, tree.alphabet, name=f"Thompson NFA for {regex}")
    logger.debug(
        "Thompson NFA for %r: %d states, %d transitions (%d ids issued)",
        regex,
        len(nfa.states),
        len(nfa.transitions),
        counter.issued,
    )
    return nfa
