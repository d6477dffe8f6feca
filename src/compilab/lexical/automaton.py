"""Finite automaton data model.

A single ``Automaton`` type covers NFAs, ε-NFAs and DFAs.  States are
identified by ``id``; ``label`` is what gets displayed (subset construction,
for instance, keys states by their NFA subset but labels them ``A``, ``B``...).
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from compilab.errors import AutomatonValidationError

EPSILON = "ε"


class AutomatonKind(Enum):
    """Discriminant for the automaton family."""

    NFA = "NFA"
    EPSILON_NFA = "ε-NFA"
    DFA = "DFA"


@dataclass
class State:
    """A state of a finite automaton.

    Attributes:
        id: Unique identifier.
        label: Display label (defaults to the id).
        is_initial: Whether this is the initial state.
        is_final: Whether this is an accepting state.
        position: Optional layout hint for renderers.
    """

    id: str
    label: str = ""
    is_initial: bool = False
    is_final: bool = False
    position: tuple[float, float] | None = None

    def __post_init__(self) -> None:
        if not self.label:
            self.label = self.id


@dataclass(frozen=True)
class Transition:
    """Edge ``source --symbol--> target``.  ``symbol == EPSILON`` consumes nothing."""

    source: str
    target: str
    symbol: str

    @property
    def id(self) -> str:
        return f"{self.source}-{self.symbol}-{self.target}"

    @property
    def is_epsilon(self) -> bool:
        return self.symbol == EPSILON


@dataclass
class SubsetState:
    """The NFA states behind one DFA state produced by subset construction."""

    id: str
    label: str
    nfa_states: list[str]


@dataclass
class Automaton:
    """A finite automaton.

    Attributes:
        states: States in insertion order.
        transitions: Transitions in insertion order.
        alphabet: Input symbols (never contains ``EPSILON``).
        kind: NFA, ε-NFA or DFA.
        name: Free-form description.
        subset_states: For DFAs built by subset construction, the NFA states
            behind each DFA state.
    """

    states: list[State]
    transitions: list[Transition]
    alphabet: list[str]
    kind: AutomatonKind = AutomatonKind.NFA
    name: str = ""
    subset_states: list[SubsetState] = field(default_factory=list)

    # -- lookups -------------------------------------------------------------

    def state(self, state_id: str) -> State:
        for s in self.states:
            if s.id == state_id:
                return s
        raise KeyError(state_id)

    @property
    def initial_state(self) -> State | None:
        for s in self.states:
            if s.is_initial:
                return s
        return None

    @property
    def final_ids(self) -> set[str]:
        return {s.id for s in self.states if s.is_final}

    @property
    def state_ids(self) -> list[str]:
        return [s.id for s in self.states]

    def has_epsilon(self) -> bool:
        return any(t.is_epsilon for t in self.transitions)

    def transition_map(self) -> dict[str, dict[str, list[str]]]:
        """Return ``state -> symbol -> [targets]`` preserving insertion order."""
        delta: dict[str, dict[str, list[str]]] = {s.id: {} for s in self.states}
        for t in self.transitions:
            targets = delta.setdefault(t.source, {}).setdefault(t.symbol, [])
            if t.target not in targets:
                targets.append(t.target)
        return delta

    def targets(self, source: str, symbol: str) -> list[str]:
        return [t.target for t in self.transitions if t.source == source and t.symbol == symbol]

    def label_of(self, state_id: str) -> str:
        return self.state(state_id).label

    # -- validation ------------------------------------------------------------

    def structural_errors(self) -> list[str]:
        """Collect every broken invariant without raising."""
        errors: list[str] = []
        ids = [s.id for s in self.states]
        if not ids:
            errors.append("Automaton has no states")
        seen: set[str] = set()
        for sid in ids:
            if sid in seen:
                errors.append(f"Duplicate state id {sid!r}")
            seen.add(sid)
        initials = [s.id for s in self.states if s.is_initial]
        if ids and not initials:
            errors.append("Automaton has no initial state")
        elif len(initials) > 1:
            errors.append(f"Automaton has more than one initial state: {initials}")
        if EPSILON in self.alphabet:
            errors.append(f"Alphabet must not contain {EPSILON!r}")
        alphabet = set(self.alphabet)
        for t in self.transitions:
            if t.source not in seen:
                errors.append(f"Transition {t.id} starts at unknown state {t.source!r}")
            if t.target not in seen:
                errors.append(f"Transition {t.id} ends at unknown state {t.target!r}")
            if not t.is_epsilon and t.symbol not in alphabet:
                errors.append(f"Transition {t.id} uses symbol {t.symbol!r} outside the alphabet")
        return errors

    def validate(self, *, require_final: bool = False) -> None:
        """Raise ``AutomatonValidationError`` listing every broken invariant.

        Args:
            require_final: Also require at least one accepting state.
        """
        errors = self.structural_errors()
        if require_final and not any(s.is_final for s in self.states):
            errors.append("Automaton has no final state")
        if errors:
            raise AutomatonValidationError(errors)


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------


def classify(transitions: Iterable[Transition]) -> AutomatonKind:
    """Pick the narrowest kind that describes a transition relation."""
    pairs: set[tuple[str, str]] = set()
    deterministic = True
    for t in transitions:
        if t.is_epsilon:
            return AutomatonKind.EPSILON_NFA
        if (t.source, t.symbol) in pairs:
            deterministic = False
        pairs.add((t.source, t.symbol))
    return AutomatonKind.DFA if deterministic else AutomatonKind.NFA


def make_automaton(
    initial: str,
    finals: Iterable[str],
    transitions: Iterable[tuple[str, str, str]],
    *,
    states: Iterable[str] | None = None,
    alphabet: Iterable[str] | None = None,
    name: str = "",
) -> Automaton:
    """Build an automaton from ``(source, symbol, target)`` triples.

    States are ordered by first appearance (initial state first) unless
    ``states`` gives an explicit order.  The alphabet defaults to the sorted
    non-ε symbols used by the transitions.
    """
    edges = [Transition(src, dst, sym) for src, sym, dst in transitions]
    final_list = list(finals)
    final_set = set(final_list)
    order: list[str] = []
    candidates: Iterable[str] = (
        states
        if states is not None
        else [initial, *(x for t in edges for x in (t.source, t.target)), *final_list]
    )
    for sid in candidates:
        if sid not in order:
            order.append(sid)
    if alphabet is None:
        alphabet = sorted({t.symbol for t in edges if not t.is_epsilon})
    return Automaton(
        states=[State(sid, sid, sid == initial, sid in final_set) for sid in order],
        transitions=edges,
        alphabet=list(alphabet),
        kind=classify(edges),
        name=name,
    )


# ---------------------------------------------------------------------------
# Structural queries
# ---------------------------------------------------------------------------


def is_deterministic(automaton: Automaton) -> bool:
    """True if there are no ε-edges and no two edges share ``(source, symbol)``."""
    return classify(automaton.transitions) is AutomatonKind.DFA


def reachable_states(automaton: Automaton) -> list[str]:
    """State ids reachable from the initial state, in BFS order."""
    initial = automaton.initial_state
    if initial is None:
        return []
    delta = automaton.transition_map()
    order = [initial.id]
    seen = {initial.id}
    i = 0
    while i < len(order):
        for targets in delta.get(order[i], {}).values():
            for target in targets:
                if target not in seen:
                    seen.add(target)
                    order.append(target)
        i += 1
    return order


@dataclass
class AutomatonStats:
    """Summary counts for an automaton."""

    states: int
    transitions: int
    alphabet_size: int
    final_states: int
    epsilon_transitions: int
    unreachable_states: int
    deterministic: bool
    complete: bool


def automaton_stats(automaton: Automaton) -> AutomatonStats:
    delta = automaton.transition_map()
    complete = all(
        symbol in delta.get(s.id, {}) for s in automaton.states for symbol in automaton.alphabet
    )
    return AutomatonStats(
        states=len(automaton.states),
        transitions=len(automaton.transitions),
        alphabet_size=len(automaton.alphabet),
        final_states=len(automaton.final_ids),
        epsilon_transitions=sum(1 for t in automaton.transitions if t.is_epsilon),
        unreachable_states=len(automaton.states) - len(reachable_states(automaton)),
        deterministic=is_deterministic(automaton),
        complete=complete,
    )


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


@dataclass
class TransitionTable:
    """Tabular view of an automaton.

    Attributes:
        headers: ``["State", *symbols]``; ``EPSILON`` is appended when used.
        rows: One row per state.  The first cell is the state label prefixed
            with ``→`` (initial) and/or ``*`` (final); the others hold ``-``,
            a single label, or ``{a,b}`` for several targets.
    """

    headers: list[str]
    rows: list[list[str]]


def transition_table(automaton: Automaton) -> TransitionTable:
    symbols = list(automaton.alphabet)
    if automaton.has_epsilon():
        symbols.append(EPSILON)
    targets: dict[tuple[str, str], list[str]] = defaultdict(list)
    for t in automaton.transitions:
        cell = targets[(t.source, t.symbol)]
        label = automaton.label_of(t.target)
        if label not in cell:
            cell.append(label)

    rows = []
    for state in automaton.states:
        prefix = ("→" if state.is_initial else "") + ("*" if state.is_final else "")
        row = [f"{prefix}{state.label}"]
        for symbol in symbols:
            cell = targets.get((state.id, symbol), [])
            if not cell:
                row.append("-")
            elif len(cell) == 1:
                row.append(cell[0])
            else:
                row.append("{" + ",".join(cell) + "}")
        rows.append(row)
    return TransitionTable(headers=["State", *symbols], rows=rows)
