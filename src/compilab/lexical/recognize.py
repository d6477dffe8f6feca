"""String recognition on finite automata.

Rejection is a normal outcome: every simulator returns a
``RecognitionResult`` whose ``reason`` says why a string was rejected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from compilab.config import DEFAULT_CONFIG, AnalysisConfig
from compilab.lexical.automaton import Automaton, is_deterministic
from compilab.lexical.subset import epsilon_closure

logger = logging.getLogger(__name__)


class RecognitionOutcome(Enum):
    ACCEPTED = "accepted"
    NO_INITIAL_STATE = "no_initial_state"
    UNKNOWN_SYMBOL = "unknown_symbol"
    NO_TRANSITION = "no_transition"
    NON_ACCEPTING = "non_accepting"


@dataclass
class RecognitionStep:
    """One move of the simulation.  Step 0 is the initial configuration."""

    step_number: int
    current_state: str
    symbol: str
    next_state: str
    remaining_input: str
    action: str


@dataclass
class RecognitionResult:
    accepted: bool
    reason: RecognitionOutcome
    message: str
    current_state: str
    remaining_input: str
    steps: list[RecognitionStep] = field(default_factory=list)


def _no_initial(input_string: str) -> RecognitionResult:
    return RecognitionResult(
        accepted=False,
        reason=RecognitionOutcome.NO_INITIAL_STATE,
        message="Error: the automaton has no initial state",
        current_state="",
        remaining_input=input_string,
    )


def _labels(automaton: Automaton, state_ids: Iterable[str]) -> str:
    order = {sid: i for i, sid in enumerate(automaton.state_ids)}
    ids = sorted(state_ids, key=lambda sid: order.get(sid, len(order)))
    return "{" + ", ".join(automaton.label_of(sid) for sid in ids) + "}"


# ---------------------------------------------------------------------------
# Simulators
# ---------------------------------------------------------------------------


def recognize_string_dfa(automaton: Automaton, input_string: str) -> RecognitionResult:
    """Run a DFA over ``input_string`` one symbol at a time."""
    initial = automaton.initial_state
    if initial is None:
        return _no_initial(input_string)
    delta = automaton.transition_map()
    alphabet = set(automaton.alphabet)
    current = initial
    steps = [
        RecognitionStep(0, initial.label, "", initial.label, input_string, "Initial state")
    ]
    for i, symbol in enumerate(input_string):
        remaining = input_string[i + 1 :]
        if symbol not in alphabet:
            return RecognitionResult(
                accepted=False,
                reason=RecognitionOutcome.UNKNOWN_SYMBOL,
                message=f"Error: symbol '{symbol}' is not in the alphabet",
                current_state=current.label,
                remaining_input=remaining,
                steps=steps,
            )
        targets = delta.get(current.id, {}).get(symbol)
        if not targets:
            return RecognitionResult(
                accepted=False,
                reason=RecognitionOutcome.NO_TRANSITION,
                message=f"Rejected: no transition from {current.label} on '{symbol}'",
                current_state=current.label,
                remaining_input=remaining,
                steps=steps,
            )
        nxt = automaton.state(targets[0])
        steps.append(
            RecognitionStep(
                i + 1, current.label, symbol, nxt.label, remaining, f"Transition on '{symbol}'"
            )
        )
        current = nxt

    if current.is_final:
        return RecognitionResult(
            True, RecognitionOutcome.ACCEPTED, "String accepted", current.label, "", steps
        )
    return RecognitionResult(
        accepted=False,
        reason=RecognitionOutcome.NON_ACCEPTING,
        message=f"Rejected: {current.label} is not an accepting state",
        current_state=current.label,
        remaining_input="",
        steps=steps,
    )


def recognize_string_nfa(automaton: Automaton, input_string: str) -> RecognitionResult:
    """Simulate an NFA on sets of states, closing under ε after every move."""
    initial = automaton.initial_state
    if initial is None:
        return _no_initial(input_string)
    alphabet = set(automaton.alphabet)
    delta = automaton.transition_map()
    current = epsilon_closure({initial.id}, automaton)
    start_label = _labels(automaton, current)
    steps = [
        RecognitionStep(
            0, start_label, "", start_label, input_string, "Initial state (with ε-closure)"
        )
    ]
    for i, symbol in enumerate(input_string):
        remaining = input_string[i + 1 :]
        if symbol not in alphabet:
            return RecognitionResult(
                accepted=False,
                reason=RecognitionOutcome.UNKNOWN_SYMBOL,
                message=f"Error: symbol '{symbol}' is not in the alphabet",
                current_state=_labels(automaton, current),
                remaining_input=remaining,
                steps=steps,
            )
        moved = {t for sid in current for t in delta.get(sid, {}).get(symbol, [])}
        nxt = epsilon_closure(moved, automaton)
        if not nxt:
            return RecognitionResult(
                accepted=False,
                reason=RecognitionOutcome.NO_TRANSITION,
                message=(
                    f"Rejected: no transition from {_labels(automaton, current)} on '{symbol}'"
                ),
                current_state=_labels(automaton, current),
                remaining_input=remaining,
                steps=steps,
            )
        steps.append(
            RecognitionStep(
                i + 1,
                _labels(automaton, current),
                symbol,
                _labels(automaton, nxt),
                remaining,
                f"Transition on '{symbol}' (with ε-closure)",
            )
        )
        current = nxt

    label = _labels(automaton, current)
    if current & automaton.final_ids:
        return RecognitionResult(
            True, RecognitionOutcome.ACCEPTED, "String accepted", label, "", steps
        )
    return RecognitionResult(
        accepted=False,
        reason=RecognitionOutcome.NON_ACCEPTING,
        message=f"Rejected: none of {label} is an accepting state",
        current_state=label,
        remaining_input="",
        steps=steps,
    )


def recognize_string(automaton: Automaton, input_string: str) -> RecognitionResult:
    """Pick the DFA or NFA simulator from the automaton's structure."""
    if not is_deterministic(automaton):
        return recognize_string_nfa(automaton, input_string)
    return recognize_string_dfa(automaton, input_string)


# ---------------------------------------------------------------------------
# Language exploration
# ---------------------------------------------------------------------------


def language_up_to(automaton: Automaton, max_length: int) -> set[str]:
    """Every accepted string of length <= ``max_length``.

    Explores (prefix, state set) pairs breadth-first and prunes prefixes
    whose state set is empty.
    """
    initial = automaton.initial_state
    if initial is None:
        return set()
    delta = automaton.transition_map()
    finals = automaton.final_ids
    accepted: set[str] = set()
    frontier = [("", frozenset(epsilon_closure({initial.id}, automaton)))]
    for length in range(max_length + 1):
        next_frontier = []
        for prefix, states in frontier:
            if states & finals:
                accepted.add(prefix)
            if length == max_length:
                continue
            for symbol in automaton.alphabet:
                moved = {t for sid in states for t in delta.get(sid, {}).get(symbol, [])}
                if moved:
                    next_frontier.append(
                        (prefix + symbol, frozenset(epsilon_closure(moved, automaton)))
                    )
        frontier = next_frontier
    return accepted


def accepted_strings(
    automaton: Automaton,
    max_length: int | None = None,
    max_count: int | None = None,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> list[str]:
    """Accepted strings in length-then-alphabet order, capped by ``max_count``."""
    if max_length is None:
        max_length = config.enumeration_max_length
    if max_count is None:
        max_count = config.enumeration_max_count
    order = {symbol: i for i, symbol in enumerate(automaton.alphabet)}
    words = sorted(
        language_up_to(automaton, max_length),
        key=lambda w: (len(w), [order[ch] for ch in w]),
    )
    return words[:max_count]


def validate_strings(automaton: Automaton, strings: Iterable[str]) -> dict[str, bool]:
    return {s: recognize_string(automaton, s).accepted for s in strings}


def acceptance_path(automaton: Automaton, input_string: str) -> list[str] | None:
    """Labels visited while accepting ``input_string``, or None if rejected."""
    result = recognize_string(automaton, input_string)
    if not result.accepted:
        return None
    return [result.steps[0].current_state, *(step.next_state for step in result.steps[1:])]
