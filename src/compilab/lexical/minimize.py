"""DFA minimization.

``minimize_partition`` is classic partition refinement: drop unreachable
states, split {final, non-final} by per-symbol target blocks until stable,
then merge each block.

``optimize_by_significant_states`` only applies to DFAs produced by subset
construction.  An NFA state is *significant* when it has a non-ε outgoing
edge or is final; two DFA states whose subsets agree on significant states
behave identically and are merged.  It can leave more states than partition
refinement, since it never compares behaviour beyond the originating subsets.
"""

from __future__ import annotations

import logging

from compilab.config import DEFAULT_CONFIG, AnalysisConfig
from compilab.errors import AutomatonValidationError, ConvergenceError
from compilab.lexical.automaton import (
    Automaton,
    AutomatonKind,
    State,
    Transition,
    is_deterministic,
    reachable_states,
)

logger = logging.getLogger(__name__)


def _require_dfa(dfa: Automaton) -> None:
    dfa.validate()
    if not is_deterministic(dfa):
        raise AutomatonValidationError([f"{dfa.name or 'Automaton'} is not deterministic"])


def _merge(dfa: Automaton, blocks: list[list[str]], name: str) -> Automaton:
    """Collapse each block onto its first member; flags are OR-ed."""
    representative = {sid: block[0] for block in blocks for sid in block}
    states = []
    for block in blocks:
        members = [dfa.state(sid) for sid in block]
        rep = members[0]
        states.append(
            State(
                rep.id,
                rep.label,
                is_initial=any(s.is_initial for s in members),
                is_final=any(s.is_final for s in members),
                position=rep.position,
            )
        )
    transitions: list[Transition] = []
    seen: set[tuple[str, str, str]] = set()
    for t in dfa.transitions:
        if t.source not in representative or t.target not in representative:
            continue
        key = (representative[t.source], t.symbol, representative[t.target])
        if key not in seen:
            seen.add(key)
            transitions.append(Transition(key[0], key[2], key[1]))
    kept = {block[0] for block in blocks}
    return Automaton(
        states=states,
        transitions=transitions,
        alphabet=list(dfa.alphabet),
        kind=AutomatonKind.DFA,
        name=name,
        subset_states=[s for s in dfa.subset_states if s.id in kept],
    )


# ---------------------------------------------------------------------------
# Partition refinement
# ---------------------------------------------------------------------------


def refine_partition(
    dfa: Automaton, config: AnalysisConfig = DEFAULT_CONFIG
) -> list[list[str]]:
    """Stable partition of the reachable states of ``dfa``.

    Blocks and their members keep BFS discovery order, so the block holding
    the initial state comes first.

    Raises:
        ConvergenceError: If refinement does not stabilize within
            ``config.max_iterations`` rounds.
    """
    reachable = reachable_states(dfa)
    finals = dfa.final_ids
    delta = dfa.transition_map()
    blocks = [
        block
        for block in (
            [s for s in reachable if s in finals],
            [s for s in reachable if s not in finals],
        )
        if block
    ]
    blocks.sort(key=lambda b: reachable.index(b[0]))

    for _ in range(config.max_iterations):
        block_of = {sid: i for i, block in enumerate(blocks) for sid in block}
        refined: list[list[str]] = []
        for block in blocks:
            groups: dict[tuple[int | None, ...], list[str]] = {}
            for sid in block:
                signature = tuple(
                    block_of[delta[sid][symbol][0]] if symbol in delta[sid] else None
                    for symbol in dfa.alphabet
                )
                groups.setdefault(signature, []).append(sid)
            refined.extend(groups.values())
        if len(refined) == len(blocks):
            return blocks
        blocks = refined
    raise ConvergenceError("partition refinement", config.max_iterations)


def minimize_partition(dfa: Automaton, config: AnalysisConfig = DEFAULT_CONFIG) -> Automaton:
    """Minimize a DFA by partition refinement.

    Args:
        dfa: A deterministic automaton (may be partial).
        config: Supplies the iteration cap.

    Returns:
        A DFA with no unreachable states and no two equivalent states.
        Merged states keep the id and label of the first member.

    Raises:
        AutomatonValidationError: If ``dfa`` is malformed or not deterministic.
        ConvergenceError: If refinement exceeds the iteration cap.
    """
    _require_dfa(dfa)
    blocks = refine_partition(dfa, config)
    minimized = _merge(dfa, blocks, name=f"Minimized {dfa.name}".strip())
    logger.debug(
        "Partition refinement: %d -> %d states", len(dfa.states), len(minimized.states)
    )
    return minimized


# ---------------------------------------------------------------------------
# Significant states
# ---------------------------------------------------------------------------


def significant_states(nfa: Automaton) -> set[str]:
    """NFA states with a non-ε outgoing edge, plus the final states."""
    significant = {t.source for t in nfa.transitions if not t.is_epsilon}
    return significant | nfa.final_ids


def optimize_by_significant_states(dfa: Automaton, nfa: Automaton) -> Automaton:
    """Merge subset-construction states that share their significant NFA states.

    Args:
        dfa: Output of ``afn_to_afd(nfa)``; must carry ``subset_states``.
        nfa: The NFA the DFA was built from.

    Returns:
        A DFA whose ``subset_states`` lists only the representatives kept.

    Raises:
        AutomatonValidationError: If ``dfa`` is not deterministic or has no
            subset metadata.
    """
    _require_dfa(dfa)
    if not dfa.subset_states:
        raise AutomatonValidationError(
            ["Significant-state optimization needs a DFA built by subset construction"]
        )
    significant = significant_states(nfa)
    groups: dict[frozenset[str], list[str]] = {}
    for subset in dfa.subset_states:
        key = frozenset(subset.nfa_states) & significant
        groups.setdefault(key, []).append(subset.id)
    blocks = list(groups.values())
    optimized = _merge(dfa, blocks, name=f"Optimized {dfa.name}".strip())
    logger.debug(
        "Significant states: %d significant NFA states, %d -> %d DFA states",
        len(significant),
        len(dfa.states),
        len(optimized.states),
    )
    return optimized
