"""Bottom-up (LR) analysis.

Canonical LR(0) and LR(1) item collections, LALR(1) by merging LR(1) states
with equal cores, the four table builders (LR(0), SLR(1), LR(1), LALR(1))
and the shift-reduce parser that runs them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import assert_never

from compilab.config import DEFAULT_CONFIG, AnalysisConfig
from compilab.lexical.automaton import (
    EPSILON,
    Automaton,
    State,
    Transition,
    classify,
)
from compilab.syntax.first_follow import compute_first, compute_follow, first_of_sequence
from compilab.syntax.grammar import (
    END_MARKER,
    Grammar,
    ParseResult,
    ParseStep,
    Production,
    tokenize_input,
)

logger = logging.getLogger(__name__)

_DOT = "•"


def augment_grammar(grammar: Grammar) -> Grammar:
    """Add ``S' → S`` as production 0; the original rules keep their order."""
    grammar.validate()
    start = grammar.start_symbol + "'"
    while start in grammar.non_terminals:
        start += "'"
    rules = [(start, (grammar.start_symbol,))]
    rules += [(p.left, p.right) for p in grammar.productions]
    return Grammar.from_rules(rules, grammar.terminals, start, [start, *grammar.non_terminals])


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LRItem:
    """``A → α • β`` with an optional LR(1) lookahead terminal."""

    production: Production
    dot: int
    lookahead: str | None = None

    @property
    def next_symbol(self) -> str | None:
        right = self.production.right
        return right[self.dot] if self.dot < len(right) else None

    @property
    def is_complete(self) -> bool:
        return self.dot >= len(self.production.right)

    @property
    def core(self) -> LRItem:
        return LRItem(self.production, self.dot)

    def advance(self) -> LRItem:
        return LRItem(self.production, self.dot + 1, self.lookahead)

    def __str__(self) -> str:
        right = list(self.production.right)
        right.insert(self.dot, _DOT)
        text = f"{self.production.left} → {' '.join(right)}"
        if self.lookahead is None:
            return text
        return f"[{text}, {self.lookahead}]"


def closure(
    items: Iterable[LRItem],
    grammar: Grammar,
    first: dict[str, set[str]] | None = None,
) -> list[LRItem]:
    """Close an item set under ``A → α • B β  ⟹  B → • γ``.

    LR(1) items (those with a lookahead) propagate ``FIRST(β a)`` as the
    lookaheads of the added items, which requires ``first``.
    """
    result = list(dict.fromkeys(items))
    seen = set(result)
    i = 0
    while i < len(result):
        item = result[i]
        i += 1
        symbol = item.next_symbol
        if symbol is None or not grammar.is_non_terminal(symbol):
            continue
        lookaheads: list[str | None]
        if item.lookahead is None:
            lookaheads = [None]
        else:
            assert first is not None
            beta = item.production.right[item.dot + 1 :]
            lookaheads = sorted(first_of_sequence((*beta, item.lookahead), first, grammar))
        for p in grammar.productions_for(symbol):
            for lookahead in lookaheads:
                new = LRItem(p, 0, lookahead)
                if new not in seen:
                    seen.add(new)
                    result.append(new)
    return result


def goto(
    items: Iterable[LRItem],
    symbol: str,
    grammar: Grammar,
    first: dict[str, set[str]] | None = None,
) -> list[LRItem]:
    kernel = [item.advance() for item in items if item.next_symbol == symbol]
    return closure(kernel, grammar, first)


# ---------------------------------------------------------------------------
# Item collections
# ---------------------------------------------------------------------------


@dataclass
class LRState:
    id: int
    items: list[LRItem]
    kernel: list[LRItem]
    transitions: dict[str, int] = field(default_factory=dict)


@dataclass
class LRAutomaton:
    """A canonical item collection over an augmented grammar.

    Attributes:
        grammar: The augmented grammar; production 0 is ``S' → S``.
        states: Item sets in discovery order, ``states[i].id == i``.
        kind: ``"LR(0)"``, ``"LR(1)"`` or ``"LALR(1)"``.
    """

    grammar: Grammar
    states: list[LRState]
    kind: str


def _symbols_after_dot(items: list[LRItem]) -> list[str]:
    symbols: list[str] = []
    for item in items:
        symbol = item.next_symbol
        if symbol is not None and symbol not in symbols:
            symbols.append(symbol)
    return symbols


def _collection(
    grammar: Grammar, start: LRItem, first: dict[str, set[str]] | None, kind: str
) -> LRAutomaton:
    states = [LRState(0, closure([start], grammar, first), [start])]
    index = {frozenset(states[0].items): 0}
    i = 0
    while i < len(states):
        state = states[i]
        i += 1
        for symbol in _symbols_after_dot(state.items):
            kernel = [item.advance() for item in state.items if item.next_symbol == symbol]
            items = closure(kernel, grammar, first)
            key = frozenset(items)
            if key not in index:
                index[key] = len(states)
                states.append(LRState(len(states), items, kernel))
            state.transitions[symbol] = index[key]
    logger.debug("%s collection: %d states", kind, len(states))
    return LRAutomaton(grammar, states, kind)


def canonical_lr0(grammar: Grammar) -> LRAutomaton:
    augmented = augment_grammar(grammar)
    return _collection(augmented, LRItem(augmented.productions[0], 0), None, "LR(0)")


def canonical_lr1(grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG) -> LRAutomaton:
    augmented = augment_grammar(grammar)
    first = compute_first(augmented, config)
    start = LRItem(augmented.productions[0], 0, END_MARKER)
    return _collection(augmented, start, first, "LR(1)")


def lalr(grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG) -> LRAutomaton:
    """Merge the LR(1) states whose item cores coincide.

    Merged states are numbered in order of their first LR(1) member.
    """
    lr1 = canonical_lr1(grammar, config)
    merged_id: dict[int, int] = {}
    by_core: dict[frozenset[LRItem], LRState] = {}
    for state in lr1.states:
        core = frozenset(item.core for item in state.items)
        target = by_core.get(core)
        if target is None:
            target = LRState(len(by_core), [], [])
            by_core[core] = target
        merged_id[state.id] = target.id
        target.items += [item for item in state.items if item not in target.items]
        target.kernel += [item for item in state.kernel if item not in target.kernel]
    states = list(by_core.values())
    for state in lr1.states:
        merged = states[merged_id[state.id]]
        for symbol, target_id in state.transitions.items():
            merged.transitions[symbol] = merged_id[target_id]
    logger.debug("LALR(1) merge: %d -> %d states", len(lr1.states), len(states))
    return LRAutomaton(lr1.grammar, states, "LALR(1)")


def build_lr0_item_nfa(grammar: Grammar) -> Automaton:
    """One state per LR(0) item of the augmented grammar.

    ``A → α • X β`` moves to ``A → α X • β`` on ``X``; when ``X`` is a
    non-terminal it also has ε-edges to every ``X → • γ``.  Complete items
    are accepting.  Subset construction over this automaton yields the
    canonical LR(0) collection.
    """
    augmented = augment_grammar(grammar)
    items = [LRItem(p, dot) for p in augmented.productions for dot in range(len(p.right) + 1)]
    ids = {item: f"i{n}" for n, item in enumerate(items)}
    transitions: list[Transition] = []
    for item in items:
        symbol = item.next_symbol
        if symbol is None:
            continue
        transitions.append(Transition(ids[item], ids[item.advance()], symbol))
        if augmented.is_non_terminal(symbol):
            for p in augmented.productions_for(symbol):
                transitions.append(Transition(ids[item], ids[LRItem(p, 0)], EPSILON))
    states = [
        State(ids[item], str(item), is_initial=n == 0, is_final=item.is_complete)
        for n, item in enumerate(items)
    ]
    alphabet = [*augmented.non_terminals[1:], *augmented.terminals]
    return Automaton(states, transitions, alphabet, classify(transitions), "LR(0) items")


def format_canonical_sets(automaton: LRAutomaton) -> str:
    """Readable listing of every item set and its goto edges."""
    blocks = []
    for state in automaton.states:
        lines = [f"I{state.id}:"]
        lines += [f"  {item}" for item in state.items]
        lines += [f"  goto({symbol}) = I{target}" for symbol, target in state.transitions.items()]
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class ActionKind(Enum):
    SHIFT = "shift"
    REDUCE = "reduce"
    ACCEPT = "accept"


@dataclass(frozen=True)
class ActionEntry:
    kind: ActionKind
    value: int = 0

    def __str__(self) -> str:
        if self.kind is ActionKind.SHIFT:
            return f"s{self.value}"
        elif self.kind is ActionKind.REDUCE:
            return f"r{self.value}"
        elif self.kind is ActionKind.ACCEPT:
            return "acc"
        else:
            assert_never(self.kind)


@dataclass
class LRConflict:
    """Several actions for one ``(state, terminal)`` cell.

    ``chosen`` is the action kept in the table: shift beats reduce and the
    lowest-numbered production wins among reductions.
    """

    state: int
    symbol: str
    kind: str
    actions: list[ActionEntry]
    chosen: ActionEntry

    def __str__(self) -> str:
        options = " / ".join(str(a) for a in self.actions)
        return f"{self.kind} conflict in state {self.state} on '{self.symbol}': {options}"


@dataclass
class LRTable:
    method: str
    automaton: LRAutomaton
    action: dict[int, dict[str, ActionEntry]]
    goto: dict[int, dict[str, int]]
    conflicts: list[LRConflict] = field(default_factory=list)

    @property
    def grammar(self) -> Grammar:
        return self.automaton.grammar

    @property
    def terminals(self) -> list[str]:
        return [*self.grammar.terminals, END_MARKER]

    @property
    def non_terminals(self) -> list[str]:
        return self.grammar.non_terminals[1:]

    @property
    def is_conflict_free(self) -> bool:
        return not self.conflicts


_VALID_LR_METHODS = ("lr0", "slr", "lr1", "lalr")

_METHOD_NAMES = {"lr0": "LR(0)", "slr": "SLR(1)", "lr1": "LR(1)", "lalr": "LALR(1)"}


def _resolve(actions: list[ActionEntry]) -> tuple[ActionEntry, str]:
    shifts = [a for a in actions if a.kind is ActionKind.SHIFT]
    others = sorted(
        (a for a in actions if a.kind is not ActionKind.SHIFT),
        key=lambda a: (a.kind is not ActionKind.ACCEPT, a.value),
    )
    if shifts:
        return shifts[0], "shift-reduce"
    return others[0], "reduce-reduce"


def _fill_table(
    automaton: LRAutomaton, method: str, lookaheads: Callable[[LRItem], Iterable[str]]
) -> LRTable:
    grammar = automaton.grammar
    order = {t: i for i, t in enumerate([*grammar.terminals, END_MARKER])}
    action: dict[int, dict[str, ActionEntry]] = {}
    goto_table: dict[int, dict[str, int]] = {}
    conflicts: list[LRConflict] = []

    for state in automaton.states:
        cells: dict[str, list[ActionEntry]] = {}

        def add(symbol: str, entry: ActionEntry) -> None:
            entries = cells.setdefault(symbol, [])
            if entry not in entries:
                entries.append(entry)

        goto_table[state.id] = {}
        for symbol, target in state.transitions.items():
            if grammar.is_non_terminal(symbol):
                goto_table[state.id][symbol] = target
            else:
                add(symbol, ActionEntry(ActionKind.SHIFT, target))
        for item in state.items:
            if not item.is_complete:
                continue
            if item.production.number == 0:
                add(END_MARKER, ActionEntry(ActionKind.ACCEPT))
                continue
            for symbol in lookaheads(item):
                add(symbol, ActionEntry(ActionKind.REDUCE, item.production.number))

        row: dict[str, ActionEntry] = {}
        for symbol in sorted(cells, key=lambda s: order.get(s, len(order))):
            entries = cells[symbol]
            if len(entries) == 1:
                row[symbol] = entries[0]
                continue
            chosen, kind = _resolve(entries)
            row[symbol] = chosen
            conflicts.append(LRConflict(state.id, symbol, kind, entries, chosen))
        action[state.id] = row

    for conflict in conflicts:
        logger.info("%s %s", _METHOD_NAMES[method], conflict)
    logger.debug(
        "%s table: %d states, %d conflicts",
        _METHOD_NAMES[method],
        len(automaton.states),
        len(conflicts),
    )
    return LRTable(method, automaton, action, goto_table, conflicts)


def build_lr0_table(grammar: Grammar) -> LRTable:
    """LR(0): a complete item reduces on every terminal."""
    automaton = canonical_lr0(grammar)
    every = [*automaton.grammar.terminals, END_MARKER]
    return _fill_table(automaton, "lr0", lambda item: every)


def build_slr_table(grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG) -> LRTable:
    """SLR(1): ``A → α •`` reduces on FOLLOW(A)."""
    automaton = canonical_lr0(grammar)
    follow = compute_follow(automaton.grammar, config=config)
    return _fill_table(automaton, "slr", lambda item: follow[item.production.left])


def build_lr1_table(grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG) -> LRTable:
    automaton = canonical_lr1(grammar, config)
    return _fill_table(automaton, "lr1", lambda item: [item.lookahead or END_MARKER])


def build_lalr_table(grammar: Grammar, config: AnalysisConfig = DEFAULT_CONFIG) -> LRTable:
    automaton = lalr(grammar, config)
    return _fill_table(automaton, "lalr", lambda item: [item.lookahead or END_MARKER])


def build_lr_table(
    grammar: Grammar, method: str = "slr", config: AnalysisConfig = DEFAULT_CONFIG
) -> LRTable:
    """Build the table for ``method`` (``lr0``, ``slr``, ``lr1`` or ``lalr``).

    Raises:
        ValueError: On an unknown method.
        GrammarValidationError: If the grammar is invalid.
    """
    if method == "lr0":
        return build_lr0_table(grammar)
    if method == "slr":
        return build_slr_table(grammar, config)
    if method == "lr1":
        return build_lr1_table(grammar, config)
    if method == "lalr":
        return build_lalr_table(grammar, config)
    raise ValueError(
        f"Unsupported LR method: {method!r}. Choose from {sorted(_VALID_LR_METHODS)}"
    )


# ---------------------------------------------------------------------------
# Shift-reduce parser
# ---------------------------------------------------------------------------


def parse_lr(
    table: LRTable, input_string: str, config: AnalysisConfig = DEFAULT_CONFIG
) -> ParseResult:
    """Run the shift-reduce automaton over whitespace-separated tokens.

    The stack is shown as alternating states and symbols (``0 E 1 + 6``).
    Conflicting cells use the action kept in the table.
    """
    grammar = table.grammar
    states = [0]
    symbols: list[str] = []
    tokens = tokenize_input(input_string)
    output: list[str] = []

    def stack() -> list[str]:
        shown = [str(states[0])]
        for symbol, state in zip(symbols, states[1:]):
            shown += [symbol, str(state)]
        return shown

    steps = [ParseStep(0, stack(), list(tokens), "Start")]

    def step(action: str) -> None:
        steps.append(ParseStep(len(steps), stack(), list(tokens), action, "\n".join(output)))

    def reject(error: str) -> ParseResult:
        step(f"Error: {error}")
        return ParseResult(False, steps, error, output)

    while len(steps) <= config.max_parse_steps:
        state, lookahead = states[-1], tokens[0]
        entry = table.action.get(state, {}).get(lookahead)
        if entry is None:
            return reject(f"no action for state {state} on '{lookahead}'")
        if entry.kind is ActionKind.SHIFT:
            states.append(entry.value)
            symbols.append(tokens.pop(0))
            step(f"Shift {entry.value}")
        elif entry.kind is ActionKind.REDUCE:
            production = grammar.productions[entry.value]
            if production.right:
                del states[-len(production.right) :]
                del symbols[-len(production.right) :]
            target = table.goto.get(states[-1], {}).get(production.left)
            if target is None:
                return reject(f"no goto for state {states[-1]} on {production.left}")
            states.append(target)
            symbols.append(production.left)
            output.append(str(production))
            step(f"Reduce {production}")
        elif entry.kind is ActionKind.ACCEPT:
            step("Accept")
            return ParseResult(True, steps, None, output)
        else:
            assert_never(entry.kind)
    return reject(f"step limit of {config.max_parse_steps} reached")


@dataclass
class LRAnalysis:
    table: LRTable
    canonical_sets: str
    parse: ParseResult | None = None


def analyze_ascendente(
    grammar: Grammar,
    method: str = "slr",
    input_string: str | None = None,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> LRAnalysis:
    """Table, item-set listing and (optionally) a parse trace for one method."""
    table = build_lr_table(grammar, method, config)
    parse = parse_lr(table, input_string, config) if input_string is not None else None
    return LRAnalysis(table, format_canonical_sets(table.automaton), parse)
