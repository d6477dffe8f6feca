"""Finite automaton to regular expression.

Two independent conversions:

- ``af_to_er``: one right-linear equation per state,
  ``X = a1·Y1 | ... | an·Yn [| ε if X is final]``, solved by eliminating
  variables in dependency order.  A variable that refers to itself is
  closed with Arden's lemma (``X = αX | β  ⟹  X = α*β``) before being
  substituted into the remaining equations.
- ``af_to_er_elimination``: state elimination on a generalized automaton
  with fresh start ``I`` and accept ``F`` states.

Both record a step trace and build the result as a ``regex_ast`` tree.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from compilab.errors import AutomatonValidationError
from compilab.lexical.automaton import EPSILON, Automaton
from compilab.lexical.regex_ast import (
    EMPTY,
    EPS,
    Epsilon,
    Regex,
    Union,
    concat,
    star,
    symbol,
    union,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frontiers and equations
# ---------------------------------------------------------------------------


@dataclass
class Frontier:
    """All symbols leading from ``source`` to ``target``, folded into one expression.

    ``source`` and ``target`` are state ids; the labels are only for display.
    """

    source: str
    target: str
    symbols: list[str]
    expression: Regex
    source_label: str = ""
    target_label: str = ""

    def __str__(self) -> str:
        source = self.source_label or self.source
        target = self.target_label or self.target
        return f"{source} --{self.expression}--> {target}"


def display_names(automaton: Automaton) -> dict[str, str]:
    """Map state ids to labels, qualifying labels shared by several states with the id."""
    counts = Counter(s.label for s in automaton.states)
    return {
        s.id: s.label if counts[s.label] == 1 else f"{s.label}[{s.id}]" for s in automaton.states
    }


def calculate_frontiers(automaton: Automaton) -> list[Frontier]:
    """Group parallel transitions; frontiers are ordered by first transition."""
    names = display_names(automaton)
    grouped: dict[tuple[str, str], list[str]] = {}
    for t in automaton.transitions:
        symbols = grouped.setdefault((t.source, t.target), [])
        if t.symbol not in symbols:
            symbols.append(t.symbol)
    return [
        Frontier(
            src,
            dst,
            symbols,
            union(*(symbol(s) for s in symbols)),
            names[src],
            names[dst],
        )
        for (src, dst), symbols in grouped.items()
    ]


def _term(coefficient: Regex, variable: str) -> str:
    if isinstance(coefficient, Epsilon):
        return variable
    if isinstance(coefficient, Union):
        return f"({coefficient}){variable}"
    return f"{coefficient}{variable}"


@dataclass
class Equation:
    """``variable = Σ coefficients[v]·v | constant`` over state ids.

    ``names`` maps ids to the text printed for them.
    """

    variable: str
    coefficients: dict[str, Regex] = field(default_factory=dict)
    constant: Regex = EMPTY
    names: dict[str, str] = field(default_factory=dict)

    def copy(self) -> Equation:
        return Equation(self.variable, dict(self.coefficients), self.constant, self.names)

    def name(self, variable: str) -> str:
        return self.names.get(variable, variable)

    def depends_on(self) -> list[str]:
        return list(self.coefficients)

    def __str__(self) -> str:
        terms = [_term(c, self.name(v)) for v, c in self.coefficients.items()]
        if self.constant != EMPTY:
            terms.append(str(self.constant))
        return f"{self.name(self.variable)} = {' | '.join(terms) if terms else EMPTY}"


def generate_equations(automaton: Automaton) -> list[Equation]:
    """One equation per state, in state order."""
    names = display_names(automaton)
    equations = {
        s.id: Equation(s.id, constant=EPS if s.is_final else EMPTY, names=names)
        for s in automaton.states
    }
    for frontier in calculate_frontiers(automaton):
        eq = equations[frontier.source]
        eq.coefficients[frontier.target] = union(
            eq.coefficients.get(frontier.target, EMPTY), frontier.expression
        )
    return list(equations.values())


def format_frontiers(frontiers: list[Frontier]) -> list[str]:
    return [str(f) for f in frontiers]


def format_equations(equations: list[Equation]) -> list[str]:
    return [str(eq) for eq in equations]


# ---------------------------------------------------------------------------
# Elimination order
# ---------------------------------------------------------------------------


def _strongly_connected(graph: dict[str, list[str]], nodes: list[str]) -> list[list[str]]:
    """Tarjan's algorithm; components come out sinks first."""
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    components: list[list[str]] = []

    def visit(node: str) -> None:
        index[node] = low[node] = len(index)
        stack.append(node)
        on_stack.add(node)
        for succ in graph.get(node, []):
            if succ not in index:
                visit(succ)
                low[node] = min(low[node], low[succ])
            elif succ in on_stack:
                low[node] = min(low[node], index[succ])
        if low[node] == index[node]:
            component = []
            while True:
                member = stack.pop()
                on_stack.discard(member)
                component.append(member)
                if member == node:
                    break
            components.append(component)

    for node in nodes:
        if node not in index:
            visit(node)
    return components


def elimination_order(equations: list[Equation], initial: str) -> list[str]:
    """Variables reachable from ``initial``, dependencies first, ``initial`` last.

    Strongly connected components of the dependency graph are taken in
    reverse topological order; members of a component keep equation order.
    """
    graph = {eq.variable: [v for v in eq.depends_on() if v != eq.variable] for eq in equations}
    position = {eq.variable: i for i, eq in enumerate(equations)}

    reachable = [initial]
    for var in reachable:
        for succ in graph[var]:
            if succ not in reachable:
                reachable.append(succ)
    reachable.sort(key=position.__getitem__)

    order: list[str] = []
    for component in _strongly_connected(graph, reachable):
        order.extend(sorted(component, key=position.__getitem__))
    order.remove(initial)
    order.append(initial)
    return order


# ---------------------------------------------------------------------------
# Arden solver
# ---------------------------------------------------------------------------


@dataclass
class EquationStep:
    """Snapshot of the equation system after one action."""

    step_number: int
    description: str
    equations: list[str]
    action: str
    highlighted_variable: str | None = None
    explanation: str = ""


@dataclass
class ArdenResult:
    regex: Regex
    frontiers: list[Frontier]
    equations: list[Equation]
    order: list[str]
    steps: list[EquationStep]
    names: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return str(self.regex)

    @property
    def order_labels(self) -> list[str]:
        return [self.names.get(v, v) for v in self.order]


def _require_initial_and_final(automaton: Automaton) -> str:
    errors = automaton.structural_errors()
    if not automaton.final_ids:
        errors.append("Automaton has no final state")
    if errors:
        raise AutomatonValidationError(errors)
    initial = automaton.initial_state
    assert initial is not None
    return initial.id


def apply_arden(equation: Equation) -> Equation:
    """Remove the self-reference of ``equation`` with Arden's lemma."""
    alpha = equation.coefficients.get(equation.variable)
    if alpha is None:
        return equation.copy()
    loop = star(alpha)
    return Equation(
        equation.variable,
        {v: concat(loop, c) for v, c in equation.coefficients.items() if v != equation.variable},
        concat(loop, equation.constant),
        equation.names,
    )


def substitute(target: Equation, solved: Equation) -> Equation:
    """Replace ``solved.variable`` in ``target`` by its (self-free) definition."""
    coefficient = target.coefficients.get(solved.variable)
    if coefficient is None:
        return target.copy()
    result = Equation(
        target.variable,
        {v: c for v, c in target.coefficients.items() if v != solved.variable},
        target.constant,
        target.names,
    )
    for v, c in solved.coefficients.items():
        result.coefficients[v] = union(result.coefficients.get(v, EMPTY), concat(coefficient, c))
    result.constant = union(result.constant, concat(coefficient, solved.constant))
    return result


def af_to_er(automaton: Automaton) -> ArdenResult:
    """Convert an automaton to a regex by solving its equation system.

    Returns:
        The regex of the initial state's variable with the full trace.

    Raises:
        AutomatonValidationError: If the automaton is malformed or lacks an
            initial or a final state.
    """
    initial = _require_initial_and_final(automaton)
    names = display_names(automaton)
    frontiers = calculate_frontiers(automaton)
    equations = generate_equations(automaton)
    system = {eq.variable: eq.copy() for eq in equations}
    order = elimination_order(equations, initial)

    steps: list[EquationStep] = []

    def record(description: str, action: str, variable: str | None, explanation: str) -> None:
        steps.append(
            EquationStep(
                step_number=len(steps) + 1,
                description=description,
                equations=format_equations(list(system.values())),
                action=action,
                highlighted_variable=variable,
                explanation=explanation,
            )
        )

    record(
        "Initial equation system",
        "equations",
        None,
        "One equation per state: a term a·Y for every transition X --a--> Y, "
        "plus ε when X is final.",
    )
    unused = [v for v in system if v not in order]
    for var in unused:
        del system[var]
    if unused:
        record(
            "Drop variables unreachable from the initial state",
            "prune",
            None,
            f"Removed: {', '.join(names[v] for v in unused)}",
        )

    for var in order:
        eq = system[var]
        name = names[var]
        if var in eq.coefficients:
            alpha = eq.coefficients[var]
            others = {v: c for v, c in eq.coefficients.items() if v != var}
            beta = str(Equation(var, others, eq.constant, names)).split(" = ", 1)[1]
            system[var] = apply_arden(eq)
            record(
                f"Apply Arden's lemma to {name}",
                "arden",
                name,
                f"{name} = ({alpha}){name} | {beta}  ⟹  {name} = ({alpha})*({beta})",
            )
        if var == initial:
            break
        solved = system.pop(var)
        affected = [v for v, other in system.items() if var in other.coefficients]
        for other in affected:
            system[other] = substitute(system[other], solved)
        record(
            f"Substitute {name}",
            "substitute",
            name,
            f"{solved} replaces {name} in {', '.join(names[v] for v in affected)}"
            if affected
            else f"{name} is not referenced by the remaining equations",
        )

    regex = system[initial].constant
    record(
        f"Solution for {names[initial]}",
        "solution",
        names[initial],
        f"The language of the automaton is {names[initial]} = {regex}",
    )
    logger.debug(
        "Arden solution for %s: %s (%d steps)", automaton.name or "automaton", regex, len(steps)
    )
    return ArdenResult(
        regex=regex,
        frontiers=frontiers,
        equations=equations,
        order=order,
        steps=steps,
        names=names,
    )


# ---------------------------------------------------------------------------
# State elimination
# ---------------------------------------------------------------------------


@dataclass
class EliminationStep:
    """Edges of the generalized automaton after one elimination."""

    step_number: int
    description: str
    eliminated: str | None
    edges: list[tuple[str, str, str]]
    explanation: str = ""


@dataclass
class EliminationResult:
    regex: Regex
    steps: list[EliminationStep]

    @property
    def text(self) -> str:
        return str(self.regex)


def _fresh(name: str, taken: set[str]) -> str:
    while name in taken:
        name += "'"
    return name


def af_to_er_elimination(automaton: Automaton) -> EliminationResult:
    """Convert an automaton to a regex by eliminating its states one by one.

    Raises:
        AutomatonValidationError: If the automaton is malformed or lacks an
            initial or a final state.
    """
    initial = _require_initial_and_final(automaton)
    names = display_names(automaton)
    taken = set(names) | set(names.values())
    start = _fresh("I", taken)
    accept = _fresh("F", taken | {start})
    names[start], names[accept] = start, accept

    edges: dict[tuple[str, str], Regex] = {(start, initial): EPS}
    for frontier in calculate_frontiers(automaton):
        key = (frontier.source, frontier.target)
        edges[key] = union(edges.get(key, EMPTY), frontier.expression)
    for s in automaton.states:
        if s.is_final:
            edges[(s.id, accept)] = EPS

    steps: list[EliminationStep] = []

    def record(description: str, eliminated: str | None, explanation: str) -> None:
        snapshot = [(names[p], names[r], str(expr)) for (p, r), expr in edges.items()]
        steps.append(
            EliminationStep(len(steps) + 1, description, eliminated, snapshot, explanation)
        )

    record(
        "Generalized automaton",
        None,
        f"Added {start} --{EPSILON}--> {names[initial]} and {EPSILON}-edges from every final "
        f"state to {accept}; "
        "parallel transitions merged into one expression.",
    )

    for q in automaton.state_ids:
        loop = edges.pop((q, q), None)
        loop_star = star(loop) if loop is not None else EPS
        incoming = [(p, expr) for (p, r), expr in edges.items() if r == q]
        outgoing = [(r, expr) for (p, r), expr in edges.items() if p == q]
        for key in [k for k in edges if q in k]:
            del edges[key]
        updates = []
        for p, into in incoming:
            for r, out in outgoing:
                path = concat(into, loop_star, out)
                edges[(p, r)] = union(edges.get((p, r), EMPTY), path)
                updates.append(f"R({names[p]},{names[r]}) = {edges[(p, r)]}")
        name = names[q]
        if not updates:
            updates.append(f"{name} lies on no path from {start} to {accept}")
        record(
            f"Eliminate {name}",
            name,
            (f"Self-loop {loop} becomes ({loop})*. " if loop is not None else "")
            + "; ".join(updates),
        )

    regex = edges.get((start, accept), EMPTY)
    logger.debug(
        "State elimination for %s: %s (%d steps)", automaton.name or "automaton", regex, len(steps)
    )
    return EliminationResult(regex=regex, steps=steps)
