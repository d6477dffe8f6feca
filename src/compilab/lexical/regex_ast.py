"""Regular expression AST with structural simplification.

Expressions are immutable.  Build them with ``union``, ``concat`` and
``star`` rather than the node constructors: the builders keep every
expression in a normal form (flattened, without ∅/ε identities, without
duplicate alternatives), so equal languages built the same way compare
equal and print without redundant parentheses.
"""

from __future__ import annotations

from dataclasses import dataclass

from compilab.lexical.automaton import EPSILON

EMPTY_SET = "∅"

# Binding strength used when printing.
_UNION_PREC = 0
_CONCAT_PREC = 1
_STAR_PREC = 2
_ATOM_PREC = 3


class Regex:
    """Base class of all expression nodes."""

    precedence = _ATOM_PREC

    @property
    def nullable(self) -> bool:
        raise NotImplementedError

    def _wrapped(self, min_precedence: int) -> str:
        text = str(self)
        return f"({text})" if self.precedence < min_precedence else text


@dataclass(frozen=True)
class Empty(Regex):
    """The empty language ∅."""

    @property
    def nullable(self) -> bool:
        return False

    def __str__(self) -> str:
        return EMPTY_SET


@dataclass(frozen=True)
class Epsilon(Regex):
    """The language containing only the empty string."""

    @property
    def nullable(self) -> bool:
        return True

    def __str__(self) -> str:
        return EPSILON


@dataclass(frozen=True)
class Symbol(Regex):
    char: str

    @property
    def nullable(self) -> bool:
        return False

    def __str__(self) -> str:
        return self.char


@dataclass(frozen=True)
class Union(Regex):
    items: tuple[Regex, ...]

    precedence = _UNION_PREC

    @property
    def nullable(self) -> bool:
        return any(item.nullable for item in self.items)

    def __str__(self) -> str:
        return "|".join(item._wrapped(_CONCAT_PREC) for item in self.items)


@dataclass(frozen=True)
class Concat(Regex):
    items: tuple[Regex, ...]

    precedence = _CONCAT_PREC

    @property
    def nullable(self) -> bool:
        return all(item.nullable for item in self.items)

    def __str__(self) -> str:
        return "".join(item._wrapped(_CONCAT_PREC) for item in self.items)


@dataclass(frozen=True)
class Star(Regex):
    inner: Regex

    precedence = _STAR_PREC

    @property
    def nullable(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"{self.inner._wrapped(_ATOM_PREC)}*"


EMPTY = Empty()
EPS = Epsilon()


# ---------------------------------------------------------------------------
# Smart constructors
# ---------------------------------------------------------------------------


def symbol(char: str) -> Regex:
    if char == EPSILON:
        return EPS
    return Symbol(char)


def union(*items: Regex) -> Regex:
    """Alternation.

    Flattens nested unions, drops ∅, removes duplicates (first occurrence
    wins) and drops ε when another alternative is already nullable.
    """
    flat: list[Regex] = []
    for item in items:
        parts = item.items if isinstance(item, Union) else (item,)
        for part in parts:
            if isinstance(part, Empty) or part in flat:
                continue
            flat.append(part)
    if EPS in flat and any(p.nullable for p in flat if p != EPS):
        flat.remove(EPS)
    if not flat:
        return EMPTY
    if len(flat) == 1:
        return flat[0]
    return Union(tuple(flat))


def concat(*items: Regex) -> Regex:
    """Concatenation.

    ∅ absorbs, ε is the identity, nested concatenations are flattened and
    adjacent identical stars collapse (``a*a*`` is ``a*``).
    """
    flat: list[Regex] = []
    for item in items:
        if isinstance(item, Empty):
            return EMPTY
        parts = item.items if isinstance(item, Concat) else (item,)
        for part in parts:
            if isinstance(part, Epsilon):
                continue
            if isinstance(part, Star) and flat and flat[-1] == part:
                continue
            flat.append(part)
    if not flat:
        return EPS
    if len(flat) == 1:
        return flat[0]
    return Concat(tuple(flat))


def star(inner: Regex) -> Regex:
    """Kleene star: ``∅* = ε* = ε``, ``(r*)* = r*`` and ``(ε|r)* = r*``."""
    if isinstance(inner, (Empty, Epsilon)):
        return EPS
    if isinstance(inner, Star):
        return inner
    if isinstance(inner, Union) and EPS in inner.items:
        return star(union(*(item for item in inner.items if item != EPS)))
    return Star(inner)


def size(expr: Regex) -> int:
    """Number of nodes; a rough measure of how readable an expression is."""
    if isinstance(expr, (Union, Concat)):
        return 1 + sum(size(item) for item in expr.items)
    if isinstance(expr, Star):
        return 1 + size(expr.inner)
    return 1
