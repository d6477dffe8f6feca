"""Context-free grammar model and text format.

Grammar text holds one rule per line::

    E -> E + T | T
    T -> T * F | F
    F -> ( E ) | id

Symbols are separated by whitespace, ``→`` may replace ``->`` and ``ε`` (or
``epsilon``) stands for the empty body.  Lines starting with ``#`` are
comments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from compilab.errors import GrammarValidationError

logger = logging.getLogger(__name__)

EPSILON = "ε"
END_MARKER = "$"

_ARROWS = ("->", "→")
_EPSILON_SPELLINGS = {EPSILON, "epsilon", "eps"}


@dataclass(frozen=True)
class Production:
    """``left → right``; an empty ``right`` is an ε-production.

    ``number`` is the position in the owning grammar and does not take part
    in equality, so the same rule in two grammars compares equal.
    """

    left: str
    right: tuple[str, ...]
    number: int = field(default=0, compare=False)

    @property
    def is_epsilon(self) -> bool:
        return not self.right

    def body(self) -> str:
        return " ".join(self.right) if self.right else EPSILON

    def __str__(self) -> str:
        return f"{self.left} → {self.body()}"


@dataclass
class Grammar:
    """An ordered set of productions.

    Attributes:
        productions: Rules in order; ``number`` matches the list index.
        terminals: Terminal symbols in first-use order.
        non_terminals: Non-terminals in first-definition order.
        start_symbol: The start non-terminal.
    """

    productions: list[Production]
    terminals: list[str]
    non_terminals: list[str]
    start_symbol: str

    @classmethod
    def from_rules(
        cls,
        rules: list[tuple[str, tuple[str, ...] | list[str]]],
        terminals: list[str],
        start_symbol: str | None = None,
        non_terminals: list[str] | None = None,
        first_number: int = 0,
    ) -> Grammar:
        """Build a grammar, numbering productions from ``first_number``."""
        productions = [
            Production(left, tuple(right), first_number + i)
            for i, (left, right) in enumerate(rules)
        ]
        if non_terminals is None:
            non_terminals = []
            for p in productions:
                if p.left not in non_terminals:
                    non_terminals.append(p.left)
        if start_symbol is None:
            start_symbol = productions[0].left if productions else ""
        return cls(productions, list(terminals), list(non_terminals), start_symbol)

    def renumbered(self, first_number: int = 0) -> Grammar:
        return Grammar.from_rules(
            [(p.left, p.right) for p in self.productions],
            self.terminals,
            self.start_symbol,
            self.non_terminals,
            first_number,
        )

    def productions_for(self, non_terminal: str) -> list[Production]:
        return [p for p in self.productions if p.left == non_terminal]

    def is_terminal(self, symbol: str) -> bool:
        return symbol in self.terminals or symbol == END_MARKER

    def is_non_terminal(self, symbol: str) -> bool:
        return symbol in self.non_terminals

    @property
    def symbols(self) -> list[str]:
        return [*self.non_terminals, *self.terminals]

    def errors(self) -> list[str]:
        """Every broken invariant, without raising."""
        errors: list[str] = []
        if not self.productions:
            errors.append("Grammar has no productions")
        if not self.start_symbol:
            errors.append("Grammar has no start symbol")
        elif self.start_symbol not in self.non_terminals:
            errors.append(f"Start symbol {self.start_symbol!r} is not a non-terminal")
        overlap = set(self.terminals) & set(self.non_terminals)
        for symbol in sorted(overlap):
            errors.append(f"Symbol {symbol!r} is both terminal and non-terminal")
        for reserved in (EPSILON, END_MARKER):
            if reserved in self.terminals or reserved in self.non_terminals:
                errors.append(f"Reserved symbol {reserved!r} cannot be a grammar symbol")
        defined = {p.left for p in self.productions}
        for nt in self.non_terminals:
            if nt not in defined:
                errors.append(f"Non-terminal {nt!r} has no productions")
        for p in self.productions:
            if p.left not in self.non_terminals:
                errors.append(f"Left-hand side {p.left!r} of '{p}' is not a non-terminal")
            for symbol in p.right:
                if symbol not in self.terminals and symbol not in self.non_terminals:
                    errors.append(
                        f"Symbol {symbol!r} in '{p}' is neither terminal nor non-terminal"
                    )
        return errors

    def validate(self) -> None:
        """Raise ``GrammarValidationError`` listing every broken invariant."""
        errors = self.errors()
        if errors:
            raise GrammarValidationError(errors)

    def __str__(self) -> str:
        return grammar_to_text(self)


# ---------------------------------------------------------------------------
# Text format
# ---------------------------------------------------------------------------


def _split_rule(line: str, lineno: int) -> tuple[str, str]:
    for arrow in _ARROWS:
        if arrow in line:
            left, right = line.split(arrow, 1)
            return left.strip(), right.strip()
    raise GrammarValidationError([f"Line {lineno}: expected 'A -> ...', got {line!r}"])


def parse_grammar(text: str, terminals: list[str] | None = None) -> Grammar:
    """Parse grammar text.

    Args:
        text: One rule per line, alternatives separated by ``|``.
        terminals: Explicit terminal symbols.  When omitted, a symbol is a
            non-terminal if it has a rule or starts with an uppercase letter;
            everything else is a terminal.

    Returns:
        A validated grammar whose start symbol is the first left-hand side.

    Raises:
        GrammarValidationError: On malformed lines or an invalid grammar.
    """
    rules: list[tuple[str, list[str]]] = []
    errors: list[str] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            left, right = _split_rule(line, lineno)
        except GrammarValidationError as exc:
            errors.extend(exc.errors)
            continue
        if not left or len(left.split()) != 1:
            errors.append(f"Line {lineno}: left-hand side must be a single symbol, got {left!r}")
            continue
        for alternative in right.split("|"):
            symbols = [s for s in alternative.split() if s not in _EPSILON_SPELLINGS]
            if not alternative.strip():
                errors.append(f"Line {lineno}: empty alternative (write {EPSILON} instead)")
                continue
            rules.append((left, symbols))
    if errors:
        raise GrammarValidationError(errors)

    non_terminals: list[str] = []
    for left, _ in rules:
        if left not in non_terminals:
            non_terminals.append(left)
    terminal_list: list[str] = []
    explicit = set(terminals) if terminals is not None else None
    for _, right in rules:
        for symbol in right:
            if symbol in non_terminals or symbol in terminal_list:
                continue
            if explicit is not None:
                if symbol in explicit:
                    terminal_list.append(symbol)
                else:
                    non_terminals.append(symbol)
            elif symbol[0].isupper():
                non_terminals.append(symbol)
            else:
                terminal_list.append(symbol)
    if terminals is not None:
        terminal_list += [t for t in terminals if t not in terminal_list]

    grammar = Grammar.from_rules(rules, terminal_list, non_terminals=non_terminals)
    grammar.validate()
    logger.debug(
        "Parsed grammar: %d productions, %d terminals, %d non-terminals",
        len(grammar.productions),
        len(grammar.terminals),
        len(grammar.non_terminals),
    )
    return grammar


def grammar_to_text(grammar: Grammar) -> str:
    """Render one line per non-terminal, alternatives joined with ``|``."""
    lines = []
    for nt in grammar.non_terminals:
        bodies = [p.body() for p in grammar.productions_for(nt)]
        if bodies:
            lines.append(f"{nt} → {' | '.join(bodies)}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Parse traces (shared by the LL, LR and precedence parsers)
# ---------------------------------------------------------------------------


def tokenize_input(text: str) -> list[str]:
    """Whitespace-separated input tokens followed by the end marker."""
    return [*text.split(), END_MARKER]


@dataclass
class ParseStep:
    step_number: int
    stack: list[str]
    input: list[str]
    action: str
    output: str = ""


@dataclass
class ParseResult:
    """Verdict and trace of a parse.

    Attributes:
        accepted: Whether the input belongs to the language.
        steps: One entry per parser move, starting with the initial configuration.
        error: Why the input was rejected (``None`` when accepted).
        output: Productions applied, in order (derivation for LL, reverse
            rightmost derivation for LR and precedence parsing).
    """

    accepted: bool
    steps: list[ParseStep]
    error: str | None = None
    output: list[str] = field(default_factory=list)
