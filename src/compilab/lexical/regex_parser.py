"""Regular expression parser and syntax tree.

Pipeline: validate -> tokenize -> insert explicit concatenation -> postfix
(shunting-yard) -> tree.  The tree carries the position functions used by
the direct DFA construction:

- ``nullable``: the node can derive the empty string.
- ``firstpos`` / ``lastpos``: positions that can start / end a word of the node.
- ``followpos``: for each position, the positions that can follow it.

Syntax: single-character operands, ``|`` (union), juxtaposition
(concatenation), postfix ``*``, ``+`` and ``?``, parentheses for grouping and
``ε`` for the empty string and ``∅`` for the empty language.  Whitespace
is ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import assert_never

from compilab.errors import RegexSyntaxError, RegexValidationError
from compilab.lexical.automaton import EPSILON
from compilab.lexical.regex_ast import EMPTY_SET

logger = logging.getLogger(__name__)

END_MARKER = "#"
OPERATORS = frozenset("|*+?()")

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenKind(Enum):
    SYMBOL = "symbol"
    EPSILON = "epsilon"
    EMPTY = "empty"
    UNION = "|"
    CONCAT = "."
    STAR = "*"
    PLUS = "+"
    OPTIONAL = "?"
    LPAREN = "("
    RPAREN = ")"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str


_OPERATOR_TOKENS = {
    "|": TokenKind.UNION,
    "*": TokenKind.STAR,
    "+": TokenKind.PLUS,
    "?": TokenKind.OPTIONAL,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
}

_UNARY = {TokenKind.STAR, TokenKind.PLUS, TokenKind.OPTIONAL}
_PRECEDENCE = {
    TokenKind.UNION: 1,
    TokenKind.CONCAT: 2,
    TokenKind.STAR: 3,
    TokenKind.PLUS: 3,
    TokenKind.OPTIONAL: 3,
}

# A concatenation goes between a token that can end an operand and one that
# can start the next.
_LEAVES = {TokenKind.SYMBOL, TokenKind.EPSILON, TokenKind.EMPTY}
_ENDS_OPERAND = {*_LEAVES, TokenKind.RPAREN, *_UNARY}
_STARTS_OPERAND = {*_LEAVES, TokenKind.LPAREN}


def tokenize(regex: str) -> list[Token]:
    """Split a regex into single-character tokens, skipping whitespace."""
    tokens = []
    for ch in regex:
        if ch.isspace():
            continue
        if ch in _OPERATOR_TOKENS:
            tokens.append(Token(_OPERATOR_TOKENS[ch], ch))
        elif ch == EPSILON:
            tokens.append(Token(TokenKind.EPSILON, ch))
        elif ch == EMPTY_SET:
            tokens.append(Token(TokenKind.EMPTY, ch))
        else:
            tokens.append(Token(TokenKind.SYMBOL, ch))
    return tokens


def insert_concatenation(tokens: list[Token]) -> list[Token]:
    """Make implicit concatenation explicit with ``CONCAT`` tokens."""
    result: list[Token] = []
    for i, token in enumerate(tokens):
        result.append(token)
        if i + 1 < len(tokens):
            nxt = tokens[i + 1]
            if token.kind in _ENDS_OPERAND and nxt.kind in _STARTS_OPERAND:
                result.append(Token(TokenKind.CONCAT, "."))
    return result


def to_postfix(tokens: list[Token]) -> list[Token]:
    """Shunting-yard conversion; every operator is left-associative.

    Raises:
        RegexSyntaxError: On unbalanced parentheses.
    """
    output: list[Token] = []
    stack: list[Token] = []
    for token in tokens:
        if token.kind in _LEAVES:
            output.append(token)
        elif token.kind is TokenKind.LPAREN:
            stack.append(token)
        elif token.kind is TokenKind.RPAREN:
            while stack and stack[-1].kind is not TokenKind.LPAREN:
                output.append(stack.pop())
            if not stack:
                raise RegexSyntaxError("Unbalanced ')' in token stream")
            stack.pop()
        else:
            precedence = _PRECEDENCE[token.kind]
            while (
                stack
                and stack[-1].kind is not TokenKind.LPAREN
                and _PRECEDENCE[stack[-1].kind] >= precedence
            ):
                output.append(stack.pop())
            stack.append(token)
    while stack:
        token = stack.pop()
        if token.kind is TokenKind.LPAREN:
            raise RegexSyntaxError("Unbalanced '(' in token stream")
        output.append(token)
    return output


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class RegexValidation:
    """Outcome of ``validate_regex``."""

    is_valid: bool
    errors: list[str]
    alphabet: list[str]


def get_alphabet(regex: str) -> list[str]:
    """Sorted operand characters of a regex (ε, ∅ and whitespace excluded)."""
    return sorted(
        {
            ch
            for ch in regex
            if ch not in OPERATORS and ch not in (EPSILON, EMPTY_SET) and not ch.isspace()
        }
    )


def validate_regex(regex: str) -> RegexValidation:
    """Check a regex for syntax problems without building anything."""
    errors: list[str] = []
    compact = "".join(ch for ch in regex if not ch.isspace())
    if not compact:
        return RegexValidation(False, ["Regular expression cannot be empty"], [])

    depth = 0
    for i, ch in enumerate(compact):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                errors.append(f"Unmatched ')' at position {i}")
                depth = 0
    if depth > 0:
        errors.append(f"{depth} unclosed '(' parenthesis" + ("es" if depth > 1 else ""))

    if "||" in compact:
        errors.append("Consecutive '|' operators")
    if compact.startswith("|"):
        errors.append("Regular expression cannot start with '|'")
    if compact.endswith("|"):
        errors.append("Regular expression cannot end with '|'")
    if "(|" in compact:
        errors.append("'|' cannot follow '('")
    if "|)" in compact:
        errors.append("'|' cannot precede ')'")
    if "()" in compact:
        errors.append("Empty parentheses '()'")
    for i, ch in enumerate(compact):
        if ch in "*+?" and (i == 0 or compact[i - 1] in "(|"):
            errors.append(f"Operator '{ch}' at position {i} has no operand")

    return RegexValidation(not errors, errors, get_alphabet(regex))


# ---------------------------------------------------------------------------
# Syntax tree
# ---------------------------------------------------------------------------


class NodeKind(Enum):
    SYMBOL = "SYMBOL"
    CONCAT = "CONCAT"
    UNION = "UNION"
    STAR = "STAR"
    PLUS = "PLUS"
    OPTIONAL = "OPTIONAL"
    EPSILON = "EPSILON"
    EMPTY = "EMPTY"


@dataclass(eq=False)
class TreeNode:
    """A syntax tree node.

    Attributes:
        kind: Node tag.
        children: Operands (two for CONCAT/UNION, one for STAR/PLUS/OPTIONAL).
        symbol: Operand character for SYMBOL leaves.
        position: 1-based position for SYMBOL leaves.
        nullable: Whether the node derives the empty string.
        firstpos: Positions that can begin a word of the node.
        lastpos: Positions that can end a word of the node.
    """

    kind: NodeKind
    children: list[TreeNode] = field(default_factory=list)
    symbol: str | None = None
    position: int | None = None
    nullable: bool = False
    firstpos: frozenset[int] = frozenset()
    lastpos: frozenset[int] = frozenset()

    def walk(self) -> Iterator[TreeNode]:
        """Yield the subtree in pre-order, children left to right."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class SyntaxTree:
    """A regex syntax tree with its position functions.

    Attributes:
        regex: Source text the tree was built from (augmented when applicable).
        root: Root node.
        alphabet: Operand symbols, sorted (the end marker is excluded).
        followpos: position -> positions that can follow it.
        symbols: position -> operand character.
        end_position: Position of the ``#`` end marker for augmented trees.
    """

    regex: str
    root: TreeNode
    alphabet: list[str]
    followpos: dict[int, set[int]]
    symbols: dict[int, str]
    end_position: int | None = None

    @property
    def nullable(self) -> bool:
        return self.root.nullable

    @property
    def firstpos(self) -> frozenset[int]:
        return self.root.firstpos

    @property
    def lastpos(self) -> frozenset[int]:
        return self.root.lastpos

    @property
    def positions(self) -> list[int]:
        return sorted(self.symbols)


_NODE_FOR_UNARY = {
    TokenKind.STAR: NodeKind.STAR,
    TokenKind.PLUS: NodeKind.PLUS,
    TokenKind.OPTIONAL: NodeKind.OPTIONAL,
}


def _tree_from_postfix(postfix: list[Token]) -> TreeNode:
    stack: list[TreeNode] = []
    for token in postfix:
        if token.kind is TokenKind.SYMBOL:
            stack.append(TreeNode(NodeKind.SYMBOL, symbol=token.value))
        elif token.kind is TokenKind.EPSILON:
            stack.append(TreeNode(NodeKind.EPSILON))
        elif token.kind is TokenKind.EMPTY:
            stack.append(TreeNode(NodeKind.EMPTY))
        elif token.kind in _NODE_FOR_UNARY:
            if not stack:
                raise RegexSyntaxError(f"Operator '{token.value}' is missing its operand")
            stack.append(TreeNode(_NODE_FOR_UNARY[token.kind], [stack.pop()]))
        elif token.kind in (TokenKind.CONCAT, TokenKind.UNION):
            if len(stack) < 2:
                raise RegexSyntaxError(f"Operator '{token.value}' is missing an operand")
            right = stack.pop()
            left = stack.pop()
            kind = NodeKind.CONCAT if token.kind is TokenKind.CONCAT else NodeKind.UNION
            stack.append(TreeNode(kind, [left, right]))
        else:
            raise RegexSyntaxError(f"Unexpected token {token.value!r} in postfix expression")
    if len(stack) != 1:
        raise RegexSyntaxError(
            f"Malformed expression: {len(stack)} operands left after reduction"
        )
    return stack[0]


def _annotate(node: TreeNode) -> None:
    """Fill nullable/firstpos/lastpos bottom-up."""
    for child in node.children:
        _annotate(child)
    kind = node.kind
    if kind is NodeKind.SYMBOL:
        assert node.position is not None
        node.nullable = False
        node.firstpos = node.lastpos = frozenset({node.position})
    elif kind is NodeKind.EPSILON:
        node.nullable = True
        node.firstpos = node.lastpos = frozenset()
    elif kind is NodeKind.EMPTY:
        node.nullable = False
        node.firstpos = node.lastpos = frozenset()
    elif kind is NodeKind.UNION:
        left, right = node.children
        node.nullable = left.nullable or right.nullable
        node.firstpos = left.firstpos | right.firstpos
        node.lastpos = left.lastpos | right.lastpos
    elif kind is NodeKind.CONCAT:
        left, right = node.children
        node.nullable = left.nullable and right.nullable
        node.firstpos = left.firstpos | right.firstpos if left.nullable else left.firstpos
        node.lastpos = left.lastpos | right.lastpos if right.nullable else right.lastpos
    elif kind is NodeKind.STAR or kind is NodeKind.OPTIONAL:
        (child,) = node.children
        node.nullable = True
        node.firstpos, node.lastpos = child.firstpos, child.lastpos
    elif kind is NodeKind.PLUS:
        (child,) = node.children
        node.nullable = child.nullable
        node.firstpos, node.lastpos = child.firstpos, child.lastpos
    else:
        assert_never(kind)


def _followpos(root: TreeNode, positions: list[int]) -> dict[int, set[int]]:
    follow: dict[int, set[int]] = {p: set() for p in positions}
    for node in root.walk():
        if node.kind is NodeKind.CONCAT:
            left, right = node.children
            for p in left.lastpos:
                follow[p] |= right.firstpos
        elif node.kind is NodeKind.STAR or node.kind is NodeKind.PLUS:
            (child,) = node.children
            for p in child.lastpos:
                follow[p] |= child.firstpos
    return follow


def build_syntax_tree(regex: str, *, augment: bool = False) -> SyntaxTree:
    """Parse a regex into an annotated syntax tree.

    Args:
        regex: Regular expression text.
        augment: Build the tree of ``(regex)#`` for the direct DFA method.

    Returns:
        The tree with nullable/firstpos/lastpos on every node and followpos.

    Raises:
        RegexValidationError: If ``validate_regex`` finds problems.
        RegexSyntaxError: If the postfix expression does not fold into a tree.
    """
    validation = validate_regex(regex)
    if not validation.is_valid:
        raise RegexValidationError(validation.errors)

    postfix = to_postfix(insert_concatenation(tokenize(regex)))
    root = _tree_from_postfix(postfix)
    if augment:
        root = TreeNode(NodeKind.CONCAT, [root, TreeNode(NodeKind.SYMBOL, symbol=END_MARKER)])

    symbols: dict[int, str] = {}
    for node in root.walk():
        if node.kind is NodeKind.SYMBOL:
            assert node.symbol is not None
            node.position = len(symbols) + 1
            symbols[node.position] = node.symbol
    _annotate(root)
    followpos = _followpos(root, sorted(symbols))

    end_position = max(symbols) if augment else None
    logger.debug("Syntax tree for %r: %d positions", regex, len(symbols))
    return SyntaxTree(
        regex=f"({regex}){END_MARKER}" if augment else regex,
        root=root,
        alphabet=validation.alphabet,
        followpos=followpos,
        symbols=symbols,
        end_position=end_position,
    )


def tree_to_string(node: TreeNode, indent: int = 0) -> str:
    """Indented multi-line rendering of a subtree with its position sets."""
    if node.kind is NodeKind.SYMBOL:
        head = f"{node.symbol} [{node.position}]"
    elif node.kind is NodeKind.EPSILON:
        head = EPSILON
    elif node.kind is NodeKind.EMPTY:
        head = EMPTY_SET
    else:
        head = node.kind.value
    line = (
        "  " * indent
        + f"{head}  nullable={node.nullable} "
        + f"firstpos={sorted(node.firstpos)} lastpos={sorted(node.lastpos)}"
    )
    return "\n".join([line, *(tree_to_string(c, indent + 1) for c in node.children)])
