"""Syntax analysis: grammars, LL(1), LR and operator-precedence parsing."""

from compilab.syntax.first_follow import (
    FirstFollow,
    RuleCitation,
    compute_first,
    compute_follow,
    first_of_sequence,
    generate_first_follow,
    generate_first_follow_with_rules,
)
from compilab.syntax.grammar import (
    END_MARKER,
    EPSILON,
    Grammar,
    ParseResult,
    ParseStep,
    Production,
    grammar_to_text,
    parse_grammar,
)
from compilab.syntax.ll1 import (
    GrammarTransformation,
    LL1Check,
    LLAnalysis,
    ParsingTable,
    analyze_descendente,
    build_parsing_table,
    eliminate_left_recursion,
    is_ll1,
    left_factorize,
    parse_string_ll,
    transform_grammar,
)
from compilab.syntax.lr import (
    ActionEntry,
    ActionKind,
    LRAnalysis,
    LRAutomaton,
    LRConflict,
    LRItem,
    LRTable,
    analyze_ascendente,
    augment_grammar,
    build_lr0_item_nfa,
    build_lr_table,
    canonical_lr0,
    canonical_lr1,
    format_canonical_sets,
    lalr,
    parse_lr,
)
from compilab.syntax.precedence import (
    PrecedenceTable,
    analyze_precedence,
    build_precedence_table,
    compute_leading,
    compute_trailing,
    format_precedence_table,
    is_operator_grammar,
    parse_string_precedence,
)

__all__ = [
    "END_MARKER",
    "EPSILON",
    "ActionEntry",
    "ActionKind",
    "FirstFollow",
    "Grammar",
    "GrammarTransformation",
    "LL1Check",
    "LLAnalysis",
    "LRAnalysis",
    "LRAutomaton",
    "LRConflict",
    "LRItem",
    "LRTable",
    "ParseResult",
    "ParseStep",
    "ParsingTable",
    "PrecedenceTable",
    "Production",
    "RuleCitation",
    "analyze_ascendente",
    "analyze_descendente",
    "analyze_precedence",
    "augment_grammar",
    "build_lr0_item_nfa",
    "build_lr_table",
    "build_parsing_table",
    "build_precedence_table",
    "canonical_lr0",
    "canonical_lr1",
    "compute_first",
    "compute_follow",
    "compute_leading",
    "compute_trailing",
    "eliminate_left_recursion",
    "first_of_sequence",
    "format_canonical_sets",
    "format_precedence_table",
    "generate_first_follow",
    "generate_first_follow_with_rules",
    "grammar_to_text",
    "is_ll1",
    "is_operator_grammar",
    "lalr",
    "left_factorize",
    "parse_grammar",
    "parse_lr",
    "parse_string_ll",
    "parse_string_precedence",
    "transform_grammar",
]
