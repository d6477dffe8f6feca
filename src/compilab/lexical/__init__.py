"""Lexical analysis: regular expressions and finite automata."""

from compilab.lexical.af_to_er import (
    ArdenResult,
    EliminationResult,
    Equation,
    EquationStep,
    Frontier,
    af_to_er,
    af_to_er_elimination,
    calculate_frontiers,
    generate_equations,
)
from compilab.lexical.automaton import (
    EPSILON,
    Automaton,
    AutomatonKind,
    State,
    SubsetState,
    Transition,
    TransitionTable,
    automaton_stats,
    is_deterministic,
    make_automaton,
    transition_table,
)
from compilab.lexical.minimize import minimize_partition, optimize_by_significant_states
from compilab.lexical.recognize import (
    RecognitionOutcome,
    RecognitionResult,
    RecognitionStep,
    accepted_strings,
    acceptance_path,
    language_up_to,
    recognize_string,
    recognize_string_dfa,
    recognize_string_nfa,
    validate_strings,
)
from compilab.lexical.regex_parser import (
    NodeKind,
    RegexValidation,
    SyntaxTree,
    TreeNode,
    build_syntax_tree,
    tree_to_string,
    validate_regex,
)
from compilab.lexical.subset import (
    afn_to_afd,
    build_afd_full,
    build_afd_short,
    epsilon_closure,
    er_to_afd,
    move,
)
from compilab.lexical.thompson import er_to_afn

__all__ = [
    "EPSILON",
    "ArdenResult",
    "Automaton",
    "AutomatonKind",
    "EliminationResult",
    "Equation",
    "EquationStep",
    "Frontier",
    "NodeKind",
    "RecognitionOutcome",
    "RecognitionResult",
    "RecognitionStep",
    "RegexValidation",
    "State",
    "SubsetState",
    "SyntaxTree",
    "Transition",
    "TransitionTable",
    "TreeNode",
    "accepted_strings",
    "acceptance_path",
    "af_to_er",
    "af_to_er_elimination",
    "afn_to_afd",
    "automaton_stats",
    "build_afd_full",
    "build_afd_short",
    "build_syntax_tree",
    "calculate_frontiers",
    "epsilon_closure",
    "er_to_afd",
    "er_to_afn",
    "generate_equations",
    "is_deterministic",
    "language_up_to",
    "make_automaton",
    "minimize_partition",
    "move",
    "optimize_by_significant_states",
    "recognize_string",
    "recognize_string_dfa",
    "recognize_string_nfa",
    "transition_table",
    "tree_to_string",
    "validate_regex",
    "validate_strings",
]
