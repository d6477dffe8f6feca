"""Plain-text reports rendered with Jinja2.

Each report is a named template over the result objects of one algorithm
family.  Tables are padded to the widest cell per column by ``_grid``
before rendering.
"""

from __future__ import annotations

from collections.abc import Sequence

import jinja2

from compilab.lexical.af_to_er import ArdenResult, EliminationResult, format_frontiers
from compilab.lexical.automaton import Automaton, automaton_stats, transition_table
from compilab.lexical.recognize import RecognitionResult
from compilab.lexical.regex_parser import SyntaxTree, tree_to_string
from compilab.syntax.grammar import ParseResult
from compilab.syntax.ll1 import LLAnalysis
from compilab.syntax.lr import LRAnalysis
from compilab.syntax.precedence import PrecedenceAnalysis, format_precedence_table


def _grid(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> list[str]:
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def line(cells: Sequence[str]) -> str:
        return " | ".join(c.ljust(w) for c, w in zip(cells, widths)).rstrip()

    rule = "-+-".join("-" * w for w in widths)
    return [line(headers), rule, *(line(r) for r in rows)]


# ---------------------------------------------------------------------------
# Template strings
# ---------------------------------------------------------------------------

_AUTOMATON_TEMPLATE = """\
{{ title }}
{{ "=" * title|length }}
Type: {{ automaton.kind.value }}   States: {{ stats.states }}   \
Transitions: {{ stats.transitions }}   Alphabet: {{ automaton.alphabet|join(", ") }}
{% for line in table %}
{{ line }}
{% endfor %}
{% if automaton.subset_states %}

Subsets:
{% for s in automaton.subset_states %}
  {{ s.label }} = {{ "{" ~ s.nfa_states|join(", ") ~ "}" }}
{% endfor %}
{% endif %}
"""

_TREE_TEMPLATE = """\
Syntax tree of {{ tree.regex }}
{{ rendered }}

followpos:
{% for line in followpos %}
{{ line }}
{% endfor %}
"""

_ARDEN_TEMPLATE = """\
Frontiers:
{% for line in frontiers %}
  {{ line }}
{% endfor %}

Elimination order: {{ result.order_labels|join(", ") }}
{% for step in result.steps %}

{{ step.step_number }}. {{ step.description }}
{% if step.explanation %}
   {{ step.explanation }}
{% endif %}
{% for equation in step.equations %}
   {{ equation }}
{% endfor %}
{% endfor %}

Regular expression: {{ result.text }}
"""

_ELIMINATION_TEMPLATE = """\
{% for step in result.steps %}
{{ step.step_number }}. {{ step.description }}
{% for source, target, label in step.edges %}
   {{ source }} --{{ label }}--> {{ target }}
{% endfor %}
{% endfor %}

Regular expression: {{ result.text }}
"""

_RECOGNITION_TEMPLATE = """\
{% for line in trace %}
{{ line }}
{% endfor %}
{{ result.message }}
"""

_PARSE_TEMPLATE = """\
{% for line in trace %}
{{ line }}
{% endfor %}
{% if result.accepted %}
Accepted
{% else %}
Rejected: {{ result.error }}
{% endif %}
"""

_LL1_TEMPLATE = """\
Transformations:
{% for line in analysis.transformation.steps %}
  {{ line }}
{% endfor %}

Grammar:
{% for line in grammar_text %}
  {{ line }}
{% endfor %}

{% for line in sets %}
{{ line }}
{% endfor %}

Parsing table:
{% for line in table %}
{{ line }}
{% endfor %}

{% if analysis.is_ll1 %}
The grammar is LL(1).
{% else %}
The grammar is not LL(1):
{% for conflict in analysis.conflicts %}
  {{ conflict }}
{% endfor %}
{% endif %}
"""

_LR_TEMPLATE = """\
{{ analysis.table.automaton.kind }} item sets:

{{ analysis.canonical_sets }}

{{ method }} table:
{% for line in table %}
{{ line }}
{% endfor %}

{% if analysis.table.conflicts %}
Conflicts:
{% for conflict in analysis.table.conflicts %}
  {{ conflict }}
{% endfor %}
{% else %}
No conflicts.
{% endif %}
"""

_PRECEDENCE_TEMPLATE = """\
{% if not table.is_operator_grammar %}
Not an operator grammar:
{% for reason in table.operator_errors %}
  {{ reason }}
{% endfor %}

{% endif %}
{% for line in sets %}
{{ line }}
{% endfor %}

{% for step in table.steps %}
{{ step.production }}: {{ step.explanation|join("; ") }}
{% endfor %}

{{ matrix }}
{% if table.conflicts %}

Conflicts:
{% for conflict in table.conflicts %}
  {{ conflict }}
{% endfor %}
{% endif %}
"""

# ---------------------------------------------------------------------------
# Compiled templates
# ---------------------------------------------------------------------------

_ENV = jinja2.Environment(
    undefined=jinja2.StrictUndefined, trim_blocks=True, lstrip_blocks=True
)

_TEMPLATES: dict[str, jinja2.Template] = {
    "automaton": _ENV.from_string(_AUTOMATON_TEMPLATE),
    "tree": _ENV.from_string(_TREE_TEMPLATE),
    "arden": _ENV.from_string(_ARDEN_TEMPLATE),
    "elimination": _ENV.from_string(_ELIMINATION_TEMPLATE),
    "recognition": _ENV.from_string(_RECOGNITION_TEMPLATE),
    "parse": _ENV.from_string(_PARSE_TEMPLATE),
    "ll1": _ENV.from_string(_LL1_TEMPLATE),
    "lr": _ENV.from_string(_LR_TEMPLATE),
    "precedence": _ENV.from_string(_PRECEDENCE_TEMPLATE),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_automaton(automaton: Automaton, title: str | None = None) -> str:
    table = transition_table(automaton)
    return _TEMPLATES["automaton"].render(
        title=title or automaton.name or automaton.kind.value,
        automaton=automaton,
        stats=automaton_stats(automaton),
        table=_grid(table.headers, table.rows),
    )


def render_syntax_tree(tree: SyntaxTree) -> str:
    followpos = _grid(
        ["Position", "Symbol", "followpos"],
        [
            [str(p), tree.symbols[p], "{" + ", ".join(map(str, sorted(tree.followpos[p]))) + "}"]
            for p in tree.positions
        ],
    )
    return _TEMPLATES["tree"].render(
        tree=tree, rendered=tree_to_string(tree.root), followpos=followpos
    )


def render_arden(result: ArdenResult) -> str:
    return _TEMPLATES["arden"].render(result=result, frontiers=format_frontiers(result.frontiers))


def render_elimination(result: EliminationResult) -> str:
    return _TEMPLATES["elimination"].render(result=result)


def render_recognition(result: RecognitionResult) -> str:
    trace = _grid(
        ["Step", "State", "Symbol", "Next", "Remaining"],
        [
            [str(s.step_number), s.current_state, s.symbol, s.next_state, s.remaining_input]
            for s in result.steps
        ],
    )
    return _TEMPLATES["recognition"].render(result=result, trace=trace)


def render_parse(result: ParseResult) -> str:
    """Trace of an LL, LR or precedence parse."""
    trace = _grid(
        ["Step", "Stack", "Input", "Action"],
        [
            [str(s.step_number), " ".join(s.stack), " ".join(s.input), s.action]
            for s in result.steps
        ],
    )
    return _TEMPLATES["parse"].render(result=result, trace=trace)


def render_ll1(analysis: LLAnalysis) -> str:
    ff = analysis.first_follow
    grammar = analysis.grammar
    sets = _grid(
        ["Non-terminal", "FIRST", "FOLLOW"],
        [
            [
                nt,
                "{" + ", ".join(ff.ordered(ff.first[nt])) + "}",
                "{" + ", ".join(ff.ordered(ff.follow[nt])) + "}",
            ]
            for nt in grammar.non_terminals
        ],
    )
    table = analysis.table
    rows = []
    for nt in table.non_terminals:
        row = [nt]
        for t in table.terminals:
            production = table.get(nt, t)
            row.append(str(production) if production is not None else "")
        rows.append(row)
    return _TEMPLATES["ll1"].render(
        analysis=analysis,
        grammar_text=str(grammar).splitlines(),
        sets=sets,
        table=_grid(["", *table.terminals], rows),
    )


def render_lr(analysis: LRAnalysis) -> str:
    table = analysis.table
    headers = ["State", *table.terminals, *table.non_terminals]
    rows = []
    for state in table.automaton.states:
        row = [str(state.id)]
        for t in table.terminals:
            entry = table.action[state.id].get(t)
            row.append(str(entry) if entry is not None else "")
        for nt in table.non_terminals:
            target = table.goto[state.id].get(nt)
            row.append(str(target) if target is not None else "")
        rows.append(row)
    return _TEMPLATES["lr"].render(
        analysis=analysis,
        method=table.method.upper(),
        table=_grid(headers, rows),
    )


def render_precedence(analysis: PrecedenceAnalysis) -> str:
    table = analysis.table
    sets = _grid(
        ["Non-terminal", "LEADING", "TRAILING"],
        [
            [
                nt,
                "{" + ", ".join(sorted(table.leading[nt])) + "}",
                "{" + ", ".join(sorted(table.trailing[nt])) + "}",
            ]
            for nt in table.grammar.non_terminals
        ],
    )
    return _TEMPLATES["precedence"].render(
        table=table, sets=sets, matrix=format_precedence_table(table)
    )
