"""FastAPI application exposing the analyses over HTTP."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator, Iterator
from typing import Any

import orjson
from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, ConfigDict, field_validator
from sse_starlette.sse import EventSourceResponse

from compilab.config import DEFAULT_CONFIG, AnalysisConfig
from compilab.errors import ConvergenceError, ValidationError
from compilab.lexical.af_to_er import af_to_er, af_to_er_elimination, format_equations
from compilab.lexical.automaton import (
    EPSILON,
    Automaton,
    State,
    Transition,
    automaton_stats,
    classify,
    transition_table,
)
from compilab.lexical.minimize import minimize_partition, optimize_by_significant_states
from compilab.lexical.recognize import accepted_strings, recognize_string
from compilab.lexical.regex_parser import build_syntax_tree, tree_to_string, validate_regex
from compilab.lexical.subset import afd_from_syntax_tree, afn_to_afd
from compilab.lexical.thompson import er_to_afn
from compilab.serialize import dumps
from compilab.syntax.grammar import Grammar, parse_grammar
from compilab.syntax.ll1 import analyze_descendente, parse_string_ll
from compilab.syntax.lr import analyze_ascendente
from compilab.syntax.precedence import analyze_precedence, format_precedence_table

logger = logging.getLogger(__name__)

_DFA_METHODS = {"subset", "direct"}
_MINIMIZATIONS = {"none", "partition", "significant"}
_REGEX_METHODS = {"arden", "elimination"}
_LR_METHODS = {"lr0", "slr", "lr1", "lalr"}


def _choice(value: str | None, valid: set[str], name: str) -> str | None:
    if value is not None and value not in valid:
        raise ValueError(f"{name} must be one of {sorted(valid)}")
    return value


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class RegexRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    regex: str


class DFARequest(BaseModel):
    """Request body for ``/v1/regex/dfa``; ``minimize`` defaults to the config."""

    model_config = ConfigDict(extra="forbid")

    regex: str
    method: str = "subset"
    minimize: str | None = None

    @field_validator("method")
    @classmethod
    def method_known(cls, v: str) -> str:
        _choice(v, _DFA_METHODS, "method")
        return v

    @field_validator("minimize")
    @classmethod
    def minimize_known(cls, v: str | None) -> str | None:
        return _choice(v, _MINIMIZATIONS, "minimize")


class StateModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    label: str = ""
    is_initial: bool = False
    is_final: bool = False


class TransitionModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: str
    target: str
    symbol: str


class AutomatonModel(BaseModel):
    """An automaton as JSON.  The alphabet defaults to the non-ε symbols used."""

    model_config = ConfigDict(extra="forbid")

    states: list[StateModel]
    transitions: list[TransitionModel]
    alphabet: list[str] | None = None
    name: str = ""

    def to_automaton(self) -> Automaton:
        transitions = [Transition(t.source, t.target, t.symbol) for t in self.transitions]
        alphabet = self.alphabet
        if alphabet is None:
            alphabet = sorted({t.symbol for t in transitions if t.symbol != EPSILON})
        automaton = Automaton(
            states=[State(s.id, s.label, s.is_initial, s.is_final) for s in self.states],
            transitions=transitions,
            alphabet=alphabet,
            kind=classify(transitions),
            name=self.name,
        )
        automaton.validate()
        return automaton


class RecognizeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    automaton: AutomatonModel
    input: str
    enumerate_length: int | None = None

    @field_validator("enumerate_length")
    @classmethod
    def enumerate_length_nonneg(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("enumerate_length must be >= 0")
        return v


class AutomatonRegexRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    automaton: AutomatonModel
    method: str = "arden"

    @field_validator("method")
    @classmethod
    def method_known(cls, v: str) -> str:
        _choice(v, _REGEX_METHODS, "method")
        return v


class GrammarRequest(BaseModel):
    """Grammar text, optional explicit terminals and an optional input to parse."""

    model_config = ConfigDict(extra="forbid")

    grammar: str
    terminals: list[str] | None = None
    input: str | None = None

    @field_validator("grammar")
    @classmethod
    def grammar_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("grammar must not be empty")
        return v

    def to_grammar(self) -> Grammar:
        return parse_grammar(self.grammar, self.terminals)


class LRRequest(GrammarRequest):
    method: str | None = None

    @field_validator("method")
    @classmethod
    def method_known(cls, v: str | None) -> str | None:
        return _choice(v, _LR_METHODS, "method")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def _client_errors() -> Iterator[None]:
    """Map library errors raised by the wrapped block to HTTP 422."""
    try:
        yield
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors) from None
    except (ValueError, ConvergenceError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None


def _json(payload: Any) -> Response:
    return Response(content=dumps(payload), media_type="application/json")


def _automaton_payload(automaton: Automaton) -> dict[str, Any]:
    return {
        "automaton": automaton,
        "stats": automaton_stats(automaton),
        "table": transition_table(automaton),
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
# Handlers are plain functions so Starlette runs the analyses in its threadpool.


def _build_regex_endpoints(app: FastAPI, config: AnalysisConfig) -> None:
    @app.post("/v1/regex/validate")
    def regex_validate(body: RegexRequest) -> Response:
        return _json(validate_regex(body.regex))

    @app.post("/v1/regex/syntax-tree")
    def regex_syntax_tree(body: RegexRequest) -> Response:
        with _client_errors():
            tree = build_syntax_tree(body.regex, augment=True)
        return _json(
            {
                "regex": tree.regex,
                "alphabet": tree.alphabet,
                "nullable": tree.nullable,
                "firstpos": tree.firstpos,
                "lastpos": tree.lastpos,
                "followpos": tree.followpos,
                "symbols": tree.symbols,
                "root": tree.root,
                "text": tree_to_string(tree.root),
            }
        )

    @app.post("/v1/regex/nfa")
    def regex_nfa(body: RegexRequest) -> Response:
        with _client_errors():
            nfa = er_to_afn(body.regex)
        return _json(_automaton_payload(nfa))

    @app.post("/v1/regex/dfa")
    def regex_dfa(body: DFARequest) -> Response:
        minimize = body.minimize or config.default_minimization
        if minimize == "significant" and body.method == "direct":
            raise HTTPException(
                status_code=422,
                detail="significant-state minimization requires the subset method",
            )
        with _client_errors():
            if body.method == "subset":
                nfa = er_to_afn(body.regex)
                dfa = afn_to_afd(nfa)
            else:
                nfa = None
                tree = build_syntax_tree(body.regex, augment=True)
                dfa = afd_from_syntax_tree(tree, name=f"Direct DFA for {body.regex}")
            if minimize == "partition":
                result = minimize_partition(dfa, config)
            elif minimize == "significant":
                assert nfa is not None
                result = optimize_by_significant_states(dfa, nfa)
            else:
                result = dfa
        payload = _automaton_payload(result)
        payload["method"] = body.method
        payload["minimize"] = minimize
        payload["unminimized_states"] = len(dfa.states)
        return _json(payload)


def _build_automaton_endpoints(app: FastAPI, config: AnalysisConfig) -> None:
    @app.post("/v1/automaton/recognize")
    def automaton_recognize(body: RecognizeRequest) -> Response:
        with _client_errors():
            automaton = body.automaton.to_automaton()
        payload: dict[str, Any] = {"result": recognize_string(automaton, body.input)}
        if body.enumerate_length is not None:
            payload["language"] = accepted_strings(
                automaton, body.enumerate_length, config=config
            )
        return _json(payload)

    @app.post("/v1/automaton/regex")
    def automaton_regex(body: AutomatonRegexRequest) -> Response:
        with _client_errors():
            automaton = body.automaton.to_automaton()
            if body.method == "arden":
                arden = af_to_er(automaton)
                return _json(
                    {
                        "method": "arden",
                        "regex": arden.text,
                        "order": arden.order_labels,
                        "equations": format_equations(arden.equations),
                        "steps": arden.steps,
                    }
                )
            elimination = af_to_er_elimination(automaton)
        return _json(
            {"method": "elimination", "regex": elimination.text, "steps": elimination.steps}
        )

    @app.post("/v1/automaton/regex/stream")
    def automaton_regex_stream(body: AutomatonRegexRequest) -> EventSourceResponse:
        with _client_errors():
            automaton = body.automaton.to_automaton()
            if body.method == "arden":
                result: Any = af_to_er(automaton)
            else:
                result = af_to_er_elimination(automaton)

        async def event_generator() -> AsyncGenerator[dict[str, Any]]:
            for step in result.steps:
                yield {"event": "step", "data": dumps(step).decode()}
            yield {
                "event": "done",
                "data": orjson.dumps(
                    {"method": body.method, "regex": result.text, "steps": len(result.steps)}
                ).decode(),
            }

        return EventSourceResponse(event_generator())


def _build_grammar_endpoints(app: FastAPI, config: AnalysisConfig) -> None:
    @app.post("/v1/grammar/ll1")
    def grammar_ll1(body: GrammarRequest) -> Response:
        with _client_errors():
            grammar = body.to_grammar()
            analysis = analyze_descendente(grammar, config)
            parse = (
                parse_string_ll(analysis.grammar, body.input, analysis.table, config)
                if body.input is not None
                else None
            )
        ff = analysis.first_follow
        table = analysis.table
        return _json(
            {
                "original": grammar,
                "grammar": analysis.grammar,
                "transformations": analysis.transformation.steps,
                "first": {nt: ff.ordered(ff.first[nt]) for nt in analysis.grammar.non_terminals},
                "follow": {nt: ff.ordered(ff.follow[nt]) for nt in analysis.grammar.non_terminals},
                "first_rules": ff.first_rules,
                "follow_rules": ff.follow_rules,
                "table": table.cells,
                "terminals": table.terminals,
                "is_ll1": analysis.is_ll1,
                "conflicts": analysis.conflicts,
                "parse": parse,
            }
        )

    @app.post("/v1/grammar/lr")
    def grammar_lr(body: LRRequest) -> Response:
        method = body.method or config.default_lr_method
        with _client_errors():
            analysis = analyze_ascendente(body.to_grammar(), method, body.input, config)
        table = analysis.table
        return _json(
            {
                "method": method,
                "kind": table.automaton.kind,
                "grammar": table.grammar,
                "states": table.automaton.states,
                "action": table.action,
                "goto": table.goto,
                "conflicts": [str(c) for c in table.conflicts],
                "is_conflict_free": table.is_conflict_free,
                "parse": analysis.parse,
            }
        )

    @app.post("/v1/grammar/precedence")
    def grammar_precedence(body: GrammarRequest) -> Response:
        with _client_errors():
            analysis = analyze_precedence(body.to_grammar(), body.input, config)
        table = analysis.table
        return _json(
            {
                "is_operator_grammar": table.is_operator_grammar,
                "operator_errors": table.operator_errors,
                "leading": table.leading,
                "trailing": table.trailing,
                "terminals": table.terminals,
                "relations": table.relations,
                "steps": table.steps,
                "conflicts": [str(c) for c in table.conflicts],
                "table": format_precedence_table(table),
                "parse": analysis.parse,
            }
        )


def create_app(config: AnalysisConfig = DEFAULT_CONFIG) -> FastAPI:
    """Create the FastAPI app with every analysis route registered."""
    app = FastAPI(title="compiler-lab")
    app.state.config = config
    _build_regex_endpoints(app, config)
    _build_automaton_endpoints(app, config)
    _build_grammar_endpoints(app, config)
    logger.debug("Created app with %s", config)
    return app
