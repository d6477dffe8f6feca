"""Integration tests for the FastAPI server and SSE endpoint."""

from __future__ import annotations

import inspect
import json
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
from fastapi.routing import APIRoute

from compilab.config import AnalysisConfig
from compilab.server.api import create_app

EXPR = """\
E -> E + T | T
T -> T * F | F
F -> ( E ) | id
"""

ODD_ONES: dict[str, Any] = {
    "states": [{"id": "A", "is_initial": True}, {"id": "B", "is_final": True}],
    "transitions": [
        {"source": "A", "target": "A", "symbol": "0"},
        {"source": "A", "target": "B", "symbol": "1"},
        {"source": "B", "target": "A", "symbol": "1"},
        {"source": "B", "target": "B", "symbol": "0"},
    ],
}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_sse_events(text: str) -> list[dict[str, str]]:
    """Parse SSE text into a list of {event, data} dicts."""
    events: list[dict[str, str]] = []
    current_event = ""
    current_data = ""
    for line in text.splitlines():
        if line.startswith("event:"):
            current_event = line[len("event:") :].strip()
        elif line.startswith("data:"):
            current_data = line[len("data:") :].strip()
        elif line == "" and (current_event or current_data):
            events.append({"event": current_event, "data": current_data})
            current_event = ""
            current_data = ""
    # Capture final event if no trailing blank line.
    if current_event or current_data:
        events.append({"event": current_event, "data": current_data})
    return events


async def _make_client(
    config: AnalysisConfig | None = None,
) -> AsyncGenerator[httpx.AsyncClient]:
    """Create an httpx client bound to a fresh app."""
    app = create_app(config or AnalysisConfig())
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# TestRegexEndpoints
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRegexEndpoints:
    async def test_validate(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/regex/validate", json={"regex": "a||b"})
            assert resp.status_code == 200
            data = resp.json()
            assert data["is_valid"] is False
            assert "Consecutive '|' operators" in data["errors"]

    async def test_syntax_tree(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/regex/syntax-tree", json={"regex": "(a|b)*abb"})
            assert resp.status_code == 200
            data = resp.json()
            assert data["regex"] == "((a|b)*abb)#"
            assert data["alphabet"] == ["a", "b"]
            assert data["followpos"]["1"] == [1, 2, 3]
            assert data["followpos"]["5"] == [6]
            assert data["symbols"]["6"] == "#"
            assert data["nullable"] is False
            assert len(data["root"]["children"]) == 2

    async def test_nfa(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/regex/nfa", json={"regex": "a*"})
            assert resp.status_code == 200
            data = resp.json()
            assert data["stats"]["states"] == 4
            assert data["stats"]["epsilon_transitions"] == 4
            assert data["table"]["headers"] == ["State", "a", "ε"]

    async def test_dfa_minimized(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/regex/dfa", json={"regex": "(a|b)*abb"})
            assert resp.status_code == 200
            data = resp.json()
            assert data["method"] == "subset"
            assert data["minimize"] == "partition"
            assert data["unminimized_states"] == 5
            assert data["stats"]["states"] == 4
            assert data["automaton"]["kind"] == "DFA"

    async def test_dfa_direct(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/regex/dfa",
                json={"regex": "(a|b)*abb", "method": "direct", "minimize": "none"},
            )
            assert resp.status_code == 200
            assert resp.json()["stats"]["states"] == 4

    async def test_dfa_significant(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/regex/dfa", json={"regex": "(a|b)*abb", "minimize": "significant"}
            )
            assert resp.status_code == 200
            assert resp.json()["stats"]["states"] == 4

    async def test_default_minimization_from_config(self) -> None:
        async for client in _make_client(AnalysisConfig(default_minimization="none")):
            resp = await client.post("/v1/regex/dfa", json={"regex": "(a|b)*abb"})
            data = resp.json()
            assert data["minimize"] == "none"
            assert data["stats"]["states"] == 5


# ---------------------------------------------------------------------------
# TestAutomatonEndpoints
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestAutomatonEndpoints:
    async def test_recognize(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/automaton/recognize",
                json={"automaton": ODD_ONES, "input": "1", "enumerate_length": 2},
            )
            assert resp.status_code == 200
            data = resp.json()
            assert data["result"]["accepted"] is True
            assert data["result"]["reason"] == "accepted"
            assert data["language"] == ["1", "01", "10"]

    async def test_recognize_rejected(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/automaton/recognize", json={"automaton": ODD_ONES, "input": "11"}
            )
            data = resp.json()
            assert data["result"]["accepted"] is False
            assert data["result"]["reason"] == "non_accepting"
            assert "language" not in data

    async def test_arden(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/automaton/regex", json={"automaton": ODD_ONES})
            assert resp.status_code == 200
            data = resp.json()
            assert data["method"] == "arden"
            assert data["regex"] == "(0|10*1)*10*"
            assert data["order"] == ["B", "A"]
            assert data["equations"] == ["A = 0A | 1B", "B = 1A | 0B | ε"]
            assert [s["action"] for s in data["steps"]][-1] == "solution"

    async def test_elimination(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/automaton/regex", json={"automaton": ODD_ONES, "method": "elimination"}
            )
            data = resp.json()
            assert data["method"] == "elimination"
            assert data["regex"] == "0*1(0|10*1)*"
            assert data["steps"][-1]["edges"] == [["I", "F", "0*1(0|10*1)*"]]

    async def test_shared_labels(self) -> None:
        automaton = {
            "states": [
                {"id": "q0", "label": "X", "is_initial": True},
                {"id": "q1", "label": "X", "is_final": True},
            ],
            "transitions": [{"source": "q0", "target": "q1", "symbol": "a"}],
        }
        async for client in _make_client():
            for method in ("arden", "elimination"):
                resp = await client.post(
                    "/v1/automaton/regex", json={"automaton": automaton, "method": method}
                )
                assert resp.status_code == 200
                assert resp.json()["regex"] == "a"

    async def test_sse_stream_steps_and_done(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/automaton/regex/stream", json={"automaton": ODD_ONES}
            )
            assert resp.status_code == 200

            events = _parse_sse_events(resp.text)
            step_events = [e for e in events if e["event"] == "step"]
            done_events = [e for e in events if e["event"] == "done"]

            assert len(step_events) == 5
            assert len(done_events) == 1
            assert events[-1]["event"] == "done"

            first = json.loads(step_events[0]["data"])
            assert first["step_number"] == 1
            assert first["action"] == "equations"

            done = json.loads(done_events[0]["data"])
            assert done == {"method": "arden", "regex": "(0|10*1)*10*", "steps": 5}


# ---------------------------------------------------------------------------
# TestGrammarEndpoints
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestGrammarEndpoints:
    async def test_ll1(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/grammar/ll1", json={"grammar": EXPR, "input": "id + id * id"}
            )
            assert resp.status_code == 200
            data = resp.json()
            assert data["is_ll1"] is True
            assert data["original"]["start_symbol"] == "E"
            assert data["grammar"]["non_terminals"] == ["E", "E'", "T", "T'", "F"]
            assert data["first"]["F"] == ["(", "id"]
            assert data["follow"]["E'"] == [")", "$"]
            assert data["table"]["E"]["id"] == "E → T E'"
            assert data["parse"]["accepted"] is True

    async def test_ll1_conflicts(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/grammar/ll1", json={"grammar": "S -> i S | i S e S | a"}
            )
            data = resp.json()
            assert data["is_ll1"] is False
            assert data["conflicts"]
            assert data["parse"] is None

    async def test_lr(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/grammar/lr", json={"grammar": EXPR, "input": "id"})
            assert resp.status_code == 200
            data = resp.json()
            assert data["method"] == "slr"
            assert data["kind"] == "LR(0)"
            assert len(data["states"]) == 12
            assert data["is_conflict_free"] is True
            assert data["action"]["0"]["id"] == "s5"
            assert data["action"]["1"]["$"] == "acc"
            assert data["goto"]["0"] == {"E": 1, "T": 2, "F": 3}
            assert data["parse"]["output"] == ["F → id", "T → F", "E → T"]

    async def test_lr_conflicts(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/grammar/lr", json={"grammar": EXPR, "method": "lr0"})
            data = resp.json()
            assert data["is_conflict_free"] is False
            assert data["conflicts"][0].startswith("shift-reduce conflict in state")

    async def test_default_lr_method_from_config(self) -> None:
        async for client in _make_client(AnalysisConfig(default_lr_method="lalr")):
            resp = await client.post("/v1/grammar/lr", json={"grammar": EXPR})
            data = resp.json()
            assert data["method"] == "lalr"
            assert data["kind"] == "LALR(1)"

    async def test_precedence(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/grammar/precedence", json={"grammar": EXPR, "input": "id + id * id"}
            )
            assert resp.status_code == 200
            data = resp.json()
            assert data["is_operator_grammar"] is True
            assert data["leading"]["E"] == ["(", "*", "+", "id"]
            assert data["relations"]["+"]["*"] == "<"
            assert data["relations"]["*"]["+"] == ">"
            assert data["conflicts"] == []
            assert data["parse"]["accepted"] is True


# ---------------------------------------------------------------------------
# TestInvalidRequests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestInvalidRequests:
    async def test_invalid_regex(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/regex/nfa", json={"regex": "a||b"})
            assert resp.status_code == 422
            assert "Consecutive '|' operators" in resp.json()["detail"]

    async def test_extra_field(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/regex/validate", json={"regex": "a", "flags": "i"})
            assert resp.status_code == 422

    async def test_unknown_dfa_method(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/regex/dfa", json={"regex": "a", "method": "magic"})
            assert resp.status_code == 422

    async def test_significant_with_direct(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/regex/dfa",
                json={"regex": "a", "method": "direct", "minimize": "significant"},
            )
            assert resp.status_code == 422
            assert "subset" in resp.json()["detail"]

    async def test_unknown_regex_method(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/automaton/regex", json={"automaton": ODD_ONES, "method": "kleene"}
            )
            assert resp.status_code == 422

    async def test_automaton_without_initial_state(self) -> None:
        async for client in _make_client():
            automaton = {"states": [{"id": "A", "is_final": True}], "transitions": []}
            resp = await client.post(
                "/v1/automaton/recognize", json={"automaton": automaton, "input": ""}
            )
            assert resp.status_code == 422
            assert "Automaton has no initial state" in resp.json()["detail"]

    async def test_negative_enumerate_length(self) -> None:
        async for client in _make_client():
            resp = await client.post(
                "/v1/automaton/recognize",
                json={"automaton": ODD_ONES, "input": "", "enumerate_length": -1},
            )
            assert resp.status_code == 422

    async def test_blank_grammar(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/grammar/ll1", json={"grammar": "   "})
            assert resp.status_code == 422

    async def test_invalid_grammar(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/grammar/lr", json={"grammar": "S -> A b"})
            assert resp.status_code == 422
            assert "Non-terminal 'A' has no productions" in resp.json()["detail"]

    async def test_unknown_lr_method(self) -> None:
        async for client in _make_client():
            resp = await client.post("/v1/grammar/lr", json={"grammar": EXPR, "method": "glr"})
            assert resp.status_code == 422


# ---------------------------------------------------------------------------
# TestRouteHandlers
# ---------------------------------------------------------------------------


class TestRouteHandlers:
    def test_analysis_routes_are_sync(self) -> None:
        app = create_app(AnalysisConfig())
        routes = [r for r in app.routes if isinstance(r, APIRoute)]
        assert len(routes) == 10
        for route in routes:
            assert not inspect.iscoroutinefunction(route.endpoint), route.path
