import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from skill_agent.prompts import ROUTER_SYSTEM_PROMPT
from skill_agent.selection.router import (
    ROUTER_MAX_TOKENS,
    RouterDecision,
    extract_first_json_object,
    parse_router_response,
    route_skills,
)


class TestExtractFirstJsonObject:
    def test_nested_object_with_surrounding_text(self):
        text = 'Sure! {"selected": ["a"], "meta": {"k": 1}} trailing {"x": 2}'

        assert extract_first_json_object(text) == {"selected": ["a"], "meta": {"k": 1}}

    @pytest.mark.parametrize(
        "text",
        [
            "no json here",
            '{"selected": ["a"]',
            "{not valid json}",
            # 문자열 안의 괄호는 구분하지 않는다
            '{"reason": "}", "selected": []}',
        ],
    )
    def test_returns_none(self, text):
        assert extract_first_json_object(text) is None


@pytest.fixture
def candidates(make_skill):
    return [
        make_skill("alpha", description="first", body="# alpha\nsecret body"),
        make_skill("beta", description="second"),
        make_skill("gamma", description="third"),
    ]


class TestParseRouterResponse:
    def test_filters_dedupes_and_keeps_candidate_order(self, candidates):
        text = json.dumps({"selected": ["gamma", "alpha", "alpha", "zzz", ""], "reason": "ok"})

        decision = parse_router_response(text, candidates)

        assert decision == RouterDecision(selected=("alpha", "gamma"), reason="ok")

    def test_missing_selected(self, candidates):
        assert parse_router_response('{"reason": "none"}', candidates) is None

    def test_selected_not_a_list(self, candidates):
        assert parse_router_response('{"selected": "alpha"}', candidates) is None

    def test_empty_selection_is_valid(self, candidates):
        decision = parse_router_response('{"selected": []}', candidates)

        assert decision == RouterDecision(selected=(), reason="")


class TestRouteSkills:
    def test_sends_only_summaries(self, candidates, scripted_backend):
        backend = scripted_backend(AIMessage(content='{"selected": ["beta"], "reason": "fits"}'))

        decision = route_skills("do the beta thing", candidates, backend)

        assert decision == RouterDecision(selected=("beta",), reason="fits")
        call = backend.calls[0]
        assert call["system_prompt"] == ROUTER_SYSTEM_PROMPT
        assert call["max_tokens"] == ROUTER_MAX_TOKENS
        assert call["purpose"] == "router"
        assert call["tools"] is None
        [message] = call["messages"]
        assert isinstance(message, HumanMessage)
        payload = json.loads(message.content)
        assert payload["prompt"] == "do the beta thing"
        assert payload["candidates"][0] == {
            "name": "alpha",
            "title": "Alpha",
            "description": "first",
        }
        assert "secret body" not in message.content

    def test_joins_text_blocks(self, candidates, scripted_backend):
        backend = scripted_backend(
            AIMessage(
                content=[
                    {"type": "text", "text": "Here you go:"},
                    {"type": "text", "text": '{"selected": ["alpha"], "reason": "r"}'},
                ]
            )
        )

        decision = route_skills("x", candidates, backend)

        assert decision.selected == ("alpha",)

    def test_unparseable_response_returns_none(self, candidates, scripted_backend):
        backend = scripted_backend(AIMessage(content="I think alpha is best."))

        assert route_skills("x", candidates, backend) is None

    def test_backend_error_returns_none(self, candidates, scripted_backend):
        backend = scripted_backend(RuntimeError("connection reset"))

        assert route_skills("x", candidates, backend) is None

    def test_custom_max_tokens(self, candidates, scripted_backend):
        backend = scripted_backend(AIMessage(content='{"selected": []}'))

        route_skills("x", candidates, backend, max_tokens=50)

        assert backend.calls[0]["max_tokens"] == 50
