from typing import Any

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from pydantic import Field

from skill_agent import llm
from skill_agent.config import AgentConfig
from skill_agent.llm import (
    ChatBackend,
    create_chat_model,
    extract_text,
    extract_tool_calls,
)
from skill_agent.tools.runtime import TOOL_DEFINITIONS
from skill_agent.tools.types import ToolCallRequest


class RecordingFakeChatModel(GenericFakeChatModel):
    """bind_tools 를 지원하고 호출 인자를 기록하는 가짜 채팅 모델."""

    recorded: list[dict[str, Any]] = Field(default_factory=list)

    def bind_tools(self, tools, **kwargs):
        return self.bind(tools=tools, **kwargs)

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        self.recorded.append({"messages": messages, "kwargs": kwargs})
        return super()._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


@pytest.fixture
def fake_model():
    def _make(*responses: AIMessage) -> RecordingFakeChatModel:
        return RecordingFakeChatModel(messages=iter(responses))

    return _make


class TestExtractText:
    def test_string_content(self):
        assert extract_text(AIMessage(content="plain")) == "plain"

    def test_text_blocks_joined(self):
        message = AIMessage(
            content=[
                {"type": "text", "text": "first"},
                {"type": "tool_use", "id": "t1", "name": "glob", "input": {}},
                {"type": "text", "text": "second"},
            ]
        )

        assert extract_text(message) == "first\nsecond"


class TestExtractToolCalls:
    def test_converts_tool_calls(self):
        message = AIMessage(
            content="",
            tool_calls=[
                {"name": "read_file", "args": {"path": "a"}, "id": "toolu_1"},
                {"name": "glob", "args": {"pattern": "*"}, "id": None},
            ],
        )

        assert extract_tool_calls(message) == [
            ToolCallRequest(name="read_file", input={"path": "a"}, call_id="toolu_1"),
            ToolCallRequest(name="glob", input={"pattern": "*"}, call_id="call_1"),
        ]

    def test_invalid_tool_calls_follow_valid_ones(self):
        message = AIMessage(
            content="",
            tool_calls=[{"name": "read_file", "args": {"path": "a"}, "id": "t1"}],
            invalid_tool_calls=[
                {"name": "write_file", "args": '{"path": "x', "id": "t2", "error": "bad json"},
                {"name": None, "args": "{", "id": None, "error": None},
            ],
        )

        assert extract_tool_calls(message) == [
            ToolCallRequest(name="read_file", input={"path": "a"}, call_id="t1"),
            ToolCallRequest(name="write_file", input={}, call_id="t2", error="bad json"),
            ToolCallRequest(
                name="", input={}, call_id="call_2", error="malformed tool call arguments"
            ),
        ]

    def test_no_tool_calls(self):
        assert extract_tool_calls(AIMessage(content="hi")) == []


class TestChatBackend:
    def test_invoke_prepends_system_prompt_and_binds(self, fake_model):
        model = fake_model(AIMessage(content="hello"))
        backend = ChatBackend(model, max_tokens=99)

        response = backend.invoke(
            system_prompt="be brief",
            messages=[HumanMessage(content="hi")],
            tools=TOOL_DEFINITIONS[:2],
            purpose="agent",
        )

        assert isinstance(response, AIMessage)
        assert response.content == "hello"
        [record] = model.recorded
        sent = record["messages"]
        assert isinstance(sent[0], SystemMessage)
        assert sent[0].content == "be brief"
        assert sent[1].content == "hi"
        assert record["kwargs"]["max_tokens"] == 99
        assert [t["name"] for t in record["kwargs"]["tools"]] == ["read_file", "write_file"]

    def test_invoke_without_tools(self, fake_model):
        model = fake_model(AIMessage(content="plain"))

        ChatBackend(model).invoke(
            system_prompt="s", messages=[HumanMessage(content="q")], max_tokens=300
        )

        [record] = model.recorded
        assert "tools" not in record["kwargs"]
        assert record["kwargs"]["max_tokens"] == 300

    def test_model_name_fallback(self, fake_model):
        assert ChatBackend(fake_model()).model_name == "RecordingFakeChatModel"


class TestCreateChatModel:
    def test_passes_config(self, monkeypatch):
        captured = {}

        def fake_init_chat_model(model, **kwargs):
            captured["model"] = model
            captured.update(kwargs)
            return "model"

        monkeypatch.setattr(llm, "init_chat_model", fake_init_chat_model)
        config = AgentConfig(provider="openai", model="gpt-4.1", api_key="sk-test", max_tokens=700)

        assert create_chat_model(config) == "model"
        assert captured == {
            "model": "gpt-4.1",
            "model_provider": "openai",
            "api_key": "sk-test",
            "max_tokens": 700,
        }
