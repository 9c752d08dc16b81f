import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
from langchain_core.messages import AIMessage, BaseMessage

from skill_agent.skills.load import Skill


class ScriptedBackend:
    """미리 정해둔 응답을 순서대로 돌려주는 백엔드. 호출 내역을 기록한다."""

    def __init__(self, responses: Sequence[AIMessage | Exception]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def invoke(
        self,
        *,
        system_prompt: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[Any] | None = None,
        max_tokens: int | None = None,
        purpose: str = "unknown",
    ) -> AIMessage:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": list(messages),
                "tools": list(tools) if tools else None,
                "max_tokens": max_tokens,
                "purpose": purpose,
            }
        )
        if not self._responses:
            raise AssertionError("ScriptedBackend: no scripted responses left")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _tool_call_message(
    *calls: tuple[str, dict[str, Any]], text: str = ""
) -> AIMessage:
    return AIMessage(
        content=text,
        tool_calls=[
            {"name": name, "args": args, "id": f"call_{i}", "type": "tool_call"}
            for i, (name, args) in enumerate(calls)
        ],
    )


@pytest.fixture
def tool_call_message() -> Callable[..., AIMessage]:
    """(이름, 인자) 쌍들로 도구 호출 AIMessage 를 만든다."""
    return _tool_call_message


@pytest.fixture
def scripted_backend() -> Callable[..., ScriptedBackend]:
    def _make(*responses: AIMessage | Exception) -> ScriptedBackend:
        return ScriptedBackend(responses)

    return _make


@pytest.fixture
def make_skill() -> Callable[..., Skill]:
    def _make(
        name: str,
        description: str = "",
        title: str | None = None,
        allowed_tools: tuple[str, ...] = (),
        body: str = "",
    ) -> Skill:
        return Skill(
            name=name,
            title=title if title is not None else name.replace("-", " ").title(),
            description=description,
            allowed_tools=allowed_tools,
            body=body or f"# {name}\n",
        )

    return _make


@pytest.fixture
def write_skill(tmp_path: Path) -> Callable[..., Path]:
    """``<root>/<folder>/SKILL.md`` 를 작성하고 경로를 반환한다."""

    def _write(folder: str, content: str, root: Path | None = None) -> Path:
        skill_dir = (root or tmp_path / ".skills") / folder
        skill_dir.mkdir(parents=True, exist_ok=True)
        skill_md = skill_dir / "SKILL.md"
        skill_md.write_text(content, encoding="utf-8")
        return skill_md

    return _write


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    package_logger = logging.getLogger("skill_agent")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True
