"""선택된 스킬을 시스템 프롬프트에 주입하고 도구 루프를 실행하는 에이전트.

## 실행 흐름

```
prompt ─▶ [system prompt + skills] ─▶ LLM ─┬─ 도구 호출 없음 ─▶ 완료 (completed)
                 ▲                         │
                 │                         ├─ 마지막 단계 ─▶ 중단 안내 (step_limit_reached)
                 │                         │
                 └──── ToolMessage 배치 ◀──┴─ 도구 실행 (요청 순서대로)
```

단계는 ``0..max_steps`` 로 최대 ``max_steps + 1`` 번의 LLM 호출이 이루어진다.
도구가 비활성화되면 (``runtime=None``) 도구 없이 한 번만 호출한다.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from skill_agent.llm import (
    DEFAULT_MAX_TOKENS,
    Backend,
    extract_text,
    extract_tool_calls,
)
from skill_agent.prompts import (
    AGENT_SYSTEM_PROMPT,
    SELECTED_SKILLS_HEADER,
    SKILL_BLOCK_TEMPLATE,
    STEP_LIMIT_NOTICE,
)
from skill_agent.skills.load import Skill
from skill_agent.tools.runtime import ToolRuntime
from skill_agent.tools.types import ToolCallRequest, ToolDefinition, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 8


class TerminationReason(str, Enum):
    """에이전트 실행 종료 사유."""

    COMPLETED = "completed"
    STEP_LIMIT_REACHED = "step_limit_reached"


@dataclass(frozen=True)
class AgentRunResult:
    """에이전트 실행 결과."""

    text: str
    """최종 응답 텍스트 (단계 제한 시 안내 문구 포함)."""

    termination_reason: TerminationReason

    steps: int
    """수행된 LLM 호출 수."""


class Conversation:
    """추가만 가능한 메시지 로그."""

    def __init__(self, initial: Iterable[BaseMessage] = ()) -> None:
        self._messages: list[BaseMessage] = list(initial)

    def append(self, message: BaseMessage) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[BaseMessage]) -> None:
        self._messages.extend(messages)

    @property
    def messages(self) -> tuple[BaseMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


def build_system_prompt(selected_skills: Sequence[Skill] = ()) -> str:
    """기본 지침에 선택된 스킬 본문 블록을 덧붙인다."""
    if not selected_skills:
        return AGENT_SYSTEM_PROMPT
    blocks = "".join(
        SKILL_BLOCK_TEMPLATE.format(
            name=s.name, title=s.title, description=s.description, body=s.body
        )
        for s in selected_skills
    )
    return AGENT_SYSTEM_PROMPT + SELECTED_SKILLS_HEADER + blocks


def step_limit_notice(max_steps: int) -> str:
    return STEP_LIMIT_NOTICE.format(max_steps=max_steps)


def collect_allowed_tools(selected_skills: Sequence[Skill]) -> list[str]:
    """선택된 스킬들의 허용 도구 목록을 순서대로 이어 붙인다."""
    return [tool for s in selected_skills for tool in s.allowed_tools]


def invalid_tool_call_result(call: ToolCallRequest) -> ToolResult:
    """해석할 수 없었던 도구 호출을 모델이 재시도할 수 있도록 오류 결과로 만든다."""
    return ToolResult(
        call_id=call.call_id,
        output=f"Invalid tool call {call.name or '<unnamed>'}: {call.error}",
        is_error=True,
    )


class AgentLoop:
    """유한 단계 도구 사용 루프.

    Args:
        backend: ``invoke`` 를 제공하는 LLM 백엔드
        runtime: 도구 런타임. None 이면 도구 비활성화
        max_steps: 도구 실행 단계 상한
        max_tokens: 호출별 최대 출력 토큰
    """

    def __init__(
        self,
        backend: Backend,
        *,
        runtime: ToolRuntime | None = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self.backend = backend
        self.runtime = runtime
        self.max_steps = max(0, int(max_steps))
        self.max_tokens = max_tokens

    def run(self, prompt: str, selected_skills: Sequence[Skill] = ()) -> AgentRunResult:
        """프롬프트를 실행하고 최종 응답을 반환한다.

        백엔드 오류는 그대로 전파된다.
        """
        system_prompt = build_system_prompt(selected_skills)
        conversation = Conversation([HumanMessage(content=str(prompt))])

        if self.runtime is None:
            response = self._call(system_prompt, conversation, tools=None)
            return AgentRunResult(
                text=extract_text(response),
                termination_reason=TerminationReason.COMPLETED,
                steps=1,
            )

        tools = self.runtime.restrict_tools(collect_allowed_tools(selected_skills))
        logger.info("agent: tools=%s", ", ".join(t.name for t in tools))

        for step in range(self.max_steps + 1):
            result = self._step(step, system_prompt, conversation, self.runtime, tools)
            if result is not None:
                return result

        # range 가 항상 마지막 단계에서 결과를 반환하므로 도달하지 않는다
        raise RuntimeError("agent loop ended without a result")

    async def arun(
        self, prompt: str, selected_skills: Sequence[Skill] = ()
    ) -> AgentRunResult:
        """비동기 실행 래퍼."""
        return await asyncio.to_thread(self.run, prompt, selected_skills)

    def _call(
        self,
        system_prompt: str,
        conversation: Conversation,
        tools: Sequence[ToolDefinition] | None,
    ) -> AIMessage:
        return self.backend.invoke(
            system_prompt=system_prompt,
            messages=conversation.messages,
            tools=tools,
            max_tokens=self.max_tokens,
            purpose="agent",
        )

    def _step(
        self,
        step: int,
        system_prompt: str,
        conversation: Conversation,
        runtime: ToolRuntime,
        tools: Sequence[ToolDefinition],
    ) -> AgentRunResult | None:
        """한 단계를 수행한다. 계속하면 None, 종료하면 AgentRunResult."""
        logger.info("agent: step %d/%d", step, self.max_steps)
        response = self._call(system_prompt, conversation, tools)
        conversation.append(response)

        calls = extract_tool_calls(response)
        text = extract_text(response)
        if not calls:
            return AgentRunResult(
                text=text,
                termination_reason=TerminationReason.COMPLETED,
                steps=step + 1,
            )

        if step >= self.max_steps:
            logger.warning("agent: 단계 제한 도달 (max_steps=%d)", self.max_steps)
            notice = step_limit_notice(self.max_steps)
            return AgentRunResult(
                text=f"{text}\n\n{notice}" if text else notice,
                termination_reason=TerminationReason.STEP_LIMIT_REACHED,
                steps=step + 1,
            )

        results: list[ToolResult] = []
        for call in calls:
            if call.error is not None:
                logger.warning(
                    "agent: invalid tool call %s (%s): %s", call.name, call.call_id, call.error
                )
                results.append(invalid_tool_call_result(call))
                continue
            logger.info("agent: tool call %s (%s)", call.name, call.call_id)
            results.append(runtime.execute(call.name, call.input, call.call_id))
        conversation.extend(r.to_message() for r in results)
        return None
