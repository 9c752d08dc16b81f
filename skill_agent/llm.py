"""LangChain 채팅 모델 어댑터.

에이전트 루프와 라우터는 ``ChatBackend.invoke`` 하나만 사용한다. 실제 전송은
LangChain provider 통합(Anthropic 기본, OpenAI 선택)에 위임한다.

응답 메타데이터 위치:
- Anthropic: response_metadata["stop_reason"]
- OpenAI: response_metadata["finish_reason"]
- 공통: usage_metadata (input_tokens, output_tokens)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage

from skill_agent.tools.types import ToolCallRequest, ToolDefinition

if TYPE_CHECKING:
    from skill_agent.config import AgentConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1500


class Backend(Protocol):
    """라우터와 에이전트 루프가 요구하는 백엔드 인터페이스."""

    def invoke(
        self,
        *,
        system_prompt: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[ToolDefinition] | None = None,
        max_tokens: int | None = None,
        purpose: str = "unknown",
    ) -> AIMessage: ...


def create_chat_model(config: AgentConfig) -> BaseChatModel:
    """설정에 맞는 LangChain 채팅 모델을 생성한다."""
    kwargs: dict[str, Any] = {"max_tokens": config.max_tokens}
    if config.api_key:
        kwargs["api_key"] = config.api_key
    return init_chat_model(config.model, model_provider=config.provider, **kwargs)


def extract_text(message: BaseMessage) -> str:
    """메시지의 텍스트 블록을 줄바꿈으로 이어 붙인다."""
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "\n".join(parts)


def extract_tool_calls(message: AIMessage) -> list[ToolCallRequest]:
    """AIMessage 의 도구 호출을 ToolCallRequest 목록으로 변환한다.

    ``tool_calls`` 다음에 ``invalid_tool_calls`` (인자 JSON 파싱 실패)가 이어지며,
    후자는 ``error`` 가 채워진 요청이 된다.
    """
    requests: list[ToolCallRequest] = []
    for call in getattr(message, "tool_calls", None) or []:
        args = call.get("args")
        requests.append(
            ToolCallRequest(
                name=str(call.get("name") or ""),
                input=dict(args) if isinstance(args, dict) else {},
                call_id=str(call.get("id") or f"call_{len(requests)}"),
            )
        )
    for call in getattr(message, "invalid_tool_calls", None) or []:
        requests.append(
            ToolCallRequest(
                name=str(call.get("name") or ""),
                input={},
                call_id=str(call.get("id") or f"call_{len(requests)}"),
                error=str(call.get("error") or "malformed tool call arguments"),
            )
        )
    return requests


def _stop_reason(message: AIMessage) -> str | None:
    metadata = getattr(message, "response_metadata", {}) or {}
    return metadata.get("stop_reason") or metadata.get("finish_reason")


class ChatBackend:
    """LangChain 채팅 모델에 대한 얇은 요청/응답 어댑터.

    Args:
        model: LangChain 채팅 모델
        max_tokens: 호출별 지정이 없을 때의 최대 출력 토큰
    """

    def __init__(self, model: BaseChatModel, *, max_tokens: int = DEFAULT_MAX_TOKENS) -> None:
        self.model = model
        self.max_tokens = max_tokens

    @property
    def model_name(self) -> str:
        return str(
            getattr(self.model, "model", None)
            or getattr(self.model, "model_name", None)
            or type(self.model).__name__
        )

    def invoke(
        self,
        *,
        system_prompt: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[ToolDefinition] | None = None,
        max_tokens: int | None = None,
        purpose: str = "unknown",
    ) -> AIMessage:
        """시스템 프롬프트와 대화를 보내고 어시스턴트 메시지를 받는다.

        전송 오류는 그대로 전파된다.
        """
        tokens = max_tokens or self.max_tokens
        logger.info(
            "llm: request purpose=%s model=%s max_tokens=%d messages=%d tools=%d",
            purpose,
            self.model_name,
            tokens,
            len(messages),
            len(tools or ()),
        )

        runnable: Any = self.model
        if tools:
            runnable = runnable.bind_tools([t.to_schema() for t in tools])
        runnable = runnable.bind(max_tokens=tokens)

        response = runnable.invoke([SystemMessage(content=system_prompt), *messages])
        if not isinstance(response, AIMessage):
            response = AIMessage(content=getattr(response, "content", str(response)))

        usage = response.usage_metadata or {}
        logger.info(
            "llm: response purpose=%s stop_reason=%s input_tokens=%s output_tokens=%s",
            purpose,
            _stop_reason(response),
            usage.get("input_tokens", "-"),
            usage.get("output_tokens", "-"),
        )
        return response
