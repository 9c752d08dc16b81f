"""도구 정의, 호출 요청, 실행 결과 레코드."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from langchain_core.messages import ToolMessage


@dataclass(frozen=True)
class ToolDefinition:
    """모델에 광고되는 도구 스키마."""

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_schema(self) -> dict[str, Any]:
        """``bind_tools`` 가 받는 Anthropic 형식 딕셔너리로 변환한다."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True)
class ToolCallRequest:
    """어시스턴트 메시지가 요청한 단일 도구 호출."""

    name: str
    input: dict[str, Any]
    call_id: str

    error: str | None = None
    """인자를 해석할 수 없었던 호출의 파싱 오류. 있으면 실행하지 않는다."""


@dataclass(frozen=True)
class ToolResult:
    """도구 실행 결과. 실패도 ``is_error`` 결과로 표현된다."""

    call_id: str
    output: str
    is_error: bool = False

    def to_message(self) -> ToolMessage:
        return ToolMessage(
            content=self.output,
            tool_call_id=self.call_id,
            status="error" if self.is_error else "success",
        )
