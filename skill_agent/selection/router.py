"""LLM 기반 스킬 라우터.

후보 스킬의 이름/제목/설명만 모델에 보내고 JSON 응답
``{"selected": [...], "reason": "..."}`` 을 받는다. 응답을 해석할 수 없거나
백엔드 호출이 실패하면 None 을 반환하여 호출자가 휴리스틱으로 대체하도록 한다.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import HumanMessage

from skill_agent.llm import Backend, extract_text
from skill_agent.prompts import ROUTER_SYSTEM_PROMPT
from skill_agent.skills.load import Skill

logger = logging.getLogger(__name__)

ROUTER_MAX_TOKENS = 300


@dataclass(frozen=True)
class RouterDecision:
    """라우터의 선택 결과."""

    selected: tuple[str, ...]
    """후보 순서로 정렬된 선택 스킬 이름 (후보의 부분집합)."""

    reason: str = ""


def extract_first_json_object(text: str) -> Any | None:
    """텍스트에서 첫 번째 ``{`` 부터 괄호 깊이로 균형 잡힌 구간을 JSON 으로 파싱한다.

    문자열 리터럴 안의 괄호는 구분하지 않는다. 실패 시 None.
    """
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start : index + 1])
                except json.JSONDecodeError:
                    return None
    return None


def build_router_payload(prompt: str, candidates: Sequence[Skill]) -> str:
    """라우터 사용자 메시지 (들여쓰기된 JSON)."""
    payload = {
        "prompt": prompt,
        "candidates": [
            {"name": s.name, "title": s.title, "description": s.description}
            for s in candidates
        ],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def parse_router_response(text: str, candidates: Sequence[Skill]) -> RouterDecision | None:
    """응답 텍스트를 RouterDecision 으로 변환한다.

    선택 이름은 후보에 있는 것만 남기고 중복을 제거하며 후보 순서를 따른다.
    """
    parsed = extract_first_json_object(text)
    if not isinstance(parsed, dict) or not isinstance(parsed.get("selected"), list):
        return None

    requested = {str(x) for x in parsed["selected"] if x is not None and str(x)}
    selected = tuple(dict.fromkeys(s.name for s in candidates if s.name in requested))
    reason = parsed.get("reason")
    return RouterDecision(selected=selected, reason=str(reason) if reason else "")


def route_skills(
    prompt: str,
    candidates: Sequence[Skill],
    backend: Backend,
    *,
    max_tokens: int = ROUTER_MAX_TOKENS,
) -> RouterDecision | None:
    """모델에게 후보 중 0..N 개의 스킬을 고르게 한다.

    Returns:
        RouterDecision, 응답 해석 실패 또는 백엔드 오류 시 None
    """
    if not candidates:
        return RouterDecision(selected=())

    logger.info("router: candidates=%s", ", ".join(s.name for s in candidates))
    try:
        response = backend.invoke(
            system_prompt=ROUTER_SYSTEM_PROMPT,
            messages=[HumanMessage(content=build_router_payload(prompt, candidates))],
            max_tokens=max_tokens,
            purpose="router",
        )
    except Exception as e:
        logger.warning("router: 백엔드 호출 실패, 휴리스틱으로 대체: %s", e)
        return None

    decision = parse_router_response(extract_text(response), candidates)
    if decision is None:
        logger.warning("router: 응답에서 유효한 JSON을 찾을 수 없음")
        return None

    logger.info(
        "router: selected=%s%s",
        ", ".join(decision.selected) or "none",
        f" ({decision.reason})" if decision.reason else "",
    )
    return decision
