"""휴리스틱 순위와 LLM 라우터를 결합한 스킬 선택.

1. 카탈로그/후보가 비어 있거나 최고 점수가 0.12 미만이면 선택 없음 (``none``)
2. 백엔드가 없으면 (자격 증명 없음) 최상위 후보 하나 (``heuristic``)
3. 라우터가 None 을 반환하면 최상위 후보 하나 (``heuristic``),
   아니면 라우터가 고른 스킬을 후보 순서로 (``router``)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from skill_agent.llm import Backend
from skill_agent.selection.ranking import MIN_SCORE, RankingResult, rank_skills
from skill_agent.selection.router import RouterDecision, route_skills
from skill_agent.skills.load import Skill

logger = logging.getLogger(__name__)


class MatchMethod(str, Enum):
    """스킬 선택 방식."""

    NONE = "none"
    HEURISTIC = "heuristic"
    ROUTER = "router"


@dataclass(frozen=True)
class SelectionResult:
    """스킬 선택 결과."""

    selected_skills: tuple[Skill, ...]
    method: MatchMethod
    router_decision: RouterDecision | None = None
    ranking: RankingResult | None = None

    @property
    def selected_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.selected_skills)


def select_skills(
    prompt: str,
    skills: Sequence[Skill],
    backend: Backend | None = None,
    *,
    router_max_tokens: int | None = None,
) -> SelectionResult:
    """프롬프트에 적용할 스킬을 고른다.

    Args:
        prompt: 사용자 요청
        skills: 이름순 정렬된 카탈로그
        backend: 라우터용 백엔드. None 이면 휴리스틱만 사용
        router_max_tokens: 라우터 호출의 최대 출력 토큰

    Returns:
        SelectionResult. 선택 실패로 예외를 던지지 않는다.
    """
    if not skills:
        logger.info("match: none (빈 카탈로그)")
        return SelectionResult(selected_skills=(), method=MatchMethod.NONE)

    ranking = rank_skills(prompt, skills)
    candidates = ranking.shortlisted_skills
    if not candidates or ranking.best < MIN_SCORE:
        logger.info("match: none (best=%.2f)", ranking.best)
        return SelectionResult(
            selected_skills=(), method=MatchMethod.NONE, ranking=ranking
        )

    if backend is None:
        logger.info("match: heuristic -> %s", candidates[0].name)
        return SelectionResult(
            selected_skills=(candidates[0],),
            method=MatchMethod.HEURISTIC,
            ranking=ranking,
        )

    route_kwargs = {"max_tokens": router_max_tokens} if router_max_tokens else {}
    decision = route_skills(prompt, candidates, backend, **route_kwargs)
    if decision is None:
        logger.info("match: heuristic -> %s", candidates[0].name)
        return SelectionResult(
            selected_skills=(candidates[0],),
            method=MatchMethod.HEURISTIC,
            ranking=ranking,
        )

    chosen = set(decision.selected)
    selected = tuple(s for s in candidates if s.name in chosen)
    logger.info("match: router -> %s", ", ".join(s.name for s in selected) or "none")
    return SelectionResult(
        selected_skills=selected,
        method=MatchMethod.ROUTER,
        router_decision=decision,
        ranking=ranking,
    )
