"""스킬 선택 모듈.

휴리스틱 순위(ranking) -> LLM 라우터(router) -> 대체 규칙(coordinator)
"""

from skill_agent.selection.coordinator import MatchMethod, SelectionResult, select_skills
from skill_agent.selection.ranking import RankingResult, ScoredCandidate, rank_skills
from skill_agent.selection.router import RouterDecision, route_skills

__all__ = [
    "MatchMethod",
    "SelectionResult",
    "select_skills",
    "RankingResult",
    "ScoredCandidate",
    "rank_skills",
    "RouterDecision",
    "route_skills",
]
