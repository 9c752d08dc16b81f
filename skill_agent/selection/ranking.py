"""프롬프트와 스킬 카탈로그 간의 어휘 기반 관련도 점수 계산.

## 점수 계산

1. 프롬프트와 ``name + title + description`` 을 토큰화 (소문자, 영숫자 외 문자는
   공백으로, 불용어 제거)
2. 기본 점수 = 두 토큰 집합의 Jaccard 유사도
3. 보너스:
   - 프롬프트에 스킬 이름이 그대로 포함되면 +0.25
   - 길이 7 이상의 공유 토큰마다 +0.05
   - 길이 4 이상이면서 스킬 이름의 부분 문자열인 프롬프트 토큰마다 +0.10
4. 최종 점수는 1.0 으로 상한

후보 목록(shortlist)은 ``max(0.12, best * 0.6)`` 이상인 스킬 중 최대 8개이다.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from skill_agent.skills.load import Skill

MIN_SCORE = 0.12
RELATIVE_CUTOFF = 0.6
SHORTLIST_LIMIT = 8

NAME_IN_PROMPT_BONUS = 0.25
LONG_TOKEN_BONUS = 0.05
LONG_TOKEN_LENGTH = 7
NAME_FRAGMENT_BONUS = 0.10
NAME_FRAGMENT_LENGTH = 4

STOPWORDS = frozenset(
    """
    a an and are be but can do for from generate get how i in is it make me my
    of on please the then to what with you
    """.split()
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class ScoredCandidate:
    """점수가 매겨진 스킬."""

    skill: Skill
    score: float


@dataclass(frozen=True)
class RankingResult:
    """한 프롬프트에 대한 카탈로그 전체 순위."""

    scored: tuple[ScoredCandidate, ...] = ()
    """점수 내림차순 (동점은 카탈로그 순서 유지)."""

    best: float = 0.0
    """최고 점수. 카탈로그가 비어 있으면 0."""

    shortlist: tuple[ScoredCandidate, ...] = field(default=())
    """라우터에 전달할 후보."""

    @property
    def shortlisted_skills(self) -> tuple[Skill, ...]:
        return tuple(c.skill for c in self.shortlist)


def tokenize(text: str) -> set[str]:
    """소문자화 후 영숫자 토큰 집합을 반환한다 (불용어 제외)."""
    cleaned = _NON_ALNUM.sub(" ", str(text or "").lower())
    return {t for t in cleaned.split() if t not in STOPWORDS}


def _jaccard(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def score_skill(prompt: str, skill: Skill) -> float:
    """단일 스킬의 관련도 점수를 [0, 1] 범위로 계산한다."""
    prompt_tokens = tokenize(prompt)
    skill_tokens = tokenize(f"{skill.name} {skill.title} {skill.description}")

    score = _jaccard(prompt_tokens, skill_tokens)

    prompt_lower = str(prompt or "").lower()
    name_lower = skill.name.lower()
    if name_lower and name_lower in prompt_lower:
        score += NAME_IN_PROMPT_BONUS

    for token in prompt_tokens:
        if len(token) >= LONG_TOKEN_LENGTH and token in skill_tokens:
            score += LONG_TOKEN_BONUS
        if len(token) >= NAME_FRAGMENT_LENGTH and token in name_lower:
            score += NAME_FRAGMENT_BONUS

    return min(1.0, score)


def rank_skills(prompt: str, skills: Sequence[Skill]) -> RankingResult:
    """카탈로그 전체를 점수화하고 후보 목록을 만든다.

    Args:
        prompt: 사용자 요청
        skills: 이름순 정렬된 카탈로그

    Returns:
        RankingResult. 카탈로그나 프롬프트가 비어 있으면 후보 목록도 비어 있다.
    """
    if not skills:
        return RankingResult()

    if not str(prompt or "").strip():
        scored = tuple(ScoredCandidate(skill=s, score=0.0) for s in skills)
        return RankingResult(scored=scored, best=0.0, shortlist=())

    # sorted()는 안정 정렬이므로 동점은 카탈로그 순서를 유지한다
    scored = tuple(
        sorted(
            (ScoredCandidate(skill=s, score=score_skill(prompt, s)) for s in skills),
            key=lambda c: c.score,
            reverse=True,
        )
    )
    best = scored[0].score
    threshold = max(MIN_SCORE, best * RELATIVE_CUTOFF)
    shortlist = tuple(c for c in scored if c.score >= threshold)[:SHORTLIST_LIMIT]
    return RankingResult(scored=scored, best=best, shortlist=shortlist)
