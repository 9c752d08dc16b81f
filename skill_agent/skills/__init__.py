"""skill_agent용 Skills 모듈.

스킬 카탈로그는 두 디렉토리에서 만들어진다:
1. 로컬 스킬 (``.skills/``): 사용자가 직접 작성한 스킬
2. 외부 스킬 (``.externalSkills/``): git 저장소에서 동기화된 스킬

이름이 충돌하면 로컬 스킬이 우선한다. 카탈로그는 이름순으로 정렬되어
라우팅 결과가 결정적이다.

공개 API:
- Skill: 불변 스킬 레코드
- discover_skills: 디렉토리에서 스킬 로드
- merge_skills_prefer_local: 로컬/외부 카탈로그 병합
- sync_external_skills: 외부 저장소 동기화
"""

from skill_agent.skills.load import (
    Skill,
    discover_skills,
    merge_skills_prefer_local,
    normalize_skill_name,
)
from skill_agent.skills.sync import SkillSyncError, sync_external_skills

__all__ = [
    "Skill",
    "discover_skills",
    "merge_skills_prefer_local",
    "normalize_skill_name",
    "SkillSyncError",
    "sync_external_skills",
]
