"""SKILL.md 파일에서 스킬 카탈로그를 파싱하고 로드하는 스킬 로더.

각 스킬은 SKILL.md 파일이 있는 디렉토리이다:
- 선택적 YAML 프론트매터 (name, description, allowed-tools)
- 에이전트용 마크다운 지침 (본문 전체가 선택 시 시스템 프롬프트에 주입됨)
- 선택적 지원 파일 (스크립트, 설정 등)

SKILL.md 구조 예시:
```markdown
---
name: changelog
description: Generate a changelog from recent git history
allowed-tools: Bash Read Write
---

# Changelog Generator
...
```

프론트매터가 없거나 깨져 있어도 스킬은 로드된다. 이름은 폴더명에서,
제목은 첫 번째 H1 또는 첫 번째 비어있지 않은 줄에서 추론한다.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"

# SKILL.md 파일 최대 크기 (10MB) - DoS 방지
MAX_SKILL_FILE_SIZE = 10 * 1024 * 1024

MAX_SKILL_NAME_LENGTH = 64
MAX_TITLE_LENGTH = 80
DEFAULT_TITLE = "Untitled Skill"

IGNORED_DIR_NAMES = frozenset({".git", ".cache"})

_FRONTMATTER_PATTERN = re.compile(r"^---\s*\r?\n(.*?)\r?\n---\s*\r?\n", re.DOTALL)
_H1_PATTERN = re.compile(r"^#\s+(.+?)\s*$")
_NAME_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


@dataclass(frozen=True)
class Skill:
    """카탈로그의 단일 스킬 레코드.

    생성 이후 변경되지 않는다. 동일성은 ``name`` 으로 판단한다.
    """

    name: str
    """정규화된 고유 스킬 이름."""

    title: str
    """사람이 읽는 제목 (첫 번째 H1)."""

    description: str
    """라우팅에 사용되는 짧은 설명."""

    allowed_tools: tuple[str, ...] = ()
    """스킬이 요청하는 도구 허용 목록 (다른 도구 명명 규칙의 별칭 포함 가능)."""

    body: str = ""
    """SKILL.md 전체 텍스트."""

    path: Path | None = field(default=None, compare=False)
    """SKILL.md 파일 경로."""

    source: str = field(default="local", compare=False)
    """스킬 출처 ('local' 또는 'external')."""

    def __post_init__(self) -> None:
        name = str(self.name or "").strip()
        if not name:
            raise ValueError("스킬 이름은 필수입니다")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "title", str(self.title or ""))
        object.__setattr__(self, "description", str(self.description or ""))
        object.__setattr__(
            self,
            "allowed_tools",
            tuple(str(t).strip() for t in self.allowed_tools if str(t).strip()),
        )


def normalize_skill_name(name: str) -> str:
    """폴더명 등 임의 문자열을 스킬 이름 형식으로 정규화한다.

    소문자 영숫자와 단일 하이픈만 남기고 앞뒤 하이픈은 제거한다.
    """
    normalized = str(name or "").strip().lower()
    normalized = re.sub(r"[^a-z0-9-]", "-", normalized)
    normalized = re.sub(r"--+", "-", normalized)
    return normalized.strip("-")


def parse_skill_markdown(markdown: str) -> tuple[dict[str, Any] | None, str]:
    """SKILL.md 텍스트를 (프론트매터, 본문) 으로 분리한다.

    프론트매터가 없거나 YAML이 유효하지 않거나 매핑이 아니면 프론트매터는 None.

    Args:
        markdown: SKILL.md 원문

    Returns:
        (frontmatter, body) 튜플
    """
    text = markdown.lstrip("\ufeff")
    match = _FRONTMATTER_PATTERN.match(text)
    if not match:
        return None, text

    body = text[match.end() :]
    try:
        frontmatter = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning("프론트매터 YAML이 유효하지 않음: %s", e)
        return None, body

    if not isinstance(frontmatter, dict):
        return None, body
    return frontmatter, body


def infer_title(body: str) -> str:
    """첫 번째 H1, 없으면 첫 번째 비어있지 않은 줄에서 제목을 추론한다."""
    lines = body.splitlines()
    for line in lines:
        match = _H1_PATTERN.match(line)
        if match:
            return match.group(1)
    for line in lines:
        stripped = line.strip()
        if stripped:
            return stripped[:MAX_TITLE_LENGTH]
    return DEFAULT_TITLE


def parse_allowed_tools(frontmatter: dict[str, Any] | None) -> tuple[str, ...]:
    """프론트매터에서 허용 도구 목록을 읽는다.

    ``allowed-tools`` / ``allowedTools`` / ``allowed_tools`` 키를 순서대로 확인하며
    리스트 또는 공백 구분 문자열을 모두 받는다.
    """
    if not frontmatter:
        return ()
    raw = None
    for key in ("allowed-tools", "allowedTools", "allowed_tools"):
        if frontmatter.get(key):
            raw = frontmatter[key]
            break
    if not raw:
        return ()
    if isinstance(raw, (list, tuple)):
        return tuple(str(t).strip() for t in raw if str(t).strip())
    return tuple(str(raw).split())


def _is_safe_path(path: Path, base_dir: Path) -> bool:
    """경로가 base_dir 내에 안전하게 포함되어 있는지 확인한다.

    심볼릭 링크를 따라간 정규 경로 기준으로 검사한다.
    """
    try:
        path.resolve().relative_to(base_dir.resolve())
        return True
    except ValueError:
        return False
    except (OSError, RuntimeError):
        # 경로 해석 오류 (예: 순환 심볼릭 링크)
        return False


def _check_skill_name(name: str, directory_name: str) -> str:
    """이름이 권장 형식을 따르지 않으면 경고 메시지를, 따르면 빈 문자열을 반환한다."""
    if len(name) > MAX_SKILL_NAME_LENGTH:
        return f"이름이 {MAX_SKILL_NAME_LENGTH}자를 초과합니다"
    if not _NAME_PATTERN.match(name):
        return "이름은 소문자 영숫자와 단일 하이픈만 사용해야 합니다"
    if name != normalize_skill_name(directory_name):
        return f"이름 '{name}'이 디렉토리 이름 '{directory_name}'과 다릅니다"
    return ""


def load_skill_file(skill_md_path: Path, *, source: str = "local") -> Skill | None:
    """단일 SKILL.md 파일을 Skill 레코드로 읽는다.

    Args:
        skill_md_path: SKILL.md 파일 경로
        source: 스킬 출처 ('local' 또는 'external')

    Returns:
        Skill, 읽기 실패 시 None
    """
    try:
        file_size = skill_md_path.stat().st_size
        if file_size > MAX_SKILL_FILE_SIZE:
            logger.warning(
                "%s 건너뜀: 파일이 너무 큼 (%d 바이트)", skill_md_path, file_size
            )
            return None
        raw = skill_md_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("%s 읽기 오류: %s", skill_md_path, e)
        return None

    frontmatter, body = parse_skill_markdown(raw)
    directory_name = skill_md_path.parent.name

    fm_name = str(frontmatter.get("name") or "").strip() if frontmatter else ""
    name = fm_name or normalize_skill_name(directory_name)
    if not name:
        logger.warning("%s 건너뜀: 스킬 이름을 결정할 수 없음", skill_md_path)
        return None

    # 형식 위반은 경고만 하고 로드한다
    problem = _check_skill_name(name, directory_name)
    if problem:
        logger.warning("'%s' 스킬 (%s): %s", name, skill_md_path, problem)

    description = ""
    if frontmatter and frontmatter.get("description"):
        description = str(frontmatter["description"]).strip()

    return Skill(
        name=name,
        title=infer_title(body),
        description=description,
        allowed_tools=parse_allowed_tools(frontmatter),
        body=raw,
        path=skill_md_path,
        source=source,
    )


def _iter_skill_files(skills_dir: Path) -> Iterable[Path]:
    for path in sorted(skills_dir.rglob(SKILL_FILENAME)):
        relative_parts = path.relative_to(skills_dir).parts
        if any(part in IGNORED_DIR_NAMES for part in relative_parts):
            continue
        if path.is_file():
            yield path


def discover_skills(skills_dir: str | Path, *, source: str = "local") -> list[Skill]:
    """스킬 디렉토리를 재귀적으로 스캔하여 스킬 목록을 반환한다.

    스킬 구조:
    .skills/
    ├── changelog/
    │   ├── SKILL.md        # 필수
    │   └── template.md     # 선택: 지원 파일
    └── vendor/
        └── pdf-tools/
            └── SKILL.md    # 중첩 디렉토리도 발견됨

    Args:
        skills_dir: 스킬 디렉토리 경로
        source: 스킬 출처 ('local' 또는 'external')

    Returns:
        이름순으로 정렬된 Skill 목록. 디렉토리가 없으면 빈 목록.
    """
    skills_dir = Path(skills_dir).expanduser()
    if not skills_dir.is_dir():
        return []

    skills: dict[str, Skill] = {}
    for skill_md_path in _iter_skill_files(skills_dir):
        # 보안: 스킬 디렉토리 외부를 가리키는 심볼릭 링크 포착
        if not _is_safe_path(skill_md_path, skills_dir):
            logger.warning("%s 건너뜀: 스킬 디렉토리 외부 경로", skill_md_path)
            continue

        skill = load_skill_file(skill_md_path, source=source)
        if skill is None:
            continue

        if skill.name in skills:
            logger.warning(
                "중복 스킬 '%s' (%s) 무시: %s 의 버전을 사용",
                skill.name,
                skill_md_path,
                skills[skill.name].path,
            )
            continue
        skills[skill.name] = skill

    # 결정적인 라우팅을 위한 안정적 정렬
    return sorted(skills.values(), key=lambda s: s.name)


def merge_skills_prefer_local(
    local_skills: Iterable[Skill], external_skills: Iterable[Skill]
) -> list[Skill]:
    """로컬과 외부 카탈로그를 병합한다.

    이름이 충돌하면 로컬 스킬이 외부 스킬을 오버라이드한다.

    Returns:
        이름순으로 정렬된 병합 목록
    """
    merged: dict[str, Skill] = {}
    for skill in external_skills:
        merged[skill.name] = skill
    for skill in local_skills:
        merged[skill.name] = skill
    return sorted(merged.values(), key=lambda s: s.name)
