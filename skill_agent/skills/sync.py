"""외부 git 저장소의 스킬을 외부 스킬 디렉토리로 동기화하는 모듈.

동작 순서:
1. ``<external_dir>/sources.json`` 에서 저장소 목록 로드 (없으면 기본값 생성)
2. ``<external_dir>/.cache/<repo>`` 에 sparse clone (이미 있으면 fast-forward pull)
3. 저장소 내 ``<path>/**/SKILL.md`` 폴더를 ``<external_dir>/<name>/`` 로 복사
4. ``.sync-state.json`` 에 저장소별 복사된 폴더 목록을 기록하여
   다음 동기화 때 더 이상 존재하지 않는 스킬 폴더를 정리

sources.json 예시:
```json
{
  "repos": [
    {"url": "https://github.com/langbaseinc/agent-skills.git", "branch": "main", "paths": ["skills"]}
  ]
}
```
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from skill_agent.skills.load import SKILL_FILENAME

logger = logging.getLogger(__name__)

SOURCES_FILENAME = "sources.json"
SYNC_STATE_FILENAME = ".sync-state.json"
CACHE_DIRNAME = ".cache"
LEGACY_EXTERNAL_DIRNAME = "external skills"
DEFAULT_SPARSE_PATHS = ("skills",)

DEFAULT_SOURCES: dict[str, Any] = {
    "repos": [
        {"url": "https://github.com/langbaseinc/agent-skills.git"},
    ]
}


class SkillSyncError(RuntimeError):
    """외부 스킬 저장소 동기화 실패."""


@dataclass(frozen=True)
class SkillSource:
    """sources.json 의 저장소 항목."""

    url: str
    dir: str = ""
    branch: str = ""
    paths: tuple[str, ...] = ()

    @property
    def repo_key(self) -> str:
        """캐시 디렉토리 이름. ``dir`` 이 없으면 URL의 마지막 세그먼트."""
        if self.dir:
            return self.dir
        segments = [s for s in self.url.strip().split("/") if s]
        last = segments[-1] if segments else "repo"
        return re.sub(r"\.git$", "", last, flags=re.IGNORECASE)


@dataclass
class SyncedRepo:
    """저장소 하나의 동기화 결과."""

    url: str
    repo: str
    cache_dir: Path
    materialized_skills: list[str] = field(default_factory=list)


def safe_dir_name(value: str) -> str:
    """파일시스템에 안전한 폴더 이름으로 변환한다."""
    name = re.sub(r"[^a-zA-Z0-9._-]+", "-", str(value or "").strip())
    name = re.sub(r"-+", "-", name)
    return name.strip("-")


def ensure_sources_config(external_dir: Path) -> Path:
    """sources.json 이 없으면 예전 위치에서 옮기거나 기본 설정으로 생성하고 경로를 반환한다."""
    external_dir.mkdir(parents=True, exist_ok=True)
    config_path = external_dir / SOURCES_FILENAME
    if config_path.exists():
        return config_path

    # 예전 폴더 이름 "external skills/" 의 설정은 한 번만 옮겨 온다
    legacy_path = external_dir.parent / LEGACY_EXTERNAL_DIRNAME / SOURCES_FILENAME
    if legacy_path.is_file():
        raw = legacy_path.read_text(encoding="utf-8")
        config_path.write_text(raw if raw.endswith("\n") else raw + "\n", encoding="utf-8")
        logger.info("sync: %s 를 %s 로 이전", legacy_path, config_path)
        return config_path

    config_path.write_text(json.dumps(DEFAULT_SOURCES, indent=2) + "\n", encoding="utf-8")
    logger.info("sync: 기본 %s 생성 (%s)", SOURCES_FILENAME, config_path)
    return config_path


def load_skill_sources(external_dir: Path) -> list[SkillSource]:
    """sources.json 에서 저장소 목록을 읽는다. url 없는 항목은 제외한다."""
    config_path = ensure_sources_config(external_dir)
    try:
        parsed = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise SkillSyncError(f"{config_path} 파싱 실패: {e}") from e

    repos = parsed.get("repos") if isinstance(parsed, dict) else None
    if not isinstance(repos, list):
        return []

    sources: list[SkillSource] = []
    for entry in repos:
        if not isinstance(entry, dict):
            continue
        url = str(entry.get("url") or "").strip()
        if not url:
            continue
        raw_paths = entry.get("paths")
        paths = (
            tuple(str(p).strip() for p in raw_paths if str(p).strip())
            if isinstance(raw_paths, list)
            else ()
        )
        sources.append(
            SkillSource(
                url=url,
                dir=str(entry.get("dir") or "").strip(),
                branch=str(entry.get("branch") or "").strip(),
                paths=paths,
            )
        )
    return sources


def _run_git(args: Sequence[str], *, cwd: Path) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise SkillSyncError("git 실행 파일을 찾을 수 없습니다") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or e.stdout or "").strip()
        raise SkillSyncError(f"git {' '.join(args)} 실패: {detail}") from e


def ensure_sparse_repo(source: SkillSource, cache_dir: Path) -> None:
    """저장소를 sparse clone 하거나 기존 캐시를 갱신한다."""
    parent = cache_dir.parent
    parent.mkdir(parents=True, exist_ok=True)

    if not cache_dir.is_dir():
        args = ["clone", "--depth", "1", "--filter=blob:none", "--sparse"]
        if source.branch:
            args += ["--branch", source.branch]
        args += [source.url, str(cache_dir)]
        _run_git(args, cwd=parent)
    else:
        # 갱신 실패 시 기존 체크아웃을 그대로 사용
        try:
            _run_git(["-C", str(cache_dir), "pull", "--ff-only"], cwd=parent)
        except SkillSyncError as e:
            logger.warning("sync: %s pull 실패, 캐시 사용: %s", source.repo_key, e)

    sparse_paths = list(source.paths or DEFAULT_SPARSE_PATHS)
    try:
        _run_git(["-C", str(cache_dir), "sparse-checkout", "init", "--cone"], cwd=parent)
    except SkillSyncError as e:
        logger.debug("sync: sparse-checkout init 실패: %s", e)

    try:
        _run_git(
            ["-C", str(cache_dir), "sparse-checkout", "set", *sparse_paths], cwd=parent
        )
    except SkillSyncError as e:
        logger.warning("sync: sparse-checkout 사용 불가, 전체 체크아웃: %s", e)
        _run_git(["-C", str(cache_dir), "checkout"], cwd=parent)


def _read_sync_state(external_dir: Path) -> dict[str, Any]:
    state_path = external_dir / SYNC_STATE_FILENAME
    try:
        state = json.loads(state_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {"repos": {}}
    if not isinstance(state, dict):
        return {"repos": {}}
    if not isinstance(state.get("repos"), dict):
        state["repos"] = {}
    return state


def _write_sync_state(external_dir: Path, state: dict[str, Any]) -> None:
    state_path = external_dir / SYNC_STATE_FILENAME
    state_path.write_text(json.dumps(state, indent=2) + "\n", encoding="utf-8")


def _find_skill_dirs(cache_dir: Path, paths: Sequence[str]) -> list[Path]:
    skill_dirs: list[Path] = []
    seen: set[Path] = set()
    for root in paths or DEFAULT_SPARSE_PATHS:
        root = root.replace("\\", "/").rstrip("/")
        for skill_md in sorted(cache_dir.glob(f"{root}/**/{SKILL_FILENAME}")):
            if ".git" in skill_md.relative_to(cache_dir).parts:
                continue
            skill_dir = skill_md.parent
            if skill_dir not in seen:
                seen.add(skill_dir)
                skill_dirs.append(skill_dir)
    return skill_dirs


def _assign_destination_names(repo_key: str, skill_dirs: Sequence[Path]) -> dict[Path, str]:
    """스킬 폴더마다 외부 디렉토리 안에서 고유한 목적지 이름을 정한다."""
    repo_prefix = safe_dir_name(repo_key)
    used: set[str] = set()
    names: dict[Path, str] = {}
    for skill_dir in skill_dirs:
        base = safe_dir_name(skill_dir.name) or "skill"
        name = base
        if name in used:
            name = f"{repo_prefix}__{base}"
        counter = 2
        while name in used:
            name = f"{repo_prefix}__{base}__{counter}"
            counter += 1
        used.add(name)
        names[skill_dir] = name
    return names


def materialize_skills(
    repo_key: str,
    cache_dir: Path,
    external_dir: Path,
    paths: Sequence[str] = (),
) -> list[str]:
    """캐시된 저장소의 스킬 폴더를 외부 스킬 디렉토리로 복사한다.

    Args:
        repo_key: 저장소 식별자 (sync state 키)
        cache_dir: 체크아웃된 저장소 경로
        external_dir: 외부 스킬 디렉토리
        paths: 스킬을 찾을 저장소 내 하위 경로 (기본 ``skills``)

    Returns:
        복사된 목적지 폴더 이름 목록 (정렬됨)
    """
    destinations = _assign_destination_names(repo_key, _find_skill_dirs(cache_dir, paths))

    state = _read_sync_state(external_dir)
    previous = state["repos"].get(repo_key)
    previous_names = set(previous) if isinstance(previous, list) else set()
    next_names = set(destinations.values())

    # 이전 동기화에서 만들었지만 이제 사라진 스킬 폴더 정리 (dot 폴더는 건드리지 않음)
    for old_name in sorted(previous_names - next_names):
        target = external_dir / old_name
        if old_name.startswith(".") or not target.is_dir():
            continue
        shutil.rmtree(target, ignore_errors=True)
        logger.info("sync: 사라진 스킬 폴더 제거 %s", old_name)

    for skill_dir, dest_name in destinations.items():
        dest_dir = external_dir / dest_name
        if dest_dir.exists():
            shutil.rmtree(dest_dir)
        shutil.copytree(skill_dir, dest_dir)

    materialized = sorted(next_names)
    state["repos"][repo_key] = materialized
    _write_sync_state(external_dir, state)
    return materialized


def sync_external_skills(external_dir: str | Path) -> list[SyncedRepo]:
    """sources.json 의 모든 저장소를 동기화한다.

    Raises:
        SkillSyncError: git 명령 실패 또는 설정 파싱 실패
    """
    external_dir = Path(external_dir)
    sources = load_skill_sources(external_dir)
    cache_root = external_dir / CACHE_DIRNAME
    cache_root.mkdir(parents=True, exist_ok=True)

    synced: list[SyncedRepo] = []
    for source in sources:
        repo_key = source.repo_key
        cache_dir = cache_root / repo_key
        ensure_sparse_repo(source, cache_dir)
        materialized = materialize_skills(
            repo_key, cache_dir, external_dir, source.paths
        )
        logger.info("sync: %s -> 스킬 %d개", repo_key, len(materialized))
        synced.append(
            SyncedRepo(
                url=source.url,
                repo=repo_key,
                cache_dir=cache_dir,
                materialized_skills=materialized,
            )
        )
    return synced
