"""스킬 에이전트 설정.

우선순위: CLI 인자 > 환경 변수 (``.env`` 포함) > 기본값

환경 변수:
- ``SKILL_AGENT_PROVIDER``: 모델 provider (anthropic | openai)
- ``SKILL_AGENT_MODEL``: 모델 이름
- ``SKILL_AGENT_MAX_STEPS``: 도구 단계 상한
- ``ANTHROPIC_API_KEY`` / ``OPENAI_API_KEY``: provider 별 API 키
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "anthropic"
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_OPENAI_MODEL = "gpt-4.1"

API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


@dataclass
class AgentConfig:
    """에이전트 실행 설정."""

    provider: str = DEFAULT_PROVIDER
    """LangChain 모델 provider."""

    model: str = DEFAULT_MODEL
    """모델 이름."""

    api_key: str | None = None
    """provider API 키. 없으면 라우팅까지만 수행."""

    max_steps: int = 8
    """도구 실행 단계 상한."""

    max_tokens: int = 1500
    """에이전트 호출의 최대 출력 토큰."""

    router_max_tokens: int = 300
    """라우터 호출의 최대 출력 토큰."""

    skills_dir: Path = Path(".skills")
    """로컬 스킬 디렉토리."""

    external_skills_dir: Path = Path(".externalSkills")
    """외부(동기화) 스킬 디렉토리."""

    sync_external: bool = True
    """실행 전 외부 스킬 동기화 여부."""

    enable_tools: bool = True
    """도구 사용 여부."""

    workspace_root: Path = field(default_factory=Path.cwd)
    """도구 샌드박스 루트."""

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


def _env(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def _env_int(name: str) -> int | None:
    value = _env(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("%s 값이 정수가 아님, 무시: %r", name, value)
        return None


def load_config(cwd: str | Path | None = None, **overrides: Any) -> AgentConfig:
    """환경과 CLI 오버라이드로 AgentConfig 를 만든다.

    Args:
        cwd: 작업 디렉토리 (기본: 현재 디렉토리). ``.env`` 와 상대 경로의 기준
        **overrides: AgentConfig 필드 값. None 인 값은 무시

    Returns:
        AgentConfig
    """
    base = Path(cwd).resolve() if cwd is not None else Path.cwd()
    load_dotenv(base / ".env", override=False)

    known = {f.name for f in fields(AgentConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"알 수 없는 설정: {', '.join(sorted(unknown))}")
    values: dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}

    provider = str(
        values.get("provider") or _env("SKILL_AGENT_PROVIDER") or DEFAULT_PROVIDER
    ).lower()
    values["provider"] = provider

    if "model" not in values:
        default_model = DEFAULT_OPENAI_MODEL if provider == "openai" else DEFAULT_MODEL
        values["model"] = _env("SKILL_AGENT_MODEL") or default_model

    if "max_steps" not in values:
        env_steps = _env_int("SKILL_AGENT_MAX_STEPS")
        if env_steps is not None:
            values["max_steps"] = env_steps
    values["max_steps"] = max(0, int(values.get("max_steps", 8)))

    if "api_key" not in values:
        env_var = API_KEY_ENV_VARS.get(provider)
        values["api_key"] = _env(env_var) if env_var else None

    for key in ("skills_dir", "external_skills_dir", "workspace_root"):
        if key in values:
            values[key] = base / Path(values[key])
    values.setdefault("skills_dir", base / ".skills")
    values.setdefault("external_skills_dir", base / ".externalSkills")
    values.setdefault("workspace_root", base)

    return AgentConfig(**values)
