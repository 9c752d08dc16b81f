"""에이전트 루프가 사용하는 도구 레지스트리와 디스패처.

## 제공 도구

- ``read_file``: UTF-8 텍스트 파일 읽기 (200,000자 초과 시 잘림)
- ``write_file``: 파일 쓰기 (상위 디렉토리 자동 생성)
- ``list_dir``: 디렉토리 목록 (디렉토리는 ``/`` 접미사)
- ``glob``: 패턴 매칭 파일 목록
- ``run_shell``: 셸 명령 실행 (타임아웃 기본 30초, 최대 120초)

## 허용 목록

스킬의 ``allowed-tools`` 는 다른 에이전트 도구 이름(Read, Bash 등)을 쓰는 경우가
많으므로 별칭을 통해 이 레지스트리의 이름으로 매핑한다. 알려진 도구가 하나도
남지 않으면 전체 레지스트리를 사용한다.

## 사용 예시

```python
runtime = ToolRuntime("/path/to/workspace")
tools = runtime.restrict_tools(["Read", "Bash"])
result = runtime.execute("read_file", {"path": "README.md"}, call_id="call_1")
```
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from skill_agent.prompts import (
    GLOB_DESCRIPTION,
    LIST_DIR_DESCRIPTION,
    READ_FILE_DESCRIPTION,
    RUN_SHELL_DESCRIPTION,
    WRITE_FILE_DESCRIPTION,
)
from skill_agent.tools.types import ToolDefinition, ToolResult
from skill_agent.tools.workspace import (
    FileExistsToolError,
    ToolError,
    UnknownToolError,
    Workspace,
    truncate_output,
)

logger = logging.getLogger(__name__)

TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="read_file",
        description=READ_FILE_DESCRIPTION,
        input_schema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "File path (relative or absolute).",
                },
            },
            "required": ["path"],
        },
    ),
    ToolDefinition(
        name="write_file",
        description=WRITE_FILE_DESCRIPTION,
        input_schema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "File path (relative or absolute).",
                },
                "content": {
                    "type": "string",
                    "description": "Full file contents to write.",
                },
                "overwrite": {
                    "type": "boolean",
                    "description": "If false, error when file already exists. Default true.",
                },
            },
            "required": ["path", "content"],
        },
    ),
    ToolDefinition(
        name="list_dir",
        description=LIST_DIR_DESCRIPTION,
        input_schema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Directory path."},
            },
            "required": ["path"],
        },
    ),
    ToolDefinition(
        name="glob",
        description=GLOB_DESCRIPTION,
        input_schema={
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "Glob pattern (e.g. **/*.py).",
                },
                "cwd": {
                    "type": "string",
                    "description": "Working directory (optional).",
                },
                "ignore": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Ignore patterns (optional).",
                },
            },
            "required": ["pattern"],
        },
    ),
    ToolDefinition(
        name="run_shell",
        description=RUN_SHELL_DESCRIPTION,
        input_schema={
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "Shell command to run."},
                "cwd": {
                    "type": "string",
                    "description": "Working directory (optional).",
                },
                "timeout_ms": {
                    "type": "integer",
                    "description": "Timeout in milliseconds.",
                },
            },
            "required": ["command"],
        },
    ),
)

# 다른 에이전트의 도구 이름 -> 레지스트리 이름
TOOL_ALIASES: dict[str, str] = {
    "read": "read_file",
    "write": "write_file",
    "edit": "write_file",
    "ls": "list_dir",
    "list": "list_dir",
    "glob": "glob",
    "search": "glob",
    "bash": "run_shell",
    "shell": "run_shell",
    "terminal": "run_shell",
}


def normalize_allowed_tool_name(name: object) -> str | None:
    """허용 목록 항목을 레지스트리 이름으로 매핑한다. 빈 값은 None."""
    text = str(name or "").strip()
    if not text:
        return None
    return TOOL_ALIASES.get(text.lower(), text)


def _matches_ignore(relative_path: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if fnmatch.fnmatch(relative_path, pattern):
            return True
        # "**/x" 는 최상위의 "x" 에도 매칭
        if pattern.startswith("**/") and fnmatch.fnmatch(relative_path, pattern[3:]):
            return True
    return False


class ToolRuntime:
    """작업공간 샌드박스 위의 도구 레지스트리.

    Args:
        root_dir: 작업공간 루트 디렉토리
        env: 셸 명령 환경 변수 (기본: 현재 프로세스 환경)
    """

    def __init__(
        self, root_dir: str | Path, *, env: Mapping[str, str] | None = None
    ) -> None:
        self.workspace = Workspace(root_dir, env=env)
        self._definitions = TOOL_DEFINITIONS
        self._by_name = {d.name: d for d in self._definitions}
        self._handlers: dict[str, Callable[..., str]] = {
            "read_file": self.read_file,
            "write_file": self.write_file,
            "list_dir": self.list_dir,
            "glob": self.glob,
            "run_shell": self.run_shell,
        }

    @property
    def definitions(self) -> tuple[ToolDefinition, ...]:
        return self._definitions

    def restrict_tools(self, allowed_names: Iterable[object]) -> tuple[ToolDefinition, ...]:
        """허용 목록에 해당하는 도구만 반환한다.

        빈 목록이거나 알려진 도구가 하나도 없으면 전체 레지스트리를 반환한다.
        """
        allowed: list[ToolDefinition] = []
        seen: set[str] = set()
        for raw in allowed_names or ():
            name = normalize_allowed_tool_name(raw)
            if name is None or name in seen:
                continue
            seen.add(name)
            definition = self._by_name.get(name)
            if definition is not None:
                allowed.append(definition)
        if not allowed:
            return self._definitions
        return tuple(allowed)

    def read_file(self, path: str) -> str:
        target = self.workspace.resolve(path)
        with target.open(encoding="utf-8", newline="") as f:
            return truncate_output(f.read())

    def write_file(self, path: str, content: str = "", overwrite: bool = True) -> str:
        target = self.workspace.resolve(path)
        if overwrite is False and target.exists():
            raise FileExistsToolError(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8", newline="") as f:
            f.write(str(content if content is not None else ""))
        return "ok"

    def list_dir(self, path: str = ".") -> str:
        target = self.workspace.resolve(path)
        entries = [
            f"{entry.name}/" if entry.is_dir() else entry.name
            for entry in target.iterdir()
        ]
        return "\n".join(sorted(entries))

    def glob(
        self,
        pattern: str,
        cwd: str | None = None,
        ignore: list[str] | None = None,
    ) -> str:
        base = self.workspace.resolve(cwd) if cwd else self.workspace.root
        ignore_patterns = [str(p) for p in ignore] if isinstance(ignore, list) else []

        matches: set[str] = set()
        for match in base.glob(str(pattern)):
            if not match.is_file():
                continue
            relative = self.workspace.relative(match, base)
            if relative is None:
                continue
            if ignore_patterns and _matches_ignore(relative, ignore_patterns):
                continue
            matches.add(relative)
        return "\n".join(sorted(matches))

    def run_shell(
        self, command: str, cwd: str | None = None, timeout_ms: int | None = None
    ) -> str:
        return self.workspace.run_shell(str(command), cwd=cwd, timeout_ms=timeout_ms)

    def execute(
        self, name: str, tool_input: Mapping[str, Any] | None, call_id: str
    ) -> ToolResult:
        """도구를 실행하고 결과를 ToolResult 로 반환한다. 예외를 던지지 않는다."""
        try:
            handler = self._handlers.get(name)
            if handler is None:
                raise UnknownToolError(name)
            output = handler(**dict(tool_input or {}))
        except ToolError as e:
            logger.info("tool: %s error: %s", name, e)
            return ToolResult(call_id=call_id, output=str(e), is_error=True)
        except Exception as e:
            logger.warning("tool: %s 실행 실패: %s: %s", name, type(e).__name__, e)
            return ToolResult(
                call_id=call_id, output=f"{type(e).__name__}: {e}", is_error=True
            )
        logger.info("tool: %s ok (%d chars)", name, len(output))
        return ToolResult(call_id=call_id, output=output)
