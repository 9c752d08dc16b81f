"""로컬 작업공간 샌드박스.

모든 경로 입력은 작업공간 루트 기준으로 해석되며 루트 밖을 가리키면
``PathEscapeError`` 가 발생한다. 검사는 두 단계로 이루어진다:

1. 어휘적 검사: 파일시스템 접근 없이 ``..`` 를 정규화한 경로로 판단
2. 심볼릭 링크 해석 후 검사: 작업공간 내부 링크가 외부를 가리키는 경우 차단

셸 명령은 자체 프로세스 그룹에서 실행되며 타임아웃 시 그룹 전체를 종료한다.
"""

from __future__ import annotations

import os
import signal
import subprocess
from collections.abc import Mapping
from pathlib import Path

MAX_OUTPUT_CHARS = 200_000

DEFAULT_SHELL_TIMEOUT_MS = 30_000
MIN_SHELL_TIMEOUT_MS = 1_000
MAX_SHELL_TIMEOUT_MS = 120_000


class ToolError(Exception):
    """도구 실행 실패의 기본 클래스."""


class PathEscapeError(ToolError):
    """경로가 작업공간 루트를 벗어남."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Path escapes workspace root: {path}")
        self.path = path


class FileExistsToolError(ToolError):
    """overwrite=False 인데 대상 파일이 이미 존재함."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File already exists: {path}")
        self.path = path


class UnknownToolError(ToolError):
    """등록되지 않은 도구 이름."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ShellCommandError(ToolError):
    """셸 명령이 0이 아닌 종료 코드로 끝남."""

    def __init__(self, command: str, exit_code: int, output: str) -> None:
        message = f"Command failed with exit code {exit_code}: {command}"
        if output:
            message += f"\n\n{output}"
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.output = output


class ShellTimeoutError(ToolError):
    """셸 명령이 타임아웃되어 강제 종료됨."""

    def __init__(self, command: str, timeout_ms: int, output: str = "") -> None:
        message = f"Command timed out after {timeout_ms}ms: {command}"
        if output:
            message += f"\n\n{output}"
        super().__init__(message)
        self.command = command
        self.timeout_ms = timeout_ms
        self.output = output


def truncate_output(text: str, max_chars: int = MAX_OUTPUT_CHARS) -> str:
    """``max_chars`` 를 넘는 출력을 잘라내고 표시를 붙인다."""
    text = str(text or "")
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + f"\n\n[truncated to {max_chars} chars]\n"


def format_shell_output(stdout: str, stderr: str) -> str:
    """STDOUT/STDERR 블록을 빈 줄로 이어 붙인다. 비어 있는 블록은 생략."""
    blocks = []
    if stdout:
        blocks.append(f"STDOUT:\n{stdout}")
    if stderr:
        blocks.append(f"STDERR:\n{stderr}")
    return truncate_output("\n\n".join(blocks))


def clamp_timeout_ms(timeout_ms: object) -> int:
    """타임아웃을 [1000, 120000] ms 로 제한한다. 숫자가 아니면 기본값."""
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)):
        return DEFAULT_SHELL_TIMEOUT_MS
    return int(max(MIN_SHELL_TIMEOUT_MS, min(MAX_SHELL_TIMEOUT_MS, timeout_ms)))


def _is_within(path: str, root: str) -> bool:
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


class Workspace:
    """작업공간 루트에 묶인 파일시스템/셸 접근.

    Args:
        root_dir: 작업공간 루트 디렉토리
        env: 셸 명령 환경 변수 (기본: 현재 프로세스 환경)
    """

    def __init__(
        self, root_dir: str | Path, *, env: Mapping[str, str] | None = None
    ) -> None:
        self._root = os.path.abspath(os.fspath(root_dir))
        self._env = dict(env) if env is not None else None

    @property
    def root(self) -> Path:
        return Path(self._root)

    def resolve(self, path: str | os.PathLike[str]) -> Path:
        """경로를 루트 기준 절대 경로로 해석한다.

        Raises:
            PathEscapeError: 어휘적 또는 심볼릭 링크 해석 후 경로가 루트 밖인 경우
        """
        raw = os.fspath(path)
        lexical = os.path.normpath(os.path.join(self._root, raw))
        if not _is_within(lexical, self._root):
            raise PathEscapeError(raw)

        real_root = os.path.realpath(self._root)
        if not _is_within(os.path.realpath(lexical), real_root):
            raise PathEscapeError(raw)
        return Path(lexical)

    def relative(self, path: Path, base: Path | None = None) -> str | None:
        """``base`` 기준 POSIX 상대 경로. 실제 경로가 루트 밖이면 None."""
        real_root = os.path.realpath(self._root)
        if not _is_within(os.path.realpath(path), real_root):
            return None
        return path.relative_to(base or self.root).as_posix()

    def run_shell(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout_ms: object = None,
    ) -> str:
        """셸을 통해 명령을 실행하고 STDOUT/STDERR 블록을 반환한다.

        Raises:
            ShellTimeoutError: 타임아웃 (프로세스 그룹 전체 종료 후)
            ShellCommandError: 0이 아닌 종료 코드
        """
        workdir = self.resolve(cwd) if cwd else self.root
        timeout = clamp_timeout_ms(timeout_ms)

        proc = subprocess.Popen(
            command,
            shell=True,
            cwd=workdir,
            env=self._env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
        try:
            stdout, stderr = proc.communicate(timeout=timeout / 1000)
        except subprocess.TimeoutExpired:
            self._kill_process_group(proc)
            stdout, stderr = proc.communicate()
            raise ShellTimeoutError(
                command, timeout, format_shell_output(stdout, stderr)
            ) from None

        output = format_shell_output(stdout, stderr)
        if proc.returncode != 0:
            raise ShellCommandError(command, proc.returncode, output)
        return output

    @staticmethod
    def _kill_process_group(proc: subprocess.Popen[str]) -> None:
        if hasattr(os, "killpg"):
            try:
                os.killpg(proc.pid, signal.SIGKILL)
                return
            except ProcessLookupError:
                return
        proc.kill()
