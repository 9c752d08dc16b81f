"""skill-agent 명령줄 인터페이스.

사용 예시:
```
skill-agent "generate a changelog from recent commits"
echo "summarize README.md" | skill-agent --no-tools
skill-agent --repl -v
```

로그는 stderr 로, 최종 응답만 stdout 으로 출력된다.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import TextIO

from skill_agent.agent import AgentLoop
from skill_agent.config import AgentConfig, load_config
from skill_agent.llm import ChatBackend, create_chat_model
from skill_agent.selection import SelectionResult, select_skills
from skill_agent.skills import (
    SkillSyncError,
    discover_skills,
    merge_skills_prefer_local,
    sync_external_skills,
)
from skill_agent.skills.load import Skill
from skill_agent.tools import ToolRuntime

logger = logging.getLogger("skill_agent.cli")

LOG_PREFIX = "[skill-agent]"
EXIT_COMMANDS = frozenset({"exit", "quit"})


class ElapsedFormatter(logging.Formatter):
    """``[skill-agent] 1.2s INFO message`` 형식의 포매터."""

    def format(self, record: logging.LogRecord) -> str:
        elapsed = record.relativeCreated / 1000
        return f"{LOG_PREFIX} {elapsed:.1f}s {record.levelname} {record.getMessage()}"


def configure_logging(*, quiet: bool = False, verbose: bool = False) -> None:
    """``skill_agent`` 로거에 stderr 핸들러를 설정한다."""
    package_logger = logging.getLogger("skill_agent")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    if quiet:
        package_logger.addHandler(logging.NullHandler())
        package_logger.setLevel(logging.CRITICAL + 1)
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ElapsedFormatter())
        package_logger.addHandler(handler)
        package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    package_logger.propagate = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skill-agent",
        description=(
            "Mini coding agent CLI that loads Agent Skills from .skills/ "
            "and runs them with an LLM."
        ),
    )
    parser.add_argument("prompt", nargs="*", help="Prompt to send to the agent")
    parser.add_argument(
        "--skills-dir",
        default=".skills",
        help="Skills directory (contains skill folders with SKILL.md)",
    )
    parser.add_argument(
        "--external-skills-dir",
        default=".externalSkills",
        help="External skills directory (auto-synced skill folders with SKILL.md)",
    )
    parser.add_argument(
        "--no-sync-external",
        dest="sync_external",
        action="store_false",
        help="Disable syncing external skills repos on startup",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="Model provider (anthropic or openai)",
    )
    parser.add_argument("--model", default=None, help="Model name")
    parser.add_argument("--max-steps", type=int, default=None, help="Max tool steps")
    parser.add_argument(
        "--no-tools",
        dest="enable_tools",
        action="store_false",
        help="Disable tool use loop (LLM text only)",
    )
    parser.add_argument("--repl", action="store_true", help="Start interactive REPL")
    parser.add_argument(
        "--quiet", action="store_true", help="Hide step-by-step logs (answer only)"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Print routing decisions to stderr"
    )
    return parser


def create_backend(config: AgentConfig) -> ChatBackend | None:
    """자격 증명이 있으면 ChatBackend 를, 없으면 None 을 반환한다."""
    if not config.has_credentials:
        return None
    return ChatBackend(create_chat_model(config), max_tokens=config.max_tokens)


def print_routing(
    prompt: str,
    local_skills: Sequence[Skill],
    external_skills: Sequence[Skill],
    selection: SelectionResult,
    *,
    stream: TextIO,
) -> None:
    """라우팅 과정을 사람이 읽는 형식으로 출력한다."""
    total = len(local_skills) + len(external_skills)
    print(f"{LOG_PREFIX} prompt: {prompt}", file=stream)
    print(
        f"{LOG_PREFIX} discovered skills: local={len(local_skills)}, "
        f"external={len(external_skills)}, total={total}",
        file=stream,
    )
    shortlist = selection.ranking.shortlist if selection.ranking else ()
    if shortlist:
        print(f"{LOG_PREFIX} top candidates:", file=stream)
        for candidate in shortlist:
            skill = candidate.skill
            print(
                f"  - {skill.name} ({candidate.score:.2f}) - "
                f"{skill.description or skill.title}",
                file=stream,
            )
    else:
        print(f"{LOG_PREFIX} top candidates: (none)", file=stream)
    print(
        f"{LOG_PREFIX} selected skills ({selection.method.value}): "
        f"{', '.join(selection.selected_names) or 'none'}",
        file=stream,
    )


def sync_if_enabled(config: AgentConfig) -> None:
    if not config.sync_external:
        return
    logger.info("sync: external skills (starting)")
    try:
        synced = sync_external_skills(config.external_skills_dir)
    except (SkillSyncError, OSError) as e:
        logger.warning("sync: external skills failed (%s)", e)
        return
    skills = sum(len(repo.materialized_skills) for repo in synced)
    logger.info("sync: external skills (done) repos=%d skills=%d", len(synced), skills)


def run_prompt(
    prompt: str,
    config: AgentConfig,
    *,
    verbose: bool = False,
    quiet: bool = False,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> None:
    """프롬프트 하나를 처리한다: 동기화, 탐색, 선택, 에이전트 실행."""
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    sync_if_enabled(config)

    logger.info("discover: scanning skills")
    local_skills = discover_skills(config.skills_dir, source="local")
    external_skills = discover_skills(config.external_skills_dir, source="external")
    catalog = merge_skills_prefer_local(local_skills, external_skills)
    logger.info(
        "discover: local=%d external=%d total=%d",
        len(local_skills),
        len(external_skills),
        len(catalog),
    )

    backend = create_backend(config)
    selection = select_skills(
        prompt, catalog, backend, router_max_tokens=config.router_max_tokens
    )
    logger.info(
        "selected skill(s): %s (method=%s)",
        ", ".join(selection.selected_names) or "none",
        selection.method.value,
    )
    if verbose and not quiet:
        print_routing(prompt, local_skills, external_skills, selection, stream=stderr)

    if backend is None:
        logger.warning(
            "API key for provider '%s' not set. Routing complete; set the key to run the agent.",
            config.provider,
        )
        return

    runtime = ToolRuntime(config.workspace_root) if config.enable_tools else None
    loop = AgentLoop(
        backend,
        runtime=runtime,
        max_steps=config.max_steps,
        max_tokens=config.max_tokens,
    )
    logger.info("agent: starting run (model=%s)", config.model)
    result = loop.run(prompt, selection.selected_skills)
    logger.info(
        "agent: finished (%s, steps=%d)", result.termination_reason.value, result.steps
    )
    stdout.write(result.text.rstrip() + "\n")
    stdout.flush()


def run_repl(config: AgentConfig, *, verbose: bool = False, quiet: bool = False) -> None:
    """``exit`` / ``quit`` 또는 EOF 까지 프롬프트를 반복 처리한다."""
    while True:
        try:
            prompt = input("> ").strip()
        except EOFError:
            break
        if not prompt:
            continue
        if prompt in EXIT_COMMANDS:
            break
        run_prompt(prompt, config, verbose=verbose, quiet=quiet)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(quiet=args.quiet, verbose=args.verbose)

    try:
        config = load_config(
            provider=args.provider,
            model=args.model,
            max_steps=args.max_steps,
            skills_dir=args.skills_dir,
            external_skills_dir=args.external_skills_dir,
            sync_external=args.sync_external,
            enable_tools=args.enable_tools,
        )

        if args.repl:
            run_repl(config, verbose=args.verbose, quiet=args.quiet)
            return 0

        prompt = " ".join(args.prompt).strip()
        if not prompt and not sys.stdin.isatty():
            prompt = sys.stdin.read().strip()
        if not prompt:
            run_repl(config, verbose=args.verbose, quiet=args.quiet)
            return 0

        run_prompt(prompt, config, verbose=args.verbose, quiet=args.quiet)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        print(f"{LOG_PREFIX} error: {type(e).__name__}: {e}", file=sys.stderr)
        logger.debug("unhandled error", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
