"""스킬 에이전트를 위한 프롬프트 템플릿과 도구 설명 모듈."""

AGENT_SYSTEM_PROMPT = """You are a helpful mini coding agent running as a command-line tool.
If you have relevant Skills below, follow them.
When using tools, be careful: keep changes minimal, prefer small steps, and avoid destructive commands unless explicitly requested.
"""

SELECTED_SKILLS_HEADER = "\nSelected skills:\n"

SKILL_BLOCK_TEMPLATE = """

---
SKILL: {name}
TITLE: {title}
DESCRIPTION: {description}

{body}
"""

ROUTER_SYSTEM_PROMPT = """You are a router that selects relevant Agent Skills for a user prompt.
You will receive a user prompt and a list of candidate skills (name, title, description).
Return ONLY valid JSON with the shape:
{ "selected": string[], "reason": string }
Rules:
- Select 0 skills if none are relevant.
- Prefer selecting at most 1 skill unless the prompt clearly needs multiple.
- Only select from the provided candidates.
"""

STEP_LIMIT_NOTICE = (
    "[skill-agent] stopped after {max_steps} tool steps "
    "(increase --max-steps if needed)."
)

READ_FILE_DESCRIPTION = (
    "Read a UTF-8 text file from the current workspace. Use this to inspect "
    "existing code or documents. The path must be inside the workspace root."
)

WRITE_FILE_DESCRIPTION = (
    "Write a UTF-8 text file in the current workspace. Creates parent directories "
    "if needed. Refuses to write outside the workspace root."
)

LIST_DIR_DESCRIPTION = (
    "List files and folders within a directory in the workspace root. "
    "Useful to understand project structure."
)

GLOB_DESCRIPTION = (
    "Find files using a glob pattern within the workspace. Pattern is evaluated "
    "relative to `cwd` (default workspace root)."
)

RUN_SHELL_DESCRIPTION = (
    "Run a shell command (non-interactive) inside the workspace. Use for git "
    "commands, tests, or scaffolding. Default timeout is 30s (max 120s)."
)
