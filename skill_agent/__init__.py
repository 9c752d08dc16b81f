"""스킬 라우팅 코딩 에이전트 모듈.

SKILL.md 로 작성된 짧은 지침 문서("스킬") 카탈로그에서 사용자 요청과 관련된
스킬을 고르고, 선택된 스킬을 시스템 프롬프트에 주입한 뒤 샌드박스 도구를
사용하는 유한 단계 대화로 답을 만든다.

## 처리 단계

1. **스킬 탐색 (Discovery)**
   - ``.skills/`` (로컬) 과 ``.externalSkills/`` (git 동기화) 에서 SKILL.md 로드
   - 이름 충돌 시 로컬 스킬 우선

2. **휴리스틱 순위 (Ranking)**
   - 토큰 Jaccard 유사도 + 이름 기반 보너스
   - 상위 후보 최대 8개

3. **LLM 라우팅 (Routing)**
   - 후보의 이름/제목/설명만 모델에 전달
   - 실패 시 최상위 휴리스틱 후보로 대체

4. **도구 루프 (Agent Loop)**
   - read_file / write_file / list_dir / glob / run_shell
   - 모든 경로는 작업공간 루트 내부로 제한
   - ``max_steps`` 초과 시 안내 문구와 함께 중단

## 모듈 구조

```
skill_agent/
├── __init__.py                 # 이 파일
├── agent.py                    # 에이전트 루프, 시스템 프롬프트 조립
├── cli.py                      # skill-agent 명령줄 인터페이스
├── config.py                   # 설정 (.env, 환경 변수, CLI 오버라이드)
├── llm.py                      # LangChain 채팅 모델 어댑터
├── prompts.py                  # 시스템 프롬프트, 도구 설명
├── selection/                  # 스킬 선택
│   ├── ranking.py             # 휴리스틱 점수
│   ├── router.py              # LLM 라우터
│   └── coordinator.py         # 순위 -> 라우터 -> 대체
├── skills/                     # 스킬 카탈로그
│   ├── load.py                # SKILL.md 파싱/탐색
│   └── sync.py                # 외부 git 저장소 동기화
└── tools/                      # 샌드박스 도구
    ├── types.py               # 도구 정의/호출/결과 레코드
    ├── workspace.py           # 경로 샌드박스, 셸 실행
    └── runtime.py             # 도구 레지스트리, 허용 목록, 디스패치
```

## 사용 예시

```python
from skill_agent import AgentLoop, ChatBackend, ToolRuntime, load_config
from skill_agent import create_chat_model, discover_skills, select_skills

config = load_config()
backend = ChatBackend(create_chat_model(config))
skills = discover_skills(config.skills_dir)
selection = select_skills("generate a changelog", skills, backend)

loop = AgentLoop(backend, runtime=ToolRuntime(config.workspace_root))
result = loop.run("generate a changelog", selection.selected_skills)
print(result.text)
```
"""

__version__ = "0.1.0"

from skill_agent.agent import AgentLoop, AgentRunResult, TerminationReason
from skill_agent.config import AgentConfig, load_config
from skill_agent.llm import ChatBackend, create_chat_model
from skill_agent.selection import MatchMethod, SelectionResult, select_skills
from skill_agent.skills import Skill, discover_skills, merge_skills_prefer_local
from skill_agent.tools import ToolRuntime

__all__ = [
    "AgentLoop",
    "AgentRunResult",
    "TerminationReason",
    "AgentConfig",
    "load_config",
    "ChatBackend",
    "create_chat_model",
    "MatchMethod",
    "SelectionResult",
    "select_skills",
    "Skill",
    "discover_skills",
    "merge_skills_prefer_local",
    "ToolRuntime",
]
