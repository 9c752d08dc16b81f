import pytest

from skill_agent.config import DEFAULT_MODEL, AgentConfig, load_config

ENV_VARS = (
    "SKILL_AGENT_PROVIDER",
    "SKILL_AGENT_MODEL",
    "SKILL_AGENT_MAX_STEPS",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        # setenv 후 delenv 해야 .env 로 로드된 값도 테스트 후 제거된다
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestAgentConfig:
    def test_defaults(self):
        config = AgentConfig()

        assert config.provider == "anthropic"
        assert config.model == DEFAULT_MODEL
        assert config.max_steps == 8
        assert config.max_tokens == 1500
        assert config.router_max_tokens == 300
        assert config.sync_external is True
        assert config.enable_tools is True
        assert config.has_credentials is False

    def test_has_credentials(self):
        assert AgentConfig(api_key="sk-ant").has_credentials is True


class TestLoadConfig:
    def test_resolves_directories_against_cwd(self, tmp_path):
        config = load_config(tmp_path)

        assert config.skills_dir == tmp_path.resolve() / ".skills"
        assert config.external_skills_dir == tmp_path.resolve() / ".externalSkills"
        assert config.workspace_root == tmp_path.resolve()
        assert config.api_key is None

    def test_reads_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SKILL_AGENT_MODEL", "claude-haiku-4-5")
        monkeypatch.setenv("SKILL_AGENT_MAX_STEPS", "3")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")

        config = load_config(tmp_path)

        assert config.model == "claude-haiku-4-5"
        assert config.max_steps == 3
        assert config.api_key == "sk-ant-test"

    def test_blank_key_counts_as_absent(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "   ")

        assert load_config(tmp_path).has_credentials is False

    def test_openai_provider_uses_openai_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SKILL_AGENT_PROVIDER", "OpenAI")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")

        config = load_config(tmp_path)

        assert config.provider == "openai"
        assert config.api_key == "sk-openai"
        assert config.model != DEFAULT_MODEL

    def test_dotenv_does_not_override_environment(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text(
            "ANTHROPIC_API_KEY=from-dotenv\nSKILL_AGENT_MODEL=from-dotenv\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("SKILL_AGENT_MODEL", "from-env")

        config = load_config(tmp_path)

        assert config.api_key == "from-dotenv"
        assert config.model == "from-env"

    def test_overrides_win(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SKILL_AGENT_MAX_STEPS", "3")

        config = load_config(
            tmp_path,
            max_steps=-5,
            model="custom",
            skills_dir="my-skills",
            enable_tools=False,
            provider=None,
        )

        assert config.max_steps == 0
        assert config.model == "custom"
        assert config.skills_dir == tmp_path.resolve() / "my-skills"
        assert config.enable_tools is False
        assert config.provider == "anthropic"

    def test_invalid_max_steps_env_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SKILL_AGENT_MAX_STEPS", "many")

        assert load_config(tmp_path).max_steps == 8

    def test_unknown_override_rejected(self, tmp_path):
        with pytest.raises(TypeError):
            load_config(tmp_path, colour="blue")
