"""Tests for configuration loading."""

import pytest

from toolpipe_core.config import DEFAULT_CONFIG, load_config, load_lint_prompt_template

_ENV_VARS = (
    "GITHUB_APP_ID",
    "GITHUB_PRIVATE_KEY_BASE64",
    "GITHUB_PRIVATE_KEY",
    "GITHUB_REPO_OWNER",
    "GITHUB_REPO_NAME",
    "TOOLPIPE_TELEMETRY_URL",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["model"] == "anthropic"
    assert config["repo_owner"] == "Online-Everything-Tool"
    assert config["repo_name"] == "oet"
    assert config["ci"]["workflow_runs_window"] == 75
    assert config["recent_builds"] == {"open_window": 50, "closed_window": 50, "max_results": 10}
    assert config["telemetry_url"] is None


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".toolpipe.yml"
    cfg.write_text("model: openai\nrequest_timeout: 30\n")
    config = load_config(config_path=str(cfg))
    assert config["model"] == "openai"
    assert config["request_timeout"] == 30


def test_nested_sections_are_merged(tmp_path):
    cfg = tmp_path / ".toolpipe.yml"
    cfg.write_text("recent_builds:\n  max_results: 25\n")
    config = load_config(config_path=str(cfg))
    assert config["recent_builds"]["max_results"] == 25
    assert config["recent_builds"]["open_window"] == 50


def test_loaded_config_does_not_share_defaults(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    config["ci"]["comment_limit"] = 99
    config["bot_identities"].clear()
    assert DEFAULT_CONFIG["ci"]["comment_limit"] == 10
    assert DEFAULT_CONFIG["bot_identities"]


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".toolpipe.yml"
    cfg.write_text("model: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": "anthropic", "model_name": None})
    assert config["model"] == "anthropic"
    assert config["model_name"] is None


def test_env_overrides_repository(tmp_path, monkeypatch):
    cfg = tmp_path / ".toolpipe.yml"
    cfg.write_text("repo_owner: from-file\n")
    monkeypatch.setenv("GITHUB_REPO_OWNER", "from-env")
    monkeypatch.setenv("GITHUB_REPO_NAME", "tools")
    config = load_config(config_path=str(cfg))
    assert config["repo_owner"] == "from-env"
    assert config["repo_name"] == "tools"


def test_credentials_read_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_APP_ID", "12345")
    monkeypatch.setenv("GITHUB_PRIVATE_KEY_BASE64", "a2V5")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_app_id"] == "12345"
    assert config["github_private_key_base64"] == "a2V5"
    assert config["github_private_key"] is None
    assert config["anthropic_api_key"] == "ant"
    assert config["openai_api_key"] is None


def test_empty_config_file_uses_defaults(tmp_path):
    cfg = tmp_path / ".toolpipe.yml"
    cfg.write_text("")
    config = load_config(config_path=str(cfg))
    assert config["model"] == "anthropic"


class TestLintPromptTemplate:
    def test_builtin_template_has_placeholders(self):
        template = load_lint_prompt_template({})
        for placeholder in ("{{FILE_PATH}}", "{{LINT_ERRORS}}", "{{FILE_CONTENT}}"):
            assert placeholder in template

    def test_custom_template_loaded(self, tmp_path):
        custom = tmp_path / "prompt.md"
        custom.write_text("Fix {{FILE_PATH}}")
        assert load_lint_prompt_template({"lint_prompt_template": str(custom)}) == "Fix {{FILE_PATH}}"

    def test_missing_custom_template_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_lint_prompt_template({"lint_prompt_template": str(tmp_path / "missing.md")})
