"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import AgentConfig, AppConfig, ModelConfig, PromptsConfig, load_config


def _settings() -> dict:
    return {
        "defaults": {
            "max_rounds": 4,
            "output_dir": "./output",
            "validator": "validator",
            "default_agents": ["analyst"],
            "history_limit": 5,
        },
        "models": {
            "claude": {
                "sdk": "anthropic",
                "model": "claude-sonnet-4-20250514",
                "api_key_env": "TEST_CLAUDE_KEY",
                "timeout_sec": 120,
                "max_tokens": 8192,
            }
        },
        "agents": {
            "analyst": {"name": "Research Analyst", "model": "claude", "persona": "You are an analyst."},
            "historian": {"model": "claude", "active": False},
            "validator": {"name": "Validator Agent", "model": "claude"},
        },
        "prompts": {
            "agent": "{prompt}",
            "validator": "Q: {question}\n{responses}",
            "report": "Q: {question}",
        },
    }


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(_settings()), encoding="utf-8")
    return path


def test_load_config_returns_app_config(minimal_settings):
    assert isinstance(load_config(minimal_settings), AppConfig)


def test_load_config_defaults(minimal_settings):
    config = load_config(minimal_settings)
    assert config.defaults.max_rounds == 4
    assert config.defaults.validator == "validator"
    assert config.defaults.reporter == "validator"
    assert config.defaults.fallback_agent_count == 3
    assert config.defaults.history_limit == 5
    assert isinstance(config.defaults.output_dir, Path)


def test_load_config_models(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.models["claude"], ModelConfig)
    assert config.models["claude"].base_url is None


def test_load_config_agents(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.agents["analyst"], AgentConfig)
    assert config.agents["analyst"].persona == "You are an analyst."
    assert config.agents["historian"].name == "historian"
    assert config.agents["historian"].active is False


def test_load_config_prompts(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.prompts, PromptsConfig)
    assert "{responses}" in config.prompts.validator


def test_load_config_available_models_with_key(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-test-key")
    assert "claude" in load_config(minimal_settings).available_models


def test_load_config_no_available_models_without_key(minimal_settings, monkeypatch):
    monkeypatch.delenv("TEST_CLAUDE_KEY", raising=False)
    assert load_config(minimal_settings).available_models == set()


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config(Path("/nonexistent/settings.yaml"))


def test_load_config_unknown_agent_model(tmp_path: Path):
    settings = _settings()
    settings["agents"]["analyst"]["model"] = "gpt-nonexistent"
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    with pytest.raises(ValueError, match="unknown model"):
        load_config(path)


def test_bundled_settings_load():
    config = load_config()
    assert config.defaults.max_rounds == 5
    assert config.defaults.validator in config.agents
    for agent in config.agents.values():
        assert agent.model in config.models
