"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class AgentConfig:
    id: str
    name: str
    model: str             # key into AppConfig.models
    role: str = ""
    persona: str = ""
    active: bool = True


@dataclass
class PromptsConfig:
    agent: str
    validator: str
    report: str


@dataclass
class DefaultsConfig:
    max_rounds: int
    output_dir: Path
    validator: str
    reporter: str
    default_agents: list[str] = field(default_factory=list)
    fallback_agent_count: int = 3
    history_limit: int | None = None


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    agents: dict[str, AgentConfig]
    prompts: PromptsConfig
    available_models: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if an agent
    points at an unknown model. Logs (does not raise) on missing API keys;
    callers check available_models.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    history_limit = defaults_raw.get("history_limit")
    defaults = DefaultsConfig(
        max_rounds=int(defaults_raw["max_rounds"]),
        output_dir=Path(defaults_raw["output_dir"]),
        validator=str(defaults_raw["validator"]),
        reporter=str(defaults_raw.get("reporter", defaults_raw["validator"])),
        default_agents=list(defaults_raw.get("default_agents", [])),
        fallback_agent_count=int(defaults_raw.get("fallback_agent_count", 3)),
        history_limit=int(history_limit) if history_limit is not None else None,
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        agent=prompts_raw["agent"],
        validator=prompts_raw["validator"],
        report=prompts_raw["report"],
    )

    models: dict[str, ModelConfig] = {}
    available_models: set[str] = set()

    for model_name, model_raw in raw["models"].items():
        models[model_name] = ModelConfig(
            name=model_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_models.add(model_name)
            logger.info("Model available: %s", model_name)
        else:
            logger.info(
                "Model skipped (no API key): %s — set %s in .env",
                model_name,
                model_raw["api_key_env"],
            )

    agents: dict[str, AgentConfig] = {}
    for agent_id, agent_raw in raw.get("agents", {}).items():
        model_name = str(agent_raw["model"])
        if model_name not in models:
            raise ValueError(f"Agent '{agent_id}' uses unknown model '{model_name}'")
        agents[agent_id] = AgentConfig(
            id=agent_id,
            name=str(agent_raw.get("name", agent_id)),
            model=model_name,
            role=str(agent_raw.get("role", "")),
            persona=str(agent_raw.get("persona", "")),
            active=bool(agent_raw.get("active", True)),
        )

    return AppConfig(
        defaults=defaults,
        models=models,
        agents=agents,
        prompts=prompts,
        available_models=available_models,
    )
