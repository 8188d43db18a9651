"""Integration tests: real API calls, no mocks. Requires .env with the validator's and one agent's keys."""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

_AVAILABLE_KEYS = [
    k for k in ["ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "GROQ_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if len(_AVAILABLE_KEYS) < 2:
    pytestmark = pytest.mark.skip(reason=f"Need 2+ API keys, found {len(_AVAILABLE_KEYS)}")


async def test_round_then_restart():
    """Run one real round, keep the validator's verdicts, and build the next prompt."""
    from config.config_loader import load_config
    from roundtable.cli import _build_providers
    from roundtable.context import ContextManager
    from roundtable.flow import run_round

    config = load_config()
    providers = _build_providers(config)
    validator = config.agents[config.defaults.validator]
    if validator.model not in providers:
        pytest.skip(f"Validator model {validator.model} unavailable")

    agents = [a for a in config.agents.values() if a.model in providers and a.id in config.defaults.default_agents]
    assert agents, "No default agent has an available model"

    question = "Should a small school district adopt AI tutoring for math?"
    record = await run_round(
        session_id="integration",
        round_number=1,
        query=question,
        prompt=question,
        agents=agents[:2],
        validator=validator,
        providers=providers,
        prompts=config.prompts,
        all_agents=config.agents,
    )
    assert record.replies
    assert record.validation

    manager = ContextManager()
    context = manager.process_validation_data_automatically(record.validation, question, [a.id for a in agents])
    restart = manager.prepare_flow_restart(context)
    assert restart.enhanced_prompt.startswith(f"## Original Question\n{question}")
    for point in context.kept_points:
        assert point.content in restart.enhanced_prompt
