"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AgentConfig, AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from roundtable.context import ContextManager
from roundtable.models import (
    AgentReply,
    RawValidationResult,
    UserInteractionFormData,
    ValidatorPoint,
    ValidatorResponse,
)
from roundtable.providers.base import AIProvider

QUESTION = "Should AI replace teachers?"


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        agent="{prompt}\n\nAnswer briefly.",
        validator="Question: {question}\n\nResponses:\n{responses}\n\nReturn JSON.",
        report="Q: {question} after {rounds} rounds\nKept:\n{kept_points}\nRemoved:\n{removed_points}\n{feedback}",
    )


@pytest.fixture
def sample_agents() -> dict[str, AgentConfig]:
    return {
        "agentA": AgentConfig(id="agentA", name="Agent A", model="mock", persona="You are A."),
        "agentB": AgentConfig(id="agentB", name="Agent B", model="mock", persona="You are B."),
        "validator": AgentConfig(id="validator", name="Validator Agent", model="mock", role="validator"),
    }


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_prompts_config: PromptsConfig,
    sample_agents: dict[str, AgentConfig],
) -> AppConfig:
    model_cfg = ModelConfig(
        name="mock",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=DefaultsConfig(
            max_rounds=5,
            output_dir=tmp_path / "output",
            validator="validator",
            reporter="validator",
            default_agents=["agentA", "agentB"],
            fallback_agent_count=2,
        ),
        models={"mock": model_cfg},
        agents=sample_agents,
        prompts=sample_prompts_config,
        available_models={"mock"},
    )


def make_response(*points: tuple[str, bool], response_id: str = "resp1", agent_name: str = "Agent A") -> ValidatorResponse:
    """Build a ValidatorResponse from (id, is_kept) pairs; content is 'content of <id>'."""
    return ValidatorResponse(
        id=response_id,
        agent_name=agent_name,
        points=[ValidatorPoint(id=pid, content=f"content of {pid}", is_kept=kept) for pid, kept in points],
        overall_feedback="",
    )


def make_form(
    *responses: ValidatorResponse,
    question: str = QUESTION,
    context_updates: str = "",
    selected_agents: list[str] | None = None,
) -> UserInteractionFormData:
    return UserInteractionFormData(
        validator_responses=list(responses),
        original_question=question,
        context_updates=context_updates,
        selected_agents=selected_agents if selected_agents is not None else ["agentA", "agentB"],
    )


@pytest.fixture
def manager() -> ContextManager:
    return ContextManager()


@pytest.fixture
def raw_results() -> list[RawValidationResult]:
    return [
        RawValidationResult("AI tutors scale", "Studies show 1:1 tutoring gains", 85, True),
        RawValidationResult("Teachers are obsolete", "No evidence given", 30, False, ["hasty generalization"]),
        RawValidationResult("Costs fall over time", "Compute prices decline", 70, True),
    ]


@pytest.fixture
def sample_reply() -> AgentReply:
    return AgentReply(
        agent="agentA",
        model="mock-model",
        round_number=1,
        content="AI can support teachers but not replace them.",
        latency_sec=1.5,
        token_count=42,
    )


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=AgentReply(
                agent=provider_name,
                model="mock-model",
                round_number=1,
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, prompt: str, round_number: int, system: str | None = None) -> AgentReply:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return AgentReply(
            agent=self._name,
            model="mock-model",
            round_number=round_number,
            content=self._response_content,
            latency_sec=0.1,
            token_count=10,
        )


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()
