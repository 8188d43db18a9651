"""Tests for roundtable/report.py."""

from unittest.mock import AsyncMock

import pytest

from roundtable.context import ContextManager
from roundtable.models import AgentReply, DebateRound, RawValidationResult, Report
from roundtable.providers.base import ProviderError
from roundtable.report import build_report
from tests.conftest import QUESTION, MockProvider, make_form, make_response


@pytest.fixture
def rounds() -> list[DebateRound]:
    first = DebateRound(round_number=1, session_id="s1", distributor_query=QUESTION)
    first.replies = [
        AgentReply("agentA", "m", 1, "A1", 1.0, 10),
        AgentReply("agentB", "m", 1, "B1", 1.0, 10),
    ]
    first.validation = [
        RawValidationResult("c1", "e", 80, True),
        RawValidationResult("c2", "e", 40, False),
    ]
    second = DebateRound(round_number=2, session_id="s1", distributor_query=QUESTION)
    second.replies = [AgentReply("agentA", "m", 2, "A2", 1.0, 10)]
    second.validation = [RawValidationResult("c3", "e", 90, True)]
    return [first, second]


@pytest.fixture
def context(manager: ContextManager):
    manager.process_user_interaction(make_form(make_response(("p1", True), ("p2", False))))
    return manager.process_user_interaction(make_form(make_response(("p3", True)), context_updates="More data"))


async def test_build_report_statistics(rounds, context):
    report = await build_report("s1", QUESTION, rounds, context)
    assert isinstance(report, Report)
    assert report.total_rounds == 2
    assert report.total_replies == 3
    assert report.total_validations == 3
    assert report.valid_validations == 2
    assert report.validation_rate == 67
    assert report.average_confidence == 70
    assert [p.id for p in report.kept_points] == ["p1", "p3"]
    assert [p.id for p in report.removed_points] == ["p2"]


async def test_build_report_fallback_insights(rounds, context):
    report = await build_report("s1", QUESTION, rounds, context)
    kinds = [i.kind for i in report.insights]
    assert kinds == ["performance", "validation", "feedback"]
    assert "agentA" in report.insights[0].description
    assert "moderate" in report.insights[1].description


async def test_build_report_ai_insights(rounds, context, sample_agents, sample_prompts_config):
    provider = MockProvider("mock", "- Tutoring helps\n\n- Costs fall\n- Teachers stay")
    report = await build_report(
        "s1", QUESTION, rounds, context,
        reporter=sample_agents["validator"], provider=provider, prompts=sample_prompts_config,
    )
    assert [i.description for i in report.insights] == ["Tutoring helps", "Costs fall", "Teachers stay"]
    prompt = provider.generate.call_args.args[0]
    assert "content of p1" in prompt
    assert "More data" in prompt


async def test_build_report_ai_failure_falls_back(rounds, context, sample_agents, sample_prompts_config):
    provider = MockProvider()
    provider.generate = AsyncMock(side_effect=ProviderError("mock", "down"))
    report = await build_report(
        "s1", QUESTION, rounds, context,
        reporter=sample_agents["validator"], provider=provider, prompts=sample_prompts_config,
    )
    assert report.insights[0].kind == "performance"


async def test_build_report_without_rounds_or_context():
    report = await build_report("s1", QUESTION, [], None)
    assert report.total_rounds == 0
    assert report.validation_rate == 0
    assert report.kept_points == []
    assert report.insights == []
