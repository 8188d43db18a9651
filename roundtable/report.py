"""Final report: summary statistics over the rounds plus AI-written insights."""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from config.config_loader import AgentConfig, PromptsConfig
from roundtable.models import DebateRound, FlowContext, Report, ReportInsight, ValidatorPoint
from roundtable.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


def _fallback_insights(rounds: list[DebateRound], context: FlowContext | None) -> list[ReportInsight]:
    """Rule-based insights used when the reporter model is unavailable."""
    insights: list[ReportInsight] = []

    by_agent: dict[str, int] = {}
    for rnd in rounds:
        for reply in rnd.replies:
            by_agent[reply.agent] = by_agent.get(reply.agent, 0) + 1
    if by_agent:
        most_active = max(by_agent, key=by_agent.get)
        insights.append(ReportInsight(
            kind="performance",
            title="Most Active Agent",
            description=f"{most_active} contributed {by_agent[most_active]} replies across the debate.",
            impact="medium",
        ))

    validations = [v for rnd in rounds for v in rnd.validation]
    if validations:
        rate = 100 * sum(1 for v in validations if v.is_valid) / len(validations)
        strength = "strong" if rate > 70 else "moderate" if rate > 50 else "weak"
        insights.append(ReportInsight(
            kind="validation",
            title="Validation Success Rate",
            description=f"{round(rate)}% of validated claims passed, indicating {strength} consensus.",
            impact="high" if rate > 70 else "medium",
        ))

    if context is not None and context.iteration_count > 1:
        insights.append(ReportInsight(
            kind="feedback",
            title="User Engagement",
            description=f"The user reviewed {context.iteration_count} iterations, "
                        f"keeping {len(context.kept_points)} points.",
            impact="medium",
        ))
    return insights


def _format_points(points: Iterable[ValidatorPoint]) -> str:
    return "\n".join(f"- {p.content}" for p in points) or "(none)"


async def _ai_insights(
    question: str,
    context: FlowContext,
    rounds: int,
    reporter: AgentConfig,
    provider: AIProvider,
    prompts: PromptsConfig,
) -> list[ReportInsight]:
    prompt = prompts.report.format(
        question=question,
        rounds=rounds,
        kept_points=_format_points(context.kept_points),
        removed_points=_format_points(context.removed_points),
        feedback=context.context_updates or "(none)",
    )
    reply = await provider.generate(prompt, round_number=rounds + 1, system=reporter.persona or None)
    lines = [line.strip(" -*\t") for line in reply.content.splitlines()]
    kinds = ["performance", "validation", "analysis"]
    return [
        ReportInsight(
            kind=kinds[i] if i < len(kinds) else "analysis",
            title=f"AI Insight {i + 1}",
            description=line,
            impact="high",
        )
        for i, line in enumerate(line for line in lines if line)
    ]


async def build_report(
    session_id: str,
    question: str,
    rounds: list[DebateRound],
    context: FlowContext | None,
    reporter: AgentConfig | None = None,
    provider: AIProvider | None = None,
    prompts: PromptsConfig | None = None,
) -> Report:
    """Summarize a finished debate.

    Insights come from the reporter agent when one is given; on failure or
    without one, rule-based insights are used instead.
    """
    validations = [v for rnd in rounds for v in rnd.validation]
    valid = sum(1 for v in validations if v.is_valid)
    avg_confidence = sum(v.confidence for v in validations) / len(validations) if validations else 0

    insights: list[ReportInsight] = []
    if context is not None and reporter and provider and prompts:
        try:
            logger.info("Generating insights via %s", reporter.id)
            insights = await _ai_insights(question, context, len(rounds), reporter, provider, prompts)
        except ProviderError as exc:
            logger.warning("Insight generation failed, using rule-based insights: %s", exc)
    if not insights:
        insights = _fallback_insights(rounds, context)

    return Report(
        session_id=session_id,
        question=question,
        total_rounds=len(rounds),
        total_replies=sum(len(rnd.replies) for rnd in rounds),
        total_validations=len(validations),
        valid_validations=valid,
        validation_rate=round(100 * valid / len(validations)) if validations else 0,
        average_confidence=round(avg_confidence),
        kept_points=list(context.kept_points) if context else [],
        removed_points=list(context.removed_points) if context else [],
        insights=insights,
        rounds=rounds,
        generated_at=datetime.now(timezone.utc),
    )
