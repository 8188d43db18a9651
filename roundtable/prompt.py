"""Enhanced prompt synthesis from an accumulated FlowContext."""

from roundtable.models import FlowContext, ValidatorPoint

_UNATTRIBUTED = "Validator"


def _group_by_agent(points: tuple[ValidatorPoint, ...]) -> dict[str, list[ValidatorPoint]]:
    """Group points by source agent name, preserving first-seen order."""
    grouped: dict[str, list[ValidatorPoint]] = {}
    for point in points:
        grouped.setdefault(point.agent_name or _UNATTRIBUTED, []).append(point)
    return grouped


def _format_points(points: tuple[ValidatorPoint, ...], feedback_label: str) -> list[str]:
    lines: list[str] = []
    for agent_name, agent_points in _group_by_agent(points).items():
        lines.append(f"### {agent_name}")
        for index, point in enumerate(agent_points, start=1):
            lines.append(f"{index}. {point.content}")
            if point.feedback:
                lines.append(f"   *{feedback_label}: {point.feedback}*")
        lines.append("")
    return lines


def build_enhanced_prompt(context: FlowContext, include_removed_points: bool = False) -> str:
    """Render the prompt that restarts the agent flow for the next iteration.

    The original question always opens the prompt verbatim. Kept point
    contents and the user's context updates appear verbatim further down.
    """
    sections: list[str] = [
        f"## Original Question\n{context.original_question}",
        f"## Iteration\nThis is iteration {context.iteration_count} of the analysis.",
    ]

    if context.kept_points:
        body = _format_points(context.kept_points, "Feedback")
        sections.append(
            "## Validated Points from Previous Iterations\n"
            "The following points were accepted and should be built upon:\n\n"
            + "\n".join(body).rstrip()
        )

    if include_removed_points and context.removed_points:
        body = _format_points(context.removed_points, "Reason for rejection")
        sections.append(
            "## Points to Avoid\n"
            "The following points were rejected and should not be repeated:\n\n"
            + "\n".join(body).rstrip()
        )

    feedback_lines = [
        f"### {summary.agent_name}\n{summary.overall_feedback}\n"
        f"*Points kept: {summary.points_kept}/{summary.total_points}*"
        for summary in context.feedback_summary
        if summary.overall_feedback.strip()
    ]
    if feedback_lines:
        sections.append("## Agent Feedback\n" + "\n\n".join(feedback_lines))

    if context.context_updates:
        sections.append(f"## Updated Context\n{context.context_updates}")

    if context.additional_instructions:
        sections.append(f"## Additional Instructions\n{context.additional_instructions}")

    if context.selected_agents:
        sections.append(
            "## Participating Agents\n"
            f"The following agents will participate: {', '.join(context.selected_agents)}"
        )

    return "\n\n".join(sections)
