"""Rich console output and markdown file save for reviews and reports."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from roundtable.models import AgentReply, ContextStats, FlowRestartConfig, Report, ValidatorResponse

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _reply_preview(reply: AgentReply, words: int = 50) -> str:
    """Return first N words of a reply."""
    all_words = reply.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _confidence_style(confidence: float | None) -> str:
    if confidence is None:
        return "dim"
    if confidence >= 80:
        return "green"
    if confidence >= 60:
        return "yellow"
    return "red"


def print_round_replies(round_number: int, replies: list[AgentReply]) -> None:
    console.print(Rule(f"[bold cyan]Round {round_number} Replies[/bold cyan]"))
    for reply in replies:
        console.print(
            Panel(
                _reply_preview(reply),
                title=f"[bold]{reply.agent}[/bold] ({reply.model})",
                subtitle=f"{reply.latency_sec:.1f}s",
                border_style="dim",
            )
        )


def validation_table(responses: list[ValidatorResponse], round_number: int, max_rounds: int) -> Table:
    """Build a table of points numbered for selection by index."""
    table = Table(title=f"Validation Results - Round {round_number} of {max_rounds}")
    table.add_column("#", justify="right")
    table.add_column("Point")
    table.add_column("Confidence", justify="right")
    table.add_column("Validator", justify="center")
    table.add_column("Notes", style="dim")

    index = 1
    for response in responses:
        for point in response.points:
            style = _confidence_style(point.confidence)
            confidence = f"{point.confidence:g}%" if point.confidence is not None else "-"
            table.add_row(
                str(index),
                point.content,
                Text(confidence, style=style),
                Text("valid", style="green") if point.is_kept else Text("invalid", style="red"),
                point.feedback,
            )
            index += 1
    return table


def print_context_stats(stats: ContextStats) -> None:
    console.print(
        Text(
            f"Iterations: {stats.total_iterations} | "
            f"Kept: {stats.total_kept_points} | "
            f"Removed: {stats.total_removed_points} | "
            f"Agents: {stats.active_agents}",
            style="dim",
        )
    )


def print_restart(config: FlowRestartConfig) -> None:
    console.print(Rule(f"[bold green]Iteration {config.iteration_count} Prompt[/bold green]"))
    console.print(Markdown(config.enhanced_prompt))
    console.print(Text(f"Agents: {', '.join(config.selected_agents) or '(none)'}", style="dim"))


def render_report_markdown(report: Report) -> str:
    lines: list[str] = [
        f"# Roundtable Report: {report.question[:80]}",
        "",
        f"**Generated:** {report.generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Session:** {report.session_id}",
        f"**Rounds:** {report.total_rounds}",
        f"**Agent replies:** {report.total_replies}",
        f"**Validation rate:** {report.validation_rate}% "
        f"({report.valid_validations}/{report.total_validations})",
        f"**Average confidence:** {report.average_confidence}%",
        "",
        "---",
        "",
        "## Insights",
        "",
    ]
    for insight in report.insights:
        lines.append(f"- **{insight.title}** ({insight.impact}): {insight.description}")
    lines.append("")

    lines += ["## Accepted Points", ""]
    lines += [f"- {p.content}" for p in report.kept_points] or ["(none)"]
    lines += ["", "## Rejected Points", ""]
    lines += [f"- {p.content}" for p in report.removed_points] or ["(none)"]
    lines.append("")

    for rnd in report.rounds:
        lines.append(f"## Round {rnd.round_number}: {rnd.distributor_query[:80]}")
        lines.append("")
        for reply in rnd.replies:
            lines.append(f"### {reply.agent} ({reply.model})")
            lines.append("")
            lines.append(reply.content)
            lines.append("")
            lines.append(
                f"*Latency: {reply.latency_sec:.2f}s"
                + (f" | Tokens: {reply.token_count}" if reply.token_count else "")
                + "*"
            )
            lines.append("")
    return "\n".join(lines)


def print_report(report: Report) -> None:
    console.print(Rule("[bold green]Final Report[/bold green]"))
    console.print(Markdown(render_report_markdown(report)))


def save_report(report: Report, output_dir: Path) -> Path:
    """Save the report as a markdown file and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(report.question)}.md"
    filepath.write_text(render_report_markdown(report), encoding="utf-8")
    logger.info("Report saved to: %s", filepath)
    return filepath
