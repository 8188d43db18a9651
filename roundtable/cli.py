"""Click CLI: runs debate rounds and the interactive keep/reject review loop."""

import asyncio
import logging
import sys
import uuid
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AgentConfig, AppConfig, load_config
from roundtable.context import ContextManager, SessionRegistry, results_to_validator_response
from roundtable.errors import EmptySelectionError, MaxRoundsReachedError, RoundtableError
from roundtable.flow import run_round
from roundtable.models import (
    AgentProfile,
    DebateRound,
    RestartOptions,
    RoundAction,
    RoundOutcome,
    ValidatorResponse,
)
from roundtable.output import (
    print_context_stats,
    print_report,
    print_restart,
    print_round_replies,
    save_report,
    validation_table,
)
from roundtable.providers.anthropic import AnthropicProvider
from roundtable.providers.base import AIProvider
from roundtable.providers.gemini import GeminiProvider
from roundtable.providers.openai_provider import OpenAIProvider
from roundtable.question_file import parse_question_file, split_agents
from roundtable.report import build_report
from roundtable.rounds import RoundLoop, resolve_agents

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build a provider per available model. Returns dict keyed by model name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_models):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Model '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _select_agents(config: AppConfig, agents_arg: list[str], reserved: set[str]) -> list[str]:
    """Resolve debating agents: explicit list, else configured defaults, else first active."""
    unknown = [a for a in agents_arg if a not in config.agents]
    if unknown:
        raise click.BadParameter(f"Unknown agents: {', '.join(unknown)}", param_hint="--agents")
    selected = agents_arg or [a for a in config.defaults.default_agents if a in config.agents]
    available = [
        AgentProfile(id=a.id, name=a.name, role=a.role, active=a.active)
        for a in config.agents.values()
        if a.id not in reserved
    ]
    return resolve_agents(selected, available, config.defaults.fallback_agent_count)


def _parse_selection(text: str, point_ids: list[str]) -> set[str]:
    """Turn '1,3-4', 'all' or 'none' into the selected point ids.

    Raises:
        click.BadParameter: On indexes outside the table.
    """
    text = text.strip().lower()
    if text in ("", "none"):
        return set()
    if text == "all":
        return set(point_ids)

    selected: set[str] = set()
    for part in text.replace(" ", "").split(","):
        if not part:
            continue
        try:
            if "-" in part:
                lo, hi = (int(x) for x in part.split("-", 1))
                indexes = range(lo, hi + 1)
            else:
                indexes = range(int(part), int(part) + 1)
        except ValueError as exc:
            raise click.BadParameter(f"Not a number or range: {part}") from exc
        for index in indexes:
            if not 1 <= index <= len(point_ids):
                raise click.BadParameter(f"No point #{index}")
            selected.add(point_ids[index - 1])
    return selected


def _review_round(loop: RoundLoop, responses: list[ValidatorResponse], agent_ids: list[str]) -> RoundOutcome:
    """Prompt until the user submits a valid review. Returns the RoundOutcome."""
    loop.load_validation(responses)
    point_ids = [p.id for r in responses for p in r.points]
    default = ",".join(str(i) for i, pid in enumerate(point_ids, start=1) if pid in loop.selected_point_ids)

    console.print(validation_table(responses, loop.current_round, loop.max_rounds))
    while True:
        raw = click.prompt("Points to keep (e.g. 1,3-4, all)", default=default or "all")
        try:
            selected = _parse_selection(raw, point_ids)
        except click.BadParameter as exc:
            console.print(f"[red]{exc.message}[/red]")
            continue
        feedback = click.prompt("Feedback / context updates", default="", show_default=False)

        action: RoundAction = "generate_report"
        if loop.can_advance and click.confirm(
            f"Run round {loop.current_round + 1} of {loop.max_rounds}?", default=True
        ):
            action = "next_round"

        try:
            return loop.submit_round_feedback(feedback, selected, action, agent_ids)
        except EmptySelectionError as exc:
            console.print(f"[yellow]{exc}[/yellow]")
        except MaxRoundsReachedError as exc:
            console.print(f"[yellow]{exc}[/yellow]")
            return loop.submit_round_feedback(feedback, selected, "generate_report", agent_ids)


async def _run_session(
    config: AppConfig,
    providers: dict[str, AIProvider],
    manager: ContextManager,
    loop: RoundLoop,
    session_id: str,
    prompt: str,
    agent_ids: list[str],
    validator: AgentConfig,
    auto: bool,
    options: RestartOptions,
) -> list[DebateRound]:
    """Run rounds until the user (or the round limit) ends the debate."""
    rounds: list[DebateRound] = []
    agents = [config.agents[a] for a in agent_ids]

    while True:
        record = await run_round(
            session_id=session_id,
            round_number=loop.current_round,
            query=loop.original_question,
            prompt=prompt,
            agents=agents,
            validator=validator,
            providers=providers,
            prompts=config.prompts,
            all_agents=config.agents,
        )
        rounds.append(record)
        print_round_replies(record.round_number, record.replies)

        if auto:
            context = manager.process_validation_data_automatically(
                record.validation, loop.original_question, agent_ids
            )
            print_context_stats(manager.get_context_stats())
            if not loop.can_advance:
                break
            restart = manager.prepare_flow_restart(context, options)
            loop.advance_round()
        else:
            response = results_to_validator_response(record.validation, validator.id, validator.name)
            outcome = _review_round(loop, [response], agent_ids)
            print_context_stats(manager.get_context_stats())
            if outcome.action == "report_requested":
                break
            restart = outcome.restart_config

        print_restart(restart)
        prompt = restart.enhanced_prompt

    return rounds


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True), help="Read question from .md file")
@click.option("--agents", "agents_arg", default=None, help="Comma-separated agent ids (default: from config)")
@click.option("--max-rounds", default=None, type=int, help="Maximum number of rounds (default: from config)")
@click.option("--validator", default=None, help="Agent id that validates claims (default: from config)")
@click.option("--auto", is_flag=True, help="Keep valid claims automatically instead of prompting")
@click.option("--include-removed", is_flag=True, help="Tell agents which points were rejected")
@click.option("--resume", "resume_path", type=click.Path(exists=True), help="Continue from an exported context")
@click.option("--export", "export_path", default=None, help="Write the final context JSON to this path")
@click.option("--output", "output_path", default=None, help="Report directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    question: str | None,
    question_file: str | None,
    agents_arg: str | None,
    max_rounds: int | None,
    validator: str | None,
    auto: bool,
    include_removed: bool,
    resume_path: str | None,
    export_path: str | None,
    output_path: str | None,
    verbose: bool,
) -> None:
    """Roundtable -- iterative multi-agent debate with validator review.

    \b
    Examples:
      roundtable "Should AI replace teachers?"
      roundtable "Should AI replace teachers?" --agents analyst,skeptic --max-rounds 3
      roundtable --file question.md --auto
      roundtable --resume context.json --export context.json
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    meta: dict = {}
    if question_file:
        question, meta = parse_question_file(Path(question_file))

    session_id = f"session_{uuid.uuid4().hex[:8]}"
    registry = SessionRegistry(max_history=config.defaults.history_limit)
    manager = registry.get(session_id)

    if resume_path:
        try:
            context = manager.import_context(Path(resume_path).read_text(encoding="utf-8"))
        except RoundtableError as exc:
            console.print(f"[bold red]Resume error:[/bold red] {exc}")
            sys.exit(1)
        question = question or context.original_question

    if not question:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument, --file, or --resume.")
        sys.exit(1)

    validator_id = validator or str(meta.get("validator", config.defaults.validator))
    if validator_id not in config.agents:
        console.print(f"[bold red]Error:[/bold red] Unknown validator agent '{validator_id}'.")
        sys.exit(1)

    reserved = {validator_id, config.defaults.reporter}
    agent_ids = _select_agents(config, split_agents(agents_arg or meta.get("agents")), reserved)
    if not agent_ids:
        console.print("[bold red]Error:[/bold red] No agents selected.")
        sys.exit(1)

    providers = _build_providers(config)
    if not providers:
        console.print("[bold red]Error:[/bold red] No models available. Check API keys in .env.")
        sys.exit(1)

    effective_max = max_rounds or int(meta.get("max_rounds", config.defaults.max_rounds))
    options = RestartOptions(include_removed_points=include_removed)
    current = manager.current_context

    if current is not None:
        start_round = min(current.iteration_count + 1, effective_max)
        prompt = manager.prepare_flow_restart(current, options).enhanced_prompt
    else:
        start_round = 1
        prompt = question

    loop = RoundLoop(manager, question, max_rounds=effective_max, current_round=start_round,
                     restart_options=options)

    console.print(f"\n[bold cyan]Roundtable[/bold cyan] — {len(agent_ids)} agents, up to {effective_max} rounds")
    console.print(f"Agents: {', '.join(agent_ids)}")
    console.print(f"Validator: {validator_id}")
    console.print(f"Question: [italic]{question[:80]}{'...' if len(question) > 80 else ''}[/italic]\n")

    try:
        rounds = asyncio.run(
            _run_session(
                config=config,
                providers=providers,
                manager=manager,
                loop=loop,
                session_id=session_id,
                prompt=prompt,
                agent_ids=agent_ids,
                validator=config.agents[validator_id],
                auto=auto,
                options=options,
            )
        )
    except RuntimeError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    reporter = config.agents.get(config.defaults.reporter)
    report = asyncio.run(
        build_report(
            session_id=session_id,
            question=question,
            rounds=rounds,
            context=manager.current_context,
            reporter=reporter,
            provider=providers.get(reporter.model) if reporter else None,
            prompts=config.prompts,
        )
    )
    print_report(report)

    saved = save_report(report, Path(output_path) if output_path else config.defaults.output_dir)
    console.print(f"\n[dim]Saved to: {saved}[/dim]")

    if export_path and manager.current_context is not None:
        Path(export_path).write_text(manager.export_context(), encoding="utf-8")
        console.print(f"[dim]Context exported to: {export_path}[/dim]")


if __name__ == "__main__":
    main()
