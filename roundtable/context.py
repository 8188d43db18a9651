"""Context carryover between debate iterations.

A ContextManager accumulates, for one debate thread, which validator points
the user kept or removed across iterations. Each interaction produces a new
immutable FlowContext derived from the previous one; prepare_flow_restart
turns a context into the configuration that starts the next round.

Managers are owned per session through SessionRegistry rather than shared
process-wide.
"""

import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timezone

from roundtable.errors import InvalidInputError
from roundtable.models import (
    AgentFeedbackSummary,
    ContextStats,
    FlowContext,
    FlowRestartConfig,
    RawValidationResult,
    RestartMetadata,
    RestartOptions,
    UserInteractionFormData,
    ValidatorPoint,
    ValidatorResponse,
)
from roundtable.prompt import build_enhanced_prompt
from roundtable.serialization import export_context, import_context

logger = logging.getLogger(__name__)

VALIDATOR_AGENT_ID = "validator_agent"
VALIDATOR_AGENT_NAME = "Validator Agent"

_AUTO_INSTRUCTIONS = (
    "Focus on improving the quality and accuracy of responses. "
    "Address any logical fallacies identified in the previous iteration. "
    "Support every claim with evidence."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_context_id() -> str:
    return f"ctx_{uuid.uuid4().hex[:12]}"


def merge_points(
    kept: Iterable[ValidatorPoint],
    removed: Iterable[ValidatorPoint],
    responses: Iterable[ValidatorResponse],
) -> tuple[tuple[ValidatorPoint, ...], tuple[ValidatorPoint, ...]]:
    """Fold new decisions into the kept/removed history.

    Point id is the dedup key and the latest decision wins, including
    duplicates inside one submission (last occurrence in submission order).
    A point that stays on the same side keeps its position; one that flips
    sides is appended to the other side.
    """
    kept_by_id = {p.id: p for p in kept}
    removed_by_id = {p.id: p for p in removed}

    for response in responses:
        for point in response.points:
            snapshot = replace(
                point,
                agent_id=point.agent_id or response.id,
                agent_name=point.agent_name or response.agent_name,
            )
            target, other = (kept_by_id, removed_by_id) if point.is_kept else (removed_by_id, kept_by_id)
            other.pop(point.id, None)
            target[point.id] = snapshot

    return tuple(kept_by_id.values()), tuple(removed_by_id.values())


def summarize_feedback(responses: Iterable[ValidatorResponse]) -> tuple[AgentFeedbackSummary, ...]:
    summaries = []
    for response in responses:
        kept_count = sum(1 for p in response.points if p.is_kept)
        summaries.append(
            AgentFeedbackSummary(
                agent_id=response.id,
                agent_name=response.agent_name,
                overall_feedback=response.overall_feedback,
                points_kept=kept_count,
                points_removed=len(response.points) - kept_count,
                total_points=len(response.points),
            )
        )
    return tuple(summaries)


def point_id_for_claim(claim: str) -> str:
    """Stable id for a raw validator claim so repeated claims dedup across runs."""
    return f"validation_{uuid.uuid5(uuid.NAMESPACE_URL, claim.strip().lower()).hex[:10]}"


def results_to_validator_response(
    results: Iterable[RawValidationResult],
    response_id: str = VALIDATOR_AGENT_ID,
    agent_name: str = VALIDATOR_AGENT_NAME,
) -> ValidatorResponse:
    """Map raw validator output to a reviewable ValidatorResponse.

    Each claim is kept when the validator judged it valid.
    """
    results = list(results)
    points = [
        ValidatorPoint(
            id=point_id_for_claim(r.claim),
            content=f"{r.claim}: {r.evidence} ({r.confidence:g}%)",
            is_kept=r.is_valid,
            feedback=", ".join(r.logical_fallacies),
            confidence=r.confidence,
        )
        for r in results
    ]
    valid = sum(1 for r in results if r.is_valid)
    return ValidatorResponse(
        id=response_id,
        agent_name=agent_name,
        points=points,
        overall_feedback=f"Validated {valid}/{len(results)} claims." if results else "",
    )


def _automatic_context_updates(results: list[RawValidationResult], kept: int, removed: int) -> str:
    if not results:
        return "Automated regeneration: the validator returned no claims."
    valid = sum(1 for r in results if r.is_valid)
    avg_confidence = sum(r.confidence for r in results) / len(results)
    return (
        "Automated regeneration based on validation results:\n"
        f"- {valid}/{len(results)} claims validated as correct\n"
        f"- Average confidence: {avg_confidence:.1f}%\n"
        f"- {kept} points retained\n"
        f"- {removed} points removed for refinement"
    )


class ContextManager:
    """Accumulates kept/removed validator points for one debate thread."""

    def __init__(
        self,
        max_history: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._history: list[FlowContext] = []
        self._max_history = max_history
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def current_context(self) -> FlowContext | None:
        return self._history[-1] if self._history else None

    @property
    def history(self) -> list[FlowContext]:
        """Snapshots oldest first; the last one is current."""
        return list(self._history)

    def get_context_by_id(self, context_id: str) -> FlowContext | None:
        return next((c for c in reversed(self._history) if c.id == context_id), None)

    def clear(self) -> None:
        with self._lock:
            self._history.clear()

    def _commit(self, context: FlowContext) -> FlowContext:
        self._history.append(context)
        if self._max_history is not None and len(self._history) > self._max_history:
            del self._history[: len(self._history) - self._max_history]
        logger.debug(
            "Context %s committed: iteration %d, %d kept, %d removed",
            context.id,
            context.iteration_count,
            len(context.kept_points),
            len(context.removed_points),
        )
        return context

    def _next_context(
        self,
        responses: list[ValidatorResponse],
        question: str,
        context_updates: str,
        additional_instructions: str,
        selected_agents: Iterable[str],
        enabled_system_agents: Iterable[str],
    ) -> FlowContext:
        previous = self.current_context
        if previous is None:
            kept, removed = merge_points((), (), responses)
            original_question = question
            iteration = 1
        else:
            kept, removed = merge_points(previous.kept_points, previous.removed_points, responses)
            # An empty question means "unchanged"
            original_question = question or previous.original_question
            iteration = previous.iteration_count + 1

        return FlowContext(
            id=new_context_id(),
            original_question=original_question,
            context_updates=context_updates,
            iteration_count=iteration,
            timestamp=self._clock(),
            kept_points=kept,
            removed_points=removed,
            selected_agents=tuple(selected_agents),
            additional_instructions=additional_instructions,
            enabled_system_agents=tuple(enabled_system_agents),
            feedback_summary=summarize_feedback(responses),
        )

    def process_user_interaction(self, form_data: UserInteractionFormData) -> FlowContext:
        """Merge the user's reviewed points into history and make a new current context."""
        if form_data is None:
            raise InvalidInputError("form_data is required")
        if form_data.validator_responses is None:
            raise InvalidInputError("validator_responses is required")
        with self._lock:
            context = self._next_context(
                responses=list(form_data.validator_responses),
                question=form_data.original_question or "",
                context_updates=form_data.context_updates or "",
                additional_instructions=form_data.additional_instructions or "",
                selected_agents=form_data.selected_agents or (),
                enabled_system_agents=form_data.enabled_system_agents or (),
            )
            logger.info(
                "Iteration %d: %d kept, %d removed, %d agents selected",
                context.iteration_count,
                len(context.kept_points),
                len(context.removed_points),
                len(context.selected_agents),
            )
            return self._commit(context)

    def process_validation_data_automatically(
        self,
        raw_results: Iterable[RawValidationResult],
        input_question: str,
        selected_agent_ids: Iterable[str],
    ) -> FlowContext:
        """Merge raw validator output without a review step.

        Valid claims are kept and invalid ones removed. An empty agent
        selection is carried forward as-is; resolving a fallback is up to
        the caller.
        """
        if raw_results is None:
            raise InvalidInputError("raw_results is required")
        results = list(raw_results)
        response = results_to_validator_response(results)
        kept = sum(1 for p in response.points if p.is_kept)

        with self._lock:
            context = self._next_context(
                responses=[response],
                question=input_question or "",
                context_updates=_automatic_context_updates(results, kept, len(results) - kept),
                additional_instructions=_AUTO_INSTRUCTIONS,
                selected_agents=selected_agent_ids or (),
                enabled_system_agents=(),
            )
            logger.info(
                "Automatic iteration %d from %d validator claims",
                context.iteration_count,
                len(results),
            )
            return self._commit(context)

    def prepare_flow_restart(
        self,
        context: FlowContext | None,
        options: RestartOptions | None = None,
    ) -> FlowRestartConfig:
        """Build the configuration that restarts the flow from a context.

        Raises:
            InvalidInputError: If context is None.
        """
        if context is None:
            raise InvalidInputError("A FlowContext is required to prepare a restart")
        options = options or RestartOptions()

        return FlowRestartConfig(
            context_id=f"{context.id}_restart_{uuid.uuid4().hex[:8]}",
            enhanced_prompt=build_enhanced_prompt(context, options.include_removed_points),
            selected_agents=context.selected_agents if options.preserve_agent_selection else (),
            iteration_count=1 if options.reset_iteration_count else context.iteration_count,
            metadata=RestartMetadata(
                original_question=context.original_question,
                context_updates=context.context_updates,
                preserve_agent_selection=options.preserve_agent_selection,
                timestamp=context.timestamp,
                additional_instructions=context.additional_instructions,
            ),
        )

    def get_context_stats(self) -> ContextStats:
        context = self.current_context
        if context is None:
            return ContextStats()
        return ContextStats(
            total_iterations=context.iteration_count,
            total_kept_points=len(context.kept_points),
            total_removed_points=len(context.removed_points),
            total_feedbacks=sum(1 for s in context.feedback_summary if s.overall_feedback.strip()),
            active_agents=len(context.selected_agents),
        )

    def export_context(self, context_id: str | None = None) -> str:
        """Serialize the current (or given) context to JSON.

        Raises:
            InvalidInputError: If there is no such context.
        """
        context = self.get_context_by_id(context_id) if context_id else self.current_context
        if context is None:
            raise InvalidInputError("No context found to export")
        return export_context(context)

    def import_context(self, text: str) -> FlowContext:
        """Restore an exported context and make it current."""
        context = import_context(text)
        with self._lock:
            return self._commit(context)


class SessionRegistry:
    """One ContextManager per debate session, created on first use."""

    def __init__(self, max_history: int | None = None) -> None:
        self._managers: dict[str, ContextManager] = {}
        self._max_history = max_history
        self._lock = threading.Lock()

    def get(self, session_id: str) -> ContextManager:
        if not session_id:
            raise InvalidInputError("session_id is required")
        with self._lock:
            manager = self._managers.get(session_id)
            if manager is None:
                manager = ContextManager(max_history=self._max_history)
                self._managers[session_id] = manager
                logger.debug("Created context manager for session %s", session_id)
            return manager

    def drop(self, session_id: str) -> None:
        with self._lock:
            self._managers.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._managers

    def __len__(self) -> int:
        with self._lock:
            return len(self._managers)
