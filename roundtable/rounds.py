"""Round review: turn the user's selections into the next iteration or a report."""

import logging
from collections.abc import Iterable
from dataclasses import replace

from roundtable.context import ContextManager
from roundtable.errors import EmptySelectionError, InvalidInputError, MaxRoundsReachedError
from roundtable.models import (
    AgentProfile,
    RestartOptions,
    RoundAction,
    RoundOutcome,
    UserInteractionFormData,
    ValidatorResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 5

_ACTIONS: tuple[RoundAction, ...] = ("next_round", "generate_report")


def apply_selection(
    responses: Iterable[ValidatorResponse],
    selected_point_ids: set[str],
) -> list[ValidatorResponse]:
    """Return copies of responses where only selected points are kept."""
    return [
        replace(
            response,
            points=[replace(p, is_kept=p.id in selected_point_ids) for p in response.points],
        )
        for response in responses
    ]


def resolve_agents(
    selected: list[str],
    available: list[AgentProfile],
    fallback_count: int,
) -> list[str]:
    """Return the selection, or the first active agents when it is empty."""
    if selected:
        return list(selected)
    fallback = [a.id for a in available if a.active][:fallback_count]
    if fallback:
        logger.info("No agents selected, falling back to: %s", ", ".join(fallback))
    return fallback


class RoundLoop:
    """Drives review of one round after another until a report is requested."""

    def __init__(
        self,
        manager: ContextManager,
        original_question: str,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        current_round: int = 1,
        restart_options: RestartOptions | None = None,
    ) -> None:
        if max_rounds < 1:
            raise InvalidInputError(f"max_rounds must be at least 1, got {max_rounds}")
        self.manager = manager
        self.original_question = original_question
        self.max_rounds = max_rounds
        self.current_round = current_round
        self.restart_options = restart_options or RestartOptions()
        self.finished = False
        self.selected_agents: list[str] = []
        self.responses: list[ValidatorResponse] = []
        self.selected_point_ids: set[str] = set()
        self.feedback = ""

    @property
    def can_advance(self) -> bool:
        return not self.finished and self.current_round < self.max_rounds

    def load_validation(self, responses: list[ValidatorResponse]) -> None:
        """Stage a round's validator output for review.

        Points the validator kept start out selected.
        """
        self.responses = list(responses)
        self.selected_point_ids = {p.id for r in self.responses for p in r.points if p.is_kept}
        self.feedback = ""

    def advance_round(self) -> int:
        """Move to the next round number.

        Raises:
            MaxRoundsReachedError: If the current round is the last one.
        """
        if self.current_round >= self.max_rounds:
            raise MaxRoundsReachedError(self.current_round, self.max_rounds)
        self.current_round += 1
        return self.current_round

    def submit_round_feedback(
        self,
        feedback: str,
        selected_point_ids: set[str],
        action: RoundAction,
        selected_agents: list[str] | None = None,
    ) -> RoundOutcome:
        """Reconcile the user's review of the current round.

        Points not in selected_point_ids are treated as rejected; ids that
        match no staged point are ignored. On failure the loop and its
        ContextManager are left unchanged.

        Raises:
            InvalidInputError: Unknown action or the loop already finished.
            EmptySelectionError: No staged point selected.
            MaxRoundsReachedError: next_round requested on the last round.
        """
        if action not in _ACTIONS:
            raise InvalidInputError(f"Unknown action: {action!r}")
        if self.finished:
            raise InvalidInputError("Report already requested for this debate")
        staged_ids = {p.id for r in self.responses for p in r.points}
        selected = set(selected_point_ids) & staged_ids
        if not selected:
            raise EmptySelectionError()
        if action == "next_round" and self.current_round >= self.max_rounds:
            raise MaxRoundsReachedError(self.current_round, self.max_rounds)

        if selected_agents is not None:
            self.selected_agents = list(selected_agents)

        form_data = UserInteractionFormData(
            validator_responses=apply_selection(self.responses, selected),
            original_question=self.original_question,
            context_updates=feedback,
            selected_agents=list(self.selected_agents),
        )
        context = self.manager.process_user_interaction(form_data)
        round_number = self.current_round

        if action == "generate_report":
            self.finished = True
            logger.info("Report requested after round %d", round_number)
            return RoundOutcome(
                action="report_requested",
                round_number=round_number,
                max_rounds=self.max_rounds,
                context=context,
            )

        restart = self.manager.prepare_flow_restart(context, self.restart_options)
        next_round = self.advance_round()
        self.responses = []
        self.selected_point_ids = set()
        self.feedback = ""
        logger.info("Round %d of %d ready", next_round, self.max_rounds)
        return RoundOutcome(
            action="next_round_ready",
            round_number=round_number,
            max_rounds=self.max_rounds,
            context=context,
            next_round_number=next_round,
            can_continue=next_round < self.max_rounds,
            restart_config=restart,
        )
