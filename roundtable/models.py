"""Pure dataclasses for the Roundtable iteration loop. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

Priority = Literal["low", "medium", "high"]
RoundAction = Literal["next_round", "generate_report"]


@dataclass(frozen=True)
class ValidatorPoint:
    id: str                # unique within its response
    content: str
    is_kept: bool
    feedback: str = ""
    confidence: float | None = None   # 0-100
    priority: Priority | None = None
    category: str | None = None
    agent_id: str = ""     # source response, filled in on merge
    agent_name: str = ""


@dataclass
class ValidatorResponse:
    id: str
    agent_name: str
    points: list[ValidatorPoint] = field(default_factory=list)  # review swaps in copies via replace()
    overall_feedback: str = ""
    agent_score: float | None = None
    response_time: float | None = None
    expertise: list[str] = field(default_factory=list)


@dataclass
class RawValidationResult:
    """One claim as judged by the validator agent, before review."""
    claim: str
    evidence: str
    confidence: float
    is_valid: bool
    logical_fallacies: list[str] = field(default_factory=list)


@dataclass
class AgentProfile:
    id: str
    name: str
    role: str = ""
    active: bool = True


@dataclass
class UserInteractionFormData:
    validator_responses: list[ValidatorResponse]
    original_question: str
    context_updates: str = ""
    additional_instructions: str = ""
    selected_agents: list[str] = field(default_factory=list)
    available_agents: list[AgentProfile] = field(default_factory=list)
    enabled_system_agents: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AgentFeedbackSummary:
    agent_id: str
    agent_name: str
    overall_feedback: str
    points_kept: int
    points_removed: int
    total_points: int


@dataclass(frozen=True)
class FlowContext:
    """Accumulated state of one debate thread after an iteration."""
    id: str
    original_question: str
    context_updates: str
    iteration_count: int
    timestamp: datetime
    kept_points: tuple[ValidatorPoint, ...] = ()
    removed_points: tuple[ValidatorPoint, ...] = ()
    selected_agents: tuple[str, ...] = ()
    additional_instructions: str = ""
    enabled_system_agents: tuple[str, ...] = ()
    feedback_summary: tuple[AgentFeedbackSummary, ...] = ()


@dataclass(frozen=True)
class RestartOptions:
    preserve_agent_selection: bool = True
    include_removed_points: bool = False
    reset_iteration_count: bool = False


@dataclass(frozen=True)
class RestartMetadata:
    original_question: str
    context_updates: str
    preserve_agent_selection: bool
    timestamp: datetime
    additional_instructions: str = ""


@dataclass(frozen=True)
class FlowRestartConfig:
    context_id: str
    enhanced_prompt: str
    selected_agents: tuple[str, ...]
    iteration_count: int
    metadata: RestartMetadata


@dataclass(frozen=True)
class ContextStats:
    total_iterations: int = 0
    total_kept_points: int = 0
    total_removed_points: int = 0
    total_feedbacks: int = 0
    active_agents: int = 0


@dataclass
class AgentReply:
    agent: str             # agent id from settings.yaml
    model: str             # actual model string used
    round_number: int
    content: str
    latency_sec: float
    token_count: int | None


class RoundStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class DebateRound:
    round_number: int
    session_id: str
    distributor_query: str
    distributor_response: dict[str, Any] = field(default_factory=dict)
    status: RoundStatus = RoundStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    replies: list[AgentReply] = field(default_factory=list)
    validation: list[RawValidationResult] = field(default_factory=list)


@dataclass
class RoundOutcome:
    action: Literal["next_round_ready", "report_requested"]
    round_number: int
    max_rounds: int
    context: FlowContext
    next_round_number: int | None = None
    can_continue: bool = False
    restart_config: FlowRestartConfig | None = None


@dataclass
class ReportInsight:
    kind: str              # "performance", "validation", "feedback", "analysis"
    title: str
    description: str
    impact: str = "medium"


@dataclass
class Report:
    session_id: str
    question: str
    total_rounds: int
    total_replies: int
    total_validations: int
    valid_validations: int
    validation_rate: int   # percent
    average_confidence: int
    kept_points: list[ValidatorPoint]
    removed_points: list[ValidatorPoint]
    insights: list[ReportInsight]
    rounds: list[DebateRound]
    generated_at: datetime
