"""JSON export/import of FlowContext snapshots."""

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any

from roundtable.errors import InvalidInputError
from roundtable.models import AgentFeedbackSummary, FlowContext, ValidatorPoint

EXPORT_FORMAT = "roundtable.flow_context"
EXPORT_VERSION = 1


def context_to_dict(context: FlowContext) -> dict[str, Any]:
    data = asdict(context)
    data["timestamp"] = context.timestamp.isoformat()
    return {"format": EXPORT_FORMAT, "version": EXPORT_VERSION, "context": data}


def context_from_dict(payload: dict[str, Any]) -> FlowContext:
    """Rebuild a FlowContext from the dict produced by context_to_dict.

    Raises:
        InvalidInputError: If the payload is not an exported context.
    """
    if payload.get("format") != EXPORT_FORMAT:
        raise InvalidInputError(f"Not a {EXPORT_FORMAT} export")
    if payload.get("version") != EXPORT_VERSION:
        raise InvalidInputError(f"Unsupported export version: {payload.get('version')}")

    try:
        data = payload["context"]
        return FlowContext(
            id=data["id"],
            original_question=data["original_question"],
            context_updates=data["context_updates"],
            iteration_count=int(data["iteration_count"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            kept_points=tuple(ValidatorPoint(**p) for p in data.get("kept_points", [])),
            removed_points=tuple(ValidatorPoint(**p) for p in data.get("removed_points", [])),
            selected_agents=tuple(data.get("selected_agents", [])),
            additional_instructions=data.get("additional_instructions", ""),
            enabled_system_agents=tuple(data.get("enabled_system_agents", [])),
            feedback_summary=tuple(
                AgentFeedbackSummary(**s) for s in data.get("feedback_summary", [])
            ),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Malformed context export: {exc}") from exc


def export_context(context: FlowContext) -> str:
    return json.dumps(context_to_dict(context), indent=2, ensure_ascii=False)


def import_context(text: str) -> FlowContext:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Invalid context JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidInputError("Context export must be a JSON object")
    return context_from_dict(payload)
