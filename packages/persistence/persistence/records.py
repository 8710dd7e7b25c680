from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from orchestrator.types import ExecutionContext, utcnow

RECORD_VERSION = "1.0"


class SessionRecord(BaseModel):
    """Lightweight session descriptor stored next to the full context."""
    id: str
    created_at: datetime
    updated_at: datetime
    saved_at: datetime = Field(default_factory=utcnow)
    version: str = RECORD_VERSION

    @classmethod
    def from_context(cls, context: ExecutionContext) -> "SessionRecord":
        return cls(id=context.session_id, created_at=context.started_at, updated_at=context.updated_at)


def context_from_payload(payload: Any) -> Optional[ExecutionContext]:
    """Rehydrate a stored context; None when the payload is not a usable context."""
    if not isinstance(payload, dict):
        return None
    if not payload.get("session_id") or not payload.get("state"):
        return None
    if "step_results" not in payload or "transitions" not in payload:
        return None
    try:
        return ExecutionContext.model_validate(payload)
    except ValidationError:
        return None


def context_to_payload(context: ExecutionContext) -> Dict[str, Any]:
    return context.to_json_dict()
