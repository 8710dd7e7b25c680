from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from orchestrator.types import ExecutionContext

from persistence.records import SessionRecord, context_from_payload, context_to_payload


class InMemoryContextStore:
    """Keeps JSON snapshots in a dict; loads always return a fresh object."""

    def __init__(self) -> None:
        self.sessions: Dict[str, SessionRecord] = {}
        self.payloads: Dict[str, Dict[str, Any]] = {}
        self.save_count = 0

    async def save(self, context: ExecutionContext) -> None:
        self.sessions[context.session_id] = SessionRecord.from_context(context)
        self.payloads[context.session_id] = context_to_payload(context)
        self.save_count += 1

    async def load(self, session_id: str) -> Optional[ExecutionContext]:
        if session_id not in self.sessions:
            return None
        payload = self.payloads.get(session_id)
        if payload is None:
            return None
        return context_from_payload(copy.deepcopy(payload))
