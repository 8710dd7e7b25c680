"""
File Context Store - JSON files mirroring orchestrator state for crash recovery.

Directory Structure:
    <root>/
      sessions/
        <session_id>.json       # SessionRecord
      orchestrator/
        <session_id>.json       # Full ExecutionContext

Directories are created lazily on the first write. Reads never raise for
missing or corrupted files; they report "no context" instead.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from orchestrator.errors import PersistenceError
from orchestrator.types import ExecutionContext

from persistence.records import SessionRecord, context_from_payload, context_to_payload

logger = logging.getLogger(__name__)

SESSIONS_DIR = "sessions"
CONTEXTS_DIR = "orchestrator"


class FileContextStore:
    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self.sessions_dir = self.root / SESSIONS_DIR
        self.contexts_dir = self.root / CONTEXTS_DIR

    def _file_name(self, session_id: str) -> str:
        return f"{quote(session_id, safe='')}.json"

    def session_path(self, session_id: str) -> Path:
        return self.sessions_dir / self._file_name(session_id)

    def context_path(self, session_id: str) -> Path:
        return self.contexts_dir / self._file_name(session_id)

    async def save(self, context: ExecutionContext) -> None:
        record = SessionRecord.from_context(context)
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
            self.contexts_dir.mkdir(parents=True, exist_ok=True)
            self.session_path(context.session_id).write_text(
                record.model_dump_json(indent=2), encoding="utf-8"
            )
            self.context_path(context.session_id).write_text(
                json.dumps(context_to_payload(context), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as exc:
            raise PersistenceError(f"Failed to save session {context.session_id}: {exc}") from exc

    async def load(self, session_id: str) -> Optional[ExecutionContext]:
        if await self.load_session(session_id) is None:
            return None

        path = self.context_path(session_id)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            logger.warning(f"Corrupted context file for session {session_id}, ignoring: {exc}")
            return None
        except OSError as exc:
            raise PersistenceError(f"Failed to read context for {session_id}: {exc}") from exc

        context = context_from_payload(payload)
        if context is None:
            logger.warning(f"Stored context for session {session_id} is incomplete, ignoring")
        return context

    async def load_session(self, session_id: str) -> Optional[SessionRecord]:
        path = self.session_path(session_id)
        if not path.exists():
            return None
        try:
            return SessionRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning(f"Failed to load session record {session_id}: {exc}")
            return None

    async def list_sessions(self) -> List[SessionRecord]:
        """All stored session records, most recently updated first."""
        if not self.sessions_dir.exists():
            return []
        records: List[SessionRecord] = []
        for path in self.sessions_dir.glob("*.json"):
            try:
                records.append(SessionRecord.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, ValidationError) as exc:
                logger.warning(f"Skipping unreadable session record {path.name}: {exc}")
        records.sort(key=lambda record: record.updated_at, reverse=True)
        return records

    async def delete(self, session_id: str) -> bool:
        session_path = self.session_path(session_id)
        if not session_path.exists():
            return False
        try:
            session_path.unlink()
            self.context_path(session_id).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(f"Failed to delete session {session_id}: {exc}")
            return False
        return True

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete sessions last updated before ``cutoff``; a naive cutoff is read as UTC."""
        if cutoff.tzinfo is None:
            cutoff = cutoff.replace(tzinfo=UTC)
        deleted = 0
        for record in await self.list_sessions():
            if record.updated_at < cutoff and await self.delete(record.id):
                deleted += 1
        return deleted
