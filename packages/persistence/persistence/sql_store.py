from __future__ import annotations

import logging
import os
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from orchestrator.errors import PersistenceError
from orchestrator.types import ExecutionContext

from persistence.records import SessionRecord, context_from_payload, context_to_payload

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("AGENT_STATE_DB_URL", "sqlite:///./opencode_orchestrator.db")

Base = declarative_base()


class SessionModel(Base):
    """Lightweight session descriptor."""
    __tablename__ = "orchestrator_sessions"

    id = Column(String, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, index=True)
    saved_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(String, nullable=False)


class ExecutionContextModel(Base):
    """Full serialized ExecutionContext, one row per session."""
    __tablename__ = "execution_contexts"

    session_id = Column(String, primary_key=True, index=True)
    state = Column(String, nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


def create_store_engine(url: str | None = None) -> Engine:
    url = url or DATABASE_URL
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
    )


class SqlContextStore:
    """ContextStore backed by a SQL database through SQLAlchemy."""

    def __init__(self, engine: Optional[Engine] = None) -> None:
        self._engine = engine or create_store_engine()
        Base.metadata.create_all(bind=self._engine)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)

    async def save(self, context: ExecutionContext) -> None:
        record = SessionRecord.from_context(context)
        db = self._session_factory()
        try:
            db.merge(
                SessionModel(
                    id=record.id,
                    created_at=record.created_at,
                    updated_at=record.updated_at,
                    saved_at=record.saved_at,
                    version=record.version,
                )
            )
            db.merge(
                ExecutionContextModel(
                    session_id=context.session_id,
                    state=context.state.value,
                    payload=context_to_payload(context),
                    updated_at=context.updated_at,
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"Failed to save session {context.session_id}: {exc}") from exc
        finally:
            db.close()

    async def load(self, session_id: str) -> Optional[ExecutionContext]:
        db = self._session_factory()
        try:
            if db.get(SessionModel, session_id) is None:
                return None
            row = db.get(ExecutionContextModel, session_id)
            payload = row.payload if row is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read context for {session_id}: {exc}") from exc
        finally:
            db.close()

        if payload is None:
            return None
        context = context_from_payload(payload)
        if context is None:
            logger.warning(f"Stored context for session {session_id} is incomplete, ignoring")
        return context

    async def list_sessions(self) -> List[SessionRecord]:
        db = self._session_factory()
        try:
            rows = db.query(SessionModel).order_by(SessionModel.updated_at.desc()).all()
            return [
                SessionRecord(
                    id=row.id,
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                    saved_at=row.saved_at,
                    version=row.version,
                )
                for row in rows
            ]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list sessions: {exc}") from exc
        finally:
            db.close()

    async def delete(self, session_id: str) -> bool:
        db = self._session_factory()
        try:
            session_row = db.get(SessionModel, session_id)
            if session_row is None:
                return False
            db.delete(session_row)
            context_row = db.get(ExecutionContextModel, session_id)
            if context_row is not None:
                db.delete(context_row)
            db.commit()
            return True
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(f"Failed to delete session {session_id}: {exc}")
            return False
        finally:
            db.close()
