from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from orchestrator import AgentOrchestrator

router = APIRouter()


def get_orchestrator(request: Request) -> AgentOrchestrator:
    """Orchestrator owned by the running application (dependency injection)."""
    return request.app.state.orchestrator


class TurnRequest(BaseModel):
    input: str


@router.post("/{session_id}/turns")
async def run_turn(
    session_id: str,
    request: TurnRequest,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    await orchestrator.run_turn(request.input, session_id)
    context = orchestrator.get_context(session_id)
    if context is None:
        raise HTTPException(status_code=500, detail="Context missing after turn")
    return context.to_json_dict()


@router.post("/{session_id}/cancel")
async def cancel_session(
    session_id: str,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    await orchestrator.cancel_session(session_id)
    context = orchestrator.get_context(session_id)
    if context is None:
        return {"session_id": session_id, "state": None}
    return context.to_json_dict()


@router.get("/{session_id}")
async def get_session_context(
    session_id: str,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    context = orchestrator.get_context(session_id)
    if context is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return context.to_json_dict()


@router.get("")
async def list_session_contexts(
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    return [context.to_json_dict() for context in orchestrator.list_contexts()]


@router.delete("/{session_id}", status_code=204)
async def clear_session_context(
    session_id: str,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> Response:
    orchestrator.clear_context(session_id)
    return Response(status_code=204)
