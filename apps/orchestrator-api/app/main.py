import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI

# Opt-in: load .env from the repository root only when AGENT_LOAD_DOTENV=1
if os.environ.get("AGENT_LOAD_DOTENV", "").strip() == "1":
    _env_file = Path(__file__).resolve().parent.parent.parent.parent / ".env"
    if _env_file.exists():
        load_dotenv(_env_file)

from app.api.sessions import router as sessions_router
from opencode import OpenCodeServerClient
from orchestrator import AgentOrchestrator, OrchestratorConfig
from persistence import FileContextStore

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[], AgentOrchestrator]


def default_orchestrator() -> AgentOrchestrator:
    state_dir = Path(os.getenv("AGENT_STATE_DIR", ".opencode"))
    return AgentOrchestrator(
        backend=OpenCodeServerClient(),
        store=FileContextStore(state_dir),
        config=OrchestratorConfig.from_env(),
    )


def create_app(orchestrator_factory: Optional[OrchestratorFactory] = None) -> FastAPI:
    factory = orchestrator_factory or default_orchestrator

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # one orchestrator per application instance
        app.state.orchestrator = factory()
        logger.info("Agent orchestrator ready")
        yield

    app = FastAPI(title="OpenCode Agent Orchestrator", lifespan=lifespan)
    app.include_router(sessions_router, prefix="/sessions", tags=["sessions"])

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
