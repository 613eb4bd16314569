"""
Saga Kernel API — FastAPI endpoints.

A thin surface over the Turn Engine:
- Session initialization
- Turn execution
- Session inspection (telemetry, turn log, replay verification)

Wire keys are camelCase; everything behind the engine is snake_case.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from saga_kernel.agents.llm import OpenAIResponsesClient
from saga_kernel.config import Settings, get_settings, setup_logging
from saga_kernel.engine.turn_engine import TurnEngine
from saga_kernel.errors import InputValidationError, SagaError
from saga_kernel.models.engine import TurnEngineConfig
from saga_kernel.sessions.store import create_store

logger = logging.getLogger(__name__)


# --- Request Models ---

class InitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")


class TurnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    player_text: Optional[str] = Field(default=None, alias="playerText")
    player_id: Optional[str] = Field(default=None, alias="playerId")


def build_engine(settings: Settings) -> TurnEngine:
    """Wire a Turn Engine from runtime settings."""
    return TurnEngine(
        store=create_store(settings.store_backend, settings.data_dir),
        llm=OpenAIResponsesClient(api_key=settings.openai_api_key),
        config=TurnEngineConfig.from_settings(settings),
    )


# --- Application Factory ---

def create_app(
    engine: Optional[TurnEngine] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Saga Kernel API",
        description="Deterministic narrative simulation kernel",
        version="0.1.0",
    )

    engine = engine or build_engine(settings)
    app.state.engine = engine
    app.state.settings = settings

    @app.exception_handler(SagaError)
    async def handle_saga_error(request: Request, exc: SagaError):
        if exc.status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Malformed or mistyped bodies are invalid input, not 422s."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request body")
        if field:
            message = f"{field}: {message}"
        error = InputValidationError(message, details=errors)
        return JSONResponse(status_code=error.status, content=error.to_dict())

    # === SESSIONS ===

    @app.post("/api/init")
    async def init_session(req: InitRequest):
        """Create or resume a session."""
        result = await engine.init_session(req.session_id)
        return {
            "sessionId": result.session_id,
            "created": result.created,
            "telemetry": result.telemetry.model_dump(mode="json"),
            "opening": result.opening,
        }

    @app.post("/api/turn")
    async def run_turn(req: TurnRequest):
        """Execute one player turn."""
        if not req.session_id:
            raise InputValidationError("sessionId is required")
        result = await engine.run_turn(req.session_id, req.player_text, req.player_id)
        body = {
            "sessionId": result.session_id,
            "turn": result.turn,
            "acceptedEvents": [e.model_dump(mode="json") for e in result.accepted_events],
            "rejectedEvents": [r.model_dump(mode="json") for r in result.rejected_events],
            "telemetry": result.telemetry.model_dump(mode="json"),
            "narration": result.narration,
            "pendingPrompt": result.pending_prompt.model_dump(mode="json") if result.pending_prompt else None,
            "completed": result.completed,
        }
        if result.trace is not None:
            body["trace"] = result.trace.model_dump(mode="json")
        return body

    @app.get("/api/sessions/{session_id}/telemetry")
    def get_telemetry(session_id: str, playerId: Optional[str] = None):
        """Player-facing view of the current snapshot."""
        return engine.get_telemetry(session_id, playerId).model_dump(mode="json")

    @app.get("/api/sessions/{session_id}/turns")
    def get_turns(session_id: str):
        """The committed turn log."""
        return [r.model_dump(mode="json") for r in engine.get_turn_log(session_id)]

    @app.get("/api/sessions/{session_id}/verify")
    def verify_session(session_id: str):
        """Verify chain integrity and replay equivalence."""
        report = engine.verify_session(session_id)
        return {
            "sessionId": report.session_id,
            "turns": report.turns,
            "chainValid": report.chain_valid,
            "replayMatches": report.replay_matches,
            "firstDivergentTurn": report.first_divergent_turn,
        }

    return app


# Default application instance
app = create_app()
