"""
Turn Engine — orchestrates one player turn from input to committed record.

Per turn:
  1. Load the snapshot and verify invariants on the pre-turn state
  2. Open a TurnDraft (private copy, turn counter bumped)
  3. Drive the game-master loop; each propose_events call is staged as
     one all-or-nothing batch
  4. On a reasoning-service failure, roll back everything accepted this
     turn (the turn still advances)
  5. Re-verify invariants on the final draft; a violation here is fatal
  6. Diff before/after telemetry and narrate
  7. Append the Turn Record, then overwrite the snapshot

The log is the source of truth. A snapshot that lags the log (a crash
between append and save) is rebuilt by replay before the next turn runs,
and an append that finds the turn already logged commits the logged
record instead of the fresh draft.

Turns of one session are serialized by a per-session asyncio.Lock;
different sessions never share state.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from saga_kernel.agents.gm import GMAgentLoop
from saga_kernel.agents.llm import LLMClient, classify_llm_error
from saga_kernel.agents.narrator import narrate_opening, narrate_turn
from saga_kernel.agents.npc import run_npc_agent
from saga_kernel.engine.context import build_gm_world_context
from saga_kernel.engine.staging import TurnDraft
from saga_kernel.errors import (
    InputValidationError,
    InvariantViolationError,
    PlayerNotFoundError,
    SessionNotFoundError,
)
from saga_kernel.models.engine import TurnEngineConfig
from saga_kernel.models.events import RejectedEvent, WorldEvent
from saga_kernel.models.turn import NpcOutput, ToolCallTrace, TurnRecord, TurnTrace
from saga_kernel.models.views import Telemetry
from saga_kernel.models.world import PendingPrompt, WorldState
from saga_kernel.sessions.replay import ReplayReport, replay_record, replay_turn_log, verify_replay
from saga_kernel.sessions.store import SessionStore
from saga_kernel.world_model.factory import WorldFactory, create_isle_of_marrow
from saga_kernel.world_model.invariants import check_invariants, check_transition
from saga_kernel.world_model.views import build_observation, build_telemetry, compute_turn_diff

logger = logging.getLogger(__name__)


class InitResult(BaseModel):
    session_id: str
    created: bool
    telemetry: Telemetry
    opening: str


class TurnResult(BaseModel):
    session_id: str
    turn: int
    accepted_events: List[WorldEvent] = []
    rejected_events: List[RejectedEvent] = []
    telemetry: Telemetry
    narration: str
    pending_prompt: Optional[PendingPrompt] = None
    completed: bool = True
    trace: Optional[TurnTrace] = None


def _assert_invariants(state: WorldState, message: str, before: Optional[WorldState] = None) -> None:
    issues = check_invariants(state)
    if before is not None:
        issues += check_transition(before, state)
    if issues:
        logger.error("%s: %s", message, "; ".join(f"{i.path}: {i.message}" for i in issues))
        raise InvariantViolationError(message, details=[i.model_dump() for i in issues])


_CHAIN_FIELDS = {"signature", "prior_record_hash"}


def _same_record(built: TurnRecord, stored: TurnRecord) -> bool:
    return built.model_dump(mode="json", exclude=_CHAIN_FIELDS) == stored.model_dump(
        mode="json", exclude=_CHAIN_FIELDS
    )


def _result_from_record(record: TurnRecord) -> TurnResult:
    return TurnResult(
        session_id=record.session_id,
        turn=record.turn,
        accepted_events=record.accepted_events,
        rejected_events=record.rejected_events,
        telemetry=record.telemetry,
        narration=record.narration,
        pending_prompt=record.pending_prompt,
        completed=record.completed,
        trace=record.trace,
    )


class _TurnRuntime:
    """The GMToolRuntime the engine exposes for one turn."""

    def __init__(
        self,
        engine: "TurnEngine",
        draft: TurnDraft,
        player_id: str,
        player_text: str,
        trace: Optional[TurnTrace],
    ):
        self.engine = engine
        self.draft = draft
        self.player_id = player_id
        self.player_text = player_text
        self.trace = trace
        self.npc_outputs: List[NpcOutput] = []
        self.gm_summary: Optional[str] = None

    async def observe_world(self, perspective: str) -> Dict[str, Any]:
        if perspective == "player":
            return build_telemetry(self.draft.state, self.player_id).model_dump(mode="json")
        return build_observation(self.draft.state, self.player_id).model_dump(mode="json")

    async def consult_npc(self, npc_id: str, topic: Optional[str] = None) -> Dict[str, Any]:
        npc = self.draft.state.actors.get(npc_id)
        if npc is None or npc.kind != "npc":
            return {"error": "npc_not_found", "npc_id": npc_id}
        output = await run_npc_agent(
            self.engine.llm,
            self.engine.config.npc_model,
            npc,
            build_observation(self.draft.state, self.player_id).model_dump(mode="json"),
            self.player_text,
            topic=topic,
            trace=self.trace,
        )
        self.npc_outputs.append(output)
        return output.model_dump(mode="json")

    async def propose_events(self, events: List[Any]) -> Dict[str, Any]:
        return self.draft.stage(events).model_dump(mode="json")

    async def finish_turn(
        self, summary: str, player_prompt: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        meta = self.draft.state.meta
        if summary and summary.strip():
            self.gm_summary = summary.strip()
        if not player_prompt:
            return {"ok": True}

        if player_prompt.get("clear") is True:
            meta.pending_prompt = None
        pending = player_prompt.get("pending")
        if isinstance(pending, dict):
            try:
                meta.pending_prompt = PendingPrompt.model_validate(
                    {"created_turn": self.draft.turn, **pending}
                )
            except ValidationError as exc:
                logger.info("Ignoring invalid pending prompt: %s", exc.errors()[0]["msg"])
                return {"ok": True, "pending_prompt": "ignored_invalid"}
        return {"ok": True}


class TurnEngine:
    """Runs turns against a session store and a reasoning service."""

    def __init__(
        self,
        store: SessionStore,
        llm: LLMClient,
        config: Optional[TurnEngineConfig] = None,
        world_factory: WorldFactory = create_isle_of_marrow,
    ):
        self.store = store
        self.llm = llm
        self.config = config or TurnEngineConfig()
        self.world_factory = world_factory
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def _load(self, session_id: str, player_id: str) -> WorldState:
        state = self.store.load_session(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        if player_id not in state.actors:
            raise PlayerNotFoundError(player_id)
        return state

    async def init_session(self, session_id: Optional[str] = None) -> InitResult:
        session_id, state, created = self.store.ensure_session(session_id, self.world_factory)
        _assert_invariants(state, "Session initialized with invalid world state")
        telemetry = build_telemetry(state, self.config.default_player_id)
        opening = await narrate_opening(self.llm, self.config.narrator_model, telemetry)
        return InitResult(session_id=session_id, created=created, telemetry=telemetry, opening=opening)

    def get_telemetry(self, session_id: str, player_id: Optional[str] = None) -> Telemetry:
        player_id = player_id or self.config.default_player_id
        return build_telemetry(self._load(session_id, player_id), player_id)

    def get_turn_log(self, session_id: str) -> List[TurnRecord]:
        if self.store.load_session(session_id) is None:
            raise SessionNotFoundError(session_id)
        return self.store.load_turn_log(session_id)

    def verify_session(self, session_id: str) -> ReplayReport:
        return verify_replay(self.store, session_id)

    async def run_turn(
        self,
        session_id: str,
        player_text: Optional[str],
        player_id: Optional[str] = None,
    ) -> TurnResult:
        if not player_text or not player_text.strip():
            raise InputValidationError("playerText is required")
        player_id = player_id or self.config.default_player_id
        # Unknown sessions fail here, before a lock is ever created for them.
        self._load(session_id, player_id)
        async with self._lock_for(session_id):
            return await self._run_turn(session_id, player_text, player_id)

    def _heal_snapshot(self, session_id: str, state: WorldState, history: List[TurnRecord]) -> WorldState:
        """Rebuild a snapshot that lags the log by replaying the log."""
        if not history or history[-1].turn <= state.meta.turn:
            return state
        logger.warning(
            "Session %s: snapshot at turn %d lags log at turn %d; rebuilding by replay",
            session_id, state.meta.turn, history[-1].turn,
        )
        healed = replay_turn_log(self.store.load_initial(session_id), history)
        self.store.save_snapshot(session_id, healed)
        return healed

    async def _run_turn(self, session_id: str, player_text: str, player_id: str) -> TurnResult:
        state = self._load(session_id, player_id)
        history = self.store.load_turn_log(session_id)
        state = self._heal_snapshot(session_id, state, history)
        _assert_invariants(state, "Session world state is invalid before turn execution")

        draft = TurnDraft(state, state.meta.turn + 1)
        trace = TurnTrace() if self.config.include_trace else None
        runtime = _TurnRuntime(self, draft, player_id, player_text, trace)
        logger.info("Session %s: starting turn %d", session_id, draft.turn)

        loop = GMAgentLoop(
            self.llm,
            self.config.gm_model,
            max_iterations=self.config.max_gm_iterations,
            trace=trace,
        )
        context = build_gm_world_context(draft.state, player_id, player_text, history)
        try:
            outcome = await loop.run(player_text, context, runtime)
            completed = outcome.finished
        except Exception as exc:
            details = classify_llm_error(exc)
            logger.warning(
                "Session %s turn %d: GM agent failed (%s: %s); rolling back %d accepted events",
                session_id, draft.turn, details.kind.value, details.message, len(draft.accepted),
            )
            if trace is not None:
                trace.tool_calls.append(ToolCallTrace(
                    tool="gm_agent_error",
                    input={"player_text": player_text},
                    output={"error": "gm_agent_failed", "kind": details.kind.value, "message": details.message},
                ))
            draft.rollback()
            runtime.npc_outputs = []
            completed = False

        _assert_invariants(
            draft.state, "Session world state failed post-turn invariant checks", before=state
        )

        before = build_telemetry(state, player_id)
        after = build_telemetry(draft.state, player_id)
        diff = compute_turn_diff(before, after, draft.accepted)
        narration = await narrate_turn(
            self.llm,
            self.config.narrator_model,
            player_text,
            after,
            diff,
            [r.reason for r in draft.rejected],
            pending_prompt=draft.state.meta.pending_prompt,
            style=self.config.narrator_style,
            trace=trace,
        )

        record = TurnRecord(
            session_id=session_id,
            turn=draft.turn,
            at=datetime.now(timezone.utc),
            player_id=player_id,
            player_text=player_text,
            accepted_events=draft.accepted,
            rejected_events=draft.rejected,
            npc_outputs=runtime.npc_outputs,
            narration=narration,
            telemetry=after,
            pending_prompt=draft.state.meta.pending_prompt,
            completed=completed,
            gm_summary=runtime.gm_summary,
            trace=trace,
        )
        stored = self.store.append_turn(session_id, record)
        if _same_record(record, stored):
            final_state = draft.state
        else:
            logger.warning(
                "Session %s: turn %d was already logged; committing the logged record",
                session_id, stored.turn,
            )
            final_state = replay_record(state, stored)
        self.store.save_snapshot(session_id, final_state)
        logger.info(
            "Session %s: committed turn %d (%d accepted, %d rejected)",
            session_id, stored.turn, len(stored.accepted_events), len(stored.rejected_events),
        )
        return _result_from_record(stored)
