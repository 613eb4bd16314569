"""
Deterministic replay of a turn log over the initial snapshot.

Replay folds only what a record commits: the turn counter, the accepted
events (through the same reducer the live engine uses), and the pending
prompt the turn ended with. Narration, telemetry and traces are audit
material and never feed back into state.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel

from saga_kernel.errors import SessionNotFoundError
from saga_kernel.execution.reducer import apply_events
from saga_kernel.models.turn import TurnRecord
from saga_kernel.models.world import WorldState
from saga_kernel.sessions.store import SessionStore
from saga_kernel.world_model.views import build_telemetry

logger = logging.getLogger(__name__)


class ReplayReport(BaseModel):
    session_id: str
    turns: int
    chain_valid: bool
    replay_matches: bool
    first_divergent_turn: Optional[int] = None


def replay_record(state: WorldState, record: TurnRecord) -> WorldState:
    staged = state.clone()
    staged.meta.turn = record.turn
    replayed = apply_events(staged, record.accepted_events)
    replayed.meta.pending_prompt = (
        record.pending_prompt.model_copy(deep=True) if record.pending_prompt else None
    )
    return replayed


def replay_turn_log(
    initial: WorldState,
    records: List[TurnRecord],
    upto_turn: Optional[int] = None,
) -> WorldState:
    state = initial
    for record in records:
        if upto_turn is not None and record.turn > upto_turn:
            break
        state = replay_record(state, record)
    return state


def verify_replay(store: SessionStore, session_id: str) -> ReplayReport:
    """
    Replay every prefix of the log and compare against the live snapshot.

    Intermediate prefixes are compared against the telemetry each record
    captured; the full log is compared byte-for-byte with the snapshot.
    """
    initial = store.load_initial(session_id)
    snapshot = store.load_session(session_id)
    if initial is None or snapshot is None:
        raise SessionNotFoundError(session_id)

    records = store.load_turn_log(session_id)
    state = initial
    divergent: Optional[int] = None
    for record in records:
        state = replay_record(state, record)
        if divergent is None and record.player_id in state.actors:
            replayed_view = build_telemetry(state, record.player_id)
            if replayed_view.model_dump(mode="json") != record.telemetry.model_dump(mode="json"):
                divergent = record.turn

    matches = state.model_dump_json() == snapshot.model_dump_json()
    if not matches and divergent is None:
        divergent = records[-1].turn if records else 0
    if not matches or divergent is not None:
        logger.warning("Replay of session %s diverges at turn %s", session_id, divergent)

    return ReplayReport(
        session_id=session_id,
        turns=len(records),
        chain_valid=store.verify_chain_integrity(session_id),
        replay_matches=matches and divergent is None,
        first_divergent_turn=divergent,
    )
