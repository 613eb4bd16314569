"""Tests for the Turn Engine — end-to-end turns against a scripted reasoning service."""

import asyncio

import pytest

from saga_kernel.agents.llm import LLMResponse, ScriptedLLMClient, function_call
from saga_kernel.agents.tools import NPC_OUTPUT_TOOL_NAME
from saga_kernel.engine.turn_engine import TurnEngine
from saga_kernel.errors import (
    AgentServiceError,
    InputValidationError,
    InvariantViolationError,
    PlayerNotFoundError,
    SessionNotFoundError,
)
from saga_kernel.models.engine import TurnEngineConfig
from saga_kernel.sessions.store import SqliteSessionStore


def _propose(*events) -> LLMResponse:
    return LLMResponse(function_calls=[function_call("propose_events", {"events": list(events)})])


def _finish(summary: str = "ok", player_prompt: dict = None) -> LLMResponse:
    args = {"summary": summary}
    if player_prompt is not None:
        args["player_prompt"] = player_prompt
    return LLMResponse(function_calls=[function_call("finish_turn", args)])


def _make_engine(responses=None, available=True, **config) -> TurnEngine:
    # The first queued response is consumed by the opening narration.
    llm = ScriptedLLMClient([LLMResponse()] + list(responses or []), available=available)
    return TurnEngine(
        store=SqliteSessionStore(db_path=":memory:"),
        llm=llm,
        config=TurnEngineConfig(**config),
    )


def _start(engine: TurnEngine, session_id: str = "sess-test") -> str:
    return asyncio.run(engine.init_session(session_id)).session_id


def _turn(engine: TurnEngine, session_id: str, text: str = "I look around.", player_id: str = None):
    return asyncio.run(engine.run_turn(session_id, text, player_id))


class TestInitSession:
    def test_new_session(self):
        engine = _make_engine(available=False)
        result = asyncio.run(engine.init_session())
        assert result.created
        assert result.session_id.startswith("sess_")
        assert result.telemetry.turn == 0
        assert result.telemetry.location.id == "the-landing"
        assert result.opening == result.telemetry.location.description

    def test_resume_session(self):
        engine = _make_engine(available=False)
        _start(engine, "sess-a")
        again = asyncio.run(engine.init_session("sess-a"))
        assert not again.created


class TestInputErrors:
    def test_empty_player_text(self):
        engine = _make_engine(available=False)
        session_id = _start(engine)
        with pytest.raises(InputValidationError):
            _turn(engine, session_id, "   ")

    def test_unknown_session(self):
        engine = _make_engine(available=False)
        with pytest.raises(SessionNotFoundError):
            _turn(engine, "sess-missing")

    def test_unknown_player(self):
        engine = _make_engine(available=False)
        session_id = _start(engine)
        with pytest.raises(PlayerNotFoundError):
            _turn(engine, session_id, player_id="player-9")

    def test_corrupt_snapshot_refused_before_turn(self):
        engine = _make_engine(available=False)
        session_id = _start(engine)
        state = engine.store.load_session(session_id)
        state.actors["player-1"].inventory.append("phantom")
        engine.store.save_snapshot(session_id, state)
        with pytest.raises(InvariantViolationError):
            _turn(engine, session_id)
        assert engine.store.load_turn_log(session_id) == []


class TestFallbackTurn:
    def test_turn_commits_without_reasoning_service(self):
        engine = _make_engine(available=False)
        session_id = _start(engine)
        result = _turn(engine, session_id)

        assert result.turn == 1
        assert result.completed
        assert result.accepted_events == []
        assert result.narration == result.telemetry.location.description

        records = engine.get_turn_log(session_id)
        assert len(records) == 1
        assert records[0].gm_summary == "No reasoning service configured; fallback turn"
        assert engine.store.load_session(session_id).meta.turn == 1


class TestScriptedTurn:
    def test_accepted_and_rejected_events(self):
        engine = _make_engine([
            _propose(
                {"type": "AdvanceTime", "minutes": 15},
                {"type": "PickUpItem", "actor_id": "player-1", "item_id": "heartwater-jar"},
            ),
            _finish("Fifteen quiet minutes."),
        ])
        session_id = _start(engine)
        result = _turn(engine, session_id, "I wait and reach for the jar.")

        assert [e.type for e in result.accepted_events] == ["AdvanceTime"]
        assert [r.reason for r in result.rejected_events] == ["item_too_far"]
        assert result.telemetry.time.elapsed_minutes == 15
        assert result.completed

        snapshot = engine.store.load_session(session_id)
        assert snapshot.systems.elapsed_minutes == 15
        assert engine.get_turn_log(session_id)[0].gm_summary == "Fifteen quiet minutes."

    def test_consulted_npc_output_is_recorded(self):
        engine = _make_engine([
            LLMResponse(function_calls=[function_call("consult_npc", {"npc_id": "ledger-pike", "topic": "rope"})]),
            LLMResponse(function_calls=[function_call(NPC_OUTPUT_TOOL_NAME, {
                "public_utterance": "Rope's dear this week.",
                "private_intent": "raise_prices",
            })]),
            _finish(),
        ])
        session_id = _start(engine)
        _turn(engine, session_id, "I ask Ledger about rope.")

        record = engine.get_turn_log(session_id)[0]
        assert [o.npc_id for o in record.npc_outputs] == ["ledger-pike"]
        assert record.npc_outputs[0].public_utterance == "Rope's dear this week."

    def test_consulting_a_non_npc(self):
        engine = _make_engine([
            LLMResponse(function_calls=[function_call("consult_npc", {"npc_id": "player-1"})]),
            _finish(),
        ], include_trace=True)
        session_id = _start(engine)
        result = _turn(engine, session_id)
        consult = result.trace.tool_calls[0]
        assert consult.tool == "consult_npc"
        assert consult.output == {"error": "npc_not_found", "npc_id": "player-1"}

    def test_turns_advance_monotonically(self):
        engine = _make_engine([_finish(), LLMResponse(), _finish(), LLMResponse()])
        session_id = _start(engine)
        assert _turn(engine, session_id).turn == 1
        assert _turn(engine, session_id).turn == 2
        assert [r.turn for r in engine.get_turn_log(session_id)] == [1, 2]


class TestAgentFailure:
    def test_rollback_after_staged_events(self):
        engine = _make_engine([
            _propose({"type": "AdvanceTime", "minutes": 10}),
            _propose({"type": "Speak", "actor_id": "player-1", "text": "Hello?"}),
            AgentServiceError("upstream exploded", kind="upstream"),
        ])
        session_id = _start(engine)
        result = _turn(engine, session_id)

        assert result.turn == 1
        assert result.accepted_events == []
        assert [r.reason for r in result.rejected_events] == ["agent_failure_rollback"] * 2
        assert not result.completed

        snapshot = engine.store.load_session(session_id)
        assert snapshot.meta.turn == 1
        assert snapshot.systems.elapsed_minutes == 0

        record = engine.get_turn_log(session_id)[0]
        assert record.accepted_events == []
        assert len(record.rejected_events) == 2

    def test_rollback_keeps_replay_consistent(self):
        engine = _make_engine([
            _propose({"type": "AdvanceTime", "minutes": 10}),
            RuntimeError("connection reset"),
        ])
        session_id = _start(engine)
        _turn(engine, session_id)
        report = engine.verify_session(session_id)
        assert report.chain_valid
        assert report.replay_matches

    def test_failure_is_traced(self):
        engine = _make_engine([RuntimeError("Rate limit reached")], include_trace=True)
        session_id = _start(engine)
        result = _turn(engine, session_id)
        failure = result.trace.tool_calls[-1]
        assert failure.tool == "gm_agent_error"
        assert failure.output["kind"] == "rate_limit"


class TestIterationCeiling:
    def test_partial_success_is_kept(self):
        engine = _make_engine([
            _propose({"type": "AdvanceTime", "minutes": 5}),
            _propose({"type": "AdvanceTime", "minutes": 5}),
            _propose({"type": "AdvanceTime", "minutes": 5}),
        ], max_gm_iterations=2)
        session_id = _start(engine)
        result = _turn(engine, session_id)

        assert len(result.accepted_events) == 2
        assert not result.completed
        assert result.telemetry.time.elapsed_minutes == 10
        record = engine.get_turn_log(session_id)[0]
        assert record.completed is False
        assert record.gm_summary == "Max iterations reached"


class TestTravelHandshake:
    """A long trip is refused until the player confirms a pending prompt."""

    def test_confirm_across_two_turns(self):
        prompt = {
            "pending": {
                "id": "confirm-ridge",
                "kind": "confirm_travel",
                "question": "The Spine Ridge is over an hour's climb. Set out?",
                "options": [{"key": "yes", "label": "Set out"}, {"key": "no", "label": "Stay"}],
                "data": {"locationId": "the-spine-ridge"},
            },
        }
        engine = _make_engine([
            _propose({"type": "TravelToLocation", "actor_id": "player-1", "location_id": "the-spine-ridge"}),
            _finish("Asked for confirmation.", prompt),
            LLMResponse(),
            _propose({
                "type": "TravelToLocation",
                "actor_id": "player-1",
                "location_id": "the-spine-ridge",
                "confirm_id": "confirm-ridge",
            }),
            _finish("Climbed the ridge."),
        ])
        session_id = _start(engine)

        first = _turn(engine, session_id, "I head for the spine ridge.")
        assert [r.reason for r in first.rejected_events] == ["travel_requires_confirmation"]
        assert first.pending_prompt.id == "confirm-ridge"
        assert first.pending_prompt.created_turn == 1
        assert engine.store.load_session(session_id).meta.pending_prompt is not None

        second = _turn(engine, session_id, "Yes, set out.")
        assert [e.type for e in second.accepted_events] == ["TravelToLocation"]
        assert second.pending_prompt is None
        assert second.telemetry.location.id == "the-spine-ridge"
        assert "mira-salt" in second.telemetry.knowledge.seen_actors

        report = engine.verify_session(session_id)
        assert report.replay_matches
        assert report.turns == 2

    def test_clear_directive(self):
        prompt = {
            "pending": {
                "id": "which-way",
                "kind": "clarify_explore",
                "question": "Explore which way?",
            },
        }
        engine = _make_engine([
            _finish("Asked.", prompt),
            LLMResponse(),
            _finish("Cleared.", {"clear": True}),
        ])
        session_id = _start(engine)
        assert _turn(engine, session_id).pending_prompt.kind == "clarify_explore"
        assert _turn(engine, session_id).pending_prompt is None

    def test_invalid_prompt_is_ignored(self):
        engine = _make_engine([_finish("Asked.", {"pending": {"id": "p", "kind": "riddle"}})])
        session_id = _start(engine)
        result = _turn(engine, session_id)
        assert result.pending_prompt is None
        assert result.completed


class TestTelemetryAccess:
    def test_get_telemetry_defaults_to_configured_player(self):
        engine = _make_engine(available=False)
        session_id = _start(engine)
        telemetry = engine.get_telemetry(session_id)
        assert telemetry.player.id == "player-1"

    def test_get_turn_log_unknown_session(self):
        engine = _make_engine(available=False)
        with pytest.raises(SessionNotFoundError):
            engine.get_turn_log("sess-missing")


class TestConcurrency:
    def test_turns_of_one_session_are_serialized(self):
        engine = _make_engine(available=False)
        session_id = _start(engine)

        async def play_two():
            return await asyncio.gather(
                engine.run_turn(session_id, "first"),
                engine.run_turn(session_id, "second"),
            )

        results = asyncio.run(play_two())
        assert sorted(r.turn for r in results) == [1, 2]
        assert [r.turn for r in engine.get_turn_log(session_id)] == [1, 2]


class FlakySnapshotStore(SqliteSessionStore):
    """Store whose next snapshot write fails, or whose next log read is stale."""

    def __init__(self):
        super().__init__(db_path=":memory:")
        self.fail_next_save = False
        self.stale_log_reads = 0

    def save_snapshot(self, session_id, state):
        if self.fail_next_save:
            self.fail_next_save = False
            raise OSError("disk full")
        super().save_snapshot(session_id, state)

    def load_turn_log(self, session_id):
        if self.stale_log_reads:
            self.stale_log_reads -= 1
            return []
        return super().load_turn_log(session_id)


class TestCrashBetweenAppendAndSnapshot:
    """The turn log wins when a commit dies after the append."""

    def setup_method(self):
        self.store = FlakySnapshotStore()
        self.llm = ScriptedLLMClient([
            LLMResponse(),
            _propose({"type": "AdvanceTime", "minutes": 30}),
            _finish("Half an hour."),
            LLMResponse(),
            _propose({"type": "AdvanceTime", "minutes": 60}),
            _finish("An hour."),
            LLMResponse(),
        ])
        self.engine = TurnEngine(store=self.store, llm=self.llm)
        self.session_id = _start(self.engine)

        self.store.fail_next_save = True
        with pytest.raises(OSError):
            _turn(self.engine, self.session_id, "I wait.")
        assert self.store.load_session(self.session_id).meta.turn == 0
        assert [r.turn for r in self.store.load_turn_log(self.session_id)] == [1]

    def test_lagging_snapshot_is_rebuilt_before_next_turn(self):
        result = _turn(self.engine, self.session_id, "I wait longer.")

        assert result.turn == 2
        snapshot = self.store.load_session(self.session_id)
        assert snapshot.meta.turn == 2
        assert snapshot.systems.elapsed_minutes == 90
        log = self.engine.get_turn_log(self.session_id)
        assert [[e.minutes for e in r.accepted_events] for r in log] == [[30], [60]]
        report = self.engine.verify_session(self.session_id)
        assert report.chain_valid
        assert report.replay_matches

    def test_duplicate_append_commits_the_logged_record(self):
        self.store.stale_log_reads = 1
        result = _turn(self.engine, self.session_id, "I wait longer.")

        assert result.turn == 1
        assert [e.minutes for e in result.accepted_events] == [30]
        assert result.narration == self.engine.get_turn_log(self.session_id)[0].narration
        snapshot = self.store.load_session(self.session_id)
        assert snapshot.meta.turn == 1
        assert snapshot.systems.elapsed_minutes == 30
        assert self.engine.verify_session(self.session_id).replay_matches


class TestSessionLocks:
    def test_unknown_session_creates_no_lock(self):
        engine = _make_engine(available=False)
        with pytest.raises(SessionNotFoundError):
            _turn(engine, "sess-missing")
        assert "sess-missing" not in engine._locks

    def test_known_session_reuses_its_lock(self):
        engine = _make_engine(available=False)
        session_id = _start(engine)
        _turn(engine, session_id)
        _turn(engine, session_id)
        assert list(engine._locks) == [session_id]


class TestContextFailure:
    def test_context_bug_is_not_an_agent_failure(self, monkeypatch):
        engine = _make_engine([_propose({"type": "AdvanceTime", "minutes": 10}), _finish()])
        session_id = _start(engine)

        def broken_context(*args, **kwargs):
            raise KeyError("landmarks")

        monkeypatch.setattr("saga_kernel.engine.turn_engine.build_gm_world_context", broken_context)
        with pytest.raises(KeyError):
            _turn(engine, session_id)
        assert engine.store.load_turn_log(session_id) == []
        assert engine.store.load_session(session_id).meta.turn == 0
