"""Tests for turn staging: batch validation, invariant rejection and rollback."""

from saga_kernel.engine.staging import TurnDraft
from saga_kernel.models.events import AdvanceTime, Speak
from saga_kernel.models.world import GridPos, InventoryLocation, Item, WorldState
from saga_kernel.world_model.factory import create_isle_of_marrow


def _make_state_with_lantern() -> WorldState:
    state = create_isle_of_marrow()
    state.items["lantern"] = Item(
        id="lantern", name="Storm lantern", location=InventoryLocation(actor_id="player-1")
    )
    state.actors["player-1"].inventory.append("lantern")
    return state


def _make_draft(state: WorldState = None) -> TurnDraft:
    state = state or create_isle_of_marrow()
    return TurnDraft(state, state.meta.turn + 1)


class TestTurnDraft:
    def test_draft_bumps_turn_on_private_copy(self):
        base = create_isle_of_marrow()
        draft = _make_draft(base)
        assert draft.state.meta.turn == 1
        assert base.meta.turn == 0

    def test_accepted_events_are_stamped_and_applied(self):
        draft = _make_draft()
        result = draft.stage([{"type": "AdvanceTime", "minutes": 20}])
        assert result.ok
        assert result.batch_accepted == 1
        assert draft.state.systems.elapsed_minutes == 20
        assert draft.accepted[0].meta.turn == 1
        assert draft.accepted[0].meta.by == "gm"

    def test_base_state_never_touched(self):
        base = create_isle_of_marrow()
        before = base.model_dump_json()
        draft = _make_draft(base)
        draft.stage([{"type": "AdvanceTime", "minutes": 20}])
        assert base.model_dump_json() == before

    def test_validation_rejection_does_not_poison_batch(self):
        draft = _make_draft()
        result = draft.stage([
            {"type": "AdvanceTime", "minutes": 0},
            {"type": "Speak", "actor_id": "player-1", "text": "Anyone here?"},
        ])
        assert result.ok
        assert result.accepted == 1
        assert result.rejected == 1
        assert draft.rejected[0].reason == "invalid_minutes"
        assert result.batch_rejections == [{"type": "AdvanceTime", "reason": "invalid_minutes"}]

    def test_malformed_event_keeps_raw_payload(self):
        draft = _make_draft()
        result = draft.stage([
            {"type": "Teleport", "actor_id": "player-1"},
            {"type": "AdvanceTime", "minutes": 5},
        ])
        assert result.batch_accepted == 1
        rejected = draft.rejected[0]
        assert rejected.reason == "malformed_event"
        assert rejected.event is None
        assert rejected.raw == {"type": "Teleport", "actor_id": "player-1"}

    def test_non_dict_payload_is_malformed(self):
        draft = _make_draft()
        draft.stage(["not an event"])
        assert draft.rejected[0].reason == "malformed_event"
        assert draft.rejected[0].raw == {"value": "not an event"}

    def test_model_instances_are_accepted(self):
        draft = _make_draft()
        result = draft.stage([Speak(actor_id="player-1", text="Hello")])
        assert result.batch_accepted == 1

    def test_later_events_see_earlier_ones(self):
        state = create_isle_of_marrow()
        state.actors["player-1"].pos = GridPos(x=0, y=1199, z=15)
        draft = _make_draft(state)
        result = draft.stage([
            {"type": "PickUpItem", "actor_id": "player-1", "item_id": "heartwater-jar"},
            {"type": "DropItem", "actor_id": "player-1", "item_id": "heartwater-jar"},
        ])
        assert result.batch_accepted == 2


class TestInvariantRejection:
    def test_whole_batch_rejected_and_draft_unchanged(self):
        draft = _make_draft(_make_state_with_lantern())
        draft.stage([{"type": "AdvanceTime", "minutes": 10}])
        before = draft.state.model_dump_json()

        # Re-creating the carried lantern on the ground leaves the inventory
        # pointing at an item that is located elsewhere.
        result = draft.stage([
            {"type": "AdvanceTime", "minutes": 30},
            {
                "type": "CreateEntity",
                "entity": {"kind": "item", "data": {"id": "lantern", "name": "Lantern", "pos": {"x": 0, "y": 0}}},
            },
        ])

        assert not result.ok
        assert result.batch_accepted == 0
        assert draft.state.model_dump_json() == before
        assert len(draft.accepted) == 1
        reasons = [r.reason for r in draft.rejected]
        assert len(reasons) == 2
        assert all(r.startswith("invariant_violation:") for r in reasons)

    def test_next_batch_still_accepted(self):
        draft = _make_draft(_make_state_with_lantern())
        draft.stage([{
            "type": "CreateEntity",
            "entity": {"kind": "item", "data": {"id": "lantern", "name": "Lantern", "pos": {"x": 0, "y": 0}}},
        }])
        result = draft.stage([{"type": "AdvanceTime", "minutes": 5}])
        assert result.ok
        assert draft.state.systems.elapsed_minutes == 5


class TestRollback:
    def test_rollback_reclassifies_accepted_events(self):
        draft = _make_draft()
        draft.stage([{"type": "AdvanceTime", "minutes": 10}])
        draft.stage([AdvanceTime(minutes=15), {"type": "Speak", "actor_id": "player-1", "text": "Hm."}])
        assert len(draft.accepted) == 3

        draft.rollback()

        assert draft.accepted == []
        assert [r.reason for r in draft.rejected] == ["agent_failure_rollback"] * 3
        assert draft.state.systems.elapsed_minutes == 0
        assert draft.state.meta.turn == 1
