"""Tests for the Event Validator."""

from saga_kernel.governance.validator import (
    VALIDATION_RULES,
    has_matching_travel_confirmation,
    validate_event,
)
from saga_kernel.models.events import (
    AdvanceTime,
    CreateEntity,
    DropItem,
    Explore,
    Inspect,
    MoveActor,
    PickUpItem,
    SetFlag,
    Speak,
    TravelToLocation,
    event_types,
)
from saga_kernel.models.world import GridPos, PendingPrompt, WorldState
from saga_kernel.world_model.factory import create_isle_of_marrow


def _make_state(elapsed: int = 0) -> WorldState:
    state = create_isle_of_marrow()
    state.systems.elapsed_minutes = elapsed
    return state


def _make_confirm_prompt(location_key: str = "location_id", location_id: str = "the-spine-ridge") -> PendingPrompt:
    return PendingPrompt(
        id="confirm-ridge",
        kind="confirm_travel",
        question="The ridge is a long climb. Set out?",
        data={location_key: location_id},
        created_turn=1,
    )


class TestRegistry:
    def test_every_event_type_has_a_rule(self):
        assert set(VALIDATION_RULES) == set(event_types())


class TestTideGating:
    """A low-access location is closed at high water and open at low water."""

    def test_travel_rejected_at_high_tide(self):
        state = _make_state(90)
        result = validate_event(state, TravelToLocation(actor_id="player-1", location_id="the-maw"))
        assert not result.ok
        assert result.reason == "tide_blocks_the-maw"

    def test_travel_accepted_at_low_tide(self):
        state = _make_state(540)
        result = validate_event(state, TravelToLocation(actor_id="player-1", location_id="the-maw"))
        assert result.ok

    def test_move_into_blocked_area_rejected(self):
        state = _make_state(90)
        result = validate_event(state, MoveActor(actor_id="player-1", to=GridPos(x=0, y=-150)))
        assert result.reason == "tide_blocks_the-maw"

    def test_move_to_blocked_location_id_rejected(self):
        state = _make_state(0)    # rising water also closes the Maw
        result = validate_event(state, MoveActor(actor_id="player-1", to_location_id="the-maw"))
        assert result.reason == "tide_blocks_the-maw"

    def test_move_near_but_outside_radius_is_not_gated(self):
        state = _make_state(90)
        # Nearest location is the Maw, but 150 cells from its anchor (radius 120).
        result = validate_event(state, MoveActor(actor_id="player-1", to=GridPos(x=150, y=-200)))
        assert result.ok


class TestLongTravelHandshake:
    def test_rejected_without_confirmation(self):
        result = validate_event(
            _make_state(), TravelToLocation(actor_id="player-1", location_id="the-spine-ridge")
        )
        assert result.reason == "travel_requires_confirmation"

    def test_accepted_with_matching_confirmation(self):
        state = _make_state()
        state.meta.pending_prompt = _make_confirm_prompt()
        result = validate_event(state, TravelToLocation(
            actor_id="player-1", location_id="the-spine-ridge", confirm_id="confirm-ridge",
        ))
        assert result.ok

    def test_camel_case_prompt_data_is_accepted(self):
        state = _make_state()
        state.meta.pending_prompt = _make_confirm_prompt(location_key="locationId")
        assert has_matching_travel_confirmation(state, "the-spine-ridge", "confirm-ridge")

    def test_confirmation_for_another_location(self):
        state = _make_state()
        state.meta.pending_prompt = _make_confirm_prompt(location_id="the-heartspring")
        result = validate_event(state, TravelToLocation(
            actor_id="player-1", location_id="the-spine-ridge", confirm_id="confirm-ridge",
        ))
        assert result.reason == "travel_requires_confirmation"

    def test_confirmation_id_mismatch(self):
        state = _make_state()
        state.meta.pending_prompt = _make_confirm_prompt()
        result = validate_event(state, TravelToLocation(
            actor_id="player-1", location_id="the-spine-ridge", confirm_id="confirm-other",
        ))
        assert result.reason == "travel_requires_confirmation"

    def test_short_travel_needs_no_confirmation(self):
        result = validate_event(
            _make_state(), TravelToLocation(actor_id="player-1", location_id="the-drunken-vertebra")
        )
        assert result.ok


class TestMoveRules:
    def setup_method(self):
        self.state = _make_state()

    def test_unknown_actor(self):
        result = validate_event(self.state, MoveActor(actor_id="ghost", to=GridPos(x=1, y=1)))
        assert result.reason == "actor_not_found"

    def test_no_destination(self):
        result = validate_event(self.state, MoveActor(actor_id="player-1"))
        assert result.reason == "invalid_destination"

    def test_unknown_location_destination(self):
        result = validate_event(self.state, MoveActor(actor_id="player-1", to_location_id="atlantis"))
        assert result.reason == "invalid_destination"

    def test_out_of_bounds(self):
        result = validate_event(self.state, MoveActor(actor_id="player-1", to=GridPos(x=5000, y=0)))
        assert result.reason == "out_of_bounds"

    def test_exceeds_turn_budget(self):
        result = validate_event(self.state, MoveActor(actor_id="player-1", to=GridPos(x=0, y=1000)))
        assert result.reason == "move_exceeds_turn_limit"

    def test_short_move_accepted(self):
        result = validate_event(self.state, MoveActor(actor_id="player-1", to=GridPos(x=40, y=30)))
        assert result.ok


class TestItemRules:
    def test_pickup_too_far(self):
        result = validate_event(_make_state(), PickUpItem(actor_id="player-1", item_id="heartwater-jar"))
        assert result.reason == "item_too_far"

    def test_pickup_within_reach(self):
        state = _make_state()
        state.actors["player-1"].pos = GridPos(x=1, y=1200, z=15)
        result = validate_event(state, PickUpItem(actor_id="player-1", item_id="heartwater-jar"))
        assert result.ok

    def test_pickup_unknown_item(self):
        result = validate_event(_make_state(), PickUpItem(actor_id="player-1", item_id="crown"))
        assert result.reason == "item_not_found"

    def test_drop_not_carried(self):
        result = validate_event(_make_state(), DropItem(actor_id="player-1", item_id="heartwater-jar"))
        assert result.reason == "item_not_in_inventory"


class TestOtherRules:
    def setup_method(self):
        self.state = _make_state()

    def test_speak_to_unknown_actor(self):
        result = validate_event(self.state, Speak(actor_id="player-1", text="Hello?", to_actor_id="ghost"))
        assert result.reason == "target_actor_not_found"

    def test_speak_accepted(self):
        result = validate_event(self.state, Speak(actor_id="player-1", text="Hello?", to_actor_id="aline-rua"))
        assert result.ok

    def test_advance_time_must_be_positive(self):
        assert validate_event(self.state, AdvanceTime(minutes=0)).reason == "invalid_minutes"
        assert validate_event(self.state, AdvanceTime(minutes=15)).ok

    def test_inspect_needs_subject(self):
        result = validate_event(self.state, Inspect(actor_id="player-1", subject="  "))
        assert result.reason == "inspect_subject_required"

    def test_explore_unknown_actor(self):
        assert validate_event(self.state, Explore(actor_id="ghost")).reason == "actor_not_found"

    def test_set_flag_needs_key(self):
        assert validate_event(self.state, SetFlag(key="", value=True)).reason == "flag_key_required"

    def test_create_entity_always_passes(self):
        event = CreateEntity.model_validate({
            "entity": {"kind": "item", "data": {"id": "heartwater-jar", "name": "Dup", "pos": {"x": 0, "y": 0}}},
        })
        assert validate_event(self.state, event).ok

    def test_validation_never_mutates_state(self):
        state = _make_state()
        before = state.model_dump_json()
        validate_event(state, TravelToLocation(actor_id="player-1", location_id="the-maw"))
        validate_event(state, MoveActor(actor_id="player-1", to=GridPos(x=40, y=30)))
        assert state.model_dump_json() == before
