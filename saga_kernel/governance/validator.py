"""
Event Validator — the guard between agent proposals and world state.

Behavioral Contract:
- Accepts one WorldEvent and the state it would apply to
- Returns a ValidationResult: ok, or a machine-readable rejection reason
- Pure predicate: never mutates state and never calls an agent
- One rule per event type, looked up in a registry keyed by the type tag
"""

from typing import Callable, Dict, Optional

from pydantic import BaseModel

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
    WorldEvent,
)
from saga_kernel.models.world import GridPos, WorldState
from saga_kernel.systems.constraints import derive_constraints
from saga_kernel.systems.tide import derive_tide, is_tide_blocked
from saga_kernel.systems.travel import LONG_TRAVEL_MINUTES, estimate_travel
from saga_kernel.world_model.geometry import (
    distance,
    find_nearest_location,
    is_within_bounds,
    location_radius,
)

PICKUP_REACH_CELLS = 2


class ValidationResult(BaseModel):
    ok: bool
    reason: Optional[str] = None


ACCEPT = ValidationResult(ok=True)


def _reject(reason: str) -> ValidationResult:
    return ValidationResult(ok=False, reason=reason)


def resolve_move_target(state: WorldState, event: MoveActor) -> Optional[GridPos]:
    """A named destination wins over explicit coordinates."""
    if event.to_location_id:
        location = state.locations.get(event.to_location_id)
        return location.anchor if location else None
    return event.to


def has_matching_travel_confirmation(state: WorldState, location_id: str, confirm_id: Optional[str]) -> bool:
    if not confirm_id:
        return False
    pending = state.meta.pending_prompt
    if pending is None or pending.kind != "confirm_travel" or pending.id != confirm_id:
        return False
    pending_location = pending.data.get("location_id", pending.data.get("locationId"))
    return isinstance(pending_location, str) and pending_location == location_id


def _validate_move(state: WorldState, event: MoveActor) -> ValidationResult:
    actor = state.actors.get(event.actor_id)
    if actor is None:
        return _reject("actor_not_found")
    dest = resolve_move_target(state, event)
    if dest is None:
        return _reject("invalid_destination")
    if not is_within_bounds(state, dest):
        return _reject("out_of_bounds")

    # Only the nearest location can gate a destination.
    nearest = find_nearest_location(state, dest)
    if (
        nearest is not None
        and is_tide_blocked(nearest, derive_tide(state).phase)
        and distance(nearest.anchor, dest) <= location_radius(nearest)
    ):
        return _reject(f"tide_blocks_{nearest.id}")

    move_meters = distance(actor.pos, dest) * state.map.cell_size_meters
    if move_meters > derive_constraints(state).max_move_meters:
        return _reject("move_exceeds_turn_limit")
    return ACCEPT


def _validate_travel(state: WorldState, event: TravelToLocation) -> ValidationResult:
    actor = state.actors.get(event.actor_id)
    if actor is None:
        return _reject("actor_not_found")
    location = state.locations.get(event.location_id)
    if location is None:
        return _reject("location_not_found")
    if is_tide_blocked(location, derive_tide(state).phase):
        return _reject(f"tide_blocks_{location.id}")

    estimate = estimate_travel(state, actor.pos, location.anchor, event.pace)
    if estimate.minutes > LONG_TRAVEL_MINUTES and not has_matching_travel_confirmation(
        state, event.location_id, event.confirm_id
    ):
        return _reject("travel_requires_confirmation")
    return ACCEPT


def _validate_explore(state: WorldState, event: Explore) -> ValidationResult:
    if event.actor_id not in state.actors:
        return _reject("actor_not_found")
    return ACCEPT


def _validate_inspect(state: WorldState, event: Inspect) -> ValidationResult:
    if event.actor_id not in state.actors:
        return _reject("actor_not_found")
    if not event.subject.strip():
        return _reject("inspect_subject_required")
    return ACCEPT


def _validate_pickup(state: WorldState, event: PickUpItem) -> ValidationResult:
    actor = state.actors.get(event.actor_id)
    if actor is None:
        return _reject("actor_not_found")
    item = state.items.get(event.item_id)
    if item is None:
        return _reject("item_not_found")
    if item.location.kind != "ground":
        return _reject("item_not_on_ground")
    if distance(actor.pos, item.location.pos) > PICKUP_REACH_CELLS:
        return _reject("item_too_far")
    return ACCEPT


def _validate_drop(state: WorldState, event: DropItem) -> ValidationResult:
    actor = state.actors.get(event.actor_id)
    if actor is None:
        return _reject("actor_not_found")
    if event.item_id not in actor.inventory:
        return _reject("item_not_in_inventory")
    if event.at is not None and not is_within_bounds(state, event.at):
        return _reject("out_of_bounds")
    return ACCEPT


def _validate_speak(state: WorldState, event: Speak) -> ValidationResult:
    if event.actor_id not in state.actors:
        return _reject("actor_not_found")
    if event.to_actor_id and event.to_actor_id not in state.actors:
        return _reject("target_actor_not_found")
    return ACCEPT


def _validate_advance_time(state: WorldState, event: AdvanceTime) -> ValidationResult:
    if event.minutes <= 0:
        return _reject("invalid_minutes")
    return ACCEPT


def _validate_create_entity(state: WorldState, event: CreateEntity) -> ValidationResult:
    # Authoring escape hatch; structural damage is caught by the batch invariant check.
    return ACCEPT


def _validate_set_flag(state: WorldState, event: SetFlag) -> ValidationResult:
    if not event.key.strip():
        return _reject("flag_key_required")
    return ACCEPT


# Rule registry: maps event type tags to validation functions
VALIDATION_RULES: Dict[str, Callable[[WorldState, WorldEvent], ValidationResult]] = {
    "MoveActor": _validate_move,
    "TravelToLocation": _validate_travel,
    "Explore": _validate_explore,
    "Inspect": _validate_inspect,
    "PickUpItem": _validate_pickup,
    "DropItem": _validate_drop,
    "Speak": _validate_speak,
    "AdvanceTime": _validate_advance_time,
    "CreateEntity": _validate_create_entity,
    "SetFlag": _validate_set_flag,
}


def validate_event(state: WorldState, event: WorldEvent) -> ValidationResult:
    rule = VALIDATION_RULES.get(event.type)
    if rule is None:
        return _reject("unknown_event")
    return rule(state, event)
