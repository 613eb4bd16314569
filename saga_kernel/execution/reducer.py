"""
Reducer — pure state transitions for accepted events.

Behavioral Contract:
- apply_event(state, event) returns a new WorldState; the input is never touched
- apply_events folds a batch in order with the same guarantee
- Every transition appends exactly one ledger line stamped with meta.turn
- Movement-class transitions refresh the acting player's knowledge
- Events are assumed validated; a transition that cannot find its actor
  leaves the state unchanged apart from cloning
"""

from typing import Callable, Dict, Iterable

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
from saga_kernel.models.world import (
    Actor,
    GridPos,
    GroundLocation,
    InventoryLocation,
    Item,
    KnowledgeState,
    LedgerEntry,
    Location,
    WorldState,
)
from saga_kernel.governance.validator import resolve_move_target
from saga_kernel.systems.constraints import derive_constraints
from saga_kernel.systems.tide import is_location_blocked_at
from saga_kernel.systems.travel import estimate_travel
from saga_kernel.world_model.geometry import (
    clamp_to_bounds,
    distance,
    ground_items_within,
    location_radius,
    locations_within,
    position_toward,
    round_half_up,
)

VISIBILITY_RADIUS = 120
EXPLORE_MINUTES = 5
INSPECT_MINUTES = 2

EXPLORE_DIRECTIONS = {
    "east": (1.0, 0.0),
    "west": (-1.0, 0.0),
    "north": (0.0, 1.0),
    "south": (0.0, -1.0),
}

EXPLORE_AREAS = {
    "shoreline": (1.0, 0.0),
    "docks": (0.5, 0.5),
    "under_ribs": (0.0, 1.0),
}


def _add_ledger(state: WorldState, text: str) -> None:
    state.ledger.append(LedgerEntry(turn=state.meta.turn, text=text))


def _mark_seen(seen: list, entity_id: str) -> None:
    if entity_id not in seen:
        seen.append(entity_id)


def refresh_knowledge(state: WorldState, actor_id: str) -> None:
    """Mark everything within visibility range as seen. Never un-sees anything."""
    actor = state.actors.get(actor_id)
    if actor is None:
        return
    knowledge = state.knowledge.setdefault(actor_id, KnowledgeState())

    for location in locations_within(state, actor.pos, VISIBILITY_RADIUS):
        _mark_seen(knowledge.seen_locations, location.id)
    for other in state.actors.values():
        if distance(actor.pos, other.pos) <= VISIBILITY_RADIUS:
            _mark_seen(knowledge.seen_actors, other.id)
    for item in ground_items_within(state, actor.pos, VISIBILITY_RADIUS):
        _mark_seen(knowledge.seen_items, item.id)
    for item_id in actor.inventory:
        _mark_seen(knowledge.seen_items, item_id)


def _refresh_if_player(state: WorldState, actor: Actor) -> None:
    if actor.kind == "player":
        refresh_knowledge(state, actor.id)


def _apply_move(state: WorldState, event: MoveActor) -> None:
    actor = state.actors.get(event.actor_id)
    dest = resolve_move_target(state, event)
    if actor is None or dest is None:
        return
    estimate = estimate_travel(state, actor.pos, dest, event.mode)
    actor.pos = dest.model_copy()
    state.systems.elapsed_minutes += estimate.minutes
    _add_ledger(
        state,
        event.note or f"Traveled {round_half_up(estimate.distance_meters)}m in {estimate.minutes} min",
    )
    _refresh_if_player(state, actor)


def _apply_travel(state: WorldState, event: TravelToLocation) -> None:
    actor = state.actors.get(event.actor_id)
    location = state.locations.get(event.location_id)
    if actor is None or location is None:
        return

    full_trip = estimate_travel(state, actor.pos, location.anchor, event.pace)
    arrival = state.systems.elapsed_minutes + full_trip.minutes

    if is_location_blocked_at(state, location.id, arrival):
        destination = position_toward(location.anchor, actor.pos, location_radius(location) + 1)
        note = event.note or f"Reached the edge of {location.name}, but tide blocks entry"
    else:
        destination = location.anchor.model_copy()
        note = event.note or f"Traveled to {location.name}"

    trip = estimate_travel(state, actor.pos, destination, event.pace)
    actor.pos = destination
    state.systems.elapsed_minutes += trip.minutes
    _add_ledger(state, note)

    pending = state.meta.pending_prompt
    if event.confirm_id and pending is not None and pending.id == event.confirm_id:
        state.meta.pending_prompt = None

    _refresh_if_player(state, actor)


def _apply_explore(state: WorldState, event: Explore) -> None:
    actor = state.actors.get(event.actor_id)
    if actor is None:
        return
    constraints = derive_constraints(state)
    meters = min(80, max(20, round_half_up(constraints.max_move_meters * 0.15)))
    cells = meters / state.map.cell_size_meters

    if event.direction:
        dx, dy = EXPLORE_DIRECTIONS[event.direction]
    else:
        dx, dy = EXPLORE_AREAS.get(event.area, (0.7, 0.3))

    candidate = GridPos(x=actor.pos.x + dx * cells, y=actor.pos.y + dy * cells, z=actor.pos.z or 0.0)
    actor.pos = clamp_to_bounds(state, candidate)
    state.systems.elapsed_minutes += EXPLORE_MINUTES
    _add_ledger(state, event.note or f"Explored {event.area.replace('_', ' ')}")
    _refresh_if_player(state, actor)


def _apply_inspect(state: WorldState, event: Inspect) -> None:
    actor = state.actors.get(event.actor_id)
    if actor is None:
        return
    state.systems.elapsed_minutes += INSPECT_MINUTES
    _add_ledger(state, event.note or f"Inspected {event.subject}")
    _refresh_if_player(state, actor)


def _apply_pickup(state: WorldState, event: PickUpItem) -> None:
    actor = state.actors.get(event.actor_id)
    item = state.items.get(event.item_id)
    if actor is None or item is None:
        return
    if item.id not in actor.inventory:
        actor.inventory.append(item.id)
    item.location = InventoryLocation(actor_id=actor.id)
    _add_ledger(state, event.note or f"Picked up {item.name}")
    _refresh_if_player(state, actor)


def _apply_drop(state: WorldState, event: DropItem) -> None:
    actor = state.actors.get(event.actor_id)
    item = state.items.get(event.item_id)
    if actor is None or item is None:
        return
    actor.inventory = [i for i in actor.inventory if i != item.id]
    item.location = GroundLocation(pos=(event.at or actor.pos).model_copy())
    _add_ledger(state, event.note or f"Dropped {item.name}")
    _refresh_if_player(state, actor)


def _apply_speak(state: WorldState, event: Speak) -> None:
    actor = state.actors.get(event.actor_id)
    name = actor.name if actor else "Someone"
    _add_ledger(state, event.note or f"{name} speaks")


def _apply_advance_time(state: WorldState, event: AdvanceTime) -> None:
    state.systems.elapsed_minutes += event.minutes
    _add_ledger(state, event.note or f"{event.minutes} minutes pass")


def _apply_create_entity(state: WorldState, event: CreateEntity) -> None:
    entity = event.entity
    data = entity.data
    if entity.kind == "item":
        state.items[data.id] = Item(
            id=data.id,
            name=data.name,
            description=data.description,
            location=GroundLocation(pos=data.pos.model_copy()),
        )
    elif entity.kind == "npc":
        state.actors[data.id] = Actor(id=data.id, kind="npc", name=data.name, pos=data.pos.model_copy())
    elif entity.kind == "location":
        state.locations[data.id] = Location(
            id=data.id,
            name=data.name,
            description=data.description,
            anchor=data.anchor.model_copy(),
        )
    _add_ledger(state, event.note or f"Created {entity.kind} {data.id}")


def _apply_set_flag(state: WorldState, event: SetFlag) -> None:
    state.meta.flags[event.key] = event.value
    _add_ledger(state, event.note or f"Flag {event.key} updated")


# Transition registry: maps event type tags to in-place transitions on a private clone
TRANSITIONS: Dict[str, Callable[[WorldState, WorldEvent], None]] = {
    "MoveActor": _apply_move,
    "TravelToLocation": _apply_travel,
    "Explore": _apply_explore,
    "Inspect": _apply_inspect,
    "PickUpItem": _apply_pickup,
    "DropItem": _apply_drop,
    "Speak": _apply_speak,
    "AdvanceTime": _apply_advance_time,
    "CreateEntity": _apply_create_entity,
    "SetFlag": _apply_set_flag,
}


def _apply_in_place(state: WorldState, event: WorldEvent) -> None:
    transition = TRANSITIONS.get(event.type)
    if transition is not None:
        transition(state, event)


def apply_event(state: WorldState, event: WorldEvent) -> WorldState:
    next_state = state.clone()
    _apply_in_place(next_state, event)
    return next_state


def apply_events(state: WorldState, events: Iterable[WorldEvent]) -> WorldState:
    next_state = state.clone()
    for event in events:
        _apply_in_place(next_state, event)
    return next_state
