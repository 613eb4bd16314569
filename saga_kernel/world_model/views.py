"""
Observation, telemetry and turn-diff projections.

Observation is the game master's view (derived systems, constraints and
everything in range). Telemetry is what the player may see. Both are pure
reads of World State.
"""

from typing import List

from saga_kernel.models.events import WorldEvent
from saga_kernel.models.views import (
    ActorSummary,
    CurrentLocation,
    ItemSummary,
    KnowledgeSummary,
    LocationSummary,
    Observation,
    Telemetry,
    TurnDiff,
)
from saga_kernel.models.world import Actor, WorldState
from saga_kernel.systems.constraints import derive_constraints
from saga_kernel.systems.tide import derive_tide
from saga_kernel.systems.time import derive_time
from saga_kernel.systems.weather import derive_weather
from saga_kernel.world_model.geometry import (
    actors_within,
    distance,
    find_nearest_location,
    ground_items_within,
    location_radius,
    locations_within,
)

OBSERVE_LOCATION_RADIUS = 1200
OBSERVE_ACTOR_RADIUS = 200
OBSERVE_ITEM_RADIUS = 120
TELEMETRY_LOCATION_RADIUS = 300
INSIDE_DEFAULT_RADIUS = 80
LEDGER_TAIL = 5


def _player_summary(player: Actor) -> ActorSummary:
    return ActorSummary(id=player.id, name=player.name, kind=player.kind, pos=player.pos)


def _inventory(state: WorldState, player: Actor) -> List[ItemSummary]:
    return [
        ItemSummary(id=item_id, name=state.items[item_id].name if item_id in state.items else item_id)
        for item_id in player.inventory
    ]


def _nearby_actors(state: WorldState, player: Actor) -> List[ActorSummary]:
    nearby = [
        ActorSummary(
            id=a.id, name=a.name, kind=a.kind, pos=a.pos,
            distance=distance(player.pos, a.pos),
        )
        for a in actors_within(state, player.pos, OBSERVE_ACTOR_RADIUS)
        if a.id != player.id
    ]
    return sorted(nearby, key=lambda a: a.distance)


def _nearby_locations(state: WorldState, player: Actor, radius: float, blocked: List[str]) -> List[LocationSummary]:
    nearby = [
        LocationSummary(
            id=loc.id,
            name=loc.name,
            description=loc.description,
            anchor=loc.anchor,
            terrain=loc.terrain,
            tide_access=loc.tide_access,
            distance=distance(player.pos, loc.anchor),
            blocked_now=loc.id in blocked,
        )
        for loc in locations_within(state, player.pos, radius)
    ]
    return sorted(nearby, key=lambda loc: loc.distance)


def _ledger_tail(state: WorldState) -> List[str]:
    return [entry.text for entry in state.ledger[-LEDGER_TAIL:]]


def build_observation(state: WorldState, player_id: str) -> Observation:
    player = state.actors[player_id]
    tide = derive_tide(state)

    items = [
        ItemSummary(
            id=item.id, name=item.name, pos=item.location.pos,
            distance=distance(player.pos, item.location.pos),
        )
        for item in ground_items_within(state, player.pos, OBSERVE_ITEM_RADIUS)
    ]

    return Observation(
        turn=state.meta.turn,
        player=_player_summary(player),
        inventory=_inventory(state, player),
        time=derive_time(state),
        tide=tide,
        weather=derive_weather(state),
        constraints=derive_constraints(state),
        nearby_locations=_nearby_locations(
            state, player, OBSERVE_LOCATION_RADIUS, tide.blocked_location_ids
        ),
        nearby_actors=_nearby_actors(state, player),
        nearby_items=sorted(items, key=lambda i: i.distance),
        recent_ledger=_ledger_tail(state),
    )


def build_telemetry(state: WorldState, player_id: str) -> Telemetry:
    player = state.actors[player_id]
    tide = derive_tide(state)

    nearest = find_nearest_location(state, player.pos)
    inside = (
        nearest is not None
        and distance(player.pos, nearest.anchor) <= location_radius(nearest, INSIDE_DEFAULT_RADIUS)
    )
    if inside:
        current = CurrentLocation(
            id=nearest.id, name=nearest.name, description=nearest.description, inside=True
        )
    else:
        current = CurrentLocation(name="Wilderness", description="An unmarked stretch of land.")

    knowledge = state.knowledge.get(player_id)

    return Telemetry(
        turn=state.meta.turn,
        player=_player_summary(player),
        inventory=_inventory(state, player),
        location=current,
        nearby_locations=_nearby_locations(
            state, player, TELEMETRY_LOCATION_RADIUS, tide.blocked_location_ids
        ),
        nearby_actors=_nearby_actors(state, player),
        time=derive_time(state),
        tide=tide,
        weather=derive_weather(state),
        recent_ledger=_ledger_tail(state),
        knowledge=KnowledgeSummary(
            seen_locations=list(knowledge.seen_locations),
            seen_actors=list(knowledge.seen_actors),
            seen_items=list(knowledge.seen_items),
        ) if knowledge else KnowledgeSummary(),
    )


def compute_turn_diff(before: Telemetry, after: Telemetry, events: List[WorldEvent]) -> TurnDiff:
    """Summarize what changed for the player between two telemetry snapshots."""
    time_delta = after.time.elapsed_minutes - before.time.elapsed_minutes
    b, a = before.player.pos, after.player.pos
    moved = (b.x, b.y, b.z or 0.0) != (a.x, a.y, a.z or 0.0)

    carried_before = {i.id for i in before.inventory}
    new_items = [i.name for i in after.inventory if i.id not in carried_before]

    parts = []
    if moved:
        parts.append(f"Moved to {after.location.name}")
    if new_items:
        parts.append(f"Picked up {', '.join(new_items)}")
    if not parts and time_delta > 0:
        parts.append(f"{time_delta} minutes pass")

    return TurnDiff(
        time_delta_minutes=time_delta,
        moved=moved,
        new_location_name=after.location.name if moved else None,
        new_items=new_items,
        event_types=[e.type for e in events],
        summary=". ".join(parts) or "No major changes",
    )
