"""World context handed to the game master on the first loop iteration."""

from typing import Any, Dict, List

from saga_kernel.models.turn import TurnRecord
from saga_kernel.models.world import WorldState
from saga_kernel.systems.tide import derive_tide
from saga_kernel.systems.travel import LONG_TRAVEL_MINUTES, estimate_travel
from saga_kernel.systems.weather import derive_weather
from saga_kernel.world_model.geometry import distance, location_radius, round_half_up
from saga_kernel.world_model.views import build_observation, build_telemetry

MAX_LANDMARKS = 25
MAX_NEARBY = 20
MAX_TRANSCRIPT_TURNS = 12          # prior turns; the current one is always appended


def build_gm_world_context(
    state: WorldState,
    player_id: str,
    player_text: str,
    history: List[TurnRecord],
) -> Dict[str, Any]:
    player = state.actors[player_id]
    cell = state.map.cell_size_meters
    blocked = set(derive_tide(state).blocked_location_ids)
    weather = derive_weather(state)

    landmarks = []
    for location in state.locations.values():
        estimate = estimate_travel(state, player.pos, location.anchor, "walk", weather=weather)
        landmarks.append({
            "id": location.id,
            "name": location.name,
            "anchor": location.anchor.model_dump(),
            "terrain": location.terrain,
            "tide_access": location.tide_access,
            "radius_cells": location_radius(location, 0),
            "distance_meters": round_half_up(distance(player.pos, location.anchor) * cell),
            "short_description": location.description[:180],
            "blocked_now": location.id in blocked,
            "estimated_walk_minutes": estimate.minutes,
            "requires_confirm": estimate.minutes > LONG_TRAVEL_MINUTES,
        })
    landmarks.sort(key=lambda l: l["distance_meters"])

    actors = sorted(
        (
            {
                "id": a.id,
                "name": a.name,
                "kind": a.kind,
                "pos": a.pos.model_dump(),
                "distance_meters": round_half_up(distance(player.pos, a.pos) * cell),
            }
            for a in state.actors.values() if a.id != player_id
        ),
        key=lambda a: a["distance_meters"],
    )

    items = sorted(
        (
            {
                "id": item.id,
                "name": item.name,
                "pos": item.location.pos.model_dump(),
                "distance_meters": round_half_up(distance(player.pos, item.location.pos) * cell),
            }
            for item in state.items.values() if item.location.kind == "ground"
        ),
        key=lambda i: i["distance_meters"],
    )

    transcript = [
        {"turn": r.turn, "player_id": r.player_id, "player_text": r.player_text}
        for r in history[-MAX_TRANSCRIPT_TURNS:]
    ]
    transcript.append({"turn": state.meta.turn, "player_id": player_id, "player_text": player_text})

    return {
        "observation": build_observation(state, player_id).model_dump(mode="json"),
        "telemetry": build_telemetry(state, player_id).model_dump(mode="json"),
        "pending_prompt": (
            state.meta.pending_prompt.model_dump(mode="json") if state.meta.pending_prompt else None
        ),
        "landmarks": landmarks[:MAX_LANDMARKS],
        "nearby": {"actors": actors[:MAX_NEARBY], "items_on_ground": items[:MAX_NEARBY]},
        "map": state.map.model_dump(),
        "player_transcript": transcript,
    }
