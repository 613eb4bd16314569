"""Spatial queries over World State. All distances are in map cells."""

import math
from typing import List, Optional

from saga_kernel.models.world import Actor, GridPos, Item, Location, WorldState

DEFAULT_LOCATION_RADIUS = 20


def round_half_up(value: float) -> int:
    # Halves round up (2.5 -> 3, -2.5 -> -2); round() would give 2.
    return math.floor(value + 0.5)


def distance(a: GridPos, b: GridPos) -> float:
    dz = (a.z or 0.0) - (b.z or 0.0)
    return math.sqrt((a.x - b.x) ** 2 + (a.y - b.y) ** 2 + dz ** 2)


def is_within_bounds(state: WorldState, pos: GridPos) -> bool:
    m = state.map
    return m.min_x <= pos.x <= m.max_x and m.min_y <= pos.y <= m.max_y


def clamp_to_bounds(state: WorldState, pos: GridPos) -> GridPos:
    m = state.map
    return GridPos(
        x=max(m.min_x, min(m.max_x, pos.x)),
        y=max(m.min_y, min(m.max_y, pos.y)),
        z=pos.z or 0.0,
    )


def location_radius(location: Location, default: float = DEFAULT_LOCATION_RADIUS) -> float:
    return location.radius_cells if location.radius_cells is not None else default


def find_nearest_location(state: WorldState, pos: GridPos) -> Optional[Location]:
    """Nearest location anchor to ``pos``; ties keep the first inserted."""
    nearest = None
    nearest_dist = math.inf
    for location in state.locations.values():
        d = distance(location.anchor, pos)
        if d < nearest_dist:
            nearest, nearest_dist = location, d
    return nearest


def locations_within(state: WorldState, pos: GridPos, radius: float) -> List[Location]:
    return [loc for loc in state.locations.values() if distance(loc.anchor, pos) <= radius]


def actors_within(state: WorldState, pos: GridPos, radius: float) -> List[Actor]:
    return [a for a in state.actors.values() if distance(a.pos, pos) <= radius]


def ground_items_within(state: WorldState, pos: GridPos, radius: float) -> List[Item]:
    return [
        item for item in state.items.values()
        if item.location.kind == "ground" and distance(item.location.pos, pos) <= radius
    ]


def position_toward(origin: GridPos, target: GridPos, max_cells: float) -> GridPos:
    """Point at most ``max_cells`` from ``origin`` on the line to ``target``."""
    total = distance(origin, target)
    if total == 0 or total <= max_cells:
        return target.model_copy()
    ratio = max_cells / total
    oz, tz = origin.z or 0.0, target.z or 0.0
    return GridPos(
        x=origin.x + (target.x - origin.x) * ratio,
        y=origin.y + (target.y - origin.y) * ratio,
        z=oz + (tz - oz) * ratio,
    )
