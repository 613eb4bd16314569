"""
Tide model.

Level follows 0.5 + 0.5·sin(2π·t/cycle). Phase is ``low`` below 0.25,
``high`` above 0.75, otherwise ``rising`` or ``falling`` by the sign of
the derivative. A location whose tide access is ``low`` is only reachable
while the water is low or dropping; ``high`` is the mirror image.
"""

import math
from typing import Optional

from saga_kernel.models.systems import TideSnapshot
from saga_kernel.models.world import Location, WorldState

DEFAULT_CYCLE_MINUTES = 720


def _phase(level: float, derivative: float) -> str:
    if level < 0.25:
        return "low"
    if level > 0.75:
        return "high"
    return "rising" if derivative > 0 else "falling"


def is_tide_blocked(location: Location, phase: str) -> bool:
    if location.tide_access == "low":
        return phase in ("high", "rising")
    if location.tide_access == "high":
        return phase in ("low", "falling")
    return False


def derive_tide(state: WorldState, elapsed_minutes: Optional[int] = None) -> TideSnapshot:
    """Tide at ``elapsed_minutes`` (defaults to the state's current time)."""
    elapsed = state.systems.elapsed_minutes if elapsed_minutes is None else elapsed_minutes
    cycle = state.systems.tide_config.cycle_minutes or DEFAULT_CYCLE_MINUTES
    normalized = (elapsed % cycle) / cycle
    level = 0.5 + 0.5 * math.sin(2 * math.pi * normalized)
    derivative = math.cos(2 * math.pi * normalized)
    phase = _phase(level, derivative)

    quarter = cycle / 4
    current_quarter = math.floor(normalized * 4)
    minutes_into_quarter = (normalized * 4 - current_quarter) * quarter
    minutes_until_change = max(1, math.ceil(quarter - minutes_into_quarter))

    blocked = [loc.id for loc in state.locations.values() if is_tide_blocked(loc, phase)]

    return TideSnapshot(
        phase=phase,
        level=max(0.0, min(1.0, level)),
        minutes_until_change=minutes_until_change,
        blocked_location_ids=blocked,
    )


def is_location_blocked_at(state: WorldState, location_id: str, elapsed_minutes: int) -> bool:
    location = state.locations.get(location_id)
    if location is None:
        return False
    return is_tide_blocked(location, derive_tide(state, elapsed_minutes).phase)
