"""
Travel cost estimation.

minutes = max(1, round(meters / speed / 60 × terrain × weather)), where
terrain is the harsher of the origin's and destination's nearest-location
terrain.
"""

from typing import Optional

from saga_kernel.models.systems import TravelEstimate, WeatherSnapshot
from saga_kernel.models.world import GridPos, WorldState
from saga_kernel.systems.weather import derive_weather, weather_travel_multiplier
from saga_kernel.world_model.geometry import distance, find_nearest_location, round_half_up

LONG_TRAVEL_MINUTES = 20

PACE_SPEED_MPS = {"walk": 1.4, "run": 2.0}

TERRAIN_MULTIPLIERS = {
    "road": 0.8,
    "path": 1.0,
    "beach": 1.2,
    "forest": 1.5,
    "mountain": 2.5,
    "water": 3.0,
    "interior": 0.9,
    "cavern": 1.4,
    "unknown": 1.0,
}


def terrain_multiplier_at(state: WorldState, pos: GridPos) -> float:
    nearest = find_nearest_location(state, pos)
    terrain = nearest.terrain if nearest else "unknown"
    return TERRAIN_MULTIPLIERS.get(terrain, 1.0)


def estimate_travel(
    state: WorldState,
    origin: GridPos,
    destination: GridPos,
    pace: str = "walk",
    weather: Optional[WeatherSnapshot] = None,
) -> TravelEstimate:
    distance_meters = distance(origin, destination) * state.map.cell_size_meters
    weather_multiplier = weather_travel_multiplier(weather or derive_weather(state))
    terrain_multiplier = max(
        terrain_multiplier_at(state, origin),
        terrain_multiplier_at(state, destination),
    )
    speed = PACE_SPEED_MPS.get(pace, PACE_SPEED_MPS["walk"])
    minutes = max(1, round_half_up(distance_meters / speed / 60 * terrain_multiplier * weather_multiplier))

    return TravelEstimate(
        distance_meters=distance_meters,
        minutes=minutes,
        weather_multiplier=weather_multiplier,
        terrain_multiplier=terrain_multiplier,
    )
