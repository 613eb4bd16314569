"""Per-turn movement constraints derived from weather and tide."""

from saga_kernel.models.systems import TurnConstraints
from saga_kernel.models.world import WorldState
from saga_kernel.systems.tide import derive_tide
from saga_kernel.systems.weather import derive_weather, weather_travel_multiplier
from saga_kernel.world_model.geometry import round_half_up

BASE_MOVE_METERS = 600
MIN_MOVE_METERS = 150


def derive_constraints(state: WorldState) -> TurnConstraints:
    weather_multiplier = weather_travel_multiplier(derive_weather(state))
    tide = derive_tide(state)

    advisories = []
    if weather_multiplier < 0.8:
        advisories.append("Severe weather slowing travel")
    if tide.blocked_location_ids:
        advisories.append(f"Tide blocks: {', '.join(tide.blocked_location_ids)}")

    return TurnConstraints(
        max_move_meters=max(MIN_MOVE_METERS, round_half_up(BASE_MOVE_METERS * weather_multiplier)),
        weather_multiplier=weather_multiplier,
        blocked_location_ids=tide.blocked_location_ids,
        advisories=advisories,
    )
