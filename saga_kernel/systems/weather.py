"""
Weather derivation.

Weather is recomputed per cadence bucket: the random stream is keyed by
``"<seed>:<bucket>"`` so the weather holds steady inside a window and only
changes at bucket boundaries. Rolls happen in a fixed order (pressure,
hPa, type, intensity, wind) and must stay in that order for old sessions
to replay identically.
"""

from typing import Dict, Tuple

from saga_kernel.models.systems import PressureSnapshot, WeatherSnapshot
from saga_kernel.models.world import WorldState
from saga_kernel.systems.rng import seeded_stream
from saga_kernel.systems.time import absolute_time, derive_time
from saga_kernel.world_model.geometry import round_half_up

WARM_MONTHS = (4, 5, 6, 7, 8, 9)

PRESSURE_RANGES: Dict[str, Tuple[int, int]] = {
    "high": (1018, 1040),
    "low": (975, 1005),
    "front": (995, 1015),
    "stable": (1005, 1020),
}

PRESSURE_TRENDS = {"high": "rising", "low": "falling", "front": "stable", "stable": "stable"}

# Insertion order matters: it is the order the weighted pick walks.
WEATHER_WEIGHTS: Dict[str, Dict[str, float]] = {
    "high": {"clear": 0.75, "rain": 0.15, "storm": 0.02, "fog": 0.08, "snow": 0.0},
    "low": {"clear": 0.05, "rain": 0.35, "storm": 0.45, "fog": 0.05, "snow": 0.1},
    "front": {"clear": 0.05, "rain": 0.45, "storm": 0.35, "fog": 0.05, "snow": 0.1},
    "stable": {"clear": 0.6, "rain": 0.2, "storm": 0.05, "fog": 0.1, "snow": 0.05},
}

BASE_INTENSITY = {"storm": 3.0, "rain": 2.0, "snow": 2.0, "fog": 1.5, "clear": 1.0}

CLIMATE_TEMPERATURES: Dict[str, Tuple[int, int]] = {   # (day, night) in °C
    "tropical": (32, 24),
    "desert": (40, 18),
    "temperate": (20, 10),
    "cold": (5, -5),
    "arctic": (-10, -25),
    "mediterranean": (25, 15),
    "high_altitude": (10, 0),
}

TEMPERATURE_OFFSETS = {"storm": -6, "rain": -3, "snow": -12}

WIND_RANGES: Dict[str, Tuple[int, int]] = {
    "clear": (2, 18),
    "rain": (10, 30),
    "storm": (25, 60),
    "fog": (0, 12),
    "snow": (5, 35),
}


def _pick_pressure(roll: float, seasonal_bias: float) -> str:
    if roll < 0.3 + seasonal_bias:
        return "high"
    if roll < 0.55:
        return "low"
    if roll < 0.8:
        return "front"
    return "stable"


def _pick_type(roll: float, weights: Dict[str, float]) -> str:
    target = roll * sum(weights.values())
    for weather_type, weight in weights.items():
        target -= weight
        if target <= 0:
            return weather_type
    return "clear"


def derive_weather(state: WorldState) -> WeatherSnapshot:
    time = derive_time(state)
    config = state.systems.weather_config
    bucket = time.elapsed_minutes // config.cadence_minutes
    random = seeded_stream(f"{config.seed}:{bucket}")

    month = absolute_time(state.systems.time_config.anchor_iso, time.elapsed_minutes).month
    seasonal_bias = 0.2 if month in WARM_MONTHS else -0.2
    pressure_system = _pick_pressure(random(), seasonal_bias)

    p_min, p_max = PRESSURE_RANGES[pressure_system]
    hpa = round_half_up(p_min + random() * (p_max - p_min))

    weather_type = _pick_type(random(), WEATHER_WEIGHTS[pressure_system])
    intensity = max(0, min(5, round_half_up(BASE_INTENSITY[weather_type] + random() * 2 - 0.5)))

    is_day = 6 <= time.current_hour < 18
    day_temp, night_temp = CLIMATE_TEMPERATURES.get(config.climate, (15, 15))
    base_temp = day_temp if is_day else night_temp
    temperature_c = round_half_up(base_temp + TEMPERATURE_OFFSETS.get(weather_type, 0))

    w_min, w_max = WIND_RANGES[weather_type]
    wind_kph = round_half_up(w_min + random() * (w_max - w_min))

    signals = []
    if weather_type == "storm" and intensity >= 3:
        signals.append("storm_risk:high")
    if weather_type == "fog":
        signals.append("visibility:poor")
    if temperature_c <= 0:
        signals.append("cold:harsh")
    if weather_type == "snow":
        signals.append("travel:slow")
    if wind_kph >= 40:
        signals.append("wind:high")

    return WeatherSnapshot(
        type=weather_type,
        intensity=intensity,
        temperature_c=temperature_c,
        wind_kph=wind_kph,
        pressure=PressureSnapshot(
            system=pressure_system,
            hpa=hpa,
            trend=PRESSURE_TRENDS[pressure_system],
        ),
        signals=signals,
    )


def weather_travel_multiplier(weather: WeatherSnapshot) -> float:
    if weather.type == "rain":
        return 0.9 if weather.intensity <= 2 else 0.8
    if weather.type == "storm":
        return 0.75 if weather.intensity <= 3 else 0.6
    if weather.type == "fog":
        return 0.85 if weather.intensity <= 2 else 0.7
    if weather.type == "snow":
        return 0.7 if weather.intensity <= 2 else 0.5
    return 1.0
