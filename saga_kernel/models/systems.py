"""Derived-system snapshots. Computed from World State, never stored in it."""

from typing import List, Literal

from pydantic import BaseModel

TimeOfDay = Literal["morning", "afternoon", "evening", "night"]
TidePhase = Literal["low", "rising", "high", "falling"]
WeatherType = Literal["clear", "rain", "storm", "fog", "snow"]
PressureSystem = Literal["high", "low", "front", "stable"]


class TimeSnapshot(BaseModel):
    elapsed_minutes: int
    current_hour: int
    current_day: int
    time_of_day: TimeOfDay
    absolute_iso: str


class TideSnapshot(BaseModel):
    phase: TidePhase
    level: float                            # 0.0 (lowest) .. 1.0 (highest)
    minutes_until_change: int
    blocked_location_ids: List[str] = []


class PressureSnapshot(BaseModel):
    system: PressureSystem
    hpa: int
    trend: Literal["rising", "falling", "stable"]


class WeatherSnapshot(BaseModel):
    type: WeatherType
    intensity: int                          # 0..5
    temperature_c: int
    wind_kph: int
    pressure: PressureSnapshot
    signals: List[str] = []


class TravelEstimate(BaseModel):
    distance_meters: float
    minutes: int
    weather_multiplier: float
    terrain_multiplier: float


class TurnConstraints(BaseModel):
    max_move_meters: int
    weather_multiplier: float
    blocked_location_ids: List[str] = []
    advisories: List[str] = []
