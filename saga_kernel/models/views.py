"""Read-only projections of World State for agents and players."""

from typing import List, Optional

from pydantic import BaseModel

from saga_kernel.models.systems import (
    TideSnapshot,
    TimeSnapshot,
    TurnConstraints,
    WeatherSnapshot,
)
from saga_kernel.models.world import GridPos, TideAccess, Terrain


class ActorSummary(BaseModel):
    id: str
    name: str
    kind: str
    pos: GridPos
    distance: float = 0.0


class LocationSummary(BaseModel):
    id: str
    name: str
    description: str
    anchor: GridPos
    terrain: Terrain = "unknown"
    tide_access: TideAccess = "always"
    distance: float = 0.0
    blocked_now: bool = False


class ItemSummary(BaseModel):
    id: str
    name: str
    pos: Optional[GridPos] = None
    distance: float = 0.0


class Observation(BaseModel):
    """Game-master perspective: everything near the player plus derived systems."""

    turn: int
    player: ActorSummary
    inventory: List[ItemSummary] = []
    time: TimeSnapshot
    tide: TideSnapshot
    weather: WeatherSnapshot
    constraints: TurnConstraints
    nearby_locations: List[LocationSummary] = []
    nearby_actors: List[ActorSummary] = []
    nearby_items: List[ItemSummary] = []
    recent_ledger: List[str] = []


class CurrentLocation(BaseModel):
    id: Optional[str] = None
    name: str
    description: str
    inside: bool = False


class KnowledgeSummary(BaseModel):
    seen_locations: List[str] = []
    seen_actors: List[str] = []
    seen_items: List[str] = []


class Telemetry(BaseModel):
    """Player perspective: what the UI and narrator are allowed to show."""

    turn: int
    player: ActorSummary
    inventory: List[ItemSummary] = []
    location: CurrentLocation
    nearby_locations: List[LocationSummary] = []
    nearby_actors: List[ActorSummary] = []
    time: TimeSnapshot
    tide: TideSnapshot
    weather: WeatherSnapshot
    recent_ledger: List[str] = []
    knowledge: KnowledgeSummary = KnowledgeSummary()


class TurnDiff(BaseModel):
    time_delta_minutes: int = 0
    moved: bool = False
    new_location_name: Optional[str] = None
    new_items: List[str] = []
    event_types: List[str] = []
    summary: str = "No major changes"
