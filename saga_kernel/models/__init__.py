"""Saga Kernel data models."""

from saga_kernel.models.engine import TurnEngineConfig
from saga_kernel.models.events import (
    AdvanceTime,
    CreateEntity,
    DropItem,
    EventMeta,
    Explore,
    Inspect,
    MoveActor,
    PickUpItem,
    RejectedEvent,
    SetFlag,
    Speak,
    TravelToLocation,
    WorldEvent,
    parse_event,
)
from saga_kernel.models.systems import (
    TideSnapshot,
    TimeSnapshot,
    TravelEstimate,
    TurnConstraints,
    WeatherSnapshot,
)
from saga_kernel.models.turn import NpcOutput, TurnRecord, TurnTrace
from saga_kernel.models.views import Observation, Telemetry, TurnDiff
from saga_kernel.models.world import (
    Actor,
    GridMap,
    GridPos,
    Item,
    LedgerEntry,
    Location,
    PendingPrompt,
    WorldMeta,
    WorldState,
)

__all__ = [
    "Actor",
    "AdvanceTime",
    "CreateEntity",
    "DropItem",
    "EventMeta",
    "Explore",
    "GridMap",
    "GridPos",
    "Inspect",
    "Item",
    "LedgerEntry",
    "Location",
    "MoveActor",
    "NpcOutput",
    "Observation",
    "PendingPrompt",
    "PickUpItem",
    "RejectedEvent",
    "SetFlag",
    "Speak",
    "Telemetry",
    "TideSnapshot",
    "TimeSnapshot",
    "TravelEstimate",
    "TravelToLocation",
    "TurnConstraints",
    "TurnDiff",
    "TurnEngineConfig",
    "TurnRecord",
    "TurnTrace",
    "WeatherSnapshot",
    "WorldEvent",
    "WorldMeta",
    "WorldState",
    "parse_event",
]
