"""World State — the canonical, serializable simulation state."""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

Terrain = Literal[
    "road", "path", "beach", "forest", "mountain",
    "water", "interior", "cavern", "unknown",
]
TideAccess = Literal["always", "low", "high"]
Climate = Literal[
    "tropical", "desert", "temperate", "cold",
    "arctic", "mediterranean", "high_altitude",
]
PromptKind = Literal["confirm_travel", "clarify_target", "clarify_explore"]


class GridPos(BaseModel):
    """A point on the world grid. Units are map cells."""

    x: float
    y: float
    z: Optional[float] = None


class GridMap(BaseModel):
    min_x: int
    min_y: int
    max_x: int
    max_y: int
    cell_size_meters: float = 1.0


class Persona(BaseModel):
    """Character notes consumed only by the NPC and narrator agents."""

    tagline: str
    background: str
    voice: str
    goals: List[str] = []


class Actor(BaseModel):
    id: str
    kind: Literal["player", "npc"]
    name: str
    pos: GridPos
    inventory: List[str] = []
    persona: Optional[Persona] = None


class GroundLocation(BaseModel):
    kind: Literal["ground"] = "ground"
    pos: GridPos


class InventoryLocation(BaseModel):
    kind: Literal["inventory"] = "inventory"
    actor_id: str


class ContainerLocation(BaseModel):
    kind: Literal["container"] = "container"
    container_id: str


ItemLocation = Annotated[
    Union[GroundLocation, InventoryLocation, ContainerLocation],
    Field(discriminator="kind"),
]


class Item(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    location: ItemLocation


class Location(BaseModel):
    """A named point of interest with an area of effect around its anchor."""

    id: str
    name: str
    description: str
    anchor: GridPos
    radius_cells: Optional[float] = None
    tide_access: TideAccess = "always"
    terrain: Terrain = "unknown"


class TimeConfig(BaseModel):
    anchor_iso: str                         # absolute origin, ISO-8601 UTC
    start_hour: int = 0


class TideConfig(BaseModel):
    cycle_minutes: int = 720


class WeatherConfig(BaseModel):
    climate: Climate = "temperate"
    seed: str
    cadence_minutes: int = 60


class SystemsState(BaseModel):
    elapsed_minutes: int = 0
    time_config: TimeConfig
    tide_config: TideConfig = TideConfig()
    weather_config: WeatherConfig


class PromptOption(BaseModel):
    key: str
    label: str


class PendingPrompt(BaseModel):
    """A clarification the player must answer before a costly action."""

    id: str
    kind: PromptKind
    question: str
    options: List[PromptOption] = []
    data: Dict[str, Any] = {}
    created_turn: int


class WorldMeta(BaseModel):
    world_id: str
    seed: str
    version: str
    turn: int = 0
    pending_prompt: Optional[PendingPrompt] = None
    flags: Dict[str, Any] = {}


class LedgerEntry(BaseModel):
    turn: int
    text: str


class KnowledgeState(BaseModel):
    """What one actor has perceived. Grows monotonically."""

    seen_locations: List[str] = []
    seen_actors: List[str] = []
    seen_items: List[str] = []
    notes: List[str] = []


class WorldState(BaseModel):
    """
    The single source of truth for a session.

    Never mutated in place by callers: every transition returns a new
    instance and the turn engine swaps it in on commit.
    """

    meta: WorldMeta
    map: GridMap
    actors: Dict[str, Actor] = {}
    items: Dict[str, Item] = {}
    locations: Dict[str, Location] = {}
    systems: SystemsState
    ledger: List[LedgerEntry] = []
    knowledge: Dict[str, KnowledgeState] = {}

    def clone(self) -> "WorldState":
        return self.model_copy(deep=True)
