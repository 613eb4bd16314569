"""
World Events — the closed vocabulary of intents an agent may propose.

Every event is a tagged variant dispatched on its ``type`` field. The
validator and reducer both keep one handler per variant, so adding a
variant here without adding handlers there is a modeling bug.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter

from saga_kernel.models.world import GridPos

Pace = Literal["walk", "run"]
ExploreArea = Literal["shoreline", "docks", "under_ribs", "around_here"]
Direction = Literal["east", "west", "north", "south"]


class EventMeta(BaseModel):
    """Stamp added when an event is accepted into a turn."""

    id: str = Field(default_factory=lambda: f"evt_{uuid4().hex[:12]}")
    turn: int
    by: Literal["player", "gm", "system"] = "gm"
    actor_id: Optional[str] = None


class _BaseEvent(BaseModel):
    meta: Optional[EventMeta] = None
    note: Optional[str] = None

    def stamped(self, turn: int, by: str = "gm") -> "_BaseEvent":
        """Return a copy carrying a fresh stamp for ``turn``."""
        meta = EventMeta(turn=turn, by=by, actor_id=getattr(self, "actor_id", None))
        return self.model_copy(update={"meta": meta}, deep=True)


class MoveActor(_BaseEvent):
    type: Literal["MoveActor"] = "MoveActor"
    actor_id: str
    to: Optional[GridPos] = None
    to_location_id: Optional[str] = None
    mode: Pace = "walk"


class TravelToLocation(_BaseEvent):
    type: Literal["TravelToLocation"] = "TravelToLocation"
    actor_id: str
    location_id: str
    pace: Pace = "walk"
    confirm_id: Optional[str] = None


class Explore(_BaseEvent):
    type: Literal["Explore"] = "Explore"
    actor_id: str
    area: ExploreArea = "around_here"
    direction: Optional[Direction] = None


class Inspect(_BaseEvent):
    type: Literal["Inspect"] = "Inspect"
    actor_id: str
    subject: str = ""


class PickUpItem(_BaseEvent):
    type: Literal["PickUpItem"] = "PickUpItem"
    actor_id: str
    item_id: str


class DropItem(_BaseEvent):
    type: Literal["DropItem"] = "DropItem"
    actor_id: str
    item_id: str
    at: Optional[GridPos] = None


class Speak(_BaseEvent):
    type: Literal["Speak"] = "Speak"
    actor_id: str
    text: str
    to_actor_id: Optional[str] = None


class AdvanceTime(_BaseEvent):
    type: Literal["AdvanceTime"] = "AdvanceTime"
    minutes: int


class NewItemData(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    pos: GridPos                            # new items always start on the ground


class NewNpcData(BaseModel):
    id: str
    name: str
    pos: GridPos


class NewLocationData(BaseModel):
    id: str
    name: str
    description: str
    anchor: GridPos


class NewItem(BaseModel):
    kind: Literal["item"] = "item"
    data: NewItemData


class NewNpc(BaseModel):
    kind: Literal["npc"] = "npc"
    data: NewNpcData


class NewLocation(BaseModel):
    kind: Literal["location"] = "location"
    data: NewLocationData


NewEntity = Annotated[Union[NewItem, NewNpc, NewLocation], Field(discriminator="kind")]


class CreateEntity(_BaseEvent):
    type: Literal["CreateEntity"] = "CreateEntity"
    entity: NewEntity


class SetFlag(_BaseEvent):
    type: Literal["SetFlag"] = "SetFlag"
    key: str
    value: Union[bool, int, float, str, None] = None


WorldEvent = Annotated[
    Union[
        MoveActor,
        TravelToLocation,
        Explore,
        Inspect,
        PickUpItem,
        DropItem,
        Speak,
        AdvanceTime,
        CreateEntity,
        SetFlag,
    ],
    Field(discriminator="type"),
]

EVENT_ADAPTER: TypeAdapter = TypeAdapter(WorldEvent)


def parse_event(raw: Dict[str, Any]) -> WorldEvent:
    """Parse one raw event dict. Raises pydantic.ValidationError on bad shape."""
    return EVENT_ADAPTER.validate_python(raw)


class RejectedEvent(BaseModel):
    """An event the turn did not commit, with a categorical reason."""

    event: Optional[WorldEvent] = None
    raw: Optional[Dict[str, Any]] = None    # kept when the payload failed to parse
    reason: str


def event_types() -> List[str]:
    return [
        "MoveActor", "TravelToLocation", "Explore", "Inspect", "PickUpItem",
        "DropItem", "Speak", "AdvanceTime", "CreateEntity", "SetFlag",
    ]
