"""World factories. Each returns a fresh, invariant-clean World State."""

from typing import Callable, Dict

from saga_kernel.models.world import (
    Actor,
    GridMap,
    GridPos,
    GroundLocation,
    Item,
    KnowledgeState,
    LedgerEntry,
    Location,
    Persona,
    SystemsState,
    TideConfig,
    TimeConfig,
    WeatherConfig,
    WorldMeta,
    WorldState,
)

SCHEMA_VERSION = "saga-0.1"
SCHEMA_VERSION_PREFIX = "saga-"

WorldFactory = Callable[[], WorldState]


def _locations() -> Dict[str, Location]:
    locations = [
        Location(
            id="the-landing",
            name="The Landing",
            description=(
                "A crescent of dark sand where the sea meets the southern curve of the "
                "ancient bones. Weathered docks extend from the shore, built atop what "
                "might be the creature's lower jaw."
            ),
            anchor=GridPos(x=0, y=0, z=0),
            radius_cells=80,
            tide_access="always",
            terrain="beach",
        ),
        Location(
            id="the-rib-market",
            name="The Rib Market",
            description=(
                "A marketplace built within the leviathan's ribcage, half-open to the sky. "
                "Tarps strung between the curved bones make a lattice of shade and light."
            ),
            anchor=GridPos(x=0, y=1200, z=15),
            radius_cells=120,
            tide_access="always",
            terrain="path",
        ),
        Location(
            id="the-drunken-vertebra",
            name="The Drunken Vertebra",
            description=(
                "A tilted timber tavern built into one of the spine's great vertebrae, "
                "its walls braced against ancient bone."
            ),
            anchor=GridPos(x=-150, y=600, z=8),
            radius_cells=80,
            tide_access="always",
            terrain="interior",
        ),
        Location(
            id="the-spine-ridge",
            name="The Spine Ridge",
            description="The highest point of the island, the leviathan's spine, wind-scoured and pale.",
            anchor=GridPos(x=0, y=6000, z=120),
            radius_cells=150,
            tide_access="always",
            terrain="mountain",
        ),
        Location(
            id="the-heartspring",
            name="The Heartspring",
            description=(
                "A freshwater pool deep within the skeleton's interior, reached by "
                "descending through gaps between ribs."
            ),
            anchor=GridPos(x=80, y=2500, z=-8),
            radius_cells=100,
            tide_access="always",
            terrain="cavern",
        ),
        Location(
            id="the-maw",
            name="The Maw",
            description=(
                "The great southern opening where the leviathan's throat once was, "
                "a cove flanked by massive jawbones."
            ),
            anchor=GridPos(x=0, y=-200, z=0),
            radius_cells=120,
            tide_access="low",
            terrain="water",
        ),
    ]
    return {loc.id: loc for loc in locations}


def _actors() -> Dict[str, Actor]:
    actors = [
        Actor(id="player-1", kind="player", name="You", pos=GridPos(x=0, y=0, z=0)),
        Actor(
            id="mira-salt",
            kind="npc",
            name="Mira Salt",
            pos=GridPos(x=0, y=6000, z=120),
            persona=Persona(
                tagline="A weather-watcher who reads the sea.",
                background="Mira has spent years atop the spine ridge, watching pressure shifts and cloud bands.",
                voice="Measured, spare, observant.",
                goals=["warn of storms", "protect the ridge"],
            ),
        ),
        Actor(
            id="ledger-pike",
            kind="npc",
            name='Jon "Ledger" Pike',
            pos=GridPos(x=0, y=1200, z=15),
            persona=Persona(
                tagline="A quartermaster who knows every crate.",
                background="Ledger keeps the market running and remembers every debt.",
                voice="Blunt, pragmatic, transactional.",
                goals=["keep trade flowing", "protect stock"],
            ),
        ),
        Actor(
            id="father-kel",
            kind="npc",
            name="Father Kel",
            pos=GridPos(x=80, y=2500, z=-8),
            persona=Persona(
                tagline="A heretic priest with quiet conviction.",
                background="Kel tends the heartspring and speaks in parables.",
                voice="Soft, deliberate, ritualistic.",
                goals=["guard the spring", "test the faithful"],
            ),
        ),
        Actor(
            id="aline-rua",
            kind="npc",
            name="Aline Rua",
            pos=GridPos(x=-150, y=600, z=8),
            persona=Persona(
                tagline="Heir to a lost captain.",
                background="Aline listens for rumors in the tavern.",
                voice="Wry, guarded, curious.",
                goals=["learn the truth", "avoid traps"],
            ),
        ),
    ]
    return {actor.id: actor for actor in actors}


def create_isle_of_marrow() -> WorldState:
    """The default world: a leviathan skeleton island, starting mid-afternoon at high tide."""
    return WorldState(
        meta=WorldMeta(world_id="isle-of-marrow", seed="isle-of-marrow-1825", version=SCHEMA_VERSION),
        map=GridMap(min_x=-1000, min_y=-1000, max_x=2000, max_y=7000, cell_size_meters=1),
        actors=_actors(),
        items={
            "heartwater-jar": Item(
                id="heartwater-jar",
                name="Sealed jar of Heartwater",
                description="A small clay jar sealed with wax. The liquid inside glows faintly.",
                location=GroundLocation(pos=GridPos(x=0, y=1200, z=15)),
            ),
        },
        locations=_locations(),
        systems=SystemsState(
            elapsed_minutes=0,
            time_config=TimeConfig(anchor_iso="1825-05-14T14:00:00Z", start_hour=14),
            tide_config=TideConfig(cycle_minutes=720),
            weather_config=WeatherConfig(climate="temperate", seed="isle-of-marrow", cadence_minutes=60),
        ),
        ledger=[
            LedgerEntry(turn=0, text="Isle of Marrow initialized"),
            LedgerEntry(turn=0, text="You arrive at the Landing, where dark sand meets ancient bone."),
            LedgerEntry(turn=0, text="The tide is high. The Maw is flooded and impassable."),
        ],
        knowledge={
            "player-1": KnowledgeState(seen_locations=["the-landing"], seen_actors=["player-1"]),
        },
    )
