"""Function-tool definitions exposed to the agents."""

from saga_kernel.models.events import event_types

GRID_POS_SCHEMA = {
    "type": "object",
    "properties": {
        "x": {"type": "number"},
        "y": {"type": "number"},
        "z": {"type": ["number", "null"]},
    },
    "required": ["x", "y"],
}

EVENT_FIELDS_HELP = (
    "Each event is an object tagged by 'type'. Fields per type: "
    "MoveActor{actor_id, to?:{x,y,z?}, to_location_id?, mode?:walk|run}; "
    "TravelToLocation{actor_id, location_id, pace?:walk|run, confirm_id?}; "
    "Explore{actor_id, area:shoreline|docks|under_ribs|around_here, direction?:east|west|north|south}; "
    "Inspect{actor_id, subject}; "
    "PickUpItem{actor_id, item_id}; "
    "DropItem{actor_id, item_id, at?:{x,y,z?}}; "
    "Speak{actor_id, text, to_actor_id?}; "
    "AdvanceTime{minutes}; "
    "CreateEntity{entity: {kind:item, data:{id,name,description?,pos}} | "
    "{kind:npc, data:{id,name,pos}} | {kind:location, data:{id,name,description,anchor}}}; "
    "SetFlag{key, value}. Every event accepts an optional 'note' used as its ledger line."
)

PENDING_PROMPT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "kind": {"type": "string", "enum": ["confirm_travel", "clarify_target", "clarify_explore"]},
        "question": {"type": "string"},
        "options": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"key": {"type": "string"}, "label": {"type": "string"}},
                "required": ["key", "label"],
            },
        },
        "data": {"type": "object", "description": "For confirm_travel: {\"location_id\": ...}"},
    },
    "required": ["id", "kind", "question"],
}

GM_TOOL_DEFS = [
    {
        "type": "function",
        "name": "observe_world",
        "description": "Get the current world observation (gm) or the player's telemetry (player). Call this first.",
        "parameters": {
            "type": "object",
            "properties": {"perspective": {"type": "string", "enum": ["gm", "player"]}},
            "required": ["perspective"],
        },
        "strict": False,
    },
    {
        "type": "function",
        "name": "consult_npc",
        "description": "Ask a specific NPC for dialogue and intent. Does not change the world.",
        "parameters": {
            "type": "object",
            "properties": {
                "npc_id": {"type": "string"},
                "topic": {"type": ["string", "null"]},
            },
            "required": ["npc_id"],
        },
        "strict": False,
    },
    {
        "type": "function",
        "name": "propose_events",
        "description": (
            "Propose world events for this turn. Each call is validated and committed "
            "as one all-or-nothing batch. " + EVENT_FIELDS_HELP
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "events": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {"type": {"type": "string", "enum": event_types()}},
                        "required": ["type"],
                    },
                },
            },
            "required": ["events"],
        },
        "strict": False,
    },
    {
        "type": "function",
        "name": "finish_turn",
        "description": (
            "End the turn. Optionally clear the pending player prompt or raise a new one "
            "(e.g. confirm_travel before a long trip)."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "summary": {"type": "string"},
                "player_prompt": {
                    "type": ["object", "null"],
                    "properties": {
                        "clear": {"type": "boolean"},
                        "pending": PENDING_PROMPT_SCHEMA,
                    },
                },
            },
            "required": ["summary"],
        },
        "strict": False,
    },
]

NPC_OUTPUT_TOOL_NAME = "emit_npc_turn"

NPC_OUTPUT_TOOL = {
    "type": "function",
    "name": NPC_OUTPUT_TOOL_NAME,
    "description": "Return the NPC reaction as a structured payload.",
    "parameters": {
        "type": "object",
        "properties": {
            "public_utterance": {"type": "string"},
            "private_intent": {"type": "string"},
            "emotional_tone": {"type": ["string", "null"]},
        },
        "required": ["public_utterance", "private_intent", "emotional_tone"],
        "additionalProperties": False,
    },
    "strict": True,
}
