"""Turn Record — the durable, append-only unit describing one committed turn."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel

from saga_kernel.models.events import RejectedEvent, WorldEvent
from saga_kernel.models.views import Telemetry
from saga_kernel.models.world import PendingPrompt


class NpcOutput(BaseModel):
    npc_id: str
    public_utterance: str
    private_intent: str
    emotional_tone: Optional[str] = None


class ToolCallTrace(BaseModel):
    tool: str
    input: Any = None
    output: Any = None


class LLMCallTrace(BaseModel):
    agent: str                              # "gm" | "npc" | "narrator"
    model: str
    response_id: Optional[str] = None
    error: Optional[str] = None


class TurnTrace(BaseModel):
    tool_calls: List[ToolCallTrace] = []
    llm_calls: List[LLMCallTrace] = []


class TurnRecord(BaseModel):
    """
    One line of the turn log.

    Replay folds only ``accepted_events`` (and restores ``pending_prompt``);
    every other field is audit material.
    """

    session_id: str
    turn: int
    at: datetime
    player_id: str
    player_text: str
    accepted_events: List[WorldEvent] = []
    rejected_events: List[RejectedEvent] = []
    npc_outputs: List[NpcOutput] = []
    narration: str = ""
    telemetry: Telemetry
    pending_prompt: Optional[PendingPrompt] = None
    completed: bool = True                  # False on iteration ceiling or rollback
    gm_summary: Optional[str] = None
    trace: Optional[TurnTrace] = None

    # Chain integrity
    signature: str = ""
    prior_record_hash: Optional[str] = None
