"""NPC agent — one forced structured call per consultation. Never mutates state."""

import json
import logging
from typing import Any, Dict, Optional

from saga_kernel.agents.gm import parse_tool_arguments
from saga_kernel.agents.llm import LLMClient, LLMRequest, classify_llm_error
from saga_kernel.agents.prompts import NPC_SYSTEM_PROMPT
from saga_kernel.agents.tools import NPC_OUTPUT_TOOL, NPC_OUTPUT_TOOL_NAME
from saga_kernel.models.turn import LLMCallTrace, NpcOutput, TurnTrace
from saga_kernel.models.world import Actor

logger = logging.getLogger(__name__)


def _silent(npc: Actor) -> NpcOutput:
    return NpcOutput(npc_id=npc.id, public_utterance=f"{npc.name} says nothing.", private_intent="wait")


async def run_npc_agent(
    llm: LLMClient,
    model: str,
    npc: Actor,
    observation: Dict[str, Any],
    player_text: str,
    topic: Optional[str] = None,
    trace: Optional[TurnTrace] = None,
) -> NpcOutput:
    if not llm.is_available():
        return NpcOutput(
            npc_id=npc.id,
            public_utterance=f"{npc.name} nods, saying little.",
            private_intent="stay_guarded",
        )

    persona = npc.persona.model_dump() if npc.persona else {}
    request = LLMRequest(
        model=model,
        instructions=NPC_SYSTEM_PROMPT,
        input=json.dumps({
            "npc": {"id": npc.id, "name": npc.name, **persona},
            "topic": topic,
            "observation": observation,
            "player_text": player_text,
        }, default=str),
        tools=[NPC_OUTPUT_TOOL],
        tool_choice={"type": "function", "name": NPC_OUTPUT_TOOL_NAME},
    )

    try:
        response = await llm.create_response(request)
    except Exception as exc:
        details = classify_llm_error(exc)
        logger.warning("NPC agent for %s failed (%s): %s", npc.id, details.kind.value, details.message)
        if trace is not None:
            trace.llm_calls.append(LLMCallTrace(agent="npc", model=model, error=details.kind.value))
        return _silent(npc)

    if trace is not None:
        trace.llm_calls.append(LLMCallTrace(agent="npc", model=model, response_id=response.id))

    call = next((c for c in response.function_calls if c.name == NPC_OUTPUT_TOOL_NAME), None)
    if call is None:
        return _silent(npc)
    args, error = parse_tool_arguments(call.arguments)
    utterance = (args or {}).get("public_utterance")
    intent = (args or {}).get("private_intent")
    if error or not isinstance(utterance, str) or not isinstance(intent, str):
        logger.info("NPC agent for %s returned malformed output", npc.id)
        return _silent(npc)

    tone = args.get("emotional_tone")
    return NpcOutput(
        npc_id=npc.id,
        public_utterance=utterance,
        private_intent=intent,
        emotional_tone=tone if isinstance(tone, str) else None,
    )
