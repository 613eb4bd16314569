"""
Narrator — turns a before/after diff into player-facing text.

Always returns something: when the reasoning service is missing, fails,
or answers with nothing, a deterministic fallback is built from the diff.
"""

import json
import logging
from typing import List, Optional

from saga_kernel.agents.llm import LLMClient, LLMRequest, classify_llm_error
from saga_kernel.agents.prompts import (
    NARRATOR_STYLES,
    NARRATOR_SYSTEM_PROMPT,
    OPENING_SYSTEM_PROMPT,
)
from saga_kernel.models.turn import LLMCallTrace, TurnTrace
from saga_kernel.models.views import Telemetry, TurnDiff
from saga_kernel.models.world import PendingPrompt

logger = logging.getLogger(__name__)

OPENING_FALLBACK = "You find yourself in an unfamiliar place."


def fallback_narration(telemetry: Telemetry, diff: TurnDiff) -> str:
    if diff.moved:
        return f"You arrive at {telemetry.location.name}. {telemetry.location.description}"
    if diff.new_items:
        return f"You now carry {', '.join(diff.new_items)}. {telemetry.location.description}"
    return telemetry.location.description or "The moment stretches quietly."


async def _ask(llm: LLMClient, request: LLMRequest, trace: Optional[TurnTrace]) -> str:
    """Single narrator call; returns "" on any service failure."""
    try:
        response = await llm.create_response(request)
    except Exception as exc:
        details = classify_llm_error(exc)
        logger.warning("Narrator call failed (%s): %s", details.kind.value, details.message)
        if trace is not None:
            trace.llm_calls.append(LLMCallTrace(agent="narrator", model=request.model, error=details.kind.value))
        return ""
    if trace is not None:
        trace.llm_calls.append(LLMCallTrace(agent="narrator", model=request.model, response_id=response.id))
    return response.output_text.strip()


async def narrate_turn(
    llm: LLMClient,
    model: str,
    player_text: str,
    telemetry: Telemetry,
    diff: TurnDiff,
    rejected_reasons: List[str],
    pending_prompt: Optional[PendingPrompt] = None,
    style: str = "plain",
    trace: Optional[TurnTrace] = None,
) -> str:
    if not llm.is_available():
        return fallback_narration(telemetry, diff)

    instructions = NARRATOR_SYSTEM_PROMPT
    if NARRATOR_STYLES.get(style):
        instructions = f"{instructions}\n{NARRATOR_STYLES[style]}"

    text = await _ask(llm, LLMRequest(
        model=model,
        instructions=instructions,
        input=json.dumps({
            "player_text": player_text,
            "telemetry": telemetry.model_dump(mode="json"),
            "diff": diff.model_dump(mode="json"),
            "rejected_reasons": rejected_reasons,
            "pending_prompt": pending_prompt.model_dump(mode="json") if pending_prompt else None,
        }),
    ), trace)
    if not text:
        logger.info("Narrator produced no text; using fallback")
        return fallback_narration(telemetry, diff)
    return text


async def narrate_opening(llm: LLMClient, model: str, telemetry: Telemetry) -> str:
    fallback = telemetry.location.description or OPENING_FALLBACK
    if not llm.is_available():
        return fallback
    text = await _ask(llm, LLMRequest(
        model=model,
        instructions=OPENING_SYSTEM_PROMPT,
        input=json.dumps({"telemetry": telemetry.model_dump(mode="json")}),
    ), None)
    return text or fallback
