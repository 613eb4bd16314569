"""
Game-Master Agent Loop — bounded tool-calling conversation with the
reasoning service.

Behavioral Contract:
- At most ``max_iterations`` round-trips; the loop never recurses
- The first request carries the player text and the world context; later
  requests carry only the previous iteration's tool outputs, chained by
  previous_response_id
- Malformed arguments, unknown tools and tool exceptions are returned to
  the model as structured errors, never raised
- Only exceptions raised by the LLM client itself escape the loop
- Ends on finish_turn, on a response with no tool calls, or on exhausting
  iterations (reported as finished=False)
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from pydantic import BaseModel

from saga_kernel.agents.llm import FunctionCall, LLMClient, LLMRequest
from saga_kernel.agents.prompts import GM_SYSTEM_PROMPT
from saga_kernel.agents.tools import GM_TOOL_DEFS
from saga_kernel.models.turn import LLMCallTrace, ToolCallTrace, TurnTrace

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "No reasoning service configured; fallback turn"


class GMToolRuntime(Protocol):
    """The turn engine's surface, as seen by the game master."""

    async def observe_world(self, perspective: str) -> Dict[str, Any]: ...

    async def consult_npc(self, npc_id: str, topic: Optional[str] = None) -> Dict[str, Any]: ...

    async def propose_events(self, events: List[Any]) -> Dict[str, Any]: ...

    async def finish_turn(
        self, summary: str, player_prompt: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]: ...


class GMLoopResult(BaseModel):
    finished: bool
    iterations: int
    summary: Optional[str] = None


async def _observe(runtime: GMToolRuntime, args: Dict[str, Any]) -> Dict[str, Any]:
    return await runtime.observe_world(args.get("perspective") or "gm")


async def _consult(runtime: GMToolRuntime, args: Dict[str, Any]) -> Dict[str, Any]:
    return await runtime.consult_npc(args["npc_id"], args.get("topic"))


async def _propose(runtime: GMToolRuntime, args: Dict[str, Any]) -> Dict[str, Any]:
    events = args.get("events")
    return await runtime.propose_events(events if isinstance(events, list) else [])


async def _finish(runtime: GMToolRuntime, args: Dict[str, Any]) -> Dict[str, Any]:
    prompt = args.get("player_prompt")
    return await runtime.finish_turn(
        str(args.get("summary") or ""),
        prompt if isinstance(prompt, dict) else None,
    )


# Tool registry: maps tool names to runtime dispatchers
TOOL_HANDLERS: Dict[str, Callable[[GMToolRuntime, Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
    "observe_world": _observe,
    "consult_npc": _consult,
    "propose_events": _propose,
    "finish_turn": _finish,
}


def parse_tool_arguments(raw: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Return (arguments, None) or (None, error_code)."""
    if not raw or not raw.strip():
        return {}, None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None, "arguments_parse_failed"
    if not isinstance(parsed, dict):
        return None, "arguments_must_be_json_object"
    return parsed, None


class GMAgentLoop:
    """Drives one turn's game-master conversation against a GMToolRuntime."""

    def __init__(
        self,
        llm: LLMClient,
        model: str,
        max_iterations: int = 8,
        trace: Optional[TurnTrace] = None,
    ):
        self.llm = llm
        self.model = model
        self.max_iterations = max_iterations
        self.trace = trace

    def _record_tool(self, tool: str, tool_input: Any, output: Any) -> None:
        if self.trace is not None:
            self.trace.tool_calls.append(ToolCallTrace(tool=tool, input=tool_input, output=output))

    async def _execute(self, call: FunctionCall, runtime: GMToolRuntime) -> Dict[str, Any]:
        args, error = parse_tool_arguments(call.arguments)
        if error is not None:
            output: Dict[str, Any] = {"error": "invalid_tool_arguments", "details": error}
            self._record_tool(call.name, call.arguments, output)
            return output

        handler = TOOL_HANDLERS.get(call.name)
        if handler is None:
            output = {"error": "unknown_tool", "name": call.name}
        else:
            try:
                output = await handler(runtime, args)
            except Exception as exc:
                logger.warning("Tool %s failed: %s", call.name, exc)
                output = {"error": "tool_runtime_error", "message": str(exc) or type(exc).__name__}
        self._record_tool(call.name, args, output)
        return output

    async def run(
        self,
        player_text: str,
        world_context: Dict[str, Any],
        runtime: GMToolRuntime,
    ) -> GMLoopResult:
        if not self.llm.is_available():
            await runtime.observe_world("gm")
            await runtime.finish_turn(FALLBACK_SUMMARY)
            return GMLoopResult(finished=True, iterations=0, summary=FALLBACK_SUMMARY)

        transcript: List[Dict[str, Any]] = [{
            "role": "user",
            "content": json.dumps({"player_text": player_text, "world_context": world_context}, default=str),
        }]
        pending_input: List[Dict[str, Any]] = transcript
        previous_id: Optional[str] = None

        for iteration in range(1, self.max_iterations + 1):
            request = LLMRequest(
                model=self.model,
                instructions=GM_SYSTEM_PROMPT,
                input=pending_input if previous_id else transcript,
                tools=GM_TOOL_DEFS,
                previous_response_id=previous_id,
            )
            response = await self.llm.create_response(request)
            if self.trace is not None:
                self.trace.llm_calls.append(
                    LLMCallTrace(agent="gm", model=self.model, response_id=response.id)
                )
            transcript = transcript + response.output

            if not response.function_calls:
                summary = response.output_text.strip() or "Turn ended"
                await runtime.finish_turn(summary)
                return GMLoopResult(finished=True, iterations=iteration, summary=summary)

            outputs = []
            for call in response.function_calls:
                output = await self._execute(call, runtime)
                outputs.append({
                    "type": "function_call_output",
                    "call_id": call.call_id,
                    "output": json.dumps(output, default=str),
                })
                if call.name == "finish_turn" and "error" not in output:
                    return GMLoopResult(finished=True, iterations=iteration)

            transcript = transcript + outputs
            pending_input = outputs
            previous_id = response.id
        else:
            logger.warning("GM loop reached %d iterations without finishing", self.max_iterations)
            await runtime.finish_turn("Max iterations reached")
            return GMLoopResult(finished=False, iterations=self.max_iterations, summary="Max iterations reached")
