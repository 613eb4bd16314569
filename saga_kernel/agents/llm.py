"""
LLM boundary — the request/response contract agents use to reach a
reasoning service.

Two backends satisfy the LLMClient protocol:
- OpenAIResponsesClient: the OpenAI Responses API via the async SDK
- ScriptedLLMClient: a deterministic queue of canned responses, for
  offline play and tests
"""

from __future__ import annotations

import json
import logging
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Protocol, Union
from uuid import uuid4

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from saga_kernel.errors import AgentServiceError

logger = logging.getLogger(__name__)


class LLMErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    CONTEXT_WINDOW = "context_window"
    INVALID_REQUEST = "invalid_request"
    UPSTREAM = "upstream"
    UNKNOWN = "unknown"


class LLMErrorDetails(BaseModel):
    kind: LLMErrorKind
    message: str
    status: Optional[int] = None
    code: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.kind in (LLMErrorKind.RATE_LIMIT, LLMErrorKind.UPSTREAM)


def classify_llm_error(error: BaseException) -> LLMErrorDetails:
    """Map an SDK (or any) exception to a retry-relevant category."""
    if isinstance(error, AgentServiceError) and error.kind != LLMErrorKind.UNKNOWN.value:
        return LLMErrorDetails(kind=LLMErrorKind(error.kind), message=error.message)

    message = str(error) or type(error).__name__
    status = getattr(error, "status_code", None)
    if not isinstance(status, int):
        status = None
    code = getattr(error, "code", None)
    code = code if isinstance(code, str) else None
    normalized = " ".join([message, code or "", str(getattr(error, "type", "") or "")]).lower()

    if status == 401 or "unauthorized" in normalized or "invalid api key" in normalized:
        kind = LLMErrorKind.AUTHENTICATION
    elif status == 429 or "rate limit" in normalized or "quota" in normalized:
        kind = LLMErrorKind.RATE_LIMIT
    elif any(s in normalized for s in ("context window", "too many tokens", "maximum context")):
        kind = LLMErrorKind.CONTEXT_WINDOW
    elif status == 400 or "invalid" in normalized or "bad request" in normalized:
        kind = LLMErrorKind.INVALID_REQUEST
    elif status is not None and status >= 500:
        kind = LLMErrorKind.UPSTREAM
    else:
        kind = LLMErrorKind.UNKNOWN

    return LLMErrorDetails(kind=kind, message=message, status=status, code=code)


class FunctionCall(BaseModel):
    call_id: str
    name: str
    arguments: str = ""                     # raw JSON text, parsed by the caller


class LLMRequest(BaseModel):
    model: str
    instructions: Optional[str] = None
    input: Union[str, List[Dict[str, Any]]]
    tools: List[Dict[str, Any]] = []
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    previous_response_id: Optional[str] = None


class LLMResponse(BaseModel):
    id: Optional[str] = None
    output_text: str = ""
    function_calls: List[FunctionCall] = []
    output: List[Dict[str, Any]] = []       # raw output items, for transcripts


class LLMClient(Protocol):
    """Protocol for the reasoning service — pluggable backend."""

    def is_available(self) -> bool: ...

    async def create_response(self, request: LLMRequest) -> LLMResponse: ...


class OpenAIResponsesClient:
    """OpenAI Responses API client. Unavailable (and never constructed) without a key."""

    def __init__(self, api_key: Optional[str] = None, timeout: float = 60.0):
        self._client: Optional[AsyncOpenAI] = None
        if api_key:
            self._client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        else:
            logger.info("No OpenAI API key configured; agents will use fallbacks")

    def is_available(self) -> bool:
        return self._client is not None

    async def create_response(self, request: LLMRequest) -> LLMResponse:
        if self._client is None:
            raise AgentServiceError("OpenAI client not available", kind=LLMErrorKind.AUTHENTICATION.value)

        payload: Dict[str, Any] = {"model": request.model, "input": request.input}
        if request.instructions:
            payload["instructions"] = request.instructions
        if request.tools:
            payload["tools"] = request.tools
            payload["tool_choice"] = request.tool_choice or "auto"
        if request.previous_response_id:
            payload["previous_response_id"] = request.previous_response_id

        try:
            response = await self._client.responses.create(**payload)
        except openai.OpenAIError as exc:
            details = classify_llm_error(exc)
            raise AgentServiceError(
                f"Reasoning service error: {details.message}",
                kind=details.kind.value,
                details=details.model_dump(mode="json"),
            ) from exc

        calls = []
        raw_items = []
        for item in response.output or []:
            raw_items.append(item.model_dump(mode="json", exclude_none=True))
            if getattr(item, "type", None) == "function_call":
                calls.append(FunctionCall(
                    call_id=item.call_id,
                    name=item.name,
                    arguments=item.arguments or "",
                ))

        return LLMResponse(
            id=response.id,
            output_text=response.output_text or "",
            function_calls=calls,
            output=raw_items,
        )


def function_call(name: str, arguments: Union[str, Dict[str, Any]] = "", call_id: Optional[str] = None) -> FunctionCall:
    """Build a FunctionCall; dict arguments are JSON-encoded."""
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return FunctionCall(call_id=call_id or f"call_{uuid4().hex[:8]}", name=name, arguments=arguments)


class ScriptedLLMClient:
    """
    Deterministic offline client.
    Returns queued responses in order; queued exceptions are raised instead.
    Every request is recorded for inspection.
    """

    def __init__(
        self,
        responses: Optional[List[Union[LLMResponse, BaseException]]] = None,
        available: bool = True,
    ):
        self._queue: Deque[Union[LLMResponse, BaseException]] = deque(responses or [])
        self._available = available
        self.requests: List[LLMRequest] = []

    def queue(self, *items: Union[LLMResponse, BaseException]) -> None:
        self._queue.extend(items)

    def is_available(self) -> bool:
        return self._available

    async def create_response(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if not self._queue:
            return LLMResponse(id=f"resp_scripted_{len(self.requests)}")
        item = self._queue.popleft()
        if isinstance(item, BaseException):
            raise item
        if item.id is None:
            item = item.model_copy(update={"id": f"resp_scripted_{len(self.requests)}"})
        return item
