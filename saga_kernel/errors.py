"""
Error taxonomy.

Validation rejections are not exceptions; they travel as reason strings on
RejectedEvent. Everything here propagates to the caller with a stable
code/message pair.
"""

from typing import Any, Optional


class SagaError(Exception):
    """Base error carrying a stable code and an HTTP-style status."""

    code = "saga_error"
    status = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class InputValidationError(SagaError):
    code = "invalid_input"
    status = 400


class SessionNotFoundError(SagaError):
    code = "session_not_found"
    status = 404

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class PlayerNotFoundError(SagaError):
    code = "player_not_found"
    status = 404

    def __init__(self, player_id: str):
        super().__init__(f"Player not found: {player_id}")
        self.player_id = player_id


class IncompatibleSessionError(SagaError):
    code = "session_version_incompatible"
    status = 409

    def __init__(self, session_id: str, found_version: Optional[str], expected_prefix: str):
        super().__init__(
            f"Session {session_id} has version {found_version!r}; "
            f"expected a version starting with {expected_prefix!r}"
        )
        self.session_id = session_id
        self.found_version = found_version


class InvariantViolationError(SagaError):
    code = "invariant_violation"
    status = 422


class AgentServiceError(SagaError):
    """A reasoning-service failure, classified by kind."""

    code = "agent_service_error"
    status = 502

    def __init__(self, message: str, kind: str = "unknown", details: Optional[Any] = None):
        super().__init__(message, details)
        self.kind = kind
