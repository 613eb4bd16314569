"""
Turn staging — draft-and-commit for agent-proposed event batches.

Behavioral Contract:
- A TurnDraft owns a private copy of the pre-turn state with the turn
  counter already bumped; the pre-turn state itself is never touched
- stage() validates each event against a working copy seeded from the
  current draft and folds accepted events into it in order
- If the folded batch breaks any invariant, every event of that batch is
  rejected with ``invariant_violation:<detail>`` and the draft is unchanged
- rollback() discards everything accepted so far and relabels it
  ``agent_failure_rollback``; the bumped turn counter survives
"""

import logging
from typing import Any, List

from pydantic import BaseModel, ValidationError

from saga_kernel.execution.reducer import apply_event
from saga_kernel.governance.validator import validate_event
from saga_kernel.models.events import RejectedEvent, WorldEvent, parse_event
from saga_kernel.models.world import WorldState
from saga_kernel.world_model.invariants import check_invariants, check_transition

logger = logging.getLogger(__name__)


class BatchResult(BaseModel):
    ok: bool
    accepted: int                           # running totals for the turn
    rejected: int
    batch_accepted: int = 0
    batch_rejections: List[dict] = []


class TurnDraft:
    """Private working state for one turn."""

    def __init__(self, base: WorldState, turn: int, proposer: str = "gm"):
        self.base = base
        self.turn = turn
        self.proposer = proposer
        self.state = base.clone()
        self.state.meta.turn = turn
        self.accepted: List[WorldEvent] = []
        self.rejected: List[RejectedEvent] = []

    def _totals(self, ok: bool, batch_accepted: int, batch_rejections: List[dict]) -> BatchResult:
        return BatchResult(
            ok=ok,
            accepted=len(self.accepted),
            rejected=len(self.rejected),
            batch_accepted=batch_accepted,
            batch_rejections=batch_rejections,
        )

    def stage(self, proposed: List[Any]) -> BatchResult:
        working = self.state
        staged: List[WorldEvent] = []
        rejections: List[dict] = []

        for raw in proposed:
            if isinstance(raw, BaseModel):
                event = raw
            else:
                try:
                    event = parse_event(raw)
                except ValidationError as exc:
                    payload = raw if isinstance(raw, dict) else {"value": raw}
                    self.rejected.append(RejectedEvent(raw=payload, reason="malformed_event"))
                    rejections.append({"type": payload.get("type"), "reason": "malformed_event",
                                       "details": [e["msg"] for e in exc.errors()[:3]]})
                    continue

            verdict = validate_event(working, event)
            if not verdict.ok:
                self.rejected.append(RejectedEvent(event=event, reason=verdict.reason))
                rejections.append({"type": event.type, "reason": verdict.reason})
                continue

            stamped = event.stamped(self.turn, by=self.proposer)
            working = apply_event(working, stamped)
            staged.append(stamped)

        if not staged:
            return self._totals(True, 0, rejections)

        issues = check_invariants(working) + check_transition(self.state, working)
        if issues:
            reason = f"invariant_violation:{issues[0].message}"
            logger.warning(
                "Rejecting batch of %d events in turn %d: %s at %s",
                len(staged), self.turn, issues[0].message, issues[0].path,
            )
            for event in staged:
                self.rejected.append(RejectedEvent(event=event, reason=reason))
                rejections.append({"type": event.type, "reason": reason})
            return self._totals(False, 0, rejections)

        self.accepted.extend(staged)
        self.state = working
        return self._totals(True, len(staged), rejections)

    def rollback(self) -> None:
        for event in self.accepted:
            self.rejected.append(RejectedEvent(event=event, reason="agent_failure_rollback"))
        self.accepted = []
        self.state = self.base.clone()
        self.state.meta.turn = self.turn
