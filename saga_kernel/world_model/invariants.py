"""
Structural invariants over World State.

Behavioral Contract:
- check_invariants() inspects a single state: every actor has a position,
  every item has exactly one location, and inventory references agree in
  both directions.
- check_transition() compares two states: the turn counter never goes
  backwards and the ledger only grows.
- Both return issues; neither raises. Callers decide whether an issue
  rejects a batch or aborts the turn.
"""

from typing import List

from pydantic import BaseModel

from saga_kernel.models.world import WorldState


class InvariantIssue(BaseModel):
    path: str
    message: str


def check_invariants(state: WorldState) -> List[InvariantIssue]:
    issues: List[InvariantIssue] = []

    for actor_id, actor in state.actors.items():
        if actor.pos is None:
            issues.append(InvariantIssue(path=f"actors.{actor_id}.pos", message="Missing position"))

    for item_id, item in state.items.items():
        if item.location is None:
            issues.append(InvariantIssue(path=f"items.{item_id}.location", message="Missing location"))
            continue
        if item.location.kind == "inventory":
            owner = state.actors.get(item.location.actor_id)
            if owner is None or item_id not in owner.inventory:
                issues.append(InvariantIssue(
                    path=f"items.{item_id}.location",
                    message="Inventory location mismatch",
                ))

    for actor_id, actor in state.actors.items():
        for item_id in actor.inventory:
            item = state.items.get(item_id)
            if item is None:
                issues.append(InvariantIssue(
                    path=f"actors.{actor_id}.inventory",
                    message=f"Inventory references missing item {item_id}",
                ))
            elif item.location.kind != "inventory" or item.location.actor_id != actor_id:
                issues.append(InvariantIssue(
                    path=f"actors.{actor_id}.inventory",
                    message=f"Item {item_id} is carried but located elsewhere",
                ))

    return issues


def check_transition(before: WorldState, after: WorldState) -> List[InvariantIssue]:
    issues: List[InvariantIssue] = []

    if after.meta.turn < before.meta.turn:
        issues.append(InvariantIssue(path="meta.turn", message="Turn counter decreased"))

    if len(after.ledger) < len(before.ledger):
        issues.append(InvariantIssue(path="ledger", message="Ledger shrank"))
    elif after.ledger[: len(before.ledger)] != before.ledger:
        issues.append(InvariantIssue(path="ledger", message="Ledger history rewritten"))

    return issues
