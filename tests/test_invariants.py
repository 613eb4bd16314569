"""Tests for structural and transition invariants."""

from saga_kernel.models.world import GridPos, GroundLocation, InventoryLocation, Item, LedgerEntry
from saga_kernel.world_model.factory import create_isle_of_marrow
from saga_kernel.world_model.invariants import check_invariants, check_transition


class TestCheckInvariants:
    def test_factory_world_is_clean(self):
        assert check_invariants(create_isle_of_marrow()) == []

    def test_item_claims_owner_who_does_not_carry_it(self):
        state = create_isle_of_marrow()
        state.items["heartwater-jar"].location = InventoryLocation(actor_id="player-1")
        issues = check_invariants(state)
        assert [i.path for i in issues] == ["items.heartwater-jar.location"]

    def test_item_claims_missing_owner(self):
        state = create_isle_of_marrow()
        state.items["heartwater-jar"].location = InventoryLocation(actor_id="ghost")
        assert len(check_invariants(state)) == 1

    def test_inventory_references_missing_item(self):
        state = create_isle_of_marrow()
        state.actors["player-1"].inventory.append("lantern")
        issues = check_invariants(state)
        assert len(issues) == 1
        assert issues[0].path == "actors.player-1.inventory"
        assert "lantern" in issues[0].message

    def test_carried_item_located_on_ground(self):
        state = create_isle_of_marrow()
        state.actors["player-1"].inventory.append("heartwater-jar")
        issues = check_invariants(state)
        assert any("located elsewhere" in i.message for i in issues)

    def test_consistent_inventory(self):
        state = create_isle_of_marrow()
        state.items["lantern"] = Item(
            id="lantern", name="Storm lantern", location=InventoryLocation(actor_id="player-1")
        )
        state.actors["player-1"].inventory.append("lantern")
        assert check_invariants(state) == []


class TestCheckTransition:
    def test_identical_states(self):
        state = create_isle_of_marrow()
        assert check_transition(state, state.clone()) == []

    def test_turn_decrease(self):
        before = create_isle_of_marrow()
        before.meta.turn = 3
        after = before.clone()
        after.meta.turn = 2
        assert [i.path for i in check_transition(before, after)] == ["meta.turn"]

    def test_ledger_shrink(self):
        before = create_isle_of_marrow()
        after = before.clone()
        after.ledger.pop()
        assert [i.message for i in check_transition(before, after)] == ["Ledger shrank"]

    def test_ledger_rewrite(self):
        before = create_isle_of_marrow()
        after = before.clone()
        after.ledger[0] = LedgerEntry(turn=0, text="Something else entirely")
        after.ledger.append(LedgerEntry(turn=1, text="New line"))
        assert [i.message for i in check_transition(before, after)] == ["Ledger history rewritten"]

    def test_ledger_growth(self):
        before = create_isle_of_marrow()
        after = before.clone()
        after.meta.turn = 1
        after.ledger.append(LedgerEntry(turn=1, text="The gulls scatter"))
        after.items["driftwood"] = Item(
            id="driftwood", name="Driftwood", location=GroundLocation(pos=GridPos(x=1, y=1))
        )
        assert check_transition(before, after) == []
