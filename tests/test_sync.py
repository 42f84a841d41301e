"""
Tests for the sync engine (debounced bulk autosave).

Debounce windows are shortened so the timing behaviour can be observed in
well under a second.
"""

import asyncio
from decimal import Decimal

import pytest

from tailorbook.models import COLLECTION_KEYS, Customer, Expense
from tailorbook.store import AppState, SessionPhase, SyncEngine


DEBOUNCE = 0.1
WIRE_NAMES = set(COLLECTION_KEYS.values())


def _engine(state, storage, **kwargs):
    engine = SyncEngine(state, storage, debounce_seconds=DEBOUNCE, **kwargs)
    engine.take_baseline()
    return engine


class TestChangeDetection:
    """Tests for comparing collections against the baseline."""

    def test_nothing_changed_after_baseline(self, ready_state, storage):
        """Test that a fresh baseline reports no changes."""
        engine = _engine(ready_state, storage)
        assert engine.changed_collections() == []

    def test_structural_not_reference_comparison(self, ready_state, storage):
        """Test that replacing a record with an equal copy is not a change."""
        engine = _engine(ready_state, storage)
        ready_state.collections.customers = [c.model_copy(deep=True) for c in ready_state.customers]
        assert engine.changed_collections() == []

        ready_state.customers[0].phone = "03009999999"
        assert engine.changed_collections() == ["customers"]

    def test_nested_change_detected(self, ready_state, storage):
        """Test that a change inside an order is detected."""
        engine = _engine(ready_state, storage)
        ready_state.orders[0].assignments = ready_state.orders[0].assignments.model_copy(
            update={"stitcher": "Sara"}
        )
        assert engine.changed_collections() == ["orders"]


class TestDebounce:
    """Tests for scheduling saves after a quiet period."""

    def test_five_mutations_produce_one_full_save(self, ready_state, storage):
        """Test that rapid mutations keep resetting the timer and one save sends all seven collections."""
        engine = _engine(ready_state, storage)

        async def scenario():
            for i in range(5):
                ready_state.customers.append(Customer(name=f"Walk-in {i}"))
                assert engine.notify_mutation() is True
                await asyncio.sleep(DEBOUNCE / 5)
            assert storage.save_calls == 0
            await asyncio.sleep(DEBOUNCE * 3)
            await engine.drain()

        asyncio.run(scenario())

        assert storage.save_calls == 1
        payload = storage.saved_payloads[0]
        assert set(payload) == WIRE_NAMES
        assert len(payload["customers"]) == 7
        assert len(payload["orders"]) == 2
        assert engine.changed_collections() == []
        assert ready_state.last_saved is not None

    def test_no_change_schedules_nothing(self, ready_state, storage):
        """Test that a no-op mutation does not start the timer."""
        engine = _engine(ready_state, storage)

        async def scenario():
            assert engine.notify_mutation() is False
            assert not engine.has_pending_save

        asyncio.run(scenario())
        assert storage.save_calls == 0

    def test_suppressed_before_hydration(self, storage):
        """Test that nothing is saved while the state is not hydrated."""
        state = AppState()
        engine = _engine(state, storage)

        async def scenario():
            state.customers.append(Customer(name="Early"))
            assert engine.notify_mutation() is False
            await asyncio.sleep(DEBOUNCE * 2)

        asyncio.run(scenario())
        assert storage.save_calls == 0

    def test_suppressed_without_user(self, ready_state, storage):
        """Test that nothing is saved after the user is gone."""
        engine = _engine(ready_state, storage)
        ready_state.current_user = None

        async def scenario():
            ready_state.customers.append(Customer(name="Late"))
            return engine.notify_mutation()

        assert asyncio.run(scenario()) is False

    def test_no_event_loop_means_no_schedule(self, ready_state, storage):
        """Test that a mutation outside an event loop is not scheduled."""
        engine = _engine(ready_state, storage)
        ready_state.customers.append(Customer(name="Sync caller"))
        assert engine.notify_mutation() is False


class TestSaving:
    """Tests for save outcomes."""

    def test_failure_is_reported_and_edits_kept(self, ready_state, storage):
        """Test that a failed save notifies, keeps the edits and does not retry."""
        errors = []
        engine = _engine(ready_state, storage, on_error=errors.append)
        storage.fail_saves = 1

        async def scenario():
            ready_state.expenses.append(Expense(amount=Decimal("90"), category="Tea"))
            engine.notify_mutation()
            await asyncio.sleep(DEBOUNCE * 3)
            await engine.drain()

        asyncio.run(scenario())

        assert storage.save_calls == 1
        assert len(errors) == 1
        assert ready_state.last_error
        assert len(ready_state.expenses) == 2
        assert engine.changed_collections() == ["expenses"]
        assert storage.saved_payloads == []

    def test_next_mutation_after_failure_saves_everything(self, ready_state, storage):
        """Test that edits kept after a failure go out with the next save."""
        engine = _engine(ready_state, storage, on_error=lambda e: None)
        storage.fail_saves = 1

        async def scenario():
            ready_state.expenses.append(Expense(amount=Decimal("90")))
            engine.notify_mutation()
            await asyncio.sleep(DEBOUNCE * 3)
            ready_state.customers.append(Customer(name="Next"))
            engine.notify_mutation()
            await asyncio.sleep(DEBOUNCE * 3)
            await engine.drain()

        asyncio.run(scenario())

        assert storage.save_calls == 2
        saved = storage.saved_payloads[-1]
        assert len(saved["expenses"]) == 2
        assert len(saved["customers"]) == 3

    def test_flush_saves_immediately(self, ready_state, storage):
        """Test that flush cancels the timer and saves now."""
        engine = _engine(ready_state, storage)

        async def scenario():
            ready_state.customers.append(Customer(name="Now"))
            engine.notify_mutation()
            assert engine.has_pending_save
            ok = await engine.flush()
            assert not engine.has_pending_save
            return ok

        assert asyncio.run(scenario()) is True
        assert storage.save_calls == 1

    def test_flush_without_changes_does_not_save(self, ready_state, storage):
        """Test that flushing an unchanged state is a no-op."""
        engine = _engine(ready_state, storage)
        assert asyncio.run(engine.flush()) is True
        assert storage.save_calls == 0

    def test_overlapping_saves_race(self, ready_state, storage):
        """Test that a second save may start while the first is in flight."""
        storage.save_delay = DEBOUNCE * 4
        engine = _engine(ready_state, storage)
        phases = []

        async def scenario():
            ready_state.customers.append(Customer(name="First"))
            engine.notify_mutation()
            await asyncio.sleep(DEBOUNCE * 1.5)
            phases.append(ready_state.phase)
            ready_state.customers.append(Customer(name="Second"))
            engine.notify_mutation()
            await asyncio.sleep(DEBOUNCE * 1.5)
            phases.append(engine.saves_in_flight)
            await engine.drain()

        asyncio.run(scenario())

        assert phases[0] == SessionPhase.SAVING
        assert phases[1] == 2
        assert storage.save_calls == 2
        assert len(storage.payload["customers"]) == 4
        assert ready_state.phase == SessionPhase.READY

    def test_round_trip(self, ready_state, storage):
        """Test that saving then reloading yields structurally equal data."""
        engine = _engine(ready_state, storage)

        async def scenario():
            ready_state.customers.append(Customer(name="Round Trip"))
            await engine.flush()
            return await storage.load_all()

        reloaded = asyncio.run(scenario())
        assert reloaded.to_payload() == ready_state.collections.to_payload()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
