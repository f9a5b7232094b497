"""Tests for settlement status stores and reconciliation."""

import threading
from decimal import Decimal

import pytest

from poker_ledger.db import Database
from poker_ledger.exceptions import InconsistentStateError
from poker_ledger.models import (
    PaymentMethod,
    Settled,
    SettlementTransfer,
    Unsettled,
)
from poker_ledger.status import (
    InMemorySettlementStore,
    check_consistency,
    overlay_status,
    purge_orphans,
    reconcile,
)


@pytest.fixture
def mock_db(tmp_path):
    """Create a temporary database with one game."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, mock_db):
    """Each store implementation, with game 'g1' available."""
    if request.param == "memory":
        return InMemorySettlementStore()
    game = mock_db.create_game("Friday", Decimal("20.00"))
    # Settlement rows reference games(id)
    mock_db.conn.execute("UPDATE games SET id = 'g1' WHERE id = ?", (game.id,))
    mock_db.conn.commit()
    return mock_db


@pytest.fixture
def plan():
    """Plan for A=-50, B=-30, C=+80."""
    return [
        SettlementTransfer(from_user_id="B", to_user_id="C", amount=Decimal("30.00")),
        SettlementTransfer(from_user_id="A", to_user_id="C", amount=Decimal("50.00")),
    ]


class TestStoreRoundTrip:
    """mark_settled / reset / list_settled against both stores."""

    def test_mark_then_list(self, store):
        store.mark_settled("g1", "A", "C", Decimal("50"), PaymentMethod.CASH)

        records = store.list_settled("g1")

        assert len(records) == 1
        assert records[0].pair == ("A", "C")
        assert records[0].amount == Decimal("50.00")
        assert records[0].payment_method == PaymentMethod.CASH

    def test_mark_twice_overwrites(self, store):
        """Upsert by ordered pair: never two records for one pair."""
        store.mark_settled("g1", "A", "C", Decimal("50"), PaymentMethod.CASH)
        store.mark_settled("g1", "A", "C", Decimal("50"), PaymentMethod.VENMO)

        records = store.list_settled("g1")

        assert len(records) == 1
        assert records[0].payment_method == PaymentMethod.VENMO

    def test_pair_is_ordered(self, store):
        """(A, C) and (C, A) are different keys."""
        store.mark_settled("g1", "A", "C", Decimal("5"), PaymentMethod.CASH)
        store.mark_settled("g1", "C", "A", Decimal("5"), PaymentMethod.CASH)

        assert len(store.list_settled("g1")) == 2

    def test_reset_removes(self, store):
        store.mark_settled("g1", "A", "C", Decimal("50"), PaymentMethod.CASH)

        assert store.reset("g1", "A", "C") is True
        assert store.list_settled("g1") == []

    def test_reset_twice_is_noop(self, store):
        store.mark_settled("g1", "A", "C", Decimal("50"), PaymentMethod.CASH)

        store.reset("g1", "A", "C")

        assert store.reset("g1", "A", "C") is False
        assert store.list_settled("g1") == []

    def test_list_unknown_game(self, store):
        assert store.list_settled("nope") == []


class TestInMemoryConcurrency:
    """Concurrent marks of one pair leave exactly one record."""

    def test_concurrent_marks(self):
        store = InMemorySettlementStore()
        methods = list(PaymentMethod)

        def mark(i: int):
            store.mark_settled("g1", "A", "C", Decimal("50"), methods[i % 4])

        threads = [threading.Thread(target=mark, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.list_settled("g1")) == 1


class TestOverlayStatus:
    """Tests for overlay_status."""

    def test_unsettled_by_default(self, plan):
        lines = overlay_status(plan, [])

        assert [line.transfer for line in lines] == plan
        assert all(isinstance(line.status, Unsettled) for line in lines)

    def test_settled_pair(self, plan):
        store = InMemorySettlementStore()
        store.mark_settled("g1", "A", "C", Decimal("50.00"), PaymentMethod.ZELLE)

        lines = overlay_status(plan, store.list_settled("g1"))

        assert not lines[0].is_settled
        assert lines[1].is_settled
        assert isinstance(lines[1].status, Settled)
        assert lines[1].status.method == PaymentMethod.ZELLE

    def test_stale_amount_not_shown_as_paid(self, plan):
        """A record for the right pair but a different amount doesn't count."""
        store = InMemorySettlementStore()
        store.mark_settled("g1", "A", "C", Decimal("45.00"), PaymentMethod.CASH)

        lines = overlay_status(plan, store.list_settled("g1"))

        assert not lines[1].is_settled


class TestReconcile:
    """Tests for reconcile, check_consistency and purge_orphans."""

    def test_all_matched(self, plan):
        store = InMemorySettlementStore()
        store.mark_settled("g1", "A", "C", Decimal("50.00"), PaymentMethod.CASH)
        store.mark_settled("g1", "B", "C", Decimal("29.99"), PaymentMethod.CASH)

        report = reconcile(plan, store.list_settled("g1"))

        assert len(report.matched) == 2
        assert report.is_consistent

    def test_missing_pair_is_orphaned(self, plan):
        store = InMemorySettlementStore()
        store.mark_settled("g1", "A", "B", Decimal("10.00"), PaymentMethod.CASH)

        report = reconcile(plan, store.list_settled("g1"))

        assert [r.pair for r in report.orphaned] == [("A", "B")]

    def test_changed_amount_is_orphaned(self, plan):
        store = InMemorySettlementStore()
        store.mark_settled("g1", "A", "C", Decimal("60.00"), PaymentMethod.CASH)

        report = reconcile(plan, store.list_settled("g1"))

        assert not report.is_consistent

    def test_check_consistency_raises(self, plan):
        store = InMemorySettlementStore()
        store.mark_settled("g1", "A", "B", Decimal("10.00"), PaymentMethod.CASH)

        with pytest.raises(InconsistentStateError) as exc_info:
            check_consistency(plan, store.list_settled("g1"))

        assert exc_info.value.orphaned[0].pair == ("A", "B")
        assert "A -> B" in str(exc_info.value)

    def test_purge_orphans(self, plan):
        store = InMemorySettlementStore()
        store.mark_settled("g1", "A", "C", Decimal("50.00"), PaymentMethod.CASH)
        store.mark_settled("g1", "A", "B", Decimal("10.00"), PaymentMethod.CASH)
        report = reconcile(plan, store.list_settled("g1"))

        removed = purge_orphans(store, "g1", report)

        assert removed == 1
        assert [r.pair for r in store.list_settled("g1")] == [("A", "C")]
