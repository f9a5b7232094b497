"""Tests for per-player balance aggregation."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from poker_ledger.ledger import compute_balances, game_totals, net_balances
from poker_ledger.models import Transaction

START = datetime(2026, 1, 10, 19, 0, 0)


# Helper function for tests
def make_txn(
    id: str, user_id: str, type: str, amount: str, minutes: int = 0, game_id="g1"
) -> Transaction:
    """Create a Transaction for testing."""
    return Transaction(
        id=id,
        game_id=game_id,
        user_id=user_id,
        type=type,
        amount=Decimal(amount),
        timestamp=START + timedelta(minutes=minutes),
    )


@pytest.fixture
def sample_transactions():
    """Three players, one rebuy, everyone cashed out."""
    return [
        make_txn("t1", "alice", "buyin", "20.00", 0),
        make_txn("t2", "bob", "buyin", "20.00", 1),
        make_txn("t3", "carol", "buyin", "20.00", 2),
        make_txn("t4", "bob", "buyin", "20.00", 45),
        make_txn("t5", "alice", "cashout", "0.00", 90),
        make_txn("t6", "bob", "cashout", "15.50", 120),
        make_txn("t7", "carol", "cashout", "64.50", 121),
    ]


class TestComputeBalances:
    """Tests for compute_balances."""

    def test_totals_and_net(self, sample_transactions):
        """Totals sum per player and net is cash-out minus buy-in."""
        balances = compute_balances([], sample_transactions)

        assert balances["alice"].total_buyin == Decimal("20.00")
        assert balances["alice"].total_cashout == Decimal("0.00")
        assert balances["alice"].net == Decimal("-20.00")

        assert balances["bob"].total_buyin == Decimal("40.00")
        assert balances["bob"].net == Decimal("-24.50")

        assert balances["carol"].net == Decimal("44.50")

    def test_net_sums_to_zero_for_balanced_game(self, sample_transactions):
        """Every buy-in ends up in someone's cash-out."""
        balances = compute_balances([], sample_transactions)

        assert sum(b.net for b in balances.values()) == Decimal("0")

    def test_participants_without_transactions_get_zero_entry(self):
        """Players seated but not yet bought in still appear."""
        balances = compute_balances(
            ["alice", "dave"], [make_txn("t1", "alice", "buyin", "20.00")]
        )

        assert set(balances) == {"alice", "dave"}
        assert balances["dave"].total_buyin == Decimal("0.00")
        assert balances["dave"].total_cashout == Decimal("0.00")
        assert balances["dave"].net == Decimal("0.00")
        assert balances["dave"].buyins == []

    def test_input_order_does_not_matter(self, sample_transactions):
        """Shuffled input yields identical balances."""
        forward = compute_balances([], sample_transactions)
        backward = compute_balances([], list(reversed(sample_transactions)))

        assert list(forward) == list(backward)
        for user_id in forward:
            assert forward[user_id] == backward[user_id]

    def test_sub_lists_are_chronological(self, sample_transactions):
        """Buy-ins and cash-outs are listed oldest first for audit display."""
        balances = compute_balances([], list(reversed(sample_transactions)))

        assert [t.id for t in balances["bob"].buyins] == ["t2", "t4"]
        assert [t.id for t in balances["bob"].cashouts] == ["t6"]

    def test_keys_sorted_by_user_id(self):
        """Output order is by user ID, not by first appearance."""
        balances = compute_balances(
            ["zed"],
            [
                make_txn("t1", "mia", "buyin", "5.00"),
                make_txn("t2", "abe", "buyin", "5.00"),
            ],
        )

        assert list(balances) == ["abe", "mia", "zed"]

    def test_no_float_drift(self):
        """Ten dimes make exactly one dollar."""
        transactions = [
            make_txn(f"t{i}", "alice", "buyin", "0.10", i) for i in range(10)
        ]

        balances = compute_balances([], transactions)

        assert balances["alice"].total_buyin == Decimal("1.00")

    def test_empty(self):
        """No players and no transactions gives no balances."""
        assert compute_balances([], []) == {}

    def test_rejects_mixed_games(self):
        """Transactions must all belong to one game."""
        with pytest.raises(ValueError, match="multiple games"):
            compute_balances(
                [],
                [
                    make_txn("t1", "alice", "buyin", "20.00", game_id="g1"),
                    make_txn("t2", "bob", "buyin", "20.00", game_id="g2"),
                ],
            )


class TestGameTotals:
    """Tests for game_totals and net_balances."""

    def test_totals(self, sample_transactions):
        """Sums buy-ins and cash-outs across players."""
        balances = compute_balances([], sample_transactions)

        total_buyin, total_cashout = game_totals(balances)

        assert total_buyin == Decimal("80.00")
        assert total_cashout == Decimal("80.00")

    def test_conservation(self, sample_transactions):
        """Sum of nets equals cash-outs minus buy-ins."""
        transactions = sample_transactions + [make_txn("t8", "dave", "buyin", "7.25")]
        balances = compute_balances([], transactions)

        total_buyin, total_cashout = game_totals(balances)

        assert sum(net_balances(balances).values()) == total_cashout - total_buyin
        assert total_cashout - total_buyin == Decimal("-7.25")

    def test_empty_totals(self):
        """Empty game totals to zero."""
        assert game_totals({}) == (Decimal("0.00"), Decimal("0.00"))
