"""Tests for greedy debt simplification."""

import logging
from decimal import Decimal

import pytest

from poker_ledger.models import PlayerBalance
from poker_ledger.planner import plan_from_nets, plan_settlement


def nets(**values: str) -> dict[str, Decimal]:
    """Build a user -> net mapping from keyword strings."""
    return {user_id: Decimal(net) for user_id, net in values.items()}


def apply_transfers(balances: dict[str, Decimal], transfers) -> dict[str, Decimal]:
    """Apply transfers: payer's net rises, payee's net falls."""
    result = dict(balances)
    for t in transfers:
        result[t.from_user_id] += t.amount
        result[t.to_user_id] -= t.amount
    return result


class TestPlanExamples:
    """Worked examples."""

    def test_two_debtors_one_creditor(self):
        """A=-50, B=-30, C=+80: both losers pay the winner."""
        transfers = plan_from_nets(nets(A="-50", B="-30", C="80"))

        assert [(t.from_user_id, t.to_user_id, t.amount) for t in transfers] == [
            ("B", "C", Decimal("30.00")),
            ("A", "C", Decimal("50.00")),
        ]

    def test_debtor_split_across_creditors(self):
        """Smallest debt first, largest credit first, ties by user ID."""
        transfers = plan_from_nets(nets(A="-10", B="-20", C="15", D="15"))

        assert [(t.from_user_id, t.to_user_id, t.amount) for t in transfers] == [
            ("A", "C", Decimal("10.00")),
            ("B", "C", Decimal("5.00")),
            ("B", "D", Decimal("15.00")),
        ]

    def test_one_to_one(self):
        transfers = plan_from_nets(nets(alice="-12.34", bob="12.34"))

        assert len(transfers) == 1
        assert transfers[0].from_user_id == "alice"
        assert transfers[0].to_user_id == "bob"
        assert transfers[0].amount == Decimal("12.34")

    def test_from_player_balances(self):
        """plan_settlement reads nets from PlayerBalance entries."""
        balances = {
            "alice": PlayerBalance(
                user_id="alice",
                total_buyin=Decimal("40.00"),
                total_cashout=Decimal("10.00"),
            ),
            "bob": PlayerBalance(
                user_id="bob",
                total_buyin=Decimal("20.00"),
                total_cashout=Decimal("50.00"),
            ),
        }

        transfers = plan_settlement(balances)

        assert [(t.from_user_id, t.to_user_id, t.amount) for t in transfers] == [
            ("alice", "bob", Decimal("30.00")),
        ]


class TestPlanEdgeCases:
    """Empty and near-zero inputs."""

    def test_empty(self):
        assert plan_from_nets({}) == []

    def test_all_zero(self):
        """Nobody owes anything: no settlements needed."""
        assert plan_from_nets(nets(A="0", B="0.00", C="0")) == []

    def test_one_cent_positions_paid(self):
        """One-cent positions still get a transfer."""
        transfers = plan_from_nets(nets(A="-0.01", B="0.01"))

        assert [(t.from_user_id, t.to_user_id, t.amount) for t in transfers] == [
            ("A", "B", Decimal("0.01")),
        ]

    def test_one_cent_losers_add_up(self, caplog):
        """Cents lost across players are paid out to the winner in full."""
        balances = {
            user_id: PlayerBalance(
                user_id=user_id,
                total_buyin=Decimal("10.00"),
                total_cashout=Decimal(cashout),
            )
            for user_id, cashout in {"A": "9.99", "B": "9.99", "C": "10.02"}.items()
        }

        with caplog.at_level(logging.WARNING):
            transfers = plan_settlement(balances)

        assert [(t.from_user_id, t.to_user_id, t.amount) for t in transfers] == [
            ("A", "C", Decimal("0.01")),
            ("B", "C", Decimal("0.01")),
        ]
        assert "Unbalanced settlement input" not in caplog.text

    def test_only_debtors(self):
        assert plan_from_nets(nets(A="-5", B="-5")) == []

    def test_only_creditors(self):
        assert plan_from_nets(nets(A="5", B="5")) == []

    def test_unbalanced_input_logs_leftover(self, caplog):
        """Unmatched remainder is reported, not invented."""
        with caplog.at_level(logging.WARNING):
            transfers = plan_from_nets(nets(A="-50", B="40"))

        assert [(t.from_user_id, t.to_user_id, t.amount) for t in transfers] == [
            ("A", "B", Decimal("40.00")),
        ]
        assert "Unbalanced settlement input" in caplog.text


SCENARIOS = [
    nets(A="-50", B="-30", C="80"),
    nets(A="-10", B="-20", C="15", D="15"),
    nets(A="-33.33", B="-33.33", C="-33.34", D="100"),
    nets(A="100", B="-0.02", C="-99.98"),
    nets(a="-7.25", b="-12.75", c="4.00", d="6.00", e="10.00"),
    nets(p1="-20", p2="-20", p3="-20", p4="-20", p5="45.50", p6="34.50"),
    nets(x="25.10", y="-25.10", z="0"),
    nets(winner="0.10", **{f"p{n}": "-0.01" for n in range(10)}),
]


class TestPlanProperties:
    """Invariants that hold for any balanced input."""

    @pytest.mark.parametrize("balances", SCENARIOS)
    def test_transfers_zero_every_balance(self, balances):
        transfers = plan_from_nets(balances)

        settled = apply_transfers(balances, transfers)

        assert all(abs(net) <= Decimal("0.01") for net in settled.values())

    @pytest.mark.parametrize("balances", SCENARIOS)
    def test_amounts_conserved(self, balances):
        """Total transferred equals total owed equals total due."""
        transfers = plan_from_nets(balances)

        owed = sum(-net for net in balances.values() if net < 0)
        due = sum(net for net in balances.values() if net > 0)

        assert sum(t.amount for t in transfers) == owed == due

    @pytest.mark.parametrize("balances", SCENARIOS)
    def test_transfer_count_bounded(self, balances):
        """At most debtors + creditors - 1 transfers."""
        transfers = plan_from_nets(balances)

        debtors = sum(1 for net in balances.values() if net < 0)
        creditors = sum(1 for net in balances.values() if net > 0)

        assert len(transfers) <= debtors + creditors - 1

    @pytest.mark.parametrize("balances", SCENARIOS)
    def test_amounts_positive_and_within_debt(self, balances):
        """No transfer exceeds what the payer owes or the payee is due."""
        for t in plan_from_nets(balances):
            assert t.amount > 0
            assert t.amount <= -balances[t.from_user_id]
            assert t.amount <= balances[t.to_user_id]

    @pytest.mark.parametrize("balances", SCENARIOS)
    def test_deterministic(self, balances):
        """Same balances, same plan, regardless of mapping order."""
        reordered = dict(reversed(list(balances.items())))

        assert plan_from_nets(balances) == plan_from_nets(balances)
        assert plan_from_nets(balances) == plan_from_nets(reordered)
