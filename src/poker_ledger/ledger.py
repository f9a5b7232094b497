"""Aggregation of game transactions into per-player balances.

Everything here is a pure function of its inputs: balances are recomputed from
the transaction list on every read and never stored.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal

from .models import PlayerBalance, Transaction
from .money import from_cents, to_cents


def compute_balances(
    participants: Iterable[str], transactions: Iterable[Transaction]
) -> dict[str, PlayerBalance]:
    """
    Aggregate transactions into one PlayerBalance per player.

    Players listed in ``participants`` get an entry even when they have no
    transactions yet. Totals are summed in integer cents, so the result does
    not depend on input order.

    Args:
        participants: User IDs of everyone seated in the game
        transactions: Buy-ins and cash-outs for a single game, in any order

    Returns:
        Mapping of user ID to PlayerBalance, ordered by user ID

    Raises:
        ValueError: If transactions belong to more than one game
    """
    buyin_cents: dict[str, int] = {}
    cashout_cents: dict[str, int] = {}
    buyins: dict[str, list[Transaction]] = {}
    cashouts: dict[str, list[Transaction]] = {}

    for user_id in participants:
        buyin_cents.setdefault(user_id, 0)
        cashout_cents.setdefault(user_id, 0)

    game_ids = set()
    for txn in transactions:
        game_ids.add(txn.game_id)
        buyin_cents.setdefault(txn.user_id, 0)
        cashout_cents.setdefault(txn.user_id, 0)

        if txn.type == "buyin":
            buyin_cents[txn.user_id] += to_cents(txn.amount)
            buyins.setdefault(txn.user_id, []).append(txn)
        else:
            cashout_cents[txn.user_id] += to_cents(txn.amount)
            cashouts.setdefault(txn.user_id, []).append(txn)

    if len(game_ids) > 1:
        raise ValueError(
            f"Transactions span multiple games: {', '.join(sorted(game_ids))}"
        )

    return {
        user_id: PlayerBalance(
            user_id=user_id,
            total_buyin=from_cents(buyin_cents[user_id]),
            total_cashout=from_cents(cashout_cents[user_id]),
            buyins=_chronological(buyins.get(user_id, [])),
            cashouts=_chronological(cashouts.get(user_id, [])),
        )
        for user_id in sorted(buyin_cents)
    }


def _chronological(transactions: list[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: (t.timestamp, t.id))


def game_totals(balances: Mapping[str, PlayerBalance]) -> tuple[Decimal, Decimal]:
    """Sum buy-ins and cash-outs across all players.

    Returns:
        Tuple of (total_buyin, total_cashout)
    """
    total_buyin = sum(to_cents(b.total_buyin) for b in balances.values())
    total_cashout = sum(to_cents(b.total_cashout) for b in balances.values())
    return from_cents(total_buyin), from_cents(total_cashout)


def net_balances(balances: Mapping[str, PlayerBalance]) -> dict[str, Decimal]:
    """Extract user ID -> net balance from a balance mapping."""
    return {user_id: balance.net for user_id, balance in balances.items()}
