"""Greedy debt simplification for settling a game.

Given each player's net position, produce a list of debtor -> creditor
transfers that brings every balance to zero. The walk is deterministic:

- debtors are taken smallest debt first
- creditors are taken largest credit first
- ties are broken by user ID

Each step pays min(remaining debt, remaining credit) and advances past any
party left at zero, so a balanced input of D debtors and C creditors yields at
most D + C - 1 transfers. This bounds the plan but is not always the global
minimum number of transfers.
"""

import logging
from collections.abc import Mapping
from decimal import Decimal

from .ledger import net_balances
from .models import PlayerBalance, SettlementTransfer
from .money import from_cents, to_cents

logger = logging.getLogger(__name__)

NO_SETTLEMENTS_MESSAGE = "No settlements needed"


def plan_settlement(
    balances: Mapping[str, PlayerBalance],
) -> list[SettlementTransfer]:
    """Plan settlement transfers from a ledger's balances."""
    return plan_from_nets(net_balances(balances))


def plan_from_nets(nets: Mapping[str, Decimal]) -> list[SettlementTransfer]:
    """
    Plan settlement transfers from net balances.

    Args:
        nets: User ID -> net balance (negative = owes, positive = is owed)

    Returns:
        Transfers in the order they were produced; empty when every net is
        zero to the cent
    """
    debtors: list[tuple[str, int]] = []
    creditors: list[tuple[str, int]] = []

    for user_id, net in nets.items():
        cents = to_cents(net)
        if cents < 0:
            debtors.append((user_id, -cents))
        elif cents > 0:
            creditors.append((user_id, cents))

    debtors.sort(key=lambda d: (d[1], d[0]))
    creditors.sort(key=lambda c: (-c[1], c[0]))

    transfers = []
    i = 0
    j = 0

    while i < len(debtors) and j < len(creditors):
        debtor_id, debt = debtors[i]
        creditor_id, credit = creditors[j]

        amount = min(debt, credit)
        transfers.append(
            SettlementTransfer(
                from_user_id=debtor_id,
                to_user_id=creditor_id,
                amount=from_cents(amount),
            )
        )

        debtors[i] = (debtor_id, debt - amount)
        creditors[j] = (creditor_id, credit - amount)

        if debtors[i][1] == 0:
            i += 1
        if creditors[j][1] == 0:
            j += 1

    leftover_debt = sum(debt for _, debt in debtors[i:])
    leftover_credit = sum(credit for _, credit in creditors[j:])
    if leftover_debt or leftover_credit:
        # Only reachable when the nets don't sum to zero
        logger.warning(
            f"Unbalanced settlement input: {from_cents(leftover_debt)} owed and "
            f"{from_cents(leftover_credit)} due left unmatched"
        )

    logger.debug(
        f"Planned {len(transfers)} transfers for "
        f"{len(debtors)} debtors and {len(creditors)} creditors"
    )

    return transfers
