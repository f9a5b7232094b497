"""Balance check that gates closing a game."""

import logging
from collections.abc import Mapping
from decimal import Decimal

from .exceptions import GameNotBalancedError
from .ledger import game_totals
from .models import BalanceValidation, PlayerBalance
from .money import EPSILON

logger = logging.getLogger(__name__)


def is_balanced(balances: Mapping[str, PlayerBalance]) -> tuple[bool, Decimal]:
    """
    Check whether total buy-ins equal total cash-outs within EPSILON.

    Returns:
        Tuple of (balanced, discrepancy) where discrepancy is
        total_buyin - total_cashout
    """
    total_buyin, total_cashout = game_totals(balances)
    discrepancy = total_buyin - total_cashout
    return abs(discrepancy) <= EPSILON, discrepancy


def validate_balance(balances: Mapping[str, PlayerBalance]) -> BalanceValidation:
    """Check the books and describe the outcome for display."""
    total_buyin, total_cashout = game_totals(balances)
    balanced, discrepancy = is_balanced(balances)

    if balanced:
        message = "Buy-ins and cash-outs match!"
    else:
        message = (
            f"Buy-ins (${total_buyin:.2f}) do not match cash-outs "
            f"(${total_cashout:.2f}). Difference: ${abs(discrepancy):.2f}"
        )

    return BalanceValidation(
        balanced=balanced,
        total_buyin=total_buyin,
        total_cashout=total_cashout,
        discrepancy=discrepancy,
        message=message,
    )


def ensure_balanced(balances: Mapping[str, PlayerBalance]) -> BalanceValidation:
    """
    Require the books to balance.

    Raises:
        GameNotBalancedError: If buy-ins and cash-outs differ by more than EPSILON
    """
    validation = validate_balance(balances)
    if not validation.balanced:
        logger.warning(validation.message)
        raise GameNotBalancedError(
            discrepancy=validation.discrepancy,
            total_buyin=validation.total_buyin,
            total_cashout=validation.total_cashout,
            message=validation.message,
        )
    return validation
