"""Custom exceptions for Poker Ledger."""

from decimal import Decimal


class PokerLedgerError(Exception):
    """Base exception for all Poker Ledger errors."""

    pass


class ConfigurationError(PokerLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(PokerLedgerError):
    """Raised when an operation is rejected by a business rule."""

    pass


class GameNotBalancedError(ValidationError):
    """Raised when closing a game whose buy-ins and cash-outs don't match."""

    def __init__(
        self,
        discrepancy: Decimal,
        total_buyin: Decimal,
        total_cashout: Decimal,
        message: str | None = None,
    ):
        self.discrepancy = discrepancy
        self.total_buyin = total_buyin
        self.total_cashout = total_cashout
        super().__init__(
            message
            or f"Buy-ins (${total_buyin:.2f}) do not match cash-outs "
            f"(${total_cashout:.2f}). Difference: ${abs(discrepancy):.2f}"
        )


class InvalidTransactionError(ValidationError):
    """Raised when a buy-in or cash-out fails validation."""

    pass


class InvalidSettlementError(ValidationError):
    """Raised when a settlement payment fails validation."""

    pass


class GameStateError(ValidationError):
    """Raised when an operation is not allowed in the game's current status."""

    pass


class NotFoundError(PokerLedgerError):
    """Base class for lookups that found nothing."""

    pass


class GameNotFoundError(NotFoundError):
    """Raised when a game does not exist."""

    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Game not found: {game_id}")


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction does not exist."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class TransferNotFoundError(NotFoundError):
    """Raised when a transfer pair is not part of the current settlement plan."""

    def __init__(self, game_id: str, from_user_id: str, to_user_id: str):
        self.game_id = game_id
        self.from_user_id = from_user_id
        self.to_user_id = to_user_id
        super().__init__(
            f"No settlement from {from_user_id} to {to_user_id} "
            f"in the current plan for game {game_id}"
        )


class InconsistentStateError(PokerLedgerError):
    """Raised when settlement records no longer match the settlement plan."""

    def __init__(self, orphaned: list, message: str | None = None):
        self.orphaned = orphaned
        pairs = ", ".join(f"{r.from_user_id} -> {r.to_user_id}" for r in orphaned)
        super().__init__(
            message
            or f"{len(orphaned)} settlement record(s) not in current plan: {pairs}"
        )
