"""Service layer that composes the database with the settlement engine.

The engine functions (ledger, validator, planner, status overlay) are pure and
always receive a snapshot already read from the database. This module owns
the I/O around them and serializes closing a game against transaction writes
for the same game.
"""

import logging
import threading
from collections import defaultdict
from decimal import Decimal

from .config import Settings
from .db import Database
from .exceptions import (
    GameStateError,
    InvalidSettlementError,
    InvalidTransactionError,
    TransferNotFoundError,
    ValidationError,
)
from .ledger import compute_balances
from .models import (
    BalanceValidation,
    Game,
    GameStatus,
    PaymentMethod,
    PlayerBalance,
    ReconciliationReport,
    SettlementLine,
    SettlementRecord,
    SettlementTransfer,
    Transaction,
    TransactionType,
)
from .money import (
    MAX_NOTES_LENGTH,
    MAX_SETTLEMENT_AMOUNT,
    MIN_SETTLEMENT_AMOUNT,
    amounts_equal,
    validate_amount,
)
from .planner import plan_settlement
from .status import (
    SettlementStatusStore,
    check_consistency,
    overlay_status,
    purge_orphans,
    reconcile,
)
from .validator import ensure_balanced, validate_balance

logger = logging.getLogger(__name__)

OPEN_STATUSES = (GameStatus.SCHEDULED, GameStatus.IN_PROGRESS)


class GameService:
    """Service for recording game transactions and settling up."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        store: SettlementStatusStore | None = None,
    ):
        """Initialize the game service.

        Settlement records live in the database unless another store is given.
        """
        self.settings = settings
        self.db = database
        self.store: SettlementStatusStore = store if store is not None else database
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _game_lock(self, game_id: str) -> threading.Lock:
        """
        Return the write lock for an existing game.

        Raises GameNotFoundError before allocating anything, so only known
        games get a lock. Locks are kept for the lifetime of the service.
        """
        self.db.get_game(game_id)
        with self._locks_guard:
            return self._locks[game_id]

    # ========================================================================
    # Games
    # ========================================================================

    def create_game(
        self,
        name: str,
        buyin_amount: Decimal | None = None,
        currency: str | None = None,
        participants: list[str] | None = None,
    ) -> Game:
        """Create a scheduled game and seat its players."""
        if not name.strip():
            raise ValidationError("Game name is required")

        buyin = buyin_amount
        if buyin is None:
            buyin = self.settings.default_buyin_amount
        error = validate_amount(buyin, context="Buy-in amount")
        if error:
            raise InvalidTransactionError(error)

        game = self.db.create_game(
            name=name.strip(),
            buyin_amount=buyin,
            currency=currency or self.settings.default_currency,
        )
        for user_id in participants or []:
            self.db.add_participant(game.id, user_id)

        logger.info(
            f"Created game {game.id} ({game.name}) with buy-in {game.buyin_amount}"
        )
        return game

    def add_participant(self, game_id: str, user_id: str):
        """Seat a player in an open game."""
        game = self.db.get_game(game_id)
        if game.status not in OPEN_STATUSES:
            raise GameStateError(f"Cannot add players to {game.status.value} game")
        self.db.add_participant(game_id, user_id)

    def start_game(self, game_id: str) -> Game:
        """
        Start a scheduled game.

        Records an initial buy-in of the game's buy-in amount for every
        participant who has not bought in yet.
        """
        with self._game_lock(game_id):
            game = self.db.get_game(game_id)
            if game.status != GameStatus.SCHEDULED:
                raise GameStateError(f"Cannot start {game.status.value} game")

            game = self.db.update_game_status(game_id, GameStatus.IN_PROGRESS)

            bought_in = {
                txn.user_id
                for txn in self.db.get_transactions(game_id)
                if txn.type == "buyin"
            }
            for user_id in self.db.get_participants(game_id):
                if user_id in bought_in:
                    continue
                self.db.add_transaction(
                    game_id=game_id,
                    user_id=user_id,
                    type="buyin",
                    amount=game.buyin_amount,
                    notes="Initial buy-in",
                )
                logger.info(
                    f"Created initial buy-in for {user_id}: {game.buyin_amount}"
                )

            self._reconcile_locked(game_id, purge=True)

        logger.info(f"Started game {game_id}")
        return game

    def close_game(self, game_id: str) -> Game:
        """
        Mark a game completed once its books balance.

        Raises:
            GameNotBalancedError: If buy-ins and cash-outs differ by more than 0.01
            GameStateError: If the game is not in progress
        """
        with self._game_lock(game_id):
            game = self.db.get_game(game_id)
            if game.status != GameStatus.IN_PROGRESS:
                raise GameStateError(f"Cannot close {game.status.value} game")

            ensure_balanced(self._balances(game_id))
            game = self.db.update_game_status(game_id, GameStatus.COMPLETED)

        logger.info(f"Closed game {game_id}")
        return game

    def cancel_game(self, game_id: str) -> Game:
        """Cancel a game that has not been completed."""
        with self._game_lock(game_id):
            game = self.db.get_game(game_id)
            if game.status not in OPEN_STATUSES:
                raise GameStateError(f"Cannot cancel {game.status.value} game")
            return self.db.update_game_status(game_id, GameStatus.CANCELLED)

    # ========================================================================
    # Transactions
    # ========================================================================

    def add_transaction(
        self,
        game_id: str,
        user_id: str,
        type: TransactionType,
        amount: Decimal,
        notes: str | None = None,
    ) -> Transaction:
        """Record a buy-in, additional buy-in or cash-out."""
        if type not in ("buyin", "cashout"):
            raise InvalidTransactionError(
                f'Invalid transaction type: {type}. Must be "buyin" or "cashout"'
            )
        self._validate_transaction(Decimal(amount), notes)

        with self._game_lock(game_id):
            game = self.db.get_game(game_id)
            if game.status not in OPEN_STATUSES:
                raise GameStateError(
                    f"Cannot add transactions to {game.status.value} game"
                )

            self.db.add_participant(game_id, user_id)
            txn = self.db.add_transaction(
                game_id=game_id,
                user_id=user_id,
                type=type,
                amount=Decimal(amount),
                notes=_clean_notes(notes),
            )
            self._reconcile_locked(game_id, purge=True)

        logger.info(f"Recorded {type} of {txn.amount} for {user_id} in game {game_id}")
        return txn

    def update_transaction(
        self, transaction_id: str, amount: Decimal, notes: str | None = None
    ) -> Transaction:
        """Edit a transaction of a game that is not completed."""
        self._validate_transaction(Decimal(amount), notes)
        existing = self.db.get_transaction(transaction_id)

        with self._game_lock(existing.game_id):
            self._require_editable(existing.game_id)
            txn = self.db.update_transaction(
                transaction_id, Decimal(amount), _clean_notes(notes)
            )
            self._reconcile_locked(existing.game_id, purge=True)

        logger.info(
            f"Updated transaction {transaction_id}: {existing.amount} -> {txn.amount}"
        )
        return txn

    def delete_transaction(self, transaction_id: str):
        """Delete a transaction of a game that is not completed."""
        existing = self.db.get_transaction(transaction_id)

        with self._game_lock(existing.game_id):
            self._require_editable(existing.game_id)
            self.db.delete_transaction(transaction_id)
            self._reconcile_locked(existing.game_id, purge=True)

        logger.info(f"Deleted transaction {transaction_id}")

    def _require_editable(self, game_id: str):
        game = self.db.get_game(game_id)
        if game.status == GameStatus.COMPLETED:
            raise GameStateError("Transactions of a completed game cannot be changed")

    @staticmethod
    def _validate_transaction(amount: Decimal, notes: str | None):
        error = validate_amount(amount, context="Transaction amount")
        if error:
            raise InvalidTransactionError(f"Invalid transaction: {error}")
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise InvalidTransactionError(
                f"Notes must not exceed {MAX_NOTES_LENGTH} characters"
            )

    # ========================================================================
    # Balances
    # ========================================================================

    def _balances(self, game_id: str) -> dict[str, PlayerBalance]:
        return compute_balances(
            self.db.get_participants(game_id), self.db.get_transactions(game_id)
        )

    def get_balances(self, game_id: str) -> dict[str, PlayerBalance]:
        """Compute every player's totals and net position."""
        self.db.get_game(game_id)
        return self._balances(game_id)

    def check_balance(self, game_id: str) -> BalanceValidation:
        """Check whether the game's buy-ins and cash-outs match."""
        return validate_balance(self.get_balances(game_id))

    def get_rankings(self, game_id: str) -> list[PlayerBalance]:
        """Players ordered by net result, biggest winner first."""
        balances = self.get_balances(game_id).values()
        return sorted(balances, key=lambda b: (-b.net, b.user_id))

    # ========================================================================
    # History
    # ========================================================================

    def list_games(
        self,
        status: GameStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Game]:
        """List games, newest first."""
        return self.db.list_games(status=status, limit=limit, offset=offset)

    def get_transactions(self, game_id: str) -> list[Transaction]:
        """Every transaction of a game, oldest first."""
        self.db.get_game(game_id)
        return self.db.get_transactions(game_id)

    def get_player_history(
        self, user_id: str, game_id: str | None = None
    ) -> list[Transaction]:
        """A player's transactions across all games, or within one game."""
        if game_id is not None:
            self.db.get_game(game_id)
        return self.db.get_user_transactions(user_id, game_id)

    # ========================================================================
    # Settlements
    # ========================================================================

    def get_settlement_plan(self, game_id: str) -> list[SettlementTransfer]:
        """Plan the transfers that settle the game from scratch."""
        return plan_settlement(self.get_balances(game_id))

    def get_settlement_lines(self, game_id: str) -> list[SettlementLine]:
        """Current plan with paid/unpaid status for each transfer."""
        transfers = self.get_settlement_plan(game_id)
        return overlay_status(transfers, self.store.list_settled(game_id))

    def mark_settled(
        self,
        game_id: str,
        from_user_id: str,
        to_user_id: str,
        method: PaymentMethod,
        amount: Decimal | None = None,
    ) -> SettlementRecord:
        """
        Record that a planned transfer was paid.

        Args:
            amount: Amount paid; defaults to the planned amount

        Raises:
            TransferNotFoundError: If the pair is not in the current plan
            InvalidSettlementError: If the amount is out of bounds or doesn't
                match the planned amount
        """
        if from_user_id == to_user_id:
            raise InvalidSettlementError("Payer and payee must be different people")

        with self._game_lock(game_id):
            transfer = self._find_transfer(game_id, from_user_id, to_user_id)
            paid = transfer.amount if amount is None else Decimal(amount)

            error = validate_amount(
                paid,
                min_amount=MIN_SETTLEMENT_AMOUNT,
                max_amount=MAX_SETTLEMENT_AMOUNT,
                context="Settlement amount",
            )
            if error:
                raise InvalidSettlementError(error)
            if paid <= 0:
                raise InvalidSettlementError("Settlement amount must be positive")
            if not amounts_equal(paid, transfer.amount):
                raise InvalidSettlementError(
                    f"Settlement amount ${paid:.2f} does not match "
                    f"planned amount ${transfer.amount:.2f}"
                )

            record = self.store.mark_settled(
                game_id, from_user_id, to_user_id, paid, PaymentMethod(method)
            )

        logger.info(
            f"Recorded settlement {from_user_id} -> {to_user_id}: "
            f"{record.amount} via {record.payment_method.value}"
        )
        return record

    def reset_settlement(
        self, game_id: str, from_user_id: str, to_user_id: str
    ) -> bool:
        """Undo a settlement. Resetting an unpaid pair is a no-op."""
        with self._game_lock(game_id):
            removed = self.store.reset(game_id, from_user_id, to_user_id)

        if removed:
            logger.info(f"Reset settlement {from_user_id} -> {to_user_id}")
        else:
            logger.debug(f"No settlement to reset for {from_user_id} -> {to_user_id}")
        return removed

    def reconcile_settlements(
        self, game_id: str, purge: bool = False
    ) -> ReconciliationReport:
        """
        Compare stored settlement records with the current plan.

        Args:
            purge: Delete records the plan no longer backs

        Returns:
            Report of matched and orphaned records (orphans as found, before
            any purge)
        """
        with self._game_lock(game_id):
            return self._reconcile_locked(game_id, purge=purge)

    def verify_settlements(self, game_id: str) -> ReconciliationReport:
        """
        Require all stored settlement records to match the current plan.

        Raises:
            InconsistentStateError: If any record is orphaned
        """
        return check_consistency(
            self.get_settlement_plan(game_id), self.store.list_settled(game_id)
        )

    def _reconcile_locked(self, game_id: str, purge: bool) -> ReconciliationReport:
        transfers = plan_settlement(self._balances(game_id))
        report = reconcile(transfers, self.store.list_settled(game_id))

        if report.orphaned:
            if purge:
                purge_orphans(self.store, game_id, report)
            else:
                for record in report.orphaned:
                    logger.warning(
                        f"Settlement {record.from_user_id} -> {record.to_user_id} "
                        f"for game {game_id} is not in the current plan"
                    )
        return report

    def _find_transfer(
        self, game_id: str, from_user_id: str, to_user_id: str
    ) -> SettlementTransfer:
        for transfer in plan_settlement(self._balances(game_id)):
            pair = (transfer.from_user_id, transfer.to_user_id)
            if pair == (from_user_id, to_user_id):
                return transfer
        raise TransferNotFoundError(game_id, from_user_id, to_user_id)


def _clean_notes(notes: str | None) -> str | None:
    if notes and notes.strip():
        return notes.strip()
    return None
