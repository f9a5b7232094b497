"""SQLite database operations for Poker Ledger."""

import sqlite3
import uuid
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from .exceptions import GameNotFoundError, TransactionNotFoundError
from .models import (
    Game,
    GameStatus,
    PaymentMethod,
    SettlementRecord,
    Transaction,
    TransactionType,
)
from .money import round_to_currency


def new_id() -> str:
    """Generate a new record ID."""
    return uuid.uuid4().hex


class Database:
    """SQLite database manager.

    Also serves as the persistent SettlementStatusStore.
    """

    def __init__(self, db_path: Path | str):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Games table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS games (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'scheduled',
                currency TEXT NOT NULL DEFAULT 'USD',
                buyin_amount TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        # Participants table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS game_participants (
                game_id TEXT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL,
                joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (game_id, user_id)
            )
        """
        )

        # Transactions table (amounts stored as decimal strings)
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                game_id TEXT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL CHECK (type IN ('buyin', 'cashout')),
                amount TEXT NOT NULL,
                timestamp TIMESTAMP NOT NULL,
                notes TEXT
            )
        """
        )

        # Settlements table, one row per ordered pair per game
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                game_id TEXT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
                from_user_id TEXT NOT NULL,
                to_user_id TEXT NOT NULL,
                amount TEXT NOT NULL,
                payment_method TEXT NOT NULL
                    CHECK (payment_method IN ('cash', 'paypal', 'venmo', 'zelle')),
                settled_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (game_id, from_user_id, to_user_id),
                CHECK (from_user_id != to_user_id)
            )
        """
        )

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_game_id "
            "ON transactions(game_id)"
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Game operations
    # ========================================================================

    def create_game(
        self, name: str, buyin_amount: Decimal, currency: str = "USD"
    ) -> Game:
        """Create a new scheduled game."""
        game = Game(
            id=new_id(),
            name=name,
            currency=currency,
            buyin_amount=round_to_currency(buyin_amount),
        )
        self.conn.execute(
            """
            INSERT INTO games (id, name, status, currency, buyin_amount, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                game.id,
                game.name,
                game.status.value,
                game.currency,
                str(game.buyin_amount),
                game.created_at.isoformat(),
            ),
        )
        self.conn.commit()
        return game

    def get_game(self, game_id: str) -> Game:
        """Get a game by ID.

        Raises:
            GameNotFoundError: If no such game exists
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, name, status, currency, buyin_amount, created_at
            FROM games WHERE id = ?
            """,
            (game_id,),
        )
        row = cursor.fetchone()
        if not row:
            raise GameNotFoundError(game_id)
        return self._row_to_game(row)

    def list_games(
        self,
        status: GameStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Game]:
        """Get games, newest first, optionally filtered by status and paged."""
        query = """
            SELECT id, name, status, currency, buyin_amount, created_at
            FROM games
        """
        params: list = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(GameStatus(status).value)
        query += " ORDER BY created_at DESC, id"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        cursor = self.conn.cursor()
        cursor.execute(query, params)
        return [self._row_to_game(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_game(row: sqlite3.Row) -> Game:
        return Game(
            id=row["id"],
            name=row["name"],
            status=GameStatus(row["status"]),
            currency=row["currency"],
            buyin_amount=Decimal(row["buyin_amount"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def update_game_status(self, game_id: str, status: GameStatus) -> Game:
        """Set a game's status."""
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE games SET status = ? WHERE id = ?", (status.value, game_id)
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            raise GameNotFoundError(game_id)
        return self.get_game(game_id)

    # ========================================================================
    # Participant operations
    # ========================================================================

    def add_participant(self, game_id: str, user_id: str):
        """Seat a player in a game. Adding the same player twice is a no-op."""
        self.conn.execute(
            """
            INSERT INTO game_participants (game_id, user_id, joined_at)
            VALUES (?, ?, ?)
            ON CONFLICT(game_id, user_id) DO NOTHING
            """,
            (game_id, user_id, datetime.now().isoformat()),
        )
        self.conn.commit()

    def get_participants(self, game_id: str) -> list[str]:
        """Get user IDs seated in a game, in join order."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT user_id FROM game_participants
            WHERE game_id = ?
            ORDER BY joined_at, user_id
            """,
            (game_id,),
        )
        return [row["user_id"] for row in cursor.fetchall()]

    # ========================================================================
    # Transaction operations
    # ========================================================================

    def add_transaction(
        self,
        game_id: str,
        user_id: str,
        type: TransactionType,
        amount: Decimal,
        notes: str | None = None,
        timestamp: datetime | None = None,
    ) -> Transaction:
        """Record a buy-in or cash-out."""
        txn = Transaction(
            id=new_id(),
            game_id=game_id,
            user_id=user_id,
            type=type,
            amount=round_to_currency(amount),
            timestamp=timestamp or datetime.now(),
            notes=notes,
        )
        self.conn.execute(
            """
            INSERT INTO transactions (
                id, game_id, user_id, type, amount, timestamp, notes
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                txn.id,
                txn.game_id,
                txn.user_id,
                txn.type,
                str(txn.amount),
                txn.timestamp.isoformat(),
                txn.notes,
            ),
        )
        self.conn.commit()
        return txn

    def get_transaction(self, transaction_id: str) -> Transaction:
        """Get a transaction by ID.

        Raises:
            TransactionNotFoundError: If no such transaction exists
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, game_id, user_id, type, amount, timestamp, notes
            FROM transactions WHERE id = ?
            """,
            (transaction_id,),
        )
        row = cursor.fetchone()
        if not row:
            raise TransactionNotFoundError(transaction_id)
        return self._row_to_transaction(row)

    def update_transaction(
        self, transaction_id: str, amount: Decimal, notes: str | None = None
    ) -> Transaction:
        """Change a transaction's amount and notes."""
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE transactions SET amount = ?, notes = ? WHERE id = ?",
            (str(round_to_currency(amount)), notes, transaction_id),
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            raise TransactionNotFoundError(transaction_id)
        return self.get_transaction(transaction_id)

    def delete_transaction(self, transaction_id: str):
        """Delete a transaction."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
        self.conn.commit()
        if cursor.rowcount == 0:
            raise TransactionNotFoundError(transaction_id)

    def get_transactions(self, game_id: str) -> list[Transaction]:
        """Get all transactions for a game, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, game_id, user_id, type, amount, timestamp, notes
            FROM transactions
            WHERE game_id = ?
            ORDER BY timestamp, id
            """,
            (game_id,),
        )
        return [self._row_to_transaction(row) for row in cursor.fetchall()]

    def get_user_transactions(
        self, user_id: str, game_id: str | None = None
    ) -> list[Transaction]:
        """Get a player's transactions, oldest first, in one game or all games."""
        query = """
            SELECT id, game_id, user_id, type, amount, timestamp, notes
            FROM transactions
            WHERE user_id = ?
        """
        params: list = [user_id]
        if game_id is not None:
            query += " AND game_id = ?"
            params.append(game_id)
        query += " ORDER BY timestamp, id"

        cursor = self.conn.cursor()
        cursor.execute(query, params)
        return [self._row_to_transaction(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            game_id=row["game_id"],
            user_id=row["user_id"],
            type=row["type"],
            amount=Decimal(row["amount"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            notes=row["notes"],
        )

    # ========================================================================
    # Settlement status operations
    # ========================================================================

    def mark_settled(
        self,
        game_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: Decimal,
        method: PaymentMethod,
    ) -> SettlementRecord:
        """Insert or overwrite the settlement record for an ordered pair."""
        record = SettlementRecord(
            game_id=game_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=round_to_currency(amount),
            payment_method=PaymentMethod(method),
            settled_at=datetime.now(),
        )
        self.conn.execute(
            """
            INSERT INTO settlements (
                game_id, from_user_id, to_user_id, amount,
                payment_method, settled_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(game_id, from_user_id, to_user_id) DO UPDATE SET
                amount = excluded.amount,
                payment_method = excluded.payment_method,
                settled_at = excluded.settled_at
            """,
            (
                record.game_id,
                record.from_user_id,
                record.to_user_id,
                str(record.amount),
                record.payment_method.value,
                record.settled_at.isoformat(),
            ),
        )
        self.conn.commit()
        return record

    def reset(self, game_id: str, from_user_id: str, to_user_id: str) -> bool:
        """Delete the settlement record for a pair. Returns False if none existed."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            DELETE FROM settlements
            WHERE game_id = ? AND from_user_id = ? AND to_user_id = ?
            """,
            (game_id, from_user_id, to_user_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def list_settled(self, game_id: str) -> list[SettlementRecord]:
        """Get all settlement records for a game."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT game_id, from_user_id, to_user_id, amount,
                   payment_method, settled_at
            FROM settlements
            WHERE game_id = ?
            ORDER BY settled_at, id
            """,
            (game_id,),
        )
        return [
            SettlementRecord(
                game_id=row["game_id"],
                from_user_id=row["from_user_id"],
                to_user_id=row["to_user_id"],
                amount=Decimal(row["amount"]),
                payment_method=PaymentMethod(row["payment_method"]),
                settled_at=datetime.fromisoformat(row["settled_at"]),
            )
            for row in cursor.fetchall()
        ]
