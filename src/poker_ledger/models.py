"""Pydantic domain models for Poker Ledger."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

TransactionType = Literal["buyin", "cashout"]

# ============================================================================
# Game Models
# ============================================================================


class GameStatus(str, Enum):
    """Lifecycle status of a game."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Game(BaseModel):
    """A cash game."""

    id: str
    name: str
    status: GameStatus = GameStatus.SCHEDULED
    currency: str = "USD"
    buyin_amount: Decimal = Field(ge=0)
    created_at: datetime = Field(default_factory=datetime.now)


class Transaction(BaseModel):
    """A buy-in or cash-out recorded against a game."""

    id: str
    game_id: str
    user_id: str
    type: TransactionType
    amount: Decimal = Field(ge=0)
    timestamp: datetime
    notes: str | None = None


# ============================================================================
# Ledger Models
# ============================================================================


class PlayerBalance(BaseModel):
    """A player's aggregate position in one game. Derived, never stored."""

    user_id: str
    total_buyin: Decimal = Decimal("0.00")
    total_cashout: Decimal = Decimal("0.00")
    buyins: list[Transaction] = Field(default_factory=list)
    cashouts: list[Transaction] = Field(default_factory=list)

    @property
    def net(self) -> Decimal:
        """Cash-out minus buy-in; negative means the player owes money."""
        return self.total_cashout - self.total_buyin


class BalanceValidation(BaseModel):
    """Result of checking whether a game's books balance."""

    balanced: bool
    total_buyin: Decimal
    total_cashout: Decimal
    discrepancy: Decimal  # signed: total_buyin - total_cashout
    message: str


# ============================================================================
# Settlement Models
# ============================================================================


class PaymentMethod(str, Enum):
    """How a settlement transfer was paid."""

    CASH = "cash"
    VENMO = "venmo"
    PAYPAL = "paypal"
    ZELLE = "zelle"

    @property
    def label(self) -> str:
        return {"paypal": "PayPal"}.get(self.value, self.value.capitalize())


class SettlementTransfer(BaseModel):
    """A proposed payment from a net debtor to a net creditor."""

    from_user_id: str
    to_user_id: str
    amount: Decimal = Field(gt=0)


class SettlementRecord(BaseModel):
    """A persisted record that a transfer was paid.

    At most one record exists per (game_id, from_user_id, to_user_id).
    """

    game_id: str
    from_user_id: str
    to_user_id: str
    amount: Decimal = Field(gt=0)
    payment_method: PaymentMethod
    settled_at: datetime = Field(default_factory=datetime.now)

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_user_id, self.to_user_id)


class Unsettled(BaseModel):
    """Transfer not yet paid."""

    kind: Literal["unsettled"] = "unsettled"


class Settled(BaseModel):
    """Transfer paid with the given method."""

    kind: Literal["settled"] = "settled"
    method: PaymentMethod
    settled_at: datetime


SettlementStatus = Annotated[Unsettled | Settled, Field(discriminator="kind")]


class SettlementLine(BaseModel):
    """A planned transfer together with its paid/unpaid status."""

    transfer: SettlementTransfer
    status: SettlementStatus = Field(default_factory=Unsettled)

    @property
    def is_settled(self) -> bool:
        return isinstance(self.status, Settled)


class ReconciliationReport(BaseModel):
    """Settlement records split by whether the current plan still backs them."""

    matched: list[SettlementRecord] = Field(default_factory=list)
    orphaned: list[SettlementRecord] = Field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.orphaned
