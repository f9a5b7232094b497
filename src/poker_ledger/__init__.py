"""Poker Ledger - Track home poker games and settle debts between players."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .ledger import compute_balances
from .models import (
    PaymentMethod,
    PlayerBalance,
    SettlementRecord,
    SettlementTransfer,
    Transaction,
)
from .planner import plan_settlement
from .service import GameService
from .status import InMemorySettlementStore, SettlementStatusStore
from .validator import is_balanced

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "compute_balances",
    "PaymentMethod",
    "PlayerBalance",
    "SettlementRecord",
    "SettlementTransfer",
    "Transaction",
    "plan_settlement",
    "GameService",
    "InMemorySettlementStore",
    "SettlementStatusStore",
    "is_balanced",
]
