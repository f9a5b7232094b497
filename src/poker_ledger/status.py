"""Settlement status tracking: which planned transfers have been paid.

A SettlementRecord is only meaningful while the current plan still contains a
transfer for the same ordered pair with a comparable amount. Records that lose
that backing (for example after a buy-in is edited) are orphans; ``reconcile``
finds them and ``check_consistency`` refuses to proceed while any remain.
"""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from .exceptions import InconsistentStateError
from .models import (
    PaymentMethod,
    ReconciliationReport,
    Settled,
    SettlementLine,
    SettlementRecord,
    SettlementTransfer,
    Unsettled,
)
from .money import amounts_equal, round_to_currency

logger = logging.getLogger(__name__)


class SettlementStatusStore(Protocol):
    """Storage for settlement records, keyed by (game_id, from_user_id, to_user_id)."""

    def mark_settled(
        self,
        game_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: Decimal,
        method: PaymentMethod,
    ) -> SettlementRecord:
        """Insert or overwrite the record for the ordered pair."""
        ...

    def reset(self, game_id: str, from_user_id: str, to_user_id: str) -> bool:
        """Remove the record for the pair. Returns False if there was none."""
        ...

    def list_settled(self, game_id: str) -> list[SettlementRecord]:
        """Return all records for a game."""
        ...


class InMemorySettlementStore:
    """Settlement store scoped to a single process, e.g. one game session."""

    def __init__(self):
        self._records: dict[tuple[str, str, str], SettlementRecord] = {}
        self._lock = threading.Lock()

    def mark_settled(
        self,
        game_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: Decimal,
        method: PaymentMethod,
    ) -> SettlementRecord:
        record = SettlementRecord(
            game_id=game_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=round_to_currency(amount),
            payment_method=PaymentMethod(method),
            settled_at=datetime.now(),
        )
        with self._lock:
            self._records[(game_id, from_user_id, to_user_id)] = record
        return record

    def reset(self, game_id: str, from_user_id: str, to_user_id: str) -> bool:
        with self._lock:
            removed = self._records.pop((game_id, from_user_id, to_user_id), None)
        return removed is not None

    def list_settled(self, game_id: str) -> list[SettlementRecord]:
        with self._lock:
            return [
                record
                for (record_game_id, _, _), record in self._records.items()
                if record_game_id == game_id
            ]


def overlay_status(
    transfers: Iterable[SettlementTransfer], records: Iterable[SettlementRecord]
) -> list[SettlementLine]:
    """
    Join the current plan with paid/unpaid status.

    A transfer shows as settled only when a record exists for its exact pair
    with an amount within EPSILON; orphaned records never mark a transfer paid.
    """
    by_pair = {record.pair: record for record in records}
    lines = []
    for transfer in transfers:
        record = by_pair.get((transfer.from_user_id, transfer.to_user_id))
        if record and amounts_equal(record.amount, transfer.amount):
            status = Settled(method=record.payment_method, settled_at=record.settled_at)
        else:
            status = Unsettled()
        lines.append(SettlementLine(transfer=transfer, status=status))
    return lines


def reconcile(
    transfers: Iterable[SettlementTransfer], records: Iterable[SettlementRecord]
) -> ReconciliationReport:
    """Split records into those backed by the current plan and orphans."""
    planned = {(t.from_user_id, t.to_user_id): t.amount for t in transfers}
    report = ReconciliationReport()

    for record in records:
        amount = planned.get(record.pair)
        if amount is not None and amounts_equal(record.amount, amount):
            report.matched.append(record)
        else:
            report.orphaned.append(record)

    return report


def check_consistency(
    transfers: Iterable[SettlementTransfer], records: Iterable[SettlementRecord]
) -> ReconciliationReport:
    """
    Require every record to be backed by the current plan.

    Raises:
        InconsistentStateError: If any record is orphaned
    """
    report = reconcile(transfers, records)
    if not report.is_consistent:
        raise InconsistentStateError(report.orphaned)
    return report


def purge_orphans(
    store: SettlementStatusStore, game_id: str, report: ReconciliationReport
) -> int:
    """Delete orphaned records from the store. Returns how many were removed."""
    removed = 0
    for record in report.orphaned:
        logger.warning(
            f"Removing stale settlement {record.from_user_id} -> {record.to_user_id} "
            f"(${record.amount}) for game {game_id}: no longer in plan"
        )
        if store.reset(game_id, record.from_user_id, record.to_user_id):
            removed += 1
    return removed
