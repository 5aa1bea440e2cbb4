# Overview: Service-layer operations for purchases; owns the purchases table.

"""
Purchase Transaction Coordinator

One purchase = one database transaction containing exactly two writes:

    1. InventoryLedger.atomic_decrement(item_id, quantity)
    2. INSERT purchases (item_id, quantity, user_id)

then COMMIT. If (1) changes no row the transaction is rolled back and the
cause is reported as NotFound or InsufficientStock. If anything fails after
(1) the whole transaction is rolled back, so stock is never decremented
without a matching purchase record and vice versa.

Lock contention (OperationalError: deadlock, lock wait timeout, SQLite
"database is locked") is retried with exponential backoff; since a failed
attempt leaves nothing behind, a retry is always safe. When retries run
out, the caller sees TransientStorageFailure and may retry the purchase.

Authorization (admins may not purchase) is checked by the route decorator,
not here.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..errors import InsufficientStock, NotFound, TransientStorageFailure
from ..models import PurchaseRecord
from ..validation import parse_positive_int
from .concurrency import run_with_retry
from .inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)


class PurchaseCoordinator:
    def __init__(
        self,
        session,
        ledger: InventoryLedger,
        *,
        retry_attempts: int = 3,
        retry_backoff: float = 0.05,
    ):
        self._session = session
        self._ledger = ledger
        self._retry_attempts = max(1, retry_attempts)
        self._retry_backoff = retry_backoff

    def _append_record(self, item_id: int, quantity: int, user_id: int | None) -> PurchaseRecord:
        record = PurchaseRecord(item_id=item_id, quantity=quantity, user_id=user_id)
        self._session.add(record)
        self._session.flush()
        return record

    def _purchase_once(self, item_id: int, quantity: int, user_id: int | None) -> PurchaseRecord:
        try:
            applied = self._ledger.atomic_decrement(item_id, quantity)
            if not applied:
                self._session.rollback()
                if not self._ledger.exists(item_id):
                    raise NotFound("Item not found")
                raise InsufficientStock("Insufficient stock")

            record = self._append_record(item_id, quantity, user_id)
            self._session.commit()
            return record
        except Exception:
            self._session.rollback()
            raise

    def purchase(self, item_id, quantity, user_id: int | None) -> PurchaseRecord:
        """
        Buy `quantity` units of `item_id` on behalf of `user_id`.

        Raises:
            InvalidInput: quantity (or item_id) is not a positive integer
            NotFound: no such item
            InsufficientStock: fewer than `quantity` units left
            TransientStorageFailure: storage kept failing; nothing was applied
        """
        item_id = parse_positive_int(item_id, "Invalid item ID")
        quantity = parse_positive_int(quantity, "Invalid quantity")

        try:
            record = run_with_retry(
                self._session,
                lambda: self._purchase_once(item_id, quantity, user_id),
                attempts=self._retry_attempts,
                backoff_base=self._retry_backoff,
            )
        except SQLAlchemyError as exc:
            logger.exception("Purchase transaction failed for item %s", item_id)
            raise TransientStorageFailure("Transaction failed") from exc

        logger.info(
            "Purchase %s: user=%s item=%s quantity=%s",
            record.id, user_id, item_id, quantity,
        )
        return record

    def history_for_user(self, user_id: int) -> list[PurchaseRecord]:
        """Purchases made by one user, newest first."""
        try:
            return list(self._session.execute(
                select(PurchaseRecord)
                .where(PurchaseRecord.user_id == user_id)
                .order_by(PurchaseRecord.purchased_at.desc(), PurchaseRecord.id.desc())
            ).scalars())
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to load purchase history for user id=%s", user_id)
            raise TransientStorageFailure() from exc
