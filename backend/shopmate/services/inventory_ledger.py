# Overview: Service-layer operations for inventory items; owns the inventory table.

"""
ShopMate Inventory Invariants (authoritative)

Inventory model:
- One InventoryItem row per item; stock is a stored, mutable quantity.
- item_id is chosen by the administrator creating the item.

Business invariants:
- stock >= 0 at all times.
- Create and update validate stock >= 0 on input.
- Purchases change stock only through atomic_decrement, a single
  conditional UPDATE. Two racing buyers can never both take the last unit,
  because the database re-evaluates "stock >= quantity" under its own row
  lock for each statement.
- atomic_decrement never commits. It runs inside whatever transaction the
  caller (PurchaseCoordinator) has open, so the decrement and the purchase
  record commit or roll back together.

Errors:
- Missing/malformed fields -> InvalidInput
- Unknown item_id -> NotFound
- Duplicate item_id -> Conflict
- Any storage error -> TransientStorageFailure (logged, session rolled back)
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import Conflict, InvalidInput, NotFound, TransientStorageFailure
from ..models import InventoryItem
from ..validation import MAX_INT, ModelValidationPolicy, enforce_rules_item, validate_payload
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)

ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"item_id", "name", "stock", "price"},
    required_on_create={"item_id", "name", "stock"},
)

ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "stock", "price"},
    required_on_create={"name", "stock"},
)

# Sentinel: "price not supplied" is different from "price set to null"
MISSING = object()


class InventoryLedger:
    def __init__(self, session):
        self._session = session

    def _storage_failure(self, action: str) -> TransientStorageFailure:
        self._session.rollback()
        logger.exception("Failed to %s", action)
        return TransientStorageFailure()

    def _load(self, item_id: int, *, lock: bool = False) -> InventoryItem | None:
        query = select(InventoryItem).where(InventoryItem.item_id == item_id)
        if lock:
            query = lock_for_update(query)
        return self._session.execute(query).scalar_one_or_none()

    def list_items(self, limit: int | None = None) -> list[InventoryItem]:
        """All items ordered by item_id, or the first `limit` of them."""
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or not 0 < limit <= MAX_INT):
            raise InvalidInput("limit must be a positive integer")

        query = select(InventoryItem).order_by(InventoryItem.item_id)
        if limit is not None:
            query = query.limit(limit)
        try:
            return list(self._session.execute(query).scalars())
        except SQLAlchemyError as exc:
            raise self._storage_failure("list inventory") from exc

    def get_item(self, item_id: int) -> InventoryItem:
        try:
            item = self._load(item_id)
        except SQLAlchemyError as exc:
            raise self._storage_failure(f"load item {item_id}") from exc
        if item is None:
            raise NotFound("Item not found")
        return item

    def exists(self, item_id: int) -> bool:
        return self._session.execute(
            select(InventoryItem.item_id).where(InventoryItem.item_id == item_id)
        ).first() is not None

    def create_item(self, item_id, name, stock, price=None) -> InventoryItem:
        """
        Insert a new item.

        Raises InvalidInput for missing/invalid fields, Conflict if the
        item_id is already taken.
        """
        patch = validate_payload(
            model=InventoryItem,
            payload={"item_id": item_id, "name": name, "stock": stock, "price": price},
            policy=ITEM_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_item(patch)

        try:
            if self._load(patch["item_id"]) is not None:
                raise Conflict("ID already exists")
            item = InventoryItem(**patch)
            self._session.add(item)
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            raise Conflict("ID already exists")
        except SQLAlchemyError as exc:
            raise self._storage_failure(f"create item {patch['item_id']}") from exc

        logger.info("Created inventory item %s (%s), stock=%s", item.item_id, item.name, item.stock)
        return item

    def update_item(self, item_id: int, name, stock, price=MISSING) -> InventoryItem:
        """
        Replace name and stock (and price, when given) in one UPDATE.

        An omitted price leaves the stored price unchanged.
        Raises NotFound if the item does not exist.
        """
        payload = {"name": name, "stock": stock}
        if price is not MISSING:
            payload["price"] = price
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=ITEM_UPDATE_POLICY,
            partial=False,
        )
        enforce_rules_item(patch)

        values = {getattr(InventoryItem, key): value for key, value in patch.items()}
        try:
            result = self._session.execute(
                update(InventoryItem)
                .where(InventoryItem.item_id == item_id)
                .values(values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self._session.rollback()
                raise NotFound("Item not found")
            self._session.commit()
        except SQLAlchemyError as exc:
            raise self._storage_failure(f"update item {item_id}") from exc

        # commit() expired the identity map, so this re-reads the row
        return self.get_item(item_id)

    def delete_item(self, item_id: int) -> dict:
        """Remove the item and return its last state."""
        try:
            item = self._load(item_id, lock=True)
            if item is None:
                self._session.rollback()
                raise NotFound("Item not found")
            snapshot = item.to_dict()
            self._session.delete(item)
            self._session.commit()
        except SQLAlchemyError as exc:
            raise self._storage_failure(f"delete item {item_id}") from exc

        logger.info("Deleted inventory item %s", item_id)
        return snapshot

    def atomic_decrement(self, item_id: int, quantity: int) -> bool:
        """
        Take `quantity` units off `item_id` if, and only if, enough remain.

        Single statement:
            UPDATE inventory SET stock = stock - :q
             WHERE item_id = :id AND stock >= :q

        Returns True when the row was changed. Does not commit and does not
        catch storage errors; the caller owns the transaction.
        """
        result = self._session.execute(
            update(InventoryItem)
            .where(InventoryItem.item_id == item_id, InventoryItem.stock >= quantity)
            .values({InventoryItem.stock: InventoryItem.stock - quantity})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
