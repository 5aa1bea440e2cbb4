from __future__ import annotations

from ..extensions import db
from shopmate.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Sellable stock record.

    item_id is assigned by the administrator who creates the item, not by the
    database.

    STOCK INVARIANT:
    stock >= 0 at all times. Purchases only ever touch stock through
    InventoryLedger.atomic_decrement (a conditional UPDATE), never through a
    read-modify-write on this object.
    """
    __tablename__ = "inventory"

    item_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    name = db.Column("item_name", db.String(255), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=True)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "stock": self.stock,
            "price": self.price,
        }


class PurchaseRecord(db.Model):
    """
    One row per successful purchase. Append-only.

    Written in the same transaction as the stock decrement it accounts for.
    item_id is not a foreign key; purchase history survives item deletion.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_user_time", "user_id", "purchased_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    purchased_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "user_id": self.user_id,
            "purchased_at": to_utc_z(self.purchased_at),
        }
