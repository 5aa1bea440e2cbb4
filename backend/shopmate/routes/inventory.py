# backend/shopmate/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require a valid access token (@require_auth).
- Read operations: any authenticated role
- Create / update / delete: role=admin only
- Purchase and purchase history: any role except admin

Item ids in the path must be positive integers; anything else is a 400,
not a 404.
"""
from flask import Blueprint, request, current_app, g

from ..errors import ServiceError, error_response
from ..services import get_services
from ..services.inventory_ledger import MISSING
from ..validation import parse_positive_int
from ..decorators import require_auth, require_admin, require_customer


inventory_bp = Blueprint("inventory", __name__, url_prefix="/inventory")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@inventory_bp.get("")
@require_auth
def list_items_route():
    """
    List inventory items.

    Query params:
    - limit: int (optional) - return at most this many items. Ignored unless > 0.
    """
    limit = request.args.get("limit", type=int)
    if limit is not None and limit <= 0:
        limit = None

    try:
        items = get_services().ledger.list_items(limit=limit)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return {"error": "Database error"}, 500

    return [item.to_dict() for item in items], 200


@inventory_bp.get("/purchases")
@require_auth
@require_customer
def purchase_history_route():
    """Purchases made by the calling user, newest first."""
    try:
        records = get_services().purchases.history_for_user(g.principal.user_id)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load purchase history")
        return {"error": "Database error"}, 500

    return {"purchases": [r.to_dict() for r in records]}, 200


@inventory_bp.get("/<item_id>")
@require_auth
def get_item_route(item_id: str):
    try:
        item_id = parse_positive_int(item_id, "Invalid item ID")
        item = get_services().ledger.get_item(item_id)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load item")
        return {"error": "Database error"}, 500

    return item.to_dict(), 200


@inventory_bp.post("")
@require_auth
@require_admin
def create_item_route():
    """
    Create a new item. Admin only.

    Body: {id, name, stock, price}. id is the caller-chosen item id.
    """
    payload = _json_body()

    try:
        item = get_services().ledger.create_item(
            item_id=payload.get("id"),
            name=payload.get("name"),
            stock=payload.get("stock"),
            price=payload.get("price"),
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create item")
        return {"error": "Database error"}, 500

    return {**item.to_dict(), "message": "Item added successfully"}, 201


@inventory_bp.put("/<item_id>")
@require_auth
@require_admin
def update_item_route(item_id: str):
    """
    Replace an item's name and stock. Admin only.

    Body: {name, stock, price?}. When price is omitted the stored price is
    kept.
    """
    payload = _json_body()

    try:
        item_id = parse_positive_int(item_id, "Invalid item ID")
        item = get_services().ledger.update_item(
            item_id,
            name=payload.get("name"),
            stock=payload.get("stock"),
            price=payload.get("price", MISSING),
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update item")
        return {"error": "Database error"}, 500

    return item.to_dict(), 200


@inventory_bp.delete("/<item_id>")
@require_auth
@require_admin
def delete_item_route(item_id: str):
    """Delete an item. Admin only. Returns the deleted item."""
    try:
        item_id = parse_positive_int(item_id, "Invalid item ID")
        snapshot = get_services().ledger.delete_item(item_id)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete item")
        return {"error": "Database error"}, 500

    return {"message": "Item deleted successfully", "item": snapshot}, 200


@inventory_bp.post("/purchase/<item_id>")
@require_auth
@require_customer
def purchase_route(item_id: str):
    """
    Buy units of one item. Not available to admins.

    Body: {quantity}. The stock decrement and the purchase record are one
    transaction; on any error neither is applied.
    """
    quantity = _json_body().get("quantity")

    try:
        item_id = parse_positive_int(item_id, "Invalid item ID")
        record = get_services().purchases.purchase(item_id, quantity, g.principal.user_id)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Purchase transaction failed")
        return {"error": "Transaction failed"}, 500

    return {
        "message": f"Purchase successful: {record.quantity} units of item {record.item_id}",
        "purchase": record.to_dict(),
    }, 200
