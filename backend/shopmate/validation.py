from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import InvalidInput


# Maximum price: 99,999,999.99 (fits Numeric(10, 2))
MAX_PRICE = 99_999_999.99

# Signed 64-bit range of an INTEGER column
MAX_INT = 2 ** 63 - 1
MIN_INT = -(2 ** 63)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    # Keyed by mapped attribute name, which can differ from the column name
    return dict(model.__mapper__.columns.items())


def _parse_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInput(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise InvalidInput(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise InvalidInput(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidInput(f"{key} must be an integer")
    if isinstance(value, float):
        raise InvalidInput(f"{key} must be an integer, not a decimal")
    raise InvalidInput(f"{key} must be an integer")


def _coerce_int(key: str, value: Any) -> int:
    number = _parse_int(key, value)
    if number > MAX_INT or number < MIN_INT:
        raise InvalidInput(f"{key} is out of range")
    return number


def _coerce_number(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidInput(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidInput(f"{key} must be a number")
    else:
        raise InvalidInput(f"{key} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise InvalidInput(f"{key} must be a finite number")
    return round(number, 2)


def _coerce_value(key: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(key, value)

    if isinstance(coltype, Numeric):
        return _coerce_number(key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise InvalidInput(f"{key} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming fields against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidInput("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) is None)
        if missing:
            raise InvalidInput(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise InvalidInput(f"Field not allowed: {k}")
        if k not in cols:
            raise InvalidInput(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise InvalidInput(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(k, col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise InvalidInput(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise InvalidInput(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_item(patch: dict) -> None:
    """Inventory item rules not captured by column metadata."""
    if "item_id" in patch and patch["item_id"] is not None and patch["item_id"] <= 0:
        raise InvalidInput("item_id must be a positive integer")

    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise InvalidInput("stock must be >= 0")

    if "price" in patch and patch["price"] is not None:
        price = patch["price"]
        if price < 0:
            raise InvalidInput("price must be >= 0")
        if price > MAX_PRICE:
            raise InvalidInput(f"price cannot exceed {MAX_PRICE:,.2f}")


def parse_positive_int(value: Any, message: str) -> int:
    """
    Coerce an id or quantity from a path segment or JSON body.

    Raises InvalidInput(message) for anything but a whole number > 0.
    """
    try:
        number = _coerce_int("value", value)
    except InvalidInput:
        raise InvalidInput(message)
    if number <= 0:
        raise InvalidInput(message)
    return number
