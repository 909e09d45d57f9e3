from __future__ import annotations
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from perla.time_utils import parse_business_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for any monetary amount (fits Numeric(12, 2))
MAX_AMOUNT = Decimal("9999999999.99")
CENTS = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(ValueError):
    """404-level: referenced row does not exist."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class PermissionDeniedError(ValueError):
    """403-level: authenticated, but not allowed to touch this row."""


class InsufficientStockError(ConflictError):
    """OUT movement larger than the quantity on hand."""


class DayClosedError(ConflictError):
    """Cash write against a closed business date (or the worker's closed day)."""


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
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def to_money(value: Any, *, field: str = "amount") -> Decimal:
    """
    Coerce a JSON number/string to a 2-decimal Decimal.

    Floats go through str() so 0.1 stays 0.10 rather than its binary expansion.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a decimal number")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a decimal number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a decimal number")
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum {MAX_AMOUNT}")
    return amount


def money_str(value: Decimal | None) -> str | None:
    """Serialize amounts as strings with two fractional digits."""
    if value is None:
        return None
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def require_date(value: Any, *, field: str = "date") -> date:
    try:
        d = parse_business_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    if d is None:
        raise ValidationError(f"{field} is required")
    return d


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Decimals (money)
    if isinstance(coltype, Numeric):
        return to_money(value, field=col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Business dates
    if isinstance(coltype, Date):
        return require_date(value, field=col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
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
    Validates + normalizes incoming JSON against:
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
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_item(patch: dict) -> None:
    if "min_stock" in patch:
        if patch["min_stock"] is None or patch["min_stock"] < 0:
            raise ValidationError("min_stock must be >= 0")


def enforce_rules_movement(patch: dict) -> None:
    # Every movement names a warehouse and moves a positive whole quantity
    if patch.get("warehouse_id") is None:
        raise ValidationError("warehouse_id is required")
    if patch.get("kind") not in ("IN", "OUT"):
        raise ValidationError('kind must be "IN" or "OUT"')
    qty = patch.get("quantity")
    if qty is None or qty <= 0:
        raise ValidationError("quantity must be a positive integer")


def enforce_rules_cash_entry(patch: dict) -> None:
    if patch.get("kind") not in ("INCOME", "EXPENSE"):
        raise ValidationError('kind must be "INCOME" or "EXPENSE"')
    amount = patch.get("amount")
    if amount is None or amount < CENTS:
        raise ValidationError("amount must be >= 0.01")
