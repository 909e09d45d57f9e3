# Overview: Customer records, internet plans and CSV import with conflict logging.

from __future__ import annotations

import csv
import io
import json

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, CustomerConflict, InternetPlan, Task
from ..models.customers import CUSTOMER_ACTIVE
from ..validation import ConflictError, NotFoundError, ValidationError, to_money
from .event_service import record_event
"""
Customer import rules

- A CSV needs a header row with a name column ("name" or "nombre"); other
  columns are optional and matched case-insensitively through HEADER_ALIASES.
- A customer is identified by (name, address), compared case-insensitively
  after trimming.
- Each data row either becomes one Customer or one CustomerConflict, never
  both. Checks run in this order and the first hit wins:
    1. blank name                      -> REASON_MISSING_NAME
    2. key already seen earlier in file -> REASON_DUPLICATE_IN_FILE
    3. key already stored               -> REASON_DUPLICATE_IN_DB
- A plan named in a row is looked up by name and created (price 0) when absent.
- The whole file is one transaction.
"""

REASON_MISSING_NAME = "Missing name"
REASON_DUPLICATE_IN_FILE = "Duplicate in file (name+address)"
REASON_DUPLICATE_IN_DB = "Duplicate in database (name+address)"

# Canonical field -> accepted header spellings, first match wins
HEADER_ALIASES = {
    "name": ("name", "nombre"),
    "address": ("address", "direccion"),
    "phone": ("phone", "telefono"),
    "ip_address": ("ip", "ipasignada", "ip_asignada"),
    "latitude": ("latitud", "latitude"),
    "longitude": ("longitud", "longitude"),
    "plan": ("plan", "plandeinternet", "plan_de_internet"),
    "notes": ("notes", "notas"),
}

CUSTOMER_TEXT_FIELDS = ("name", "phone", "address", "ip_address", "latitude", "longitude", "status", "notes")


# =============================================================================
# PLANS
# =============================================================================

def list_plans() -> list[InternetPlan]:
    return db.session.query(InternetPlan).order_by(InternetPlan.name.asc()).all()


def create_plan(*, name: str, price=None, speed: str | None = None) -> InternetPlan:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    price = to_money(price if price is not None else "0", field="price")
    if price < 0:
        raise ValidationError("price must be >= 0")
    if _plan_by_name(name) is not None:
        raise ConflictError("Plan already exists")

    plan = InternetPlan(name=name, price=price, speed=(speed or "").strip() or None)
    db.session.add(plan)
    db.session.commit()
    return plan


def _plan_by_name(name: str) -> InternetPlan | None:
    return db.session.query(InternetPlan).filter(InternetPlan.name == name).first()


def _plan_by_name_or_create(name: str) -> InternetPlan:
    """Flushed, not committed."""
    plan = _plan_by_name(name)
    if plan is None:
        plan = InternetPlan(name=name, price=0)
        db.session.add(plan)
        db.session.flush()
    return plan


def _resolve_plan(patch: dict):
    """
    Plan from plan_id (must exist) or plan_name (created when missing).

    Returns (found, plan): found is False when the patch names no plan.
    """
    if patch.get("plan_id") is not None:
        plan = db.session.get(InternetPlan, patch["plan_id"])
        if plan is None:
            raise NotFoundError("Plan not found")
        return True, plan
    plan_name = (patch.get("plan_name") or "").strip()
    if plan_name:
        return True, _plan_by_name_or_create(plan_name)
    return False, None


# =============================================================================
# CUSTOMERS
# =============================================================================

def _get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def _clean_text(value, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


def list_customers(*, status: str | None = None, search: str | None = None) -> list[Customer]:
    q = db.session.query(Customer)
    if status:
        q = q.filter(Customer.status == status)
    if search:
        like = f"%{search.strip().lower()}%"
        q = q.filter(func.lower(Customer.name).like(like) | func.lower(Customer.address).like(like))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int) -> Customer:
    return _get_customer(customer_id)


def create_customer(*, patch: dict) -> Customer:
    """
    Create a customer.

    patch keys: name (required), phone, address, ip_address, latitude,
    longitude, status, notes, plan_id | plan_name.
    """
    name = _clean_text(patch.get("name"), "name")
    if not name:
        raise ValidationError("name is required")

    customer = Customer(name=name, status=CUSTOMER_ACTIVE)
    for field in CUSTOMER_TEXT_FIELDS:
        if field in patch and field != "name":
            value = _clean_text(patch[field], field)
            if field == "status" and not value:
                continue
            setattr(customer, field, value)

    _, plan = _resolve_plan(patch)
    customer.plan = plan

    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, *, patch: dict) -> Customer:
    """Partial update; absent or null fields keep their current value."""
    customer = _get_customer(customer_id)

    for field in CUSTOMER_TEXT_FIELDS:
        if patch.get(field) is None:
            continue
        value = _clean_text(patch[field], field)
        if field in ("name", "status") and not value:
            raise ValidationError(f"{field} cannot be blank")
        setattr(customer, field, value)

    found, plan = _resolve_plan(patch)
    if found:
        customer.plan = plan

    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    """Refused while tasks reference the customer."""
    customer = _get_customer(customer_id)
    if db.session.query(Task.id).filter_by(customer_id=customer.id).first():
        raise ConflictError("Customer has tasks and cannot be deleted")
    db.session.delete(customer)
    db.session.commit()


# =============================================================================
# CSV IMPORT
# =============================================================================

def _header_index(headers: list[str]) -> dict[str, int]:
    index = {}
    for field, aliases in HEADER_ALIASES.items():
        for alias in aliases:
            if alias in headers:
                index[field] = headers.index(alias)
                break
    return index


def _identity_key(name: str, address: str | None) -> str:
    return f"{name.lower()}|{(address or '').lower()}"


def _exists(name: str, address: str | None) -> bool:
    q = db.session.query(Customer.id).filter(func.lower(Customer.name) == name.lower())
    if address:
        q = q.filter(func.lower(Customer.address) == address.lower())
    else:
        q = q.filter((Customer.address.is_(None)) | (Customer.address == ""))
    return q.first() is not None


def import_customers_csv(text: str, *, actor=None) -> dict:
    """
    Import customers from CSV text.

    Returns {"inserted": n, "conflicts": n}. Rejected rows are written to
    customer_conflicts with their reason and raw cells.

    Raises:
        ValidationError: empty file or no name column
    """
    rows = [r for r in csv.reader(io.StringIO(text or "")) if any(cell.strip() for cell in r)]
    if not rows:
        raise ValidationError("CSV file is empty")

    headers = [h.strip().lower() for h in rows[0]]
    index = _header_index(headers)
    if "name" not in index:
        raise ValidationError('CSV must include a "name" or "nombre" column')

    seen: set[str] = set()
    inserted = 0
    conflicts = 0

    for raw in rows[1:]:
        cells = [c.strip() for c in raw]
        values = {
            field: (cells[i] if i < len(cells) else "") for field, i in index.items()
        }
        name = values.get("name", "")
        address = values.get("address", "")
        key = _identity_key(name, address)

        reason = None
        if not name:
            reason = REASON_MISSING_NAME
        elif key in seen:
            reason = REASON_DUPLICATE_IN_FILE
        else:
            seen.add(key)
            if _exists(name, address):
                reason = REASON_DUPLICATE_IN_DB

        if reason is not None:
            db.session.add(CustomerConflict(
                name=name,
                address=address or None,
                phone=values.get("phone") or None,
                ip_address=values.get("ip_address") or None,
                latitude=values.get("latitude") or None,
                longitude=values.get("longitude") or None,
                plan_name=values.get("plan") or None,
                reason=reason,
                row_data=json.dumps(raw, separators=(",", ":"), ensure_ascii=False),
            ))
            conflicts += 1
            continue

        plan_name = values.get("plan", "")
        db.session.add(Customer(
            name=name,
            address=address or None,
            phone=values.get("phone") or None,
            ip_address=values.get("ip_address") or None,
            latitude=values.get("latitude") or None,
            longitude=values.get("longitude") or None,
            notes=values.get("notes") or None,
            plan=_plan_by_name_or_create(plan_name) if plan_name else None,
            status=CUSTOMER_ACTIVE,
        ))
        inserted += 1

    record_event(
        event_type="customers:imported",
        event_category="customers",
        entity_type="customer",
        actor_user_id=actor.id if actor is not None else None,
        actor=actor.display_name if actor is not None else None,
        payload={"inserted": inserted, "conflicts": conflicts},
    )
    db.session.commit()
    return {"inserted": inserted, "conflicts": conflicts}


def list_conflicts() -> list[CustomerConflict]:
    """Newest first."""
    return db.session.query(CustomerConflict).order_by(CustomerConflict.id.desc()).all()
