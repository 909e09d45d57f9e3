# Overview: Append-only activity feed; records facts for realtime clients.

from __future__ import annotations

import json
from datetime import date
from typing import Optional

from ..extensions import db
from ..models import ActivityEvent
"""
Activity Feed Invariants

- Append-only: no updates/deletes of existing events.
- No domain/business logic here.
- Events are written inside the same DB transaction as the change they record,
  so a rolled-back change never leaves an event behind.
- Delivery to browsers (push) is not handled here; clients poll by id.
"""


def record_event(
    *,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int | None = None,
    actor_user_id: int | None = None,
    actor: str | None = None,
    business_date: Optional[date] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> ActivityEvent:
    ev = ActivityEvent(
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        actor=actor,
        business_date=business_date,
        note=note[:255] if note else None,
        payload=json.dumps(payload, default=str) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_events(*, after_id: int | None = None, category: str | None = None, limit: int = 200) -> list[ActivityEvent]:
    q = db.session.query(ActivityEvent)
    if after_id is not None:
        q = q.filter(ActivityEvent.id > after_id)
    if category:
        q = q.filter(ActivityEvent.event_category == category)
    return q.order_by(ActivityEvent.id.asc()).limit(limit).all()
