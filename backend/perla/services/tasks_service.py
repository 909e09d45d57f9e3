# Overview: Field task assignment and the status rules workers and admins follow.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Task, User
from ..models.tasks import (
    TASK_COMPLETED,
    TASK_IN_PROGRESS,
    TASK_OBJECTED,
    TASK_PENDING,
    TASK_STATUSES,
)
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from .event_service import record_event
"""
Task status rules

Workers (role USER) may only touch tasks assigned to them, and only the
status and description:
- OBJECTED requires an objection_reason.
- COMPLETED requires a final_comment; a final_comment with any other status
  is rejected.
- An OBJECTED task cannot go back to PENDING (an admin must reassign it).

Admins may edit any task:
- COMPLETED requires a final_comment, as above.
- The status of an OBJECTED task can only change together with a
  reassignment to a different worker.
- Reassigning an OBJECTED task puts it back to PENDING and clears the
  objection.
- contact_phone can never be blank.

completed_at is stamped whenever a task enters COMPLETED and cleared when it
leaves it.
"""

# Accepted spellings for incoming status values
STATUS_ALIASES = {
    "PENDIENTE": TASK_PENDING,
    "EN_PROCESO": TASK_IN_PROGRESS,
    "COMPLETADA": TASK_COMPLETED,
    "OBJETADA": TASK_OBJECTED,
}


def _get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


def _get_worker(user_id) -> User:
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None:
        raise NotFoundError("Worker not found")
    return user


def _normalize_status(value) -> str:
    raw = str(value or "").strip().upper()
    status = STATUS_ALIASES.get(raw, raw)
    if status not in TASK_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(TASK_STATUSES)}")
    return status


def _required_text(value, field: str) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def _emit(event_type: str, task: Task, actor: User | None) -> None:
    record_event(
        event_type=event_type,
        event_category="tasks",
        entity_type="task",
        entity_id=task.id,
        actor_user_id=actor.id if actor is not None else None,
        actor=actor.display_name if actor is not None else None,
        payload={"status": task.status, "assigned_to_id": task.assigned_to_id},
    )


# =============================================================================
# QUERIES
# =============================================================================

def list_tasks(
    *,
    status: str | None = None,
    assigned_to_id: int | None = None,
    customer_id: int | None = None,
) -> list[Task]:
    """Newest first."""
    q = db.session.query(Task)
    if status:
        q = q.filter(Task.status == _normalize_status(status))
    if assigned_to_id is not None:
        q = q.filter(Task.assigned_to_id == assigned_to_id)
    if customer_id is not None:
        q = q.filter(Task.customer_id == customer_id)
    return q.order_by(Task.created_at.desc(), Task.id.desc()).all()


def get_task(task_id: int) -> Task:
    return _get_task(task_id)


# =============================================================================
# WRITES
# =============================================================================

def create_task(
    *,
    title: str,
    customer_id: int,
    assigned_to_id: int,
    contact_phone: str,
    description: str | None = None,
    created_by: User | None = None,
) -> Task:
    """New PENDING task. Raises NotFoundError for an unknown worker or customer."""
    title = _required_text(title, "title")
    contact_phone = _required_text(contact_phone, "contact_phone")

    assignee = _get_worker(assigned_to_id)
    customer = db.session.get(Customer, customer_id) if customer_id is not None else None
    if customer is None:
        raise NotFoundError("Customer not found")

    task = Task(
        title=title,
        description=(description or "").strip(),
        customer=customer,
        assigned_to=assignee,
        created_by=created_by,
        contact_phone=contact_phone,
        status=TASK_PENDING,
    )
    db.session.add(task)
    db.session.flush()

    _emit("task:created", task, created_by)
    db.session.commit()
    return task


def _set_status(task: Task, patch: dict) -> None:
    """Apply patch["status"] with the completion and objection rules shared by every role."""
    nxt = _normalize_status(patch["status"])
    comment = patch.get("final_comment")

    if nxt == TASK_COMPLETED:
        task.final_comment = _required_text(comment, "final_comment")
    elif comment:
        raise ValidationError("final_comment is only allowed when status is COMPLETED")

    if nxt == TASK_COMPLETED and task.status != TASK_COMPLETED:
        task.completed_at = utcnow()
    elif nxt != TASK_COMPLETED:
        task.completed_at = None

    task.status = nxt


def _apply_worker_patch(task: Task, patch: dict) -> None:
    if patch.get("status"):
        nxt = _normalize_status(patch["status"])
        if task.status == TASK_OBJECTED and nxt == TASK_PENDING:
            raise ConflictError("An objected task cannot go back to PENDING")
        if nxt == TASK_OBJECTED:
            task.objection_reason = _required_text(patch.get("objection_reason"), "objection_reason")
        _set_status(task, patch)
    if patch.get("description") is not None:
        task.description = str(patch["description"])


def _apply_admin_patch(task: Task, patch: dict) -> None:
    new_assignee = patch.get("assigned_to_id")
    if patch.get("status"):
        if task.status == TASK_OBJECTED and new_assignee in (None, task.assigned_to_id):
            raise ConflictError("An objected task must be reassigned or deleted")
        _set_status(task, patch)
    if patch.get("description") is not None:
        task.description = str(patch["description"])
    if "contact_phone" in patch:
        task.contact_phone = _required_text(patch["contact_phone"], "contact_phone")
    if new_assignee is not None:
        task.assigned_to = _get_worker(new_assignee)
        if task.status == TASK_OBJECTED:
            task.status = TASK_PENDING
            task.objection_reason = None


def update_task(task_id: int, *, actor: User, patch: dict) -> Task:
    """
    Update a task as `actor`.

    patch keys: status, description, objection_reason, final_comment and,
    for admins only, assigned_to_id and contact_phone.

    Raises:
        PermissionDeniedError: a worker touching someone else's task
        ValidationError: missing reason/comment, bad status, blank phone
        ConflictError: transition the rules forbid
    """
    task = _get_task(task_id)
    if not actor.is_admin and task.assigned_to_id != actor.id:
        raise PermissionDeniedError("Task is not assigned to you")

    try:
        if actor.is_admin:
            _apply_admin_patch(task, patch)
        else:
            _apply_worker_patch(task, patch)
    except (ValidationError, NotFoundError, ConflictError):
        # Drop any fields set before the rule that failed
        db.session.rollback()
        raise

    db.session.flush()
    _emit("task:updated", task, actor)
    db.session.commit()
    return task


def delete_task(task_id: int, *, actor: User | None = None) -> None:
    task = _get_task(task_id)
    _emit("task:deleted", task, actor)
    db.session.delete(task)
    db.session.commit()
