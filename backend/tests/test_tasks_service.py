"""
Task assignment tests.

Verifies:
- Creation checks (contact phone, known worker and customer)
- Worker rules: own tasks only, objection reason, completion comment,
  no way back from OBJECTED to PENDING
- Admin rules: objected tasks change only through reassignment
- A rejected update leaves the task exactly as it was
"""

import pytest

from perla.models.tasks import TASK_COMPLETED, TASK_IN_PROGRESS, TASK_OBJECTED, TASK_PENDING
from perla.services import customer_service, event_service, tasks_service
from perla.validation import ConflictError, NotFoundError, PermissionDeniedError, ValidationError


@pytest.fixture
def customer(db_session):
    return customer_service.create_customer(patch={"name": "Ana Lopez", "address": "Zona 1"})


@pytest.fixture
def task(customer, worker, admin_user):
    return tasks_service.create_task(
        title="Instalacion fibra",
        customer_id=customer.id,
        assigned_to_id=worker.id,
        contact_phone=" 5555-0000 ",
        created_by=admin_user,
    )


# =============================================================================
# CREATION
# =============================================================================


class TestCreateTask:
    def test_new_task_is_pending(self, task, worker, customer):
        data = task.to_dict()
        assert data["status"] == TASK_PENDING
        assert data["contact_phone"] == "5555-0000"
        assert data["assigned_to"]["id"] == worker.id
        assert data["customer"]["address"] == "Zona 1"
        assert data["completed_at"] is None

        events = event_service.list_events(category="tasks")
        assert [e.event_type for e in events] == ["task:created"]

    def test_contact_phone_required(self, customer, worker):
        with pytest.raises(ValidationError):
            tasks_service.create_task(
                title="X", customer_id=customer.id, assigned_to_id=worker.id, contact_phone="  ",
            )

    def test_unknown_worker_or_customer(self, customer, worker):
        with pytest.raises(NotFoundError):
            tasks_service.create_task(
                title="X", customer_id=customer.id, assigned_to_id=9999, contact_phone="5555",
            )
        with pytest.raises(NotFoundError):
            tasks_service.create_task(
                title="X", customer_id=9999, assigned_to_id=worker.id, contact_phone="5555",
            )

    def test_list_filters(self, task, customer, other_worker, admin_user):
        tasks_service.create_task(
            title="Revision", customer_id=customer.id, assigned_to_id=other_worker.id,
            contact_phone="5555", created_by=admin_user,
        )

        assert len(tasks_service.list_tasks()) == 2
        assert [t.title for t in tasks_service.list_tasks(assigned_to_id=other_worker.id)] == ["Revision"]
        assert len(tasks_service.list_tasks(status="PENDIENTE")) == 2
        with pytest.raises(ValidationError):
            tasks_service.list_tasks(status="DONE")


# =============================================================================
# WORKER UPDATES
# =============================================================================


class TestWorkerUpdates:
    def test_progress_then_complete(self, task, worker):
        tasks_service.update_task(task.id, actor=worker, patch={"status": "EN_PROCESO"})
        assert tasks_service.get_task(task.id).status == TASK_IN_PROGRESS

        done = tasks_service.update_task(
            task.id, actor=worker, patch={"status": "COMPLETED", "final_comment": "Instalado"},
        )
        assert done.status == TASK_COMPLETED
        assert done.final_comment == "Instalado"
        assert done.completed_at is not None

    def test_completion_needs_comment(self, task, worker):
        with pytest.raises(ValidationError):
            tasks_service.update_task(task.id, actor=worker, patch={"status": "COMPLETED"})
        with pytest.raises(ValidationError):
            tasks_service.update_task(
                task.id, actor=worker, patch={"status": "IN_PROGRESS", "final_comment": "early"},
            )
        assert tasks_service.get_task(task.id).status == TASK_PENDING

    def test_objection_needs_reason_and_is_one_way(self, task, worker):
        with pytest.raises(ValidationError):
            tasks_service.update_task(task.id, actor=worker, patch={"status": "OBJECTED"})

        objected = tasks_service.update_task(
            task.id, actor=worker, patch={"status": "OBJECTED", "objection_reason": "Zona sin cobertura"},
        )
        assert objected.status == TASK_OBJECTED
        assert objected.objection_reason == "Zona sin cobertura"

        with pytest.raises(ConflictError):
            tasks_service.update_task(task.id, actor=worker, patch={"status": "PENDING"})

    def test_rejected_update_changes_nothing(self, task, worker):
        with pytest.raises(ValidationError):
            tasks_service.update_task(
                task.id,
                actor=worker,
                patch={"status": "OBJECTED", "objection_reason": "lejos", "final_comment": "x"},
            )

        fresh = tasks_service.get_task(task.id)
        assert fresh.status == TASK_PENDING
        assert fresh.objection_reason is None

    def test_other_workers_tasks_are_off_limits(self, task, other_worker):
        with pytest.raises(PermissionDeniedError):
            tasks_service.update_task(task.id, actor=other_worker, patch={"description": "mine now"})

    def test_worker_cannot_reassign_or_edit_phone(self, task, worker, other_worker):
        updated = tasks_service.update_task(
            task.id,
            actor=worker,
            patch={"assigned_to_id": other_worker.id, "contact_phone": "", "description": "Llevar router"},
        )
        assert updated.assigned_to_id == worker.id
        assert updated.contact_phone == "5555-0000"
        assert updated.description == "Llevar router"


# =============================================================================
# ADMIN UPDATES
# =============================================================================


class TestAdminUpdates:
    def _object(self, task, worker):
        tasks_service.update_task(
            task.id, actor=worker, patch={"status": "OBJECTED", "objection_reason": "Sin materiales"},
        )

    def test_objected_task_needs_reassignment(self, task, worker, admin_user):
        self._object(task, worker)

        with pytest.raises(ConflictError):
            tasks_service.update_task(task.id, actor=admin_user, patch={"status": "IN_PROGRESS"})
        with pytest.raises(ConflictError):
            tasks_service.update_task(
                task.id, actor=admin_user, patch={"status": "IN_PROGRESS", "assigned_to_id": worker.id},
            )
        assert tasks_service.get_task(task.id).status == TASK_OBJECTED

    def test_reassignment_resets_objection(self, task, worker, other_worker, admin_user):
        self._object(task, worker)

        moved = tasks_service.update_task(task.id, actor=admin_user, patch={"assigned_to_id": other_worker.id})

        assert moved.assigned_to_id == other_worker.id
        assert moved.status == TASK_PENDING
        assert moved.objection_reason is None

    def test_admin_edits(self, task, admin_user):
        with pytest.raises(ValidationError):
            tasks_service.update_task(task.id, actor=admin_user, patch={"contact_phone": " "})
        with pytest.raises(NotFoundError):
            tasks_service.update_task(task.id, actor=admin_user, patch={"assigned_to_id": 9999})

        done = tasks_service.update_task(
            task.id, actor=admin_user, patch={"status": "COMPLETADA", "final_comment": "Cerrada por admin"},
        )
        assert done.status == TASK_COMPLETED

        reopened = tasks_service.update_task(task.id, actor=admin_user, patch={"status": "PENDING"})
        assert reopened.completed_at is None

    def test_delete(self, task, admin_user):
        tasks_service.delete_task(task.id, actor=admin_user)

        with pytest.raises(NotFoundError):
            tasks_service.get_task(task.id)
        events = event_service.list_events(category="tasks")
        assert [e.event_type for e in events] == ["task:created", "task:deleted"]
