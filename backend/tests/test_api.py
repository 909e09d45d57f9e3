"""
HTTP API tests.

Verifies:
- Bearer-token auth (login, me, logout) and 401/403 handling
- Inventory movements through the API (201 / 400 / 404 / 409)
- Cash entry, day close, locking and reopen through the API
- Non-admin scoping of cash and payroll reads
- Customers with CSV import, attendance and task assignment
- Activity feed polling and health checks
"""

import io

import pytest

from perla.services import inventory_service

TEST_PASSWORD = "Password123!"
DAY = "2024-01-10"


def _post_entry(client, headers, kind="INCOME", amount="150.00", day=DAY, description="Cobro cliente"):
    return client.post(
        "/api/finance/cash",
        json={"entry_date": day, "kind": kind, "description": description, "amount": amount},
        headers=headers,
    )


# =============================================================================
# AUTHENTICATION
# =============================================================================


class TestAuthApi:
    def test_login_me_logout(self, client, worker):
        resp = client.post("/api/auth/login", json={"email": "WORKER@perla.test", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["email"] == "worker@perla.test"
        assert body["expires_at"].endswith("Z")
        headers = {"Authorization": f"Bearer {body['token']}"}

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["user"]["id"] == worker.id

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_bad_credentials(self, client, worker):
        resp = client.post("/api/auth/login", json={"email": "worker@perla.test", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "worker@perla.test"})
        assert resp.status_code == 400

    def test_protected_routes_need_a_token(self, client, db_session):
        assert client.get("/api/finance/cash").status_code == 401
        assert client.get("/api/inventory/items", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_deactivated_user_loses_access(self, client, admin_headers, worker, worker_headers):
        resp = client.patch(f"/api/users/{worker.id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=worker_headers).status_code == 401


# =============================================================================
# ROLES AND USERS
# =============================================================================


class TestRoles:
    @pytest.mark.parametrize("method,url", [
        ("POST", "/api/inventory/items"),
        ("POST", "/api/inventory/warehouses"),
        ("POST", "/api/finance/cash/close"),
        ("POST", "/api/finance/cash/reopen"),
        ("GET", "/api/payroll/summary"),
        ("GET", "/api/users"),
        ("POST", "/api/customers"),
        ("GET", "/api/customers/conflicts"),
        ("POST", "/api/customers/import"),
        ("GET", "/api/plans"),
        ("GET", "/api/tasks"),
        ("POST", "/api/tasks"),
    ])
    def test_admin_only_routes(self, client, worker_headers, method, url):
        resp = client.open(url, method=method, json={}, headers=worker_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_role"] == "ADMIN"

    def test_admin_creates_users(self, client, admin_headers):
        payload = {"email": "nuevo@perla.test", "password": TEST_PASSWORD, "name": "Nuevo", "daily_salary": "120.00"}
        resp = client.post("/api/users", json=payload, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["daily_salary"] == "120.00"

        assert client.post("/api/users", json=payload, headers=admin_headers).status_code == 409

        weak = dict(payload, email="weak@perla.test", password="short")
        assert client.post("/api/users", json=weak, headers=admin_headers).status_code == 400


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryApi:
    @pytest.fixture
    def catalog(self, client, admin_headers):
        item = client.post(
            "/api/inventory/items",
            json={"sku": "RTR-X", "name": "Router X", "min_stock": 2},
            headers=admin_headers,
        ).get_json()
        wh = client.post("/api/inventory/warehouses", json={"name": "Main"}, headers=admin_headers).get_json()
        return item, wh

    def test_movements(self, client, catalog, worker_headers):
        item, wh = catalog

        resp = client.post(
            "/api/inventory/movements",
            json={"item_id": item["id"], "warehouse_id": wh["id"], "kind": "IN", "quantity": 10},
            headers=worker_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["stock"] == 10

        resp = client.post(
            "/api/inventory/movements",
            json={"item_id": item["id"], "warehouse_id": wh["id"], "kind": "OUT", "quantity": 3, "note": "instalación"},
            headers=worker_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["stock"] == 7
        assert resp.get_json()["note"] == "instalación"

        resp = client.post(
            "/api/inventory/movements",
            json={"item_id": item["id"], "warehouse_id": wh["id"], "kind": "OUT", "quantity": 8},
            headers=worker_headers,
        )
        assert resp.status_code == 409
        assert inventory_service.get_quantity(item["id"], wh["id"]) == 7

        stocks = client.get(f"/api/inventory/stocks?warehouse_id={wh['id']}", headers=worker_headers).get_json()
        assert [s["quantity"] for s in stocks["items"]] == [7]

        history = client.get(f"/api/inventory/movements?item_id={item['id']}", headers=worker_headers).get_json()
        assert history["count"] == 2

    @pytest.mark.parametrize("body", [
        {"kind": "IN", "quantity": 1},
        {"kind": "IN", "quantity": 0, "warehouse_id": "WH"},
        {"kind": "IN", "quantity": "1.5", "warehouse_id": "WH"},
        {"kind": "MOVE", "quantity": 1, "warehouse_id": "WH"},
    ])
    def test_invalid_movements_are_rejected(self, client, catalog, worker_headers, body):
        item, wh = catalog
        payload = dict(body, item_id=item["id"])
        if payload.get("warehouse_id") == "WH":
            payload["warehouse_id"] = wh["id"]
        resp = client.post("/api/inventory/movements", json=payload, headers=worker_headers)
        assert resp.status_code == 400

    def test_unknown_item(self, client, catalog, worker_headers):
        _, wh = catalog
        resp = client.post(
            "/api/inventory/movements",
            json={"item_id": 9999, "warehouse_id": wh["id"], "kind": "IN", "quantity": 1},
            headers=worker_headers,
        )
        assert resp.status_code == 404

    def test_low_stock(self, client, catalog, worker_headers):
        low = client.get("/api/inventory/low-stock", headers=worker_headers).get_json()
        assert [i["sku"] for i in low["items"]] == ["RTR-X"]


# =============================================================================
# CASH AND CLOSURE
# =============================================================================


class TestCashApi:
    def test_close_lock_and_reopen(self, client, admin_headers, worker, worker_headers):
        assert _post_entry(client, worker_headers, "INCOME", "150.00").status_code == 201
        assert _post_entry(client, worker_headers, "EXPENSE", "40.00").status_code == 201

        resp = client.post("/api/finance/cash/close", json={"date": DAY}, headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "closed"
        assert body["summary"]["balance"] == "110.00"
        assert body["summary"]["closed_by"] == "admin@perla.test"
        assert [a["user_id"] for a in body["accruals"]] == [worker.id]

        again = client.post("/api/finance/cash/close", json={"date": DAY}, headers=admin_headers).get_json()
        assert again["status"] == "reclosed"
        assert again["accruals"] == []

        assert _post_entry(client, worker_headers, "INCOME", "1.00").status_code == 409

        reopened = client.post("/api/finance/cash/reopen", json={"date": DAY}, headers=admin_headers)
        assert reopened.status_code == 200
        assert reopened.get_json()["removed_accruals"] == 1
        assert client.post("/api/finance/cash/reopen", json={"date": DAY}, headers=admin_headers).status_code == 409

        assert _post_entry(client, worker_headers, "INCOME", "1.00").status_code == 201

    def test_bad_entries(self, client, worker_headers):
        assert _post_entry(client, worker_headers, amount="0").status_code == 400
        assert _post_entry(client, worker_headers, kind="REFUND").status_code == 400
        assert _post_entry(client, worker_headers, day="10/01/2024").status_code == 400
        resp = client.post("/api/finance/cash", json={"kind": "INCOME"}, headers=worker_headers)
        assert resp.status_code == 400

    def test_close_validates_include_user_ids(self, client, admin_headers):
        resp = client.post(
            "/api/finance/cash/close", json={"date": DAY, "include_user_ids": "all"}, headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_workers_only_see_their_own_cash(self, client, worker_headers, other_worker, other_headers):
        _post_entry(client, worker_headers, "INCOME", "100.00")
        _post_entry(client, other_headers, "INCOME", "7.00")

        # user_id is ignored for non-admins
        cut = client.get(f"/api/finance/cash?date={DAY}&user_id={other_worker.id}", headers=worker_headers)
        body = cut.get_json()
        assert body["totals"]["incomes"] == "100.00"
        assert len(body["entries"]) == 1

        totals = client.get(
            "/api/finance/cash/totals?from=2024-01-01&to=2024-01-31", headers=other_headers,
        ).get_json()
        assert [r["incomes"] for r in totals["items"]] == ["7.00"]

    def test_admin_sees_all_cash(self, client, admin_headers, worker_headers, other_headers):
        _post_entry(client, worker_headers, "INCOME", "100.00")
        _post_entry(client, other_headers, "INCOME", "7.00")

        body = client.get(f"/api/finance/cash?date={DAY}", headers=admin_headers).get_json()
        assert body["totals"]["incomes"] == "107.00"
        assert "user_closed" not in body

    def test_user_close_is_idempotent(self, client, worker_headers):
        first = client.post("/api/finance/cash/user-close", json={"date": DAY}, headers=worker_headers)
        second = client.post("/api/finance/cash/user-close", json={"date": DAY}, headers=worker_headers)
        assert first.status_code == 201
        assert second.status_code == 200
        assert _post_entry(client, worker_headers).status_code == 409


# =============================================================================
# PAYROLL
# =============================================================================


class TestPayrollApi:
    def test_accruals_are_scoped_for_workers(
        self, client, admin_headers, worker, worker_headers, other_worker, other_headers,
    ):
        _post_entry(client, worker_headers)
        _post_entry(client, other_headers)
        client.post("/api/finance/cash/close", json={"date": DAY}, headers=admin_headers)

        mine = client.get(f"/api/payroll/accruals?user_id={other_worker.id}", headers=worker_headers).get_json()
        assert [a["user_id"] for a in mine["items"]] == [worker.id]

        everyone = client.get("/api/payroll/accruals", headers=admin_headers).get_json()
        assert everyone["count"] == 2

        summary = client.get("/api/payroll/summary?from=2024-01-01&to=2024-01-31", headers=admin_headers)
        assert summary.status_code == 200
        body = summary.get_json()
        totals = {r["user_id"]: r["total"] for r in body["employees"]}
        assert totals == {worker.id: "100.00", other_worker.id: "150.00"}
        assert body["total_payroll"] == "250.00"
        assert body["period"] == {"from": "2024-01-01", "to": "2024-01-31"}

    def test_summary_requires_range(self, client, admin_headers):
        assert client.get("/api/payroll/summary", headers=admin_headers).status_code == 400

    def test_loan_payment_flow(self, client, admin_headers):
        loan = client.post(
            "/api/payroll/loans",
            json={"employee_name": "Ana", "total": "300.00", "installments": 3},
            headers=admin_headers,
        )
        assert loan.status_code == 201
        loan_id = loan.get_json()["id"]

        paid = client.post(f"/api/payroll/loans/{loan_id}/payments", json={"amount": "100.00"}, headers=admin_headers)
        assert paid.get_json()["balance"] == "200.00"

        too_much = client.post(f"/api/payroll/loans/{loan_id}/payments", json={"amount": "500.00"}, headers=admin_headers)
        assert too_much.status_code == 400

        reset = client.patch(f"/api/payroll/loans/{loan_id}", json={"balance": "250.00"}, headers=admin_headers)
        assert reset.status_code == 200
        assert reset.get_json()["balance"] == "250.00"

        assert client.patch(f"/api/payroll/loans/{loan_id}", json={}, headers=admin_headers).status_code == 400
        assert client.patch("/api/payroll/loans/9999", json={"balance": "1.00"}, headers=admin_headers).status_code == 404

    def test_debt_balance_set(self, client, admin_headers):
        debt = client.post(
            "/api/payroll/debts", json={"employee_name": "Luis", "amount": "80.00"}, headers=admin_headers,
        ).get_json()

        resp = client.patch(f"/api/payroll/debts/{debt['id']}", json={"balance": "95.00"}, headers=admin_headers)
        assert resp.status_code == 400
        resp = client.patch(f"/api/payroll/debts/{debt['id']}", json={"balance": "20.00"}, headers=admin_headers)
        assert resp.get_json()["balance"] == "20.00"


# =============================================================================
# CUSTOMERS, ATTENDANCE AND TASKS
# =============================================================================


class TestCustomersApi:
    def test_csv_upload_and_conflicts(self, client, admin_headers, worker_headers):
        csv_bytes = "nombre,direccion,plan\nAna,Zona 1,Fibra 50\nana,zona 1,\n,Zona 9,\n".encode("utf-8")
        resp = client.post(
            "/api/customers/import",
            data={"file": (io.BytesIO(csv_bytes), "clientes.csv")},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 201
        assert resp.get_json() == {"inserted": 1, "conflicts": 2}

        conflicts = client.get("/api/customers/conflicts", headers=admin_headers).get_json()
        assert conflicts["count"] == 2

        # Workers can read customers
        listed = client.get("/api/customers", headers=worker_headers).get_json()
        assert [c["name"] for c in listed["items"]] == ["Ana"]
        assert listed["items"][0]["plan"]["name"] == "Fibra 50"

        plans = client.get("/api/plans", headers=admin_headers).get_json()
        assert [p["name"] for p in plans["items"]] == ["Fibra 50"]

    def test_raw_text_body_and_bad_header(self, client, admin_headers):
        ok = client.post(
            "/api/customers/import", data="name\nLuis\n", headers=admin_headers, content_type="text/csv",
        )
        assert ok.status_code == 201

        bad = client.post(
            "/api/customers/import", data="direccion\nZona 1\n", headers=admin_headers, content_type="text/csv",
        )
        assert bad.status_code == 400
        assert client.post("/api/customers/import", headers=admin_headers).status_code == 400

    def test_crud(self, client, admin_headers):
        created = client.post(
            "/api/customers", json={"name": "Ana", "phone": "5555"}, headers=admin_headers,
        )
        assert created.status_code == 201
        customer_id = created.get_json()["id"]

        patched = client.patch(f"/api/customers/{customer_id}", json={"status": "suspended"}, headers=admin_headers)
        assert patched.get_json()["status"] == "suspended"

        assert client.delete(f"/api/customers/{customer_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/customers/{customer_id}", headers=admin_headers).status_code == 404
        assert client.post("/api/customers", json={}, headers=admin_headers).status_code == 400


class TestAttendanceApi:
    def test_check_and_summary(self, client, worker_headers):
        resp = client.post("/api/attendance/check", json={"kind": "IN"}, headers=worker_headers)
        assert resp.status_code == 201
        assert resp.get_json()["name"] == "Worker W"

        summary = client.get(
            "/api/attendance/summary", query_string={"name": "Worker W"}, headers=worker_headers,
        ).get_json()
        assert summary["name"] == "Worker W"
        assert summary["latest"]["kind"] == "IN"

        assert client.get("/api/attendance/summary", headers=worker_headers).status_code == 400
        bad = client.post("/api/attendance/check", json={"kind": "NAP"}, headers=worker_headers)
        assert bad.status_code == 400

    def test_daily_registration_is_once_per_day(self, client, worker, worker_headers):
        body = {"date": DAY, "completed_tasks": 2, "total_tasks": 3}
        first = client.post("/api/attendance", json=body, headers=worker_headers)
        again = client.post("/api/attendance", json={**body, "completed_tasks": 3}, headers=worker_headers)

        assert first.status_code == 201
        assert again.status_code == 200
        assert again.get_json()["completed_tasks"] == 2
        assert first.get_json()["user_id"] == worker.id

        mine = client.get("/api/attendance/daily", headers=worker_headers).get_json()
        assert mine["count"] == 1


class TestTasksApi:
    def test_assign_then_worker_completes(self, client, admin_headers, worker, worker_headers, other_headers):
        customer = client.post("/api/customers", json={"name": "Ana"}, headers=admin_headers).get_json()
        created = client.post(
            "/api/tasks",
            json={
                "title": "Instalacion",
                "customer_id": customer["id"],
                "assigned_to_id": worker.id,
                "contact_phone": "5555",
            },
            headers=admin_headers,
        )
        assert created.status_code == 201
        task_id = created.get_json()["id"]

        mine = client.get("/api/tasks/mine", headers=worker_headers).get_json()
        assert [t["id"] for t in mine["items"]] == [task_id]

        foreign = client.patch(f"/api/tasks/{task_id}", json={"status": "IN_PROGRESS"}, headers=other_headers)
        assert foreign.status_code == 403

        missing_comment = client.patch(f"/api/tasks/{task_id}", json={"status": "COMPLETED"}, headers=worker_headers)
        assert missing_comment.status_code == 400

        done = client.patch(
            f"/api/tasks/{task_id}",
            json={"status": "COMPLETED", "final_comment": "Listo"},
            headers=worker_headers,
        )
        assert done.status_code == 200
        assert done.get_json()["completed_at"].endswith("Z")

        # Customer with tasks cannot be deleted
        assert client.delete(f"/api/customers/{customer['id']}", headers=admin_headers).status_code == 409
        assert client.delete(f"/api/tasks/{task_id}", headers=admin_headers).status_code == 200


# =============================================================================
# EVENTS AND SYSTEM
# =============================================================================


class TestEventsApi:
    def test_poll_after_id(self, client, admin_headers, worker_headers):
        _post_entry(client, worker_headers)
        first = client.get("/api/events", headers=worker_headers).get_json()
        assert first["count"] == 1
        assert first["items"][0]["event_type"] == "cash:entry-added"

        client.post("/api/finance/cash/close", json={"date": DAY}, headers=admin_headers)
        after = client.get(f"/api/events?after_id={first['last_id']}", headers=worker_headers).get_json()
        assert [e["event_type"] for e in after["items"]] == ["cash:day-closed"]
        assert after["items"][0]["payload"]["balance"] == "150.00"

        empty = client.get(f"/api/events?after_id={after['last_id']}", headers=worker_headers).get_json()
        assert empty["count"] == 0
        assert empty["last_id"] == after["last_id"]


class TestSystemApi:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["auto_close"]["status"] == "disabled"

    def test_version(self, client, db_session):
        assert client.get("/version").get_json()["api_version"] == "1.0.0"
