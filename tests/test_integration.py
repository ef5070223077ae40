"""
Integration tests for the Window Ledger API.

Tests complete workflows across multiple endpoints and the full stack
(routes → services → resource store → database).
"""

import pytest

from tests.conftest import OTHER_STAFF_ID, STAFF_ID


class TestCompleteOrderWorkflow:
    """Purchase → request → dispatch → hand-over → completion → reports"""

    def test_order_handed_over_and_completed(
        self, client, admin_headers, staff_headers, other_staff_headers
    ):
        # Step 1: Admin buys a machine with two windows
        purchase = client.post(
            "/api/machines/purchase",
            headers=admin_headers,
            json={
                "phone": "13800000000",
                "platform": "PC",
                "windows": [
                    {"window_number": "1", "gold_balance": 8000},
                    {"window_number": "2", "gold_balance": 6000},
                ],
                "cost": 3.5,
                "date": "2026-10-01",
            },
        ).json()
        assert purchase["failed_steps"] == []
        first_window, second_window = purchase["window_ids"]

        # Step 2: Alice asks for the first window and gets it
        request = client.post(
            "/api/requests",
            headers=staff_headers,
            json={"type": "apply", "window_id": first_window, "note": "evening shift"},
        ).json()
        client.post(f"/api/requests/{request['id']}/process", headers=admin_headers, json={"approved": True})
        client.put(
            f"/api/windows/{second_window}/assignee", headers=admin_headers, json={"user_id": STAFF_ID}
        )
        assert len(client.get("/api/windows", headers=staff_headers).json()) == 2

        # Step 3: Admin dispatches a one-unit order over both windows
        order = client.post(
            "/api/orders",
            headers=admin_headers,
            json={
                "staff_id": STAFF_ID,
                "amount": 1,
                "date": "2026-10-01",
                "window_ids": [first_window, second_window],
            },
        ).json()
        assert [s["start_balance"] for s in order["window_snapshots"]] == [8000, 6000]
        assert order["fee_percent"] == 7

        # Step 4: Alice pauses at 0.4, admin hands the order to Bob
        paused = client.post(
            f"/api/orders/{order['id']}/pause", headers=staff_headers, json={"completed_amount": 0.4}
        )
        assert paused.json() == {"success": True}
        resumed = client.post(
            f"/api/orders/{order['id']}/resume", headers=admin_headers, json={"staff_id": OTHER_STAFF_ID}
        ).json()
        assert resumed["remaining_amount"] == pytest.approx(0.6)

        # Alice can no longer touch it
        response = client.post(
            f"/api/orders/{order['id']}/pause", headers=staff_headers, json={"completed_amount": 0.5}
        )
        assert response.status_code == 403

        # Step 5: Bob completes, consuming 10 300 coins
        report = client.post(
            f"/api/orders/{order['id']}/complete",
            headers=other_staff_headers,
            json={
                "window_results": [
                    {"window_id": first_window, "consumed": 8000, "end_balance": 0},
                    {"window_id": second_window, "consumed": 2300, "end_balance": 3700},
                ]
            },
        ).json()
        completed = report["order"]
        assert completed["status"] == "completed"
        assert completed["total_consumed"] == 10300
        assert completed["loss"] == 300
        history = completed["execution_history"]
        assert [(e["staff_name"], e["amount"]) for e in history] == [
            ("Alice", pytest.approx(0.4)),
            ("Bob", pytest.approx(0.6)),
        ]

        balances = {
            w["id"]: w["gold_balance"] for w in client.get("/api/windows", headers=admin_headers).json()
        }
        assert balances == {first_window: 0, second_window: 3700}

        # Step 6: Reports reflect the split
        staff_report = {
            s["staff_id"]: s for s in client.get("/api/reports/staff", headers=admin_headers).json()
        }
        assert staff_report[STAFF_ID]["total_amount"] == pytest.approx(0.4)
        assert staff_report[OTHER_STAFF_ID]["total_amount"] == pytest.approx(0.6)
        assert staff_report[OTHER_STAFF_ID]["total_loss"] == pytest.approx(0.018)

        stats = client.get("/api/reports/stats", headers=admin_headers).json()
        assert stats["daily"][0]["loss_amount"] == pytest.approx(0.03)
        assert stats["overall"]["total_purchased"] == pytest.approx(1.4)


class TestMachineLifecycle:
    def test_delete_machine_keeps_orders(self, client, admin_headers):
        purchase = client.post(
            "/api/machines/purchase",
            headers=admin_headers,
            json={"phone": "139", "platform": "Mobile", "windows": [{"window_number": "1", "gold_balance": 100}]},
        ).json()
        window_id = purchase["window_ids"][0]
        order = client.post(
            "/api/orders",
            headers=admin_headers,
            json={"staff_id": STAFF_ID, "amount": 0.01, "date": "2026-10-02", "window_ids": [window_id]},
        ).json()

        report = client.delete(f"/api/machines/{purchase['machine_id']}", headers=admin_headers).json()

        assert report["deleted_window_ids"] == [window_id]
        assert client.get("/api/machines", headers=admin_headers).json() == []
        # The order keeps its snapshot of the deleted window
        kept = client.get(f"/api/orders/{order['id']}", headers=admin_headers).json()
        assert kept["window_snapshots"][0]["machine_name"] == "139 (Mobile)"


class TestTenantIsolation:
    def test_tenants_do_not_see_each_other(self, client, admin_headers, tenant_b_admin_headers):
        client.post(
            "/api/machines/purchase",
            headers=admin_headers,
            json={"phone": "138", "platform": "PC", "windows": [{"window_number": "1"}]},
        )

        assert client.get("/api/machines", headers=tenant_b_admin_headers).json() == []
        assert client.get("/api/windows", headers=tenant_b_admin_headers).json() == []
        assert client.get("/api/orders", headers=tenant_b_admin_headers).json()["total"] == 0
