import pytest

from window_ledger.core.exceptions import NotFoundException, ValidationException
from window_ledger.models.collection import Collection
from window_ledger.schemas.window_schemas import (
    MachineCreate,
    MachinePurchase,
    MachineUpdate,
    WindowCreate,
    WindowSpec,
)
from window_ledger.services.window_registry import WindowRegistry
from tests.conftest import FlakyStore, STAFF_ID, OTHER_STAFF_ID, TENANT_A, TENANT_B


@pytest.fixture
def registry(store):
    return WindowRegistry(store, TENANT_A)


@pytest.fixture
def machine(registry):
    return registry.add_machine(MachineCreate(phone="13800000000", platform="PC"))


@pytest.fixture
def window(registry, machine):
    return registry.add_window(
        WindowCreate(machine_id=machine.id, window_number="1", gold_balance=50000)
    )


class TestAssignment:
    """Tests for window assignment"""

    def test_assign_sets_user(self, registry, window):
        assigned = registry.assign(window.id, STAFF_ID)
        assert assigned.user_id == STAFF_ID
        assert registry.get_window(window.id).user_id == STAFF_ID

    def test_assign_is_idempotent(self, registry, window):
        """Assigning the same staff twice yields the same state as once"""
        first = registry.assign(window.id, STAFF_ID)
        second = registry.assign(window.id, STAFF_ID)
        assert first == second
        assert registry.get_window(window.id) == first

    def test_assign_overwrites_current_holder(self, registry, window):
        """Last writer wins: no check against the current assignee"""
        registry.assign(window.id, STAFF_ID)
        assert registry.assign(window.id, OTHER_STAFF_ID).user_id == OTHER_STAFF_ID

    def test_assign_none_frees_window(self, registry, window):
        registry.assign(window.id, STAFF_ID)
        assert registry.assign(window.id, None).user_id is None

    def test_assign_unknown_window(self, registry):
        with pytest.raises(NotFoundException):
            registry.assign("missing", STAFF_ID)

    def test_windows_for_staff(self, registry, machine, window):
        other = registry.add_window(WindowCreate(machine_id=machine.id, window_number="2"))
        registry.assign(window.id, STAFF_ID)
        registry.assign(other.id, OTHER_STAFF_ID)
        assert [w.id for w in registry.windows_for_staff(STAFF_ID)] == [window.id]


class TestBalances:
    """Tests for recharge and absolute balance writes"""

    def test_recharge_adds_delta_and_records_entry(self, registry, window):
        updated = registry.recharge(window.id, 20000, created_by="admin-1")
        assert updated.gold_balance == 70000

        entries = registry.list_recharges(window_id=window.id)
        assert len(entries) == 1
        assert entries[0].balance_before == 50000
        assert entries[0].balance_after == 70000
        assert entries[0].created_by == "admin-1"

    def test_negative_recharge_within_balance(self, registry, window):
        assert registry.recharge(window.id, -50000, created_by="admin-1").gold_balance == 0

    def test_recharge_below_zero_rejected(self, registry, window):
        with pytest.raises(ValidationException):
            registry.recharge(window.id, -50001, created_by="admin-1")
        assert registry.get_window(window.id).gold_balance == 50000
        assert registry.list_recharges() == []

    def test_zero_recharge_rejected(self, registry, window):
        with pytest.raises(ValidationException):
            registry.recharge(window.id, 0, created_by="admin-1")

    def test_recharge_unknown_window(self, registry):
        with pytest.raises(NotFoundException):
            registry.recharge("missing", 100, created_by="admin-1")

    def test_set_balance(self, registry, window):
        assert registry.set_balance(window.id, 123).gold_balance == 123

    def test_set_balance_negative_rejected(self, registry, window):
        with pytest.raises(ValidationException):
            registry.set_balance(window.id, -1)


class TestMachines:
    """Tests for machine lifecycle"""

    def test_window_requires_machine(self, registry):
        with pytest.raises(NotFoundException):
            registry.add_window(WindowCreate(machine_id="missing", window_number="1"))

    def test_create_batch(self, registry, machine):
        specs = [WindowSpec(window_number=str(n), gold_balance=n * 1000) for n in range(1, 4)]
        response = registry.create_batch(machine.id, specs)

        assert len(response.created_ids) == 3
        assert response.failed == []
        balances = sorted(w.gold_balance for w in registry.list_windows(machine_id=machine.id))
        assert balances == [1000, 2000, 3000]

    def test_create_batch_reports_failures(self, db_session, store, machine):
        flaky = WindowRegistry(FlakyStore(db_session, fail={("add", "cloud_windows")}), TENANT_A)
        response = flaky.create_batch(machine.id, [WindowSpec(window_number="9")])
        assert response.created_ids == []
        assert [s.window_number for s in response.failed] == ["9"]

    def test_update_machine(self, registry, machine):
        updated = registry.update_machine(machine.id, MachineUpdate(platform="Mobile"))
        assert updated.platform == "Mobile"
        assert updated.phone == "13800000000"

    def test_delete_cascade_removes_all_windows(self, registry, machine, window):
        registry.create_batch(machine.id, [WindowSpec(window_number="2")])
        keep_machine = registry.add_machine(MachineCreate(phone="139", platform="PC"))
        kept = registry.add_window(WindowCreate(machine_id=keep_machine.id, window_number="1"))

        report = registry.delete_cascade(machine.id)

        assert len(report.deleted_window_ids) == 2
        assert report.failed_window_ids == []
        assert not any(w.machine_id == machine.id for w in registry.list_windows())
        assert [w.id for w in registry.list_windows()] == [kept.id]
        with pytest.raises(NotFoundException):
            registry.get_machine(machine.id)

    def test_delete_cascade_tolerates_window_failure(self, db_session, store, registry, machine, window):
        flaky = WindowRegistry(FlakyStore(db_session, fail={("delete", window.id)}), TENANT_A)

        report = flaky.delete_cascade(machine.id)

        assert report.failed_window_ids == [window.id]
        # Machine stays deleted; the orphan window is left for the caller to see
        with pytest.raises(NotFoundException):
            registry.get_machine(machine.id)
        assert registry.get_window(window.id).machine_id == machine.id

    def test_delete_cascade_unknown_machine(self, registry):
        with pytest.raises(NotFoundException):
            registry.delete_cascade("missing")


class TestPurchase:
    """Tests for batch machine purchase"""

    def test_purchase_creates_machine_windows_and_entry(self, registry, store):
        report = registry.purchase_machine(
            MachinePurchase(
                phone="13700000000",
                platform="PC",
                windows=[
                    WindowSpec(window_number="1", gold_balance=300000),
                    WindowSpec(window_number="2", gold_balance=200000),
                ],
                cost=45.5,
                date="2026-10-01",
            )
        )

        assert report.ok
        assert len(report.window_ids) == 2
        windows = registry.list_windows(machine_id=report.machine_id)
        assert all(w.user_id is None for w in windows)

        purchase = store.get(Collection.PURCHASES, TENANT_A, report.purchase_id).data
        assert purchase["amount"] == 500000
        assert purchase["cost"] == 45.5

    def test_purchase_without_cost_has_no_entry(self, registry):
        report = registry.purchase_machine(
            MachinePurchase(phone="1", platform="PC", windows=[WindowSpec(window_number="1")])
        )
        assert report.ok
        assert report.purchase_id is None

    def test_purchase_reports_failed_step(self, db_session, store):
        flaky = WindowRegistry(FlakyStore(db_session, fail={("add", "purchases")}), TENANT_A)
        report = flaky.purchase_machine(
            MachinePurchase(
                phone="1", platform="PC", windows=[WindowSpec(window_number="1")], cost=10
            )
        )
        assert report.failed_steps == ["purchase"]
        assert report.machine_id is not None
        assert len(report.window_ids) == 1

    def test_purchase_aborts_without_machine(self, db_session, store):
        flaky = WindowRegistry(FlakyStore(db_session, fail={("add", "cloud_machines")}), TENANT_A)
        report = flaky.purchase_machine(
            MachinePurchase(phone="1", platform="PC", windows=[WindowSpec(window_number="1")])
        )
        assert report.failed_steps == ["machine"]
        assert report.window_ids == []


class TestTenantIsolation:
    """Tenant partitioning of windows"""

    def test_other_tenant_cannot_see_window(self, store, window):
        other = WindowRegistry(store, TENANT_B)
        assert other.list_windows() == []
        with pytest.raises(NotFoundException):
            other.get_window(window.id)
        with pytest.raises(NotFoundException):
            other.assign(window.id, "intruder")


class TestWindowApi:
    """HTTP surface of the registry"""

    def test_purchase_and_assign_flow(self, client, admin_headers, staff_headers):
        response = client.post(
            "/api/machines/purchase",
            headers=admin_headers,
            json={
                "phone": "13800000000",
                "platform": "PC",
                "windows": [{"window_number": "1", "gold_balance": 100000}],
                "cost": 20,
            },
        )
        assert response.status_code == 201
        window_id = response.json()["window_ids"][0]

        # Staff sees nothing until assigned
        assert client.get("/api/windows", headers=staff_headers).json() == []

        response = client.put(
            f"/api/windows/{window_id}/assignee",
            headers=admin_headers,
            json={"user_id": "staff-alice"},
        )
        assert response.status_code == 200
        assert response.json()["user_id"] == "staff-alice"

        windows = client.get("/api/windows", headers=staff_headers).json()
        assert [w["id"] for w in windows] == [window_id]

    def test_recharge_endpoint(self, client, admin_headers, registry, window):
        response = client.post(
            f"/api/windows/{window.id}/recharge", headers=admin_headers, json={"amount": 500}
        )
        assert response.status_code == 200
        assert response.json()["gold_balance"] == 50500

        response = client.post(
            f"/api/windows/{window.id}/recharge", headers=admin_headers, json={"amount": -999999}
        )
        assert response.status_code == 400

        recharges = client.get(f"/api/windows/{window.id}/recharges", headers=admin_headers).json()
        assert len(recharges) == 1

    def test_delete_machine_endpoint(self, client, admin_headers, machine, window):
        response = client.delete(f"/api/machines/{machine.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["deleted_window_ids"] == [window.id]
        assert client.get("/api/windows", headers=admin_headers).json() == []

    def test_batch_windows_unknown_machine(self, client, admin_headers):
        response = client.post(
            "/api/machines/missing/windows",
            headers=admin_headers,
            json={"windows": [{"window_number": "1"}]},
        )
        assert response.status_code == 404

    def test_other_tenant_gets_404(self, client, tenant_b_admin_headers, window):
        response = client.get(f"/api/windows/{window.id}", headers=tenant_b_admin_headers)
        assert response.status_code == 404
