import logging
from datetime import date, datetime, UTC
from typing import Optional

from window_ledger.core.exceptions import (
    NotFoundException,
    StoreFailureException,
    ValidationException,
)
from window_ledger.models.collection import Collection
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.schemas.window_schemas import (
    CascadeDeleteReport,
    CloudMachine,
    CloudWindow,
    MachineCreate,
    MachinePurchase,
    MachineUpdate,
    PurchaseReport,
    WindowBatchResponse,
    WindowCreate,
    WindowRecharge,
    WindowSpec,
)

logger = logging.getLogger(__name__)


class WindowRegistry:
    """
    Service layer for cloud machines and their windows.

    Assignment and balance writes are last-writer-wins: there is no version
    check between reading a window and writing it back, so two concurrent
    assignments of the same window race and the later write is what the
    next reload observes.
    """

    def __init__(self, store: ResourceStore, tenant_id: str):
        self.store = store
        self.tenant_id = tenant_id

    # Reads

    def list_machines(self) -> list[CloudMachine]:
        result = self.store.list(Collection.MACHINES, self.tenant_id)
        if not result.success:
            raise StoreFailureException("Failed to list machines", result.error)
        return [CloudMachine.model_validate(doc) for doc in result.data]

    def list_windows(self, machine_id: Optional[str] = None) -> list[CloudWindow]:
        result = self.store.list(Collection.WINDOWS, self.tenant_id)
        if not result.success:
            raise StoreFailureException("Failed to list windows", result.error)
        windows = [CloudWindow.model_validate(doc) for doc in result.data]
        if machine_id is not None:
            windows = [w for w in windows if w.machine_id == machine_id]
        return windows

    def windows_for_staff(self, staff_id: str) -> list[CloudWindow]:
        """Windows currently assigned to a staff member"""
        return [w for w in self.list_windows() if w.user_id == staff_id]

    def get_machine(self, machine_id: str) -> CloudMachine:
        result = self.store.get(Collection.MACHINES, self.tenant_id, machine_id)
        if not result.success:
            raise StoreFailureException(f"Failed to load machine {machine_id}", result.error)
        if result.data is None:
            raise NotFoundException(f"Machine {machine_id} not found")
        return CloudMachine.model_validate(result.data)

    def get_window(self, window_id: str) -> CloudWindow:
        result = self.store.get(Collection.WINDOWS, self.tenant_id, window_id)
        if not result.success:
            raise StoreFailureException(f"Failed to load window {window_id}", result.error)
        if result.data is None:
            raise NotFoundException(f"Window {window_id} not found")
        return CloudWindow.model_validate(result.data)

    def machine_label(self, machine_id: str) -> str:
        """Display name "phone (platform)", or "unknown" if the machine is gone"""
        try:
            machine = self.get_machine(machine_id)
        except (NotFoundException, StoreFailureException):
            return "unknown"
        return f"{machine.phone} ({machine.platform})"

    # Window mutations

    def assign(self, window_id: str, staff_id: Optional[str]) -> CloudWindow:
        """
        Give a window to a staff member, or free it with ``staff_id=None``.

        Idempotent when the requested assignee already holds the window.
        Otherwise overwrites the current holder unconditionally.

        Raises:
            NotFoundException: If the window doesn't exist
            StoreFailureException: If the write is rejected
        """
        window = self.get_window(window_id)
        if window.user_id == staff_id:
            return window

        previous = window.user_id
        window = self._write_window(window_id, {"user_id": staff_id})
        logger.info(
            "Window %s reassigned %s -> %s (tenant %s)",
            window_id,
            previous,
            staff_id,
            self.tenant_id,
        )
        return window

    def recharge(self, window_id: str, delta: int, created_by: str) -> CloudWindow:
        """
        Add a signed coin delta to a window's balance.

        A delta of zero, or one that would take the balance below zero, is
        rejected. Every successful recharge leaves a WindowRecharge entry;
        failing to write that entry is logged but does not undo the recharge.
        """
        if delta == 0:
            raise ValidationException("Recharge amount must be non-zero")

        window = self.get_window(window_id)
        balance_after = window.gold_balance + delta
        if balance_after < 0:
            raise ValidationException(
                f"Recharge of {delta} would leave window {window_id} at {balance_after}"
            )

        updated = self._write_window(window_id, {"gold_balance": balance_after})

        entry = {
            "window_id": window_id,
            "amount": delta,
            "balance_before": window.gold_balance,
            "balance_after": balance_after,
            "created_at": datetime.now(UTC).isoformat(),
            "created_by": created_by,
        }
        result = self.store.add(Collection.RECHARGES, self.tenant_id, entry)
        if not result.success:
            logger.warning("Recharge of window %s applied but not recorded: %s", window_id, result.error)
        return updated

    def set_balance(self, window_id: str, value: int) -> CloudWindow:
        """Absolute balance write, used when an order completes"""
        if value < 0:
            raise ValidationException("Balance cannot be negative")
        self.get_window(window_id)
        return self._write_window(window_id, {"gold_balance": value})

    def list_recharges(self, window_id: Optional[str] = None) -> list[WindowRecharge]:
        result = self.store.list(Collection.RECHARGES, self.tenant_id)
        if not result.success:
            raise StoreFailureException("Failed to list recharges", result.error)
        entries = [WindowRecharge.model_validate(doc) for doc in result.data]
        if window_id is not None:
            entries = [e for e in entries if e.window_id == window_id]
        return entries

    def add_window(self, window_data: WindowCreate) -> CloudWindow:
        """Create a single window; the machine must exist"""
        self.get_machine(window_data.machine_id)
        payload = self._window_payload(window_data.machine_id, window_data)
        result = self.store.add(Collection.WINDOWS, self.tenant_id, payload)
        if not result.success:
            raise StoreFailureException("Failed to create window", result.error)
        return CloudWindow.model_validate(result.data)

    def create_batch(self, machine_id: str, specs: list[WindowSpec]) -> WindowBatchResponse:
        """
        Create several windows under one machine.

        Not transactional: windows created before a failure stay created.
        The response lists created ids and the specs that failed.
        """
        self.get_machine(machine_id)

        created_ids: list[str] = []
        failed: list[WindowSpec] = []
        for spec in specs:
            result = self.store.add(
                Collection.WINDOWS, self.tenant_id, self._window_payload(machine_id, spec)
            )
            if result.success:
                created_ids.append(result.id)
            else:
                logger.warning(
                    "Window %s on machine %s not created: %s",
                    spec.window_number,
                    machine_id,
                    result.error,
                )
                failed.append(spec)

        return WindowBatchResponse(machine_id=machine_id, created_ids=created_ids, failed=failed)

    def delete_window(self, window_id: str) -> None:
        self.get_window(window_id)
        result = self.store.delete(Collection.WINDOWS, self.tenant_id, window_id)
        if not result.success:
            raise StoreFailureException(f"Failed to delete window {window_id}", result.error)

    # Machine mutations

    def add_machine(self, machine_data: MachineCreate) -> CloudMachine:
        result = self.store.add(Collection.MACHINES, self.tenant_id, machine_data.model_dump())
        if not result.success:
            raise StoreFailureException("Failed to create machine", result.error)
        return CloudMachine.model_validate(result.data)

    def update_machine(self, machine_id: str, machine_data: MachineUpdate) -> CloudMachine:
        self.get_machine(machine_id)
        partial = machine_data.model_dump(exclude_none=True)
        if not partial:
            return self.get_machine(machine_id)
        result = self.store.update(Collection.MACHINES, self.tenant_id, machine_id, partial)
        if not result.success:
            raise StoreFailureException(f"Failed to update machine {machine_id}", result.error)
        return CloudMachine.model_validate(result.data)

    def delete_cascade(self, machine_id: str) -> CascadeDeleteReport:
        """
        Delete a machine and every window that points at it.

        The machine goes first. A window that fails to delete is reported
        and left in place; nothing is rolled back.
        """
        self.get_machine(machine_id)
        windows = self.list_windows(machine_id=machine_id)

        result = self.store.delete(Collection.MACHINES, self.tenant_id, machine_id)
        if not result.success:
            raise StoreFailureException(f"Failed to delete machine {machine_id}", result.error)

        deleted: list[str] = []
        failed: list[str] = []
        for window in windows:
            result = self.store.delete(Collection.WINDOWS, self.tenant_id, window.id)
            if result.success:
                deleted.append(window.id)
            else:
                logger.warning(
                    "Machine %s deleted but window %s remains: %s",
                    machine_id,
                    window.id,
                    result.error,
                )
                failed.append(window.id)

        return CascadeDeleteReport(
            machine_id=machine_id, deleted_window_ids=deleted, failed_window_ids=failed
        )

    def purchase_machine(self, purchase: MachinePurchase) -> PurchaseReport:
        """
        Batch purchase: create the machine, its windows, then the purchase entry.

        Each sub-step runs in order and failures are named in
        ``failed_steps``. If the machine itself cannot be created nothing
        else is attempted.
        """
        report = PurchaseReport()

        result = self.store.add(
            Collection.MACHINES,
            self.tenant_id,
            {"phone": purchase.phone, "platform": purchase.platform},
        )
        if not result.success:
            logger.error("Purchase aborted, machine not created: %s", result.error)
            report.failed_steps.append("machine")
            return report
        report.machine_id = result.id

        for spec in purchase.windows:
            result = self.store.add(
                Collection.WINDOWS, self.tenant_id, self._window_payload(report.machine_id, spec)
            )
            if result.success:
                report.window_ids.append(result.id)
            else:
                report.failed_steps.append(f"window:{spec.window_number}")

        if purchase.cost is not None:
            entry = {
                "date": purchase.date or date.today().isoformat(),
                "amount": sum(spec.gold_balance for spec in purchase.windows),
                "cost": purchase.cost,
            }
            result = self.store.add(Collection.PURCHASES, self.tenant_id, entry)
            if result.success:
                report.purchase_id = result.id
            else:
                report.failed_steps.append("purchase")

        if report.failed_steps:
            logger.warning(
                "Partial purchase of machine %s: failed %s", report.machine_id, report.failed_steps
            )
        return report

    # Helpers

    @staticmethod
    def _window_payload(machine_id: str, spec: WindowSpec) -> dict:
        return {
            "machine_id": machine_id,
            "window_number": spec.window_number,
            "gold_balance": spec.gold_balance,
            "user_id": None,
        }

    def _write_window(self, window_id: str, partial: dict) -> CloudWindow:
        result = self.store.update(Collection.WINDOWS, self.tenant_id, window_id, partial)
        if not result.success:
            raise StoreFailureException(f"Failed to update window {window_id}", result.error)
        return CloudWindow.model_validate(result.data)
