import logging
from datetime import datetime, UTC
from typing import Callable, Optional

from window_ledger.core.exceptions import (
    NotFoundException,
    StoreFailureException,
    ValidationException,
    WindowLedgerException,
)
from window_ledger.models.collection import Collection
from window_ledger.models.window_request import RequestStatus, RequestType
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.schemas.request_schemas import RequestDecision, WindowRequest
from window_ledger.services.window_registry import WindowRegistry

logger = logging.getLogger(__name__)


class RequestArbiter:
    """
    Staff ask to acquire or release a window; an admin approves or rejects.

    Approval of a request that names a window reassigns that window.
    ``process`` is not guarded against being called twice: a second call
    re-stamps the request and re-applies the assignment.
    """

    def __init__(
        self,
        store: ResourceStore,
        tenant_id: str,
        registry: Optional[WindowRegistry] = None,
        clock: Callable[[], str] = lambda: datetime.now(UTC).isoformat(),
    ):
        self.store = store
        self.tenant_id = tenant_id
        self.registry = registry or WindowRegistry(store, tenant_id)
        self.clock = clock

    def submit(
        self,
        staff_id: str,
        staff_name: str,
        request_type: RequestType,
        window_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> WindowRequest:
        """
        Create a pending request.

        Raises:
            ValidationException: If a release request names no window
            NotFoundException: If the named window doesn't exist
        """
        if request_type == RequestType.RELEASE and window_id is None:
            raise ValidationException("A release request must name the window to release")
        if window_id is not None:
            self.registry.get_window(window_id)

        payload = {
            "staff_id": staff_id,
            "staff_name": staff_name,
            "type": request_type.value,
            "window_id": window_id,
            "status": RequestStatus.PENDING.value,
            "created_at": self.clock(),
            "note": note,
        }
        result = self.store.add(Collection.REQUESTS, self.tenant_id, payload)
        if not result.success:
            raise StoreFailureException("Failed to submit window request", result.error)
        return WindowRequest.model_validate(result.data)

    def get(self, request_id: str) -> WindowRequest:
        result = self.store.get(Collection.REQUESTS, self.tenant_id, request_id)
        if not result.success:
            raise StoreFailureException(f"Failed to load request {request_id}", result.error)
        if result.data is None:
            raise NotFoundException(f"Window request {request_id} not found")
        return WindowRequest.model_validate(result.data)

    def list_requests(
        self, status: Optional[RequestStatus] = None, staff_id: Optional[str] = None
    ) -> list[WindowRequest]:
        result = self.store.list(Collection.REQUESTS, self.tenant_id)
        if not result.success:
            raise StoreFailureException("Failed to list window requests", result.error)
        requests = [WindowRequest.model_validate(doc) for doc in result.data]
        if status is not None:
            requests = [r for r in requests if r.status == status]
        if staff_id is not None:
            requests = [r for r in requests if r.staff_id == staff_id]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    def process(self, request_id: str, approved: bool, admin_id: str) -> RequestDecision:
        """
        Approve or reject a request.

        The decision is stamped first, then an approved request with a
        window applies its assignment. An approved request without a window
        is recorded with no effect on any window. If the assignment fails
        the decision stays recorded and ``failed_steps`` names
        ``assign:<window_id>``.

        Raises:
            NotFoundException: If the request doesn't exist
            StoreFailureException: If the decision cannot be saved
        """
        request = self.get(request_id)
        if request.status != RequestStatus.PENDING:
            logger.warning(
                "Window request %s already %s, processing again", request_id, request.status.value
            )

        status = RequestStatus.APPROVED if approved else RequestStatus.REJECTED
        result = self.store.update(
            Collection.REQUESTS,
            self.tenant_id,
            request_id,
            {"status": status.value, "processed_at": self.clock(), "processed_by": admin_id},
        )
        if not result.success:
            raise StoreFailureException(f"Failed to process request {request_id}", result.error)
        request = WindowRequest.model_validate(result.data)

        decision = RequestDecision(request=request)
        if not approved:
            return decision
        if request.window_id is None:
            logger.info("Window request %s approved without a window; no assignment made", request_id)
            return decision

        assignee = request.staff_id if request.type == RequestType.APPLY else None
        try:
            self.registry.assign(request.window_id, assignee)
        except WindowLedgerException as e:
            logger.warning(
                "Window request %s approved but window %s not reassigned: %s",
                request_id,
                request.window_id,
                e,
            )
            decision.failed_steps.append(f"assign:{request.window_id}")
        return decision
