class WindowLedgerException(Exception):
    """Base exception for the window ledger"""

    pass


class UnauthorizedException(WindowLedgerException):
    """Raised when JWT validation fails"""

    pass


class NotFoundException(WindowLedgerException):
    """Raised when a referenced order, window, machine or request is absent"""

    pass


class ForbiddenException(WindowLedgerException):
    """Raised when a staff member calls an admin-only operation"""

    pass


class ValidationException(WindowLedgerException):
    """Raised for business logic validation errors"""

    pass


class StoreFailureException(WindowLedgerException):
    """Raised when the resource store rejects a write the operation depends on"""

    def __init__(self, message: str, error: str | None = None):
        super().__init__(message if error is None else f"{message}: {error}")
        self.error = error
