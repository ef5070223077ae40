from enum import Enum as PyEnum


class RequestType(str, PyEnum):
    """Staff window request kinds"""

    APPLY = "apply"
    RELEASE = "release"


class RequestStatus(str, PyEnum):
    """Window request states; approved and rejected are terminal"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
