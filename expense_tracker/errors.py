"""
Access Control Error Taxonomy

Every failure the core can report is one of these exception types.
They are terminal for the current operation: the core never retries them
and never maps them to transport codes. The boundary layer (HTTP, CLI, UI)
decides how to present each `code`.

DESIGN DECISION: Storage failures are a subclass of InternalError
(see services/storage/interface.py). A broken backend can therefore
never be mistaken for "not logged in" or "not found".
"""

from typing import Optional
from uuid import UUID


class AccessControlError(Exception):
    """Base class for every error surfaced by the core."""

    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationRequiredError(AccessControlError):
    """No usable session: missing, unbound, or bound to a deleted account."""

    code = "authentication_required"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(AccessControlError):
    """Authenticated, but the role or ownership check denied the request."""

    code = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(AccessControlError):
    """A referenced entity does not exist."""

    code = "not_found"

    def __init__(self, entity_type: str, entity_id: Optional[UUID] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found")


class ConflictError(AccessControlError):
    """A uniqueness invariant would be violated."""

    code = "conflict"


class PreconditionFailedError(AccessControlError):
    """Deletion blocked because dependent records still exist."""

    code = "precondition_failed"

    def __init__(self, message: str, count: int):
        self.count = count
        super().__init__(message)


class InvalidCredentialError(AccessControlError):
    """A password check failed on a credential-sensitive operation."""

    code = "invalid_credential"

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class InternalError(AccessControlError):
    """Storage or credential primitive failure."""

    code = "internal"
