"""
Authorization Policy

Role checks layered on top of the Authentication Gate.

A role check only ever sees an Identity, and an Identity only exists after
successful authentication. So an anonymous caller is always told
"authentication required", never "forbidden", whatever role the operation
would have needed. authorize() makes that ordering explicit for callers
that start from a raw token.
"""

from typing import Iterable, Optional
from uuid import UUID

from expense_tracker.access.gate import AuthenticationGate
from expense_tracker.audit import AuditLogger
from expense_tracker.errors import ForbiddenError
from expense_tracker.models.account import Identity, Role


class AuthorizationPolicy:
    """Role-based gate."""

    def __init__(
        self,
        gate: AuthenticationGate,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gate = gate
        self._audit_logger = audit_logger

    async def require_role(
        self,
        identity: Identity,
        allowed_roles: Iterable[Role],
        action: str = "restricted operation",
        correlation_id: Optional[UUID] = None,
    ) -> Identity:
        """
        Pass the identity through if its role is allowed.

        Raises:
            ForbiddenError: identity.role not in allowed_roles
        """
        if identity.role not in set(allowed_roles):
            await self.deny(identity, action, correlation_id=correlation_id)
        return identity

    async def require_admin(
        self,
        identity: Identity,
        action: str = "admin operation",
        correlation_id: Optional[UUID] = None,
    ) -> Identity:
        return await self.require_role(
            identity,
            {Role.ADMIN},
            action=action,
            correlation_id=correlation_id,
        )

    async def authorize(
        self,
        token: Optional[str],
        allowed_roles: Optional[Iterable[Role]] = None,
        action: str = "restricted operation",
        correlation_id: Optional[UUID] = None,
    ) -> Identity:
        """
        Authenticate, then check the role.

        Authentication failures win: AuthenticationRequiredError is raised
        before the role is ever looked at.
        """
        identity = await self._gate.resolve(token, correlation_id=correlation_id)
        if allowed_roles is not None:
            await self.require_role(
                identity,
                allowed_roles,
                action=action,
                correlation_id=correlation_id,
            )
        return identity

    async def deny(
        self,
        identity: Identity,
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Record a denial and raise ForbiddenError."""
        if self._audit_logger:
            await self._audit_logger.log_access_denied(
                actor_id=identity.account_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                correlation_id=correlation_id,
            )
        raise ForbiddenError()
