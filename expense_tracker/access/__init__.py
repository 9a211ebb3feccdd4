"""
Access Control Package

Request flow, in order:
1. AuthenticationGate: session token -> Identity
2. AuthorizationPolicy: role check on that Identity
3. OwnershipEngine: per-record ownership and invariant checks
CascadingAccountDeletion builds on all three.
"""

from expense_tracker.access.gate import AuthenticationGate
from expense_tracker.access.policy import AuthorizationPolicy
from expense_tracker.access.ownership import OwnershipEngine
from expense_tracker.access.cascade import CascadingAccountDeletion, DeletionSummary

__all__ = [
    "AuthenticationGate",
    "AuthorizationPolicy",
    "CascadingAccountDeletion",
    "DeletionSummary",
    "OwnershipEngine",
]
