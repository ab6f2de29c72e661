"""
Error taxonomy for the entitlement and lead-routing core.

Storage failures are wrapped into StorageConflict / StorageError before they
reach a caller, so the web layer can decide between "prompt upgrade",
"retry the request" and "fix the input" from the exception type alone.
"""
from typing import Optional


class RealtyCoreError(Exception):
    """Base exception for the realtycore package."""
    pass


class CapExceeded(RealtyCoreError):
    """A usage cap (listings, seats) is already reached. User-correctable."""

    def __init__(self, counter_name: str, limit: int, current: int, scope: str = "agent"):
        self.counter_name = counter_name
        self.limit = limit
        self.current = current
        self.scope = scope
        super().__init__(
            f"{counter_name} cap reached for {scope}: {current}/{limit}"
        )

    def to_dict(self) -> dict:
        return {
            "error": "cap_exceeded",
            "counter_name": self.counter_name,
            "limit": self.limit,
            "current": self.current,
            "scope": self.scope,
        }


class FeatureNotAvailable(RealtyCoreError):
    """The caller's tier does not include the requested capability."""

    def __init__(self, feature: str, role: Optional[str] = None):
        self.feature = feature
        self.role = role
        super().__init__(f"Feature '{feature}' is not available for role {role or 'unknown'}")


class StorageConflict(RealtyCoreError):
    """
    Concurrent write detected. Raised inside a transaction it asks
    run_in_transaction for a retry; raised to callers once retries run out.
    Transient.
    """
    pass


class StorageError(RealtyCoreError):
    """Non-conflict failure from the database layer."""
    pass


class NotFoundError(RealtyCoreError):
    """A referenced user, organization, listing or lead does not exist."""

    def __init__(self, kind: str, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class LeadAlreadyAssigned(RealtyCoreError):
    """Lead already has an assignee; use reassignment instead."""
    pass


class InvalidTransition(RealtyCoreError):
    """Requested status change is not allowed from the current status."""
    pass


class MembershipConflict(RealtyCoreError):
    """User belongs to a different organization, or is not a member at all."""
    pass
