"""
Result of a usage-cap reservation (new listing, new team seat).
"""
import uuid
from typing import Literal, Optional
from pydantic import BaseModel

from realtycore.utils.errors import CapExceeded, FeatureNotAvailable


class ReservationResult(BaseModel):
    status: Literal["reserved", "rejected"]
    counter_name: str  # listings, seats
    scope: str  # agent, organization
    limit: Optional[int] = None  # None means unlimited
    current: int = 0
    reason: Optional[str] = None  # cap_reached, feature_not_available
    resource_id: Optional[uuid.UUID] = None
    role: Optional[str] = None

    @property
    def reserved(self) -> bool:
        return self.status == "reserved"

    def raise_for_rejection(self) -> "ReservationResult":
        """Raise the matching error for a rejection; return self otherwise."""
        if self.status == "reserved":
            return self
        if self.reason == "feature_not_available":
            raise FeatureNotAvailable(self.counter_name, self.role)
        raise CapExceeded(self.counter_name, self.limit or 0, self.current, self.scope)
