"""Allow-list entry: HR-issued employee id and its claim state."""

from datetime import datetime
from enum import Enum

from portal.models.document import DocumentModel


class AllowlistStatus(str, Enum):
    """Claim lifecycle of an allow-list entry.

    UNCLAIMED: nobody holds it.
    ASSIGNED: an administrator reserved it for a principal who has not linked yet.
    VERIFIED: the principal linked it.
    """

    UNCLAIMED = "unclaimed"
    ASSIGNED = "assigned"
    VERIFIED = "verified"


class AllowlistEntry(DocumentModel):
    """Keyed by normalized employee id.

    Attributes:
        employee_id: Normalized id, e.g. "SP123".
        full_name: Name HR recorded.
        email: Expected email (lowercased). When set, linking requires a match.
        active: Inactive entries can never be claimed.
        status: Claim lifecycle state.
        claimed_by_principal_id: At most one principal holds the entry.
        created_at: When an administrator created the entry.
        claimed_at: When the claim was taken.
    """

    employee_id: str
    full_name: str = ""
    email: str | None = None
    active: bool = True
    status: AllowlistStatus = AllowlistStatus.UNCLAIMED
    claimed_by_principal_id: str | None = None
    created_at: datetime | None = None
    claimed_at: datetime | None = None
