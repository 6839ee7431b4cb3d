"""Domain documents and ORM models for the onboarding portal.

All models are exported from this module for convenient imports:
    from portal.models import EmployeeProfile, AllowlistEntry, ...

- principal.py: Principal (identity provider output)
- profile.py: EmployeeProfile, Step, ShiftSelection, AppointmentInfo, acknowledgements
- allowlist.py: AllowlistEntry
- admin_record.py: AdminRecord, Notification, EmployeeDetails, AdminRegistration
- stored_document.py: StoredDocument (SQL document store row)
"""

from portal.models.admin_record import (
    AdminRecord,
    AdminRegistration,
    EmployeeDetails,
    Notification,
    NotificationKind,
)
from portal.models.allowlist import AllowlistEntry, AllowlistStatus
from portal.models.base import Base
from portal.models.document import DocumentModel, Versioned, utc_now
from portal.models.principal import Principal
from portal.models.profile import (
    FOOTWEAR_ACK_COUNT,
    STAGE_COMPLETED,
    AppointmentInfo,
    EmployeeProfile,
    FootwearAcknowledgement,
    I9Acknowledgement,
    ProfileRole,
    ProfileStatus,
    ShiftSelection,
    ShiftStatus,
    Step,
)
from portal.models.stored_document import StoredDocument

__all__ = [
    # Documents
    "DocumentModel",
    "Versioned",
    "utc_now",
    "Principal",
    "EmployeeProfile",
    "Step",
    "ShiftSelection",
    "ShiftStatus",
    "AppointmentInfo",
    "FootwearAcknowledgement",
    "I9Acknowledgement",
    "ProfileRole",
    "ProfileStatus",
    "STAGE_COMPLETED",
    "FOOTWEAR_ACK_COUNT",
    "AllowlistEntry",
    "AllowlistStatus",
    "AdminRecord",
    "AdminRegistration",
    "EmployeeDetails",
    "Notification",
    "NotificationKind",
    # ORM
    "Base",
    "StoredDocument",
]
