"""Administrator-side documents.

AdminRecord is the second writable view of an employee's onboarding,
keyed by employee id so administrators can prepare it before the employee
ever signs in. AdminRegistration marks principals as administrators.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from portal.models.document import DocumentModel
from portal.models.profile import AppointmentInfo, ShiftSelection, Step


class NotificationKind(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"


class Notification(DocumentModel):
    """Message from an administrator shown in the employee's portal."""

    title: str
    body: str = ""
    kind: NotificationKind = NotificationKind.INFO
    created_at: datetime | None = None
    read: bool = False


class EmployeeDetails(DocumentModel):
    """Personal details entered by an administrator."""

    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state_zip: str = ""


class AdminRecord(DocumentModel):
    """Administrator view of one employee's onboarding.

    Attributes:
        employee_id: Normalized employee id, also the document key.
        steps: Steps as administrators see/edit them. Unknown ids are
            ignored when merged into the profile.
        shift: Shift values and the administrator's decision.
        appointment: Scheduled appointment.
        details: Personal details.
        notifications: Messages for the employee, oldest first.
        updated_at: Last administrator write.
    """

    employee_id: str
    steps: list[Step] = Field(default_factory=list)
    shift: ShiftSelection = Field(default_factory=ShiftSelection)
    appointment: AppointmentInfo = Field(default_factory=AppointmentInfo)
    details: EmployeeDetails = Field(default_factory=EmployeeDetails)
    notifications: list[Notification] = Field(default_factory=list)
    updated_at: datetime | None = None


class AdminRegistration(DocumentModel):
    """Administrator registry entry, keyed by principal id.

    role and is_admin are strict so a malformed entry ("yes", 1) fails
    validation instead of coercing into an admin grant.
    """

    principal_id: str
    email: str = ""
    role: str = Field(default="", strict=True)
    is_admin: bool = Field(default=False, strict=True)
    created_at: datetime | None = None

    @property
    def grants_admin(self) -> bool:
        return self.role == "admin" or self.is_admin is True
