"""Employee profile document and its embedded values.

The profile is keyed by principal id and written by two parties: the
employee (step completion, shift choice) and the administrator (overrides
and the admin record, merged in by the sync reconciler).
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from portal.models.document import DocumentModel

# Stage value once every step is done
STAGE_COMPLETED = "completed"

# Number of safety acknowledgements on the footwear step
FOOTWEAR_ACK_COUNT = 5


class ProfileRole(str, Enum):
    EMPLOYEE = "employee"
    ADMIN = "admin"


class ProfileStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class ShiftStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Step(DocumentModel):
    """One onboarding step.

    Attributes:
        id: Canonical step id.
        label: Display label.
        done: Completed. Monotonic except for explicit admin reset.
        locked: Derived from the predecessor's done flag.
        completed_at: First completion time.
    """

    id: str
    label: str = ""
    done: bool = False
    locked: bool = True
    completed_at: datetime | None = None


class ShiftSelection(DocumentModel):
    """Position and shift the employee picked in the first step."""

    position: str = ""
    shift_code: str = ""
    approved: bool = False
    status: ShiftStatus = ShiftStatus.PENDING
    submitted_at: datetime | None = None
    decided_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return not self.position and not self.shift_code


class AppointmentInfo(DocumentModel):
    """Badge/first-day appointment scheduled by an administrator."""

    date: str = ""
    time: str = ""
    address: str = ""
    notes: str = ""

    @property
    def is_empty(self) -> bool:
        """True when date, time and address are all blank."""
        return not (self.date.strip() or self.time.strip() or self.address.strip())


class FootwearAcknowledgement(DocumentModel):
    """Safety footwear program acknowledgements (ack1..ack5)."""

    ack1: bool = False
    ack2: bool = False
    ack3: bool = False
    ack4: bool = False
    ack5: bool = False
    acknowledged_at: datetime | None = None

    def missing(self) -> list[str]:
        """Names of acknowledgements not yet given."""
        return [
            f"ack{i}"
            for i in range(1, FOOTWEAR_ACK_COUNT + 1)
            if not getattr(self, f"ack{i}")
        ]


class I9Acknowledgement(DocumentModel):
    """Employee confirmed they will bring I-9 documents."""

    ack: bool = False
    acknowledged_at: datetime | None = None


class EmployeeProfile(DocumentModel):
    """Onboarding state for one principal.

    Attributes:
        principal_id: Owner, also the document key.
        email: Lowercased email from the identity provider.
        display_name: Name from the identity provider.
        employee_id: Linked HR id. Null until linking, immutable after.
        pending_employee_id: Id a link request is claiming right now.
        pending_since: When that link request started.
        role: Always employee for profiles created by the portal.
        verified: True once linking succeeded.
        status: Account status.
        stage: Id of the next actionable step, or "completed".
        steps: Ordered onboarding steps.
        shift: Shift selection from the first step.
        appointment: Appointment scheduled by an administrator.
        footwear: Footwear acknowledgements.
        i9: I-9 readiness acknowledgement.
        created_at: First sign-in.
        updated_at: Last write, drives last-writer-wins for scalar fields.
        last_login_at: Last sign-in.
    """

    principal_id: str
    email: str = ""
    display_name: str = ""
    employee_id: str | None = None
    pending_employee_id: str | None = None
    pending_since: datetime | None = None
    role: ProfileRole = ProfileRole.EMPLOYEE
    verified: bool = False
    status: ProfileStatus = ProfileStatus.PENDING
    stage: str = ""
    steps: list[Step] = Field(default_factory=list)
    shift: ShiftSelection = Field(default_factory=ShiftSelection)
    appointment: AppointmentInfo = Field(default_factory=AppointmentInfo)
    footwear: FootwearAcknowledgement = Field(default_factory=FootwearAcknowledgement)
    i9: I9Acknowledgement = Field(default_factory=I9Acknowledgement)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login_at: datetime | None = None
