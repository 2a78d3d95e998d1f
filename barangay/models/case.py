"""
Barangay Portal Case Models
Enumerations, reference lists and request bodies for the case module.

Case documents themselves are plain MongoDB documents (dicts); their shape:

    {
        caseId, status, typeOfCase, description, placeOfIncident, dateOfIncident,
        complainant: {name, address, contact}, respondent: {name, address, contact},
        reportedBy: {username, name}, priority, harassmentType, seniorCategory,
        seniorInvolved, evidences: [...], hearings: [...], patawagForms: [...],
        statusHistory: [...], ongoingSince, over45Notified, resolveDate,
        cancelDate, cancellationReason, createdAt, updatedAt
    }
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CaseStatus(str, Enum):
    """The five lifecycle states. New cases start as REPORTED."""
    REPORTED = "Reported"
    ONGOING = "Ongoing"
    HEARING = "Hearing"
    RESOLVED = "Resolved"
    CANCELLED = "Cancelled"

    @classmethod
    def normalize(cls, value: Optional[str]) -> Optional["CaseStatus"]:
        """
        Match a requested status case-insensitively.
        The legacy name "Pending" means REPORTED. Unknown values give None.
        """
        text = str(value or "").strip().lower()
        if text == "pending":
            return cls.REPORTED
        for status in cls:
            if status.value.lower() == text:
                return status
        return None


class CasePriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "CasePriority":
        """Unknown or missing priorities fall back to MEDIUM."""
        for priority in cls:
            if priority.value == value:
                return priority
        return cls.MEDIUM


class NotificationType(str, Enum):
    STATUS_CHANGE = "STATUS_CHANGE"
    HEARING_SCHEDULED = "HEARING_SCHEDULED"
    PATAWAG_CREATED = "PATAWAG_CREATED"
    CANCELLED = "CANCELLED"
    OVERDUE_45_DAYS = "OVERDUE_45_DAYS"


class EvidenceKind(str, Enum):
    """Which upload field an evidence file came from."""
    EVIDENCE = "evidence"
    MEDICO_LEGAL = "medicoLegal"
    VANDALISM_IMAGE = "vandalismImage"


CASE_TYPES = [
    "Noise Complaint",
    "Theft",
    "Physical Assault",
    "Trespassing",
    "Lost Item",
    "Vandalism",
    "Domestic Dispute",
    "Harassment",
    "Public Disturbance",
    "Curfew Violation",
    "Others",
]

HARASSMENT_TYPES = [
    "Verbal",
    "Physical",
    "Sexual",
    "Online / Cyber",
    "Bullying",
    "Stalking",
    "Other",
]

SENIOR_CATEGORIES = [
    "Complainant",
    "Respondent",
    "Both",
    "Witness",
]

# Used by the printable report to tick the "nature of case" boxes
CRIMINAL_CASE_TYPES = {"Theft", "Physical Assault", "Vandalism", "Harassment"}
CIVIL_CASE_TYPES = {"Domestic Dispute", "Noise Complaint", "Trespassing"}

DEFAULT_VENUE = "Barangay Hall"

MIN_EVIDENCE_FILES = 3

# Upload field name -> (evidence kind, max files)
EVIDENCE_FIELDS = {
    "evidenceFiles": (EvidenceKind.EVIDENCE, 10),
    "medicoLegalFile": (EvidenceKind.MEDICO_LEGAL, 2),
    "vandalismImage": (EvidenceKind.VANDALISM_IMAGE, 10),
}


# =============================================================================
# Request bodies
# =============================================================================

class StatusUpdate(BaseModel):
    """POST /api/cases/{id}/status"""
    model_config = ConfigDict(populate_by_name=True)

    status: str = ""
    note: str = ""
    cancellation_reason: str = Field(default="", alias="cancellationReason")


class HearingCreate(BaseModel):
    """POST /api/cases/{id}/hearings"""
    model_config = ConfigDict(populate_by_name=True)

    date_time: str = Field(default="", alias="dateTime")
    venue: str = ""
    notes: str = ""


class PatawagCreate(BaseModel):
    """POST /api/cases/{id}/patawag"""
    model_config = ConfigDict(populate_by_name=True)

    schedule_date: str = Field(default="", alias="scheduleDate")
    venue: str = ""
    notes: str = ""


class CaseListParams(BaseModel):
    """Query parameters accepted by GET /api/cases."""
    model_config = ConfigDict(populate_by_name=True)

    page: int = 1
    limit: int = 10
    status: str = ""
    q: str = ""
    date_from: str = Field(default="", alias="from")
    date_to: str = Field(default="", alias="to")
    mine: bool = False
    sort: str = "desc"
    export_csv: bool = Field(default=False, alias="exportCsv")
    type: str = ""
    priority: str = ""
    harassment_type: str = Field(default="", alias="harassmentType")
    senior_category: str = Field(default="", alias="seniorCategory")
