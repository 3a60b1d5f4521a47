"""
Model enums for type hints and validation
Note: Entities live in Supabase; these enums are the value types the
services and schemas agree on. Transition rules are kept out of the enums
(see services/workflow_engine.py).
"""
import enum
from typing import Optional


class CodeLookupMixin:
    """Adds a non-raising lookup by stored code"""

    @classmethod
    def from_code(cls, code: Optional[str]):
        if code is None:
            return None
        try:
            return cls(code)
        except ValueError:
            return None


class UserRole(CodeLookupMixin, str, enum.Enum):
    PATIENT = "PATIENT"
    DOCTOR_PRIMARY = "DOCTOR_PRIMARY"
    DOCTOR_EXPERT = "DOCTOR_EXPERT"
    PHARMACIST = "PHARMACIST"
    ADMIN = "ADMIN"

    @property
    def is_doctor(self) -> bool:
        return self in (UserRole.DOCTOR_PRIMARY, UserRole.DOCTOR_EXPERT)


DOCTOR_ROLES = (UserRole.DOCTOR_PRIMARY, UserRole.DOCTOR_EXPERT)


class ConsultationStatus(CodeLookupMixin, str, enum.Enum):
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    CANCELED = "CANCELED"


class PrescriptionStatus(CodeLookupMixin, str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DISPENSED = "DISPENSED"


class ConsultationType(str, enum.Enum):
    VIDEO = "VIDEO"
