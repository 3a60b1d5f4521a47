from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import List, Optional


# Session credential
class SessionCredential(BaseModel):
    """One participant's pass into one consultation room"""
    model_config = ConfigDict(frozen=True)

    token: str
    room_id: str
    uid: str
    app_id: str
    expire_at: datetime

class SessionTokenValidate(BaseModel):
    token: str
    consultation_id: int

class SessionTokenValidation(BaseModel):
    valid: bool


# Consultation Schemas
class ConsultationCreate(BaseModel):
    doctor_id: int
    symptoms: Optional[str] = None
    scheduled_at: Optional[datetime] = None

class ConsultationCancel(BaseModel):
    reason: Optional[str] = None


# Prescription Schemas
class PrescriptionItemCreate(BaseModel):
    drug_name: str
    spec: Optional[str] = None
    usage: str
    quantity: int = Field(gt=0)
    unit: Optional[str] = None
    remark: Optional[str] = None

    @field_validator('drug_name', 'usage')
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Field cannot be blank')
        return v.strip()

class PrescriptionCreate(BaseModel):
    consultation_id: int
    diagnosis: List[str] = []
    items: List[PrescriptionItemCreate] = []

class PrescriptionUpdate(BaseModel):
    diagnosis: Optional[str] = None
    notes: Optional[str] = None

class PrescriptionApprove(BaseModel):
    risk_level: Optional[str] = None
    suggestion: Optional[str] = None

class PrescriptionReject(BaseModel):
    reason: str
    risk_level: Optional[str] = None
    suggestion: Optional[str] = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if not v or not v.strip():
            raise ValueError('A rejection reason is required')
        return v.strip()


# Workflow
class StatusTransitions(BaseModel):
    status: str
    allowed_next: List[str]
    terminal: bool
    editable: bool
