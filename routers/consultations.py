from fastapi import APIRouter, Depends, Query
from typing import List, Optional
import logging

from dependencies.auth import get_current_user, require_roles
from models import ConsultationStatus, DOCTOR_ROLES, UserRole
from schemas import ConsultationCancel, ConsultationCreate
from services.consultation_service import ConsultationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consultations", tags=["consultations"])

@router.post("", response_model=dict)
def create_consultation(
    consultation: ConsultationCreate,
    current_user: dict = Depends(require_roles(UserRole.PATIENT))
):
    """Patient opens a consultation with a doctor; it starts out WAITING"""
    return ConsultationService.create_consultation(consultation.model_dump(), current_user)

@router.get("", response_model=List[dict])
def list_consultations(
    status: Optional[ConsultationStatus] = Query(default=None),
    current_user: dict = Depends(get_current_user)
):
    return ConsultationService.list_consultations(current_user, status)

@router.get("/{consultation_id}", response_model=dict)
def get_consultation(consultation_id: int, current_user: dict = Depends(get_current_user)):
    return ConsultationService.get_consultation(consultation_id, current_user)

@router.post("/{consultation_id}/start", response_model=dict)
def start_consultation(
    consultation_id: int,
    current_user: dict = Depends(require_roles(*DOCTOR_ROLES, UserRole.ADMIN))
):
    """Doctor accepts the consultation"""
    return ConsultationService.start_consultation(consultation_id, current_user)

@router.post("/{consultation_id}/finish", response_model=dict)
def finish_consultation(
    consultation_id: int,
    current_user: dict = Depends(require_roles(*DOCTOR_ROLES, UserRole.ADMIN))
):
    return ConsultationService.finish_consultation(consultation_id, current_user)

@router.post("/{consultation_id}/cancel", response_model=dict)
def cancel_consultation(
    consultation_id: int,
    body: Optional[ConsultationCancel] = None,
    current_user: dict = Depends(get_current_user)
):
    reason = body.reason if body else None
    return ConsultationService.cancel_consultation(consultation_id, current_user, reason)
