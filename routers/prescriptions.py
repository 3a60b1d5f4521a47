from fastapi import APIRouter, Depends
from typing import List, Optional
import logging

from core.exceptions import BusinessError, ErrorCode
from dependencies.auth import require_roles
from models import DOCTOR_ROLES, UserRole
from schemas import (
    PrescriptionApprove,
    PrescriptionCreate,
    PrescriptionItemCreate,
    PrescriptionReject,
    PrescriptionUpdate,
)
from services.prescription_service import PrescriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/prescriptions", tags=["prescriptions"])

prescribing_doctor = require_roles(*DOCTOR_ROLES)
prescriber = require_roles(*DOCTOR_ROLES, UserRole.ADMIN)
pharmacist = require_roles(UserRole.PHARMACIST)
any_reader = require_roles(UserRole.PATIENT, *DOCTOR_ROLES, UserRole.PHARMACIST, UserRole.ADMIN)


# Doctor actions

@router.post("", response_model=dict)
def create_prescription(prescription: PrescriptionCreate, current_user: dict = Depends(prescribing_doctor)):
    """Create a prescription; one created with items is submitted for review at once"""
    return PrescriptionService.create_with_items(prescription.model_dump(), current_user)

@router.put("/{prescription_id}", response_model=dict)
def update_prescription(prescription_id: int, updates: PrescriptionUpdate, current_user: dict = Depends(prescriber)):
    return PrescriptionService.update_prescription(prescription_id, updates.model_dump(), current_user)

@router.post("/{prescription_id}/items", response_model=dict)
def add_item(prescription_id: int, item: PrescriptionItemCreate, current_user: dict = Depends(prescriber)):
    return PrescriptionService.add_item(prescription_id, item.model_dump(), current_user)

@router.delete("/{prescription_id}/items/{item_id}")
def delete_item(prescription_id: int, item_id: int, current_user: dict = Depends(prescriber)):
    PrescriptionService.delete_item(prescription_id, item_id, current_user)
    return {"message": "Item removed"}

@router.post("/{prescription_id}/submit", response_model=dict)
def submit_prescription(prescription_id: int, current_user: dict = Depends(prescriber)):
    return PrescriptionService.submit_for_review(prescription_id, current_user)

@router.post("/{prescription_id}/revise", response_model=dict)
def revise_prescription(prescription_id: int, current_user: dict = Depends(prescriber)):
    """Return a rejected prescription to draft for resubmission"""
    return PrescriptionService.revise(prescription_id, current_user)


# Pharmacist review

@router.get("/pending-review", response_model=List[dict])
def list_pending_review(current_user: dict = Depends(pharmacist)):
    return PrescriptionService.list_pending_review()

@router.get("/reviews/mine", response_model=List[dict])
def list_my_reviews(current_user: dict = Depends(pharmacist)):
    return PrescriptionService.list_reviews_by_pharmacist(current_user["id"])

@router.put("/{prescription_id}/approve", response_model=dict)
def approve_prescription(
    prescription_id: int,
    body: Optional[PrescriptionApprove] = None,
    current_user: dict = Depends(pharmacist)
):
    review = body or PrescriptionApprove()
    return PrescriptionService.approve(prescription_id, current_user, review.risk_level, review.suggestion)

@router.put("/{prescription_id}/reject", response_model=dict)
def reject_prescription(prescription_id: int, body: PrescriptionReject, current_user: dict = Depends(pharmacist)):
    return PrescriptionService.reject(
        prescription_id, body.reason, current_user, body.risk_level, body.suggestion
    )

@router.put("/{prescription_id}/dispense", response_model=dict)
def dispense_prescription(prescription_id: int, current_user: dict = Depends(pharmacist)):
    return PrescriptionService.dispense(prescription_id, current_user)


# Reads

@router.get("/consultation/{consultation_id}", response_model=Optional[dict])
def get_by_consultation(consultation_id: int, current_user: dict = Depends(any_reader)):
    prescription = PrescriptionService.get_by_consultation(consultation_id)
    if prescription:
        PrescriptionService.check_read_access(prescription, current_user)
    return prescription

@router.get("/patient/{patient_id}", response_model=List[dict])
def list_by_patient(patient_id: int, current_user: dict = Depends(any_reader)):
    if current_user["role"] == UserRole.PATIENT and current_user["id"] != patient_id:
        raise BusinessError(ErrorCode.FORBIDDEN, "Patients can only list their own prescriptions")
    return PrescriptionService.list_by_patient(patient_id)

@router.get("/{prescription_id}", response_model=dict)
def get_prescription(prescription_id: int, current_user: dict = Depends(any_reader)):
    prescription = PrescriptionService.get_prescription(prescription_id)
    PrescriptionService.check_read_access(prescription, current_user)
    return prescription

@router.get("/{prescription_id}/items", response_model=List[dict])
def list_items(prescription_id: int, current_user: dict = Depends(any_reader)):
    prescription = PrescriptionService.get_prescription(prescription_id)
    PrescriptionService.check_read_access(prescription, current_user)
    return PrescriptionService.list_items(prescription_id)

@router.get("/{prescription_id}/reviews", response_model=List[dict])
def list_reviews(prescription_id: int, current_user: dict = Depends(any_reader)):
    """Every pharmacy review of the prescription, newest first"""
    prescription = PrescriptionService.get_prescription(prescription_id)
    PrescriptionService.check_read_access(prescription, current_user)
    return PrescriptionService.list_reviews(prescription_id)

@router.get("/{prescription_id}/reviews/latest", response_model=Optional[dict])
def latest_review(prescription_id: int, current_user: dict = Depends(any_reader)):
    prescription = PrescriptionService.get_prescription(prescription_id)
    PrescriptionService.check_read_access(prescription, current_user)
    return PrescriptionService.latest_review(prescription_id)
