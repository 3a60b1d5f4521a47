from fastapi import APIRouter

from core.exceptions import BusinessError, ErrorCode
from models import ConsultationStatus, PrescriptionStatus
from schemas import StatusTransitions
from services.workflow_engine import allowed_next_statuses, is_editable, is_terminal

router = APIRouter(prefix="/api/workflow", tags=["workflow"])

def _describe(status) -> StatusTransitions:
    return StatusTransitions(
        status=status.value,
        allowed_next=sorted(s.value for s in allowed_next_statuses(status)),
        terminal=is_terminal(status),
        editable=is_editable(status),
    )

@router.get("/consultation/{status_code}", response_model=StatusTransitions)
def consultation_transitions(status_code: str):
    """Where a consultation can go from the given status"""
    status = ConsultationStatus.from_code(status_code.upper())
    if status is None:
        raise BusinessError(ErrorCode.PARAM_ERROR, f"Unknown consultation status: {status_code}")
    return _describe(status)

@router.get("/prescription/{status_code}", response_model=StatusTransitions)
def prescription_transitions(status_code: str):
    status = PrescriptionStatus.from_code(status_code.upper())
    if status is None:
        raise BusinessError(ErrorCode.PARAM_ERROR, f"Unknown prescription status: {status_code}")
    return _describe(status)
