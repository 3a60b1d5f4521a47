from fastapi import APIRouter, Depends
import logging

from core.exceptions import BusinessError, ErrorCode
from core.limiter import session_token_rate_limit
from dependencies.auth import get_current_user, require_roles
from models import ConsultationStatus, DOCTOR_ROLES, UserRole
from schemas import SessionCredential, SessionTokenValidate, SessionTokenValidation
from services.consultation_service import ConsultationService
from services.session_credentials import SessionCredentialIssuer, get_session_issuer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rtc", tags=["rtc"])

participant = require_roles(UserRole.PATIENT, *DOCTOR_ROLES)

JOINABLE_STATUSES = (ConsultationStatus.WAITING, ConsultationStatus.IN_PROGRESS)

@router.get(
    "/token/{consultation_id}",
    response_model=SessionCredential,
    dependencies=[Depends(session_token_rate_limit)],
)
def get_session_token(
    consultation_id: int,
    current_user: dict = Depends(participant),
    issuer: SessionCredentialIssuer = Depends(get_session_issuer)
):
    """Issue a credential for the caller to join the consultation's video room"""
    consultation = ConsultationService.load_consultation(consultation_id)
    if not ConsultationService.is_participant(consultation, current_user["id"]):
        raise BusinessError(ErrorCode.CONSULT_NOT_BELONG)

    status = ConsultationService.current_status(consultation)
    if status not in JOINABLE_STATUSES:
        raise BusinessError(
            ErrorCode.CONSULT_STATUS_INVALID,
            f"Cannot join a consultation that is {status.value}",
        )

    credential = issuer.issue(consultation_id, current_user["id"], current_user["role"])
    logger.info(f"User {current_user['id']} got a session token for consultation {consultation_id}")
    return credential

@router.post("/validate", response_model=SessionTokenValidation)
def validate_session_token(
    body: SessionTokenValidate,
    current_user: dict = Depends(get_current_user),
    issuer: SessionCredentialIssuer = Depends(get_session_issuer)
):
    return SessionTokenValidation(valid=issuer.validate(body.token, body.consultation_id, current_user["id"]))

@router.post("/join/{consultation_id}")
def join_room(consultation_id: int, current_user: dict = Depends(participant)):
    logger.info(f"User {current_user['id']} joined room for consultation {consultation_id}")
    return {"message": "joined"}

@router.post("/leave/{consultation_id}")
def leave_room(consultation_id: int, current_user: dict = Depends(participant)):
    logger.info(f"User {current_user['id']} left room for consultation {consultation_id}")
    return {"message": "left"}
