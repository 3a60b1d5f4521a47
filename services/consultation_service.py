import logging
import random
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.database import require_supabase
from core.exceptions import BusinessError, ErrorCode, InvalidTransitionError
from models import ConsultationStatus, ConsultationType, UserRole
from services.workflow_engine import can_transition

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConsultationService:
    @staticmethod
    def _get_db():
        return require_supabase()

    @staticmethod
    def generate_consultation_no() -> str:
        return f"C{int(time.time() * 1000)}{random.randint(0, 9999):04d}"

    @classmethod
    def create_consultation(cls, consultation_data: Dict[str, Any], current_user: Dict[str, Any]) -> Dict[str, Any]:
        supabase = cls._get_db()

        # The client may send a doctor profile id; consultations store the doctor's user id
        doctor_id = consultation_data["doctor_id"]
        doctor_result = supabase.table("doctors").select("*").eq("id", doctor_id).execute()
        if doctor_result.data and doctor_result.data[0].get("user_id"):
            doctor_user_id = doctor_result.data[0]["user_id"]
            logger.info(f"Resolved doctor profile {doctor_id} -> user {doctor_user_id}")
            doctor_id = doctor_user_id

        scheduled_at = consultation_data.get("scheduled_at")
        now = _now_iso()
        record = {
            "consultation_no": cls.generate_consultation_no(),
            "patient_id": current_user["id"],
            "doctor_id": doctor_id,
            "consultation_type": ConsultationType.VIDEO.value,
            "status": ConsultationStatus.WAITING.value,
            "status_updated_at": now,
            "symptoms": consultation_data.get("symptoms"),
            "scheduled_at": scheduled_at.isoformat() if isinstance(scheduled_at, datetime) else scheduled_at,
            "created_at": now,
            "updated_at": now,
        }

        result = supabase.table("consultations").insert(record).execute()
        if not result.data:
            raise BusinessError(ErrorCode.INTERNAL_ERROR, "Failed to create consultation")

        consultation = result.data[0]
        logger.info(
            f"Consultation created: consultation_no={consultation['consultation_no']}, "
            f"patient_id={current_user['id']}, doctor_id={doctor_id}"
        )
        return consultation

    @classmethod
    def load_consultation(cls, consultation_id: int) -> Dict[str, Any]:
        supabase = cls._get_db()
        result = supabase.table("consultations").select("*").eq("id", consultation_id).execute()
        if not result.data:
            raise BusinessError(ErrorCode.CONSULT_NOT_FOUND)
        return result.data[0]

    @staticmethod
    def is_participant(consultation: Dict[str, Any], user_id: int) -> bool:
        return user_id in (consultation.get("patient_id"), consultation.get("doctor_id"))

    @classmethod
    def get_consultation(cls, consultation_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
        """Load a consultation the caller takes part in (admins see all)"""
        consultation = cls.load_consultation(consultation_id)
        if not cls.is_participant(consultation, current_user["id"]) and current_user["role"] != UserRole.ADMIN:
            raise BusinessError(ErrorCode.CONSULT_NOT_BELONG)
        return consultation

    @classmethod
    def list_consultations(cls, current_user: Dict[str, Any], status: Optional[ConsultationStatus] = None) -> List[Dict[str, Any]]:
        supabase = cls._get_db()
        owner_column = "doctor_id" if current_user["role"].is_doctor else "patient_id"
        query = supabase.table("consultations").select("*").eq(owner_column, current_user["id"])
        if status is not None:
            query = query.eq("status", status.value)
        result = query.order("created_at", desc=True).execute()
        return result.data if result.data else []

    @classmethod
    def current_status(cls, consultation: Dict[str, Any]) -> ConsultationStatus:
        status = ConsultationStatus.from_code(consultation.get("status"))
        if status is None:
            raise BusinessError(
                ErrorCode.CONSULT_STATUS_INVALID,
                f"Unknown consultation status: {consultation.get('status')}",
            )
        return status

    @classmethod
    def _transition(
        cls,
        consultation: Dict[str, Any],
        target: ConsultationStatus,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        current = cls.current_status(consultation)
        if not can_transition(current, target):
            raise InvalidTransitionError(ErrorCode.CONSULT_STATUS_INVALID, current, target)

        now = _now_iso()
        update_data = {"status": target.value, "status_updated_at": now, "updated_at": now}
        if extra:
            update_data.update(extra)

        # Only writes if the stored status is still the one checked above
        supabase = cls._get_db()
        res = supabase.table("consultations").update(update_data).eq(
            "id", consultation["id"]
        ).eq("status", current.value).execute()
        if not res.data:
            logger.warning(
                f"Consultation {consultation['id']} left {current.value} before {target.value} was written"
            )
            raise InvalidTransitionError(ErrorCode.CONSULT_STATUS_INVALID, current, target)

        logger.info(f"Consultation {consultation['id']} status: {current.value} -> {target.value}")
        return res.data[0]

    @classmethod
    def _check_assigned_doctor(cls, consultation: Dict[str, Any], current_user: Dict[str, Any]):
        if consultation.get("doctor_id") != current_user["id"] and current_user["role"] != UserRole.ADMIN:
            raise BusinessError(ErrorCode.CONSULT_NOT_BELONG, "Only the assigned doctor can do this")

    @classmethod
    def start_consultation(cls, consultation_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
        consultation = cls.load_consultation(consultation_id)
        cls._check_assigned_doctor(consultation, current_user)
        return cls._transition(consultation, ConsultationStatus.IN_PROGRESS, {"start_time": _now_iso()})

    @classmethod
    def finish_consultation(cls, consultation_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
        consultation = cls.load_consultation(consultation_id)
        cls._check_assigned_doctor(consultation, current_user)

        end_time = datetime.now(timezone.utc)
        extra: Dict[str, Any] = {"end_time": end_time.isoformat()}
        if consultation.get("start_time"):
            start_time = datetime.fromisoformat(consultation["start_time"])
            if start_time.tzinfo is None:
                start_time = start_time.replace(tzinfo=timezone.utc)
            extra["duration"] = int((end_time - start_time).total_seconds() // 60)

        finished = cls._transition(consultation, ConsultationStatus.FINISHED, extra)
        logger.info(f"Consultation {consultation_id} finished, duration={extra.get('duration')} min")
        return finished

    @classmethod
    def cancel_consultation(cls, consultation_id: int, current_user: Dict[str, Any], reason: Optional[str] = None) -> Dict[str, Any]:
        consultation = cls.get_consultation(consultation_id, current_user)
        canceled = cls._transition(consultation, ConsultationStatus.CANCELED, {"cancel_reason": reason})
        logger.info(f"Consultation {consultation_id} canceled by user {current_user['id']}: {reason}")
        return canceled
